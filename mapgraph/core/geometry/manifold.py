"""Manifold contract shared by every variable type.

A manifold value exposes ``dim()``, ``retract(delta)`` and
``local_coordinates(other)``. numpy vectors and Python floats are treated as
vector spaces, so plain points and parameter vectors can be stored in Values
next to poses and cameras.
"""

from abc import ABC, abstractmethod
from typing import Any, NamedTuple, Tuple

import numpy as np


class WithJacobians(NamedTuple):
    """A computed value together with its derivatives.

    ``jacobians`` holds one matrix per argument of the computation, in
    argument order.
    """

    value: Any
    jacobians: Tuple[np.ndarray, ...]


class Manifold(ABC):
    """Base class for non-Euclidean variable types."""

    @abstractmethod
    def dim(self) -> int:
        """Tangent space dimension of this value."""

    @abstractmethod
    def retract(self, delta: np.ndarray) -> "Manifold":
        """Move by ``delta`` expressed in the tangent space at this value."""

    @abstractmethod
    def local_coordinates(self, other: "Manifold") -> np.ndarray:
        """Tangent vector taking this value to ``other``."""

    @abstractmethod
    def equals(self, other: Any, tol: float = 1e-9) -> bool:
        """Equality up to a tolerance."""

    def _check_delta(self, delta: np.ndarray) -> np.ndarray:
        delta = np.asarray(delta, dtype=float).reshape(-1)
        if delta.shape != (self.dim(),):
            raise ValueError(
                f"{type(self).__name__}: tangent vector must have {self.dim()} elements, got {delta.shape}"
            )
        return delta


def is_vector_value(value: Any) -> bool:
    """True for values handled as plain vector spaces."""
    return isinstance(value, (np.ndarray, float, int, np.floating)) and not isinstance(value, bool)


def dim(value: Any) -> int:
    """Tangent dimension of any supported value."""
    if isinstance(value, Manifold):
        return value.dim()
    if is_vector_value(value):
        return int(np.size(value))
    raise TypeError(f"Unsupported value type {type(value).__name__}")


def retract(value: Any, delta: np.ndarray) -> Any:
    """Apply a tangent-space step to any supported value."""
    if isinstance(value, Manifold):
        return value.retract(delta)
    if isinstance(value, np.ndarray):
        delta = np.asarray(delta, dtype=float).reshape(value.shape)
        return value + delta
    if is_vector_value(value):
        return float(value) + float(np.asarray(delta).reshape(-1)[0])
    raise TypeError(f"Unsupported value type {type(value).__name__}")


def local_coordinates(value: Any, other: Any) -> np.ndarray:
    """Tangent vector from ``value`` to ``other``."""
    if isinstance(value, Manifold):
        return value.local_coordinates(other)
    if is_vector_value(value):
        return np.atleast_1d(np.asarray(other, dtype=float) - np.asarray(value, dtype=float)).reshape(-1)
    raise TypeError(f"Unsupported value type {type(value).__name__}")


def equals(value: Any, other: Any, tol: float = 1e-9) -> bool:
    """Tolerance-based equality for any supported value."""
    if isinstance(value, Manifold):
        return value.equals(other, tol)
    if is_vector_value(value) and is_vector_value(other):
        a = np.atleast_1d(np.asarray(value, dtype=float))
        b = np.atleast_1d(np.asarray(other, dtype=float))
        return a.shape == b.shape and bool(np.allclose(a, b, atol=tol, rtol=0))
    return False


def same_type(value: Any, other: Any) -> bool:
    """Whether two values can occupy the same key over a run."""
    if is_vector_value(value) and is_vector_value(other):
        return np.size(value) == np.size(other)
    return type(value) is type(other)


def as_point(p: Any, size: int, name: str = "point") -> np.ndarray:
    """Validate and convert a point-like argument to a float vector."""
    p = np.asarray(p, dtype=float)
    if p.shape != (size,):
        raise ValueError(f"{name} must be {size}-element vector, got shape {p.shape}")
    return p


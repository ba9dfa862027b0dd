"""Factor base class and the factor kind tag."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Sequence, Tuple

from .keys import Key, format_key


class FactorKind(Enum):
    """Tag used to dispatch over factor variants."""
    NONLINEAR = "nonlinear"
    INEQUALITY = "inequality"
    LINEAR = "linear"


class Factor(ABC):
    """A residual term over a fixed tuple of keys."""

    kind: FactorKind

    def __init__(self, keys: Sequence[Key]):
        """Initialize factor.

        Args:
            keys: Keys of the variables this factor depends on
        """
        keys = tuple(keys)
        if len(set(keys)) != len(keys):
            raise ValueError(f"{type(self).__name__}: duplicate keys {[format_key(k) for k in keys]}")
        self._keys = keys

    def keys(self) -> Tuple[Key, ...]:
        return self._keys

    def size(self) -> int:
        return len(self._keys)

    @abstractmethod
    def dim(self) -> int:
        """Residual dimension."""

    def __repr__(self) -> str:
        keys = ", ".join(format_key(k) for k in self._keys)
        return f"{type(self).__name__}({keys})"

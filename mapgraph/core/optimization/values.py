"""Variable store (Values) and tangent-vector maps (VectorValues)."""

import numpy as np
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ..errors import MissingVariableError, TypeMismatchError
from ..geometry import manifold
from .keys import Key, format_key


class VectorValues:
    """Mapping from key to a 1-D numpy vector.

    Holds either a linear-system correction (one entry per variable) or a
    dual-variable assignment (entries only for active constraints).
    """

    def __init__(self, vectors: Optional[Mapping[Key, np.ndarray]] = None):
        self._vectors: Dict[Key, np.ndarray] = {}
        if vectors is not None:
            for key, v in vectors.items():
                self.insert(key, v)

    @classmethod
    def zero(cls, dims: Mapping[Key, int]) -> "VectorValues":
        return cls({key: np.zeros(d) for key, d in dims.items()})

    @classmethod
    def from_vector(cls, x: np.ndarray, ordering: Sequence[Key], dims: Mapping[Key, int]) -> "VectorValues":
        """Split a flat vector into per-key blocks following ``ordering``."""
        x = np.asarray(x, dtype=float).reshape(-1)
        expected = sum(dims[key] for key in ordering)
        if len(x) != expected:
            raise ValueError(f"Vector size mismatch: got {len(x)}, ordering needs {expected}")

        result = cls()
        offset = 0
        for key in ordering:
            d = dims[key]
            result.insert(key, x[offset:offset + d])
            offset += d
        return result

    def insert(self, key: Key, v: Any) -> None:
        if key in self._vectors:
            raise ValueError(f"Vector for {format_key(key)} already exists")
        self._vectors[key] = np.atleast_1d(np.asarray(v, dtype=float)).reshape(-1).copy()

    def update(self, key: Key, v: Any) -> None:
        if key not in self._vectors:
            raise MissingVariableError(key)
        self._vectors[key] = np.atleast_1d(np.asarray(v, dtype=float)).reshape(-1).copy()

    def exists(self, key: Key) -> bool:
        return key in self._vectors

    def at(self, key: Key) -> np.ndarray:
        try:
            return self._vectors[key]
        except KeyError:
            raise MissingVariableError(key) from None

    def __getitem__(self, key: Key) -> np.ndarray:
        return self.at(key)

    def __contains__(self, key: Key) -> bool:
        return key in self._vectors

    def __len__(self) -> int:
        return len(self._vectors)

    def __iter__(self) -> Iterator[Key]:
        return iter(self.keys())

    def keys(self) -> List[Key]:
        return sorted(self._vectors)

    def items(self) -> List[Tuple[Key, np.ndarray]]:
        return [(key, self._vectors[key]) for key in self.keys()]

    def dims(self) -> Dict[Key, int]:
        return {key: len(v) for key, v in self.items()}

    def vector(self, ordering: Optional[Sequence[Key]] = None) -> np.ndarray:
        """Concatenate blocks in ``ordering`` (sorted keys by default)."""
        ordering = self.keys() if ordering is None else ordering
        if not ordering:
            return np.zeros(0)
        return np.concatenate([self.at(key) for key in ordering])

    def norm(self) -> float:
        return float(np.linalg.norm(self.vector()))

    def dot(self, other: "VectorValues") -> float:
        return float(sum(np.dot(v, other.at(key)) for key, v in self.items()))

    def _binary(self, other: "VectorValues", op) -> "VectorValues":
        if set(self._vectors) != set(other._vectors):
            raise ValueError("VectorValues have different keys")
        return VectorValues({key: op(v, other.at(key)) for key, v in self.items()})

    def __add__(self, other: "VectorValues") -> "VectorValues":
        return self._binary(other, np.add)

    def __sub__(self, other: "VectorValues") -> "VectorValues":
        return self._binary(other, np.subtract)

    def __mul__(self, alpha: float) -> "VectorValues":
        return VectorValues({key: alpha * v for key, v in self.items()})

    __rmul__ = __mul__

    def __neg__(self) -> "VectorValues":
        return self * -1.0

    def equals(self, other: "VectorValues", tol: float = 1e-9) -> bool:
        if set(self._vectors) != set(other._vectors):
            return False
        return all(
            v.shape == other.at(key).shape and np.allclose(v, other.at(key), atol=tol, rtol=0)
            for key, v in self.items()
        )

    def __repr__(self) -> str:
        entries = ", ".join(f"{format_key(k)}: {v.round(6).tolist()}" for k, v in self.items())
        return f"VectorValues({{{entries}}})"


class Values:
    """Assignment of every variable key to a manifold value.

    Keys iterate in sorted order. Each key keeps one value type for its
    lifetime; ``update`` enforces this. ``retract`` returns a new Values.
    """

    def __init__(self, values: Optional[Union["Values", Mapping[Key, Any]]] = None):
        self._values: Dict[Key, Any] = {}
        if values is not None:
            for key, value in values.items():
                self.insert(key, value)

    def insert(self, key: Key, value: Any) -> None:
        if key in self._values:
            raise ValueError(f"Variable {format_key(key)} already exists")
        manifold.dim(value)  # rejects unsupported types
        self._values[key] = _stored(value)

    def update(self, key: Key, value: Any) -> None:
        if key not in self._values:
            raise MissingVariableError(key)
        current = self._values[key]
        if not manifold.same_type(current, value):
            raise TypeMismatchError(
                f"Variable {format_key(key)} holds {type(current).__name__}, cannot update with {type(value).__name__}"
            )
        self._values[key] = _stored(value)

    def insert_or_assign(self, key: Key, value: Any) -> None:
        if key in self._values:
            self.update(key, value)
        else:
            self.insert(key, value)

    def erase(self, key: Key) -> None:
        if key not in self._values:
            raise MissingVariableError(key)
        del self._values[key]

    def exists(self, key: Key) -> bool:
        return key in self._values

    def at(self, key: Key) -> Any:
        try:
            return self._values[key]
        except KeyError:
            raise MissingVariableError(key) from None

    def at_type(self, key: Key, expected: Union[type, Tuple[type, ...]]) -> Any:
        value = self.at(key)
        if not isinstance(value, expected):
            raise TypeMismatchError(
                f"Variable {format_key(key)} is {type(value).__name__}, expected {_type_names(expected)}"
            )
        return value

    def __getitem__(self, key: Key) -> Any:
        return self.at(key)

    def __contains__(self, key: Key) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Key]:
        return iter(self.keys())

    def keys(self) -> List[Key]:
        return sorted(self._values)

    def items(self) -> List[Tuple[Key, Any]]:
        return [(key, self._values[key]) for key in self.keys()]

    def dims(self) -> Dict[Key, int]:
        return {key: manifold.dim(value) for key, value in self.items()}

    def dim(self) -> int:
        return sum(self.dims().values())

    def zero_vectors(self) -> VectorValues:
        return VectorValues.zero(self.dims())

    def retract(self, delta: VectorValues) -> "Values":
        """New Values with every key in ``delta`` moved along its tangent vector."""
        for key in delta.keys():
            if key not in self._values:
                raise MissingVariableError(key, "retract")
        result = Values()
        for key, value in self.items():
            result._values[key] = manifold.retract(value, delta.at(key)) if key in delta else value
        return result

    def local_coordinates(self, other: "Values") -> VectorValues:
        """Tangent vectors taking each value of self to the same key in ``other``."""
        result = VectorValues()
        for key, value in self.items():
            result.insert(key, manifold.local_coordinates(value, other.at(key)))
        return result

    def filter(self, keys: Iterable[Key]) -> "Values":
        return Values({key: self.at(key) for key in keys})

    def copy(self) -> "Values":
        return Values(self)

    def equals(self, other: "Values", tol: float = 1e-9) -> bool:
        if set(self._values) != set(other._values):
            return False
        return all(manifold.equals(value, other.at(key), tol) for key, value in self.items())

    def __repr__(self) -> str:
        entries = ", ".join(f"{format_key(k)}: {v!r}" for k, v in self.items())
        return f"Values({{{entries}}})"


def _stored(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return np.asarray(value, dtype=float).copy()
    return value


def _type_names(expected: Union[type, Tuple[type, ...]]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__

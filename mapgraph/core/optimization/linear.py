"""Linear factors and the sparse linear systems they assemble into.

A ``JacobianFactor`` represents ``0.5 * ||sum_j A_j dx_j - b||^2`` over the
tangent spaces of its keys. Linearizing a nonlinear factor whitens its
Jacobians into ``A_j`` and sets ``b = -whiten(error)``.
"""

import numpy as np
from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence

from scipy.sparse import csr_matrix

from ..errors import MissingVariableError, TypeMismatchError
from .factor import Factor, FactorKind
from .keys import Key, format_key
from .values import VectorValues


class JacobianFactor(Factor):
    """Linear factor with one Jacobian block per key."""

    kind = FactorKind.LINEAR

    def __init__(self, keys: Sequence[Key], blocks: Sequence[np.ndarray], b: np.ndarray):
        super().__init__(keys)
        b = np.atleast_1d(np.asarray(b, dtype=float)).reshape(-1)
        blocks = [np.atleast_2d(np.asarray(A, dtype=float)) for A in blocks]
        if len(blocks) != len(self._keys):
            raise ValueError(f"Expected {len(self._keys)} Jacobian blocks, got {len(blocks)}")
        for key, A in zip(self._keys, blocks):
            if A.shape[0] != len(b):
                raise ValueError(
                    f"Block for {format_key(key)} has {A.shape[0]} rows, right-hand side has {len(b)}"
                )
        self._blocks = blocks
        self._b = b

    def dim(self) -> int:
        return len(self._b)

    def rows(self) -> int:
        return len(self._b)

    def A(self, key: Key) -> np.ndarray:
        try:
            return self._blocks[self._keys.index(key)]
        except ValueError:
            raise MissingVariableError(key, f"not involved in {self!r}") from None

    def blocks(self) -> List[np.ndarray]:
        return list(self._blocks)

    def b(self) -> np.ndarray:
        return self._b.copy()

    def dims(self) -> Dict[Key, int]:
        return {key: A.shape[1] for key, A in zip(self._keys, self._blocks)}

    def error_vector(self, delta: VectorValues) -> np.ndarray:
        """``A dx - b``."""
        r = -self._b.copy()
        for key, A in zip(self._keys, self._blocks):
            r += A @ delta.at(key)
        return r

    def error(self, delta: VectorValues) -> float:
        r = self.error_vector(delta)
        return 0.5 * float(r @ r)

    def gradient_at_zero(self) -> Dict[Key, np.ndarray]:
        """Gradient of ``error`` at ``dx = 0``: ``-A_j^T b`` per key."""
        return {key: -A.T @ self._b for key, A in zip(self._keys, self._blocks)}

    def augmented_jacobian(self, ordering: Sequence[Key], dims: Dict[Key, int]) -> np.ndarray:
        """Dense ``[A | b]`` with columns following ``ordering``."""
        n = sum(dims[key] for key in ordering)
        Ab = np.zeros((self.rows(), n + 1))
        offset = 0
        for key in ordering:
            if key in self._keys:
                Ab[:, offset:offset + dims[key]] = self.A(key)
            offset += dims[key]
        Ab[:, -1] = self._b
        return Ab

    def equals(self, other: "JacobianFactor", tol: float = 1e-9) -> bool:
        return (
            type(self) is type(other)
            and self._keys == other._keys
            and all(A.shape == B.shape and np.allclose(A, B, atol=tol) for A, B in zip(self._blocks, other._blocks))
            and np.allclose(self._b, other._b, atol=tol)
        )


class SparseSystem(NamedTuple):
    """Stacked linear system ``A x ~= b`` with the column layout used to build it."""

    A: csr_matrix
    b: np.ndarray
    ordering: List[Key]
    dims: Dict[Key, int]

    def to_vector_values(self, x: np.ndarray) -> VectorValues:
        return VectorValues.from_vector(x, self.ordering, self.dims)


class GaussianFactorGraph:
    """Ordered collection of JacobianFactors: the linearized problem."""

    def __init__(self, factors: Optional[Sequence[JacobianFactor]] = None):
        self._factors: List[JacobianFactor] = []
        for factor in factors or []:
            self.add(factor)

    def add(self, factor: JacobianFactor) -> None:
        if getattr(factor, "kind", None) is not FactorKind.LINEAR:
            raise TypeMismatchError(f"GaussianFactorGraph only holds linear factors, got {type(factor).__name__}")
        self._factors.append(factor)

    def __len__(self) -> int:
        return len(self._factors)

    def __iter__(self) -> Iterator[JacobianFactor]:
        return iter(self._factors)

    def __getitem__(self, i: int) -> JacobianFactor:
        return self._factors[i]

    def keys(self) -> List[Key]:
        return sorted({key for factor in self._factors for key in factor.keys()})

    def dims(self) -> Dict[Key, int]:
        dims: Dict[Key, int] = {}
        for factor in self._factors:
            for key, d in factor.dims().items():
                if dims.setdefault(key, d) != d:
                    raise ValueError(f"Inconsistent block widths for {format_key(key)}: {dims[key]} vs {d}")
        return dims

    def ordering(self) -> List[Key]:
        return self.keys()

    def rows(self) -> int:
        return sum(factor.rows() for factor in self._factors)

    def error(self, delta: VectorValues) -> float:
        return sum(factor.error(delta) for factor in self._factors)

    def gradient_at_zero(self) -> VectorValues:
        gradient = {key: np.zeros(d) for key, d in self.dims().items()}
        for factor in self._factors:
            for key, g in factor.gradient_at_zero().items():
                gradient[key] += g
        return VectorValues(gradient)

    def sparse_system(self, ordering: Optional[Sequence[Key]] = None) -> SparseSystem:
        """Assemble the stacked sparse Jacobian and right-hand side.

        Args:
            ordering: Column order of the variables (sorted keys if None)

        Returns:
            SparseSystem with a CSR matrix of shape (rows, total tangent dim)
        """
        dims = self.dims()
        ordering = self.ordering() if ordering is None else list(ordering)
        missing = set(dims) - set(ordering)
        if missing:
            raise MissingVariableError(min(missing), "absent from ordering")

        column_offsets = {}
        offset = 0
        for key in ordering:
            column_offsets[key] = offset
            offset += dims.get(key, 0)
        n_cols = offset

        rows, cols, data = [], [], []
        b = np.zeros(self.rows())
        row_offset = 0
        for factor in self._factors:
            m = factor.rows()
            for key, A in zip(factor.keys(), factor.blocks()):
                r, c = np.nonzero(A)
                rows.append(r + row_offset)
                cols.append(c + column_offsets[key])
                data.append(A[r, c])
            b[row_offset:row_offset + m] = factor.b()
            row_offset += m

        if data:
            rows, cols, data = np.concatenate(rows), np.concatenate(cols), np.concatenate(data)
        A = csr_matrix((data, (rows, cols)), shape=(row_offset, n_cols))
        return SparseSystem(A, b, ordering, {key: dims.get(key, 0) for key in ordering})


class LinearInequality(JacobianFactor):
    """Single-row linear constraint ``A dx <= b`` carrying a dual key."""

    kind = FactorKind.INEQUALITY

    def __init__(self, keys: Sequence[Key], blocks: Sequence[np.ndarray], b: np.ndarray, dual_key: Key):
        super().__init__(keys, blocks, b)
        if self.rows() != 1:
            raise ValueError(f"LinearInequality must have exactly one row, got {self.rows()}")
        self._dual_key = dual_key

    @classmethod
    def from_jacobian(cls, factor: JacobianFactor, dual_key: Key) -> "LinearInequality":
        return cls(factor.keys(), factor.blocks(), factor.b(), dual_key)

    def dual_key(self) -> Key:
        return self._dual_key

    def constraint_value(self, delta: VectorValues) -> float:
        """``A dx - b``; non-positive when satisfied."""
        return float(self.error_vector(delta)[0])

    def is_satisfied(self, delta: VectorValues, tol: float = 1e-9) -> bool:
        return self.constraint_value(delta) <= tol

    def is_active(self, delta: VectorValues, tol: float = 1e-9) -> bool:
        return abs(self.constraint_value(delta)) <= tol

    def equals(self, other: "LinearInequality", tol: float = 1e-9) -> bool:
        return super().equals(other, tol) and self._dual_key == other._dual_key

    def __repr__(self) -> str:
        return f"{super().__repr__()}[dual={format_key(self._dual_key)}]"


class LinearInequalityFactorGraph:
    """Ordered collection of LinearInequality constraints."""

    def __init__(self, factors: Optional[Sequence[LinearInequality]] = None):
        self._factors: List[LinearInequality] = []
        for factor in factors or []:
            self.add(factor)

    def add(self, factor: LinearInequality) -> None:
        if not isinstance(factor, LinearInequality):
            raise TypeMismatchError(f"Expected LinearInequality, got {type(factor).__name__}")
        self._factors.append(factor)

    def __len__(self) -> int:
        return len(self._factors)

    def __iter__(self) -> Iterator[LinearInequality]:
        return iter(self._factors)

    def __getitem__(self, i: int) -> LinearInequality:
        return self._factors[i]

    def keys(self) -> List[Key]:
        return sorted({key for factor in self._factors for key in factor.keys()})

    def dual_keys(self) -> List[Key]:
        return [factor.dual_key() for factor in self._factors]

    def is_feasible(self, delta: VectorValues, tol: float = 1e-9) -> bool:
        return all(factor.is_satisfied(delta, tol) for factor in self._factors)

    def active_set(self, delta: VectorValues, tol: float = 1e-9) -> List[LinearInequality]:
        return [factor for factor in self._factors if factor.is_active(delta, tol)]

"""
Dense matrix and vector container for small constraint systems.

Storage is a flat, row-major ``numpy`` array so that the shape can change in
place (``transpose``, ``multiply_left``) while the object identity is kept.
All arithmetic mutates the receiver and returns it for chaining; any operation
that leaves a NaN or infinity behind raises :class:`NumericalBlowup`.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np

from .logging_utils import get_logger

logger = get_logger("matrix")


# =============================================================================
# CONFIGURATION AND ERRORS
# =============================================================================


class NumericalConfig:
    """Tolerances for the dense linear algebra layer."""

    # Smallest magnitude accepted as a pivot during Gauss-Jordan elimination
    PIVOT_TOLERANCE = 2 * float(np.finfo(float).eps)


class NumericalBlowup(ArithmeticError):
    """A matrix operation produced a non-finite entry."""

    def __init__(self, operation: str, shape: Optional[Tuple[int, int]] = None):
        where = f" on a {shape[0]}x{shape[1]} matrix" if shape is not None else ""
        super().__init__(f"Non-finite value produced by {operation}{where}")
        self.operation = operation
        self.shape = shape


class DimensionMismatch(ValueError):
    """Two matrices have incompatible shapes for the requested operation."""


# =============================================================================
# MATRIX
# =============================================================================


class Matrix:
    """Row-major dense matrix; a ``Vector`` is a matrix with one column."""

    def __init__(self, data: Sequence[float], rows: int, cols: int):
        values = np.array(data, dtype=float).reshape(-1)
        if rows < 0 or cols < 0 or values.size != rows * cols:
            raise DimensionMismatch(f"{values.size} values cannot fill a {rows}x{cols} matrix")
        self.data = values
        self.rows = rows
        self.cols = cols
        self._check_finite("construction")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_array(cls, elements: Sequence[Sequence[float]]) -> "Matrix":
        """Build a matrix from a list of equally long rows."""
        rows = len(elements)
        if rows == 0:
            raise ValueError("Matrix.from_array needs at least one row")
        cols = len(elements[0])
        for row in elements:
            if len(row) != cols:
                raise DimensionMismatch(f"Ragged rows: expected {cols} columns, got {len(row)}")
        return cls([value for row in elements for value in row], rows, cols)

    @classmethod
    def from_vector(cls, elements: Sequence[float]) -> "Matrix":
        """Build a column vector."""
        return cls(elements, len(elements), 1)

    @classmethod
    def from_diagonal(cls, elements: Sequence[float]) -> "Matrix":
        """Build a square matrix with ``elements`` on the diagonal."""
        n = len(elements)
        return cls(np.diag(np.asarray(elements, dtype=float)), n, n)

    @classmethod
    def empty(cls, rows: int, cols: int = 1) -> "Matrix":
        """Build a zero matrix (a zero column vector by default)."""
        return cls(np.zeros(rows * cols), rows, cols)

    @classmethod
    def identity(cls, n: int) -> "Matrix":
        return cls(np.eye(n), n, n)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.cols

    @property
    def is_vector(self) -> bool:
        return self.cols == 1

    def _as_2d(self) -> np.ndarray:
        return self.data.reshape(self.rows, self.cols)

    def _check_finite(self, operation: str) -> None:
        if not np.all(np.isfinite(self.data)):
            logger.error("Numerical blowup in %s (%dx%d)", operation, self.rows, self.cols)
            raise NumericalBlowup(operation, self.shape)

    def _require_same_shape(self, other: "Matrix", operation: str) -> None:
        if self.shape != other.shape:
            raise DimensionMismatch(f"Cannot {operation} a {other.rows}x{other.cols} matrix and a {self.rows}x{self.cols} matrix")

    # ------------------------------------------------------------------
    # Element-wise arithmetic (in place)
    # ------------------------------------------------------------------

    def add(self, other: "Matrix") -> "Matrix":
        self._require_same_shape(other, "add")
        with np.errstate(over="ignore", invalid="ignore"):
            self.data += other.data
        self._check_finite("add")
        return self

    def subtract(self, other: "Matrix") -> "Matrix":
        self._require_same_shape(other, "subtract")
        with np.errstate(over="ignore", invalid="ignore"):
            self.data -= other.data
        self._check_finite("subtract")
        return self

    def negate(self) -> "Matrix":
        np.negative(self.data, out=self.data)
        self._check_finite("negate")
        return self

    def multiply(self, k: float) -> "Matrix":
        """Scale every entry by ``k``."""
        with np.errstate(over="ignore", invalid="ignore"):
            self.data *= k
        self._check_finite("multiply")
        return self

    def divide(self, k: float) -> "Matrix":
        """Divide every entry by ``k``; dividing by zero is a numerical blowup."""
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            self.data /= float(k)
        self._check_finite("divide")
        return self

    # ------------------------------------------------------------------
    # Products and shape changes
    # ------------------------------------------------------------------

    def multiply_left(self, other: "Matrix") -> "Matrix":
        """Replace this matrix by ``other @ self``."""
        if other.cols != self.rows:
            raise DimensionMismatch(f"Cannot left-multiply a {self.rows}x{self.cols} matrix by a {other.rows}x{other.cols} matrix")
        with np.errstate(over="ignore", invalid="ignore"):
            product = other._as_2d() @ self._as_2d()
        self.data = product.reshape(-1)
        self.rows = other.rows
        self._check_finite("multiply_left")
        return self

    def transpose(self) -> "Matrix":
        self.data = self._as_2d().T.copy().reshape(-1)
        self.rows, self.cols = self.cols, self.rows
        return self

    # ------------------------------------------------------------------
    # Linear systems
    # ------------------------------------------------------------------

    def rref(self, epsilon: Optional[float] = None, pivot_columns: Optional[int] = None) -> List[int]:
        """
        Reduce this matrix to reduced row echelon form in place.

        A candidate pivot smaller than ``epsilon`` is replaced by the first row
        below it that has a usable entry in the same column. Columns without a
        usable pivot are skipped, so rank-deficient input is reduced as far as
        possible instead of failing.

        Args:
            epsilon: Pivot threshold, defaults to ``NumericalConfig.PIVOT_TOLERANCE``
            pivot_columns: Only search the first ``pivot_columns`` columns for pivots

        Returns:
            The column index of each pivot, in row order
        """
        eps = NumericalConfig.PIVOT_TOLERANCE if epsilon is None else epsilon
        limit = self.cols if pivot_columns is None else min(pivot_columns, self.cols)
        operating = self._as_2d().copy()

        pivots: List[int] = []
        row = 0
        for col in range(limit):
            if row >= self.rows:
                break

            usable = np.flatnonzero(np.abs(operating[row:, col]) >= eps)
            if usable.size == 0:
                logger.debug("No usable pivot in column %d, skipping", col)
                continue

            swap = row + int(usable[0])
            if swap != row:
                operating[[row, swap]] = operating[[swap, row]]

            # Normalize the pivot row, then clear the column everywhere else
            operating[row] /= operating[row, col]
            for other in range(self.rows):
                if other == row:
                    continue
                k = operating[other, col]
                if k != 0.0:
                    operating[other] -= k * operating[row]

            pivots.append(col)
            row += 1

        self.data = operating.reshape(-1)
        self._check_finite("rref")
        return pivots

    def solve(self, b: "Matrix", epsilon: Optional[float] = None) -> "Matrix":
        """
        Solve ``self @ x = b`` by Gauss-Jordan elimination of ``[self | b]``.

        Unknowns whose column has no usable pivot are returned as zero. This is
        a best-effort answer for singular or redundant systems, not an exact one.
        The receiver is left untouched.
        """
        if b.cols != 1 or b.rows != self.rows:
            raise DimensionMismatch(f"Right-hand side must be a {self.rows}x1 vector, got {b.rows}x{b.cols}")

        augmented = Matrix(np.hstack([self._as_2d(), b._as_2d()]), self.rows, self.cols + 1)
        pivots = augmented.rref(epsilon, pivot_columns=self.cols)
        if len(pivots) < self.cols:
            logger.debug("Rank-deficient system: %d pivots for %d unknowns", len(pivots), self.cols)

        reduced = augmented._as_2d()
        solution = np.zeros(self.cols)
        for row, col in enumerate(pivots):
            solution[col] = reduced[row, -1]
        return Matrix.from_vector(solution)

    # ------------------------------------------------------------------
    # Copy and access
    # ------------------------------------------------------------------

    def clone(self) -> "Matrix":
        return Matrix(self.data, self.rows, self.cols)

    def copy(self, other: "Matrix") -> "Matrix":
        """Overwrite this matrix with the shape and contents of ``other``."""
        self.data = other.data.copy()
        self.rows = other.rows
        self.cols = other.cols
        return self

    def at(self, row: int, col: int = 0) -> float:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexError(f"({row}, {col}) is outside a {self.rows}x{self.cols} matrix")
        return float(self.data[row * self.cols + col])

    def clear(self) -> "Matrix":
        self.data.fill(0.0)
        return self

    def to_list(self) -> List[List[float]]:
        return self._as_2d().tolist()

    def display(self) -> str:
        """Return a readable dump, one matrix row per line."""
        if self.cols == 1:
            kind = "Vector"
        elif self.rows == 1:
            kind = "Row Vector"
        else:
            kind = "Matrix"
        lines = [f"A {self.rows}x{self.cols} {kind}"]
        lines.extend(" ".join(repr(float(v)) for v in row) for row in self._as_2d())
        return "\n".join(lines) + "\n"

    def __repr__(self) -> str:
        return f"Matrix(rows={self.rows}, cols={self.cols}, data={self.data.tolist()})"


Vector = Matrix

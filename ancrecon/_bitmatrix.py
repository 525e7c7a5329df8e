"""
_bitmatrix.py
=============
Square bit matrix packed into a flat numpy uint8 buffer.

Bit (i, j) lives at flat position k = i * N + j, byte k >> 3, bit k & 7
(little-endian within a byte).  Memory use is ceil(N*N / 8) bytes, which
keeps the per-leaf evidence matrices affordable for references with tens of
thousands of elements.

After ``freeze()`` the buffer is read-only and column queries are cached;
the likelihood recursion asks for the same columns many times.
"""

from typing import List

import numpy as np

from ancrecon._errors import ConsistencyError


class BitMatrix:
    """
    Packed N x N boolean matrix.

    Parameters
    ----------
    n : int
        Side length N.
    """

    def __init__(self, n: int) -> None:
        if n < 1:
            raise ConsistencyError(f"matrix size must be positive, got {n}")
        self.n = int(n)
        self._bits = np.zeros((self.n * self.n + 7) // 8, dtype=np.uint8)
        self._frozen = False
        self._columns = {}

    def __repr__(self) -> str:
        return f"BitMatrix(n={self.n}, set={self.count()}, frozen={self._frozen})"

    @property
    def nbytes(self) -> int:
        return int(self._bits.nbytes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _offset(self, i: int, j: int) -> int:
        if not (0 <= i < self.n and 0 <= j < self.n):
            raise ConsistencyError(
                f"bit ({i}, {j}) outside the matrix (N={self.n})"
            )
        return i * self.n + j

    def get(self, i: int, j: int) -> bool:
        k = self._offset(i, j)
        return bool((self._bits[k >> 3] >> (k & 7)) & 1)

    def __getitem__(self, ij) -> bool:
        return self.get(*ij)

    def set(self, i: int, j: int) -> None:
        if self._frozen:
            raise ConsistencyError("cannot modify a frozen BitMatrix")
        k = self._offset(i, j)
        self._bits[k >> 3] |= np.uint8(1 << (k & 7))
        self._columns.pop(j, None)

    def column(self, j: int) -> List[int]:
        """Row indices i with bit (i, j) set, ascending."""
        if j in self._columns:
            return self._columns[j]
        self._offset(0, j)
        k = np.arange(self.n, dtype=np.int64) * self.n + j
        hits = (self._bits[k >> 3] >> (k & 7).astype(np.uint8)) & 1
        rows = [int(i) for i in np.flatnonzero(hits)]
        if self._frozen:
            self._columns[j] = rows
        return rows

    def row(self, i: int) -> List[int]:
        """Column indices j with bit (i, j) set, ascending."""
        self._offset(i, 0)
        k = np.arange(self.n, dtype=np.int64) + i * self.n
        hits = (self._bits[k >> 3] >> (k & 7).astype(np.uint8)) & 1
        return [int(j) for j in np.flatnonzero(hits)]

    def pairs(self):
        """Yield every set (i, j) in row-major order."""
        for i in range(self.n):
            for j in self.row(i):
                yield i, j

    def count(self) -> int:
        """Number of set bits."""
        return int(np.unpackbits(self._bits).sum())

    def freeze(self) -> "BitMatrix":
        """Make the matrix read-only and enable column caching."""
        self._bits.setflags(write=False)
        self._frozen = True
        return self

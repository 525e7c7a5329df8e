"""
_index.py
=========
Canonical index space for the adjacency matrices.

With T elements in the reference genome every element end gets one matrix
index:

  0          Lo sentinel (chromosome start)
  1 .. T     element heads (+e)
  T+1 .. 2T  element tails (-e)
  2T+1       Hi sentinel (chromosome end), called Z below

so N = 2T + 2.  An adjacency (x, y) between two signed elements is stored at
row fold(x), column fold(y); its reverse-complement encoding (-y, -x) lands
at (mirror(fold(y)), mirror(fold(x))) after pair folding.
"""

from typing import Tuple

from ancrecon._errors import ConsistencyError


class IndexSpace:
    """
    Mapping between signed element ids and matrix indices.

    Parameters
    ----------
    n_elements : int
        T, the number of elements in the reference genome.
    """

    def __init__(self, n_elements: int) -> None:
        if n_elements < 1:
            raise ConsistencyError(
                f"reference genome must contain at least one element, got {n_elements}"
            )
        self.T = int(n_elements)
        self.LO = 0
        self.HI = 2 * self.T + 1
        self.N = 2 * self.T + 2

    @classmethod
    def from_genome(cls, reference) -> "IndexSpace":
        """
        Size the index space from the reference species' genome.

        *reference* is a LeafGenome, or None when the reference has no
        genome loaded (raises ConsistencyError).
        """
        if reference is None:
            raise ConsistencyError("reference species has no genome")
        return cls(reference.n_elements)

    def __repr__(self) -> str:
        return f"IndexSpace(T={self.T}, N={self.N})"

    # ------------------------------------------------------------------ #

    def fold(self, e: int) -> int:
        """Signed element id -> matrix index (0 stays Lo)."""
        if e > self.T or e < -self.T:
            raise ConsistencyError(
                f"element {e} outside the index space (T={self.T})"
            )
        if e >= 0:
            return e
        return -e + self.T

    def unfold(self, i: int) -> int:
        """Matrix index -> signed element id; both sentinels map to 0."""
        self._check(i)
        if i == self.HI:
            return 0
        if i <= self.T:
            return i
        return -(i - self.T)

    def mirror(self, i: int) -> int:
        """Lo <-> Hi, head <-> tail.  An involution on 0..Z."""
        self._check(i)
        if i == self.LO:
            return self.HI
        if i == self.HI:
            return self.LO
        if i <= self.T:
            return i + self.T
        return i - self.T

    def fold_pair(self, x: int, y: int) -> Tuple[int, int]:
        """
        Fold a signed adjacency (x, y) into matrix coordinates.

        Negative components land on tails (fold(-e) == mirror(fold(e))) and
        a second component that lands on Lo becomes Hi.  This is how the
        sentinel ``0`` reads as Lo in the first position and Hi in the
        second.
        """
        i = self.fold(x)
        j = self.fold(y)
        if j == self.LO:
            j = self.HI
        return i, j

    def is_sentinel(self, i: int) -> bool:
        return i == self.LO or i == self.HI

    def _check(self, i: int) -> None:
        if i < 0 or i >= self.N:
            raise ConsistencyError(f"index {i} outside the matrix (N={self.N})")

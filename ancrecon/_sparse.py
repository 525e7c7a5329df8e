"""
_sparse.py
==========
Sparse likelihood / posterior tables.

A table is a dict-of-dicts keyed by an anchor index: predecessor tables are
anchored on the column (second index j), successor tables on the row (first
index i).  Missing entries read as 0.0.  Insertion order is preserved, so
iteration is deterministic.
"""

from typing import Dict, Iterator, Tuple


class SparseTable:
    """
    Mapping (i, j) -> float with per-anchor access.

    Parameters
    ----------
    by_column : bool
        If True the anchor is j (predecessor tables), otherwise i.
    """

    def __init__(self, by_column: bool) -> None:
        self.by_column = by_column
        self._lines: Dict[int, Dict[int, float]] = {}

    def _key(self, i: int, j: int) -> Tuple[int, int]:
        return (j, i) if self.by_column else (i, j)

    def get(self, i: int, j: int) -> float:
        a, o = self._key(i, j)
        line = self._lines.get(a)
        if line is None:
            return 0.0
        return line.get(o, 0.0)

    def set(self, i: int, j: int, value: float) -> None:
        a, o = self._key(i, j)
        self._lines.setdefault(a, {})[o] = float(value)

    def __contains__(self, ij) -> bool:
        a, o = self._key(*ij)
        return a in self._lines and o in self._lines[a]

    def __len__(self) -> int:
        return sum(len(line) for line in self._lines.values())

    def line(self, anchor: int) -> Dict[int, float]:
        """Entries of one anchor as {other index: value}; empty if none."""
        return self._lines.get(anchor, {})

    def total(self, anchor: int) -> float:
        """Sum of one anchor's entries."""
        return sum(self.line(anchor).values())

    def items(self) -> Iterator[Tuple[int, int, float]]:
        """Yield (i, j, value) in anchor insertion order."""
        for a, line in self._lines.items():
            for o, v in line.items():
                if self.by_column:
                    yield o, a, v
                else:
                    yield a, o, v

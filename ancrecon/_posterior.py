"""
_posterior.py
=============
Posterior adjacency table I/O and refinement into assembler scores.

Posterior file
--------------
  #3
  0 1	9.999e-01
  1 2	9.871e-01
  ...

The header carries T, the number of reference elements.  Each record is a
signed adjacency ``id1 id2`` (0 = sentinel), a tab, and the posterior
probability formatted ``%e``.

Refined score file
------------------
Each adjacency and its reverse complement describe the same ancestral
join.  ``refine_probabilities`` keeps one canonical orientation per join
(|id1| <= |id2|; otherwise (-id2, -id1)) and writes ``id1<TAB>id2<TAB>prob``
sorted by (|id1|, id1, |id2|, id2).
"""

import logging
import math
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ancrecon._errors import ParseError
from ancrecon._utils import canonical_adjacency


logger = logging.getLogger(__name__)


class PosteriorTable:
    """
    Ordered mapping (id1, id2) -> posterior probability over signed ids.

    Parameters
    ----------
    n_elements : int or None
        T, written as the file header.
    """

    def __init__(self, n_elements: Optional[int] = None) -> None:
        self.n_elements = n_elements
        self._entries: Dict[Tuple[int, int], float] = {}

    def add(self, id1: int, id2: int, prob: float) -> None:
        self._entries[(id1, id2)] = float(prob)

    def get(self, id1: int, id2: int, default: float = 0.0) -> float:
        return self._entries.get((id1, id2), default)

    def __contains__(self, pair) -> bool:
        return tuple(pair) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Tuple[int, int, float]]:
        for (id1, id2), p in self._entries.items():
            yield id1, id2, p

    def values(self) -> List[float]:
        return list(self._entries.values())

    # ------------------------------------------------------------------ #

    def to_lines(self) -> List[str]:
        lines = [f"#{self.n_elements if self.n_elements is not None else 0}"]
        for id1, id2, p in self:
            lines.append("%d %d\t%e" % (id1, id2, p))
        return lines

    def write(self, path: str) -> None:
        with open(path, "w") as fh:
            for line in self.to_lines():
                fh.write(line + "\n")
        logger.info(f"Wrote {len(self)} adjacency probabilities to {path}")

    @classmethod
    def parse(cls, lines: Iterable[str]) -> "PosteriorTable":
        table = cls()
        for lineno, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line:
                continue
            if line.startswith("#"):
                if table.n_elements is None and len(table) == 0:
                    try:
                        table.n_elements = int(line[1:].strip())
                    except ValueError:
                        raise ParseError(
                            "bad element count header", line=lineno, text=line
                        ) from None
                continue
            fields = line.split()
            if len(fields) < 3:
                raise ParseError("bad probability record", line=lineno, text=line)
            try:
                table.add(int(fields[0]), int(fields[1]), float(fields[2]))
            except ValueError:
                raise ParseError("bad probability record", line=lineno, text=line) from None
        return table

    @classmethod
    def read(cls, path: str) -> "PosteriorTable":
        with open(path) as fh:
            return cls.parse(fh)


# ============================================================================ #
# Refinement
# ============================================================================ #


def refine_probabilities(
    table: Iterable[Tuple[int, int, float]], rel_tol: float = 1e-9
) -> List[Tuple[int, int, float]]:
    """
    Collapse each adjacency and its reverse complement onto one canonical
    record.

    Parameters
    ----------
    table : iterable of (id1, id2, prob)
        A PosteriorTable or any sequence of signed triples.
    rel_tol : float, default 1e-9
        Duplicates whose values differ by more than this relative tolerance
        are reported; the first value is kept.

    Returns
    -------
    list of (id1, id2, prob)
        Sorted by (|id1|, id1, |id2|, id2).

    Examples
    --------
    >>> refine_probabilities([(2, 1, 0.5), (-1, -2, 0.5), (0, 3, 1.0)])
    [(0, 3, 1.0), (-1, -2, 0.5)]
    """
    refined: Dict[Tuple[int, int], float] = {}
    n_conflicts = 0
    for id1, id2, p in table:
        key = canonical_adjacency(id1, id2)
        if key in refined:
            if not math.isclose(refined[key], p, rel_tol=rel_tol):
                n_conflicts += 1
                logger.warning(
                    f"Inconsistent probabilities for adjacency {key[0]} {key[1]}: "
                    f"keeping {refined[key]:e}, ignoring {p:e}"
                )
            continue
        refined[key] = p

    if n_conflicts:
        logger.warning(f"{n_conflicts} adjacency probability conflict(s) during refinement")

    order = sorted(refined, key=lambda k: (abs(k[0]), k[0], abs(k[1]), k[1]))
    return [(a, b, refined[(a, b)]) for a, b in order]


def write_scores(path: str, scores: Iterable[Tuple[int, int, float]]) -> int:
    """Write ``id1<TAB>id2<TAB>prob`` records; returns the record count."""
    n = 0
    with open(path, "w") as fh:
        for id1, id2, p in scores:
            fh.write("%d\t%d\t%e\n" % (id1, id2, p))
            n += 1
    logger.info(f"Wrote {n} refined adjacency scores to {path}")
    return n

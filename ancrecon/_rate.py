"""
_rate.py
========
Rate (alpha) estimation from breakpoint distances under the same
Jukes-Cantor-like adjacency model the likelihood engine uses.

For a species at tree distance t from the reference with b observed
breakpoints among n blocks, the expected fraction of conserved adjacencies
inverts to

    cmp   = 1 - (2n-1) * b / ((2n-2) * n)
    alpha = -ln(cmp) / ((2n-1) * t)

The estimate is the mean alpha over every species with b > 0, t > 0 and
cmp > 0.
"""

import logging
import math
from typing import Dict, Iterable, Mapping

from ancrecon._errors import ConsistencyError, ParseError
from ancrecon._tree import PhyloTree
from ancrecon import _logging


logger = logging.getLogger(__name__)

DEFAULT_RATE = 0.0001


def parse_breakpoint_distances(lines: Iterable[str]) -> Dict[str, float]:
    """``species distance`` per line; ``#`` lines and zero distances are skipped."""
    distances = {}
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        fields = line.split()
        try:
            d = float(fields[1])
        except (IndexError, ValueError):
            raise ParseError("bad breakpoint distance record", line=lineno, text=line) from None
        if d == 0:
            continue
        distances[fields[0]] = d
    return distances


def read_breakpoint_distances(path: str) -> Dict[str, float]:
    with open(path) as fh:
        return parse_breakpoint_distances(fh)


def estimate_rate(
    tree: PhyloTree,
    reference: str,
    distances: Mapping[str, float],
    n_blocks: int,
    default: float = DEFAULT_RATE,
) -> float:
    """
    Estimate the global rate from breakpoint distances to the reference.

    Parameters
    ----------
    tree : PhyloTree
        Tree with the original (unscaled) branch lengths.
    reference : str
        Name of the reference species.
    distances : mapping
        Species name -> breakpoint count relative to the reference.
    n_blocks : int
        Number of blocks n.
    default : float
        Returned when no species yields a usable estimate.

    Raises
    ------
    ConsistencyError
        If *n_blocks* < 2 or a species is not in the tree.
    """
    if n_blocks < 2:
        raise ConsistencyError(f"rate estimation needs at least 2 blocks, got {n_blocks}")
    n = float(n_blocks)

    alphas = []
    for species in sorted(distances):
        b = distances[species]
        if b <= 0:
            continue
        try:
            t = tree.branch_distance(species, reference)
        except KeyError as exc:
            raise ConsistencyError(str(exc)) from None
        cmp = 1.0 - (2 * n - 1) * b / ((2 * n - 2) * n)
        if cmp <= 0.0 or t <= 0.0:
            logger.debug(f"Skipping {species}: cmp={cmp:g}, t={t:g}")
            continue
        alpha = -math.log(cmp) / (2 * n - 1) / t
        logger.debug(f"{species}: b={b:g} t={t:g} alpha={alpha:g}")
        alphas.append(alpha)

    if alphas:
        rate = sum(alphas) / len(alphas)
    else:
        rate = default
    _logging.log_rate_estimate(rate, len(alphas), len(distances), not alphas)
    return rate

"""
_logging.py
===========
Logging functions for ancrecon.

All functions in this module have NO side effects except logging. They take
computed data as parameters and format/emit log messages.  The ``compute_*``
helpers derive the numbers that get logged and never log themselves.

This separation ensures:
- Logging can be easily disabled/mocked in tests
- Computation is separate from presentation
"""

import logging
from collections import Counter
from typing import Dict, List, Sequence

import numpy as np


logger = logging.getLogger(__name__)


# ============================================================================ #
# Tree
# ============================================================================ #


def log_multifurcation_warning(n_resolved: int) -> None:
    """Emit one consolidated warning for all resolved multifurcations."""
    if n_resolved == 1:
        logger.warning(
            "1 multifurcation split was resolved in the input tree. "
            "A zero-length branch was added to enforce bifurcation."
        )
    elif n_resolved > 1:
        logger.warning(
            "%d multifurcation splits were resolved in the input tree. "
            "Zero-length branches were added to enforce bifurcation.",
            n_resolved,
        )


def log_tree_summary(
    n_nodes: int, n_leaves: int, outgroups: List[str], ancestor: str, rate: float
) -> None:
    """
    Log tree shape and the ancestor / outgroup split.

    Parameters
    ----------
    n_nodes : int
        Total node count (after rerooting, if done).
    n_leaves : int
        Number of leaves.
    outgroups : List[str]
        Names of outgroup leaves.
    ancestor : str
        Name of the ancestral node.
    rate : float
        Rate applied to branch lengths.
    """
    logger.info(
        f"Tree: {n_nodes} nodes, {n_leaves} leaves, ancestor '{ancestor}', "
        f"rate {rate:g}"
    )
    if outgroups:
        logger.info(f"  Outgroups ({len(outgroups)}): {', '.join(outgroups)}")
    else:
        logger.info("  No outgroups")


# ============================================================================ #
# Inference
# ============================================================================ #


def log_undefined_normalization(columns: Sequence[int], rows: Sequence[int], space) -> None:
    """
    Warn about predecessor columns / successor rows whose likelihoods sum
    to zero and were therefore left without posteriors.
    """
    if columns:
        shown = ", ".join(str(space.unfold(j)) for j in columns[:10])
        more = "" if len(columns) <= 10 else f" (+{len(columns) - 10} more)"
        logger.warning(
            f"{len(columns)} predecessor column(s) have zero total likelihood "
            f"and were left undefined: {shown}{more}"
        )
    if rows:
        shown = ", ".join(str(space.unfold(i)) for i in rows[:10])
        more = "" if len(rows) <= 10 else f" (+{len(rows) - 10} more)"
        logger.warning(
            f"{len(rows)} successor row(s) have zero total likelihood "
            f"and were left undefined: {shown}{more}"
        )


def compute_posterior_stats(values: Sequence[float]) -> Dict[str, float]:
    """
    Summary statistics of posterior probabilities.

    Returns
    -------
    dict
        Keys 'min', 'max', 'mean' and 'n_certain' (values >= 0.999).  All
        zero for an empty input.
    """
    if len(values) == 0:
        return {"min": 0.0, "max": 0.0, "mean": 0.0, "n_certain": 0}
    arr = np.asarray(values, dtype=np.float64)
    return {
        "min": float(arr.min()),
        "max": float(arr.max()),
        "mean": float(arr.mean()),
        "n_certain": int((arr >= 0.999).sum()),
    }


def log_posterior_summary(n_pairs: int, stats: Dict[str, float]) -> None:
    logger.info(
        f"Posterior probabilities for {n_pairs} adjacencies: "
        f"min {stats['min']:.4g}, mean {stats['mean']:.4g}, max {stats['max']:.4g}"
    )
    logger.info(f"  {stats['n_certain']} adjacencies with posterior >= 0.999")


# ============================================================================ #
# Assembly
# ============================================================================ #


def compute_event_counts(events) -> Dict[str, int]:
    """Count assembler decisions by outcome name."""
    return dict(Counter(result.value for _, result in events))


def log_assembly_summary(n_chains: int, counts: Dict[str, int]) -> None:
    logger.info(f"Assembly produced {n_chains} chain(s)")
    for name in sorted(counts):
        logger.info(f"  {name}: {counts[name]}")


# ============================================================================ #
# Rate estimation
# ============================================================================ #


def log_rate_estimate(rate: float, n_used: int, n_species: int, default: bool) -> None:
    if default:
        logger.warning(
            f"No species gave a usable breakpoint distance "
            f"({n_species} considered); using default rate {rate:g}"
        )
    else:
        logger.info(
            f"Estimated rate {rate:g} from {n_used} of {n_species} species"
        )

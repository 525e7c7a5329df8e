"""
_compat.py
==========
Global compatibility matrix and per-leaf adjacency evidence.

The global matrix marks every adjacency (i, j) that is observed in some
ingroup genome or forced by an outgroup join hint; only those pairs are
ever evaluated by the likelihood engine.  Each leaf additionally carries
its own bit matrix of observed adjacencies and an end-membership array
``there`` recording which element ends the leaf has information about.

Both encodings of each adjacency are marked: (x, y) and its
reverse complement (-y, -x).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ancrecon._bitmatrix import BitMatrix
from ancrecon._errors import ConsistencyError
from ancrecon._genome import LeafGenome
from ancrecon._index import IndexSpace
from ancrecon._tree import PhyloTree


logger = logging.getLogger(__name__)


@dataclass
class LeafEvidence:
    """Observed adjacencies of one leaf."""

    node: int
    name: str
    outgroup: bool
    adjacency: BitMatrix
    there: np.ndarray
    n_marked: int = 0

    def covers(self, j: int) -> bool:
        return bool(self.there[j])


@dataclass
class CompatibilityData:
    """
    Everything the likelihood engine needs from the inputs.

    Attributes
    ----------
    space : IndexSpace
    compat : BitMatrix
        Global (frozen) compatibility matrix.
    evidence : dict[int, LeafEvidence]
        Per-leaf evidence keyed by tree node ID.
    """

    space: IndexSpace
    compat: BitMatrix
    evidence: Dict[int, LeafEvidence] = field(default_factory=dict)

    def is_compatible(self, i: int, j: int) -> bool:
        return self.compat.get(i, j)


def _mark(space: IndexSpace, compat: BitMatrix, ev: LeafEvidence, x: int, y: int) -> None:
    """Mark adjacency (x, y) and its reverse complement for one leaf."""
    i, j = space.fold_pair(x, y)
    ri, rj = space.fold_pair(-y, -x)
    for a, b in ((i, j), (ri, rj)):
        ev.adjacency.set(a, b)
        compat.set(a, b)
    ev.n_marked += 1

    if i == space.LO:
        ev.there[j] = True
    elif j == space.HI:
        ev.there[space.mirror(i)] = True
    else:
        ev.there[j] = True
        ev.there[space.mirror(i)] = True


def build_compatibility(
    tree: PhyloTree,
    genomes: Mapping[str, LeafGenome],
    space: IndexSpace,
    joins: Optional[Mapping[str, Sequence[Tuple[int, int]]]] = None,
    outgroup_joins: bool = True,
) -> CompatibilityData:
    """
    Mark the global compatibility matrix and build per-leaf evidence.

    Parameters
    ----------
    tree : PhyloTree
        Tree with outgroup flags already computed.
    genomes : mapping
        Species name -> LeafGenome.  Every ingroup leaf must be present,
        and so must every outgroup when *outgroup_joins* is False.
    space : IndexSpace
        Index space sized from the reference genome.
    joins : mapping, optional
        Outgroup name -> list of (x, y) join hints.  Required for every
        outgroup when *outgroup_joins* is True.
    outgroup_joins : bool, default True
        Read outgroup adjacencies from join hints rather than genomes.

    Returns
    -------
    CompatibilityData
        With the global matrix frozen.

    Raises
    ------
    ConsistencyError
        A leaf without a genome (or join hints), or an element outside the
        index space.
    GenomeFormatError
        A leaf genome listing the same element twice.
    """
    joins = joins or {}
    compat = BitMatrix(space.N)
    data = CompatibilityData(space=space, compat=compat)

    # Ingroups first, then outgroups, each in preorder.
    leaves = tree.leaves()
    order: List[int] = [n for n in leaves if not tree.is_outgroup[n]]
    order += [n for n in leaves if tree.is_outgroup[n]]

    for node in order:
        name = tree.names[node]
        outgroup = bool(tree.is_outgroup[node])
        ev = LeafEvidence(
            node=node,
            name=name,
            outgroup=outgroup,
            adjacency=BitMatrix(space.N),
            there=np.zeros(space.N, dtype=bool),
        )

        if outgroup and outgroup_joins:
            if name not in joins:
                raise ConsistencyError(f"no join hints for outgroup '{name}'")
            for x, y in joins[name]:
                if x == 0 and y == 0:
                    continue
                _mark(space, compat, ev, x, y)
        else:
            genome = genomes.get(name)
            if genome is None:
                raise ConsistencyError(f"no genome for leaf '{name}'")
            genome.validate()
            for x, y in genome.adjacencies():
                _mark(space, compat, ev, x, y)

        ev.adjacency.freeze()
        data.evidence[node] = ev
        logger.info(
            f"Initialized {name} ({'outgroup' if outgroup else 'ingroup'}): "
            f"{ev.n_marked} adjacencies, {int(ev.there.sum())} ends covered"
        )

    compat.freeze()
    return data

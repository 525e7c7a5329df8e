"""
_assembler.py
=============
Greedy assembly of scored block adjacencies into ancestral contiguous
fragments (APCFs).

Edges
-----
An adjacency score ``id1 id2 s`` between signed block ids becomes the
directed edge (|id1|, sgn id1) -> (|id2|, sgn id2) together with its
reverse (|id2|, -sgn id2) -> (|id1|, -sgn id1).  Block 0 is the
chromosome-end sentinel.

Every block has two ends, keyed ``+b`` (head) and ``-b`` (tail).  An edge
leaves bid1 through its source end and enters bid2 through its target end;
each end may be used by at most one chain.

Algorithm
---------
Candidate edges are taken in decreasing weight order (ties in the natural
(bid1, dir1, bid2, dir2) order).  Each edge is offered to the existing
chains in creation order and attached to the first chain whose front or
back it extends; a successful attachment is followed by one pass merging
that chain with any other chain sharing an open end.  An edge that would
close a cycle is discarded, and an edge no chain accepts starts a new
chain.  Only real blocks act as junctions: a chain ending at a sentinel is
closed at that end.
"""

import enum
import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple

from ancrecon._errors import GenomeFormatError
from ancrecon import _logging


logger = logging.getLogger(__name__)


class InsertResult(enum.Enum):
    ACCEPTED = "accepted"
    REJECTED_CYCLE = "rejected_cycle"
    REJECTED_END_IN_USE = "rejected_end_in_use"
    NO_MATCH = "no_match"


@dataclass
class Edge:
    """A directed join between two oriented blocks."""

    bid1: int
    dir1: int
    bid2: int
    dir2: int
    weight: float = 0.0
    score1: float = 0.0
    score2: float = 0.0

    @property
    def key(self) -> Tuple[int, int, int, int]:
        return self.bid1, self.dir1, self.bid2, self.dir2

    @property
    def source_end(self) -> int:
        return -self.bid1 if self.dir1 == 1 else self.bid1

    @property
    def target_end(self) -> int:
        return self.bid2 if self.dir2 == 1 else -self.bid2

    @property
    def signed(self) -> Tuple[int, int]:
        return self.bid1 * self.dir1, self.bid2 * self.dir2

    def reverse(self) -> "Edge":
        """Swap the two ends and flip both directions, in place."""
        self.bid1, self.bid2 = self.bid2, self.bid1
        self.dir1, self.dir2 = -self.dir2, -self.dir1
        return self

    def __str__(self) -> str:
        s1 = "+" if self.dir1 == 1 else "-"
        s2 = "+" if self.dir2 == 1 else "-"
        return f"{self.bid1} {s1}\t{self.bid2} {s2}\t{self.weight:.6f}"


class Chain:
    """An ordered run of edges; consecutive edges share a block."""

    def __init__(self, chain_id: int, edge: Edge) -> None:
        self.id = chain_id
        self.edges = deque([edge])

    @property
    def front(self) -> Edge:
        return self.edges[0]

    @property
    def back(self) -> Edge:
        return self.edges[-1]

    def __len__(self) -> int:
        return len(self.edges)

    def elements(self) -> List[int]:
        """Signed block ids along the chain, sentinels omitted."""
        ids = [e.bid1 * e.dir1 for e in self.edges]
        ids.append(self.back.bid2 * self.back.dir2)
        return [b for b in ids if b != 0]

    def __repr__(self) -> str:
        return f"Chain({self.id}, {self.elements()})"


# ============================================================================ #
# Result
# ============================================================================ #


class AssemblyResult:
    """
    Chains in creation order plus the per-edge decision log.

    Attributes
    ----------
    n_blocks : int
        Largest block id in the score table.
    chains : list[Chain]
    apcfs : list[list[int]]
        Signed block lists, one per chain, then any singletons added by
        ``fill_missing``.
    events : list[(Edge, InsertResult)]
    """

    def __init__(self, n_blocks: int, chains: List[Chain], events) -> None:
        self.n_blocks = n_blocks
        self.chains = chains
        self.events = events
        self.apcfs: List[List[int]] = [c.elements() for c in chains]

    def fill_missing(self, n_blocks: Optional[int] = None) -> int:
        """
        Append a singleton APCF for every block 1..n_blocks that appears in
        no APCF.  Returns the number of singletons added.  The block count
        in the APCF header grows to *n_blocks* if that is larger.
        """
        n = self.n_blocks if n_blocks is None else n_blocks
        used = {abs(b) for apcf in self.apcfs for b in apcf}
        missing = [b for b in range(1, n + 1) if b not in used]
        self.apcfs.extend([b] for b in missing)
        self.n_blocks = max(self.n_blocks, n)
        if missing:
            logger.info(f"Added {len(missing)} singleton APCF(s) for unused blocks")
        return len(missing)

    def contig_lines(self) -> List[str]:
        lines = [f">ANCESTOR\t{self.n_blocks}"]
        for k, apcf in enumerate(self.apcfs, start=1):
            lines.append(f"# APCF {k}")
            lines.append(" ".join(str(b) for b in apcf) + " $")
        return lines

    def join_lines(self) -> List[str]:
        lines = []
        for chain in self.chains:
            for e in chain.edges:
                id1, id2 = e.signed
                lines.append("%d\t%d\t%g" % (id1, id2, e.weight))
        return lines


def write_contigs(path: str, result: AssemblyResult) -> None:
    with open(path, "w") as fh:
        for line in result.contig_lines():
            fh.write(line + "\n")
    logger.info(f"Wrote {len(result.apcfs)} APCF(s) to {path}")


def write_joins(path: str, result: AssemblyResult) -> None:
    with open(path, "w") as fh:
        for line in result.join_lines():
            fh.write(line + "\n")


# ============================================================================ #
# Input
# ============================================================================ #


def parse_scores(lines: Iterable[str]) -> List[Tuple[int, int, float]]:
    """Parse ``id1 id2 score`` records; ``#`` and blank lines are skipped."""
    scores = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        fields = line.split()
        try:
            scores.append((int(fields[0]), int(fields[1]), float(fields[2])))
        except (IndexError, ValueError):
            raise GenomeFormatError("bad adjacency score record", line=lineno, text=line) from None
    return scores


def read_scores(path: str) -> List[Tuple[int, int, float]]:
    with open(path) as fh:
        return parse_scores(fh)


# ============================================================================ #
# Assembler
# ============================================================================ #


class ChainAssembler:
    """
    Greedy chain builder.

    Parameters
    ----------
    min_weight : float, default 0.0
        Edges weighing less than this are ignored.

    Examples
    --------
    >>> asm = ChainAssembler(min_weight=0.1)
    >>> asm.load([(1, 2, 0.9), (2, 3, 0.8)])
    >>> asm.run().apcfs
    [[1, 2, 3]]
    """

    def __init__(self, min_weight: float = 0.0) -> None:
        self.min_weight = float(min_weight)
        self.n_blocks = 0
        self._scores: Dict[Tuple[int, int, int, int], float] = {}
        self._chains: Dict[int, Chain] = {}
        self._next_id = 1
        self.used = set()
        self.events: List[Tuple[Edge, InsertResult]] = []

    # ------------------------------------------------------------------ #
    # Scores                                                               #
    # ------------------------------------------------------------------ #

    def add_score(self, id1: int, id2: int, score: float) -> None:
        b1, b2 = abs(id1), abs(id2)
        d1 = -1 if id1 < 0 else 1
        d2 = -1 if id2 < 0 else 1
        self._scores[(b1, d1, b2, d2)] = float(score)
        self._scores[(b2, -d2, b1, -d1)] = float(score)
        self.n_blocks = max(self.n_blocks, b1, b2)

    def load(self, scores: Iterable[Tuple[int, int, float]]) -> None:
        for id1, id2, score in scores:
            self.add_score(id1, id2, score)

    def candidate_edges(self) -> List[Edge]:
        """
        Positive-weight edges between distinct blocks with weight at least
        ``min_weight``, heaviest first; ties stay in natural order.
        """
        edges = [
            Edge(b1, d1, b2, d2, weight=w, score1=w)
            for (b1, d1, b2, d2), w in sorted(self._scores.items())
            if b1 != b2 and w > 0.0
        ]
        edges = [e for e in edges if e.weight >= self.min_weight]
        edges.sort(key=lambda e: -e.weight)
        return edges

    # ------------------------------------------------------------------ #
    # Used-end registry                                                    #
    # ------------------------------------------------------------------ #

    def _claim(self, end: int) -> None:
        if end != 0:
            self.used.add(end)

    def _claim_block(self, bid: int) -> None:
        self._claim(bid)
        self._claim(-bid)

    def end_in_use(self, edge: Edge) -> bool:
        if edge.bid1 != 0 and edge.source_end in self.used:
            return True
        if edge.bid2 != 0 and edge.target_end in self.used:
            return True
        return False

    # ------------------------------------------------------------------ #
    # Chains                                                               #
    # ------------------------------------------------------------------ #

    @property
    def chains(self) -> List[Chain]:
        return list(self._chains.values())

    def new_chain(self, edge: Edge) -> Chain:
        chain = Chain(self._next_id, edge)
        self._chains[chain.id] = chain
        self._next_id += 1
        if edge.bid1 != 0:
            self._claim(edge.source_end)
        if edge.bid2 != 0:
            self._claim(edge.target_end)
        return chain

    def insert(self, chain: Chain, e: Edge) -> InsertResult:
        """
        Try to extend *chain* with *e* at either end.

        The four cases, in order: e attaches before the front flipped, before
        the front as-is, after the back as-is, after the back flipped.
        """
        fe, be = chain.front, chain.back

        if fe.bid1 != 0 and fe.bid1 == e.bid1 and fe.dir1 != e.dir1:
            if be.bid2 != 0 and be.bid2 == e.bid2 and be.dir2 != e.dir2:
                return InsertResult.REJECTED_CYCLE
            e.reverse()
            chain.edges.appendleft(e)
            self._claim_block(fe.bid1)
            self._claim(e.source_end)
            return InsertResult.ACCEPTED

        if fe.bid1 != 0 and fe.bid1 == e.bid2 and fe.dir1 == e.dir2:
            if be.bid2 != 0 and be.bid2 == e.bid1 and be.dir2 == e.dir1:
                return InsertResult.REJECTED_CYCLE
            chain.edges.appendleft(e)
            self._claim_block(fe.bid1)
            self._claim(e.source_end)
            return InsertResult.ACCEPTED

        if be.bid2 != 0 and be.bid2 == e.bid1 and be.dir2 == e.dir1:
            if fe.bid1 != 0 and fe.bid1 == e.bid2 and fe.dir1 == e.dir2:
                return InsertResult.REJECTED_CYCLE
            chain.edges.append(e)
            self._claim_block(be.bid2)
            self._claim(e.target_end)
            return InsertResult.ACCEPTED

        if be.bid2 != 0 and be.bid2 == e.bid2 and be.dir2 != e.dir2:
            if fe.bid1 != 0 and fe.bid1 == e.bid1 and fe.dir1 != e.dir1:
                return InsertResult.REJECTED_CYCLE
            e.reverse()
            chain.edges.append(e)
            self._claim_block(be.bid2)
            self._claim(e.target_end)
            return InsertResult.ACCEPTED

        return InsertResult.NO_MATCH

    def merge(self, a: Chain, b: Chain) -> bool:
        """
        Join chain *b* onto chain *a* if they share an open end.

        The first case whose end test matches decides; the merge is skipped
        if it would leave both open ends on the same block.  On success *b*
        is removed.  Returns True if merged.
        """
        af, ab = a.front, a.back
        bf, bb = b.front, b.back

        def closes(x: int, y: int) -> bool:
            return x != 0 and y != 0 and x == y

        if af.bid1 != 0 and af.bid1 == bf.bid1 and af.dir1 != bf.dir1:
            if closes(ab.bid2, bb.bid2):
                return False
            for e in b.edges:
                a.edges.appendleft(replace(e).reverse())
        elif af.bid1 != 0 and af.bid1 == bb.bid2 and af.dir1 == bb.dir2:
            if closes(ab.bid2, bf.bid1):
                return False
            a.edges.extendleft(reversed(b.edges))
        elif ab.bid2 != 0 and ab.bid2 == bf.bid1 and ab.dir2 == bf.dir1:
            if closes(af.bid1, bb.bid2):
                return False
            a.edges.extend(b.edges)
        elif ab.bid2 != 0 and ab.bid2 == bb.bid2 and ab.dir2 != bb.dir2:
            if closes(af.bid1, bf.bid1):
                return False
            for e in reversed(b.edges):
                a.edges.append(replace(e).reverse())
        else:
            return False

        del self._chains[b.id]
        logger.debug(f"Merged chain {b.id} into chain {a.id}")
        return True

    def merge_pass(self, chain: Chain) -> int:
        """Merge every other chain that fits onto *chain*, in creation order."""
        n = 0
        for other in list(self._chains.values()):
            if other is chain or other.id not in self._chains:
                continue
            if self.merge(chain, other):
                n += 1
        return n

    def try_all_chains(self, edge: Edge) -> InsertResult:
        """
        Offer *edge* to every chain in creation order; start a new chain if
        none accepts it.  Returns ACCEPTED, REJECTED_CYCLE or NO_MATCH (a new
        chain was started).
        """
        for chain in list(self._chains.values()):
            result = self.insert(chain, edge)
            if result is InsertResult.ACCEPTED:
                self.merge_pass(chain)
                return result
            if result is InsertResult.REJECTED_CYCLE:
                return result
        self.new_chain(edge)
        return InsertResult.NO_MATCH

    def process(self, edge: Edge) -> InsertResult:
        original = replace(edge)
        if self.end_in_use(edge):
            result = InsertResult.REJECTED_END_IN_USE
        else:
            result = self.try_all_chains(edge)
        self.events.append((original, result))
        id1, id2 = original.signed
        logger.debug(f"Edge {id1} {id2} ({original.weight:g}): {result.value}")
        return result

    def run(self) -> AssemblyResult:
        """Process every candidate edge and return the chains."""
        edges = self.candidate_edges()
        logger.info(
            f"Assembling {len(edges)} candidate edges over "
            f"{self.n_blocks} blocks (minimum weight {self.min_weight:g})"
        )
        for edge in edges:
            self.process(edge)

        result = AssemblyResult(self.n_blocks, self.chains, list(self.events))
        _logging.log_assembly_summary(
            len(result.chains), _logging.compute_event_counts(result.events)
        )
        return result

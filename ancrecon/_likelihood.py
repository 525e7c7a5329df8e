"""
_likelihood.py
==============
Posterior probabilities of ancestral adjacencies.

Model
-----
Every element end j in the ancestor has exactly one predecessor i (an
element end or the Lo sentinel).  Along a branch of scaled length d the
predecessor is kept with probability

    P(i -> i) = 1/(2n-1) + (2n-2)/(2n-1) * exp(-(2n-1) d)

and replaced by any one specific other end with probability

    P(i -> s) = 1/(2n-1) - 1/(2n-1) * exp(-(2n-1) d)

where n = T is the number of reference elements.  Leaves either observe
adjacency (i, j) or not; a leaf with no information about end j is
neutral.  The likelihood of predecessor i for end j at the ancestor is
obtained by a pruning-style recursion over the tree, memoized per
(node, i, j).

Successor likelihoods are read off the predecessor table through the
reverse-complement symmetry (i, j) <-> (mirror(j), mirror(i)).  Both are
normalized (predecessor per column, successor per row) and the posterior
of (i, j) is their product.
"""

import logging
import math
from typing import Dict, List, Tuple

from ancrecon._compat import CompatibilityData
from ancrecon._errors import ConsistencyError
from ancrecon._posterior import PosteriorTable
from ancrecon._sparse import SparseTable
from ancrecon._tree import PhyloTree
from ancrecon import _logging


logger = logging.getLogger(__name__)


class InferenceContext:
    """
    Owns the caches and the four likelihood / posterior tables for one
    inference run.

    Parameters
    ----------
    tree : PhyloTree
        Tree whose ancestor is the node being reconstructed.  It is normally
        rerooted first so the ancestor is the structural root.
    data : CompatibilityData
        Global compatibility matrix and per-leaf evidence built from the
        same tree.

    Examples
    --------
    >>> ctx = InferenceContext(tree, data)
    >>> table = ctx.run()
    >>> table.probability(1, 2)
    0.97...
    """

    def __init__(self, tree: PhyloTree, data: CompatibilityData) -> None:
        self.tree = tree
        self.data = data
        self.space = data.space
        self.compat = data.compat

        n = float(self.space.T)
        self._k = 2.0 * n - 1.0
        self._same = (2.0 * n - 2.0) / self._k

        self._branch_cache: Dict[Tuple[int, int, int], float] = {}
        self._pre_cache: Dict[Tuple[int, int, int], float] = {}

        self.pred = SparseTable(by_column=True)
        self.succ = SparseTable(by_column=False)
        self.pred_post = SparseTable(by_column=True)
        self.succ_post = SparseTable(by_column=False)

        self.undefined_columns: List[int] = []
        self.undefined_rows: List[int] = []

    # ================================================================== #
    # Recursion                                                            #
    # ================================================================== #

    def branch_prob(self, node: int, i: int, j: int) -> float:
        """Probability that end *i* at the parent of *node* becomes *j* at *node*."""
        key = (node, i, j)
        val = self._branch_cache.get(key)
        if val is not None:
            return val

        d = self.tree.distalpha(node)
        if d < 0:
            raise ConsistencyError(
                f"negative scaled branch length {d} at node '{self.tree.names[node]}'"
            )
        decay = math.exp(-self._k * d)
        if i == j:
            val = 1.0 / self._k + self._same * decay
        else:
            val = 1.0 / self._k - decay / self._k

        self._branch_cache[key] = val
        return val

    def pre_likelihood(self, node: int, i: int, j: int) -> float:
        """
        Likelihood of the leaf data below *node* given that end *j* has
        predecessor *i* at *node*.
        """
        key = (node, i, j)
        val = self._pre_cache.get(key)
        if val is not None:
            return val

        if self.tree.is_leaf(node):
            ev = self.data.evidence.get(node)
            if ev is None or not ev.covers(j):
                val = 1.0
            else:
                val = 1.0 if ev.adjacency.get(i, j) else 0.0
        else:
            hi = self.space.HI
            states = [s for s in self.compat.column(j) if s < hi]
            val = 1.0
            for child in self.tree.children(node):
                total = 0.0
                for s in states:
                    total += self.branch_prob(child, i, s) * self.pre_likelihood(
                        child, s, j
                    )
                val *= total

        self._pre_cache[key] = val
        return val

    # ================================================================== #
    # Tables                                                               #
    # ================================================================== #

    def compute_predecessor(self) -> SparseTable:
        """pred(i, j) at the ancestor for every compatible (i, j), j non-sentinel."""
        anc = self.tree.ancestor
        hi = self.space.HI
        for j in range(1, hi):
            for i in self.compat.column(j):
                if i < hi:
                    self.pred.set(i, j, self.pre_likelihood(anc, i, j))
        logger.info(
            f"Predecessor likelihoods: {len(self.pred)} entries, "
            f"{len(self._pre_cache)} cached subtree likelihoods"
        )
        return self.pred

    def compute_successor(self) -> SparseTable:
        """Derive succ from pred through reverse-complement symmetry."""
        space = self.space
        lo, hi = space.LO, space.HI
        for j in range(1, hi):
            v = self.pred.get(lo, space.mirror(j))
            if v > 0:
                self.succ.set(j, hi, v)
        for j in range(1, hi):
            for i, v in self.pred.line(j).items():
                if v > 0:
                    self.succ.set(space.mirror(j), space.mirror(i), v)
        return self.succ

    def normalize(self) -> None:
        """
        Normalize pred per column and succ per row, then reconcile the
        sentinel entries: the successor Lo-row takes the predecessor values,
        after which the predecessor Hi-column takes the successor values.
        """
        lo, hi = self.space.LO, self.space.HI

        for j in range(1, hi):
            line = self.pred.line(j)
            total = self.pred.total(j)
            if total > 0:
                for i, v in line.items():
                    self.pred_post.set(i, j, v / total)
            elif line:
                self.undefined_columns.append(j)

        for i in range(1, hi):
            line = self.succ.line(i)
            total = self.succ.total(i)
            if total > 0:
                for j, v in line.items():
                    self.succ_post.set(i, j, v / total)
            elif line:
                self.undefined_rows.append(i)

        for i in range(1, hi):
            if self.compat.get(lo, i):
                self.succ_post.set(lo, i, self.pred_post.get(lo, i))
        for i in range(1, hi):
            if self.compat.get(i, hi):
                self.pred_post.set(i, hi, self.succ_post.get(i, hi))

        _logging.log_undefined_normalization(
            self.undefined_columns, self.undefined_rows, self.space
        )

    # ================================================================== #
    # Output                                                               #
    # ================================================================== #

    def probability(self, i: int, j: int) -> float:
        """
        Posterior of the compatible pair (i, j); raises ConsistencyError for
        an incompatible pair.
        """
        if not self.data.is_compatible(i, j):
            raise ConsistencyError(f"pair ({i}, {j}) is not a compatible adjacency")
        return self.pred_post.get(i, j) * self.succ_post.get(i, j)

    def posterior(self) -> PosteriorTable:
        """Posterior table over every compatible pair except sentinel x sentinel."""
        space = self.space
        table = PosteriorTable(space.T)
        for i, j in self.compat.pairs():
            if space.is_sentinel(i) and space.is_sentinel(j):
                continue
            table.add(space.unfold(i), space.unfold(j), self.probability(i, j))
        return table

    def run(self) -> PosteriorTable:
        """Predecessor, successor and normalization passes; returns the posteriors."""
        self.compute_predecessor()
        self.compute_successor()
        self.normalize()
        table = self.posterior()
        _logging.log_posterior_summary(
            len(table), _logging.compute_posterior_stats(table.values())
        )
        return table

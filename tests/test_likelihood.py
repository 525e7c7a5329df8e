"""
tests/test_likelihood.py
========================
Likelihood recursion, normalization and posterior tables.

Fixtures
--------
  star      (A:0.1,B:0.1,C:0.1)@;  every leaf carries [1 2 3]
            Every candidate adjacency is unopposed, so each posterior is
            exactly 1.

  mixed     ((A:0.1,B:0.2)@:0.05,C:0.3);  rerooted at the ancestor
            A [1 2 3 4]   B [1 -3 -2 4]   C [2 1 3 4]
            Conflicting orders give posteriors strictly inside (0, 1).
"""

import logging
import math
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from ancrecon._compat import build_compatibility
from ancrecon._errors import ConsistencyError
from ancrecon._genome import parse_genomes, read_genomes
from ancrecon._index import IndexSpace
from ancrecon._likelihood import InferenceContext
from ancrecon._pipeline import infer_adjacencies
from ancrecon._tree import PhyloTree, read_tree_file


MIXED_TREE = "((A:0.1,B:0.2)@:0.05,C:0.3);"
MIXED_GENOMES = [
    ">A 1", "1 2 3 4 $",
    ">B 1", "1 -3 -2 4 $",
    ">C 1", "2 1 3 4 $",
]


def make_context(tree_string, genome_lines, rate=1.0, reroot=True):
    tree = PhyloTree(tree_string, rate=rate)
    genomes = parse_genomes(genome_lines)
    space = IndexSpace.from_genome(next(iter(genomes.values())))
    if reroot:
        tree.reroot()
    data = build_compatibility(tree, genomes, space, outgroup_joins=False)
    return InferenceContext(tree, data)


@pytest.fixture(scope="module")
def star_table(data_dir):
    tree = read_tree_file(os.path.join(data_dir, "star_3leaf.tree"))
    genomes = read_genomes(os.path.join(data_dir, "star_3leaf.genomes"))
    return infer_adjacencies(tree, genomes, "A", outgroup_joins=False)


@pytest.fixture(scope="module")
def mixed():
    ctx = make_context(MIXED_TREE, MIXED_GENOMES)
    table = ctx.run()
    return ctx, table


# ======================================================================== #
# 1. Unopposed adjacencies                                                  #
# ======================================================================== #


class TestStar:
    def test_observed_adjacencies_certain(self, star_table):
        assert star_table.get(1, 2) == 1.0
        assert star_table.get(2, 3) == 1.0

    def test_unobserved_adjacency_absent(self, star_table):
        assert (1, 3) not in star_table
        assert star_table.get(1, 3) == 0.0

    def test_sentinel_adjacencies(self, star_table):
        assert star_table.get(0, 1) == 1.0
        assert star_table.get(3, 0) == 1.0

    def test_both_encodings_present(self, star_table):
        assert star_table.get(-2, -1) == 1.0
        assert star_table.get(0, -3) == 1.0

    def test_no_sentinel_pair(self, star_table):
        assert (0, 0) not in star_table
        assert len(star_table) == 8

    def test_header(self, star_table):
        assert star_table.n_elements == 3

    def test_multifurcation_warned(self, data_dir, caplog):
        with caplog.at_level(logging.WARNING):
            read_tree_file(os.path.join(data_dir, "star_3leaf.tree"))
        assert any(
            r.name == "ancrecon._logging" and "multifurcation" in r.getMessage()
            for r in caplog.records
        )


# ======================================================================== #
# 2. Branch model                                                           #
# ======================================================================== #


class TestBranchProb:
    def test_rows_sum_to_one(self, mixed):
        ctx, _ = mixed
        n = ctx.space.T
        for node in ctx.tree.leaves():
            same = ctx.branch_prob(node, 1, 1)
            other = ctx.branch_prob(node, 1, 2)
            assert same + (2 * n - 2) * other == pytest.approx(1.0)

    def test_zero_length_keeps_state(self):
        ctx = make_context("(A:0,B:1);", [">A 1", "1 2 $", ">B 1", "1 2 $"], reroot=False)
        assert ctx.branch_prob(0, 1, 1) == pytest.approx(1.0)
        assert ctx.branch_prob(0, 1, 2) == pytest.approx(0.0)

    def test_long_branch_uniform(self):
        ctx = make_context("(A:50,B:1);", [">A 1", "1 2 $", ">B 1", "1 2 $"], reroot=False)
        k = 2 * ctx.space.T - 1
        assert ctx.branch_prob(0, 1, 1) == pytest.approx(1.0 / k)
        assert ctx.branch_prob(0, 1, 2) == pytest.approx(1.0 / k)

    def test_rate_scales_branches(self):
        fast = make_context("(A:1,B:1);", [">A 1", "1 2 $", ">B 1", "1 2 $"], rate=2.0, reroot=False)
        slow = make_context("(A:2,B:2);", [">A 1", "1 2 $", ">B 1", "1 2 $"], rate=1.0, reroot=False)
        assert fast.branch_prob(0, 1, 1) == pytest.approx(slow.branch_prob(0, 1, 1))

    def test_negative_branch_length(self):
        ctx = make_context("(A:-1,B:1);", [">A 1", "1 2 $", ">B 1", "1 2 $"], reroot=False)
        with pytest.raises(ConsistencyError, match="negative scaled branch length"):
            ctx.run()


# ======================================================================== #
# 3. Normalization and posteriors                                           #
# ======================================================================== #


class TestNormalization:
    def test_predecessor_columns_sum_to_one(self, mixed):
        ctx, _ = mixed
        for j in range(1, ctx.space.HI):
            line = ctx.pred_post.line(j)
            if line:
                assert sum(line.values()) == pytest.approx(1.0)

    def test_successor_rows_sum_to_one(self, mixed):
        ctx, _ = mixed
        for i in range(1, ctx.space.HI):
            line = ctx.succ_post.line(i)
            if line:
                assert sum(line.values()) == pytest.approx(1.0)

    def test_no_undefined_lines(self, mixed):
        ctx, _ = mixed
        assert ctx.undefined_columns == []
        assert ctx.undefined_rows == []

    def test_sentinel_reconciliation(self, mixed):
        ctx, _ = mixed
        lo, hi = ctx.space.LO, ctx.space.HI
        for j in range(1, hi):
            if ctx.compat.get(lo, j):
                assert ctx.succ_post.get(lo, j) == ctx.pred_post.get(lo, j)
            if ctx.compat.get(j, hi):
                assert ctx.pred_post.get(j, hi) == ctx.succ_post.get(j, hi)

    def test_lo_posterior_is_squared(self, mixed):
        ctx, _ = mixed
        p = ctx.pred_post.get(0, 1)
        assert ctx.probability(0, 1) == pytest.approx(p * p)

    def test_zero_total_column_warned(self, caplog):
        # Zero-length branches pin both leaves to the root state, and the
        # leaves disagree on the predecessor of +2.
        ctx = make_context(
            "(A:0,B:0);", [">A 1", "1 2 3 $", ">B 1", "3 2 1 $"], reroot=False
        )
        with caplog.at_level(logging.WARNING):
            ctx.run()
        assert 2 in ctx.undefined_columns
        assert ctx.pred_post.line(2) == {}
        assert any("zero total likelihood" in r.getMessage() for r in caplog.records)


class TestPosterior:
    def test_range(self, mixed):
        _, table = mixed
        for _, _, p in table:
            assert 0.0 < p <= 1.0 + 1e-12

    def test_conflicting_adjacency_uncertain(self, mixed):
        _, table = mixed
        assert 0.0 < table.get(1, 2) < 1.0

    def test_shared_adjacency_most_probable(self, mixed):
        _, table = mixed
        # (3,4) is shared by A and C; (1,2) and (-2,4) each by one leaf
        assert table.get(3, 4) > table.get(1, 2)
        assert table.get(3, 4) > table.get(-2, 4)

    def test_reverse_complement_symmetry(self, mixed):
        _, table = mixed
        for id1, id2, p in table:
            if id1 != 0 and id2 != 0:
                assert table.get(-id2, -id1) == pytest.approx(p)

    def test_deterministic(self, mixed):
        _, table = mixed
        again = make_context(MIXED_TREE, MIXED_GENOMES).run()
        assert list(again) == list(table)

    def test_incompatible_pair(self, mixed):
        ctx, _ = mixed
        with pytest.raises(ConsistencyError, match="not a compatible adjacency"):
            ctx.probability(1, 1)

    def test_posterior_summary_logged(self, caplog):
        ctx = make_context(MIXED_TREE, MIXED_GENOMES)
        with caplog.at_level(logging.INFO, logger="ancrecon._logging"):
            ctx.run()
        assert any("Posterior probabilities for" in r.getMessage() for r in caplog.records)

    def test_lengths_scaled_by_small_rate(self):
        ctx = make_context(MIXED_TREE, MIXED_GENOMES, rate=1e-4)
        table = ctx.run()
        assert math.isfinite(table.get(1, 2))
        assert table.get(3, 4) == pytest.approx(1.0, abs=1e-3)

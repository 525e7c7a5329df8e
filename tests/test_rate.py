"""
tests/test_rate.py
==================
Rate estimation from breakpoint distances.

Tree: ((HUMAN:0.1,MOUSE:0.2)@:0.05,CHICKEN:0.4);

  t(HUMAN, MOUSE)   = 0.3
  t(HUMAN, CHICKEN) = 0.55
"""

import logging
import math
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from ancrecon._errors import ConsistencyError, ParseError
from ancrecon._rate import (
    DEFAULT_RATE,
    estimate_rate,
    parse_breakpoint_distances,
    read_breakpoint_distances,
)
from ancrecon._tree import PhyloTree


TREE = "((HUMAN:0.1,MOUSE:0.2)@:0.05,CHICKEN:0.4);"


def expected_alpha(b, n, t):
    cmp = 1.0 - (2 * n - 1) * b / ((2 * n - 2) * n)
    return -math.log(cmp) / (2 * n - 1) / t


@pytest.fixture(scope="module")
def tree():
    return PhyloTree(TREE)


class TestParse:
    def test_parse(self):
        lines = ["# species breakpoints", "MOUSE\t3", "", "CHICKEN 12.5"]
        assert parse_breakpoint_distances(lines) == {"MOUSE": 3.0, "CHICKEN": 12.5}

    def test_zero_distances_skipped(self):
        assert parse_breakpoint_distances(["MOUSE 0", "CHICKEN 2"]) == {"CHICKEN": 2.0}

    @pytest.mark.parametrize("line", ["MOUSE", "MOUSE many"])
    def test_bad_record(self, line):
        with pytest.raises(ParseError, match="bad breakpoint distance record"):
            parse_breakpoint_distances([line])

    def test_read(self, data_dir):
        distances = read_breakpoint_distances(os.path.join(data_dir, "small", "bpdist.txt"))
        assert distances == {"MOUSE": 1.0}


class TestEstimate:
    def test_single_species(self, tree):
        rate = estimate_rate(tree, "HUMAN", {"MOUSE": 1.0}, 5)
        assert rate == pytest.approx(expected_alpha(1.0, 5, 0.3))

    def test_mean_over_species(self, tree):
        rate = estimate_rate(tree, "HUMAN", {"MOUSE": 2.0, "CHICKEN": 10.0}, 100)
        expected = (expected_alpha(2.0, 100, 0.3) + expected_alpha(10.0, 100, 0.55)) / 2
        assert rate == pytest.approx(expected)

    def test_saturated_species_skipped(self, tree):
        rate = estimate_rate(tree, "HUMAN", {"MOUSE": 1.0, "CHICKEN": 5.0}, 5)
        assert rate == pytest.approx(expected_alpha(1.0, 5, 0.3))

    def test_reference_itself_skipped(self, tree):
        rate = estimate_rate(tree, "HUMAN", {"HUMAN": 1.0, "MOUSE": 1.0}, 5)
        assert rate == pytest.approx(expected_alpha(1.0, 5, 0.3))

    def test_default_when_nothing_usable(self, tree, caplog):
        with caplog.at_level(logging.WARNING):
            rate = estimate_rate(tree, "HUMAN", {}, 5)
        assert rate == DEFAULT_RATE
        assert any("using default rate" in r.getMessage() for r in caplog.records)

    def test_custom_default(self, tree):
        assert estimate_rate(tree, "HUMAN", {"CHICKEN": 50.0}, 5, default=0.25) == 0.25

    def test_too_few_blocks(self, tree):
        with pytest.raises(ConsistencyError, match="at least 2 blocks"):
            estimate_rate(tree, "HUMAN", {"MOUSE": 1.0}, 1)

    def test_unknown_species(self, tree):
        with pytest.raises(ConsistencyError, match="RAT"):
            estimate_rate(tree, "HUMAN", {"RAT": 1.0}, 5)

"""
tests/test_context.py
=====================
Logging context managers.
"""

import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from ancrecon._context import quiet, suppress_logger
from ancrecon._tree import PhyloTree


class TestSuppressLogger:
    def test_level_restored(self):
        lg = logging.getLogger("ancrecon._assembler")
        lg.setLevel(logging.INFO)
        try:
            with suppress_logger("ancrecon._assembler"):
                assert lg.level == logging.CRITICAL
            assert lg.level == logging.INFO
        finally:
            lg.setLevel(logging.NOTSET)

    def test_level_restored_after_exception(self):
        lg = logging.getLogger("ancrecon._tree")
        original = lg.level
        with pytest.raises(RuntimeError):
            with suppress_logger("ancrecon._tree", logging.ERROR):
                raise RuntimeError("boom")
        assert lg.level == original


class TestQuiet:
    def test_silences_warnings(self, caplog):
        with caplog.at_level(logging.WARNING):
            with quiet():
                PhyloTree("(A:1,B:1,C:1);")
        assert not [r for r in caplog.records if "multifurcation" in r.getMessage()]

    def test_warning_level_passes_warnings(self, caplog):
        with caplog.at_level(logging.WARNING):
            with quiet(logging.WARNING):
                PhyloTree("(A:1,B:1,C:1);")
        assert [r for r in caplog.records if "multifurcation" in r.getMessage()]

    def test_levels_restored(self):
        names = ["ancrecon._tree", "ancrecon._likelihood", "ancrecon._logging"]
        before = [logging.getLogger(n).level for n in names]
        with quiet():
            assert all(logging.getLogger(n).level == logging.CRITICAL for n in names)
        assert [logging.getLogger(n).level for n in names] == before

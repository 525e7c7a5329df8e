"""
conftest.py
===========
Session-level pytest configuration and shared fixtures.

Custom marks
------------
pipeline
    Applied to tests that run a full reconstruction through the file
    system (tree, genome and join files -> APCF output).  Deselect with
    ``-m "not pipeline"`` for a quick run.

    Registration here suppresses PytestUnknownMarkWarning and makes the mark
    visible in ``pytest --markers``.
"""

import os

import pytest


_DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "tests", "data")


def pytest_configure(config):
    """
    Configure pytest before test collection begins.
    """
    config.addinivalue_line(
        "markers",
        "pipeline: end-to-end reconstruction through input and output files",
    )


@pytest.fixture(scope="session")
def data_dir():
    """Directory holding the fixture trees, genomes and join files."""
    return _DATA_DIR

"""
_context.py
===========
Context managers for ancrecon.

Provides clean, Pythonic context managers for temporarily changing logging
state.  All context managers restore state on exit, even if exceptions
occur.
"""

import logging
from contextlib import contextmanager


# Loggers that report progress during a reconstruction run
_PACKAGE_LOGGERS = (
    "ancrecon._tree",
    "ancrecon._genome",
    "ancrecon._compat",
    "ancrecon._likelihood",
    "ancrecon._posterior",
    "ancrecon._assembler",
    "ancrecon._rate",
    "ancrecon._config",
    "ancrecon._pipeline",
    "ancrecon._logging",
)


# ============================================================================ #
# Logging Context Managers
# ============================================================================ #


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Temporarily change a logger's level.

    Useful for suppressing verbose output from specific modules during
    bulk operations.

    Parameters
    ----------
    logger_name : str
        Name of the logger to suppress (e.g., 'ancrecon._assembler')
    level : int, default logging.CRITICAL
        Temporary logging level.

    Yields
    ------
    None
        Control is yielded back to the with-block.

    Examples
    --------
    >>> # Silence per-edge assembler decisions
    >>> with suppress_logger('ancrecon._assembler'):
    ...     result = assembler.run()

    >>> # Keep only warnings from the tree parser
    >>> with suppress_logger('ancrecon._logging', logging.WARNING):
    ...     tree = PhyloTree(text)

    Notes
    -----
    - Exception-safe: Logger level restored even if exception raised
    - Nesting-safe: Can nest multiple suppress_logger contexts
    """
    logger = logging.getLogger(logger_name)
    original_level = logger.level

    try:
        logger.setLevel(level)
        yield
    finally:
        logger.setLevel(original_level)


@contextmanager
def quiet(level: int = logging.CRITICAL):
    """
    Temporarily suppress all ancrecon logging.

    Parameters
    ----------
    level : int, default logging.CRITICAL
        Temporary logging level for every package logger.

    Examples
    --------
    >>> with quiet():
    ...     table = infer_adjacencies(tree, genomes, 'hg19')

    >>> # Show only warnings (multifurcations, zero-sum columns, ...)
    >>> with quiet(logging.WARNING):
    ...     table = infer_adjacencies(tree, genomes, 'hg19')
    """
    loggers = [logging.getLogger(name) for name in _PACKAGE_LOGGERS]
    original_levels = [lg.level for lg in loggers]

    try:
        for lg in loggers:
            lg.setLevel(level)
        yield
    finally:
        for lg, original in zip(loggers, original_levels):
            lg.setLevel(original)

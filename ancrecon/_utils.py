"""
_utils.py
=========
General-purpose utility functions for ancrecon.

These are standalone functions that don't depend on the main classes
and could be useful in multiple contexts.
"""

from typing import Tuple


def canonical_adjacency(id1: int, id2: int) -> Tuple[int, int]:
    """
    Canonical orientation of a signed adjacency.

    The adjacency (a, b) and its reverse complement (-b, -a) describe the
    same join.  The canonical form has ``|id1| <= |id2|``.

    Parameters
    ----------
    id1, id2 : int
        Signed element ids; 0 is the chromosome-end sentinel.

    Returns
    -------
    tuple of int

    Examples
    --------
    >>> canonical_adjacency(1, 2)
    (1, 2)

    >>> canonical_adjacency(2, 1)
    (-1, -2)

    >>> canonical_adjacency(5, 0)
    (0, -5)

    >>> canonical_adjacency(-3, 3)
    (-3, 3)
    """
    if abs(id1) > abs(id2):
        return -id2, -id1
    return id1, id2


def format_newick(newick: str) -> str:
    """
    Format a tree string for consistent representation.

    Ensures the string:
    - Ends with a semicolon
    - Has no leading/trailing whitespace

    Examples
    --------
    >>> format_newick('((A:1,B:1)@:1,C:2)')
    '((A:1,B:1)@:1,C:2);'

    >>> format_newick('  (A:1,B:1);  ')
    '(A:1,B:1);'
    """
    newick = newick.strip()
    if not newick.endswith(';'):
        newick += ';'
    return newick


def parse_bool(value: str) -> bool:
    """
    Interpret a parameter-file flag.

    Examples
    --------
    >>> parse_bool('yes'), parse_bool('0'), parse_bool('True')
    (True, False, True)
    """
    v = value.strip().lower()
    if v in ("1", "true", "yes", "on", "t", "y"):
        return True
    if v in ("0", "false", "no", "off", "f", "n"):
        return False
    raise ValueError(f"cannot interpret {value!r} as a boolean")

"""
_utils.py
=========
General-purpose utility functions for amime.

These are standalone functions that don't depend on the main classes
and could be useful in multiple contexts.
"""

import math
import re
from typing import Any, List


_TREE_SEPARATOR = re.compile(r";\s*\n")


def format_newick(newick: str) -> str:
    """
    Format a NEWICK string for consistent representation.

    Ensures the NEWICK string:
    - Ends with a semicolon
    - Has no leading/trailing whitespace

    Parameters
    ----------
    newick : str
        NEWICK string to format.

    Returns
    -------
    str
        Formatted NEWICK string.

    Examples
    --------
    >>> format_newick('((A:1,B:1):1,(C:1,D:1):1)')
    '((A:1,B:1):1,(C:1,D:1):1);'

    >>> format_newick('  ((A:1,B:1):1);  ')
    '((A:1,B:1):1);'
    """
    newick = newick.strip()
    if not newick.endswith(';'):
        newick += ';'
    return newick


def split_newick_trees(text: str) -> List[str]:
    """
    Split multi-tree Newick text into one string per tree.

    Trees are separated by a semicolon followed by optional whitespace and a
    newline.  The separating semicolons are consumed, so a final tree keeps
    its own only when no newline follows it; blank pieces are dropped.

    Examples
    --------
    >>> split_newick_trees('(A,B);\\n(C,D);\\n')
    ['(A,B)', '(C,D)']
    >>> split_newick_trees('(A,B);\\n(C,D);')
    ['(A,B)', '(C,D);']
    """
    pieces = (piece.strip() for piece in _TREE_SEPARATOR.split(text))
    return [piece for piece in pieces if piece]


def format_branch_length(length: float) -> str:
    """
    Format a branch length the way it is written back to Newick.

    Integral values are written without a fractional part; everything else
    uses the shortest representation that reads back to the same float.

    Examples
    --------
    >>> format_branch_length(1.0)
    '1'
    >>> format_branch_length(0.25)
    '0.25'
    >>> format_branch_length(1e-07)
    '1e-07'
    """
    length = float(length)
    if math.isfinite(length) and length.is_integer() and abs(length) < 1e16:
        return str(int(length))
    return repr(length)


def is_annotation_value(value: Any) -> bool:
    """
    True if *value* is a storable annotation value: a string, None, or a
    (possibly nested) list of such values.
    """
    if value is None or isinstance(value, str):
        return True
    if isinstance(value, list):
        return all(is_annotation_value(item) for item in value)
    return False

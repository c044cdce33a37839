"""
_writer.py
==========
Serialise a ``Tree`` to extended Newick.

Output layout per node::

    (child,child,...)label#hybrid_id[&key=value,...]:branch_length

The string ends with ``;``.  Labels and annotation strings are written bare
when they would lex back as one string, and double-quoted (inner quotes
doubled) otherwise.  Annotation values that are lists are written as
``{a,b}``; ``None`` is written as an empty value.

Branch lengths use ``format_branch_length``: integral values lose their
fractional part.  A root without a branch length is written with ``:0.0``,
which ``read_newick`` maps back to ``None``.
"""

import logging
import re
from typing import List

from amime._node import Node
from amime._utils import format_branch_length

logger = logging.getLogger(__name__)

# Characters that end a bare string, or would start a quoted one.
_LABEL_SPECIAL = re.compile(r"""[,():;\[\]#'"]|^\s|\s$""")
_ANNOTATION_SPECIAL = re.compile(r"""[,\[\]{}='"]|^\s|\s$""")


def _quote(text: str, special: "re.Pattern") -> str:
    if not text or special.search(text) is None:
        return text
    return '"' + text.replace('"', '""') + '"'


def _format_annotation_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "{" + ",".join(_format_annotation_value(v) for v in value) + "}"
    return _quote(value, _ANNOTATION_SPECIAL)


def _format_node(node: Node, annotate: bool) -> str:
    """Everything after a node's closing parenthesis, up to its branch length."""
    parts: List[str] = []
    if node.label is not None and node.label != "":
        parts.append(_quote(node.label, _LABEL_SPECIAL))
    if node.hybrid_id is not None:
        parts.append(f"#{node.hybrid_id}")
    if annotate and node.annotation:
        pairs = [
            f"{_quote(key, _ANNOTATION_SPECIAL)}={_format_annotation_value(value)}"
            for key, value in node.annotation.items()
        ]
        parts.append("[&" + ",".join(pairs) + "]")
    return "".join(parts)


def write_newick(tree, annotate: bool = True) -> str:
    """
    Write *tree* as an extended-Newick string.

    Parameters
    ----------
    tree : Tree
        Tree or network to serialise.
    annotate : bool, default True
        Include ``[&...]`` node annotations.

    Returns
    -------
    str

    Examples
    --------
    >>> write_newick(read_newick('(A:1,(B:1,C:1):1):0.0;'))
    '(A:1,(B:1,C:1):1):0.0;'
    """
    root = tree.root
    pieces: List[str] = []

    # Explicit stack of (node, closing) entries.  An internal node is pushed
    # twice: once to open its parentheses and once, marked as closing, to
    # write its own fields after the children.  None entries are commas.
    stack = [(root, False)]
    while stack:
        node, closing = stack.pop()

        if node is None:
            pieces.append(",")
            continue

        if node.children and not closing:
            pieces.append("(")
            stack.append((node, True))
            for i, child in enumerate(reversed(node.children)):
                stack.append((child, False))
                if i < len(node.children) - 1:
                    stack.append((None, False))
            continue

        if closing:
            pieces.append(")")
        pieces.append(_format_node(node, annotate))

        if node is root:
            if node.branch_length is None:
                pieces.append(":0.0")
            else:
                pieces.append(":" + format_branch_length(node.branch_length))
        elif node.branch_length is not None:
            pieces.append(":" + format_branch_length(node.branch_length))

    pieces.append(";")
    newick = "".join(pieces)
    logger.debug("Wrote %d nodes as Newick (%d characters)", tree.n_nodes, len(newick))
    return newick

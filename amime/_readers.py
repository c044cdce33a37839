"""
_readers.py
===========
Readers turning Newick, Nexus, PhyloXML and NeXML text into ``Tree`` objects.

Public API
----------
  read_newick(text)              -> Tree
  read_trees_from_newick(text)   -> list[Tree]
  read_trees_from_nexus(text)    -> list[Tree]
  read_phyloxml(text)            -> Tree
  read_trees_from_phyloxml(text) -> list[Tree]
  read_nexml(text)               -> Tree
  read_trees_from_nexml(text)    -> list[Tree]
  read(text, schema='newick')    -> list[Tree]

Every reader builds the same node graph the Newick parser would: ids
0..n-1 in preorder, ``branch_length`` None where the source gives none, and
a root branch length of 0 normalised to None.

Errors
------
Malformed input raises ``ParseError`` (``LexError`` for Newick characters
that start no token); structurally impossible graphs raise
``StructuralError``.  A tree explicitly marked as unrooted raises
``SkipTreeError`` while the ``require_rooted`` reading option is on; the
``read_trees_from_*`` functions log such trees and leave them out.
"""

import logging
import re
import xml.etree.ElementTree as ET
from typing import Callable, Dict, List, Optional

from amime._context import get_reading_option
from amime._errors import ParseError, SkipTreeError, StructuralError
from amime._logging import log_batch_summary, log_skipped_tree
from amime._node import Node
from amime._parser import parse_newick
from amime._tree import Tree
from amime._utils import split_newick_trees

logger = logging.getLogger(__name__)

_ROOTING_COMMENT = re.compile(r"^\s*\[&([RU])\]\s*", re.IGNORECASE)


def _check_rooted(rooted: bool) -> None:
    if not rooted and get_reading_option("require_rooted"):
        raise SkipTreeError("Unrooted tree.")


def _normalise_root_length(tree: Tree) -> Tree:
    # A zero root edge is indistinguishable from no root edge.
    if tree.root.branch_length == 0.0:
        tree.root.branch_length = None
    return tree


def _read_batch(items, read_one: Callable, schema: str) -> List[Tree]:
    """
    **Private.**  Apply *read_one* to every item, leaving out (and logging)
    those that raise ``SkipTreeError``.  Any other error propagates.
    """
    trees = []
    n_skipped = 0
    for index, item in enumerate(items):
        try:
            trees.append(read_one(item))
        except SkipTreeError as err:
            log_skipped_tree(index, str(err), schema)
            n_skipped += 1
    log_batch_summary(len(trees), n_skipped, schema)
    return trees


# ================================================================== #
# Newick                                                               #
# ================================================================== #


def read_newick(text: str) -> Tree:
    """
    Read a single extended-Newick tree.

    A leading ``[&R]`` or ``[&U]`` comment states whether the tree is
    rooted.  A root branch length of 0 is stored as None.

    Parameters
    ----------
    text : str

    Returns
    -------
    Tree

    Raises
    ------
    LexError, ParseError
        On malformed text.
    SkipTreeError
        If the tree is marked ``[&U]`` and ``require_rooted`` is on.
    StructuralError
        If the hybrid groups are inconsistent.

    Examples
    --------
    >>> tree = read_newick('(A:1,(B:1,C:1):1);')
    >>> tree.get_tip_labels()
    ['A', 'B', 'C']
    """
    match = _ROOTING_COMMENT.match(text)
    if match is not None:
        _check_rooted(match.group(1).upper() == "R")
        text = text[match.end():]

    tree = Tree(parse_newick(text))
    return _normalise_root_length(tree)


def read_trees_from_newick(text: str) -> List[Tree]:
    """
    Read every tree from multi-tree Newick text.

    Trees are separated by ``;`` followed by a newline (whitespace allowed in
    between).  Trees raising ``SkipTreeError`` are logged at WARNING and left
    out; any other error propagates.
    """
    return _read_batch(split_newick_trees(text), read_newick, "newick")


# ================================================================== #
# Nexus                                                                #
# ================================================================== #

_NEXUS_COMMENT = re.compile(r"\[(?!&)[^\]]*\]")
_TREES_BLOCK = re.compile(
    r"\bbegin\s+trees\s*;(.*?)\bend(?:block)?\s*;", re.IGNORECASE | re.DOTALL
)
_TRANSLATE = re.compile(r"\btranslate\s+(.*?);", re.IGNORECASE | re.DOTALL)
_TREE_STATEMENT = re.compile(
    r"\btree\s+\*?\s*('[^']*'|\"[^\"]*\"|[^\s=]+)\s*=\s*(.*?;)",
    re.IGNORECASE | re.DOTALL,
)


def _parse_translate_table(body: str) -> Dict[str, str]:
    table = {}
    for entry in body.split(","):
        fields = entry.split(None, 1)
        if not fields:
            continue
        if len(fields) != 2:
            raise ParseError(f"Malformed Nexus translate entry {entry.strip()!r}.")
        table[fields[0]] = fields[1].strip().strip("'\"")
    return table


def read_trees_from_nexus(text: str) -> List[Tree]:
    """
    Read the trees of every ``begin trees; ... end;`` block in Nexus text.

    Only tree blocks are interpreted.  A ``translate`` table, if present,
    maps the leaf labels of the trees that follow it.  Each
    ``tree <name> = [&R|&U] <newick>;`` statement is parsed with
    ``read_newick``, so ``[&U]`` trees obey ``require_rooted``.

    Raises
    ------
    ParseError
        If the text has no trees block.
    """
    blocks = _TREES_BLOCK.findall(_NEXUS_COMMENT.sub("", text))
    if not blocks:
        raise ParseError("No trees block found in Nexus input.")

    statements = []
    for block in blocks:
        translate = _TRANSLATE.search(block)
        table = _parse_translate_table(translate.group(1)) if translate else {}
        for name, newick in _TREE_STATEMENT.findall(block):
            statements.append((name, newick, table))

    def read_statement(statement) -> Tree:
        name, newick, table = statement
        tree = read_newick(newick)
        if table:
            for leaf in tree.leaf_list:
                if leaf.label in table:
                    leaf.label = table[leaf.label]
            tree.clear_caches()
        logger.debug("Read Nexus tree %s (%d leaves)", name, tree.n_leaves)
        return tree

    return _read_batch(statements, read_statement, "nexus")


# ================================================================== #
# XML helpers                                                          #
# ================================================================== #


def _local_name(element: ET.Element) -> str:
    """Tag name without its ``{namespace}`` prefix."""
    return element.tag.rsplit("}", 1)[-1]


def _parse_xml(text: str, schema: str) -> ET.Element:
    try:
        return ET.fromstring(text.strip())
    except ET.ParseError as err:
        line, column = err.position
        raise ParseError(
            f"Malformed {schema} document at line {line}, column {column}: {err}"
        ) from err


def _parse_length(value: Optional[str], where: str) -> Optional[float]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        raise ParseError(
            f"Expected numerical branch length in {where}. Found {value!r} instead.",
            expected="number",
        ) from None


def _iter_local(element: ET.Element, name: str):
    return (el for el in element.iter() if _local_name(el) == name)


# ================================================================== #
# PhyloXML                                                             #
# ================================================================== #


def _phyloxml_node(phylogeny: ET.Element) -> Node:
    """
    **Private.**  Build the node graph of one ``<phylogeny>`` element.

    The phylogeny element itself is the root; each ``<clade>`` child becomes a
    child node.  Elements are visited depth first with an explicit stack so
    ids come out in preorder.
    """
    next_id = 0
    root = None
    stack = [(phylogeny, None)]
    while stack:
        element, parent = stack.pop()
        node = Node(next_id)
        next_id += 1
        if parent is None:
            root = node
        else:
            parent.add_child(node)

        clades = []
        for child in element:
            tag = _local_name(child)
            if tag == "clade":
                clades.append(child)
            elif tag == "name":
                if child.text:
                    node.label = child.text
            elif tag in ("taxonomy", "sequence"):
                for field in child:
                    node.annotation[f"{tag}_{_local_name(field)}"] = field.text
            elif tag == "confidence":
                node.annotation[f"confidence_{child.get('type', '')}"] = child.text
            elif tag == "branch_length":
                node.branch_length = _parse_length(child.text, "<branch_length>")
            elif tag == "property":
                ref = child.get("ref")
                if ref:
                    node.annotation[ref] = child.text

        rooted = element.get("rooted")
        if rooted is not None and rooted.lower() == "false":
            _check_rooted(False)

        if element.get("branch_length") is not None:
            node.branch_length = _parse_length(
                element.get("branch_length"), "branch_length attribute"
            )

        for clade in reversed(clades):
            stack.append((clade, node))

    return root


def _phyloxml_tree(phylogeny: ET.Element) -> Tree:
    return _normalise_root_length(Tree(_phyloxml_node(phylogeny)))


def _phylogenies(text: str) -> List[ET.Element]:
    return list(_iter_local(_parse_xml(text, "PhyloXML"), "phylogeny"))


def read_phyloxml(text: str) -> Tree:
    """
    Read the single ``<phylogeny>`` of a PhyloXML document.

    ``<name>`` gives the label, ``<branch_length>`` (element or attribute)
    the branch length; ``<taxonomy>`` and ``<sequence>`` fields, typed
    ``<confidence>`` values and ``<property ref=...>`` values become
    annotations.

    Raises
    ------
    ParseError
        If the document is malformed or holds zero or several phylogenies.
    SkipTreeError
        If the phylogeny is marked ``rooted="false"`` and ``require_rooted``
        is on.
    """
    phylogenies = _phylogenies(text)
    if not phylogenies:
        raise ParseError("No phylogeny element found in PhyloXML.")
    if len(phylogenies) > 1:
        raise ParseError("Multiple phylogeny elements found in PhyloXML.")
    return _phyloxml_tree(phylogenies[0])


def read_trees_from_phyloxml(text: str) -> List[Tree]:
    """Read every ``<phylogeny>`` of a PhyloXML document, skipping unrooted ones."""
    return _read_batch(_phylogenies(text), _phyloxml_tree, "phyloxml")


# ================================================================== #
# NeXML                                                                #
# ================================================================== #


def _nexml_tree(tree_el: ET.Element, otu_labels: Dict[str, str]) -> Tree:
    """
    **Private.**  Build a Tree from one NeXML ``<tree>`` element.

    Raises
    ------
    StructuralError
        If an edge refers to an unknown node, a node has two incoming edges,
        or the tree does not have exactly one root.
    """
    tree_id = tree_el.get("id", "?")
    nodes: Dict[str, Node] = {}
    flagged_roots = []
    for node_el in tree_el:
        if _local_name(node_el) != "node":
            continue
        node = Node()
        label = node_el.get("label")
        if label is None and node_el.get("otu") is not None:
            label = otu_labels.get(node_el.get("otu"))
        node.label = label
        nodes[node_el.get("id")] = node
        if node_el.get("root", "").lower() == "true":
            flagged_roots.append(node)

    root_length = None
    for edge_el in tree_el:
        tag = _local_name(edge_el)
        if tag == "rootedge":
            root_length = _parse_length(edge_el.get("length"), "<rootedge>")
            continue
        if tag != "edge":
            continue
        source = nodes.get(edge_el.get("source"))
        target = nodes.get(edge_el.get("target"))
        if source is None or target is None:
            raise StructuralError(
                f"NeXML tree {tree_id}: edge {edge_el.get('id')} refers to an "
                f"unknown node."
            )
        if target.parent is not None:
            raise StructuralError(
                f"NeXML tree {tree_id}: node {edge_el.get('target')} has more "
                f"than one incoming edge."
            )
        source.add_child(target)
        target.branch_length = _parse_length(
            edge_el.get("length"), f"edge {edge_el.get('id')}"
        )

    roots = flagged_roots or [n for n in nodes.values() if n.parent is None]
    if len(roots) != 1:
        raise StructuralError(
            f"NeXML tree {tree_id}: expected one root node, found {len(roots)}."
        )
    root = roots[0]
    if root.parent is not None:
        raise StructuralError(
            f"NeXML tree {tree_id}: the node marked as root has an incoming edge."
        )
    root.branch_length = root_length

    tree = Tree(root)
    if tree.n_nodes != len(nodes):
        raise StructuralError(
            f"NeXML tree {tree_id}: {len(nodes) - tree.n_nodes} node(s) are not "
            f"connected to the root."
        )
    tree.reassign_node_ids()
    return _normalise_root_length(tree)


def _nexml_trees(text: str) -> List[tuple]:
    document = _parse_xml(text, "NeXML")
    otu_labels = {}
    for otu in _iter_local(document, "otu"):
        otu_labels[otu.get("id")] = otu.get("label", otu.get("id"))
    return [(tree_el, otu_labels) for tree_el in _iter_local(document, "tree")]


def read_nexml(text: str) -> Tree:
    """
    Read the single ``<tree>`` of a NeXML document.

    Nodes take their ``label`` attribute, or else the label of their otu.
    Edge lengths become the target node's branch length; a ``<rootedge>``
    length becomes the root's.

    Raises
    ------
    ParseError
        If the document is malformed or holds zero or several trees.
    StructuralError
        If a tree's edges do not form a single rooted tree.
    """
    trees = _nexml_trees(text)
    if not trees:
        raise ParseError("No tree element found in NeXML.")
    if len(trees) > 1:
        raise ParseError("Multiple tree elements found in NeXML.")
    return _nexml_tree(*trees[0])


def read_trees_from_nexml(text: str) -> List[Tree]:
    """Read every ``<tree>`` of a NeXML document."""
    return _read_batch(
        _nexml_trees(text), lambda item: _nexml_tree(*item), "nexml"
    )


# ================================================================== #
# Dispatch                                                             #
# ================================================================== #

_SCHEMA_READERS: Dict[str, Callable[[str], List[Tree]]] = {
    "newick": read_trees_from_newick,
    "nexus": read_trees_from_nexus,
    "phyloxml": read_trees_from_phyloxml,
    "nexml": read_trees_from_nexml,
}


def read(text: str, schema: str = "newick") -> List[Tree]:
    """
    Read every tree in *text* using the reader for *schema*.

    Parameters
    ----------
    text : str
        Document contents.
    schema : {'newick', 'nexus', 'phyloxml', 'nexml'}

    Raises
    ------
    ValueError
        If *text* is a URL or *schema* is not recognised.
    """
    if text.startswith(("http://", "https://")):
        raise ValueError("Fetching trees from the internet is not supported.")
    try:
        reader = _SCHEMA_READERS[schema.lower()]
    except KeyError:
        raise ValueError(
            f"Invalid schema {schema!r}. Valid schemas: "
            f"{', '.join(sorted(_SCHEMA_READERS))}"
        ) from None
    return reader(text)

"""
amime (網目)
============

Reading, writing and restructuring phylogenetic trees and reticulate
networks in extended Newick.

*Amime* (網目, "mesh") treats a network as a rooted tree whose reticulations
are cross-links: nodes sharing a ``#hybrid_id`` form a group made of one
internal source and one or more leaf destinations.

Main Classes
------------
Tree : Tree or network with derived views, node ages, MRCA, ladderisation
       and rerooting
Node : Single vertex of the node graph

Readers and Writer
------------------
read : Read every tree of a document ('newick', 'nexus', 'phyloxml', 'nexml')
read_newick, read_trees_from_newick : Extended Newick
read_trees_from_nexus : Trees blocks of Nexus files
read_phyloxml, read_trees_from_phyloxml : PhyloXML
read_nexml, read_trees_from_nexml : NeXML
write_newick : Serialise a Tree to extended Newick

Context Managers
----------------
quiet : Suppress logging during operations
suppress_logger : Suppress specific logger
reading_options : Temporarily change reader options

Exceptions
----------
AmimeError : Base class
LexError, ParseError : Malformed Newick (both are ValueErrors)
SkipTreeError : Tree left out of a batch read (e.g. unrooted)
StructuralError : Graph invariant violated

Examples
--------
Basic usage:

>>> from amime import read_newick, write_newick
>>> tree = read_newick('((A:1,(B:1)#1:1):1,(C:1,#1:1):1);')
>>> tree.get_recomb_edge_map()[1]
[Node(id=3, hybrid_id=1, branch_length=1.0), Node(id=7, hybrid_id=1, branch_length=1.0)]
>>> tree.get_mrca(['A', 'B']).id
1
>>> write_newick(tree)
'((A:1,(B:1)#1:1):1,(C:1,#1:1):1):0.0;'

Batch reading:

>>> from amime import read, quiet
>>> with quiet():
...     trees = read(open('trees.nex').read(), schema='nexus')
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Main classes
from ._node import Node
from ._tree import Tree

# Readers and writer
from ._readers import (
    read,
    read_newick,
    read_trees_from_newick,
    read_trees_from_nexus,
    read_phyloxml,
    read_trees_from_phyloxml,
    read_nexml,
    read_trees_from_nexml,
)
from ._writer import write_newick

# Context managers (user-facing utilities)
from ._context import (
    suppress_logger,
    quiet,
    reading_options,
)

# Exceptions
from ._errors import (
    AmimeError,
    NewickError,
    LexError,
    ParseError,
    SkipTreeError,
    StructuralError,
)

# Utilities (generally useful functions)
from ._utils import format_newick

# Public API
__all__ = [
    # Main classes
    "Tree",
    "Node",
    # Readers and writer
    "read",
    "read_newick",
    "read_trees_from_newick",
    "read_trees_from_nexus",
    "read_phyloxml",
    "read_trees_from_phyloxml",
    "read_nexml",
    "read_trees_from_nexml",
    "write_newick",
    # Context managers
    "suppress_logger",
    "quiet",
    "reading_options",
    # Exceptions
    "AmimeError",
    "NewickError",
    "LexError",
    "ParseError",
    "SkipTreeError",
    "StructuralError",
    # Utilities
    "format_newick",
    # Version info
    "__version__",
]

"""
_node.py
========
A single vertex of a phylogenetic tree or reticulate network.

Reticulations are encoded the extended-Newick way: every node taking part in
a reticulation carries the same integer ``hybrid_id``.  The internal node of
the group is its *source*; the leaves are its *destinations*.  Apart from
these cross-links the structure is an ordinary rooted tree: every node has at
most one ``parent`` and appears exactly once in that parent's ``children``.
"""

from typing import Any, Callable, Dict, List, Optional, Union

AnnotationValue = Union[str, None, List[Any]]


class Node:
    """
    One vertex of the node graph.

    Attributes
    ----------
    id            : int              Unique within a tree; parse/preorder order.
    label         : str | None       Taxon or clade name.
    branch_length : float | None     Length of the edge to the parent.
                                     ``None`` (undefined) is distinct from 0.
    height        : float | None     Age before present, set by
                                     ``Tree.compute_node_ages``; ``nan`` when a
                                     branch length on the root path is missing.
    rtt_dist      : float | None     Root-to-tip distance, set by
                                     ``Tree.get_rtt_dist``.
    children      : list[Node]       Ordered.
    parent        : Node | None      ``None`` only for a root.
    hybrid_id     : int | None       Reticulation group id.
    annotation    : dict             ``[&key=value]`` metadata.
    """

    def __init__(self, node_id: int = -1) -> None:
        self.id: int = node_id
        self.label: Optional[str] = None
        self.branch_length: Optional[float] = None
        self.height: Optional[float] = None
        self.rtt_dist: Optional[float] = None
        self.children: List["Node"] = []
        self.parent: Optional["Node"] = None
        self.hybrid_id: Optional[int] = None
        self.annotation: Dict[str, AnnotationValue] = {}

    def __repr__(self) -> str:
        parts = [f"id={self.id}"]
        if self.label is not None:
            parts.append(f"label={self.label!r}")
        if self.hybrid_id is not None:
            parts.append(f"hybrid_id={self.hybrid_id}")
        if self.branch_length is not None:
            parts.append(f"branch_length={self.branch_length}")
        return f"Node({', '.join(parts)})"

    # ================================================================== #
    # Structure                                                            #
    # ================================================================== #

    def add_child(self, child: "Node") -> None:
        """Append *child* to ``children`` and make this node its parent."""
        self.children.append(child)
        child.parent = self

    def remove_child(self, child: "Node") -> None:
        """
        Remove *child* from ``children`` and clear its parent reference.

        Raises
        ------
        ValueError   if *child* is not a child of this node.
        """
        for i, c in enumerate(self.children):
            if c is child:
                del self.children[i]
                child.parent = None
                return
        raise ValueError(f"{child!r} is not a child of {self!r}.")

    def is_leaf(self) -> bool:
        return len(self.children) == 0

    def is_root(self) -> bool:
        return self.parent is None

    def is_hybrid(self) -> bool:
        return self.hybrid_id is not None

    # ================================================================== #
    # Traversal                                                            #
    # ================================================================== #

    def apply_preorder(self, fn: Callable[["Node"], Any]) -> list:
        """
        Visit the subtree rooted here in preorder and collect results.

        Nodes are visited depth first, parent before children, siblings left
        to right.  *fn* is applied to each node; non-``None`` return values
        are collected in visit order.

        An explicit stack drives the walk, so arbitrarily deep trees do not
        hit the interpreter recursion limit.  *fn* may read the node's
        parent (already visited) but must not restructure the subtree.

        Parameters
        ----------
        fn : callable(Node) -> Any

        Returns
        -------
        list   Non-``None`` results of *fn*.
        """
        results = []
        stack = [self]
        while stack:
            node = stack.pop()
            value = fn(node)
            if value is not None:
                results.append(value)
            # Push in reverse so the leftmost child is visited first.
            for i in range(len(node.children) - 1, -1, -1):
                stack.append(node.children[i])
        return results

"""
_tree.py
========
A phylogenetic tree or reticulate network held as a graph of ``Node``
objects, with lazily built derived views and the structural algorithms that
act on it.

Public API
----------
  Tree(root)
      Constructor.  Takes ownership of the graph reachable from *root* and
      computes node ages.

  .node_list / .leaf_list                      [cached, preorder]
  .get_node(node_id) / .get_node_by_label(label)
  .get_recomb_edge_map()
  .compute_node_ages() / .get_node_heights()
  .get_branch_lengths() / .get_rtt_dist() / .get_total_branch_length()
  .get_tip_labels(node=None)
  .get_mrca(nodes)
  .get_subtree(node)
  .ladderise()
  .reroot(edge_base_node, prop=None)
  .reassign_node_ids() / .clear_caches()

Derived state
-------------
The preorder node list, the id map, the label map, the leaf list and the
hybrid-edge map are built on first use and cached.  Every structural edit
made through this class (``reroot``, ``ladderise``) clears all five in one
place, ``clear_caches``.  Callers that edit nodes directly
(``Node.add_child`` / ``Node.remove_child``) must call ``clear_caches``
themselves before querying the tree again.

Hybrid edges
------------
``get_recomb_edge_map`` groups nodes by ``hybrid_id``: the internal node of
a group is its source and is listed first, followed by the leaf
destinations in preorder.  A group made only of leaves is kept as it is.

Node-level arrays
-----------------
``get_node_heights`` and ``get_branch_lengths`` return float64 arrays
aligned with ``node_list``; ``get_rtt_dist`` returns one aligned with
``leaf_list``.  Undefined values are NaN.
"""

import logging
import math
from typing import Dict, List, Optional

import numpy as np

from amime._errors import StructuralError
from amime._logging import (
    log_hybrid_synthesis,
    log_reroot_summary,
    log_time_tree_status,
)
from amime._node import Node

logger = logging.getLogger(__name__)


def _leaf_or_none(node: Node) -> Optional[Node]:
    return node if node.is_leaf() else None


def _hybrid_or_none(node: Node) -> Optional[Node]:
    return node if node.is_hybrid() else None


class Tree:
    """
    A rooted phylogenetic tree or network.

    Attributes
    ----------
    root         : Node   Root of the node graph.
    is_time_tree : bool   True when every node has a defined age, i.e. all
                          branch lengths are defined and the tree is more
                          than a lone node without a root edge.
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, root: Node) -> None:
        """
        Wrap the node graph reachable from *root* and compute node ages.

        Parameters
        ----------
        root : Node
            Root of the graph.  When *root* still has a parent (see
            ``get_subtree``) it is treated as a root all the same: its
            height is 0 and nothing above it is visited.
        """
        self.root: Node = root
        self.is_time_tree: bool = False

        self._node_list: Optional[List[Node]] = None
        self._node_id_map: Optional[Dict[int, Node]] = None
        self._label_node_map: Optional[Dict[str, Node]] = None
        self._leaf_list: Optional[List[Node]] = None
        self._recomb_edge_map: Optional[Dict[int, List[Node]]] = None

        self.compute_node_ages()

    def __repr__(self) -> str:
        return (
            f"Tree(n_nodes={self.n_nodes}, n_leaves={self.n_leaves}, "
            f"is_time_tree={self.is_time_tree})"
        )

    # ================================================================== #
    # Derived views                                                        #
    # ================================================================== #

    @property
    def node_list(self) -> List[Node]:
        """All nodes in preorder."""
        if self._node_list is None:
            self._node_list = self.root.apply_preorder(lambda node: node)
        return self._node_list

    @property
    def leaf_list(self) -> List[Node]:
        """Leaf nodes in preorder."""
        if self._leaf_list is None:
            self._leaf_list = self.root.apply_preorder(_leaf_or_none)
        return self._leaf_list

    @property
    def n_nodes(self) -> int:
        return len(self.node_list)

    @property
    def n_leaves(self) -> int:
        return len(self.leaf_list)

    def get_node(self, node_id: int) -> Optional[Node]:
        """Return the node with id *node_id*, or None."""
        if self._node_id_map is None:
            self._node_id_map = {node.id: node for node in self.node_list}
        return self._node_id_map.get(node_id)

    def get_node_by_label(self, label: str) -> Optional[Node]:
        """
        Return the leaf labelled *label*, or None.

        Only leaves are indexed.  An unlabelled leaf is indexed by its id
        written as a string; when several leaves share a label the last one
        in preorder wins.
        """
        if self._label_node_map is None:
            self._label_node_map = {}
            for node in self.leaf_list:
                key = node.label if node.label is not None else str(node.id)
                self._label_node_map[key] = node
        return self._label_node_map.get(label)

    def get_recomb_edge_map(self) -> Dict[int, List[Node]]:
        """
        Return the hybrid-edge map: hybrid id → ``[source, *destinations]``.

        Leaf hybrid nodes are destinations, the internal hybrid node is the
        source.  Groups are ordered by hybrid id.  A group whose id was only
        ever seen on leaves is returned as ``[dest, ...]`` (no source).

        Raises
        ------
        StructuralError
            If a source has no destination, or two internal nodes share a
            hybrid id.
        """
        if self._recomb_edge_map is None:
            sources: Dict[int, Node] = {}
            destinations: Dict[int, List[Node]] = {}

            for node in self.root.apply_preorder(_hybrid_or_none):
                if node.is_leaf():
                    destinations.setdefault(node.hybrid_id, []).append(node)
                elif node.hybrid_id in sources:
                    raise StructuralError(
                        f"Extended Newick error: hybrid id {node.hybrid_id} "
                        f"is carried by more than one internal node."
                    )
                else:
                    sources[node.hybrid_id] = node

            edge_map: Dict[int, List[Node]] = {}
            for hybrid_id in sorted(set(sources) | set(destinations)):
                if hybrid_id in sources:
                    if hybrid_id not in destinations:
                        raise StructuralError(
                            "Extended Newick error: hybrid nodes must come in "
                            "groups of 2 or more."
                        )
                    edge_map[hybrid_id] = [sources[hybrid_id]] + destinations[hybrid_id]
                else:
                    # Leaf-only reticulation markers are kept as they are.
                    edge_map[hybrid_id] = list(destinations[hybrid_id])

            self._recomb_edge_map = edge_map

        return self._recomb_edge_map

    def clear_caches(self) -> None:
        """Drop every cached derived view."""
        self._node_list = None
        self._node_id_map = None
        self._label_node_map = None
        self._leaf_list = None
        self._recomb_edge_map = None

    def reassign_node_ids(self) -> None:
        """Renumber all nodes 0..n-1 in preorder (invalidates the id map)."""
        for node_id, node in enumerate(self.node_list):
            node.id = node_id
        self._node_id_map = None

    # ================================================================== #
    # Ages and distances                                                   #
    # ================================================================== #

    def compute_node_ages(self) -> None:
        """
        Compute ``height`` (time before present) for every node.

        A preorder pass sets the root to 0 and every other node to its
        parent's height minus its branch length, or NaN when the branch
        length is undefined (NaN then propagates to the whole subtree).
        The minimum height is taken with NaN propagation; the tree is a time
        tree iff that minimum is a number and the tree is more than a lone
        root without a root edge.  Finally every height is shifted by the
        minimum so the youngest node sits at 0.
        """
        root = self.root

        def assign(node: Node) -> float:
            if node is root:
                node.height = 0.0
            elif node.branch_length is not None and node.parent.height is not None:
                node.height = node.parent.height - node.branch_length
            else:
                node.height = math.nan
            return node.height

        heights = np.asarray(root.apply_preorder(assign), dtype=np.float64)
        youngest = float(np.min(heights))

        self.is_time_tree = not math.isnan(youngest) and (
            heights.shape[0] > 1 or root.branch_length is not None
        )

        for node in self.node_list:
            if node.height is not None:
                node.height -= youngest

        log_time_tree_status(self.is_time_tree, heights.shape[0])

    def get_node_heights(self) -> np.ndarray:
        """Node heights as a float64 array in ``node_list`` order."""
        return np.array(
            [math.nan if n.height is None else n.height for n in self.node_list],
            dtype=np.float64,
        )

    def get_branch_lengths(self) -> np.ndarray:
        """Branch lengths as a float64 array in ``node_list`` order (NaN if undefined)."""
        return np.array(
            [
                math.nan if n.branch_length is None else n.branch_length
                for n in self.node_list
            ],
            dtype=np.float64,
        )

    def get_rtt_dist(self) -> np.ndarray:
        """
        Root-to-tip distance of every leaf, in ``leaf_list`` order.

        Undefined branch lengths count as zero.  Sets ``rtt_dist`` on every
        node as a side effect.
        """
        root = self.root

        def assign(node: Node) -> Optional[float]:
            if node is root:
                node.rtt_dist = 0.0
            else:
                length = node.branch_length if node.branch_length is not None else 0.0
                node.rtt_dist = node.parent.rtt_dist + length
            return node.rtt_dist if node.is_leaf() else None

        return np.asarray(root.apply_preorder(assign), dtype=np.float64)

    def get_total_branch_length(self) -> float:
        """Sum of all defined branch lengths (the root edge included)."""
        total = 0.0
        for node in self.node_list:
            if node.branch_length is not None:
                total += node.branch_length
        return total

    def get_tip_labels(self, node: Optional[Node] = None) -> List[str]:
        """
        Labels of the leaves below *node* (default: the whole tree), in
        preorder.  Unlabelled leaves are reported by their id.
        """
        leaves = self.leaf_list if node is None else node.apply_preorder(_leaf_or_none)
        return [leaf.label if leaf.label is not None else str(leaf.id) for leaf in leaves]

    # ================================================================== #
    # Queries                                                              #
    # ================================================================== #

    def get_subtree(self, node) -> "Tree":
        """
        Return a Tree rooted at *node*.

        The nodes are shared, not copied: the new tree is a view of the
        clade, and ``height`` values of its nodes are recomputed relative to
        it.

        Parameters
        ----------
        node : Node | int | str   The node, its id, or a leaf label.
        """
        return Tree(self._resolve_node(node))

    def get_mrca(self, nodes) -> Optional[Node]:
        """
        Most recent common ancestor of *nodes*.

        Parameters
        ----------
        nodes : sequence of (Node | int | str)

        Returns
        -------
        Node or None
            None for an empty sequence.  For a single node, its parent (the
            node itself if it is the root).  Otherwise the first node reached
            by all inputs in a level-synchronised walk towards the root, or
            None if the walk ends without one.

        Notes
        -----
        Each round moves every tracked node one step up; a node's visit
        counter grows by one per arrival, so inputs at different depths
        accumulate on their shared ancestors over several rounds.
        """
        resolved = [self._resolve_node(n) for n in nodes]
        n_inputs = len(resolved)
        if n_inputs == 0:
            return None
        if n_inputs == 1:
            node = resolved[0]
            return node.parent if node.parent is not None else node

        visit_counts: Dict[Node, int] = {}
        frontier = resolved
        while frontier:
            next_frontier = []
            for node in frontier:
                count = visit_counts.get(node, 0) + 1
                if count == n_inputs:
                    return node
                visit_counts[node] = count
                if node.parent is not None:
                    next_frontier.append(node.parent)
            frontier = next_frontier

        return None

    # ================================================================== #
    # Structural edits                                                     #
    # ================================================================== #

    def ladderise(self) -> None:
        """
        Order every node's children by increasing number of descendant tips.

        The sort is stable, so children with equal tip counts keep their
        relative order and applying ``ladderise`` twice changes nothing.
        """
        tip_counts: Dict[Node, int] = {}
        for node in reversed(self.node_list):
            if node.is_leaf():
                tip_counts[node] = 1
            else:
                tip_counts[node] = sum(tip_counts[c] for c in node.children)

        for node in self.node_list:
            node.children.sort(key=lambda child: tip_counts[child])

        self.clear_caches()

    def reroot(self, edge_base_node, prop: Optional[float] = None) -> None:
        """
        Move the root onto the edge between *edge_base_node* and its parent.

        Parameters
        ----------
        edge_base_node : Node | int | str
            Lower end of the new root edge (node, id or leaf label).  Must not
            be the root.
        prop : float, optional
            Fraction of the edge length kept on the *edge_base_node* side.
            Defaults to 0.5; values outside [0, 1] are treated as the default.

        Raises
        ------
        StructuralError
            If *edge_base_node* has no parent, the hybrid groups are invalid,
            the new root edge lies on a reticulation cycle, or a branch
            length or height needed to rebuild the network is missing.  The
            tree is restored to its previous state before this or any other
            error is raised.

        Algorithm
        ---------
        1. Snapshot the hybrid-edge map; it is read, never updated, below.
        2. Hang *edge_base_node* under a fresh root, splitting its branch
           length; the remainder is carried towards the old root.
        3. Walk upward from the old parent, reversing each edge and swapping
           the carried length into it.  Reaching a node a second time (a
           reticulation closes a cycle) adds a placeholder hybrid leaf
           instead: it shares the revisited node's hybrid id, or a newly
           minted lowest unused id that is also given to that node.
        4. A node that was a source in the snapshot loses its hybrid id and
           re-roots through each destination: the destination leaf is
           dropped and the walk restarts at its former parent, carrying the
           destination's branch length.
        5. An old root left with one child (and no hybrid id) is spliced
           out; its branch length is added to the child's.
        6. Caches are cleared, ages recomputed, ids reassigned in preorder.
        7. In each group with a source, every destination's branch length is
           shifted by ``dest.height - source.height`` so it ends at its
           source's height; ages are recomputed once more.
           Groups made only of leaves have no source and are left as they
           are; this includes the groups minted in step 3.
        """
        edge_base_node = self._resolve_node(edge_base_node)
        if edge_base_node.parent is None:
            raise StructuralError("Cannot reroot above a node without a parent.")

        saved = self._capture_state()
        try:
            self._reroot(edge_base_node, prop)
        except Exception:
            self._restore_state(saved)
            raise

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _reroot(self, edge_base_node: Node, prop: Optional[float]) -> None:
        """**Private.**  Body of ``reroot``; see its docstring for the steps."""
        # ---- 1. Snapshot of the hybrid groups ------------------------ #
        self._recomb_edge_map = None
        snapshot = self.get_recomb_edge_map()
        destinations_of: Dict[Node, List[Node]] = {
            group[0]: group[1:] for group in snapshot.values() if not group[0].is_leaf()
        }
        used_hybrid_ids = set(snapshot)

        # ---- 2. New root on the chosen edge -------------------------- #
        old_root = self.root
        new_root = Node()
        self.root = new_root

        edge_base_parent = edge_base_node.parent
        edge_base_parent.remove_child(edge_base_node)
        new_root.add_child(edge_base_node)

        carried = edge_base_node.branch_length
        if edge_base_node.branch_length is not None:
            if prop is not None and 0 <= prop <= 1:
                total = edge_base_node.branch_length
                edge_base_node.branch_length *= prop
                carried = total - edge_base_node.branch_length
            else:
                prop = None
                edge_base_node.branch_length /= 2
                carried = edge_base_node.branch_length

        # ---- 3./4. Reverse edges towards the old root ---------------- #
        # Work items: ("walk", node, prev, carried) reverses the edge above
        # *node*; ("detach", dest, dest_parent, source) drops a destination
        # and walks on from its former parent; ("reroute", source) expands
        # a source once the walk above it has finished.
        seen = set()
        n_synthesised = 0
        stack: list = [("walk", edge_base_parent, new_root, carried)]

        while stack:
            item = stack.pop()

            if item[0] == "reroute":
                source = item[1]
                dest_nodes = destinations_of[source]
                dest_parents = [dest.parent for dest in dest_nodes]
                # No longer a reticulation point once its edges are reversed.
                source.hybrid_id = None
                for dest, dest_parent in reversed(list(zip(dest_nodes, dest_parents))):
                    stack.append(("detach", dest, dest_parent, source))
                continue

            if item[0] == "detach":
                _, dest, dest_parent, source = item
                if dest_parent is not None:
                    dest_parent.remove_child(dest)
                stack.append(("walk", dest_parent, source, dest.branch_length))
                continue

            _, node, prev, carried = item
            if node is None:
                continue
            if node is new_root:
                raise StructuralError(
                    "Cannot reroot on an edge that lies on a reticulation cycle."
                )

            if node in seen:
                placeholder = Node()
                reused = node.hybrid_id is not None
                if reused:
                    placeholder.hybrid_id = node.hybrid_id
                else:
                    new_id = 0
                    while new_id in used_hybrid_ids:
                        new_id += 1
                    used_hybrid_ids.add(new_id)
                    node.hybrid_id = new_id
                    placeholder.hybrid_id = new_id
                placeholder.branch_length = carried
                prev.add_child(placeholder)
                n_synthesised += 1
                log_hybrid_synthesis(placeholder.hybrid_id, reused)
                continue
            seen.add(node)

            node_parent = node.parent
            if node_parent is not None:
                node_parent.remove_child(node)
            prev.add_child(node)
            node.branch_length, carried = carried, node.branch_length

            # The walk above *node* runs to completion before its
            # destinations are rerouted.
            if node in destinations_of:
                stack.append(("reroute", node))
            stack.append(("walk", node_parent, node, carried))

        # ---- 5. Splice out a degree-two old root --------------------- #
        spliced = False
        if len(old_root.children) == 1 and not old_root.is_hybrid():
            child = old_root.children[0]
            parent = old_root.parent
            if parent is None:
                raise StructuralError("Old root has a single child but no parent.")
            if child.branch_length is None and old_root.branch_length is None:
                merged = None
            elif child.branch_length is None or old_root.branch_length is None:
                raise StructuralError(
                    "Cannot merge the old root edge: branch length undefined."
                )
            else:
                merged = child.branch_length + old_root.branch_length
            parent.remove_child(old_root)
            old_root.remove_child(child)
            parent.add_child(child)
            child.branch_length = merged
            spliced = True

        # ---- 6. Refresh derived state -------------------------------- #
        self.clear_caches()
        self.compute_node_ages()
        self.reassign_node_ids()

        # ---- 7. Destinations end at their source's height ------------ #
        corrected = False
        for group in self.get_recomb_edge_map().values():
            src_node = group[0]
            if src_node.is_leaf():
                continue
            for dest_node in group[1:]:
                if dest_node.branch_length is None:
                    raise StructuralError(
                        f"Hybrid destination {dest_node!r} has no branch length."
                    )
                if math.isnan(dest_node.height) or math.isnan(src_node.height):
                    raise StructuralError(
                        f"Hybrid group {src_node.hybrid_id} has an undefined height."
                    )
                dest_node.branch_length += dest_node.height - src_node.height
                corrected = True
        if corrected:
            self.compute_node_ages()

        log_reroot_summary(self.n_nodes, n_synthesised, spliced, prop)

    def _capture_state(self) -> tuple:
        """
        **Private.**  Record everything ``_reroot`` may change so a failed
        reroot can be undone.
        """
        nodes = [
            (
                node,
                node.parent,
                list(node.children),
                node.branch_length,
                node.hybrid_id,
                node.id,
                node.height,
            )
            for node in self.node_list
        ]
        return self.root, self.is_time_tree, nodes

    def _restore_state(self, saved: tuple) -> None:
        """**Private.**  Undo a partial reroot from ``_capture_state`` output."""
        root, is_time_tree, nodes = saved
        for node, parent, children, branch_length, hybrid_id, node_id, height in nodes:
            node.parent = parent
            node.children = children
            node.branch_length = branch_length
            node.hybrid_id = hybrid_id
            node.id = node_id
            node.height = height
        self.root = root
        self.is_time_tree = is_time_tree
        self.clear_caches()
        logger.debug("Reroot failed; tree restored")

    def _resolve_node(self, node) -> Node:
        """
        **Private.**  Return the ``Node`` for *node*.

        ``Node`` instances are returned unchanged, integers are looked up as
        node ids and strings as leaf labels.

        Raises
        ------
        KeyError   if no node has that id or label.
        """
        if isinstance(node, Node):
            return node
        if isinstance(node, (int, np.integer)):
            found = self.get_node(int(node))
            if found is None:
                raise KeyError(f"No node with id {int(node)} found in tree.")
            return found
        found = self.get_node_by_label(node)
        if found is None:
            raise KeyError(f"No node with name '{node}' found in tree.")
        return found

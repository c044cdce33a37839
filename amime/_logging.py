"""
_logging.py
===========
Logging functions for amime.

All functions in this module have NO side effects except logging. They take
computed data as parameters and format/emit log messages.  Each function
logs through the logger of the module that owns the concern, so users can
silence one area (e.g. ``logging.getLogger('amime._readers')``) without
touching the others.
"""

import logging
from typing import Optional


_tree_logger = logging.getLogger("amime._tree")
_parser_logger = logging.getLogger("amime._parser")
_readers_logger = logging.getLogger("amime._readers")


# ============================================================================ #
# Reader / Parser Logging
# ============================================================================ #


def log_skipped_tree(index: int, reason: str, schema: str = "newick") -> None:
    """
    Emit one WARNING for a tree left out of a batch read.

    Parameters
    ----------
    index : int
        Position of the tree in the input (0-based).
    reason : str
        Message carried by the SkipTreeError.
    schema : str
        Input format name.
    """
    _readers_logger.warning("Skipping %s tree %d: %s", schema, index, reason)


def log_batch_summary(n_read: int, n_skipped: int, schema: str) -> None:
    """
    Log the outcome of a batch read at INFO level.

    Parameters
    ----------
    n_read : int
        Number of trees returned.
    n_skipped : int
        Number of trees omitted because of a skip signal.
    schema : str
        Input format name.
    """
    if n_skipped == 0:
        _readers_logger.info("Read %d tree(s) from %s input", n_read, schema)
    else:
        _readers_logger.info(
            "Read %d tree(s) from %s input (%d skipped)", n_read, schema, n_skipped
        )


def log_trailing_tokens(n_tokens: int, offset: int) -> None:
    """
    Warn that tokens after the root node were ignored.

    Parameters
    ----------
    n_tokens : int
        Number of unconsumed tokens.
    offset : int
        Source offset of the first unconsumed token.
    """
    _parser_logger.warning(
        "Ignoring %d token(s) after the end of the tree at string position %d",
        n_tokens,
        offset,
    )


# ============================================================================ #
# Tree Algorithm Logging
# ============================================================================ #


def log_time_tree_status(is_time_tree: bool, n_nodes: int) -> None:
    """Log at DEBUG level whether node ages admit a time-tree reading."""
    if is_time_tree:
        _tree_logger.debug("Node ages computed for %d nodes (time tree)", n_nodes)
    else:
        _tree_logger.debug(
            "Node ages computed for %d nodes; undefined branch lengths, "
            "not a time tree",
            n_nodes,
        )


def log_hybrid_synthesis(hybrid_id: int, reused: bool) -> None:
    """
    Log at DEBUG level the creation of a placeholder hybrid node during
    rerooting.

    Parameters
    ----------
    hybrid_id : int
        Id shared by the placeholder and the revisited node.
    reused : bool
        True if the revisited node already carried *hybrid_id*.
    """
    if reused:
        _tree_logger.debug("Reroot: closing cycle with existing hybrid id %d", hybrid_id)
    else:
        _tree_logger.debug("Reroot: minted hybrid id %d to close a cycle", hybrid_id)


def log_reroot_summary(
    n_nodes: int,
    n_synthesised: int,
    spliced_old_root: bool,
    prop: Optional[float],
) -> None:
    """
    Log the outcome of a reroot.

    Reported at INFO when the network topology changed beyond an edge
    reversal (hybrid placeholders were synthesised), DEBUG otherwise.

    Parameters
    ----------
    n_nodes : int
        Node count after rerooting.
    n_synthesised : int
        Number of placeholder hybrid nodes created.
    spliced_old_root : bool
        Whether the old root was removed as a degree-two node.
    prop : float or None
        Requested split proportion of the root edge.
    """
    split = "0.5 (default)" if prop is None else f"{prop:g}"
    if n_synthesised > 0:
        _tree_logger.info(
            "Rerooted network: %d nodes, %d hybrid placeholder(s) synthesised, "
            "root edge split at %s",
            n_nodes,
            n_synthesised,
            split,
        )
    else:
        _tree_logger.debug(
            "Rerooted tree: %d nodes, old root %s, root edge split at %s",
            n_nodes,
            "spliced out" if spliced_old_root else "kept",
            split,
        )

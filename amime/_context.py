"""
_context.py
===========
Context managers and module-level options for amime.

Provides context managers for temporarily changing state:
- Logging control (suppress/change levels of the amime loggers)
- Reader options (rooting policy, parse-error excerpt width)

All context managers restore state on exit, even if exceptions occur.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict


# Module-level reader options.  Read through get_reading_option(); change
# temporarily with reading_options().
_DEFAULT_OPTIONS: Dict[str, Any] = {
    # Raise SkipTreeError for trees explicitly marked unrooted ([&U], or
    # rooted="false" in PhyloXML).
    "require_rooted": True,
    # Characters shown on each side of the failure point in ParseError.
    "context_flank": 15,
}
_options: Dict[str, Any] = dict(_DEFAULT_OPTIONS)

# Loggers silenced by quiet().
_AMIME_LOGGERS = (
    "amime._lexer",
    "amime._parser",
    "amime._tree",
    "amime._readers",
    "amime._writer",
)


# ============================================================================ #
# Logging Context Managers
# ============================================================================ #


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Temporarily change a logger's level.

    Parameters
    ----------
    logger_name : str
        Name of the logger to suppress (e.g., 'amime._readers').
    level : int, default logging.CRITICAL
        Temporary logging level.

    Yields
    ------
    None

    Examples
    --------
    >>> # Hide per-tree skip warnings while loading a large file
    >>> with suppress_logger('amime._readers'):
    ...     trees = read_trees_from_newick(text)

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
    Temporarily suppress all amime logging.

    Parameters
    ----------
    level : int, default logging.CRITICAL
        Temporary logging level applied to every amime logger.

    Examples
    --------
    >>> with quiet():
    ...     tree.reroot(node)

    >>> # Show only warnings
    >>> with quiet(logging.WARNING):
    ...     trees = read(text, schema='nexus')
    """
    loggers = [logging.getLogger(name) for name in _AMIME_LOGGERS]
    original_levels = [lg.level for lg in loggers]

    try:
        for lg in loggers:
            lg.setLevel(level)
        yield
    finally:
        for lg, original in zip(loggers, original_levels):
            lg.setLevel(original)


# ============================================================================ #
# Reader Option Context Managers
# ============================================================================ #


@contextmanager
def reading_options(**options):
    """
    Temporarily override reader options.

    Parameters
    ----------
    require_rooted : bool
        When True (default), trees explicitly marked as unrooted raise
        ``SkipTreeError`` and are left out of batch results.
    context_flank : int
        Number of characters of source text shown on each side of the
        failure point in ``ParseError`` messages (default 15).

    Raises
    ------
    ValueError
        If an unknown option name is given, or ``context_flank`` is negative.

    Examples
    --------
    >>> with reading_options(require_rooted=False):
    ...     trees = read_trees_from_nexus(text)   # keeps [&U] trees

    Notes
    -----
    **Not thread-safe**: this modifies module-level state.
    """
    global _options

    unknown = sorted(set(options) - set(_DEFAULT_OPTIONS))
    if unknown:
        raise ValueError(
            f"Unknown reading option(s): {', '.join(unknown)}. "
            f"Valid options: {', '.join(sorted(_DEFAULT_OPTIONS))}"
        )
    if "context_flank" in options and int(options["context_flank"]) < 0:
        raise ValueError("context_flank must be non-negative.")

    original_options = _options

    try:
        _options = {**_options, **options}
        yield
    finally:
        _options = original_options


def get_reading_option(name: str) -> Any:
    """
    Return the current value of reader option *name*.

    Raises
    ------
    KeyError   if *name* is not a reader option.
    """
    return _options[name]

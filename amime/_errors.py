"""
_errors.py
==========
Exception hierarchy shared by the lexer, the parser, the format readers and
the tree algorithms.

    AmimeError
    ├── NewickError (also a ValueError)
    │   ├── LexError          no lexer rule matches a character
    │   └── ParseError        the token stream violates the grammar
    ├── SkipTreeError         policy signal: omit this tree from a batch
    └── StructuralError       graph invariant or algorithm precondition broken
                              (also a ValueError)

Batch readers catch ``SkipTreeError`` and continue; every other error
propagates to the caller.
"""

from typing import Optional


class AmimeError(Exception):
    """Base class for every error raised by amime."""


class NewickError(AmimeError, ValueError):
    """Malformed input text."""


class LexError(NewickError):
    """
    Raised when a character matches no lexer rule in the current mode.

    Attributes
    ----------
    character : str
        The offending character.
    offset : int
        Its offset in the input text.
    """

    def __init__(self, character: str, offset: int) -> None:
        self.character = character
        self.offset = offset
        super().__init__(f"Error reading character {character!r} at position {offset}")


class ParseError(NewickError):
    """
    Raised when the token stream does not follow the extended-Newick grammar.

    Attributes
    ----------
    expected : str or None
        Token kind the parser required, when the failure is a mismatch.
    found : str or None
        Token kind actually present (None at end of input).
    offset : int or None
        Offset of the failure point in the source text.
    context : tuple[str, str, str] or None
        ``(left, at, right)`` excerpt around the failure offset.
    """

    def __init__(
        self,
        message: str,
        expected: Optional[str] = None,
        found: Optional[str] = None,
        offset: Optional[int] = None,
        context: Optional[tuple] = None,
    ) -> None:
        self.expected = expected
        self.found = found
        self.offset = offset
        self.context = context
        if context is not None:
            left, at, right = context
            message += f'\nError context: "... {left}>{at}<{right} ..."'
        super().__init__(message)


class SkipTreeError(AmimeError):
    """
    Not a defect of the input as such: the tree should be left out of a
    batch result (e.g. an explicitly unrooted tree when rooted trees are
    required).
    """


class StructuralError(AmimeError, ValueError):
    """A graph-level invariant is violated or an algorithm precondition fails."""

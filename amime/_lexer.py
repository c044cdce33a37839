"""
_lexer.py
=========
Two-mode tokenizer for extended Newick.

Modes
-----
DEFAULT_MODE
    Topology, labels, hybrid markers and branch lengths.  ``{``, ``}`` and
    ``=`` may appear inside bare labels.
ANNOTATION_MODE
    Entered on ``[&`` and left on ``]``.  Here ``,``, ``{``, ``}`` and ``=``
    are always structural, while ``(``, ``)``, ``:``, ``#`` and spaces may
    appear inside bare values (e.g. ``[&date=2020-01-01 12:00]``).

Matching
--------
At each position every rule that applies to the current mode is tried; the
longest match wins and ties go to the rule listed first in ``_RULES``.  A
position no rule matches raises ``LexError``.

Token values
------------
Quoted strings (``"..."`` or ``'...'``) are returned without their quotes,
with doubled quotes collapsed to one.  Unquoted strings have trailing
whitespace trimmed.  All other tokens carry their literal text.
"""

import re
from typing import Iterator, List, NamedTuple

from amime._errors import LexError


# Token kinds
OPENP = "OPENP"
CLOSEP = "CLOSEP"
COLON = "COLON"
COMMA = "COMMA"
SEMI = "SEMI"
OPENA = "OPENA"
CLOSEA = "CLOSEA"
OPENV = "OPENV"
CLOSEV = "CLOSEV"
EQ = "EQ"
HASH = "HASH"
STRING = "STRING"

DEFAULT_MODE = 0
ANNOTATION_MODE = 1


class Token(NamedTuple):
    """One lexed token: its kind, its value and its offset in the source."""

    kind: str
    text: str
    offset: int


# (kind, pattern, mode, quoted); mode None means the rule applies in both
# modes.
_RULES = (
    (OPENP, re.compile(r"\("), None, False),
    (CLOSEP, re.compile(r"\)"), None, False),
    (COLON, re.compile(r":"), None, False),
    (COMMA, re.compile(r","), None, False),
    (SEMI, re.compile(r";"), None, False),
    (OPENA, re.compile(r"\[&"), None, False),
    (CLOSEA, re.compile(r"\]"), None, False),
    (OPENV, re.compile(r"\{"), None, False),
    (CLOSEV, re.compile(r"\}"), None, False),
    (EQ, re.compile(r"="), None, False),
    (HASH, re.compile(r"#"), None, False),
    (STRING, re.compile(r'"(?:[^"]|"")+"'), None, True),
    (STRING, re.compile(r"'(?:[^']|'')+'"), None, True),
    (STRING, re.compile(r"[^,():;\[\]#]+(?:\([^)]*\))?"), DEFAULT_MODE, False),
    (STRING, re.compile(r"[^,\[\]{}=]+"), ANNOTATION_MODE, False),
)


def _string_value(raw: str, quoted: bool) -> str:
    """Unquote a quoted string, or trim trailing whitespace from a bare one."""
    if quoted:
        quote = raw[0]
        return raw[1:-1].replace(quote + quote, quote)
    return raw.rstrip()


def iter_tokens(text: str) -> Iterator[Token]:
    """
    Lazily tokenize *text*.

    Parameters
    ----------
    text : str
        Extended-Newick source.

    Yields
    ------
    Token
        ``(kind, text, offset)`` in source order.

    Raises
    ------
    LexError
        If a character matches no rule in the current mode.
    """
    idx = 0
    n_chars = len(text)
    mode = DEFAULT_MODE

    while idx < n_chars:
        if text[idx].isspace():
            idx += 1
            continue

        best_kind = None
        best_raw = ""
        best_quoted = False
        for kind, pattern, rule_mode, quoted in _RULES:
            if rule_mode is not None and rule_mode != mode:
                continue
            match = pattern.match(text, idx)
            if match is not None and len(match.group()) > len(best_raw):
                best_kind = kind
                best_raw = match.group()
                best_quoted = quoted

        if best_kind is None:
            raise LexError(text[idx], idx)

        if best_kind == STRING:
            value = _string_value(best_raw, best_quoted)
        else:
            value = best_raw
        yield Token(best_kind, value, idx)

        if best_kind == OPENA:
            mode = ANNOTATION_MODE
        elif best_kind == CLOSEA:
            mode = DEFAULT_MODE

        idx += len(best_raw)


def tokenize(text: str) -> List[Token]:
    """Return the full token list for *text* (see ``iter_tokens``)."""
    return list(iter_tokens(text))

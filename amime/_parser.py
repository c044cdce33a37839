"""
_parser.py
==========
Recursive-descent parser for extended Newick.

Grammar
-------
One method per nonterminal, all sharing a single token cursor::

    tree      := node [';']
    node      := [children] [label] [hybrid] [annot] [branch]
    children  := '(' node (',' node)* ')'
    label     := STRING
    hybrid    := '#' STRING                   integer id, optional tag ("H1")
    annot     := '[&' keyval (',' keyval)* ']'
    keyval    := STRING '=' value
    value     := STRING | '{' value (',' value)* '}' | <empty>
    branch    := ':' STRING (':' [STRING])* [annot]

Node ids are handed out in the order ``node`` is entered, i.e. preorder,
left to right.  The colon-separated suffixes after a branch length (support
values in some dialects) are consumed and discarded.  A ',' after the top
level node means several roots and is rejected.

Errors
------
``ParseError`` carries the expected and found token kinds and an excerpt of
the source (``context_flank`` characters each side, see
``amime.reading_options``).
"""

import logging
import math
import re
from typing import List, Optional

from amime._context import get_reading_option
from amime._errors import ParseError
from amime._lexer import (
    CLOSEA,
    CLOSEP,
    CLOSEV,
    COLON,
    COMMA,
    EQ,
    HASH,
    OPENA,
    OPENP,
    OPENV,
    SEMI,
    STRING,
    Token,
    tokenize,
)
from amime._logging import log_trailing_tokens
from amime._node import Node
from amime._utils import is_annotation_value

logger = logging.getLogger(__name__)

_HYBRID_ID = re.compile(r"^([A-Za-z_]*)(-?\d+)$")


class NewickParser:
    """
    Builds a node graph from the token list of one extended-Newick tree.

    Parameters
    ----------
    tokens : list[Token]
        Output of ``tokenize(text)``.
    text : str
        The source text, used for error excerpts.
    """

    def __init__(self, tokens: List[Token], text: str) -> None:
        self.tokens = tokens
        self.text = text
        self.idx = 0
        self.next_id = 0

    # ================================================================== #
    # Entry point                                                          #
    # ================================================================== #

    def parse(self) -> Node:
        """
        Parse the token list and return the root node.

        Raises
        ------
        ParseError   on any grammar violation, an empty token list, or
                     several root nodes.
        """
        if not self.tokens:
            raise ParseError("Empty Newick string.")

        root = self._rule_node(None)

        if not self._accept(SEMI) and self._accept(COMMA):
            self.idx -= 1
            raise ParseError(
                "Tree/network with multiple roots found.",
                found=COMMA,
                offset=self.tokens[self.idx].offset,
                context=self._context(),
            )

        if self.idx < len(self.tokens):
            log_trailing_tokens(len(self.tokens) - self.idx, self.tokens[self.idx].offset)

        logger.debug("Parsed %d nodes", self.next_id)
        return root

    # ================================================================== #
    # Cursor helpers                                                       #
    # ================================================================== #

    def _accept(self, kind: str, mandatory: bool = False) -> bool:
        """
        **Private.**  Consume the current token if it is of *kind*.

        Returns True on success.  On mismatch returns False, or raises
        ``ParseError`` when *mandatory* is set.
        """
        if self.idx < len(self.tokens) and self.tokens[self.idx].kind == kind:
            self.idx += 1
            return True
        if not mandatory:
            return False
        if self.idx < len(self.tokens):
            tok = self.tokens[self.idx]
            raise ParseError(
                f"Expected token {kind} but found {tok.kind} ({tok.text!r}) "
                f"at string position {tok.offset}.",
                expected=kind,
                found=tok.kind,
                offset=tok.offset,
                context=self._context(),
            )
        raise ParseError(
            f"Newick string terminated early. Expected token {kind}.",
            expected=kind,
            offset=len(self.text),
        )

    def _previous(self) -> Token:
        return self.tokens[self.idx - 1]

    def _context(self, idx: Optional[int] = None) -> tuple:
        """
        **Private.**  Excerpt ``(left, at, right)`` of the source around the
        token at *idx* (default: the current token).
        """
        flank = int(get_reading_option("context_flank"))
        str_idx = self.tokens[self.idx if idx is None else idx].offset
        start = max(0, str_idx - flank)
        stop = min(len(self.text), str_idx + flank)
        return (
            self.text[start:str_idx],
            self.text[str_idx:str_idx + 1],
            self.text[str_idx + 1:stop],
        )

    # ================================================================== #
    # Grammar rules                                                        #
    # ================================================================== #

    def _rule_node(self, parent: Optional[Node]) -> Node:
        node = Node(self.next_id)
        self.next_id += 1
        if parent is not None:
            parent.add_child(node)

        self._rule_children(node)
        self._rule_label(node)
        self._rule_hybrid(node)
        self._rule_annotation(node)
        self._rule_branch_length(node)

        return node

    def _rule_children(self, node: Node) -> None:
        if self._accept(OPENP):
            self._rule_node(node)
            while self._accept(COMMA):
                self._rule_node(node)
            self._accept(CLOSEP, mandatory=True)

    def _rule_label(self, node: Node) -> None:
        if self._accept(STRING):
            node.label = self._previous().text

    def _rule_hybrid(self, node: Node) -> None:
        if self._accept(HASH):
            self._accept(STRING, mandatory=True)
            tok = self._previous()
            match = _HYBRID_ID.match(tok.text)
            if match is None:
                raise ParseError(
                    f"Expected integer hybrid id. Found {tok.text!r} instead.",
                    expected="integer",
                    found=STRING,
                    offset=tok.offset,
                    context=self._context(self.idx - 1),
                )
            node.hybrid_id = int(match.group(2))

    def _rule_annotation(self, node: Node) -> None:
        if self._accept(OPENA):
            self._rule_key_value(node)
            while self._accept(COMMA):
                self._rule_key_value(node)
            self._accept(CLOSEA, mandatory=True)

    def _rule_key_value(self, node: Node) -> None:
        self._accept(STRING, mandatory=True)
        key = self._previous().text
        self._accept(EQ, mandatory=True)
        value = self._rule_value()
        # Anything other than str / None / nested lists is dropped.
        if is_annotation_value(value):
            node.annotation[key] = value

    def _rule_value(self):
        if self._accept(STRING):
            return self._previous().text
        if self._accept(OPENV):
            values = [self._rule_value()]
            while self._accept(COMMA):
                values.append(self._rule_value())
            self._accept(CLOSEV, mandatory=True)
            return values
        return None

    def _rule_branch_length(self, node: Node) -> None:
        if self._accept(COLON):
            self._accept(STRING, mandatory=True)
            tok = self._previous()
            try:
                length = float(tok.text)
            except ValueError:
                length = math.nan
            if math.isnan(length):
                raise ParseError(
                    f"Expected numerical branch length. Found {tok.text!r} instead.",
                    expected="number",
                    found=STRING,
                    offset=tok.offset,
                    context=self._context(self.idx - 1),
                )
            node.branch_length = length

            # Further ':'-separated fields are discarded.
            while self._accept(COLON):
                self._accept(STRING)

            self._rule_annotation(node)


def parse_newick(text: str) -> Node:
    """
    Lex and parse one extended-Newick tree.

    Parameters
    ----------
    text : str
        A single tree (trailing ';' optional).

    Returns
    -------
    Node
        Root of the node graph; ids assigned 0..n-1 in preorder.

    Raises
    ------
    LexError, ParseError
    """
    return NewickParser(tokenize(text), text).parse()

"""
tests/test_parser.py
====================
Pytest test suite for the recursive-descent extended-Newick parser.

Node ids are handed out in preorder, so for ``((A:1,(B:1)#1:1):1,(C:1,#1:1):1)``::

    root=0  (A,(B)#1)=1  A=2  (B)#1=3  B=4  (C,#1)=5  C=6  #1=7
"""

import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from amime._context import reading_options
from amime._errors import LexError, ParseError
from amime._node import Node
from amime._parser import NewickParser, parse_newick
from amime._lexer import tokenize


def preorder(root: Node) -> list:
    return root.apply_preorder(lambda node: node)


# ======================================================================== #
# 1. Topology and ids                                                       #
# ======================================================================== #


class TestTopology:
    def test_single_leaf(self):
        root = parse_newick("A;")
        assert root.label == "A"
        assert root.children == []
        assert root.id == 0

    def test_children_order_and_parents(self):
        root = parse_newick("(A,B,C);")
        assert [c.label for c in root.children] == ["A", "B", "C"]
        assert all(c.parent is root for c in root.children)
        assert root.parent is None

    def test_ids_are_preorder(self):
        root = parse_newick("((A:1,(B:1)#1:1):1,(C:1,#1:1):1);")
        nodes = preorder(root)
        assert [n.id for n in nodes] == list(range(8))
        assert [n.label for n in nodes] == [None, None, "A", None, "B", None, "C", None]

    def test_semicolon_optional(self):
        assert parse_newick("(A,B)").children[1].label == "B"

    def test_internal_label(self):
        root = parse_newick("((A,B)AB,C)root;")
        assert root.label == "root"
        assert root.children[0].label == "AB"

    def test_empty_leaves(self):
        root = parse_newick("(,);")
        assert len(root.children) == 2
        assert all(c.label is None and c.is_leaf() for c in root.children)

    def test_deep_nesting(self):
        depth = 200
        root = parse_newick("(" * depth + "A" + ")" * depth + ";")
        assert len(preorder(root)) == depth + 1


# ======================================================================== #
# 2. Branch lengths                                                         #
# ======================================================================== #


class TestBranchLengths:
    def test_lengths_parsed_as_float(self):
        root = parse_newick("(A:1,B:2.5e-1):0.5;")
        assert root.branch_length == 0.5
        assert [c.branch_length for c in root.children] == [1.0, 0.25]

    def test_missing_length_is_none(self):
        root = parse_newick("(A,B:0);")
        assert root.children[0].branch_length is None
        assert root.children[1].branch_length == 0.0

    def test_extra_colon_fields_discarded(self):
        root = parse_newick("(A:1:95:0.3,B:2);")
        assert root.children[0].branch_length == 1.0
        assert root.children[1].branch_length == 2.0

    def test_annotation_after_length(self):
        root = parse_newick("(A:1[&rate=0.5],B);")
        assert root.children[0].annotation == {"rate": "0.5"}

    def test_non_numeric_length(self):
        with pytest.raises(ParseError) as excinfo:
            parse_newick("(A:x,B);")
        assert excinfo.value.expected == "number"
        assert excinfo.value.offset == 3

    def test_nan_length_rejected(self):
        with pytest.raises(ParseError):
            parse_newick("(A:nan,B);")


# ======================================================================== #
# 3. Hybrid ids                                                             #
# ======================================================================== #


class TestHybrids:
    def test_numeric_hybrid_id(self):
        root = parse_newick("((A)#3,#3);")
        assert root.children[0].hybrid_id == 3
        assert root.children[1].hybrid_id == 3
        assert root.children[1].label is None

    def test_tagged_hybrid_id(self):
        root = parse_newick("((A)X#H12,#LGT12);")
        source, dest = root.children
        assert source.label == "X"
        assert source.hybrid_id == 12
        assert dest.hybrid_id == 12

    def test_non_integer_hybrid_id(self):
        with pytest.raises(ParseError, match="integer hybrid id"):
            parse_newick("((A)#1x,#1);")

    def test_hash_without_id(self):
        with pytest.raises(ParseError) as excinfo:
            parse_newick("((A)#,B);")
        assert excinfo.value.expected == "STRING"
        assert excinfo.value.found == "COMMA"


# ======================================================================== #
# 4. Annotations                                                            #
# ======================================================================== #


class TestAnnotations:
    def test_key_values(self):
        root = parse_newick("A[&color=red,height=1.5];")
        assert root.annotation == {"color": "red", "height": "1.5"}

    def test_empty_value_is_none(self):
        root = parse_newick("A[&flag=];")
        assert root.annotation == {"flag": None}

    def test_vector_values(self):
        root = parse_newick("A[&range={1,2},nested={a,{b,c}}];")
        assert root.annotation["range"] == ["1", "2"]
        assert root.annotation["nested"] == ["a", ["b", "c"]]

    def test_annotation_before_length(self):
        root = parse_newick("(A[&k=v]:2,B);")
        leaf = root.children[0]
        assert leaf.annotation == {"k": "v"}
        assert leaf.branch_length == 2.0

    def test_missing_equals(self):
        with pytest.raises(ParseError) as excinfo:
            parse_newick("A[&k];")
        assert excinfo.value.expected == "EQ"

    def test_unclosed_annotation(self):
        with pytest.raises(ParseError, match="terminated early"):
            parse_newick("A[&k=v")


# ======================================================================== #
# 5. Errors and trailing input                                              #
# ======================================================================== #


class TestParseErrors:
    def test_empty_string(self):
        with pytest.raises(ParseError, match="Empty"):
            parse_newick("")

    def test_multiple_roots(self):
        with pytest.raises(ParseError, match="multiple roots") as excinfo:
            parse_newick("(A,B),(C,D);")
        assert excinfo.value.offset == 5

    def test_unbalanced_parentheses(self):
        with pytest.raises(ParseError) as excinfo:
            parse_newick("((A,B);")
        assert excinfo.value.expected == "CLOSEP"
        assert excinfo.value.found == "SEMI"

    def test_error_context_excerpt(self):
        text = "(Alpha:1,Beta:2,Gamma:3,Delta:x,Epsilon:5);"
        with pytest.raises(ParseError) as excinfo:
            parse_newick(text)
        left, at, right = excinfo.value.context
        assert at == "x"
        assert len(left) == 15
        assert text.index("x") == excinfo.value.offset
        assert 'Error context: "...' in str(excinfo.value)

    def test_context_flank_option(self):
        with reading_options(context_flank=3):
            with pytest.raises(ParseError) as excinfo:
                parse_newick("(Alpha:1,Beta:x);")
        left, at, right = excinfo.value.context
        assert left == "ta:"
        assert at == "x"
        assert right == ");"

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_newick("(A,B")

    def test_lex_error_propagates(self):
        with pytest.raises(LexError):
            parse_newick("(A,B)[comment];")

    def test_trailing_tokens_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="amime._parser"):
            root = parse_newick("(A,B);(C,D);")
        assert [c.label for c in root.children] == ["A", "B"]
        assert "Ignoring 6 token(s)" in caplog.text

    def test_parser_object_counts_nodes(self):
        text = "((A,B),C);"
        parser = NewickParser(tokenize(text), text)
        parser.parse()
        assert parser.next_id == 5
        assert parser.idx == len(parser.tokens)

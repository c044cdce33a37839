"""
tests/test_readers.py
=====================
Pytest test suite for the Newick, Nexus, PhyloXML and NeXML readers and the
``read`` dispatcher.

The three-leaf topology ``(A:1,(B:1,C:1):1)`` is written out in every format
below; each reader must produce a graph that serialises to the same string.
"""

import logging
import os
import sys

import pytest

_TREES_DIR = os.path.join(os.path.dirname(__file__), "trees")

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from amime._context import reading_options
from amime._errors import LexError, ParseError, SkipTreeError, StructuralError
from amime._readers import (
    read,
    read_newick,
    read_nexml,
    read_phyloxml,
    read_trees_from_newick,
    read_trees_from_nexml,
    read_trees_from_nexus,
    read_trees_from_phyloxml,
)
from amime._writer import write_newick


THREE_LEAF = "(A:1,(B:1,C:1):1):0.0;"

PHYLOXML_THREE_LEAF = """<phyloxml xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xmlns="http://www.phyloxml.org" xsi:schemaLocation="http://www.phyloxml.org http://www.phyloxml.org/1.10/phyloxml.xsd">
<phylogeny rooted="true">
  <clade>
      <branch_length>1</branch_length>
      <name>A</name>
  </clade>
  <clade>
      <branch_length>1</branch_length>
      <clade>
          <branch_length>1</branch_length>
          <name>B</name>
      </clade>
      <clade>
          <branch_length>1</branch_length>
          <name>C</name>
      </clade>
  </clade>
</phylogeny>
</phyloxml>"""

NEXML_THREE_LEAF = """<?xml version="1.0" encoding="UTF-8"?>
<nexml xmlns="http://www.nexml.org/2009" xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" version="0.9">
    <otus id="otu_set">
        <otu id="A" label="A"/>
        <otu id="B" label="B"/>
        <otu id="C" label="C"/>
    </otus>
    <trees id="tree_set" otus="otu_set">
        <tree id="tree1" label="sample_tree">
            <node id="node1" root="true"/>
            <node id="node2" label="A" otu="A"/>
            <node id="node3" />
            <node id="node4" label="B" otu="B"/>
            <node id="node5" label="C" otu="C"/>

            <edge id="edge1" source="node1" target="node2" length="1"/>
            <edge id="edge2" source="node1" target="node3" length="1"/>
            <edge id="edge3" source="node3" target="node4" length="1"/>
            <edge id="edge4" source="node3" target="node5" length="1"/>
        </tree>
    </trees>
</nexml>"""


def read_fixture(filename: str) -> str:
    with open(os.path.join(_TREES_DIR, filename)) as fh:
        return fh.read()


# ======================================================================== #
# 1. Newick                                                                 #
# ======================================================================== #


class TestNewick:
    def test_zero_root_length_normalised(self):
        tree = read_newick(THREE_LEAF)
        assert tree.root.branch_length is None
        assert tree.is_time_tree

    def test_nonzero_root_length_kept(self):
        assert read_newick("(A:1,B:1):0.5;").root.branch_length == 0.5

    def test_rooted_comment(self):
        tree = read_newick("[&R] (A:1,B:1);")
        assert tree.get_tip_labels() == ["A", "B"]

    def test_unrooted_comment_skips(self):
        with pytest.raises(SkipTreeError, match="Unrooted"):
            read_newick("[&U] (A:1,B:1);")

    def test_unrooted_allowed_by_option(self):
        with reading_options(require_rooted=False):
            tree = read_newick("[&u](A:1,B:1);")
        assert tree.n_leaves == 2

    def test_batch(self):
        trees = read_trees_from_newick("(A,B);\n(C,D);  \n\n(E,F)")
        assert [t.get_tip_labels() for t in trees] == [["A", "B"], ["C", "D"], ["E", "F"]]

    def test_batch_skips_unrooted_and_logs(self, caplog):
        with caplog.at_level(logging.INFO, logger="amime._readers"):
            trees = read_trees_from_newick(read_fixture("forest.trees"))
        assert len(trees) == 2
        assert trees[1].get_tip_labels() == ["B", "C", "A"]
        assert "Skipping newick tree 1: Unrooted tree." in caplog.text
        assert "Read 2 tree(s) from newick input (1 skipped)" in caplog.text
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1

    def test_batch_propagates_other_errors(self):
        with pytest.raises(ParseError):
            read_trees_from_newick("(A,B);\n(C,D;\n")

    def test_batch_propagates_lex_errors(self):
        with pytest.raises(LexError):
            read_trees_from_newick("(A,B);\n(C,D)[x];\n")

    def test_empty_batch(self):
        assert read_trees_from_newick("  \n") == []


# ======================================================================== #
# 2. Nexus                                                                  #
# ======================================================================== #


class TestNexus:
    def test_translate_and_skip(self):
        trees = read_trees_from_nexus(read_fixture("sample.nex"))
        assert len(trees) == 2
        assert trees[0].get_tip_labels() == ["Alpha", "Beta", "Gamma"]
        assert trees[1].get_tip_labels() == ["Gamma", "Alpha", "Beta"]

    def test_translated_labels_are_indexed(self):
        tree = read_trees_from_nexus(read_fixture("sample.nex"))[0]
        assert tree.get_node_by_label("Beta") is not None
        assert tree.get_node_by_label("2") is None

    def test_unrooted_kept_by_option(self):
        with reading_options(require_rooted=False):
            trees = read_trees_from_nexus(read_fixture("sample.nex"))
        assert len(trees) == 3

    def test_without_translate(self):
        text = "#NEXUS\nbegin trees;\n  tree t1 = (A:1,(B:1,C:1):1);\nend;\n"
        trees = read_trees_from_nexus(text)
        assert write_newick(trees[0]) == THREE_LEAF

    def test_no_trees_block(self):
        with pytest.raises(ParseError, match="No trees block"):
            read_trees_from_nexus("#NEXUS\nbegin taxa;\nend;\n")

    def test_malformed_translate(self):
        text = "#NEXUS\nbegin trees;\ntranslate 1 A, 2;\ntree t = (1,2);\nend;\n"
        with pytest.raises(ParseError, match="translate"):
            read_trees_from_nexus(text)


# ======================================================================== #
# 3. PhyloXML                                                               #
# ======================================================================== #


class TestPhyloXML:
    def test_three_leaf_equivalence(self):
        assert write_newick(read_phyloxml(PHYLOXML_THREE_LEAF)) == THREE_LEAF

    def test_ids_preorder(self):
        tree = read_phyloxml(PHYLOXML_THREE_LEAF)
        assert [n.id for n in tree.node_list] == list(range(5))

    def test_annotations(self):
        trees = read_trees_from_phyloxml(read_fixture("sample.phyloxml"))
        tree = trees[0]
        a = tree.get_node_by_label("A")
        assert a.annotation == {
            "taxonomy_scientific_name": "Apis mellifera",
            "taxonomy_rank": "species",
            "ncbi:host": "Plant",
        }
        assert tree.get_node(2).annotation == {"confidence_bootstrap": "95"}
        assert tree.get_node_by_label("C").annotation == {"sequence_symbol": "cC"}

    def test_branch_length_attribute_and_element(self):
        tree = read_trees_from_phyloxml(read_fixture("sample.phyloxml"))[0]
        assert tree.root.label == "annotated"
        assert write_newick(tree, annotate=False) == (
            "(A:0.5,(B:0.25,C:0.75):0.25)annotated:0.0;"
        )

    def test_unrooted_phylogeny_skipped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="amime._readers"):
            trees = read_trees_from_phyloxml(read_fixture("sample.phyloxml"))
        assert len(trees) == 1
        assert "Skipping phyloxml tree 1" in caplog.text

    def test_single_reader_needs_one_phylogeny(self):
        with pytest.raises(ParseError, match="Multiple phylogeny"):
            read_phyloxml(read_fixture("sample.phyloxml"))
        with pytest.raises(ParseError, match="No phylogeny"):
            read_phyloxml("<phyloxml/>")

    def test_malformed_xml(self):
        with pytest.raises(ParseError, match="Malformed PhyloXML"):
            read_phyloxml("<phyloxml><phylogeny></phyloxml>")

    def test_bad_branch_length(self):
        text = "<phyloxml><phylogeny><clade branch_length='x'/></phylogeny></phyloxml>"
        with pytest.raises(ParseError, match="numerical branch length"):
            read_phyloxml(text)


# ======================================================================== #
# 4. NeXML                                                                  #
# ======================================================================== #


class TestNeXML:
    def test_three_leaf_equivalence(self):
        assert write_newick(read_nexml(NEXML_THREE_LEAF)) == THREE_LEAF

    def test_otu_labels_rootedge_and_missing_lengths(self):
        trees = read_trees_from_nexml(read_fixture("sample.nexml"))
        assert [write_newick(t) for t in trees] == [
            "(Alpha:2,(Beta:1,gamma_node:1):1):0.5;",
            "(Alpha,Beta):0.0;",
        ]
        assert trees[0].is_time_tree
        assert not trees[1].is_time_tree

    def test_ids_preorder(self):
        tree = read_trees_from_nexml(read_fixture("sample.nexml"))[0]
        assert [n.id for n in tree.node_list] == list(range(5))

    def test_single_reader_needs_one_tree(self):
        with pytest.raises(ParseError, match="Multiple tree"):
            read_nexml(read_fixture("sample.nexml"))

    def test_two_roots(self):
        text = (
            "<nexml><trees><tree id='t'>"
            "<node id='a'/><node id='b'/>"
            "</tree></trees></nexml>"
        )
        with pytest.raises(StructuralError, match="found 2"):
            read_nexml(text)

    def test_two_parents(self):
        text = (
            "<nexml><trees><tree id='t'>"
            "<node id='r' root='true'/><node id='a'/><node id='b'/>"
            "<edge id='e1' source='r' target='a'/>"
            "<edge id='e2' source='r' target='b'/>"
            "<edge id='e3' source='a' target='b'/>"
            "</tree></trees></nexml>"
        )
        with pytest.raises(StructuralError, match="more than one incoming edge"):
            read_nexml(text)

    def test_unknown_node(self):
        text = (
            "<nexml><trees><tree id='t'>"
            "<node id='r'/><edge id='e1' source='r' target='zz'/>"
            "</tree></trees></nexml>"
        )
        with pytest.raises(StructuralError, match="unknown node"):
            read_nexml(text)

    def test_disconnected_nodes(self):
        text = (
            "<nexml><trees><tree id='t'>"
            "<node id='r' root='true'/><node id='a'/><node id='b'/><node id='c'/>"
            "<edge id='e1' source='r' target='a'/>"
            "<edge id='e2' source='b' target='c'/>"
            "<edge id='e3' source='c' target='b'/>"
            "</tree></trees></nexml>"
        )
        with pytest.raises(StructuralError):
            read_nexml(text)


# ======================================================================== #
# 5. Dispatch                                                               #
# ======================================================================== #


class TestRead:
    @pytest.mark.parametrize(
        "schema, text",
        [
            ("newick", THREE_LEAF),
            ("phyloxml", PHYLOXML_THREE_LEAF),
            ("nexml", NEXML_THREE_LEAF),
            ("nexus", "#NEXUS\nbegin trees;\ntree t = (A:1,(B:1,C:1):1);\nend;"),
        ],
    )
    def test_every_schema(self, schema, text):
        trees = read(text, schema=schema)
        assert [write_newick(t) for t in trees] == [THREE_LEAF]

    def test_schema_case_insensitive(self):
        assert len(read(THREE_LEAF, schema="Newick")) == 1

    def test_default_schema_is_newick(self):
        assert len(read("(A,B);\n(C,D);")) == 2

    def test_urls_rejected(self):
        with pytest.raises(ValueError, match="internet"):
            read("https://example.org/tree.nwk")

    def test_unknown_schema(self):
        with pytest.raises(ValueError, match="Invalid schema"):
            read(THREE_LEAF, schema="fasta")

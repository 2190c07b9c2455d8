#!/usr/bin/env python3

import pytest
import phylotree as pt

def test_numbering():
    """
    Leaves are numbered by sorted taxon label, internal nodes in post-order
    with the root last.
    """
    tree, = pt.parse_trees("((b,a),c);")
    assert tree.taxa == ["a", "b", "c"]
    assert tree.size() == 5
    assert tree.taxa_count() == 3
    assert tree.root == 4
    assert list(tree.internal_nodes()) == [3, 4]
    assert [tree.parent(v) for v in range(5)] == [3, 3, 4, 4, None]

def test_queries():
    tree, = pt.parse_trees("(((a,b),c),(d,e));")
    ab = tree.parent(0)
    assert tree.taxa_in_subtree(ab) == {0, 1}
    assert tree.subtree_nodes(ab) == {0, 1, ab}
    assert tree.subtree_size(ab) == 3
    assert tree.subtree_size(tree.root) == 9
    assert tree.taxa_in_subtree(tree.root) == {0, 1, 2, 3, 4}
    assert tree.depth(tree.root) == 0
    assert tree.depth(ab) == 2
    assert tree.depth(0) == 3
    assert tree.depth(3) == 2

def test_shared_taxon_numbering():
    first, second = pt.parse_trees("((a,b),c);\n((c,b),a);\n")
    assert second.taxa == first.taxa
    assert second.parent(2) == second.parent(1) == 3
    assert second.parent(0) == 4

def test_branch_lengths_and_labels_are_ignored():
    tree, = pt.parse_trees("((a:1.0,b:2.0)x:0.5,c:3.0)root;")
    assert tree.taxa_in_subtree(3) == {0, 1}
    assert tree.to_newick() == "((a,b),c);"

def test_not_binary():
    with pytest.raises(pt.TreeFormatError):
        pt.parse_trees("(a,b,c);")
    with pytest.raises(pt.TreeFormatError):
        pt.parse_trees("((a),b,c);")

def test_different_taxa():
    with pytest.raises(pt.TreeFormatError):
        pt.parse_trees("((a,b),c);\n((a,b),d);\n")
    with pytest.raises(pt.TreeFormatError):
        pt.parse_trees("((a,b),c);\n((a,b),(c,d));\n")

def test_repeated_taxon():
    with pytest.raises(pt.TreeFormatError):
        pt.parse_trees("((a,b),(a,c));")

def test_from_parents():
    tree = pt.PhylogeneticTree([3, 3, 4, 4, None], ["x", "y", "z"])
    assert tree.to_newick() == "((x,y),z);"
    with pytest.raises(pt.TreeFormatError):
        pt.PhylogeneticTree([4, 3, 4, 4, None])
    with pytest.raises(pt.TreeFormatError):
        pt.PhylogeneticTree([3, 3, 4, None, 3])

def test_read_trees(tmp_path):
    path = tmp_path / "input.tre"
    path.write_text("((a,b),c);\n((a,c),b);\n")
    trees = pt.read_trees(str(path))
    assert len(trees) == 2
    assert trees[1].taxa_in_subtree(3) == {0, 2}
    with pytest.raises(pt.TreeFormatError):
        pt.read_trees(str(tmp_path / "missing.tre"))

def test_newick_sibling_order():
    tree, = pt.parse_trees("(c,(b,a));")
    assert tree.to_newick() == "((a,b),c);"

NEXUS_TREES = """#NEXUS
begin trees;
    tree first = ((a,b),c);
    tree second = ((a,c),b);
end;
"""

def test_read_nexus(tmp_path):
    path = tmp_path / "input.nex"
    path.write_text(NEXUS_TREES)
    first, second = pt.read_trees(str(path), "nexus")
    assert first.taxa == ["a", "b", "c"]
    assert first.taxa_in_subtree(3) == {0, 1}
    assert second.taxa_in_subtree(3) == {0, 2}

def test_malformed_nexus(tmp_path):
    path = tmp_path / "input.nex"
    path.write_text("#NEXUS\nbegin trees;\n    tree t = ((a,b;\nend;\n")
    with pytest.raises(pt.TreeFormatError):
        pt.read_trees(str(path), "nexus")

def test_invalid_encoding(tmp_path):
    path = tmp_path / "input.tre"
    path.write_bytes(b"((a\xff,b),c);\n")
    with pytest.raises(pt.TreeFormatError):
        pt.read_trees(str(path))

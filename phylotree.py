#!/usr/bin/env python3

"""
Rooted binary input trees for phylosat.

Trees are read with Bio.Phylo and renumbered so that leaves come first
(one per taxon, in taxon order), followed by the internal nodes in
post-order. The root is therefore always the last node.
"""

from io import StringIO

from Bio import Phylo
from Bio.Nexus.Nexus import NexusError
from Bio.Nexus.Trees import TreeError
from Bio.Phylo.NewickIO import NewickError


class TreeFormatError(Exception):
    """
    Raised when the input trees cannot be used for encoding: unreadable
    files, non-binary nodes, unnamed or repeated leaves, or trees over
    different taxa.
    """
    def __init__(self, message : str = "Malformed input tree"):
        super().__init__(message)
        self.message = message


class PhylogeneticTree:
    """
    Read-only rooted binary tree over taxa 0..n-1.

    parents[v] is the parent of node v (None for the root). Nodes 0..n-1
    are the leaves (node i is taxon i), every internal node has a larger
    id than its children.
    """
    def __init__(self, parents, taxa=None):
        self.parents = list(parents)
        self.n = (len(self.parents) + 1) // 2
        self.taxa = list(taxa) if taxa is not None else [str(i) for i in range(self.n)]

        if len(self.parents) != 2 * self.n - 1 or len(self.taxa) != self.n:
            raise TreeFormatError(f"{len(self.parents)} nodes do not form a binary tree over {len(self.taxa)} taxa")

        roots = [v for v, p in enumerate(self.parents) if p is None]
        if roots != [len(self.parents) - 1]:
            raise TreeFormatError("the root must be the only parentless node and the last one")

        self.children = [[] for _ in self.parents]
        for v, p in enumerate(self.parents):
            if p is None:
                continue
            if p <= v or p < self.n:
                raise TreeFormatError(f"node {v} has an invalid parent {p}")
            self.children[p].append(v)
        for v in range(self.n, len(self.parents)):
            if len(self.children[v]) != 2:
                raise TreeFormatError(f"internal node {v} has {len(self.children[v])} children, expected 2")

        # children always precede parents, so one forward pass fills the subtrees
        self._subtree = [frozenset([v]) for v in range(len(self.parents))]
        for v in range(self.n, len(self.parents)):
            self._subtree[v] = self._subtree[v].union(*(self._subtree[c] for c in self.children[v]))
        self._depth = [0] * len(self.parents)
        for v in reversed(range(len(self.parents) - 1)):
            self._depth[v] = self._depth[self.parents[v]] + 1

    @property
    def root(self):
        return len(self.parents) - 1

    def size(self):
        return len(self.parents)

    def taxa_count(self):
        return self.n

    def internal_nodes(self):
        return range(self.n, len(self.parents))

    def parent(self, v):
        return self.parents[v]

    def depth(self, v):
        return self._depth[v]

    def subtree_size(self, v):
        """
        Number of nodes, leaves included, in the subtree rooted at v.
        """
        return len(self._subtree[v])

    def subtree_nodes(self, v):
        return self._subtree[v]

    def taxa_in_subtree(self, v):
        return frozenset(u for u in self._subtree[v] if u < self.n)

    def to_newick(self):
        """
        Topology only. Siblings are ordered by the smallest taxon below them.
        """
        def render(v):
            if v < self.n:
                return self.taxa[v]
            ordered = sorted(self.children[v], key=lambda c: min(self.taxa_in_subtree(c)))
            return "(" + ",".join(render(c) for c in ordered) + ")"
        return render(self.root) + ";"

    def __repr__(self):
        return f"PhylogeneticTree({self.to_newick()})"

    @classmethod
    def from_phylo(cls, tree, taxa):
        """
        Builds a PhylogeneticTree from a Bio.Phylo tree, numbering leaves
        by their position in taxa.
        """
        index = {name: i for i, name in enumerate(taxa)}
        leaves = tree.get_terminals()
        names = [leaf.name for leaf in leaves]
        if None in names or "" in names:
            raise TreeFormatError("every leaf must carry a taxon label")
        if len(set(names)) != len(names):
            raise TreeFormatError(f"repeated taxon labels in tree {tree_label(tree)}")
        if set(names) != set(taxa):
            raise TreeFormatError(f"tree {tree_label(tree)} is not over the taxa {', '.join(taxa)}")

        node_id = {id(leaf): index[leaf.name] for leaf in leaves}
        parents = [None] * (2 * len(taxa) - 1)
        for v, clade in enumerate(tree.get_nonterminals(order="postorder"), start=len(taxa)):
            if len(clade.clades) != 2:
                raise TreeFormatError(f"tree {tree_label(tree)} is not binary ({len(clade.clades)} children)")
            node_id[id(clade)] = v
            for child in clade.clades:
                parents[node_id[id(child)]] = v
        return cls(parents, taxa)


def tree_label(tree):
    return tree.name if tree.name else format(tree, "newick").strip()


def load_phylo_trees(handle, fmt="newick"):
    try:
        trees = list(Phylo.parse(handle, fmt))
    except (NewickError, NexusError, TreeError) as e:
        raise TreeFormatError(f"cannot parse trees: {e}")
    except UnicodeDecodeError as e:
        raise TreeFormatError(f"input is not valid UTF-8: {e.reason}")
    if not trees:
        raise TreeFormatError("no trees found in the input")
    taxa = sorted(leaf.name for leaf in trees[0].get_terminals() if leaf.name)
    if len(taxa) < 2:
        raise TreeFormatError("at least two taxa are needed")
    return [PhylogeneticTree.from_phylo(tree, taxa) for tree in trees]


def parse_trees(text, fmt="newick"):
    """
    Reads trees from a string. All trees share the taxon numbering of
    the first one (sorted by label).
    """
    return load_phylo_trees(StringIO(text), fmt)


def read_trees(filename, fmt="newick"):
    try:
        with open(filename, encoding="utf-8") as f:
            return load_phylo_trees(f, fmt)
    except OSError as e:
        raise TreeFormatError(f"cannot read {filename}: {e.strerror}")

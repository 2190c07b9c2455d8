#!/usr/bin/env python3

from pysat.card import CardEnc, EncType
from pysat.formula import CNF, IDPool
from time import perf_counter
from datetime import datetime
from enum import Enum

import sys
import argparse

import phylotree

def info(msg : str):
    print(f"phylosat.py INFO {datetime.now():%d.%m.%Y %H:%M:%S}: {msg}", file=sys.stderr)

def bulk_info(msg_list : list[str]):
    for msg in msg_list:
        info(msg)

# convenience class to specify options for library usage
class Options:
    def __init__(self):
        self.verbosity = 1
        self.hybridization_number = 0
        # allow edges between two reticulation nodes
        self.reticulation_connection = False
        self.disable_comments = False
        # left child < right child and lp < rp (symmetry breaking)
        self.order_children = False
        # clades with disjoint taxa never share a network node
        self.different_taxa = True


class EncodingError(Exception):
    pass

class PreconditionError(EncodingError):
    """
    The caller handed in something the encoder cannot work with.
    """

class InvariantError(EncodingError):
    """
    The encoder broke its own declare-then-lookup discipline.
    """

class UndeclaredVariableError(InvariantError):
    pass


class Role(Enum):
    """
    Kinds of propositional variables, with the number of integer
    parameters each one takes.
    """
    PARENT = ("parent", 2)      # parent[v,u]: u is the parent of v
    LEFT = ("left", 2)          # left[v,u]: u is the left child of tree node v
    RIGHT = ("right", 2)        # right[v,u]: u is the right child of tree node v
    CH = ("ch", 2)              # ch[v,u]: u is the child of reticulation v
    LP = ("lp", 2)              # lp[v,u]: u is the left parent of reticulation v
    RP = ("rp", 2)              # rp[v,u]: u is the right parent of reticulation v
    DIR = ("dir", 2)            # dir[t,v]: tree t enters reticulation v through lp
    USED = ("used", 2)          # used[t,v]: tree node v displays a node of tree t
    RUSED = ("rused", 2)        # rused[t,v]: something below reticulation v is used by t
    UP = ("up", 3)              # up[t,v,u]: u is the nearest used ancestor of v in t
    X = ("x", 3)                # x[t,tv,v]: node tv of tree t is displayed by v

    def __init__(self, label, arity):
        self.label = label
        self.arity = arity


class VariableRegistry:
    """
    Maps (role, params) keys to DIMACS variables on top of an IDPool.

    Every variable is declared exactly once, and only looked up
    afterwards, so that the variables of one kind occupy a contiguous
    interval of ids.
    """
    def __init__(self, vp=None):
        if vp is None:
            vp = IDPool()
        if vp.top != 0 or len(vp.obj2id) > 0:
            raise PreconditionError(f"Given variable pool is not empty (top id {vp.top})")
        self.vp = vp

    @property
    def top(self):
        return self.vp.top

    def _key(self, role, params):
        if len(params) != role.arity:
            raise InvariantError(f"{role.label} takes {role.arity} parameters, got {len(params)}")
        return (role, tuple(params))

    def declare(self, role, *params):
        key = self._key(role, params)
        if key in self.vp.obj2id:
            raise InvariantError(f"variable {key_name(key)} declared twice")
        expected = self.vp.top + 1
        var = self.vp.id(key)
        if var != expected:
            # occupied ranges in the pool would leave gaps in the numbering
            raise PreconditionError(f"variable pool skipped ids {expected}..{var - 1}")
        return var

    def lookup(self, role, *params):
        key = self._key(role, params)
        if key not in self.vp.obj2id:
            raise UndeclaredVariableError(f"variable {key_name(key)} was never declared")
        return self.vp.obj2id[key]

    def name(self, var):
        return key_name(self.vp.obj(abs(var)))

    def vartable(self):
        return {var: self.name(var) for var in range(1, self.top + 1)}

def key_name(key):
    role, params = key
    return f"{role.label}[{','.join(map(str, params))}]"


class ClauseEmitter:
    """
    Collects the clauses and comment lines of one query in emission
    order. The DIMACS header can only be written once everything has been
    emitted, see finalize().
    """
    def __init__(self, comments=True):
        self.comments = comments
        self.clauses = []
        self.lines = []
        self.document = None

    def comment(self, msg):
        if self.comments:
            self.lines.append(f"c {msg}\n")

    def add_clause(self, clause):
        clause = list(clause)
        if 0 in clause:
            raise InvariantError(f"literal 0 in clause {clause}")
        self.clauses.append(clause)
        self.lines.append("".join(f"{lit} " for lit in clause) + "0\n")

    def add_clauses(self, clauses):
        for clause in clauses:
            self.add_clause(clause)

    def num_clauses(self):
        return len(self.clauses)

    def num_literals(self):
        return sum(len(c) for c in self.clauses)

    def finalize(self, registry):
        if self.document is not None:
            raise InvariantError("query was already finalized")
        self.document = f"p cnf {registry.top} {len(self.clauses)}\n" + "".join(self.lines)
        return self.document

    def to_cnf(self):
        return CNF(from_clauses=self.clauses)


def at_most_one(lits):
    # pairwise, so no auxiliary variables end up in the registry's id range
    if len(lits) < 2:
        return []
    return CardEnc.atmost(lits, bound=1, encoding=EncType.pairwise).clauses

def exactly_one(lits):
    return [list(lits)] + at_most_one(lits)


class NetworkTopology:
    """
    Node numbering of a network with n leaves and k reticulations.

    Leaves are 0..n-1, tree nodes n..tree_nodes_count-1 (the last one is
    the root) and reticulations follow. Apart from reticulations, children
    always have smaller ids than their parents.
    """
    def __init__(self, n, k, reticulation_connection=False):
        if n < 2:
            raise PreconditionError(f"at least two taxa are needed, got {n}")
        if k < 0:
            raise PreconditionError(f"hybridization number must be non-negative, got {k}")
        self.n = n
        self.k = k
        self.reticulation_connection = reticulation_connection
        self.tree_nodes_count = 2 * n - 1 + k
        self.size = self.tree_nodes_count + k
        # neighbour candidates are fixed by n, k and the connection flag
        self._children = [self._children_of(v) for v in self.all_nodes()]
        self._parents = [self._parents_of(v) for v in self.all_nodes()]
        self._up = [[u for u in ps if u < self.tree_nodes_count] for ps in self._parents]

    @property
    def root(self):
        return self.tree_nodes_count - 1

    def all_nodes(self):
        return range(self.size)

    def tree_nodes(self):
        return range(self.n, self.tree_nodes_count)

    def reticulation_nodes(self):
        return range(self.tree_nodes_count, self.size)

    def is_reticulation(self, v):
        return v >= self.tree_nodes_count

    def _check(self, v):
        if v < 0 or v >= self.size:
            raise PreconditionError(f"node {v} out of bounds [0, {self.size})")

    def _children_of(self, v):
        if v < self.n:
            return []
        if v < self.tree_nodes_count:
            return [c for c in self.all_nodes() if c < v or c >= self.tree_nodes_count]
        return [c for c in self.all_nodes()
                if c < self.tree_nodes_count - 1
                or (self.reticulation_connection and self.tree_nodes_count <= c < v)]

    def _parents_of(self, v):
        if v == self.root:
            return []
        candidates = range(self.n, self.size)
        if v < self.n:
            return list(candidates)
        if v < self.tree_nodes_count:
            return [p for p in candidates if v < p]
        return [p for p in candidates
                if p < self.tree_nodes_count or (self.reticulation_connection and v < p)]

    def possible_children(self, v):
        self._check(v)
        return self._children[v]

    def possible_parents(self, v):
        self._check(v)
        return self._parents[v]

    def possible_up(self, v):
        self._check(v)
        return self._up[v]


def make_predicates(reg):
    # parent[v,u], left[v,u], right[v,u]: network shape around tree nodes
    def parent(v, u):
        return reg.lookup(Role.PARENT, v, u)
    def left(v, u):
        return reg.lookup(Role.LEFT, v, u)
    def right(v, u):
        return reg.lookup(Role.RIGHT, v, u)

    # ch[v,u], lp[v,u], rp[v,u]: network shape around reticulation v
    def ch(v, u):
        return reg.lookup(Role.CH, v, u)
    def lp(v, u):
        return reg.lookup(Role.LP, v, u)
    def rp(v, u):
        return reg.lookup(Role.RP, v, u)

    # per-tree predicates, t is the index of the input tree
    def dir_(t, v):
        return reg.lookup(Role.DIR, t, v)
    def used(t, v):
        return reg.lookup(Role.USED, t, v)
    def rused(t, v):
        return reg.lookup(Role.RUSED, t, v)
    def up(t, v, u):
        return reg.lookup(Role.UP, t, v, u)
    def x(t, tv, v):
        return reg.lookup(Role.X, t, tv, v)
    return parent, left, right, ch, lp, rp, dir_, used, rused, up, x

def declare_block(reg, out, title, keys):
    """
    Declares a whole family of variables and records the id interval it
    occupies.
    """
    interval_start = reg.top + 1
    for role, *params in keys:
        reg.declare(role, *params)
    out.comment(f"Variables {title} are in [{interval_start}, {reg.top}]")


############### NETWORK STRUCTURE ###############

def parent_constraints(top, reg, out):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)
    nodes = range(top.tree_nodes_count - 1)

    declare_block(reg, out, "parent[v,u]",
            ((Role.PARENT, v, u) for v in nodes for u in top.possible_parents(v)))

    out.comment("At-least-one constraints for parent[v,u]")
    out.add_clauses([parent(v, u) for u in top.possible_parents(v)] for v in nodes)

    out.comment("At-most-one constraints for parent[v,u]")
    out.add_clauses(c for v in nodes
            for c in at_most_one([parent(v, u) for u in top.possible_parents(v)]))

def left_right_constraints(top, reg, out, order_children=False):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)
    nodes = top.tree_nodes()

    declare_block(reg, out, "left[v,u]",
            ((Role.LEFT, v, c) for v in nodes for c in top.possible_children(v)))
    declare_block(reg, out, "right[v,u]",
            ((Role.RIGHT, v, c) for v in nodes for c in top.possible_children(v)))

    out.comment("At-least-one constraints for left[v,u] and right[v,u]")
    for v in nodes:
        out.add_clause([left(v, c) for c in top.possible_children(v)])
        out.add_clause([right(v, c) for c in top.possible_children(v)])

    out.comment("At-most-one constraints for left[v,u] and right[v,u]")
    for v in nodes:
        out.add_clauses(at_most_one([left(v, c) for c in top.possible_children(v)]))
        out.add_clauses(at_most_one([right(v, c) for c in top.possible_children(v)]))

    if order_children:
        out.comment("Ordering constraints left[v,u] < right[v,u]")
        out.add_clauses([-right(v, c), -left(v, other)] for v in nodes
                for c in top.possible_children(v) for other in top.possible_children(v) if c <= other)

def reticulation_child_constraints(top, reg, out):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)
    nodes = top.reticulation_nodes()

    declare_block(reg, out, "ch[v,u]",
            ((Role.CH, v, c) for v in nodes for c in top.possible_children(v)))

    out.comment("Exactly-one constraints for ch[v,u]")
    out.add_clauses(c for v in nodes
            for c in exactly_one([ch(v, u) for u in top.possible_children(v)]))

def reticulation_parent_constraints(top, reg, out, order_children=False):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)
    nodes = top.reticulation_nodes()

    declare_block(reg, out, "lp[v,u]",
            ((Role.LP, v, p) for v in nodes for p in top.possible_parents(v)))
    declare_block(reg, out, "rp[v,u]",
            ((Role.RP, v, p) for v in nodes for p in top.possible_parents(v)))

    out.comment("At-least-one constraints for lp[v,u] and rp[v,u]")
    for v in nodes:
        out.add_clause([lp(v, p) for p in top.possible_parents(v)])
        out.add_clause([rp(v, p) for p in top.possible_parents(v)])

    out.comment("At-most-one constraints for lp[v,u] and rp[v,u]")
    for v in nodes:
        out.add_clauses(at_most_one([lp(v, p) for p in top.possible_parents(v)]))
        out.add_clauses(at_most_one([rp(v, p) for p in top.possible_parents(v)]))

    if order_children:
        out.comment("Ordering constraints lp[v,u] < rp[v,u]")
        out.add_clauses([-rp(v, p), -lp(v, other)] for v in nodes
                for p in top.possible_parents(v) for other in top.possible_parents(v) if p <= other)

def child_parent_constraints(top, reg, out):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)

    out.comment("Connect left[v,u] and right[v,u] of tree nodes with the parents of their children")
    for v in top.tree_nodes():
        for c in top.possible_children(v):
            if not top.is_reticulation(c):
                out.add_clauses([
                    [-left(v, c), parent(c, v)],
                    [-right(v, c), parent(c, v)],
                    [-parent(c, v), left(v, c), right(v, c)]
                ])
            else:
                out.add_clauses([
                    [-left(v, c), lp(c, v), rp(c, v)],
                    [-right(v, c), lp(c, v), rp(c, v)],
                    [-lp(c, v), left(v, c), right(v, c)],
                    [-rp(c, v), left(v, c), right(v, c)]
                ])

    out.comment("Connect ch[v,u] of reticulation nodes with the parents of their children")
    for v in top.reticulation_nodes():
        for c in top.possible_children(v):
            if not top.is_reticulation(c):
                out.add_clauses([
                    [-ch(v, c), parent(c, v)],
                    [-parent(c, v), ch(v, c)]
                ])
            else:
                out.add_clauses([
                    [-lp(c, v), ch(v, c)],
                    [-rp(c, v), ch(v, c)],
                    [-ch(v, c), lp(c, v), rp(c, v)]
                ])

    out.comment("A reticulation's parents come after its child in the node order")
    for v in top.reticulation_nodes():
        for c in top.possible_children(v):
            if not top.is_reticulation(c):
                out.add_clauses(cl for p in range(top.n, c + 1)
                        for cl in [[-ch(v, c), -lp(v, p)], [-ch(v, c), -rp(v, p)]])

def structure_constraints(top, reg, out, options):
    parent_constraints(top, reg, out)
    left_right_constraints(top, reg, out, options.order_children)
    reticulation_child_constraints(top, reg, out)
    reticulation_parent_constraints(top, reg, out, options.order_children)
    child_parent_constraints(top, reg, out)


############### PER-TREE CONSTRAINTS ###############

def dir_used_constraints(top, reg, out, t):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)

    declare_block(reg, out, f"dir[{t},v]", ((Role.DIR, t, v) for v in top.reticulation_nodes()))
    declare_block(reg, out, f"used[{t},v]", ((Role.USED, t, v) for v in top.tree_nodes()))

    out.comment("The parent edge a tree does not take leads to an unused node")
    for v in top.reticulation_nodes():
        for p in top.possible_parents(v):
            if not top.is_reticulation(p):
                out.add_clauses([
                    [dir_(t, v), -lp(v, p), -used(t, p)],
                    [-dir_(t, v), -rp(v, p), -used(t, p)]
                ])

def rused_constraints(top, reg, out, t):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)

    declare_block(reg, out, f"rused[{t},v]", ((Role.RUSED, t, v) for v in top.reticulation_nodes()))

    out.comment(f"rused[{t},v] along chains of reticulations")
    for v in top.reticulation_nodes():
        for c in top.possible_children(v):
            if not top.is_reticulation(c):
                out.add_clause([-ch(v, c), rused(t, v)])
            else:
                out.add_clauses([
                    [-ch(v, c), rused(t, c), -rused(t, v)],
                    # the child reticulation is entered from v only when its dir agrees
                    [-lp(c, v), dir_(t, c), -rused(t, v)],
                    [-lp(c, v), -dir_(t, c), -rused(t, c), rused(t, v)],
                    [-rp(c, v), -dir_(t, c), -rused(t, v)],
                    [-rp(c, v), dir_(t, c), -rused(t, c), rused(t, v)]
                ])

    out.comment(f"Connect rused[{t},v] with used[{t},u] of tree node parents")
    for v in top.reticulation_nodes():
        for p in top.possible_parents(v):
            if not top.is_reticulation(p):
                out.add_clauses([
                    [-lp(v, p), rused(t, v), -used(t, p)],
                    [-rp(v, p), rused(t, v), -used(t, p)]
                ])

def up_constraints(top, reg, out, t):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x = make_predicates(reg)

    declare_block(reg, out, f"up[{t},v,u]",
            ((Role.UP, t, v, u) for v in top.all_nodes() for u in top.possible_up(v)))

    out.comment(f"At-least-one constraints for up[{t},v,u]")
    out.add_clauses([up(t, v, u) for u in top.possible_up(v)] for v in top.all_nodes() if v != top.root)

    out.comment(f"At-most-one constraints for up[{t},v,u]")
    out.add_clauses(c for v in top.all_nodes()
            for c in at_most_one([up(t, v, u) for u in top.possible_up(v)]))

    out.comment(f"Connect up[{t},v,u] with parent[v,u] and used[{t},u] (tree nodes)")
    for v in range(top.tree_nodes_count):
        for p in top.possible_parents(v):
            if not top.is_reticulation(p):
                # a used parent is the nearest used ancestor
                out.add_clauses([
                    [-parent(v, p), -used(t, p), up(t, v, p)],
                    [-parent(v, p), -up(t, v, p), used(t, p)]
                ])
                # otherwise v inherits the parent's up
                out.add_clauses(c for pu in top.possible_up(p) for c in [
                    [-parent(v, p), used(t, p), -up(t, p, pu), up(t, v, pu)],
                    [-parent(v, p), used(t, p), -up(t, v, pu), up(t, p, pu)]
                ])
            else:
                for pu in top.possible_up(p):
                    if pu <= v:
                        out.add_clause([-parent(v, p), -up(t, p, pu)])
                    else:
                        out.add_clause([-parent(v, p), -up(t, p, pu), up(t, v, pu)])

    out.comment(f"Connect up[{t},v,u] with lp[v,u], rp[v,u] and used[{t},u] (reticulation nodes)")
    for v in top.reticulation_nodes():
        for p in top.possible_parents(v):
            if not top.is_reticulation(p):
                out.add_clauses([
                    [-lp(v, p), -dir_(t, v), -used(t, p), up(t, v, p)],
                    [-rp(v, p), dir_(t, v), -used(t, p), up(t, v, p)]
                ])
                out.add_clauses(c for pu in top.possible_up(p) for c in [
                    [-lp(v, p), -dir_(t, v), used(t, p), -up(t, p, pu), up(t, v, pu)],
                    [-rp(v, p), dir_(t, v), used(t, p), -up(t, p, pu), up(t, v, pu)]
                ])
            else:
                out.add_clauses(c for pu in top.possible_up(p) for c in [
                    [-lp(v, p), -dir_(t, v), -up(t, p, pu), up(t, v, pu)],
                    [-rp(v, p), dir_(t, v), -up(t, p, pu), up(t, v, pu)]
                ])

def x_constraints(top, reg, out, t, tree):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)
    internal = tree.internal_nodes()

    declare_block(reg, out, f"x[{t},tv,v]",
            ((Role.X, t, tv, v) for tv in internal for v in top.tree_nodes()))

    out.comment(f"Exactly-one constraints for x[{t},tv,v]")
    out.add_clauses(c for tv in internal
            for c in exactly_one([x(t, tv, v) for v in top.tree_nodes()]))

    out.comment(f"At most one x[{t},tv,v] points to v")
    out.add_clauses([-x(t, tv, v), -x(t, other, v)]
            for tv in internal for other in internal if other < tv for v in top.tree_nodes())

    out.comment(f"x[{t},tv,v] implies used[{t},v]")
    out.add_clauses([-x(t, tv, v), used(t, v)] for tv in internal for v in top.tree_nodes())

def data_constraints(top, reg, out, t, tree):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)

    out.comment(f"Data constraints for tree {t}: connect x[{t},tv,v] and up[{t},v,u]")
    for tv in range(tree.size()):
        tp = tree.parent(tv)
        if tp is None:
            # root to root
            out.add_clause([x(t, tv, top.root)])
            continue

        if tv < top.n:
            out.add_clauses([-x(t, tp, p), up(t, tv, p)] for p in top.tree_nodes())
            continue

        for v in top.tree_nodes():
            out.add_clauses(c for p in top.possible_up(v) for c in [
                [-x(t, tv, v), -x(t, tp, p), up(t, v, p)],
                [-x(t, tv, v), -up(t, v, p), x(t, tp, p)]
            ])
            # the parent of tv is displayed above tv
            out.add_clauses([-x(t, tv, v), -x(t, tp, p)] for p in top.tree_nodes() if p < v)

    out.comment("Depth and subtree size bounds (heap structure)")
    for tv in tree.internal_nodes():
        if tree.parent(tv) is None:
            continue
        subtree_internal = tree.subtree_size(tv) // 2 - 1
        out.add_clauses([-x(t, tv, v)] for v in range(top.n, top.n + subtree_internal))
        out.add_clauses([-x(t, tv, v)]
                for v in range(top.tree_nodes_count - tree.depth(tv), top.tree_nodes_count))

def tree_constraints(top, reg, out, t, tree, options):
    dir_used_constraints(top, reg, out, t)
    if options.reticulation_connection:
        rused_constraints(top, reg, out, t)
    up_constraints(top, reg, out, t)
    x_constraints(top, reg, out, t, tree)
    data_constraints(top, reg, out, t, tree)


############### CROSS-TREE CONSTRAINTS ###############

def equal_nodes_constraints(top, reg, out, t1, tree1, n1, t2, tree2, n2):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)
    out.comment(f"Node {n1} of tree {t1} and node {n2} of tree {t2} have the same "
            f"{len(tree1.taxa_in_subtree(n1))} taxa (out of {top.n})")

    out.add_clauses([-x(t1, n1, v), x(t2, n2, v)] for v in top.tree_nodes())

    # nothing below n1 may share a network node with something outside n2
    outside = [u for u in tree2.internal_nodes() if u not in tree2.subtree_nodes(n2)]
    out.add_clauses([-x(t1, u1, v), -x(t2, u2, v)]
            for u1 in sorted(tree1.subtree_nodes(n1)) if u1 >= top.n
            for u2 in outside
            for v in top.tree_nodes())

def different_taxa_constraints(top, reg, out, t1, tree1, n1, t2, tree2, n2):
    parent, left, right, ch, lp, rp, dir_, used, rused, up, x =\
            make_predicates(reg)
    out.comment(f"Node {n1} of tree {t1} and node {n2} of tree {t2} have disjoint taxa "
            f"({len(tree1.taxa_in_subtree(n1))} and {len(tree2.taxa_in_subtree(n2))})")

    out.add_clauses([-x(t1, n1, v), -x(t2, n2, v)] for v in top.tree_nodes())

def pair_constraints(top, reg, out, t1, tree1, t2, tree2, options):
    total_equal, total_different = 0, 0
    for n1 in tree1.internal_nodes():
        if n1 == tree1.root:
            continue
        taxa1 = tree1.taxa_in_subtree(n1)
        for n2 in tree2.internal_nodes():
            if n2 == tree2.root:
                continue
            taxa2 = tree2.taxa_in_subtree(n2)

            if taxa1 == taxa2:
                equal_nodes_constraints(top, reg, out, t1, tree1, n1, t2, tree2, n2)
                total_equal += 1

            # checked once per unordered pair of trees
            if options.different_taxa and t1 < t2 and taxa1.isdisjoint(taxa2):
                different_taxa_constraints(top, reg, out, t1, tree1, n1, t2, tree2, n2)
                total_different += 1
    out.comment(f"Trees {t1} and {t2} have {total_equal} pairs of equal nodes "
            f"and {total_different} pairs of disjoint nodes")


############### QUERY ###############

def get_query(trees, options, vp=None):
    """
    Builds the CNF query: is there a network with exactly
    options.hybridization_number reticulations that displays every tree
    in trees?

    Returns the DIMACS document, the registry holding the meaning of
    every variable, and the emitter with the raw clauses.
    """
    if not trees:
        raise PreconditionError("at least one input tree is needed")
    n = trees[0].taxa_count()
    for t, tree in enumerate(trees):
        if tree.taxa_count() != n:
            raise PreconditionError(f"tree {t} has {tree.taxa_count()} taxa, tree 0 has {n}")

    reg = VariableRegistry(vp)
    top = NetworkTopology(n, options.hybridization_number, options.reticulation_connection)
    out = ClauseEmitter(comments=not options.disable_comments)
    out.comment(f"n = {n}; k = {top.k}; trees count = {len(trees)}")

    structure_constraints(top, reg, out, options)

    for t, tree in enumerate(trees):
        tree_constraints(top, reg, out, t, tree, options)

    for t1, tree1 in enumerate(trees):
        for t2, tree2 in enumerate(trees):
            if t1 != t2:
                pair_constraints(top, reg, out, t1, tree1, t2, tree2, options)

    return out.finalize(reg), reg, out


def verb_query_begin(k):
    info(f"Generating query for hybridization number {k}...")

def verb_query_end(nv, nc, nl, t):
    bulk_info([
        f"Done. ({t:.2f} sec)",
        f"Query has {nv:8d} variables",
        f"          {nc:8d} clauses",
        f"          {nl:8d} literals"])

def write_vartable(reg, filename):
    with open(filename, "w") as f:
        for var, name in reg.vartable().items():
            print(f"{var} {name}", file=f)


def main(argv=None):
    parser = argparse.ArgumentParser(
            description="Encode the search for a phylogenetic network with a given "
            "number of reticulations that displays all input trees as a CNF formula")
    parser.add_argument("trees",
            help="file with the input trees, all over the same taxa")
    parser.add_argument("-k", "--hybridization-number",
            type=int,
            default=0,
            help="number of reticulation nodes of the network")
    parser.add_argument("-o", "--output",
            default="-",
            help="file the CNF is written to (default: standard output)")
    parser.add_argument("--format",
            default="newick",
            choices=["newick", "nexus"],
            help="format of the tree file")
    parser.add_argument("--reticulation-connection",
            action="store_true",
            help="allow edges between two reticulation nodes")
    parser.add_argument("--no-comments",
            action="store_true",
            help="do not annotate the CNF with comment lines")
    parser.add_argument("--order-children",
            action="store_true",
            help="break the left/right symmetry of children and reticulation parents")
    parser.add_argument("--no-different-taxa",
            action="store_true",
            help="skip the constraints for clades with disjoint taxa")
    parser.add_argument("--varmap",
            help="write the name of every variable to this file")
    parser.add_argument("-v", "--verbosity",
            default=1,
            action="count",
            help="increase verbosity")
    parser.add_argument("-q", "--quiet",
            action="store_true",
            help="disable additional output")

    args = parser.parse_args(argv)

    options = Options()
    options.verbosity = 0 if args.quiet else args.verbosity
    options.hybridization_number = args.hybridization_number
    options.reticulation_connection = args.reticulation_connection
    options.disable_comments = args.no_comments
    options.order_children = args.order_children
    options.different_taxa = not args.no_different_taxa

    try:
        trees = phylotree.read_trees(args.trees, args.format)
        if options.verbosity:
            info(f"Read {len(trees)} trees over {trees[0].taxa_count()} taxa from {args.trees}")
            verb_query_begin(options.hybridization_number)
        t_begin = perf_counter()
        cnf, reg, out = get_query(trees, options)
        t_end = perf_counter()
    except (phylotree.TreeFormatError, EncodingError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if options.verbosity:
        verb_query_end(reg.top, out.num_clauses(), out.num_literals(), t_end - t_begin)

    if args.output == "-":
        sys.stdout.write(cnf)
    else:
        with open(args.output, "w") as f:
            f.write(cnf)
        if options.verbosity:
            info(f"CNF written to {args.output}")

    if args.varmap:
        write_vartable(reg, args.varmap)
    return 0

if __name__ == "__main__":
    sys.exit(main())

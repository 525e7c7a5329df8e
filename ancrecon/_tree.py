"""
_tree.py
========
A rooted phylogeny with a designated ancestral node, represented as a set of
parallel numpy arrays indexed by integer node ID.

Public API
----------
  PhyloTree(tree_string, rate=1.0)
      Constructor.  Parses the tree string (NEWICK with an ``@`` ancestor
      marker), scales branch lengths by *rate* and flags outgroup leaves.

  .reroot()
  .distalpha(node)
  .branch_distance(u, v)
  .branch_lengths()
  .leaves() / .preorder()
  .is_leaf(node) / .children(node)

Tree string
-----------
  (A:0.1,(B:0.2,C:0.3)@:0.05);

``@`` directly after a closing parenthesis marks that internal node as the
ancestor whose adjacencies are inferred.  Without a marker the structural
root is the ancestor.  Unnamed nodes are named ``IN1``, ``IN2``, ... in the
order they are closed.

Node-ID conventions
-------------------
IDs are assigned in post-order as nodes are completed, so children always
have smaller IDs than their parent and the parsed root is ``n_nodes - 1``.
``reroot()`` appends one synthetic node (``NEWROOT``) and rewires the arrays
in place; IDs of existing nodes never change.

Arrays
------
parent      : int32  [n_nodes]   Parent ID; -1 for root.
left_child  : int32  [n_nodes]   Left child ID; -1 if absent.
right_child : int32  [n_nodes]   Right child ID; -1 if absent.
distance    : float64[n_nodes]   Branch length to parent; -1.0 for root.
is_outgroup : bool   [n_nodes]   True for leaves outside the ancestral clade.
"""

import logging
from typing import List

import numpy as np

from ancrecon._errors import ParseError, ConsistencyError
from ancrecon._utils import format_newick
from ancrecon import _logging


logger = logging.getLogger(__name__)

_OPEN_PAREN = -2
_SEPARATORS = ",();:"


class PhyloTree:
    """
    A rooted phylogeny with at most two children per node.

    Attributes
    ----------
    n_nodes   : int        Total number of nodes.
    root      : int        Node ID of the structural root.
    ancestor  : int        Node ID of the designated ancestral node.
    rate      : float      Global rate scalar applied to branch lengths.
    names     : list[str]  Node names (generated for unnamed nodes).
    n_resolved : int       Number of zero-length bifurcations added while
                           resolving multifurcations.
    """

    # ================================================================== #
    # Construction                                                         #
    # ================================================================== #

    def __init__(self, tree_string: str, rate: float = 1.0) -> None:
        if rate < 0:
            raise ConsistencyError(f"rate must be non-negative, got {rate}")
        self.rate = float(rate)
        self.n_resolved = 0

        self._parse(tree_string)

        self.n_nodes: int = len(self.names)
        self.root: int = self.n_nodes - 1
        if self.ancestor == -1:
            self.ancestor = self.root

        self._leaf_mask = (self.left_child == -1) & (self.right_child == -1)
        self._name_index = self._build_name_index()
        self.is_outgroup = self._identify_outgroups()

        # Former ancestor after reroot(); its zero-length edge is synthetic.
        self._pinned = -1

        _logging.log_multifurcation_warning(self.n_resolved)

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def is_leaf(self, node: int) -> bool:
        """True for nodes parsed as leaves (taxa), regardless of rerooting."""
        return bool(self._leaf_mask[node])

    def children(self, node: int) -> List[int]:
        """Return the existing children of *node*, left first."""
        return [
            int(c)
            for c in (self.left_child[node], self.right_child[node])
            if c != -1
        ]

    def distalpha(self, node: int) -> float:
        """
        Branch length of *node* scaled by the rate.  The structural root has
        no branch and always returns 0.0.
        """
        if node == self.root:
            return 0.0
        return float(self.distance[node]) * self.rate

    def preorder(self) -> List[int]:
        """Node IDs in preorder (node, left subtree, right subtree)."""
        order = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            order.append(node)
            rc = int(self.right_child[node])
            lc = int(self.left_child[node])
            if rc != -1:
                stack.append(rc)
            if lc != -1:
                stack.append(lc)
        return order

    def leaves(self) -> List[int]:
        """Leaf node IDs in preorder."""
        return [n for n in self.preorder() if self._leaf_mask[n]]

    def node_id(self, name: str) -> int:
        """Return the node ID for *name*; raises KeyError if absent."""
        if name not in self._name_index:
            raise KeyError(f"No node with name '{name}' found in tree.")
        return self._name_index[name]

    def branch_lengths(self) -> List[float]:
        """
        Branch lengths of every real edge (unscaled).

        The zero-length edge introduced by ``reroot()`` between the synthetic
        root and the former ancestor is not a real edge and is excluded, so
        the multiset returned is invariant under rerooting.
        """
        return [
            float(self.distance[k])
            for k in range(self.n_nodes)
            if k != self.root and k != self._pinned
        ]

    def root_distance(self, node) -> float:
        """Cumulative (unscaled) branch length from the root to *node*."""
        node = self._resolve_node(node)
        total = 0.0
        while node != self.root:
            total += float(self.distance[node])
            node = int(self.parent[node])
        return total

    def branch_distance(self, u, v) -> float:
        """
        Return the patristic distance between nodes *u* and *v*.

        Uses the identity:
            dist(u, v) = root_distance[u] + root_distance[v]
                         - 2 * root_distance[LCA(u, v)]

        Parameters
        ----------
        u, v : int | str   Node IDs or node names.
        """
        u_id = self._resolve_node(u)
        v_id = self._resolve_node(v)
        if u_id == v_id:
            return 0.0

        ancestors = set()
        node = u_id
        while node != -1:
            ancestors.add(node)
            node = int(self.parent[node])
        lca = v_id
        while lca not in ancestors:
            lca = int(self.parent[lca])

        return (
            self.root_distance(u_id)
            + self.root_distance(v_id)
            - 2.0 * self.root_distance(lca)
        )

    def reroot(self) -> "PhyloTree":
        """
        Make the designated ancestor the structural root, in place.

        Along the path ancestor -> old root every node takes over the branch
        length of its path child, so each edge keeps its length after the
        parent/child links on the path are reversed.  The ancestor gets a
        zero-length branch under a new synthetic root ``NEWROOT``, which
        becomes both the structural root and the ancestor.  The former
        parent of the ancestor is attached as the other child of the new
        root.

        Does nothing when the ancestor is already the root.  Returns self.
        """
        anc = self.ancestor
        if anc == self.root:
            return self

        path = [anc]
        p = int(self.parent[anc])
        while p != -1:
            path.append(p)
            p = int(self.parent[p])

        for k in range(len(path) - 1, 0, -1):
            self.distance[path[k]] = self.distance[path[k - 1]]
        self.distance[anc] = 0.0

        first = path[1]
        anc_was_right = int(self.right_child[first]) == anc
        self._detach(first, anc)

        for k in range(1, len(path) - 1):
            v, up = path[k], path[k + 1]
            self._detach(up, v)
            self._attach(v, up)

        new_root = self._add_node("NEWROOT", 0.0)
        if anc_was_right:
            self.left_child[new_root] = first
            self.right_child[new_root] = anc
        else:
            self.left_child[new_root] = anc
            self.right_child[new_root] = first
        self.parent[first] = new_root
        self.parent[anc] = new_root

        logger.info(
            "Rerooted tree at %s (path length %d); synthetic root %s added",
            self.names[anc],
            len(path) - 1,
            self.names[new_root],
        )

        self._pinned = anc
        self.root = new_root
        self.ancestor = new_root
        return self

    # ================================================================== #
    # Private instance methods                                             #
    # ================================================================== #

    def _parse(self, tree_string: str) -> None:
        """
        **Private.**  Iterative, stack-based character scan of the tree
        string.  Populates names, parent, left_child, right_child, distance
        and ancestor.

        Each completed node is pushed on the stack; ``(`` pushes a marker
        and ``)`` pops every node down to the marker.  Groups with more than
        two members are binarized first-two-first with zero-length branches.
        """
        s = "".join(tree_string.split())
        end = s.find(";")
        if end == -1:
            n_chars = len(s)
        else:
            n_chars = end
            if s[end + 1:]:
                raise ParseError("unexpected text after ';'", text=s[end + 1:])
        if n_chars == 0:
            raise ParseError("empty tree string")

        self.names = []
        self._parent = []
        self._left = []
        self._right = []
        self._dist = []
        self.ancestor = -1

        stack = []
        depth = 0
        n_unnamed = 0
        # True right after "(" or ",", until the next node is complete
        pending = False

        i = 0
        while i < n_chars:
            c = s[i]

            if c == "(":
                stack.append(_OPEN_PAREN)
                depth += 1
                pending = True
                i += 1
                continue

            if c == ",":
                if depth == 0:
                    raise ParseError("',' outside parentheses", text=s)
                if pending:
                    raise ParseError("empty leaf name", text=s[: i + 1])
                pending = True
                i += 1
                continue

            if c == ")":
                if depth == 0:
                    raise ParseError("unbalanced tree", text=s)
                if pending:
                    raise ParseError("empty leaf name", text=s[: i + 1])
                children = []
                while stack[-1] != _OPEN_PAREN:
                    children.append(stack.pop())
                stack.pop()
                depth -= 1
                children.reverse()

                while len(children) > 2:
                    n_unnamed += 1
                    merged = self._new_node(f"IN{n_unnamed}", 0.0)
                    self._link(merged, children[0], children[1])
                    children = [merged] + children[2:]
                    self.n_resolved += 1

                i += 1
                is_ancestor = False
                if i < n_chars and s[i] == "@":
                    if self.ancestor != -1:
                        raise ParseError("more than one '@' ancestor marker", text=s)
                    is_ancestor = True
                    i += 1

                label, i = self._read_label(s, i, n_chars)
                if label == "":
                    n_unnamed += 1
                    label = f"IN{n_unnamed}"
                node = self._new_node(label, None)
                self._link(node, *children)
                if is_ancestor:
                    self.ancestor = node

                i = self._read_length(s, i, n_chars, node)
                stack.append(node)
                pending = False
                if i < n_chars and s[i] not in ",)":
                    raise ParseError(f"illegal symbol '{s[i]}'", text=s[: i + 1])
                continue

            if c in ";:":
                raise ParseError(f"illegal symbol '{c}'", text=s)

            # Leaf
            label, i = self._read_label(s, i, n_chars)
            if label == "":
                raise ParseError("empty leaf name", text=s)
            node = self._new_node(label, None)
            i = self._read_length(s, i, n_chars, node)
            stack.append(node)
            pending = False
            if i < n_chars and s[i] not in ",)":
                raise ParseError(f"illegal symbol '{s[i]}'", text=s[: i + 1])

        if depth != 0:
            raise ParseError("unbalanced tree", text=s)
        if len(stack) != 1:
            raise ParseError("tree has more than one top-level node", text=s)

        root = len(self.names) - 1
        for node, d in enumerate(self._dist):
            if d is None:
                if node == root:
                    self._dist[node] = -1.0
                else:
                    raise ParseError(
                        f"missing branch length for node '{self.names[node]}'",
                        text=s,
                    )

        self.parent = np.array(self._parent, dtype=np.int32)
        self.left_child = np.array(self._left, dtype=np.int32)
        self.right_child = np.array(self._right, dtype=np.int32)
        self.distance = np.array(self._dist, dtype=np.float64)
        del self._parent, self._left, self._right, self._dist

    def _new_node(self, name: str, dist) -> int:
        """**Private.**  Append a parse-time node and return its ID."""
        self.names.append(name)
        self._parent.append(-1)
        self._left.append(-1)
        self._right.append(-1)
        self._dist.append(dist)
        return len(self.names) - 1

    def _link(self, node: int, left: int, right: int = -1) -> None:
        self._left[node] = left
        self._right[node] = right
        self._parent[left] = node
        if right != -1:
            self._parent[right] = node

    @staticmethod
    def _read_label(s: str, i: int, n_chars: int):
        """**Private static.**  Read a node label; returns (label, new_i)."""
        j = i
        while j < n_chars and s[j] not in _SEPARATORS:
            if s[j] == "@":
                raise ParseError("illegal symbol '@'", text=s[: j + 1])
            j += 1
        return s[i:j], j

    def _read_length(self, s: str, i: int, n_chars: int, node: int) -> int:
        """**Private.**  Read an optional ``:length``; returns the new index."""
        if i < n_chars and s[i] == ":":
            i += 1
            j = i
            while j < n_chars and s[j] not in ",();":
                j += 1
            token = s[i:j]
            try:
                self._dist[node] = float(token)
            except ValueError:
                raise ParseError("cannot parse branch length", text=token) from None
            i = j
        return i

    def _build_name_index(self) -> dict:
        idx = {}
        for node_id, name in enumerate(self.names):
            if name in idx:
                raise ParseError(
                    f"duplicate node name '{name}' at IDs {idx[name]} and {node_id}"
                )
            idx[name] = node_id
        return idx

    def _identify_outgroups(self) -> np.ndarray:
        """
        **Private.**  A leaf is an outgroup iff its path to the structural
        root does not pass through the ancestor.
        """
        outgroup = np.zeros(self.n_nodes, dtype=bool)
        for leaf in np.flatnonzero(self._leaf_mask):
            node = int(leaf)
            while node != -1 and node != self.ancestor:
                node = int(self.parent[node])
            outgroup[leaf] = node == -1
        return outgroup

    def _resolve_node(self, node) -> int:
        if isinstance(node, (int, np.integer)):
            return int(node)
        return self.node_id(node)

    def _detach(self, node: int, child: int) -> None:
        if int(self.right_child[node]) == child:
            self.right_child[node] = -1
        else:
            self.left_child[node] = -1

    def _attach(self, node: int, child: int) -> None:
        if int(self.right_child[node]) == -1:
            self.right_child[node] = child
        else:
            self.left_child[node] = child
        self.parent[child] = node

    def _add_node(self, name: str, dist: float) -> int:
        """**Private.**  Grow every per-node array by one node."""
        node = self.n_nodes
        self.names.append(name)
        self.parent = np.append(self.parent, np.int32(-1))
        self.left_child = np.append(self.left_child, np.int32(-1))
        self.right_child = np.append(self.right_child, np.int32(-1))
        self.distance = np.append(self.distance, dist)
        self.is_outgroup = np.append(self.is_outgroup, False)
        self._leaf_mask = np.append(self._leaf_mask, False)
        self._name_index[name] = node
        self.n_nodes += 1
        return node


def read_tree_file(path: str, rate: float = 1.0) -> PhyloTree:
    """Build a PhyloTree from the first non-empty line of *path*."""
    with open(path) as fh:
        for line in fh:
            if line.strip():
                return PhyloTree(format_newick(line), rate=rate)
    raise ParseError(f"no tree found in {path}")

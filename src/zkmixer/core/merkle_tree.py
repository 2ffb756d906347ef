"""Fixed-depth append-only Merkle accumulator for deposit commitments.

Tree construction rules (clients building authentication paths must follow
them bit-for-bit, otherwise the withdrawal circuit rejects their proofs):

    - Leaves sit at level 0 in insertion order; leaf ``i`` is position ``i``.
    - At level ``l`` the node's side is bit ``l`` of the leaf index:
      0 means the node is a left child and its sibling is on the right,
      1 means the node is a right child and its sibling is on the left.
    - Parents are ``H(left, right)``, arguments always in that order.
    - Missing nodes at level ``l`` take the zero value ``z[l]``, where
      ``z[0] = ZERO_LEAF`` and ``z[l+1] = H(z[l], z[l])``.

Example::

    tree = MerkleAccumulator(depth=20)
    index, root = tree.insert(commitment)
    path = tree.get_path(index)
    assert compute_root_from_path(commitment, index, path.siblings) == root
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Set, Tuple

from zkmixer.utils.hash import DEFAULT_HASHER, ZERO_LEAF, FieldHasher, is_field_element
from zkmixer.utils.encoding import field_to_hex
from zkmixer.exceptions import (
    CapacityExceededError,
    DuplicateCommitmentError,
    InvalidLeafIndexError,
)

logger = logging.getLogger(__name__)

DEFAULT_DEPTH = 20
MAX_DEPTH = 32


def zero_values(depth: int, hasher: FieldHasher = DEFAULT_HASHER) -> List[int]:
    """Return the empty-subtree value for every level ``0..depth``."""
    values = [ZERO_LEAF]
    for _ in range(depth):
        values.append(hasher.hash(values[-1], values[-1]))
    return values


def path_indices(leaf_index: int, depth: int) -> List[int]:
    """
    Side selector bits for a leaf, lowest level first.

    ``path_indices(5, 3) == [1, 0, 1]``: at level 0 the node is a right child,
    at level 1 a left child, at level 2 a right child.
    """
    if leaf_index < 0 or leaf_index >= 2**depth:
        raise InvalidLeafIndexError(f"Invalid leaf index: {leaf_index}")
    return [(leaf_index >> level) & 1 for level in range(depth)]


def order_pair(node: int, sibling: int, bit: int) -> Tuple[int, int]:
    """Return ``(left, right)`` for a node and its sibling given the side bit."""
    if bit == 0:
        return node, sibling
    return sibling, node


def compute_root_from_path(
    leaf: int,
    leaf_index: int,
    siblings: Sequence[int],
    hasher: FieldHasher = DEFAULT_HASHER,
) -> int:
    """Fold a leaf and its sibling path up to the root."""
    current = leaf
    for bit, sibling in zip(path_indices(leaf_index, len(siblings)), siblings):
        left, right = order_pair(current, sibling, bit)
        current = hasher.hash(left, right)
    return current


@dataclass(frozen=True)
class MerklePath:
    """Authentication path of one leaf."""

    leaf_index: int
    siblings: List[int]
    path_indices: List[int]
    root: int

    def to_dict(self) -> dict:
        return {
            "leaf_index": self.leaf_index,
            "siblings": [field_to_hex(s) for s in self.siblings],
            "path_indices": list(self.path_indices),
            "root": field_to_hex(self.root),
        }


def build_path_from_leaves(
    leaves: Sequence[int],
    leaf_index: int,
    depth: int = DEFAULT_DEPTH,
    hasher: FieldHasher = DEFAULT_HASHER,
) -> MerklePath:
    """
    Client-side path builder working only from the ordered leaf array.

    Mirrors the accumulator's rules without access to its internal nodes, so
    a client can rebuild a path for any historical prefix of the leaves.
    """
    if leaf_index < 0 or leaf_index >= len(leaves):
        raise InvalidLeafIndexError(f"Invalid leaf index: {leaf_index}")

    zeros = zero_values(depth, hasher)
    level_nodes = list(leaves)
    position = leaf_index
    siblings = []

    for level in range(depth):
        sibling_position = position ^ 1
        if sibling_position < len(level_nodes):
            siblings.append(level_nodes[sibling_position])
        else:
            siblings.append(zeros[level])

        next_nodes = []
        for i in range(0, len(level_nodes), 2):
            left = level_nodes[i]
            right = level_nodes[i + 1] if i + 1 < len(level_nodes) else zeros[level]
            next_nodes.append(hasher.hash(left, right))
        level_nodes = next_nodes
        position >>= 1

    root = level_nodes[0] if level_nodes else zeros[depth]
    return MerklePath(
        leaf_index=leaf_index,
        siblings=siblings,
        path_indices=path_indices(leaf_index, depth),
        root=root,
    )


class MerkleAccumulator:
    """
    Append-only binary Merkle tree of fixed depth.

    Nodes live in a flat mapping keyed by ``(level, position)``; absent keys
    read as the zero value of their level. A separate existence set gives
    O(1) duplicate detection.
    """

    def __init__(self, depth: int = DEFAULT_DEPTH, hasher: FieldHasher = DEFAULT_HASHER):
        """
        Initialize empty accumulator.

        Args:
            depth: Number of levels below the root (default 20)
            hasher: Field hash used by ``combine``

        Raises:
            ValueError: If depth is invalid
        """
        if depth < 1 or depth > MAX_DEPTH:
            raise ValueError(f"Tree depth must be between 1 and {MAX_DEPTH}")

        self.depth = depth
        self.capacity = 2**depth
        self.hasher = hasher

        self.leaves: List[int] = []
        self.nodes: Dict[Tuple[int, int], int] = {}
        self._commitments: Set[int] = set()

        self.zeros = zero_values(depth, hasher)
        self._root = self.zeros[depth]

    def combine(self, left: int, right: int) -> int:
        """Parent of two siblings, ``H(left, right)``."""
        return self.hasher.hash(left, right)

    def contains(self, commitment: int) -> bool:
        """Check whether a commitment has been inserted."""
        return commitment in self._commitments

    def insert(self, commitment: int) -> Tuple[int, int]:
        """
        Append a commitment as the next leaf.

        Args:
            commitment: Field element ``H(secret, nullifier_secret)``

        Returns:
            Tuple of (leaf_index, new_root)

        Raises:
            ValueError: If commitment is not a field element
            DuplicateCommitmentError: If commitment already present
            CapacityExceededError: If tree is full
        """
        leaf_index, ancestors = self._plan_insert(commitment)

        self.leaves.append(commitment)
        self._commitments.add(commitment)
        self.nodes[(0, leaf_index)] = commitment
        self.nodes.update(ancestors)
        self._root = ancestors[(self.depth, 0)]

        logger.debug(f"Inserted leaf {leaf_index}, root {field_to_hex(self._root)[:18]}...")
        return leaf_index, self._root

    def preview_insert(self, commitment: int) -> Tuple[int, int]:
        """
        Leaf index and root that ``insert`` would produce, without inserting.

        Raises the same errors as ``insert``.
        """
        leaf_index, ancestors = self._plan_insert(commitment)
        return leaf_index, ancestors[(self.depth, 0)]

    def _plan_insert(self, commitment: int) -> Tuple[int, Dict[Tuple[int, int], int]]:
        """Validate a commitment and compute the ancestors of its new leaf."""
        if not is_field_element(commitment):
            raise ValueError("Commitment must be a field element")

        if commitment in self._commitments:
            raise DuplicateCommitmentError("Commitment already exists")

        if len(self.leaves) >= self.capacity:
            raise CapacityExceededError(f"Tree is full (max {self.capacity} commitments)")

        leaf_index = len(self.leaves)
        ancestors = {}
        position = leaf_index
        current = commitment

        for level in range(self.depth):
            sibling = self._node(level, position ^ 1)
            left, right = order_pair(current, sibling, position & 1)
            current = self.combine(left, right)
            position >>= 1
            ancestors[(level + 1, position)] = current

        return leaf_index, ancestors

    def _node(self, level: int, position: int) -> int:
        return self.nodes.get((level, position), self.zeros[level])

    def get_path(self, leaf_index: int) -> MerklePath:
        """
        Return the authentication path for a leaf against the current root.

        Raises:
            InvalidLeafIndexError: If leaf index is not populated
        """
        if leaf_index < 0 or leaf_index >= len(self.leaves):
            raise InvalidLeafIndexError(f"Invalid leaf index: {leaf_index}")

        siblings = []
        position = leaf_index
        for level in range(self.depth):
            siblings.append(self._node(level, position ^ 1))
            position >>= 1

        return MerklePath(
            leaf_index=leaf_index,
            siblings=siblings,
            path_indices=path_indices(leaf_index, self.depth),
            root=self._root,
        )

    def verify_path(self, commitment: int, siblings: Sequence[int], leaf_index: int) -> bool:
        """Check a path against the current root."""
        if len(siblings) != self.depth:
            return False
        try:
            return compute_root_from_path(commitment, leaf_index, siblings, self.hasher) == self._root
        except (InvalidLeafIndexError, ValueError, TypeError):
            return False

    @property
    def root(self) -> int:
        """Current root; read-only."""
        return self._root

    @property
    def empty_root(self) -> int:
        """Root of the tree before any insertion."""
        return self.zeros[self.depth]

    def is_full(self) -> bool:
        return len(self.leaves) >= self.capacity

    def get_state(self) -> dict:
        """
        Get the current state of the tree for serialization.

        Returns:
            dict: Tree state including leaves, depth, and root
        """
        return {
            "depth": self.depth,
            "capacity": self.capacity,
            "num_leaves": len(self.leaves),
            "leaves": [field_to_hex(leaf) for leaf in self.leaves],
            "root": field_to_hex(self.root),
        }

    def __len__(self) -> int:
        return len(self.leaves)

    def __repr__(self) -> str:
        return (
            f"MerkleAccumulator(depth={self.depth}, "
            f"leaves={len(self.leaves)}/{self.capacity}, "
            f"root={field_to_hex(self.root)[:18]}...)"
        )

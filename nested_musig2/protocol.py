"""
High-level nested MuSig2 orchestration.

``CosignerTree`` ties the tree passes together into a small API for
tests, demos and rendering tools.

Usage
-----
::

    from nested_musig2 import CosignerTree

    tree = CosignerTree.from_spec(("root", ["a", ("group-b", ["b1", "b2"])]))
    tree.keygen()

    sig = tree.sign(b"hello world")
    assert tree.verify(b"hello world", sig)

    for view in tree.snapshot():
        print(view.depth, view.role, view.id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from .curve import Point
from .exceptions import InputValidationError, LeafNotFoundError, TreeStateError
from .signing import Signature, verify
from .tree import (
    AggregatorNode,
    TreeNode,
    compute_depths,
    create_aggregator,
    create_leaf,
    iter_nodes,
    key_gen_tree,
    round1_tree,
    round2_tree,
)

logger = logging.getLogger(__name__)

# A leaf id, or ``(aggregator id, [children…])``.
TreeSpec = Union[str, Tuple[str, Sequence["TreeSpec"]]]


@dataclass(frozen=True)
class NodeView:
    """Read-only description of one node, for rendering."""

    id: str
    role: str
    depth: int
    label: Optional[str]
    public_key: Optional[bytes]


class CosignerTree:
    """
    End-to-end nested MuSig2 over a fixed tree.

    Lifecycle:
    1. Build — ``from_spec`` or wrap an existing root.
    2. Keygen — once per tree.
    3. Sign — round 1 then round 2, once per message.
    4. Verify — plain Schnorr verification against ``public_key``.
    """

    def __init__(self, root: AggregatorNode) -> None:
        if not isinstance(root, AggregatorNode):
            raise InputValidationError("tree root must be an aggregator")
        self._root = root
        compute_depths(root)
        self._max_depth = max(node.depth for node in iter_nodes(root))

    # ── factories ──────────────────────────────────────────────────────

    @classmethod
    def from_spec(cls, spec: TreeSpec) -> CosignerTree:
        """
        Build a tree from a nested description.

        A string is a leaf id; a ``(id, children)`` pair is an aggregator.
        Node ids must be unique.
        """
        seen = set()

        def _build(item: TreeSpec) -> TreeNode:
            if isinstance(item, str):
                node_id, children = item, None
            else:
                node_id, children = item
            if node_id in seen:
                raise InputValidationError(f"duplicate node id: {node_id}")
            seen.add(node_id)
            if children is None:
                return create_leaf(node_id)
            return create_aggregator(node_id, [_build(c) for c in children])

        root = _build(spec)
        if not isinstance(root, AggregatorNode):
            raise InputValidationError("tree root must be an aggregator")
        return cls(root)

    # ── protocol passes ────────────────────────────────────────────────

    def keygen(self) -> Point:
        """Generate every leaf key and aggregate up to the root."""
        key_gen_tree(self._root)
        logger.debug("key generation done for tree %s", self._root.id)
        return self.public_key

    def round1(self) -> None:
        if self._root.pk is None:
            raise TreeStateError("run keygen() before round 1")
        round1_tree(self._root)

    def round2(
        self,
        message: bytes,
        max_workers: Optional[int] = None,
    ) -> Signature:
        return round2_tree(self._root, message, max_workers=max_workers)

    def sign(
        self,
        message: bytes,
        max_workers: Optional[int] = None,
    ) -> Signature:
        """Run both rounds with fresh nonces and return the signature."""
        self.round1()
        return self.round2(message, max_workers=max_workers)

    def verify(self, message: bytes, signature: Signature) -> bool:
        if self._root.pk is None:
            return False
        return verify(self._root.pk, message, signature)

    # ── accessors ──────────────────────────────────────────────────────

    @property
    def root(self) -> AggregatorNode:
        return self._root

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @property
    def public_key(self) -> Point:
        if self._root.pk is None:
            raise TreeStateError("tree has no aggregate key; run keygen()")
        return self._root.pk

    @property
    def signature(self) -> Optional[Signature]:
        return self._root.signature

    def find(self, node_id: str) -> TreeNode:
        for node in iter_nodes(self._root):
            if node.id == node_id:
                return node
        raise LeafNotFoundError(f"node not found: {node_id}")

    def snapshot(self) -> List[NodeView]:
        """Pre-order views of every node; no secret material."""
        return [
            NodeView(
                id=node.id,
                role=node.role,
                depth=node.depth,
                label=node.label,
                public_key=node.pk.to_bytes() if node.pk is not None else None,
            )
            for node in iter_nodes(self._root)
        ]

    def __repr__(self) -> str:
        return (
            f"CosignerTree(root={self._root.id!r}, "
            f"max_depth={self._max_depth})"
        )

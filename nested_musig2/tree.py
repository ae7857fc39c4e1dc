"""
Protocol passes over a cosigner tree.

Leaves are signers; aggregators are cosigner groups whose key is the
MuSig2 aggregate of their children's keys.  Each pass is a recursive
walk that dispatches on the node variant:

1. ``compute_depths``  — root 0, +1 per level.
2. ``key_gen_tree``    — post-order: leaves draw keys, aggregators
   aggregate and record each child's coefficient.
3. ``round1_tree``     — post-order: leaves sample nonces, aggregators
   sum and bind.
4. ``round2_tree``     — every leaf runs ``sign_prime`` with its
   root-to-leaf context, then partial signatures merge bottom-up.

The orchestrator owns every node for the duration of a pass; two passes
over the same tree must not interleave.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

from .curve import Scalar, Point
from .exceptions import (
    InputValidationError,
    LeafNotFoundError,
    NodeKindError,
    NonceMismatchError,
    TreeStateError,
)
from .keyagg import key_agg, key_agg_coef, key_gen
from .nonces import Round1Output, Round1State, sign, sign_agg, sign_agg_ext
from .signing import Signature, sign_agg_prime, sign_prime

logger = logging.getLogger(__name__)


# ── node types ──────────────────────────────────────────────────────────

@dataclass(eq=False)
class TreeNode(ABC):
    """Fields shared by both node variants."""

    id: str
    label: Optional[str] = None
    depth: Optional[int] = None
    pk: Optional[Point] = None
    agg_coef: Optional[Scalar] = None          # weight within the parent
    round1_out: Optional[Round1Output] = None  # what the parent sees
    partial_sig: Optional[Scalar] = None
    effective_nonce: Optional[Point] = None

    @property
    @abstractmethod
    def role(self) -> str:
        """``"leaf"`` or ``"aggregator"``."""


@dataclass(eq=False)
class LeafNode(TreeNode):
    """A signer.  Holds the secret key and the one-time round-1 state."""

    sk: Optional[Scalar] = field(default=None, repr=False)
    round1_state: Optional[Round1State] = field(default=None, repr=False)

    @property
    def role(self) -> str:
        return "leaf"


@dataclass(eq=False)
class AggregatorNode(TreeNode):
    """A cosigner group.  Owns its children exclusively."""

    children: List[TreeNode] = field(default_factory=list)
    key_list: Optional[List[Point]] = None
    internal_agg: Optional[List[Point]] = None
    binding_value: Optional[Scalar] = None
    signature: Optional[Signature] = None

    @property
    def role(self) -> str:
        return "aggregator"


@dataclass(frozen=True)
class PathEntry:
    """One ancestor on a root-to-leaf path and the index of the branch taken."""

    node: AggregatorNode
    child_index: int

    def sibling_keys(self) -> List[Point]:
        """Keys of the ancestor's children other than the branch taken."""
        return [
            _require_pk(child)
            for i, child in enumerate(self.node.children)
            if i != self.child_index
        ]


@dataclass(frozen=True)
class SignPrimeInputs:
    """Root-first context a leaf needs for ``sign_prime``."""

    outs: List[List[Point]]
    cosigner_keys: List[List[Point]]


# ── construction ────────────────────────────────────────────────────────

def create_leaf(id: str, label: Optional[str] = None) -> LeafNode:
    return LeafNode(id=id, label=label)


def create_aggregator(
    id: str,
    children: Sequence[TreeNode],
    label: Optional[str] = None,
) -> AggregatorNode:
    if not children:
        raise InputValidationError(f"aggregator {id!r} needs at least one child")
    return AggregatorNode(id=id, label=label, children=list(children))


# ── helpers ─────────────────────────────────────────────────────────────

def _check_aggregator(node: TreeNode) -> AggregatorNode:
    if not isinstance(node, AggregatorNode):
        raise NodeKindError(f"expected aggregator node, got: {node.id}")
    if not node.children:
        raise TreeStateError(f"aggregator node has no children: {node.id}")
    return node


def _require_pk(node: TreeNode) -> Point:
    if node.pk is None:
        raise TreeStateError(f"missing public key on node: {node.id}")
    return node.pk


def iter_nodes(node: TreeNode) -> Iterator[TreeNode]:
    """Pre-order walk."""
    yield node
    if isinstance(node, AggregatorNode):
        for child in node.children:
            yield from iter_nodes(child)


def collect_leaves(node: TreeNode) -> List[LeafNode]:
    """All leaves, left to right."""
    if isinstance(node, LeafNode):
        return [node]
    agg = _check_aggregator(node)
    leaves: List[LeafNode] = []
    for child in agg.children:
        leaves.extend(collect_leaves(child))
    return leaves


def _walk_to(
    root: TreeNode,
    match,
) -> Optional[Tuple[LeafNode, List[PathEntry]]]:
    def _walk(node: TreeNode, path: List[PathEntry]):
        if isinstance(node, LeafNode):
            return (node, path) if match(node) else None
        agg = _check_aggregator(node)
        for i, child in enumerate(agg.children):
            found = _walk(child, path + [PathEntry(agg, i)])
            if found is not None:
                return found
        return None

    return _walk(root, [])


def find_leaf_path(
    root: TreeNode,
    leaf_id: str,
) -> Tuple[LeafNode, List[PathEntry]]:
    """
    Locate *leaf_id* and return it with its root-first ancestor path.

    Raises ``LeafNotFoundError`` if no leaf has that id.
    """
    found = _walk_to(root, lambda node: node.id == leaf_id)
    if found is None:
        raise LeafNotFoundError(f"leaf not found: {leaf_id}")
    return found


# ── passes ──────────────────────────────────────────────────────────────

def compute_depths(node: TreeNode, depth: int = 0) -> None:
    node.depth = depth
    if isinstance(node, LeafNode):
        return
    for child in _check_aggregator(node).children:
        compute_depths(child, depth + 1)


def key_gen_tree(node: TreeNode) -> None:
    """Post-order key generation and aggregation."""
    if isinstance(node, LeafNode):
        kp = key_gen()
        node.sk = kp.sk
        node.pk = kp.pk
        return

    agg = _check_aggregator(node)
    for child in agg.children:
        key_gen_tree(child)

    child_pks = [_require_pk(child) for child in agg.children]
    agg.key_list = child_pks
    agg.pk = key_agg(child_pks)
    for child, child_pk in zip(agg.children, child_pks):
        child.agg_coef = key_agg_coef(child_pks, child_pk)
    logger.debug("aggregated %d keys at %s", len(child_pks), agg.id)


def round1_tree(node: TreeNode) -> None:
    """Post-order nonce generation, aggregation and binding."""
    if isinstance(node, LeafNode):
        node.round1_out, node.round1_state = sign()
        return

    agg = _check_aggregator(node)
    for child in agg.children:
        round1_tree(child)

    child_outs: List[Round1Output] = []
    for child in agg.children:
        if child.round1_out is None:
            raise TreeStateError(f"missing round-1 output on child: {child.id}")
        child_outs.append(child.round1_out)

    internal_agg = sign_agg(child_outs)
    bound, b = sign_agg_ext(internal_agg, _require_pk(agg))
    agg.internal_agg = internal_agg
    agg.binding_value = b
    agg.round1_out = Round1Output(nonces=tuple(bound))


def _inputs_from_path(path: List[PathEntry], leaf_id: str) -> SignPrimeInputs:
    if not path:
        raise InputValidationError(
            f"leaf has no aggregator ancestors: {leaf_id}"
        )

    outs: List[List[Point]] = []
    cosigner_keys: List[List[Point]] = []
    for entry in path:
        if entry.node.internal_agg is None:
            raise TreeStateError(
                f"missing internal aggregate at node: {entry.node.id}"
            )
        outs.append(entry.node.internal_agg)
        cosigner_keys.append(entry.sibling_keys())
    return SignPrimeInputs(outs=outs, cosigner_keys=cosigner_keys)


def collect_sign_prime_inputs(root: TreeNode, leaf_id: str) -> SignPrimeInputs:
    """
    Root-first round-2 context for *leaf_id*: each ancestor's unbound
    internal aggregate and the keys of its other children.
    """
    _, path = find_leaf_path(root, leaf_id)
    return _inputs_from_path(path, leaf_id)


def sign_leaf(root: TreeNode, leaf: LeafNode, message: bytes) -> None:
    """
    Run ``sign_prime`` for one leaf and drop its consumed state.

    The path is located by node identity, so leaves sharing an id in a
    hand-built tree each sign with their own ancestors.
    """
    if not isinstance(leaf, LeafNode):
        raise NodeKindError(f"expected leaf node, got: {leaf.id}")
    if leaf.round1_state is None:
        raise TreeStateError(f"missing round-1 state on leaf: {leaf.id}")
    if leaf.sk is None:
        raise TreeStateError(f"missing secret key on leaf: {leaf.id}")

    found = _walk_to(root, lambda node: node is leaf)
    if found is None:
        raise LeafNotFoundError(f"leaf not in tree: {leaf.id}")
    inputs = _inputs_from_path(found[1], leaf.id)
    result, _ = sign_prime(
        state=leaf.round1_state,
        outs=inputs.outs,
        secret_key=leaf.sk,
        message=message,
        cosigner_keys=inputs.cosigner_keys,
    )
    leaf.partial_sig = result.s
    leaf.effective_nonce = result.R
    leaf.round1_state = None


def aggregate_round2(node: TreeNode) -> Signature:
    """
    Post-order merge of partial signatures.

    Raises ``NonceMismatchError`` if two children of an aggregator
    disagree on the effective nonce.
    """
    if isinstance(node, LeafNode):
        if node.effective_nonce is None or node.partial_sig is None:
            raise TreeStateError(f"leaf is missing round-2 output: {node.id}")
        return Signature(R=node.effective_nonce, s=node.partial_sig)

    agg = _check_aggregator(node)
    child_sigs = [aggregate_round2(child) for child in agg.children]
    R = child_sigs[0].R
    for child, sig in zip(agg.children[1:], child_sigs[1:]):
        if sig.R != R:
            logger.warning(
                "effective nonce of %s disagrees with its siblings under %s",
                child.id, agg.id,
            )
            raise NonceMismatchError(
                f"children produced different effective nonces under: {agg.id}"
            )

    sigma = sign_agg_prime([sig.s for sig in child_sigs], R)
    agg.partial_sig = sigma.s
    agg.effective_nonce = sigma.R
    return sigma


def round2_tree(
    root: TreeNode,
    message: bytes,
    max_workers: Optional[int] = None,
) -> Signature:
    """
    Partially sign at every leaf, merge bottom-up, store the root signature.

    Leaves are independent; with ``max_workers > 1`` they sign in a
    thread pool.  Any failure aborts the whole session.
    """
    root_agg = _check_aggregator(root)
    leaves = collect_leaves(root_agg)
    logger.debug("round 2 over %d leaves", len(leaves))

    if max_workers is not None and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = [
                pool.submit(sign_leaf, root_agg, leaf, message)
                for leaf in leaves
            ]
            for future in futures:
                future.result()
    else:
        for leaf in leaves:
            sign_leaf(root_agg, leaf, message)

    sigma = aggregate_round2(root_agg)
    root_agg.signature = sigma
    return sigma

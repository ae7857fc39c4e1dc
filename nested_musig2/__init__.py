"""
nested_musig2: hierarchical MuSig2 multi-signatures over secp256k1.

Signers are leaves of a tree of cosigner groups.  Every group's key is
the MuSig2 aggregate of its children's keys, and two rounds of
interaction yield one Schnorr signature under the root's key:

- **Key aggregation** with hash-derived coefficients, nested per level
- **Round 1**: two nonces per signer, re-bound to each group's key on
  the way up
- **Round 2**: partial signatures whose coefficients are products over
  the signer's ancestors

Quick start
-----------
::

    from nested_musig2 import CosignerTree

    tree = CosignerTree.from_spec(("root", ["a", ("group-b", ["b1", "b2"])]))
    tree.keygen()

    sig = tree.sign(b"single-nesting")
    assert tree.verify(b"single-nesting", sig)
"""

__version__ = "0.1.0"

# ── core types ──────────────────────────────────────────────────────────
from .curve import (
    Scalar,
    Point,
    G,
    N,
    NU,
    ORDER,
    mod,
    mod_add,
    mod_mul,
    mod_pow,
    random_scalar,
    serialize_point,
    deserialize_point,
    serialize_scalar,
    serialize_point_list,
)

# ── hashing ─────────────────────────────────────────────────────────────
from .hash import (
    tagged_hash,
    tagged_hash_scalar,
    hash_agg,
    hash_non,
    hash_non_bar,
    hash_sig,
)

# ── protocol primitives ─────────────────────────────────────────────────
from .keyagg import KeyPair, key_gen, key_agg, key_agg_coef
from .nonces import Round1Output, Round1State, sign, sign_agg, sign_agg_ext
from .signing import (
    PartialSignature,
    Signature,
    SignPrimeTrace,
    sign_prime,
    sign_agg_prime,
    verify,
)

# ── tree orchestration ──────────────────────────────────────────────────
from .tree import (
    TreeNode,
    LeafNode,
    AggregatorNode,
    PathEntry,
    SignPrimeInputs,
    create_leaf,
    create_aggregator,
    iter_nodes,
    collect_leaves,
    find_leaf_path,
    compute_depths,
    key_gen_tree,
    round1_tree,
    collect_sign_prime_inputs,
    sign_leaf,
    aggregate_round2,
    round2_tree,
)
from .protocol import CosignerTree, NodeView

# ── errors ──────────────────────────────────────────────────────────────
from .exceptions import (
    NestedMuSig2Error,
    InputValidationError,
    StateReuseError,
    ConsistencyError,
    NonceMismatchError,
    LeafNotFoundError,
    NodeKindError,
    TreeStateError,
)

__all__ = [
    # version
    "__version__",
    # core
    "Scalar", "Point", "G", "N", "NU", "ORDER",
    "mod", "mod_add", "mod_mul", "mod_pow", "random_scalar",
    "serialize_point", "deserialize_point", "serialize_scalar",
    "serialize_point_list",
    # hashing
    "tagged_hash", "tagged_hash_scalar",
    "hash_agg", "hash_non", "hash_non_bar", "hash_sig",
    # primitives
    "KeyPair", "key_gen", "key_agg", "key_agg_coef",
    "Round1Output", "Round1State", "sign", "sign_agg", "sign_agg_ext",
    "PartialSignature", "Signature", "SignPrimeTrace",
    "sign_prime", "sign_agg_prime", "verify",
    # tree
    "TreeNode", "LeafNode", "AggregatorNode", "PathEntry", "SignPrimeInputs",
    "create_leaf", "create_aggregator", "iter_nodes", "collect_leaves",
    "find_leaf_path", "compute_depths", "key_gen_tree", "round1_tree",
    "collect_sign_prime_inputs", "sign_leaf", "aggregate_round2",
    "round2_tree",
    "CosignerTree", "NodeView",
    # errors
    "NestedMuSig2Error", "InputValidationError", "StateReuseError",
    "ConsistencyError", "NonceMismatchError", "LeafNotFoundError",
    "NodeKindError", "TreeStateError",
]

"""
Domain-separated hash functions for nested MuSig2.

Every protocol role hashes under its own tag so that the key-aggregation
coefficient, the two binding coefficients and the Schnorr challenge are
independent random oracles, even when fed identical bytes.

Convention follows BIP-340 tagged hashes:

    H_tag(x) = SHA-256( SHA-256(tag) ‖ SHA-256(tag) ‖ x )

Inputs are raw concatenations of fixed-width encodings (33-byte
compressed points); the argument order of each role is part of the
security argument and must not change.
"""

from __future__ import annotations

import functools
import hashlib
from typing import Sequence

from .curve import Scalar, Point, serialize_point, serialize_point_list


# ── domain tags ─────────────────────────────────────────────────────────
TAG_AGG     = "NestedMuSig2/agg"
TAG_NON     = "NestedMuSig2/non"
TAG_NON_BAR = "NestedMuSig2/non_bar"
TAG_SIG     = "NestedMuSig2/sig"


# ── internal helpers ────────────────────────────────────────────────────
@functools.lru_cache(maxsize=None)
def _tag_prefix(tag: str) -> bytes:
    """``SHA-256(tag) ‖ SHA-256(tag)`` — a pure function of the tag."""
    tag_hash = hashlib.sha256(tag.encode("ascii")).digest()
    return tag_hash + tag_hash


# warm the cache for the four protocol roles at import
for _tag in (TAG_AGG, TAG_NON, TAG_NON_BAR, TAG_SIG):
    _tag_prefix(_tag)
del _tag


def tagged_hash(tag: str, *data: bytes) -> bytes:
    """Compute the BIP-340 tagged hash of the concatenated *data*."""
    h = hashlib.sha256(_tag_prefix(tag))
    for chunk in data:
        h.update(chunk)
    return h.digest()


def tagged_hash_scalar(tag: str, *data: bytes) -> Scalar:
    """Hash to scalar: big-endian digest reduced mod *N*."""
    return Scalar.from_bytes_reduce(tagged_hash(tag, *data))


def _serialize_key_multiset(L: Sequence[Point]) -> bytes:
    """Byte-wise sorted concatenation — independent of the order of *L*."""
    return b"".join(sorted(serialize_point(X) for X in L))


# ── protocol hash roles ─────────────────────────────────────────────────

def hash_agg(L: Sequence[Point], X: Point) -> Scalar:
    r"""
    Key-aggregation coefficient  a = H_agg(L, X).

    The keyset is hashed as a sorted multiset, so any permutation of *L*
    gives the same coefficient.
    """
    return tagged_hash_scalar(
        TAG_AGG, _serialize_key_multiset(L), serialize_point(X),
    )


def hash_non(X: Point, Rs: Sequence[Point]) -> Scalar:
    """Binding coefficient of a non-root aggregator:  b = H_non(X, R_1..R_ν)."""
    return tagged_hash_scalar(
        TAG_NON, serialize_point(X), serialize_point_list(Rs),
    )


def hash_non_bar(X: Point, Rs: Sequence[Point], message: bytes) -> Scalar:
    """Top-level binding coefficient, additionally bound to the message."""
    return tagged_hash_scalar(
        TAG_NON_BAR, serialize_point(X), serialize_point_list(Rs), message,
    )


def hash_sig(X: Point, R: Point, message: bytes) -> Scalar:
    """Schnorr challenge  c = H_sig(X̃, R, m)."""
    return tagged_hash_scalar(
        TAG_SIG, serialize_point(X), serialize_point(R), message,
    )

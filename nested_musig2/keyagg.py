"""
Key generation and MuSig2 key aggregation.

    X̃ = Σ_i  H_agg(L, X_i) · X_i

Each key is reweighted by a hash of the whole keyset, so a rogue key
cannot be chosen to cancel the others.  Aggregation nests: an aggregate
key may itself appear in a parent's keyset, and a leaf's weight in the
top-level key is the product of its coefficients along the path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .curve import Scalar, Point, G
from .exceptions import InputValidationError
from .hash import hash_agg


@dataclass(frozen=True)
class KeyPair:
    """Signer key pair with ``pk = sk · G``.  ``sk`` never leaves the signer."""

    sk: Scalar
    pk: Point

    def __repr__(self) -> str:
        return f"KeyPair(pk={self.pk!r})"


def key_gen() -> KeyPair:
    sk = Scalar.random()
    return KeyPair(sk=sk, pk=sk * G)


def key_agg_coef(L: Sequence[Point], X: Point) -> Scalar:
    """Weight of *X* within keyset *L*; independent of the order of *L*."""
    return hash_agg(L, X)


def key_agg(L: Sequence[Point]) -> Point:
    if not L:
        raise InputValidationError("key_agg requires at least one public key")
    coeffs = [key_agg_coef(L, X) for X in L]
    return Point.msm(L, coeffs)

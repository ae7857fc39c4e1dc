"""
Round 2 of nested MuSig2: partial signing, aggregation and verification.

A leaf at depth Λ signs with the context of every ancestor, given
root-first: ``outs[d]`` is the *unbound* nonce aggregate of the ancestor
at depth *d* and ``cosigner_keys[d]`` the keys of that ancestor's other
children.  Walking from the immediate parent up to the root, the leaf
recomputes every aggregate key on its path, its aggregation coefficient
at each level and each ancestor's binding coefficient:

    a_d = H_agg(L_d, X_d)               (weight at level d)
    b_d = H_non(X̃_d, out_d)             (d > 0)
    b_0 = H_non̄(X̃, out_0, m)            (top level, message bound)
    R   = Σ_j b_0^j · out_0[j]
    c   = H_sig(X̃, R, m)
    s   = c · Π a_d · x  +  Σ_j r_j · (Π b_d)^j

Key aggregation is linear across levels, so a leaf's weight in X̃ is
Π a_d; likewise its nonce R_j reaches the root scaled by Π_{d>0} b_d^j.
Summing every leaf's  s  yields a plain Schnorr signature  (R, s)  under
X̃.  With Λ = 1 this is flat MuSig2.

References
----------
- Nick, Ruffing, Seurin (2021). "MuSig2: Simple Two-Round Schnorr
  Multi-Signatures."  CRYPTO 2021.
- BIP-327  MuSig2 for BIP-340-compatible multi-signatures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .curve import Scalar, Point, G, NU, SCALAR_BYTES, COMPRESSED_BYTES
from .exceptions import InputValidationError
from .hash import hash_non, hash_non_bar, hash_sig
from .keyagg import key_agg, key_agg_coef
from .nonces import Round1State

logger = logging.getLogger(__name__)


# ── data structures ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class PartialSignature:
    """A leaf's (or subtree's) round-2 output  (s, R)."""

    s: Scalar
    R: Point


@dataclass(frozen=True)
class Signature:
    """
    Final aggregated signature  (R, s).

    Verifiable as a standard Schnorr signature:
        s·G  ==  R + c·X̃   where  c = H_sig(X̃, R, m).
    """

    R: Point
    s: Scalar

    def to_bytes(self) -> bytes:
        """Serialise to 65 bytes: compressed R (33) + s (32)."""
        return self.R.to_bytes() + self.s.to_bytes()

    @classmethod
    def from_bytes(cls, data: bytes) -> Signature:
        if len(data) != COMPRESSED_BYTES + SCALAR_BYTES:
            raise InputValidationError(
                f"expected {COMPRESSED_BYTES + SCALAR_BYTES} bytes, "
                f"got {len(data)}"
            )
        R = Point.from_bytes(data[:COMPRESSED_BYTES])
        s = Scalar.from_bytes(data[COMPRESSED_BYTES:])
        return cls(R=R, s=s)


@dataclass(frozen=True)
class SignPrimeTrace:
    """
    Every intermediate value of one ``sign_prime`` call, indexed by level
    (0 = root).  Holds no secret material; meant for debugging tools.
    """

    pk1: List[Point]
    L: List[List[Point]]
    a1: List[Scalar]
    b: List[Scalar]
    Xtilde: Point
    R: Point
    b_check: Scalar
    c: Scalar
    c_check: Scalar
    s: Scalar


# ── round 2 ─────────────────────────────────────────────────────────────

def sign_prime(
    state: Round1State,
    outs: Sequence[Sequence[Point]],
    secret_key: Scalar,
    message: bytes,
    cosigner_keys: Sequence[Sequence[Point]],
) -> Tuple[PartialSignature, SignPrimeTrace]:
    """
    Compute a leaf's partial signature, consuming its round-1 state.

    Parameters
    ----------
    state : Round1State
        The leaf's one-time secret nonces.  Cleared on success; a second
        call with the same state raises ``StateReuseError``.
    outs : list[list[Point]]
        Root-first unbound nonce aggregates of every ancestor.
    secret_key : Scalar
        The leaf's secret key.
    message : bytes
        Message being signed.
    cosigner_keys : list[list[Point]]
        Root-first keys of each ancestor's other children.
    """
    lam = len(outs)
    if lam == 0:
        raise InputValidationError(
            "sign_prime requires at least one ancestor level"
        )
    if len(cosigner_keys) != lam:
        raise InputValidationError(
            f"cosigner_keys has {len(cosigner_keys)} levels, outs has {lam}"
        )
    for d, out in enumerate(outs):
        if len(out) != NU:
            raise InputValidationError(f"outs[{d}] must have length {NU}")
        if not all(isinstance(R, Point) for R in out):
            raise InputValidationError(f"outs[{d}] must hold points")
    for d, keys in enumerate(cosigner_keys):
        if not all(isinstance(X, Point) for X in keys):
            raise InputValidationError(f"cosigner_keys[{d}] must hold points")
    if isinstance(secret_key, int) and not isinstance(secret_key, bool):
        secret_key = Scalar(secret_key)
    if not isinstance(secret_key, Scalar) or secret_key.is_zero():
        raise InputValidationError("secret_key must be a non-zero scalar")
    if not isinstance(message, (bytes, bytearray)):
        raise InputValidationError("message must be bytes")
    message = bytes(message)

    # every check above must pass before the nonces are taken
    r = state.consume()

    pk1: List[Point] = [Point.identity()] * lam
    Ls: List[List[Point]] = [[] for _ in range(lam)]
    a1: List[Scalar] = [Scalar.zero()] * lam
    b: List[Scalar] = [Scalar.zero()] * lam

    pk1[lam - 1] = secret_key * G
    Xtilde = pk1[lam - 1]
    for d in range(lam - 1, -1, -1):
        Ls[d] = [pk1[d], *cosigner_keys[d]]
        a1[d] = key_agg_coef(Ls[d], pk1[d])
        agg_d = key_agg(Ls[d])
        if d > 0:
            pk1[d - 1] = agg_d
            b[d] = hash_non(agg_d, outs[d])
        else:
            Xtilde = agg_d

    top = outs[0]
    b[0] = hash_non_bar(Xtilde, top, message)
    R = Point.sum_points([(b[0] ** j) * top[j] for j in range(NU)])

    b_check = Scalar.one()
    for b_d in b:
        b_check = b_check * b_d

    c = hash_sig(Xtilde, R, message)

    c_check = c
    for a_d in a1:
        c_check = c_check * a_d

    s = c_check * secret_key
    for j in range(NU):
        s = s + r[j] * (b_check ** j)
    r.clear()

    logger.debug("computed partial signature at depth %d", lam)
    trace = SignPrimeTrace(
        pk1=pk1, L=Ls, a1=a1, b=b, Xtilde=Xtilde, R=R,
        b_check=b_check, c=c, c_check=c_check, s=s,
    )
    return PartialSignature(s=s, R=R), trace


# ── aggregation ─────────────────────────────────────────────────────────

def sign_agg_prime(partials: Sequence[Scalar], R: Point) -> Signature:
    """Sum partial signatures that share the effective nonce *R*."""
    return Signature(R=R, s=sum(partials, Scalar.zero()))


# ── verification ────────────────────────────────────────────────────────

def verify(aggregate_key: Point, message: bytes, signature: Signature) -> bool:
    """
    Schnorr verification:  s·G  ==  R + c·X̃.

    Never raises; malformed input simply fails to verify.
    """
    try:
        c = hash_sig(aggregate_key, signature.R, message)
        lhs = signature.s * G
        rhs = signature.R + (c * aggregate_key)
    except (AttributeError, TypeError, ValueError) as exc:
        logger.debug("verification rejected malformed input: %s", exc)
        return False
    return lhs == rhs

"""
Round 1: nonce generation, aggregation and per-level binding.

A leaf samples ``NU`` nonces  r_j  and publishes  R_j = r_j · G.  Each
aggregator sums its children's outputs componentwise (the *internal*
aggregate) and, before handing anything to its own parent, binds the
sum to its aggregate key:

    b        = H_non(X_node, R_1 … R_ν)
    bound[j] = b^j · R_j

The internal aggregate is kept, because round 2 needs it; only the bound
output travels upward.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .curve import Scalar, Point, G, NU, COMPRESSED_BYTES
from .exceptions import InputValidationError, StateReuseError
from .hash import hash_non

logger = logging.getLogger(__name__)


# ── data structures ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Round1Output:
    """Public nonce commitments  (R_0 … R_{ν-1})  of a signer or subtree."""

    nonces: Tuple[Point, ...]

    def __post_init__(self) -> None:
        if len(self.nonces) != NU:
            raise InputValidationError(
                f"round-1 output must hold {NU} nonces, got {len(self.nonces)}"
            )

    def to_bytes(self) -> bytes:
        return b"".join(R.to_bytes() for R in self.nonces)

    @classmethod
    def from_bytes(cls, data: bytes) -> Round1Output:
        if len(data) != NU * COMPRESSED_BYTES:
            raise InputValidationError(
                f"expected {NU * COMPRESSED_BYTES} bytes, got {len(data)}"
            )
        return cls(nonces=tuple(
            Point.from_bytes(data[i:i + COMPRESSED_BYTES])
            for i in range(0, len(data), COMPRESSED_BYTES)
        ))


@dataclass
class Round1State:
    """Secret nonces paired with a ``Round1Output`` — MUST be used once."""

    secrets: List[Scalar] = field(repr=False)
    consumed: bool = False
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False,
    )

    def consume(self) -> List[Scalar]:
        """
        Take the secret nonces and clear this state.

        The check and the clear happen under one lock, so of any number
        of callers (sequential or concurrent) exactly one succeeds.
        """
        with self._lock:
            if self.consumed:
                logger.warning("rejected reuse of a consumed round-1 state")
                raise StateReuseError(
                    "round-1 state already consumed; nonce reuse refused"
                )
            if len(self.secrets) != NU:
                raise InputValidationError(
                    f"round-1 state must hold {NU} secrets, "
                    f"got {len(self.secrets)}"
                )
            taken = list(self.secrets)
            self.secrets.clear()
            self.consumed = True
            return taken


# ── round-1 operations ──────────────────────────────────────────────────

def sign() -> Tuple[Round1Output, Round1State]:
    """Sample ``NU`` fresh nonces for one signing session."""
    secrets = [Scalar.random() for _ in range(NU)]
    out = Round1Output(nonces=tuple(r * G for r in secrets))
    return out, Round1State(secrets=secrets)


def sign_agg(outs: Sequence[Round1Output]) -> List[Point]:
    """Componentwise sum of round-1 outputs (the unbound aggregate)."""
    if not outs:
        raise InputValidationError(
            "sign_agg requires at least one round-1 output"
        )
    for out in outs:
        if len(out.nonces) != NU:
            raise InputValidationError(
                f"round-1 output must hold {NU} nonces"
            )
    return [
        Point.sum_points([out.nonces[j] for out in outs])
        for j in range(NU)
    ]


def sign_agg_ext(
    internal_agg: Sequence[Point],
    node_pk: Point,
) -> Tuple[List[Point], Scalar]:
    """
    Bind an internal aggregate to the aggregator's key.

    Returns ``(bound, b)`` where  b = H_non(node_pk, internal_agg)  and
    bound[j] = b^j · internal_agg[j].
    """
    if len(internal_agg) != NU:
        raise InputValidationError(
            f"internal aggregate must hold {NU} points, got {len(internal_agg)}"
        )
    b = hash_non(node_pk, internal_agg)
    bound = [(b ** j) * internal_agg[j] for j in range(NU)]
    return bound, b

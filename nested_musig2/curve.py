"""
Group arithmetic on secp256k1 via libsecp256k1.

Scalar multiplication and point addition are delegated to ``coincurve``,
which wraps Bitcoin Core's libsecp256k1.  Scalar arithmetic stays in
pure Python: it is cheap, and the protocol needs exact control over
reduction mod *N*.

Install
-------
    pip install coincurve>=18.0.0

References
----------
- SEC 2 v2 §2.4.1  secp256k1 domain parameters
- BIP-340            Schnorr signature specification for Bitcoin
"""

from __future__ import annotations

import secrets
from typing import Optional, Sequence

from coincurve import PrivateKey as _SK, PublicKey as _PK

# ── secp256k1 constants ─────────────────────────────────────────────────
ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
N = ORDER
SCALAR_BYTES = 32
COMPRESSED_BYTES = 33

# Number of nonces per signer.  Fixed by the MuSig2 security proof.
NU = 2


# ── integer arithmetic mod N ────────────────────────────────────────────
def mod(a: int) -> int:
    return a % ORDER


def mod_add(a: int, b: int) -> int:
    return (a + b) % ORDER


def mod_mul(a: int, b: int) -> int:
    return (a * b) % ORDER


def mod_pow(base: int, exp: int) -> int:
    """Square-and-multiply exponentiation mod *N*.  ``exp = 0`` gives 1."""
    if exp < 0:
        raise ValueError("exponent must be ≥ 0")
    result = 1
    cur = base % ORDER
    while exp > 0:
        if exp & 1:
            result = mod_mul(result, cur)
        exp >>= 1
        cur = mod_mul(cur, cur)
    return result


# ── Scalar  (Z_N arithmetic) ────────────────────────────────────────────
class Scalar:
    """Element of the scalar field  Z_N  where *N* = ``ORDER``."""

    __slots__ = ("_v",)

    def __init__(self, value: int) -> None:
        self._v = value % ORDER

    # constructors -----------------------------------------------------------
    @classmethod
    def zero(cls) -> Scalar:
        return cls(0)

    @classmethod
    def one(cls) -> Scalar:
        return cls(1)

    @classmethod
    def random(cls) -> Scalar:
        """Uniform in [1, N-1] via rejection sampling."""
        while True:
            c = int.from_bytes(secrets.token_bytes(SCALAR_BYTES), "big")
            if 0 < c < ORDER:
                return cls(c)

    @classmethod
    def from_bytes(cls, data: bytes) -> Scalar:
        if len(data) != SCALAR_BYTES:
            raise ValueError(f"need {SCALAR_BYTES} bytes, got {len(data)}")
        v = int.from_bytes(data, "big")
        if v >= ORDER:
            raise ValueError("scalar out of range")
        return cls(v)

    @classmethod
    def from_bytes_reduce(cls, data: bytes) -> Scalar:
        """Hash-output safe: reduce arbitrary length modulo *N*."""
        return cls(int.from_bytes(data, "big"))

    # serialisation ----------------------------------------------------------
    def to_bytes(self) -> bytes:
        return self._v.to_bytes(SCALAR_BYTES, "big")

    @property
    def value(self) -> int:
        return self._v

    def is_zero(self) -> bool:
        return self._v == 0

    # arithmetic -------------------------------------------------------------
    def __add__(self, o: Scalar) -> Scalar:
        if not isinstance(o, Scalar):
            return NotImplemented
        return Scalar(mod_add(self._v, o._v))

    def __radd__(self, o):
        if isinstance(o, int) and o == 0:
            return self                       # for sum()
        return NotImplemented

    def __sub__(self, o: Scalar) -> Scalar:
        if not isinstance(o, Scalar):
            return NotImplemented
        return Scalar(self._v - o._v)

    def __mul__(self, o):
        if isinstance(o, Scalar):
            return Scalar(mod_mul(self._v, o._v))
        if isinstance(o, Point):
            return o._smul(self)
        return NotImplemented

    def __rmul__(self, o):
        if isinstance(o, int):
            return Scalar(mod_mul(o, self._v))
        return NotImplemented

    def __neg__(self) -> Scalar:
        return Scalar(-self._v)

    def __pow__(self, e: int) -> Scalar:
        return Scalar(mod_pow(self._v, e))

    # comparison / hashing ---------------------------------------------------
    def __eq__(self, o: object) -> bool:
        if isinstance(o, Scalar):
            return self._v == o._v
        if isinstance(o, int):
            return self._v == o % ORDER
        return False

    def __hash__(self) -> int:
        return hash(self._v)

    def __bool__(self) -> bool:
        return self._v != 0

    def __repr__(self) -> str:
        h = hex(self._v)
        return f"Scalar(0x{h[2:10]}…)" if len(h) > 14 else f"Scalar({h})"


# ── Point  (secp256k1 group element via libsecp256k1) ───────────────────
class Point:
    """
    Point on secp256k1.

    The identity (point at infinity) is represented by a flag rather than
    a ``coincurve.PublicKey``; it serialises as ``COMPRESSED_BYTES`` zero
    bytes so every point, identity included, has a fixed-width encoding.
    """

    __slots__ = ("_pk", "_inf")

    def __init__(self, *, pk: Optional[_PK] = None, infinity: bool = False):
        self._pk: Optional[_PK] = pk
        self._inf: bool = infinity

    # constructors -----------------------------------------------------------
    @classmethod
    def generator(cls) -> Point:
        """Standard base point *G*."""
        return cls(pk=_SK(b"\x00" * 31 + b"\x01").public_key)

    @classmethod
    def identity(cls) -> Point:
        """Point at infinity — additive identity."""
        return cls(infinity=True)

    @classmethod
    def from_bytes(cls, data: bytes) -> Point:
        """Deserialise SEC 1 compressed (33 B); all-zero means identity."""
        if len(data) != COMPRESSED_BYTES:
            raise ValueError(
                f"need {COMPRESSED_BYTES} bytes, got {len(data)}"
            )
        if all(b == 0 for b in data):
            return cls.identity()
        return cls(pk=_PK(data))

    # serialisation ----------------------------------------------------------
    def to_bytes(self) -> bytes:
        if self._inf:
            return b"\x00" * COMPRESSED_BYTES
        return self._pk.format(compressed=True)  # type: ignore[union-attr]

    def is_inf(self) -> bool:
        return self._inf

    # group operations -------------------------------------------------------
    def _smul(self, s: Scalar) -> Point:
        """Scalar multiplication  s · self  (C speed)."""
        if self._inf or s.is_zero():
            return Point.identity()
        copy = _PK(self._pk.format())  # type: ignore[union-attr]
        return Point(pk=copy.multiply(s.to_bytes()))

    def __neg__(self) -> Point:
        if self._inf:
            return self
        raw = bytearray(self._pk.format(compressed=True))  # type: ignore
        raw[0] ^= 0x01            # 0x02 ↔ 0x03 flip parity
        return Point(pk=_PK(bytes(raw)))

    def __add__(self, o: Point) -> Point:
        if not isinstance(o, Point):
            return NotImplemented
        if self._inf:
            return o
        if o._inf:
            return self
        # check for P + (-P) = O
        if self._pk.format() == (-o)._pk.format():  # type: ignore
            return Point.identity()
        return Point(pk=_PK.combine_keys(
            [self._pk, o._pk]))  # type: ignore[list-item]

    def __sub__(self, o: Point) -> Point:
        return self + (-o)

    def __rmul__(self, s) -> Point:
        if isinstance(s, Scalar):
            return self._smul(s)
        if isinstance(s, int):
            return self._smul(Scalar(s))
        return NotImplemented

    def __eq__(self, o: object) -> bool:
        if not isinstance(o, Point):
            return False
        if self._inf and o._inf:
            return True
        if self._inf or o._inf:
            return False
        return self._pk.format() == o._pk.format()  # type: ignore

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __repr__(self) -> str:
        if self._inf:
            return "Point(∞)"
        return f"Point(0x{self.to_bytes().hex()[:16]}…)"

    # utility ----------------------------------------------------------------
    @staticmethod
    def sum_points(points: Sequence[Point]) -> Point:
        """Multi-point addition, folding through ``__add__``."""
        acc = Point.identity()
        for p in points:
            acc = acc + p
        return acc

    @staticmethod
    def msm(points: Sequence[Point], scalars: Sequence[Scalar]) -> Point:
        """Multi-scalar multiplication  Σ s_i · P_i."""
        if len(points) != len(scalars):
            raise ValueError("points and scalars must have equal length")
        return Point.sum_points([s * p for p, s in zip(points, scalars)])


# ── module-level generator ──────────────────────────────────────────────
G = Point.generator()


# ── serialisation helpers ───────────────────────────────────────────────
def serialize_point(P: Point) -> bytes:
    """Compressed SEC 1 encoding, always ``COMPRESSED_BYTES`` long."""
    return P.to_bytes()


def deserialize_point(data: bytes) -> Point:
    return Point.from_bytes(data)


def serialize_scalar(s: Scalar) -> bytes:
    """32-byte big-endian encoding."""
    return s.to_bytes()


def serialize_point_list(points: Sequence[Point]) -> bytes:
    """Concatenate compressed points in the given order."""
    return b"".join(serialize_point(p) for p in points)


def random_scalar() -> Scalar:
    return Scalar.random()

"""
Tests for round 2 partial signing, signature aggregation and verification.
"""

import pytest

from nested_musig2.curve import G, NU, Point, Scalar
from nested_musig2.exceptions import InputValidationError, StateReuseError
from nested_musig2.hash import hash_agg, hash_non_bar, hash_sig
from nested_musig2.keyagg import key_agg, key_agg_coef, key_gen
from nested_musig2.nonces import sign, sign_agg
from nested_musig2.signing import (
    PartialSignature,
    Signature,
    sign_agg_prime,
    sign_prime,
    verify,
)


def run_flat_session(signers, message):
    """Flat MuSig2 with one aggregator level; returns (Xtilde, partials)."""
    L = [kp.pk for kp in signers]
    round1 = [sign() for _ in signers]
    internal = sign_agg([out for out, _ in round1])

    partials = []
    for idx, kp in enumerate(signers):
        others = [pk for i, pk in enumerate(L) if i != idx]
        result, _ = sign_prime(
            state=round1[idx][1],
            outs=[internal],
            secret_key=kp.sk,
            message=message,
            cosigner_keys=[others],
        )
        partials.append(result)
    return key_agg(L), partials


class TestFlatSigning:

    def test_three_signers_verify(self):
        signers = [key_gen() for _ in range(3)]
        Xtilde, partials = run_flat_session(signers, b"flat-musig2-message")

        R = partials[0].R
        assert all(p.R == R for p in partials)

        sig = sign_agg_prime([p.s for p in partials], R)
        assert verify(Xtilde, b"flat-musig2-message", sig)
        assert not verify(Xtilde, b"wrong-message", sig)

    def test_single_signer(self):
        kp = key_gen()
        Xtilde, partials = run_flat_session([kp], b"solo")
        sig = sign_agg_prime([partials[0].s], partials[0].R)
        assert verify(Xtilde, b"solo", sig)

    def test_wrong_key_rejected(self):
        signers = [key_gen() for _ in range(2)]
        _, partials = run_flat_session(signers, b"m")
        sig = sign_agg_prime([p.s for p in partials], partials[0].R)
        assert not verify(key_gen().pk, b"m", sig)

    def test_missing_partial_fails(self):
        signers = [key_gen() for _ in range(3)]
        Xtilde, partials = run_flat_session(signers, b"m")
        sig = sign_agg_prime([p.s for p in partials[:2]], partials[0].R)
        assert not verify(Xtilde, b"m", sig)


class TestSignPrime:

    def _inputs(self):
        signer, cosigner = key_gen(), key_gen()
        (out_a, state_a), (out_b, _) = sign(), sign()
        internal = sign_agg([out_a, out_b])
        return signer, cosigner, state_a, internal

    def test_state_is_single_use(self):
        signer, cosigner, state, internal = self._inputs()
        kwargs = dict(
            state=state, outs=[internal], secret_key=signer.sk,
            message=b"state-consumption-test", cosigner_keys=[[cosigner.pk]],
        )
        sign_prime(**kwargs)
        assert state.consumed
        with pytest.raises(StateReuseError):
            sign_prime(**kwargs)

    @pytest.mark.parametrize("outs_levels, key_levels", [(0, 0), (1, 2), (2, 1)])
    def test_level_mismatch_does_not_consume(self, outs_levels, key_levels):
        signer, cosigner, state, internal = self._inputs()
        with pytest.raises(InputValidationError):
            sign_prime(
                state=state,
                outs=[internal] * outs_levels,
                secret_key=signer.sk,
                message=b"m",
                cosigner_keys=[[cosigner.pk]] * key_levels,
            )
        assert len(state.secrets) == NU
        assert not state.consumed

    @pytest.mark.parametrize("bad", ["zero_key", "bytes_key", "bytes_cosigner", "bytes_nonce"])
    def test_wrong_types_do_not_consume(self, bad):
        signer, cosigner, state, internal = self._inputs()
        kwargs = dict(
            state=state, outs=[internal], secret_key=signer.sk,
            message=b"m", cosigner_keys=[[cosigner.pk]],
        )
        if bad == "zero_key":
            kwargs["secret_key"] = Scalar.zero()
        elif bad == "bytes_key":
            kwargs["secret_key"] = signer.sk.to_bytes()
        elif bad == "bytes_cosigner":
            kwargs["cosigner_keys"] = [[cosigner.pk.to_bytes()]]
        else:
            kwargs["outs"] = [[internal[0], internal[1].to_bytes()]]

        with pytest.raises(InputValidationError):
            sign_prime(**kwargs)
        assert len(state.secrets) == NU
        assert not state.consumed

    def test_integer_secret_key_accepted(self):
        signer, cosigner, state, internal = self._inputs()
        from_int, _ = sign_prime(
            state=state, outs=[internal], secret_key=signer.sk.value,
            message=b"m", cosigner_keys=[[cosigner.pk]],
        )
        assert state.consumed
        assert from_int.R == internal[0] + hash_non_bar(
            key_agg([signer.pk, cosigner.pk]), internal, b"m",
        ) * internal[1]

    def test_wrong_nonce_count_does_not_consume(self):
        signer, cosigner, state, internal = self._inputs()
        with pytest.raises(InputValidationError, match="length"):
            sign_prime(
                state=state,
                outs=[internal[:1]],
                secret_key=signer.sk,
                message=b"m",
                cosigner_keys=[[cosigner.pk]],
            )
        assert not state.consumed

    def test_trace_matches_flat_formulas(self):
        signer, cosigner, state, internal = self._inputs()
        secrets = list(state.secrets)
        m = b"trace"
        result, trace = sign_prime(
            state=state, outs=[internal], secret_key=signer.sk,
            message=m, cosigner_keys=[[cosigner.pk]],
        )

        L = [signer.pk, cosigner.pk]
        Xtilde = key_agg(L)
        b = hash_non_bar(Xtilde, internal, m)
        R = internal[0] + b * internal[1]
        c = hash_sig(Xtilde, R, m)
        a = hash_agg(L, signer.pk)

        assert trace.Xtilde == Xtilde
        assert trace.pk1 == [signer.pk]
        assert trace.a1 == [a]
        assert trace.b == [b]
        assert trace.R == R == result.R
        assert trace.c == c
        assert trace.c_check == c * a
        assert result.s == c * a * signer.sk + secrets[0] + secrets[1] * b
        assert trace.s == result.s

    def test_partial_signature_verifies_against_weighted_key(self):
        signer, cosigner = key_gen(), key_gen()
        (out_a, state_a), (out_b, _) = sign(), sign()
        internal = sign_agg([out_a, out_b])
        result, trace = sign_prime(
            state=state_a, outs=[internal], secret_key=signer.sk,
            message=b"partial", cosigner_keys=[[cosigner.pk]],
        )

        assert isinstance(result, PartialSignature)
        assert trace.c_check == trace.c * key_agg_coef(trace.L[0], signer.pk)
        nonce_share = out_a.nonces[0] + trace.b_check * out_a.nonces[1]
        assert result.s * G == nonce_share + trace.c_check * signer.pk


class TestSignature:

    def test_sign_agg_prime_sums(self):
        R = Scalar(9) * G
        sig = sign_agg_prime([Scalar(1), Scalar(2), Scalar(-1)], R)
        assert sig.s == Scalar(2)
        assert sig.R == R

    def test_bytes_round_trip(self):
        sig = Signature(R=Scalar(42) * G, s=Scalar(7))
        data = sig.to_bytes()
        assert len(data) == 65
        assert Signature.from_bytes(data) == sig

    def test_from_bytes_rejects_wrong_length(self):
        with pytest.raises(InputValidationError):
            Signature.from_bytes(b"\x00" * 64)

    def test_verify_never_raises(self):
        X = key_gen().pk
        sig = Signature(R=Scalar(3) * G, s=Scalar(5))
        assert verify(X, "not-bytes", sig) is False
        assert verify(X, b"m", None) is False
        assert verify(X, b"m", Signature(R=Point.identity(), s=Scalar.zero())) is False

    def test_verify_is_pure(self):
        signers = [key_gen() for _ in range(2)]
        Xtilde, partials = run_flat_session(signers, b"pure")
        sig = sign_agg_prime([p.s for p in partials], partials[0].R)
        before = sig.to_bytes()
        assert all(verify(Xtilde, b"pure", sig) for _ in range(3))
        assert sig.to_bytes() == before

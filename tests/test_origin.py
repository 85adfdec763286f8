"""Tests for origin certificate verification: Ed25519 JWT validation and anti-replay."""

import time

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from tiermint.origin import (
    OriginError,
    key_fingerprint,
    normalize_public_key,
    reset_jti_store,
    verify_origin_certificate,
)

CALLER = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_jti_store():
    """Reset the JTI store before each test."""
    reset_jti_store()
    yield
    reset_jti_store()


@pytest.fixture()
def keypair():
    """Generate an Ed25519 keypair for testing."""
    private_key = Ed25519PrivateKey.generate()
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_key, public_pem


def _sign_origin(
    private_key: Ed25519PrivateKey,
    *,
    sub: str = CALLER,
    has_code: object = False,
    jti: str = "jti-origin-1",
    exp_offset: int = 600,
    drop: tuple[str, ...] = (),
) -> str:
    """Sign a test origin certificate JWT."""
    claims = {
        "sub": sub,
        "has_code": has_code,
        "jti": jti,
        "iat": int(time.time()),
        "exp": int(time.time()) + exp_offset,
    }
    for key in drop:
        claims.pop(key, None)
    return jwt.encode(claims, private_key, algorithm="EdDSA")


def _bare(public_pem: str) -> str:
    lines = [ln for ln in public_pem.strip().splitlines() if not ln.startswith("-----")]
    return "".join(lines).strip()


# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


class TestKeyHelpers:
    def test_normalize_wraps_bare_key(self) -> None:
        pem = normalize_public_key("MCowBQYDK2VwAyEAabc")
        assert pem.startswith("-----BEGIN PUBLIC KEY-----\n")
        assert pem.endswith("\n-----END PUBLIC KEY-----")

    def test_normalize_keeps_pem(self, keypair) -> None:
        _, public_pem = keypair
        assert normalize_public_key(public_pem) == public_pem.strip()

    def test_fingerprint_same_for_pem_and_bare(self, keypair) -> None:
        _, public_pem = keypair
        assert key_fingerprint(public_pem) == key_fingerprint(_bare(public_pem))
        assert len(key_fingerprint(public_pem)) == 8


# ---------------------------------------------------------------------------
# verify_origin_certificate
# ---------------------------------------------------------------------------


class TestVerifyOriginValid:
    def test_external_caller(self, keypair) -> None:
        private_key, public_pem = keypair
        context = verify_origin_certificate(_sign_origin(private_key), public_pem)
        assert context.address == CALLER
        assert context.has_code is False

    def test_contract_caller(self, keypair) -> None:
        private_key, public_pem = keypair
        token = _sign_origin(private_key, has_code=True, jti="jti-contract")
        context = verify_origin_certificate(token, public_pem)
        assert context.has_code is True

    def test_bare_base64_key_accepted(self, keypair) -> None:
        private_key, public_pem = keypair
        token = _sign_origin(private_key, jti="jti-bare")
        context = verify_origin_certificate(token, _bare(public_pem))
        assert context.address == CALLER

    def test_subject_is_normalized(self, keypair) -> None:
        private_key, public_pem = keypair
        token = _sign_origin(private_key, sub="0x70997970C51812dc3A010C7d01b50e0d17dc79C8")
        assert verify_origin_certificate(token, public_pem).address == CALLER


class TestVerifyOriginInvalid:
    def test_expired(self, keypair) -> None:
        private_key, public_pem = keypair
        token = _sign_origin(private_key, exp_offset=-60)
        with pytest.raises(OriginError, match="expired"):
            verify_origin_certificate(token, public_pem)

    def test_wrong_key(self, keypair) -> None:
        private_key, _ = keypair
        other_pem = Ed25519PrivateKey.generate().public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()
        with pytest.raises(OriginError, match="signature is invalid"):
            verify_origin_certificate(_sign_origin(private_key), other_pem)

    def test_garbage_token(self, keypair) -> None:
        _, public_pem = keypair
        with pytest.raises(OriginError, match="could not be decoded"):
            verify_origin_certificate("not.a.jwt", public_pem)

    def test_invalid_public_key(self, keypair) -> None:
        private_key, _ = keypair
        with pytest.raises(OriginError, match="Invalid origin public key"):
            verify_origin_certificate(_sign_origin(private_key), "not-a-key")

    def test_missing_jti(self, keypair) -> None:
        private_key, public_pem = keypair
        token = _sign_origin(private_key, drop=("jti",))
        with pytest.raises(OriginError, match="missing jti"):
            verify_origin_certificate(token, public_pem)

    def test_missing_has_code(self, keypair) -> None:
        private_key, public_pem = keypair
        token = _sign_origin(private_key, drop=("has_code",))
        with pytest.raises(OriginError, match="has_code"):
            verify_origin_certificate(token, public_pem)

    def test_non_bool_has_code(self, keypair) -> None:
        private_key, public_pem = keypair
        token = _sign_origin(private_key, has_code="no")
        with pytest.raises(OriginError, match="has_code"):
            verify_origin_certificate(token, public_pem)

    def test_subject_not_an_address(self, keypair) -> None:
        private_key, public_pem = keypair
        token = _sign_origin(private_key, sub="alice")
        with pytest.raises(OriginError, match="not an address"):
            verify_origin_certificate(token, public_pem)

    def test_replay_rejected(self, keypair) -> None:
        private_key, public_pem = keypair
        token = _sign_origin(private_key, jti="jti-once")
        verify_origin_certificate(token, public_pem)
        with pytest.raises(OriginError, match="replay"):
            verify_origin_certificate(token, public_pem)

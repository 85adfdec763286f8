"""Origin certificates: Ed25519 JWTs in which the calling boundary attests
who the caller is and whether the caller carries contract code.

The boundary (a wallet gateway, a relayer) signs ``{"sub": <address>,
"has_code": <bool>, "jti": ..., "exp": ...}``; the ledger host verifies it
here and hands the resulting ``CallerContext`` to the mint pipeline.
"""

from __future__ import annotations

import logging
import threading
import time

import jwt
from cryptography.hazmat.primitives.serialization import load_pem_public_key

from tiermint.guard import CallerContext

logger = logging.getLogger(__name__)


def normalize_public_key(raw: str) -> str:
    """PEM form of the boundary's signing key.

    Operators often paste only the base64 body into config; it gets the
    SubjectPublicKeyInfo armor added back.
    """
    stripped = raw.strip()
    if stripped.startswith("-----"):
        return stripped
    return f"-----BEGIN PUBLIC KEY-----\n{stripped}\n-----END PUBLIC KEY-----"


def key_fingerprint(raw: str) -> str:
    """Short tag identifying the configured origin key in status output."""
    body = "".join(
        ln.strip() for ln in raw.strip().splitlines() if not ln.startswith("-----")
    )
    return body[-8:]


class OriginError(Exception):
    """Raised when an origin certificate fails validation."""


class _JTIStore:
    """Certificate ids already spent, kept until their certificate expires.

    A certificate vouches for one call; presenting it twice is refused.
    """

    def __init__(self) -> None:
        self._seen: dict[str, float] = {}  # jti -> exp
        self._lock = threading.Lock()

    def check_and_record(self, jti: str, exp: float) -> bool:
        """Spend ``jti``. False means the certificate was already used."""
        self._cleanup()
        with self._lock:
            if jti in self._seen:
                return False
            self._seen[jti] = exp
            return True

    def _cleanup(self) -> None:
        # Expired certificates fail signature validation anyway.
        now = time.time()
        with self._lock:
            for jti in [j for j, exp in self._seen.items() if exp <= now]:
                del self._seen[jti]


_jti_store = _JTIStore()


def verify_origin_certificate(token: str, public_key_pem: str) -> CallerContext:
    """Verify a boundary-signed origin certificate and build the caller context.

    Args:
        token: The EdDSA-signed JWT.
        public_key_pem: The boundary's Ed25519 public key, bare base64 or PEM.

    Raises:
        OriginError: On invalid, expired, tampered, replayed, or incomplete
            certificates.
    """
    pem = normalize_public_key(public_key_pem)
    try:
        public_key = load_pem_public_key(pem.encode())
    except (ValueError, TypeError) as e:
        raise OriginError(f"Invalid origin public key: {e}") from e

    try:
        claims = jwt.decode(token, public_key, algorithms=["EdDSA"])
    except jwt.ExpiredSignatureError as e:
        raise OriginError("Origin certificate has expired.") from e
    except jwt.InvalidSignatureError as e:
        raise OriginError("Origin certificate signature is invalid.") from e
    except jwt.DecodeError as e:
        raise OriginError(f"Origin certificate could not be decoded: {e}") from e
    except jwt.InvalidTokenError as e:
        raise OriginError(f"Invalid origin certificate: {e}") from e

    jti = claims.get("jti")
    if not jti:
        raise OriginError("Origin certificate missing jti claim.")
    exp = claims.get("exp")
    if not exp:
        raise OriginError("Origin certificate missing exp claim.")

    has_code = claims.get("has_code")
    if not isinstance(has_code, bool):
        raise OriginError("Origin certificate missing boolean has_code claim.")

    try:
        context = CallerContext(address=claims.get("sub", ""), has_code=has_code)
    except ValueError as e:
        raise OriginError(f"Origin certificate subject is not an address: {e}") from e

    if not _jti_store.check_and_record(jti, float(exp)):
        raise OriginError(f"Origin certificate replay detected: jti {jti} already used.")

    logger.debug("Verified origin certificate %s for %s.", jti, context.address)
    return context


def reset_jti_store() -> None:
    """Reset the JTI store (testing only)."""
    global _jti_store
    _jti_store = _JTIStore()

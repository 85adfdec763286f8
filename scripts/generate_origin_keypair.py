#!/usr/bin/env python3
"""Generate an Ed25519 keypair for signing origin certificates.

The calling boundary keeps the private key and signs one short-lived JWT
per request, attesting the caller address and whether it carries code.
The ledger host is configured with the public key:

  - TierMintConfig(origin_public_key=<bare base64 public key>)
"""

from __future__ import annotations

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey


def main() -> None:
    private_key = Ed25519PrivateKey.generate()

    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    bare_public = "".join(
        ln for ln in public_pem.strip().splitlines() if not ln.startswith("-----")
    )

    print("=== Ed25519 Keypair (origin certificates) ===")
    print()
    print("Public key (share freely, set as origin_public_key):")
    print(f"  {bare_public}")
    print()
    print("Private key (PRIVATE, keep on the calling boundary, never commit to git):")
    print(private_pem)


if __name__ == "__main__":
    main()

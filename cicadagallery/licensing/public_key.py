"""
Embedded trust anchor for license verification.

The client trusts exactly one Ed25519 verification key. It is a build-time
constant: release builds replace VERIFYING_KEY_HEX with the public half
printed by `cicadagallery-license-generator keygen`. The signing half never
ships with the application.
"""

import hashlib

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

# Product identifier every license must be issued for
PRODUCT_ID = "CicadaGallery"

# Key metadata
KEY_ALGORITHM = "Ed25519"
KEY_VERSION = 1

VERIFYING_KEY_HEX = "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"

_cache: dict = {"public_key": None}


def load_trusted_key() -> Ed25519PublicKey:
    """
    Get the embedded verification key.

    Returns:
        The Ed25519 public key compiled into this build
    """
    if _cache["public_key"] is None:
        _cache["public_key"] = Ed25519PublicKey.from_public_bytes(
            bytes.fromhex(VERIFYING_KEY_HEX)
        )
    return _cache["public_key"]


def key_fingerprint() -> str:
    """Short SHA-256 fingerprint of the embedded key, for status display."""
    return hashlib.sha256(bytes.fromhex(VERIFYING_KEY_HEX)).hexdigest()[:16]


def get_key_metadata() -> dict:
    """
    Get metadata about the embedded key.

    Returns:
        Dictionary with key algorithm, version and fingerprint
    """
    return {
        "algorithm": KEY_ALGORITHM,
        "version": KEY_VERSION,
        "fingerprint": key_fingerprint(),
        "product_id": PRODUCT_ID,
    }

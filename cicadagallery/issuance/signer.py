"""
License signing for the issuance side.

Holds the Ed25519 signing key. Nothing in the client application imports
this module; it exists for the issuance service and the generator tool.
"""

import os
import time
from typing import Optional

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
    load_pem_private_key,
)

from cicadagallery.licensing.codec import LicenseRecord, encode, encode_claims
from cicadagallery.licensing.public_key import PRODUCT_ID


def generate_signing_key() -> Ed25519PrivateKey:
    """Generate a new Ed25519 signing key."""
    return Ed25519PrivateKey.generate()


def signing_key_to_pem(signing_key: Ed25519PrivateKey) -> str:
    """Serialize a signing key as unencrypted PKCS8 PEM."""
    return signing_key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=NoEncryption(),
    ).decode("utf-8")


def public_key_hex(signing_key: Ed25519PrivateKey) -> str:
    """Raw verification key, hex encoded, as embedded in client builds."""
    return (
        signing_key.public_key()
        .public_bytes(encoding=Encoding.Raw, format=PublicFormat.Raw)
        .hex()
    )


def load_signing_key(source: str) -> Ed25519PrivateKey:
    """
    Load a signing key from a file path or an inline value.

    Accepts PKCS8 PEM or the 32-byte private key seed as 64 hex characters.

    Raises:
        ValueError: If the value is neither a PEM Ed25519 key nor a hex seed
    """
    if os.path.isfile(source):
        with open(source, "r", encoding="utf-8") as key_file:
            source = key_file.read()
    source = source.strip()

    if source.startswith("-----BEGIN"):
        key = load_pem_private_key(source.encode("utf-8"), password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError("Signing key is not an Ed25519 key")
        return key

    try:
        seed = bytes.fromhex(source)
    except ValueError as exc:
        raise ValueError("Signing key is neither PEM nor hex") from exc
    if len(seed) != 32:
        raise ValueError("Hex signing key must be 32 bytes")
    return Ed25519PrivateKey.from_private_bytes(seed)


class LicenseSigner:
    """
    Issues signed license strings for one product.
    """

    def __init__(self, signing_key: Ed25519PrivateKey, product_id: str = PRODUCT_ID):
        self._signing_key = signing_key
        self.product_id = product_id

    @property
    def public_key_hex(self) -> str:
        return public_key_hex(self._signing_key)

    def sign_record(
        self,
        order_id: str,
        email: str,
        expires_at: Optional[int] = None,
        issued_at: Optional[int] = None,
    ) -> LicenseRecord:
        """
        Build and sign the claims of a new license.

        Args:
            order_id: Storefront order identifier
            email: Purchaser e-mail address
            expires_at: Expiry Unix timestamp, None for a perpetual license
            issued_at: Issue Unix timestamp, defaults to now

        Returns:
            The signed LicenseRecord
        """
        if issued_at is None:
            issued_at = int(time.time())
        claims = encode_claims(self.product_id, order_id, email, issued_at, expires_at)
        return LicenseRecord(
            product_id=self.product_id,
            order_id=order_id,
            email=email,
            issued_at=issued_at,
            expires_at=expires_at,
            signature=self._signing_key.sign(claims),
        )

    def issue(
        self,
        order_id: str,
        email: str,
        expires_at: Optional[int] = None,
        issued_at: Optional[int] = None,
    ) -> str:
        """Sign a new license and return its license string."""
        return encode(self.sign_record(order_id, email, expires_at, issued_at))

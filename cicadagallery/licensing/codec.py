"""
License record codec.

A license string is the single opaque value users copy and paste:

    CG1.<claims>.<signature>

where <claims> is the unpadded base64url encoding of the canonical claims
JSON and <signature> the unpadded base64url encoding of the 64-byte Ed25519
signature over those exact claims bytes. base64url never produces the "."
delimiter, so claim values can contain any character.

Decoding is purely structural: it never consults the verification key, so a
malformed string and a badly signed one stay distinguishable.
"""

import base64
import binascii
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from cicadagallery.licensing.errors import DecodeError

LICENSE_VERSION_TAG = "CG1"
DELIMITER = "."
SIGNATURE_LENGTH = 64

# Fixed claim order of the canonical encoding
CLAIM_FIELDS = ("product_id", "order_id", "email", "issued_at", "expires_at")

_BASE64URL_RE = re.compile(r"[A-Za-z0-9_-]+")


@dataclass(frozen=True)
class LicenseRecord:
    """Signed license claims. Immutable once issued."""

    product_id: str
    order_id: str
    email: str
    issued_at: int
    expires_at: Optional[int]
    signature: bytes

    def __post_init__(self):
        for name in ("product_id", "order_id", "email"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"{name} must be a non-empty string")
        if not _is_timestamp(self.issued_at):
            raise ValueError("issued_at must be a non-negative integer timestamp")
        if self.expires_at is not None and not _is_timestamp(self.expires_at):
            raise ValueError("expires_at must be null or an integer timestamp")
        if (
            not isinstance(self.signature, bytes)
            or len(self.signature) != SIGNATURE_LENGTH
        ):
            raise ValueError(f"signature must be {SIGNATURE_LENGTH} bytes")

    @property
    def is_perpetual(self) -> bool:
        """True when the license never expires."""
        return self.expires_at is None


def _is_timestamp(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def encode_base64url(data: bytes) -> str:
    """Encode bytes to base64url without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def decode_base64url(data: str) -> bytes:
    """
    Decode strict, unpadded base64url.

    Raises:
        DecodeError: On padding, foreign characters or non-canonical trailing bits
    """
    if not _BASE64URL_RE.fullmatch(data):
        raise DecodeError("Invalid license key encoding: not base64url")
    try:
        raw = base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Invalid license key encoding: {exc}") from exc
    if encode_base64url(raw) != data:
        raise DecodeError("Invalid license key encoding: non-canonical base64url")
    return raw


def encode_claims(
    product_id: str,
    order_id: str,
    email: str,
    issued_at: int,
    expires_at: Optional[int],
) -> bytes:
    """
    Canonical byte encoding of the claims: compact ASCII JSON, fixed key order.
    """
    claims = {
        "product_id": product_id,
        "order_id": order_id,
        "email": email,
        "issued_at": issued_at,
        "expires_at": expires_at,
    }
    return json.dumps(claims, separators=(",", ":"), ensure_ascii=True).encode(
        "ascii"
    )


def canonical_claims(record: LicenseRecord) -> bytes:
    """The exact bytes the record's signature covers."""
    return encode_claims(
        record.product_id,
        record.order_id,
        record.email,
        record.issued_at,
        record.expires_at,
    )


def encode(record: LicenseRecord) -> str:
    """Encode a license record into its license string."""
    return DELIMITER.join(
        (
            LICENSE_VERSION_TAG,
            encode_base64url(canonical_claims(record)),
            encode_base64url(record.signature),
        )
    )


def decode(license_string: str) -> LicenseRecord:
    """
    Parse a license string into a LicenseRecord.

    Args:
        license_string: The license string, surrounding whitespace is ignored

    Returns:
        The decoded record (signature not yet verified)

    Raises:
        DecodeError: If the string is structurally invalid
    """
    if not isinstance(license_string, str):
        raise DecodeError("License key must be a string")

    parts = license_string.strip().split(DELIMITER)
    if len(parts) != 3:
        raise DecodeError(
            "Invalid license key format: expected 3 parts separated by dots"
        )

    version, claims_part, signature_part = parts
    if version != LICENSE_VERSION_TAG:
        raise DecodeError(f"Unsupported license key version: {version[:16]!r}")

    claims_bytes = decode_base64url(claims_part)
    signature = decode_base64url(signature_part)
    if len(signature) != SIGNATURE_LENGTH:
        raise DecodeError(
            f"Invalid signature length: expected {SIGNATURE_LENGTH} bytes, "
            f"got {len(signature)}"
        )

    try:
        claims = json.loads(claims_bytes.decode("utf-8"))
    except ValueError as exc:
        raise DecodeError(f"Invalid license claims: {exc}") from exc

    if not isinstance(claims, dict) or set(claims) != set(CLAIM_FIELDS):
        raise DecodeError("Invalid license claims: unexpected fields")

    try:
        record = LicenseRecord(signature=signature, **claims)
    except ValueError as exc:
        raise DecodeError(f"Invalid license claims: {exc}") from exc

    # Whitespace, key order, number and escape formats must all be canonical
    if canonical_claims(record) != claims_bytes:
        raise DecodeError("Invalid license claims: non-canonical encoding")

    return record


def format_timestamp(timestamp: Optional[int]) -> str:
    """Format a claim timestamp as YYYY-MM-DD (UTC) for display."""
    if timestamp is None:
        return "Never"
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
    except (OverflowError, OSError, ValueError):
        return "Invalid date"

"""
Local license verification.

Validates a decoded LicenseRecord against the embedded Ed25519 key. This is
a pure function of its inputs (plus the wall clock for expiry): it performs
no I/O and does no logging, callers decide what to report.
"""

import time
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from cicadagallery.licensing.codec import LicenseRecord, canonical_claims, decode
from cicadagallery.licensing.errors import DecodeError, LicenseErrorKind


@dataclass(frozen=True)
class VerificationResult:
    """Result of license verification."""

    valid: bool
    reason: Optional[LicenseErrorKind] = None
    record: Optional[LicenseRecord] = None
    detail: Optional[str] = None

    @classmethod
    def ok(cls, record: LicenseRecord) -> "VerificationResult":
        return cls(valid=True, record=record)

    @classmethod
    def invalid(
        cls,
        reason: LicenseErrorKind,
        record: Optional[LicenseRecord] = None,
        detail: Optional[str] = None,
    ) -> "VerificationResult":
        return cls(valid=False, reason=reason, record=record, detail=detail)


def check_expiration(expires_at: Optional[int], now: Optional[float] = None) -> bool:
    """
    Check whether a license is still within its validity period.

    Args:
        expires_at: Expiry as a Unix timestamp, None for perpetual licenses
        now: Current wall-clock time, defaults to time.time()

    Returns:
        True if the license has not expired
    """
    if expires_at is None:
        return True
    if now is None:
        now = time.time()
    return now < expires_at


def verify_signature(record: LicenseRecord, trusted_key: Ed25519PublicKey) -> bool:
    """Verify the record's signature over its canonical claims bytes."""
    try:
        trusted_key.verify(record.signature, canonical_claims(record))
        return True
    except InvalidSignature:
        return False


def verify(
    record: LicenseRecord,
    trusted_key: Ed25519PublicKey,
    expected_product_id: str,
    now: Optional[float] = None,
) -> VerificationResult:
    """
    Validate a license record.

    Checks run in this order and stop at the first failure:
    1. product id matches the expected product
    2. the license has not expired
    3. the signature verifies against the trusted key

    Args:
        record: The decoded license record
        trusted_key: The verification key to trust
        expected_product_id: The product this build is
        now: Wall-clock time override for expiry checks

    Returns:
        VerificationResult with the failure reason, if any
    """
    if record.product_id != expected_product_id:
        return VerificationResult.invalid(LicenseErrorKind.WRONG_PRODUCT, record)

    if not check_expiration(record.expires_at, now):
        return VerificationResult.invalid(LicenseErrorKind.EXPIRED, record)

    if not verify_signature(record, trusted_key):
        return VerificationResult.invalid(LicenseErrorKind.SIGNATURE_MISMATCH, record)

    return VerificationResult.ok(record)


def validate_license_string(
    license_string: str,
    trusted_key: Ed25519PublicKey,
    expected_product_id: str,
    now: Optional[float] = None,
) -> VerificationResult:
    """
    Decode and verify a license string in one step.

    Structural problems are reported as MALFORMED_FORMAT instead of raised.
    """
    try:
        record = decode(license_string)
    except DecodeError as exc:
        return VerificationResult.invalid(exc.kind, detail=str(exc))
    return verify(record, trusted_key, expected_product_id, now)

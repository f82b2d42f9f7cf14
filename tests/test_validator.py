"""
Tests for cicadagallery/licensing/validator.py module.
Tests signature verification, product isolation, expiry and check ordering.
"""

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from cicadagallery.issuance.signer import LicenseSigner
from cicadagallery.licensing.codec import (
    canonical_claims,
    decode,
    encode_base64url,
)
from cicadagallery.licensing.errors import LicenseErrorKind
from cicadagallery.licensing.public_key import PRODUCT_ID
from cicadagallery.licensing.validator import (
    VerificationResult,
    check_expiration,
    validate_license_string,
    verify,
    verify_signature,
)

TEST_ORDER_ID = "ORDER-1001"
TEST_EMAIL = "buyer@example.com"

NOW = 1767225600


def tampered_strings(license_string, field_value):
    """Yield license strings with one bit flipped in each byte of a claim value."""
    record = decode(license_string)
    claims = canonical_claims(record)
    signature_part = license_string.split(".")[2]
    start = claims.index(field_value.encode("ascii"))
    for index in range(start, start + len(field_value)):
        mutated = bytearray(claims)
        mutated[index] ^= 0x01
        yield "CG1." + encode_base64url(bytes(mutated)) + "." + signature_part


class TestCheckExpiration:
    """Tests for check_expiration function."""

    def test_perpetual_never_expires(self):
        """Test None expiry is always valid."""
        assert check_expiration(None, now=10**12)

    def test_before_expiry(self):
        """Test a license is valid before its expiry."""
        assert check_expiration(NOW + 1, now=NOW)

    def test_at_expiry(self):
        """Test a license is expired at its expiry instant."""
        assert not check_expiration(NOW, now=NOW)

    def test_after_expiry(self):
        """Test a license is expired after its expiry."""
        assert not check_expiration(NOW - 1, now=NOW)

    def test_defaults_to_wall_clock(self):
        """Test the current time is used when none is given."""
        assert not check_expiration(1)
        assert check_expiration(2**40)


class TestVerify:
    """Tests for verify function."""

    def test_valid_license(self, license_string, trusted_key):
        """Test a correctly signed license verifies."""
        record = decode(license_string)
        result = verify(record, trusted_key, PRODUCT_ID)

        assert result == VerificationResult.ok(record)
        assert result.valid
        assert result.reason is None

    def test_valid_until_expiry(self, signer, trusted_key):
        """Test a time-limited license is valid before it expires."""
        record = signer.sign_record(TEST_ORDER_ID, TEST_EMAIL, expires_at=NOW + 86400)
        assert verify(record, trusted_key, PRODUCT_ID, now=NOW).valid

    def test_expired(self, signer, trusted_key):
        """Test an expired license reports EXPIRED."""
        record = signer.sign_record(
            TEST_ORDER_ID, TEST_EMAIL, expires_at=NOW - 1, issued_at=NOW - 86400
        )
        result = verify(record, trusted_key, PRODUCT_ID, now=NOW)

        assert not result.valid
        assert result.reason == LicenseErrorKind.EXPIRED
        assert result.record == record

    def test_wrong_product_even_with_good_signature(self, signing_key, trusted_key):
        """Test a license for another product is never accepted."""
        other = LicenseSigner(signing_key, "OtherProduct")
        record = other.sign_record(TEST_ORDER_ID, TEST_EMAIL)

        assert verify_signature(record, trusted_key)
        result = verify(record, trusted_key, PRODUCT_ID)
        assert result.reason == LicenseErrorKind.WRONG_PRODUCT

    def test_unknown_signing_key(self, trusted_key):
        """Test a license signed by another key reports SIGNATURE_MISMATCH."""
        forger = LicenseSigner(Ed25519PrivateKey.generate(), PRODUCT_ID)
        record = forger.sign_record(TEST_ORDER_ID, TEST_EMAIL)

        result = verify(record, trusted_key, PRODUCT_ID)
        assert result.reason == LicenseErrorKind.SIGNATURE_MISMATCH

    def test_idempotent(self, license_string, trusted_key):
        """Test verifying twice gives the same result."""
        record = decode(license_string)
        assert verify(record, trusted_key, PRODUCT_ID, now=NOW) == verify(
            record, trusted_key, PRODUCT_ID, now=NOW
        )


class TestCheckOrder:
    """Tests that failures are reported in a fixed order."""

    def test_wrong_product_before_signature(self, trusted_key):
        """Test WRONG_PRODUCT wins over a bad signature."""
        forger = LicenseSigner(Ed25519PrivateKey.generate(), "OtherProduct")
        record = forger.sign_record(TEST_ORDER_ID, TEST_EMAIL)

        result = verify(record, trusted_key, PRODUCT_ID)
        assert result.reason == LicenseErrorKind.WRONG_PRODUCT

    def test_wrong_product_before_expiry(self, signing_key, trusted_key):
        """Test WRONG_PRODUCT wins over expiry."""
        other = LicenseSigner(signing_key, "OtherProduct")
        record = other.sign_record(TEST_ORDER_ID, TEST_EMAIL, expires_at=1, issued_at=0)

        result = verify(record, trusted_key, PRODUCT_ID, now=NOW)
        assert result.reason == LicenseErrorKind.WRONG_PRODUCT

    def test_expiry_before_signature(self, trusted_key):
        """Test EXPIRED wins over a bad signature."""
        forger = LicenseSigner(Ed25519PrivateKey.generate(), PRODUCT_ID)
        record = forger.sign_record(TEST_ORDER_ID, TEST_EMAIL, expires_at=1, issued_at=0)

        result = verify(record, trusted_key, PRODUCT_ID, now=NOW)
        assert result.reason == LicenseErrorKind.EXPIRED


class TestTampering:
    """Tests that modified licenses never verify."""

    def test_flipped_email_bytes(self, license_string, trusted_key):
        """Test changing any byte of the e-mail breaks the signature."""
        for tampered in tampered_strings(license_string, TEST_EMAIL):
            result = validate_license_string(tampered, trusted_key, PRODUCT_ID)
            assert result.reason == LicenseErrorKind.SIGNATURE_MISMATCH

    def test_flipped_order_id_bytes(self, license_string, trusted_key):
        """Test changing any byte of the order id breaks the signature."""
        for tampered in tampered_strings(license_string, TEST_ORDER_ID):
            result = validate_license_string(tampered, trusted_key, PRODUCT_ID)
            assert result.reason == LicenseErrorKind.SIGNATURE_MISMATCH

    def test_flipped_timestamp_digits(self, signer, trusted_key):
        """Test changing a digit of either timestamp breaks the signature."""
        license_string = signer.issue(
            TEST_ORDER_ID, TEST_EMAIL, expires_at=4102444800, issued_at=NOW
        )
        # Leading digits kept; a leading zero is not a canonical integer
        for digits in (str(NOW)[1:], "4102444800"[1:]):
            tampered_list = list(tampered_strings(license_string, digits))
            assert len(tampered_list) == len(digits)
            for tampered in tampered_list:
                assert decode(tampered).expires_at > NOW
                result = validate_license_string(
                    tampered, trusted_key, PRODUCT_ID, now=NOW
                )
                assert result.reason == LicenseErrorKind.SIGNATURE_MISMATCH

    def test_every_claims_bit_flip_is_rejected(self, license_string, trusted_key):
        """Test a bit flip anywhere in the claims never yields a valid license."""
        claims = canonical_claims(decode(license_string))
        rejected = {
            LicenseErrorKind.SIGNATURE_MISMATCH,
            LicenseErrorKind.WRONG_PRODUCT,
            LicenseErrorKind.MALFORMED_FORMAT,
        }
        for tampered in tampered_strings(license_string, claims.decode("ascii")):
            result = validate_license_string(tampered, trusted_key, PRODUCT_ID, now=NOW)
            assert not result.valid
            assert result.reason in rejected

    def test_any_character_change_is_rejected(self, license_string, trusted_key):
        """Test no single-character change of the string still verifies."""
        for index, char in enumerate(license_string):
            replacement = "A" if char != "A" else "B"
            tampered = license_string[:index] + replacement + license_string[index + 1:]
            result = validate_license_string(tampered, trusted_key, PRODUCT_ID)
            assert not result.valid

    def test_swapped_signature(self, signer, trusted_key):
        """Test a signature from another license does not transfer."""
        first = signer.issue("ORDER-1", TEST_EMAIL, issued_at=NOW)
        second = signer.issue("ORDER-2", TEST_EMAIL, issued_at=NOW)
        franken = ".".join(first.split(".")[:2] + second.split(".")[2:])

        result = validate_license_string(franken, trusted_key, PRODUCT_ID)
        assert result.reason == LicenseErrorKind.SIGNATURE_MISMATCH


class TestValidateLicenseString:
    """Tests for validate_license_string function."""

    def test_valid(self, license_string, trusted_key):
        """Test a valid string verifies in one step."""
        result = validate_license_string(license_string, trusted_key, PRODUCT_ID)
        assert result.valid
        assert result.record.order_id == TEST_ORDER_ID

    def test_malformed_is_reported_not_raised(self, trusted_key):
        """Test structural errors become MALFORMED_FORMAT results."""
        result = validate_license_string("not-a-license", trusted_key, PRODUCT_ID)

        assert not result.valid
        assert result.reason == LicenseErrorKind.MALFORMED_FORMAT
        assert result.record is None
        assert result.detail

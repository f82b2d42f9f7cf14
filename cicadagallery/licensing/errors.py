"""
Error kinds reported by the licensing subsystem.

The codec and the verification engine report these as structured values;
only the activation coordinator turns them into user-facing messages.
"""

from enum import Enum


class LicenseErrorKind(str, Enum):
    """Reasons a license string or an activation attempt was not accepted."""

    # Structurally invalid license string; the user must re-obtain the key
    MALFORMED_FORMAT = "malformed_format"

    # Well-formed but untrusted
    WRONG_PRODUCT = "wrong_product"
    EXPIRED = "expired"
    SIGNATURE_MISMATCH = "signature_mismatch"

    # Transient, retryable by the user
    NETWORK_ERROR = "network_error"

    # Business error reported by the issuance service
    SERVICE_REJECTED = "service_rejected"

    # Rejected locally by the activation coordinator, nothing was sent
    INVALID_INPUT = "invalid_input"
    ACTIVATION_IN_PROGRESS = "activation_in_progress"
    CANCELLED = "cancelled"

    # The verified license could not be written to disk
    STORAGE_ERROR = "storage_error"

    @property
    def is_retryable(self) -> bool:
        """True for failures the user may retry without new input."""
        return self in (LicenseErrorKind.NETWORK_ERROR, LicenseErrorKind.CANCELLED)


class DecodeError(ValueError):
    """Raised when a license string is not structurally valid."""

    def __init__(self, message: str):
        super().__init__(message)
        self.kind = LicenseErrorKind.MALFORMED_FORMAT

"""
Activation coordinator.

Turns a storefront purchase into a persisted, verified license:

1. POST {order_id, email} to the issuance service
2. decode and verify the returned license string (a service response is
   not trusted on its own)
3. persist it in the license store and refresh the feature gate

This is the only network-dependent step of the licensing subsystem and the
only layer that turns error kinds into user-facing messages.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import aiohttp
from pydantic import ValidationError

from cicadagallery.config.config import get_issuance_url, get_license_timeout
from cicadagallery.licensing.codec import LicenseRecord, decode, format_timestamp
from cicadagallery.licensing.errors import DecodeError, LicenseErrorKind
from cicadagallery.licensing.license_store import LicenseStore
from cicadagallery.licensing.schemas import IssueLicenseRequest, IssueLicenseResponse
from cicadagallery.licensing.validator import verify
from cicadagallery.utils.verbosity_logger import get_logger, sanitize_log

logger = get_logger("cicadagallery.licensing.activation")

ISSUE_LICENSE_PATH = "/issue-license"

USER_MESSAGES = {
    LicenseErrorKind.MALFORMED_FORMAT: (
        "The license key is not valid. Please check that it was copied completely."
    ),
    LicenseErrorKind.WRONG_PRODUCT: "This license key was issued for a different product.",
    LicenseErrorKind.EXPIRED: "This license key has expired.",
    LicenseErrorKind.SIGNATURE_MISMATCH: (
        "This license key could not be verified. Please contact support."
    ),
    LicenseErrorKind.NETWORK_ERROR: (
        "Could not reach the license server. Check your connection and try again."
    ),
    LicenseErrorKind.SERVICE_REJECTED: "The license server rejected the request.",
    LicenseErrorKind.INVALID_INPUT: (
        "Please enter both the order number and the e-mail address."
    ),
    LicenseErrorKind.ACTIVATION_IN_PROGRESS: "An activation is already in progress.",
    LicenseErrorKind.CANCELLED: "Activation was cancelled.",
    LicenseErrorKind.STORAGE_ERROR: "The license could not be saved on this computer.",
}


class ServiceUnavailableError(Exception):
    """The issuance service could not be reached or answered unusably."""


@dataclass(frozen=True)
class ActivationResult:
    """Outcome of an activation attempt, ready for display."""

    success: bool
    message: str
    error: Optional[LicenseErrorKind] = None
    record: Optional[LicenseRecord] = None

    @property
    def retryable(self) -> bool:
        return self.error is not None and self.error.is_retryable


def _failure(kind: LicenseErrorKind, message: Optional[str] = None) -> ActivationResult:
    return ActivationResult(
        success=False, message=message or USER_MESSAGES[kind], error=kind
    )


class ActivationCoordinator:
    """
    Orchestrates license activation. One attempt may be in flight at a time.
    """

    def __init__(
        self,
        store: LicenseStore,
        gate,
        service_url: Optional[str] = None,
        timeout: Optional[float] = None,
        trusted_key=None,
        product_id: Optional[str] = None,
    ):
        self.store = store
        self.gate = gate
        self.service_url = (service_url or get_issuance_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else get_license_timeout()
        self._trusted_key = trusted_key
        self._product_id = product_id or store.product_id
        self._busy = False
        # Bumped by cancel(); an attempt whose generation changed is discarded
        self._generation = 0

    @property
    def is_busy(self) -> bool:
        """True while an activation request is in flight."""
        return self._busy

    @property
    def trusted_key(self):
        if self._trusted_key is None:
            self._trusted_key = self.store.trusted_key
        return self._trusted_key

    async def activate(
        self, order_id: str, email: str, lang: Optional[str] = None
    ) -> ActivationResult:
        """
        Exchange an order id and e-mail address for a license.

        Args:
            order_id: Storefront order identifier
            email: Purchaser e-mail address
            lang: Optional language for the service's messages

        Returns:
            ActivationResult describing the outcome
        """
        try:
            request = IssueLicenseRequest(
                order_id=(order_id or "").strip(),
                email=(email or "").strip(),
                lang=lang,
            )
        except ValidationError:
            return _failure(LicenseErrorKind.INVALID_INPUT)

        if self._busy:
            logger.warning("Activation request rejected - another one is in flight")
            return _failure(LicenseErrorKind.ACTIVATION_IN_PROGRESS)

        self._busy = True
        generation = self._generation
        logger.info("Requesting license for order %s", sanitize_log(request.order_id))
        try:
            response = await self._request_license(request)
        except ServiceUnavailableError as e:
            logger.warning("License activation failed: %s", sanitize_log(e))
            if generation != self._generation:
                return _failure(LicenseErrorKind.CANCELLED)
            return _failure(LicenseErrorKind.NETWORK_ERROR)
        finally:
            self._busy = False

        if generation != self._generation:
            logger.info(
                "Discarding license response for order %s - activation was cancelled",
                sanitize_log(request.order_id),
            )
            return _failure(LicenseErrorKind.CANCELLED)

        if not response.success:
            logger.warning(
                "License service rejected order %s: %s",
                sanitize_log(request.order_id),
                sanitize_log(response.error),
            )
            return _failure(LicenseErrorKind.SERVICE_REJECTED, response.error)

        if not response.license_string:
            logger.error("License service reported success without a license")
            return _failure(LicenseErrorKind.MALFORMED_FORMAT)

        return self._install(response.license_string, response.message)

    def activate_key(self, license_string: str) -> ActivationResult:
        """
        Activate a license key entered by the user. Works offline.
        """
        if not license_string or not license_string.strip():
            return _failure(LicenseErrorKind.INVALID_INPUT, "Please enter a license key.")
        if self._busy:
            return _failure(LicenseErrorKind.ACTIVATION_IN_PROGRESS)
        return self._install(license_string.strip())

    def cancel(self) -> bool:
        """
        Abandon the in-flight activation. Its response will be discarded.

        Returns:
            True if an activation was in flight
        """
        if not self._busy:
            return False
        self._generation += 1
        logger.info("Activation cancelled by user")
        return True

    def deactivate(self) -> ActivationResult:
        """Remove the stored license and fall back to the free feature set."""
        if self._busy:
            return _failure(LicenseErrorKind.ACTIVATION_IN_PROGRESS)
        try:
            removed = self.store.clear()
        except OSError as e:
            logger.error("Failed to remove license state: %s", e)
            return _failure(
                LicenseErrorKind.STORAGE_ERROR,
                "The license could not be removed from this computer.",
            )
        self.gate.refresh()
        if removed:
            return ActivationResult(success=True, message="License removed.")
        return ActivationResult(success=True, message="No license was activated.")

    def _install(
        self, license_string: str, service_message: Optional[str] = None
    ) -> ActivationResult:
        """Decode, verify, persist and refresh the gate."""
        try:
            record = decode(license_string)
        except DecodeError as e:
            logger.warning("Rejected malformed license key: %s", e)
            return _failure(e.kind)

        result = verify(record, self.trusted_key, self._product_id)
        if not result.valid:
            logger.warning(
                "Rejected license for order %s: %s",
                sanitize_log(record.order_id),
                result.reason.value,
            )
            return _failure(result.reason)

        try:
            self.store.save(license_string)
        except OSError as e:
            logger.error("Failed to save license: %s", e)
            return _failure(LicenseErrorKind.STORAGE_ERROR)

        self.gate.refresh()
        logger.info(
            "Premium license activated for order %s", sanitize_log(record.order_id)
        )

        message = service_message or (
            "License activated successfully!\n"
            f"Issued to: {record.email}\n"
            f"Expires: {format_timestamp(record.expires_at)}"
        )
        return ActivationResult(success=True, message=message, record=record)

    async def _request_license(
        self, request: IssueLicenseRequest
    ) -> IssueLicenseResponse:
        """
        POST the request to the issuance service. No automatic retries.

        Raises:
            ServiceUnavailableError: On transport failures and unusable responses
        """
        url = f"{self.service_url}{ISSUE_LICENSE_PATH}"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json=request.model_dump(exclude_none=True),
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status >= 500:
                        raise ServiceUnavailableError(f"HTTP status {response.status}")
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise ServiceUnavailableError(
                            f"Invalid response body (HTTP status {response.status})"
                        ) from e
        except aiohttp.ClientError as e:
            raise ServiceUnavailableError(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            raise ServiceUnavailableError("Request timed out") from e

        try:
            parsed = IssueLicenseResponse.model_validate(data)
        except ValidationError as e:
            raise ServiceUnavailableError("Unexpected response from license server") from e

        if response.status >= 400 and parsed.success:
            raise ServiceUnavailableError(f"HTTP status {response.status}")
        return parsed

"""
Local persistence of the activated license.

The state file holds nothing but the verbatim license string. Whether the
installation is premium is never stored: every load decodes and verifies the
string again, so hand-editing the file can at best produce "not activated".
"""

import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from cicadagallery.licensing.codec import LicenseRecord, decode
from cicadagallery.licensing.errors import DecodeError, LicenseErrorKind
from cicadagallery.licensing.public_key import PRODUCT_ID, load_trusted_key
from cicadagallery.licensing.validator import verify
from cicadagallery.utils.verbosity_logger import get_logger, sanitize_log

logger = get_logger("cicadagallery.licensing.license_store")

CORRUPT_SUFFIX = ".corrupt"


@dataclass(frozen=True)
class ActivationState:
    """Activation state as reconstructed from the state file."""

    license_string: str
    record: LicenseRecord
    verified_at: datetime
    reason: Optional[LicenseErrorKind] = None

    @property
    def is_valid(self) -> bool:
        """Derived from this load's verification run, never persisted."""
        return self.reason is None


class LicenseStore:
    """
    Single-writer store for the activated license string.
    """

    def __init__(
        self,
        path: Union[str, Path],
        trusted_key: Optional[Ed25519PublicKey] = None,
        product_id: str = PRODUCT_ID,
    ):
        self.path = Path(path)
        self._trusted_key = trusted_key
        self._product_id = product_id
        self._lock = threading.RLock()

    @property
    def trusted_key(self) -> Ed25519PublicKey:
        """Key used to re-verify the stored license."""
        if self._trusted_key is None:
            self._trusted_key = load_trusted_key()
        return self._trusted_key

    @property
    def product_id(self) -> str:
        return self._product_id

    def exists(self) -> bool:
        """Check whether a license string has been persisted."""
        with self._lock:
            return self.path.exists()

    def load(self) -> Optional[ActivationState]:
        """
        Load and re-verify the persisted license.

        Returns:
            None when no usable license is present, otherwise the state with
            is_valid derived from a fresh verification
        """
        with self._lock:
            try:
                raw = self.path.read_bytes()
            except FileNotFoundError:
                logger.debug("No license state file at %s", self.path)
                return None
            except OSError as e:
                logger.warning("Failed to read license state file %s: %s", self.path, e)
                return None

            try:
                license_string = raw.decode("utf-8")
                record = decode(license_string)
            except (UnicodeDecodeError, DecodeError) as e:
                logger.warning(
                    "Ignoring unreadable license state file %s: %s", self.path, e
                )
                self._quarantine()
                return None

            result = verify(record, self.trusted_key, self._product_id)
            if not result.valid:
                logger.warning(
                    "Stored license for order %s failed verification: %s",
                    sanitize_log(record.order_id),
                    result.reason.value,
                )

            return ActivationState(
                license_string=license_string,
                record=record,
                verified_at=datetime.now(timezone.utc),
                reason=result.reason,
            )

    def save(self, license_string: str) -> None:
        """
        Atomically replace the persisted license string.

        The string is written to a temporary file in the same directory, synced
        and renamed over the state file, so readers only ever see the old or
        the new content.

        Raises:
            OSError: If the file cannot be written
        """
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as tmp_file:
                    tmp_file.write(license_string)
                    tmp_file.flush()
                    os.fsync(tmp_file.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass
                raise
            logger.debug("License state written to %s", self.path)

    def clear(self) -> bool:
        """
        Remove the persisted license.

        Returns:
            True if a file was removed
        """
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                return False
            logger.info("License state removed from %s", self.path)
            return True

    def _quarantine(self) -> None:
        """Move an unreadable state file aside so it is not re-read."""
        target = self.path.with_name(self.path.name + CORRUPT_SUFFIX)
        try:
            os.replace(self.path, target)
            logger.warning("Moved unreadable license state to %s", target)
        except OSError as e:
            logger.warning("Failed to move unreadable license state aside: %s", e)

"""
Feature gate of the premium edition.

Premium status is derived from the license store: computed once per process
at startup and recomputed only when the activation coordinator calls
refresh(). The free edition ships without this module.
"""

import threading
from typing import FrozenSet, Optional

from cicadagallery.config.config import get_license_state_file
from cicadagallery.licensing.codec import format_timestamp
from cicadagallery.licensing.feature_gate import TierLimits
from cicadagallery.licensing.features import PREMIUM_FEATURES, FeatureCode
from cicadagallery.licensing.license_store import ActivationState, LicenseStore
from cicadagallery.utils.verbosity_logger import get_logger, sanitize_log

logger = get_logger("cicadagallery.licensing.licensed_gate")


class LicensedFeatureGate(TierLimits):
    """
    Gate of the premium edition, backed by the local license store.
    """

    def __init__(self, store: Optional[LicenseStore] = None):
        self._store = store
        self._state: Optional[ActivationState] = None
        self._initialized = False
        self._lock = threading.Lock()

    @property
    def store(self) -> LicenseStore:
        """The license store; the configured one unless injected."""
        if self._store is None:
            self._store = LicenseStore(get_license_state_file())
        return self._store

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """
        Compute premium status from the persisted license. Runs once per process.
        """
        with self._lock:
            if self._initialized:
                logger.debug("Feature gate already initialized")
                return
            self._recompute()
            self._initialized = True

    def refresh(self) -> bool:
        """
        Recompute premium status after the license changed.

        Only the activation coordinator calls this.

        Returns:
            The new premium status
        """
        with self._lock:
            self._recompute()
            self._initialized = True
            return self._is_premium_locked()

    def _recompute(self) -> None:
        self._state = self.store.load()
        if self._state is None:
            logger.info("No license activated - running with the free feature set")
        elif self._state.is_valid:
            logger.info(
                "Premium license active (order %s)",
                sanitize_log(self._state.record.order_id),
            )
        else:
            logger.warning(
                "Stored license is not valid (%s) - running with the free feature set",
                self._state.reason.value,
            )

    def _is_premium_locked(self) -> bool:
        return self._state is not None and self._state.is_valid

    def is_premium(self) -> bool:
        """Check if premium features are enabled for this process."""
        if not self._initialized:
            self.initialize()
        return self._is_premium_locked()

    def capabilities(self) -> FrozenSet[FeatureCode]:
        """Get the set of premium features currently enabled."""
        return PREMIUM_FEATURES if self.is_premium() else frozenset()

    def license_info(self) -> Optional[dict]:
        """
        Get information about the stored license for status display.

        Returns:
            Dictionary with license info, or None if no license is stored
        """
        if not self._initialized:
            self.initialize()
        state = self._state
        if state is None:
            return None

        record = state.record
        return {
            "valid": state.is_valid,
            "reason": state.reason.value if state.reason else None,
            "email": record.email,
            "order_id": record.order_id,
            "issued_at": format_timestamp(record.issued_at),
            "expires_at": format_timestamp(record.expires_at),
            "verified_at": state.verified_at.isoformat(),
        }


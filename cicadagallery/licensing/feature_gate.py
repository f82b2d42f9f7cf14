"""
Feature gating for CicadaGallery premium features.

The gate answers "is this installation premium?" for the rest of the
application. It is computed once per process from the license store and
recomputed only when the activation coordinator calls refresh().
"""

import functools
import inspect
from typing import Callable, FrozenSet, Optional

from cicadagallery.licensing.edition import PREMIUM_BUILD
from cicadagallery.licensing.features import (
    FREE_TIER_MAX_RATING,
    FREE_TIER_VIDEO_LIMIT,
    MAX_RATING,
    FeatureCode,
)
from cicadagallery.utils.verbosity_logger import get_logger

logger = get_logger("cicadagallery.licensing.feature_gate")


class LicenseRequiredError(Exception):
    """Exception raised when a premium license is required but not available."""

    def __init__(self, message: str, feature: Optional[str] = None):
        super().__init__(message)
        self.feature = feature


class TierLimits:
    """Free tier caps shared by both gate implementations."""

    def has_feature(self, feature: FeatureCode) -> bool:
        return feature in self.capabilities()

    def can_add_videos(self, current_count: int, adding: int = 1) -> bool:
        """
        Check whether the library may grow by `adding` videos.

        Args:
            current_count: Videos already in the library
            adding: Videos about to be added

        Returns:
            True if premium or the free tier limit is not exceeded
        """
        if self.has_feature(FeatureCode.UNLIMITED_LIBRARY):
            return True
        return current_count + adding <= FREE_TIER_VIDEO_LIMIT

    def clamp_rating(self, rating: int) -> int:
        """Cap a rating to what the current tier allows."""
        ceiling = (
            MAX_RATING
            if self.has_feature(FeatureCode.STAR_RATINGS)
            else FREE_TIER_MAX_RATING
        )
        return max(0, min(rating, ceiling))


class FreeFeatureGate(TierLimits):
    """Gate of the free edition. Never premium, consults nothing."""

    def initialize(self) -> None:
        logger.info("Free edition - premium features are not available")

    def is_premium(self) -> bool:
        return False

    def capabilities(self) -> FrozenSet[FeatureCode]:
        return frozenset()

    def license_info(self) -> Optional[dict]:
        return None


# Process-scoped gate instance, created on first use
_gate: dict = {"instance": None}


def get_feature_gate():
    """Get the process-scoped feature gate for this build's edition."""
    if _gate["instance"] is None:
        if PREMIUM_BUILD:
            from cicadagallery.licensing.licensed_gate import LicensedFeatureGate

            _gate["instance"] = LicensedFeatureGate()
        else:
            _gate["instance"] = FreeFeatureGate()
    return _gate["instance"]


def requires_feature(feature: FeatureCode | str) -> Callable:
    """
    Decorator to require a specific premium feature.

    Usage:
        @requires_feature(FeatureCode.PARALLEL_SCENE_DETECTION)
        def detect_all_scenes(videos):
            ...

    Raises:
        LicenseRequiredError: When the feature is not available
    """
    feature_code = (
        FeatureCode.from_string(feature) if isinstance(feature, str) else feature
    )

    def _check():
        if not get_feature_gate().has_feature(feature_code):
            logger.warning(
                "Access denied to feature '%s' - premium license required",
                feature_code.value,
            )
            raise LicenseRequiredError(
                f"This feature requires a premium license ('{feature_code.value}')",
                feature=feature_code.value,
            )

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            _check()
            return await func(*args, **kwargs)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            _check()
            return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def requires_premium() -> Callable:
    """
    Decorator to require any active premium license.

    Raises:
        LicenseRequiredError: When premium is not active
    """

    def _check():
        if not get_feature_gate().is_premium():
            logger.warning("Access denied - premium license required")
            raise LicenseRequiredError("This feature requires a premium license")

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            _check()
            return await func(*args, **kwargs)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            _check()
            return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator

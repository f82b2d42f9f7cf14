"""
CicadaGallery Licensing Module.

This module provides license verification, activation and feature gating
for CicadaGallery premium features.

Components:
- public_key: Embedded Ed25519 verification key and product id
- codec: License string encoding and decoding
- validator: Local license signature and claim validation
- license_store: Persisted activation state, re-verified on every load
- activation: Exchange of an order for a license with the issuance service
- feature_gate: Premium status query and gating decorators
- edition: Build-time premium/free switch

Note: Imports are done lazily so the free edition, which ships without the
verification modules, can still import this package.
Use: from cicadagallery.licensing.feature_gate import get_feature_gate
"""

from cicadagallery.licensing.edition import PREMIUM_BUILD
from cicadagallery.licensing.features import FeatureCode

__all__ = [
    "FeatureCode",
    "PREMIUM_BUILD",
]


def __getattr__(name):
    """Lazy import of the feature gate and activation entry points."""
    if name == "get_feature_gate":
        from cicadagallery.licensing.feature_gate import get_feature_gate

        return get_feature_gate
    elif name == "requires_feature":
        from cicadagallery.licensing.feature_gate import requires_feature

        return requires_feature
    elif name == "requires_premium":
        from cicadagallery.licensing.feature_gate import requires_premium

        return requires_premium
    elif name == "ActivationCoordinator" and PREMIUM_BUILD:
        from cicadagallery.licensing.activation import ActivationCoordinator

        return ActivationCoordinator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

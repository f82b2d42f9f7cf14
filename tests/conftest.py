"""
Pytest configuration and shared fixtures for CicadaGallery licensing tests.
"""

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from cicadagallery.issuance.signer import LicenseSigner
from cicadagallery.licensing import feature_gate as feature_gate_module
from cicadagallery.licensing.license_store import LicenseStore
from cicadagallery.licensing.licensed_gate import LicensedFeatureGate
from cicadagallery.licensing.public_key import PRODUCT_ID

TEST_ORDER_ID = "ORDER-1001"
TEST_EMAIL = "buyer@example.com"


@pytest.fixture
def signing_key():
    """Fresh Ed25519 signing key for each test."""
    return Ed25519PrivateKey.generate()


@pytest.fixture
def trusted_key(signing_key):
    """Verification key matching signing_key."""
    return signing_key.public_key()


@pytest.fixture
def signer(signing_key):
    """Signer issuing licenses for this product."""
    return LicenseSigner(signing_key, PRODUCT_ID)


@pytest.fixture
def license_string(signer):
    """A valid, perpetual license string."""
    return signer.issue(TEST_ORDER_ID, TEST_EMAIL, issued_at=1767225600)


@pytest.fixture
def state_file(tmp_path):
    """Path of the license state file for a test."""
    return tmp_path / "cicadagallery" / "license.key"


@pytest.fixture
def store(state_file, trusted_key):
    """License store trusting the test signing key."""
    return LicenseStore(state_file, trusted_key=trusted_key, product_id=PRODUCT_ID)


@pytest.fixture
def gate(store):
    """Premium edition feature gate over the test store."""
    return LicensedFeatureGate(store)


@pytest.fixture(autouse=True)
def reset_process_gate():
    """Make sure no test sees another test's process-scoped gate."""
    feature_gate_module._gate["instance"] = None
    yield
    feature_gate_module._gate["instance"] = None

"""Global pytest configuration."""

import os

import pytest

# chain lookups stay off in tests even if a local .env carries a key
os.environ.pop("EXPLORER_API_KEY", None)
os.environ["AUDIT_ENABLED"] = "false"

from builders import MAX_UINT256, approve_intent  # noqa: E402


@pytest.fixture
def unlimited_approval():
    return approve_intent(MAX_UINT256)


@pytest.fixture
def limited_approval():
    return approve_intent(5 * 10 ** 18)

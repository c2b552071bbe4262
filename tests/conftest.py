"""Shared test fixtures for the enquiry timeline.

Provides:
- Settings pinned to known values
- A fresh FakeCrmBackend per test
- The canonical enquiry record
"""

from __future__ import annotations

from typing import Any

import pytest

from src.enquiry_timeline.config import Settings
from tests.fakes import FakeCrmBackend, make_enquiry


@pytest.fixture
def settings() -> Settings:
    """Settings pinned to the defaults the tests assume."""
    return Settings(
        FIRM_EMAIL_DOMAIN="helix-law.com",
        DEFAULT_MAX_RESULTS=50,
        HTTP_TIMEOUT_SECONDS=None,
    )


@pytest.fixture
def backend() -> FakeCrmBackend:
    return FakeCrmBackend()


@pytest.fixture
def enquiry() -> dict[str, Any]:
    return make_enquiry()

"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path

import pytest

from uicov.coverage.aggregator import CoverageAggregator
from uicov.models.config import CoverageConfig
from uicov.models.element import BoundingBox, ElementDescriptor
from uicov.models.selector import RawSelector


# ============================================================================
# Element Fixtures
# ============================================================================


@pytest.fixture
def submit_button() -> ElementDescriptor:
    """A login form submit button."""
    return ElementDescriptor(
        selector='button[type="submit"]',
        element_type="button",
        text="Sign in",
        id="login-btn",
        role="button",
        attributes={"type": "submit", "data-testid": "login-submit"},
        bounding_box=BoundingBox(x=10, y=200, width=120, height=40),
        discovery_source="runtime",
        discovery_context="runtime-https://app.test/login",
    )


@pytest.fixture
def email_input() -> ElementDescriptor:
    """A login form email field."""
    return ElementDescriptor(
        selector='input[name="email"]',
        element_type="input",
        accessible_name="Email",
        attributes={"name": "email", "type": "email", "placeholder": "you@example.com"},
        discovery_source="runtime",
        discovery_context="runtime-https://app.test/login",
    )


@pytest.fixture
def signup_link() -> ElementDescriptor:
    """A navigation link to the signup page."""
    return ElementDescriptor(
        selector='a[href="/signup"]',
        element_type="link",
        text="Create account",
        attributes={"href": "/signup"},
        discovery_source="runtime",
        discovery_context="runtime-https://app.test/login",
    )


@pytest.fixture
def login_page(submit_button, email_input, signup_link) -> list[ElementDescriptor]:
    """Every interactive element on the login page."""
    return [submit_button, email_input, signup_link]


# ============================================================================
# Selector Fixtures
# ============================================================================


@pytest.fixture
def css():
    """Factory for CSS selectors."""
    def _make(raw: str) -> RawSelector:
        return RawSelector(raw=raw, kind="css", file_path="login.spec.ts")
    return _make


# ============================================================================
# Aggregator Fixtures
# ============================================================================


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "coverage-report"


@pytest.fixture
def aggregator(data_dir: Path) -> CoverageAggregator:
    """An aggregator backed by an empty data directory."""
    return CoverageAggregator(output_path=data_dir)


@pytest.fixture
def legacy_store(data_dir: Path) -> Path:
    """A data file written by an older release, with one button stored twice.

    Older releases keyed records by ``selector-type`` without normalizing the
    selector, so quote style alone split one element into two records.
    """
    data = {
        "records": {
            'button[type="submit"]-button': {
                "selector": 'button[type="submit"]',
                "type": "button",
                "text": "Pay now",
                "firstSeenAt": 1000,
                "lastSeenAt": 1000,
                "discoveredIn": [
                    {"url": "https://app.test/checkout", "timestamp": 1000, "discoverySource": "static"},
                ],
                "coveredBy": [],
            },
            "button[type=submit]-button": {
                "selector": "button[type=submit]",
                "type": "button",
                "firstSeenAt": 2000,
                "lastSeenAt": 3000,
                "discoveredIn": [
                    {"url": "https://app.test/cart", "timestamp": 2000, "discoverySource": "runtime"},
                ],
                "coveredBy": [
                    {"testFile": "checkout.spec.ts", "testName": "pays for the order", "timestamp": 2500},
                ],
            },
        },
        "testCoverage": {"checkout.spec.ts": ["button[type=submit]-button"]},
        "lastUpdated": 3000,
    }
    data_dir.mkdir(parents=True, exist_ok=True)
    path = data_dir / ".coverage-data.json"
    path.write_text(json.dumps(data, indent=2))
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Strip environment overrides so config defaults are predictable."""
    monkeypatch.delenv("UICOV_OUTPUT_PATH", raising=False)
    monkeypatch.delenv("UICOV_THRESHOLD", raising=False)


@pytest.fixture
def config(data_dir: Path) -> CoverageConfig:
    return CoverageConfig(output_path=str(data_dir))

# tests/conftest.py
import os
import tempfile

import pytest
from freezegun import freeze_time

from modules.city_jobs.lib import config as cj_config
from modules.city_jobs.lib.models import Listing
from modules.city_jobs.lib.store import RecordStore


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls against cityjobs.nyc.gov).",
    )


def pytest_configure(config: pytest.Config) -> None:
    # Marker registration (so pytest --markers shows it)
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="cj-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")

    # No stray CITY_JOBS_* / CONFIG_PATH from the developer's shell
    for key in list(os.environ):
        if key.startswith("CITY_JOBS_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("CONFIG_PATH", raising=False)
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture
def store(data_dir):
    return RecordStore(str(data_dir))


def _make_listing(i, **overrides) -> Listing:
    """Predictable listing: id 'job-<i>', detail url '/job/job-<i>'."""
    fields = {
        "id": f"job-{i}",
        "title": f"Analyst {i}",
        "salary": "$60,000 - $80,000",
        "location": "Manhattan",
        "job_type": "Full-Time",
        "category": "Administration",
        "experience_level": "Experienced",
        "agency": "DEPT OF FINANCE",
        "description": "Process filings.",
        "url": f"/job/job-{i}",
    }
    fields.update(overrides)
    return Listing(**fields)


@pytest.fixture
def make_listing():
    return _make_listing


@pytest.fixture
def stub_settings(data_dir):
    """
    Build a brand-new zero-delay Settings on the stub source.
    Call with extra source params / settings overrides.
    """

    def _build(source_params=None, **overrides):
        kwargs = {
            "data_dir": str(data_dir),
            "source_kind": "stub",
            "source_params": source_params or {},
            "page_delay": [0, 0],
            "detail_delay": [0, 0],
        }
        kwargs.update(overrides)
        return cj_config.Settings.from_env_and_kwargs(kwargs)

    return _build

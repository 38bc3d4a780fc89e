# tests/test_config.py
import pytest

from modules.city_jobs.lib import config as cj_config
from modules.city_jobs.lib import sources
from modules.city_jobs.lib.http_client import FetchError
from modules.city_jobs.lib.sources.cityjobs import CityJobsSource
from modules.city_jobs.lib.sources.stub import StubSource
from modules.city_jobs.lib.utils import DelayPolicy, page_count, paginate, truthy


# ----------------------------------------------------------------------
# Settings
# ----------------------------------------------------------------------
def test_defaults():
    s = cj_config.Settings.from_env_and_kwargs({})

    assert s.data_dir == "data"
    assert s.source.kind == "cityjobs"
    assert s.base_url == "https://cityjobs.nyc.gov"
    assert s.page_size == 48
    assert s.batch_size == 10
    assert s.page_delay == DelayPolicy(0.3, 1.3)
    assert s.detail_delay == DelayPolicy(1.0, 3.0)
    assert s.seconds_per_page_estimate == 3
    assert s.effective_page_size() == 48
    assert s.limit_pages(85) == 85


def test_debug_mode_page_limits():
    s = cj_config.Settings.from_env_and_kwargs({"debug_mode": "true"})

    assert s.effective_page_size() == 12
    assert s.limit_pages(85) == 2
    assert s.limit_pages(1) == 1


def test_env_fallback_and_kwargs_win(monkeypatch):
    monkeypatch.setenv("CITY_JOBS_BATCH_SIZE", "25")
    monkeypatch.setenv("CITY_JOBS_DETAIL_DELAY", "0.5-2")
    monkeypatch.setenv("CITY_JOBS_DATA_DIR", "/tmp/from-env")

    s = cj_config.Settings.from_env_and_kwargs({"data_dir": "/tmp/from-kwargs"})

    assert s.batch_size == 25
    assert s.detail_delay == DelayPolicy(0.5, 2.0)
    assert s.data_dir == "/tmp/from-kwargs"


def test_zero_delays_and_zero_estimate_allowed():
    s = cj_config.Settings.from_env_and_kwargs({
        "page_delay": 0,
        "detail_delay": [0, 0],
        "seconds_per_page_estimate": 0,
        "backoff_factor": 0,
    })

    assert not s.page_delay.enabled
    assert not s.detail_delay.enabled
    assert s.seconds_per_page_estimate == 0
    assert s.backoff_factor == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"batch_size": -1},
        {"page_size": "many"},
        {"base_url": "ftp://cityjobs.nyc.gov"},
        {"detail_delay": [3, 1]},
        {"page_delay": "a-b"},
        {"source_params": ["not", "a", "dict"]},
        {"max_attempts": -2},
        {"batch_size": 0},
        {"page_size": 0},
        {"debug_page_size": 0},
        {"debug_max_pages": 0},
        {"max_attempts": 0},
        {"timeout_seconds": 0},
    ],
)
def test_invalid_settings_raise_config_error(kwargs):
    with pytest.raises(cj_config.ConfigError):
        cj_config.Settings.from_env_and_kwargs(kwargs)


# ----------------------------------------------------------------------
# Source registry
# ----------------------------------------------------------------------
def test_registry_kinds():
    kinds = sources.all_kinds()
    assert kinds["cityjobs"] is CityJobsSource
    assert kinds["stub"] is StubSource
    assert sources.get("STUB") is StubSource


def test_registry_unknown_kind():
    with pytest.raises(KeyError):
        sources.get("greenhouse")


def test_registry_rejects_conflicting_kind():
    class Impostor(StubSource):
        kind = "stub"

    with pytest.raises(ValueError):
        sources.register(Impostor)


def test_create_builds_configured_source():
    s = cj_config.Settings.from_env_and_kwargs({"source_kind": "stub", "source_params": {"total_listings": 3}})
    src = sources.create(s)

    assert isinstance(src, StubSource)
    assert [item.id for item in src.listings] == ["stub-1", "stub-2", "stub-3"]


def test_stub_pages_and_failures():
    src = StubSource({"total_listings": 5, "failing_pages": [2], "failing_details": ["stub-1"]})

    first = src.fetch_page(1, 3)
    assert first.total_pages == 2
    assert [item.id for item in first.listings] == ["stub-1", "stub-2", "stub-3"]

    with pytest.raises(FetchError) as ei:
        src.fetch_page(2, 3)
    assert ei.value.status == 503
    with pytest.raises(FetchError):
        src.fetch_detail("/job/stub-1")
    assert src.page_calls == [(1, 3), (2, 3)]


# ----------------------------------------------------------------------
# Utilities
# ----------------------------------------------------------------------
@pytest.mark.parametrize("v, expected", [("1", True), ("yes", True), ("off", False), (None, False), (0, False), (True, True)])
def test_truthy(v, expected):
    assert truthy(v) is expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, DelayPolicy(9, 9)),
        (2, DelayPolicy(2.0, 2.0)),
        ([0.3, 1.3], DelayPolicy(0.3, 1.3)),
        ("1-3", DelayPolicy(1.0, 3.0)),
        ("1,3", DelayPolicy(1.0, 3.0)),
    ],
)
def test_delay_policy_parse(raw, expected):
    assert DelayPolicy.parse(raw, DelayPolicy(9, 9)) == expected


def test_delay_policy_draw_in_range():
    d = DelayPolicy(1.0, 3.0)
    assert all(1.0 <= d.draw() <= 3.0 for _ in range(50))
    assert DelayPolicy().pause(sleep=lambda s: pytest.fail("should not sleep")) == 0.0


def test_page_count_and_paginate():
    assert page_count(96, 48) == 2
    assert page_count(97, 48) == 3
    assert page_count(0, 48) == 0
    assert paginate(list(range(10)), 2, 4) == [4, 5, 6, 7]
    assert paginate(list(range(10)), 5, 4) == []


def test_zero_from_env_is_rejected(monkeypatch):
    monkeypatch.setenv("CITY_JOBS_BATCH_SIZE", "0")
    with pytest.raises(cj_config.ConfigError, match="batch_size"):
        cj_config.Settings.from_env_and_kwargs({})

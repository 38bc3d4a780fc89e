# tests/live/test_cityjobs_live.py
import pytest

from modules.city_jobs.lib import config as cj_config
from modules.city_jobs.lib import sources


@pytest.mark.live
def test_cityjobs_first_page_and_one_detail():
    settings = cj_config.Settings.from_env_and_kwargs({"source_kind": "cityjobs", "timeout_seconds": 30})
    src = sources.create(settings)
    try:
        page = src.fetch_page(1, 12)
        assert page.listings, "expected at least one vacancy tile on page 1"
        assert page.total_pages >= 1
        first = page.listings[0]
        assert first.id and first.title and first.url

        posted = src.fetch_detail(first.url)
        assert posted is None or "/" in posted
    finally:
        src.close()

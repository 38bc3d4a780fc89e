# tests/test_store.py
import json
import os
import pathlib
from unittest import mock

import pytest

from modules.city_jobs.lib.store import RecordStore, StoreError, StoreValidationError, reset_store


def test_missing_files_are_an_empty_store(store):
    snap = store.read_all()
    assert snap.listings == []
    assert snap.last_scan is None
    assert store.count() == 0


def test_corrupt_files_are_an_empty_store(store, data_dir):
    (data_dir / "jobs.json").write_text("{not json", encoding="utf-8")
    (data_dir / "metadata.json").write_text("[]", encoding="utf-8")

    snap = store.read_all()

    assert snap.listings == []
    assert snap.last_scan is None


def test_write_all_stamps_last_scan(store, make_listing, frozen_utc):
    last_scan = store.write_all([make_listing(1)])

    assert last_scan == "2025-01-01T00:00:00Z"
    assert store.last_scan() == last_scan
    assert store.read_all().listings == [make_listing(1)]


def test_on_disk_format_uses_camel_case(store, data_dir, make_listing):
    store.write_all([make_listing(1, posted_date="03/01/2024", details_fetched=True), make_listing(2)])

    raw = json.loads((data_dir / "jobs.json").read_text(encoding="utf-8"))

    assert raw[0]["jobType"] == "Full-Time"
    assert raw[0]["experienceLevel"] == "Experienced"
    assert raw[0]["postedDate"] == "03/01/2024"
    assert raw[0]["detailsFetched"] is True
    # Unset enrichment keys are omitted
    assert "postedDate" not in raw[1]
    assert "detailsFetched" not in raw[1]
    assert "lastScan" in json.loads((data_dir / "metadata.json").read_text(encoding="utf-8"))


def test_write_all_accepts_mappings(store):
    store.write_all([{"id": "123", "title": "Clerk", "jobType": "Part-Time"}])

    (item,) = store.read_all().listings
    assert item.id == "123"
    assert item.job_type == "Part-Time"


@pytest.mark.parametrize("bad", [None, "jobs", {"id": "1"}, 42])
def test_write_all_rejects_non_list_before_io(store, data_dir, bad):
    with pytest.raises(StoreValidationError, match="Expected an array of jobs"):
        store.write_all(bad)
    assert not (data_dir / "jobs.json").exists()
    assert not (data_dir / "metadata.json").exists()


def test_write_all_rejects_items_without_id(store, data_dir, make_listing):
    with pytest.raises(StoreValidationError):
        store.write_all([make_listing(1), {"title": "no id"}])
    assert not (data_dir / "jobs.json").exists()


def test_validation_error_is_a_value_error(store):
    with pytest.raises(ValueError):
        store.write_all("nope")


def test_write_creates_data_dir(tmp_path, make_listing):
    s = RecordStore(str(tmp_path / "nested" / "data"))
    s.write_all([make_listing(1)])
    assert s.count() == 1


def test_os_error_becomes_store_error(store, make_listing):
    with mock.patch("modules.city_jobs.lib.store.os.replace", side_effect=OSError("read-only fs")):
        with pytest.raises(StoreError, match="Failed to store job data"):
            store.write_all([make_listing(1)])
    # No temp files left behind
    assert list(pathlib.Path(store.data_dir).iterdir()) == []


def test_reset_store_removes_files(store, data_dir, make_listing):
    store.write_all([make_listing(1)])
    reset_store(str(data_dir))
    reset_store(str(data_dir))  # idempotent
    assert store.read_all().listings == []


def _fail_metadata_replace(real_replace):
    def _replace(src, dst):
        if str(dst).endswith("metadata.json"):
            raise OSError("metadata volume full")
        return real_replace(src, dst)

    return _replace


def test_metadata_failure_restores_previous_jobs(store, data_dir, make_listing):
    store.write_all([make_listing(1, details_fetched=True, posted_date="01/01/2024")])
    before_jobs = (data_dir / "jobs.json").read_text(encoding="utf-8")
    before_meta = (data_dir / "metadata.json").read_text(encoding="utf-8")

    real_replace = os.replace
    with mock.patch("modules.city_jobs.lib.store.os.replace", side_effect=_fail_metadata_replace(real_replace)):
        with pytest.raises(StoreError):
            store.write_all([make_listing(2), make_listing(3)])

    assert (data_dir / "jobs.json").read_text(encoding="utf-8") == before_jobs
    assert (data_dir / "metadata.json").read_text(encoding="utf-8") == before_meta
    assert sorted(p.name for p in data_dir.iterdir()) == ["jobs.json", "metadata.json"]


def test_metadata_failure_on_first_write_leaves_no_jobs_file(store, data_dir, make_listing):
    real_replace = os.replace
    with mock.patch("modules.city_jobs.lib.store.os.replace", side_effect=_fail_metadata_replace(real_replace)):
        with pytest.raises(StoreError):
            store.write_all([make_listing(1)])

    assert list(data_dir.iterdir()) == []
    assert store.read_all().listings == []

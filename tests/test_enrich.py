# tests/test_enrich.py
import threading

import pytest

from modules.city_jobs.lib.enrich import enrich_listings
from modules.city_jobs.lib.http_client import FetchError
from modules.city_jobs.lib.utils import DelayPolicy


class Recorder:
    """Collects commit snapshots; optionally fails the first N commits."""

    def __init__(self, fail_first=0):
        self.calls = []
        self.fail_first = fail_first

    def __call__(self, listings):
        self.calls.append(list(listings))
        if len(self.calls) <= self.fail_first:
            raise OSError("disk full")


def _dates(url):
    return "03/01/2024"


def test_already_enriched_pass_through_identity(make_listing):
    done = make_listing(1, posted_date="01/01/2024", details_fetched=True)
    items = [done, make_listing(2)]
    commit = Recorder()

    out = enrich_listings(items, _dates, commit)

    assert out[0] is done
    assert out[1].details_fetched is True
    assert out[1].posted_date == "03/01/2024"
    assert items[1].details_fetched is False  # input untouched


def test_commits_every_batch_and_after_last(make_listing):
    items = [make_listing(i) for i in range(23)]
    commit = Recorder()

    out = enrich_listings(items, _dates, commit, batch_size=10)

    assert len(commit.calls) == 3
    enriched_per_commit = [sum(1 for x in snap if x.details_fetched) for snap in commit.calls]
    assert enriched_per_commit == [10, 20, 23]
    # Every commit carries the entire collection
    assert all(len(snap) == 23 for snap in commit.calls)
    assert all(x.details_fetched for x in out)


def test_nothing_to_do_makes_no_commit(make_listing):
    items = [make_listing(1, details_fetched=True)]
    commit = Recorder()

    assert enrich_listings(items, _dates, commit) == items
    assert commit.calls == []


def test_none_date_is_terminal(make_listing):
    out = enrich_listings([make_listing(1)], lambda url: None, Recorder())
    assert out[0].details_fetched is True
    assert out[0].posted_date is None


def test_fetch_failure_is_logged_and_skipped(make_listing):
    items = [make_listing(i) for i in range(1, 4)]

    def fetch(url):
        if url == "/job/job-2":
            raise FetchError("Failed to fetch /job/job-2: 404 Not Found", url=url, status=404, reason="Not Found")
        return "04/04/2024"

    commit = Recorder()
    progress = []
    out = enrich_listings(items, fetch, commit, on_progress=lambda p, t: progress.append((p, t)))

    assert [x.details_fetched for x in out] == [True, False, True]
    assert out[1] is items[1]
    # Failed items still count as processed
    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert len(commit.calls) == 1


def test_progress_and_batch_callbacks(make_listing):
    items = [make_listing(i) for i in range(5)]
    progress, batches = [], []

    enrich_listings(
        items,
        _dates,
        Recorder(),
        batch_size=2,
        on_progress=lambda p, t: progress.append((p, t)),
        on_batch_committed=batches.append,
    )

    assert progress == [(i, 5) for i in range(1, 6)]
    assert [sum(1 for x in b if x.details_fetched) for b in batches] == [2, 4, 5]


def test_failed_commit_does_not_stop_processing(make_listing):
    items = [make_listing(i) for i in range(5)]
    commit = Recorder(fail_first=1)
    batches = []

    out = enrich_listings(items, _dates, commit, batch_size=2, on_batch_committed=batches.append)

    assert all(x.details_fetched for x in out)
    # p=2 fails, p=3 retries the still-pending work, p=5 is the final commit
    assert len(commit.calls) == 3
    assert len(batches) == 2
    assert all(x.details_fetched for x in commit.calls[-1])


def test_delay_before_each_fetch_except_first(make_listing):
    items = [make_listing(i) for i in range(4)]
    slept = []

    enrich_listings(items, _dates, Recorder(), delay=DelayPolicy(1.0, 3.0), sleep=slept.append)

    assert len(slept) == 3
    assert all(1.0 <= s <= 3.0 for s in slept)


def test_cancel_flushes_pending_work(make_listing):
    items = [make_listing(i) for i in range(10)]
    cancel = threading.Event()
    fetched = []

    def fetch(url):
        fetched.append(url)
        if len(fetched) == 3:
            cancel.set()
        return "05/05/2024"

    commit = Recorder()
    out = enrich_listings(items, fetch, commit, batch_size=10, cancel_event=cancel)

    assert len(fetched) == 3
    assert len(commit.calls) == 1
    assert sum(1 for x in commit.calls[0] if x.details_fetched) == 3
    assert sum(1 for x in out if x.details_fetched) == 3


def test_cancel_before_start_fetches_nothing(make_listing):
    cancel = threading.Event()
    cancel.set()
    commit = Recorder()

    out = enrich_listings([make_listing(1)], _dates, commit, cancel_event=cancel)

    assert out[0].details_fetched is False
    assert commit.calls == []


def test_rejects_non_positive_batch_size(make_listing):
    with pytest.raises(ValueError):
        enrich_listings([make_listing(1)], _dates, Recorder(), batch_size=0)

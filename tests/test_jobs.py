"""Unit tests for the in-memory translation job store.

WHY: The job store is the state shared between request handlers and the
background runner. Wrong status transitions or lost per-language
results would break polling and result retrieval.

HOW: Tests are organized by class, one per JobStore concern:
  - TestJobCreation: create_job basics, defaults and the job limit
  - TestJobUpdate: status transitions and terminal states
  - TestLanguageResults: record_success / record_failure bookkeeping
  - TestTTLCleanup: expiry logic and boundary conditions
  - TestThreadSafety: concurrent access doesn't corrupt state

RULES:
- Each test creates its own JobStore instance (no shared mutable state)
- Time-dependent tests use monkeypatch to control time.time()
"""

from __future__ import annotations

import threading
import time

import pytest

from localekit.server.jobs import DEFAULT_TTL_SECONDS, JobStatus, JobStore


def _make_store(**kwargs) -> JobStore:
    return JobStore(**kwargs)


def _make_job(store, languages=("de_de", "fr_fr")):
    return store.create_job(document={"title": "Hello"}, languages=list(languages))


# ---------------------------------------------------------------------------
# TestJobCreation
# ---------------------------------------------------------------------------


class TestJobCreation:

    def test_creates_job_with_pending_status(self):
        job = _make_job(_make_store())
        assert job.status == JobStatus.PENDING
        assert job.languages == ["de_de", "fr_fr"]

    def test_assigns_unique_id(self):
        store = _make_store()
        assert _make_job(store).id != _make_job(store).id

    def test_defaults(self):
        job = _make_job(_make_store())
        assert job.excluded_paths == []
        assert job.model is None
        assert job.completed_at is None
        assert job.error is None
        assert job.results == {}
        assert job.progress == {"current": None, "completed": [], "failed": {}}

    def test_progress_is_not_shared_between_jobs(self):
        store = _make_store()
        first, second = _make_job(store), _make_job(store)
        first.progress["completed"].append("de_de")
        assert second.progress["completed"] == []

    def test_stores_request_options(self):
        job = _make_store().create_job(
            document=["a"], languages=["de_de"], excluded_paths=["[0]"], model="gpt-4o"
        )
        assert job.document == ["a"]
        assert job.excluded_paths == ["[0]"]
        assert job.model == "gpt-4o"

    def test_max_jobs_enforced(self):
        store = _make_store(max_jobs=2)
        _make_job(store)
        _make_job(store)
        with pytest.raises(ValueError, match="Maximum number"):
            _make_job(store)

    def test_list_jobs_ordered_by_creation_time(self, monkeypatch):
        store = _make_store()
        monkeypatch.setattr(time, "time", lambda: 200.0)
        late = _make_job(store)
        monkeypatch.setattr(time, "time", lambda: 100.0)
        early = _make_job(store)
        assert [j.id for j in store.list_jobs()] == [early.id, late.id]

    def test_get_missing_job_returns_none(self):
        assert _make_store().get_job("nope") is None


# ---------------------------------------------------------------------------
# TestJobUpdate
# ---------------------------------------------------------------------------


class TestJobUpdate:

    def test_update_status(self):
        store = _make_store()
        job = _make_job(store)
        store.update_job(job.id, status=JobStatus.TRANSLATING)
        assert store.get_job(job.id).status == JobStatus.TRANSLATING
        assert job.completed_at is None

    def test_update_current_language(self):
        store = _make_store()
        job = _make_job(store)
        store.update_job(job.id, current="fr_fr")
        assert job.progress["current"] == "fr_fr"

    def test_terminal_status_sets_completed_at_and_clears_current(self):
        store = _make_store()
        job = _make_job(store)
        store.update_job(job.id, current="de_de")
        store.update_job(job.id, status=JobStatus.FAILED, error="boom")
        assert job.completed_at is not None
        assert job.progress["current"] is None
        assert job.error == "boom"

    def test_update_missing_job_returns_none(self):
        assert _make_store().update_job("nope", status=JobStatus.FAILED) is None

    def test_delete(self):
        store = _make_store()
        job = _make_job(store)
        assert store.delete_job(job.id) is True
        assert store.get_job(job.id) is None
        assert store.delete_job(job.id) is False


# ---------------------------------------------------------------------------
# TestLanguageResults
# ---------------------------------------------------------------------------


class TestLanguageResults:

    def test_record_success(self):
        store = _make_store()
        job = _make_job(store)
        store.update_job(job.id, current="de_de")
        store.record_success(job.id, "de_de", {"title": "Hallo"})
        assert job.results == {"de_de": {"title": "Hallo"}}
        assert job.progress["completed"] == ["de_de"]
        assert job.progress["current"] is None

    def test_record_success_twice_lists_language_once(self):
        store = _make_store()
        job = _make_job(store)
        store.record_success(job.id, "de_de", {"title": "Hallo"})
        store.record_success(job.id, "de_de", {"title": "Servus"})
        assert job.progress["completed"] == ["de_de"]
        assert job.results["de_de"] == {"title": "Servus"}

    def test_record_failure(self):
        store = _make_store()
        job = _make_job(store)
        store.update_job(job.id, current="fr_fr")
        store.record_failure(job.id, "fr_fr", "Translation timed out.")
        assert job.progress["failed"] == {"fr_fr": "Translation timed out."}
        assert job.progress["current"] is None
        assert "fr_fr" not in job.results

    def test_recording_other_language_keeps_current(self):
        store = _make_store()
        job = _make_job(store)
        store.update_job(job.id, current="fr_fr")
        store.record_failure(job.id, "de_de", "x")
        assert job.progress["current"] == "fr_fr"

    def test_recording_missing_job_is_ignored(self):
        store = _make_store()
        store.record_success("nope", "de_de", {})
        store.record_failure("nope", "de_de", "x")

    def test_snapshot_is_detached_from_later_updates(self):
        store = _make_store()
        job = _make_job(store)
        store.update_job(job.id, current="de_de")
        snap = store.snapshot(job.id)
        store.record_success(job.id, "de_de", {"title": "Hallo"})
        store.record_failure(job.id, "fr_fr", "x")
        assert snap.progress == {"current": "de_de", "completed": [], "failed": {}}
        assert snap.results == {}
        assert store.snapshot(job.id).progress["completed"] == ["de_de"]

    def test_snapshot_of_missing_job_is_none(self):
        assert _make_store().snapshot("nope") is None


# ---------------------------------------------------------------------------
# TestTTLCleanup
# ---------------------------------------------------------------------------


class TestTTLCleanup:

    def test_cleanup_removes_expired_completed_job(self, monkeypatch):
        store = _make_store(ttl_seconds=60)
        job = _make_job(store)
        monkeypatch.setattr(time, "time", lambda: 100.0)
        store.update_job(job.id, status=JobStatus.COMPLETED)
        monkeypatch.setattr(time, "time", lambda: 161.0)
        assert store.cleanup_expired() == 1
        assert store.get_job(job.id) is None

    def test_cleanup_keeps_non_expired_job(self, monkeypatch):
        store = _make_store(ttl_seconds=60)
        job = _make_job(store)
        monkeypatch.setattr(time, "time", lambda: 100.0)
        store.update_job(job.id, status=JobStatus.FAILED)
        monkeypatch.setattr(time, "time", lambda: 159.0)
        assert store.cleanup_expired() == 0
        assert store.get_job(job.id) is not None

    def test_cleanup_ignores_in_progress_jobs(self, monkeypatch):
        store = _make_store(ttl_seconds=60)
        job = _make_job(store)
        store.update_job(job.id, status=JobStatus.TRANSLATING)
        monkeypatch.setattr(time, "time", lambda: 10.0 ** 12)
        assert store.cleanup_expired() == 0

    def test_default_ttl_is_one_hour(self):
        assert DEFAULT_TTL_SECONDS == 3600
        assert _make_store()._ttl_seconds == 3600


# ---------------------------------------------------------------------------
# TestThreadSafety
# ---------------------------------------------------------------------------


class TestThreadSafety:

    def test_concurrent_creates(self):
        store = _make_store()
        errors = []

        def create_job():
            try:
                _make_job(store)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=create_job) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(store.list_jobs()) == 20

    def test_concurrent_results(self):
        store = _make_store()
        codes = [f"xx_{i:02d}" for i in range(20)]
        job = _make_job(store, languages=codes)

        threads = [
            threading.Thread(target=store.record_success, args=(job.id, code, {"i": code}))
            for code in codes
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(job.progress["completed"]) == codes
        assert len(job.results) == 20

    def test_snapshots_during_recording_are_consistent(self):
        store = _make_store()
        codes = [f"xx_{i:02d}" for i in range(50)]
        job = _make_job(store, languages=codes)
        snapshots = []

        def _record():
            for code in codes:
                store.record_success(job.id, code, {"i": code})

        def _read():
            for _ in range(200):
                snapshots.append(store.snapshot(job.id))

        threads = [threading.Thread(target=_record), threading.Thread(target=_read)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for snap in snapshots:
            assert sorted(snap.progress["completed"]) == sorted(snap.results)

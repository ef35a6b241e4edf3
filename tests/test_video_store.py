"""Tests for the asset-keyed video store and its monotonic status gate."""
import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker

from vidbrief.core.errors import ConflictError, NotFoundError
from vidbrief.models.video import Video, VideoStatus, utcnow
from vidbrief.services.video_store import VideoStore
from vidbrief.shared.db.database import init_db


def _snapshot(video):
    return {
        "id": video.id,
        "asset_id": video.asset_id,
        "upload_session_id": video.upload_session_id,
        "playback_id": video.playback_id,
        "status": video.status,
        "status_rank": video.status_rank,
        "updated_at": video.updated_at,
    }


class TestUpsertDiscovered:

    def test_creates_uploaded_record(self, store):
        video = store.upsert_discovered("A1", upload_session_id="U1")

        assert video.asset_id == "A1"
        assert video.upload_session_id == "U1"
        assert video.playback_id is None
        assert video.status == VideoStatus.UPLOADED
        assert video.id is not None

    def test_duplicate_delivery_is_identical(self, store):
        first = store.upsert_discovered("A1", upload_session_id="U1")
        second = store.upsert_discovered("A1", upload_session_id="U1")

        assert _snapshot(first) == _snapshot(second)
        assert len(store.list_recent()) == 1

    def test_fills_missing_fields_only(self, store):
        store.upsert_discovered("A1")
        video = store.upsert_discovered("A1", upload_session_id="U1", playback_id="P1")
        assert video.upload_session_id == "U1"
        assert video.playback_id == "P1"

        video = store.upsert_discovered("A1", upload_session_id="U-other", playback_id="P-other")
        assert video.upload_session_id == "U1"
        assert video.playback_id == "P1"

    def test_never_regresses_completed(self, store):
        store.upsert_discovered("A1", upload_session_id="U1")
        assert store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600)
        assert store.complete_enrichment("A1", "P1", "Hello world.", "summary", "description")

        video = store.upsert_discovered("A1", upload_session_id="U1")

        assert video.status == VideoStatus.COMPLETED
        assert video.summary == "summary"
        assert video.description == "description"
        assert video.transcript == "Hello world."

    def test_never_regresses_failed(self, store):
        store.mark_failed("A1", "input file unreadable")
        video = store.upsert_discovered("A1", playback_id="P1")
        assert video.status == VideoStatus.FAILED


class TestMarkFailed:

    def test_overrides_completed(self, store):
        store.upsert_discovered("A1")
        store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600)
        store.complete_enrichment("A1", "P1", "text", "s", "d")

        video = store.mark_failed("A1", "asset errored")

        assert video.status == VideoStatus.FAILED
        assert video.last_error == "asset errored"

    def test_creates_record_for_unknown_asset(self, store):
        video = store.mark_failed("A-unknown")
        assert video.status == VideoStatus.FAILED
        assert video.upload_session_id is None


class TestEnrichmentLease:

    def test_only_first_claim_wins(self, store):
        store.upsert_discovered("A1")

        assert store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600) is True
        assert store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600) is False

        video = store.get_by_asset("A1")
        assert video.status == VideoStatus.PROCESSING_AI
        assert video.enrichment_attempts == 1
        assert video.track_id == "T1"

    def test_claim_unknown_asset_fails(self, store):
        assert store.claim_enrichment("nope", "T1", max_attempts=3, lease_seconds=600) is False

    def test_released_lease_can_be_reclaimed_until_budget_runs_out(self, store):
        store.upsert_discovered("A1")
        for attempt in range(1, 4):
            assert store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600)
            video = store.release_enrichment("A1", f"failure {attempt}")
            assert video.status == VideoStatus.PROCESSING_AI
            assert video.enrichment_attempts == attempt

        assert store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600) is False
        assert store.get_by_asset("A1").last_error == "failure 3"

    def test_stale_lease_is_reclaimable(self, store, session_factory):
        store.upsert_discovered("A1")
        store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600)
        with session_factory() as session:
            session.execute(
                update(Video)
                .where(Video.asset_id == "A1")
                .values(enrichment_started_at=utcnow() - timedelta(hours=1))
            )
            session.commit()

        assert store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600) is True
        assert store.get_by_asset("A1").enrichment_attempts == 2

    def test_complete_requires_processing(self, store):
        store.upsert_discovered("A1")
        assert store.complete_enrichment("A1", "P1", "text", "s", "d") is False
        assert store.get_by_asset("A1").status == VideoStatus.UPLOADED

    def test_complete_after_failure_is_dropped(self, store):
        store.upsert_discovered("A1")
        store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600)
        store.mark_failed("A1")

        assert store.complete_enrichment("A1", "P1", "text", "s", "d") is False
        video = store.get_by_asset("A1")
        assert video.status == VideoStatus.FAILED
        assert video.summary is None

    def test_complete_keeps_known_playback_id(self, store):
        store.upsert_discovered("A1", playback_id="P1")
        store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600)
        store.complete_enrichment("A1", "P-late", "text", "s", "d")
        assert store.get_by_asset("A1").playback_id == "P1"


class TestManualRetry:

    def test_resets_attempts(self, store):
        video = store.upsert_discovered("A1")
        for _ in range(3):
            store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600)
            store.release_enrichment("A1", "boom")

        claimed = store.claim_manual_retry(video.id, lease_seconds=600)

        assert claimed.enrichment_attempts == 1
        assert claimed.enrichment_started_at is not None
        assert claimed.track_id == "T1"

    def test_conflict_when_not_stuck(self, store):
        video = store.upsert_discovered("A1")
        with pytest.raises(ConflictError):
            store.claim_manual_retry(video.id, lease_seconds=600)

    def test_conflict_while_in_flight(self, store):
        video = store.upsert_discovered("A1")
        store.claim_enrichment("A1", "T1", max_attempts=3, lease_seconds=600)
        with pytest.raises(ConflictError):
            store.claim_manual_retry(video.id, lease_seconds=600)


class TestQueries:

    def test_list_newest_first(self, store):
        store.upsert_discovered("A1")
        store.upsert_discovered("A2")
        store.upsert_discovered("A3")
        assert [v.asset_id for v in store.list_recent()] == ["A3", "A2", "A1"]

    def test_get_unknown_raises(self, store):
        video = store.upsert_discovered("A1")
        store.delete(video.id)
        with pytest.raises(NotFoundError):
            store.get(video.id)
        with pytest.raises(NotFoundError):
            store.delete(video.id)


@pytest.fixture
def file_store(tmp_path):
    # threads need real connections, so a file database rather than StaticPool
    engine = create_engine(
        f"sqlite:///{tmp_path / 'videos.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(engine)
    yield VideoStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    engine.dispose()


def _race(count, target):
    """Start `count` threads on `target(index)` together and collect results and errors."""
    barrier = threading.Barrier(count)
    results, errors = [], []
    lock = threading.Lock()

    def run(index):
        barrier.wait()
        try:
            outcome = target(index)
        except Exception as e:
            with lock:
                errors.append(e)
            return
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=run, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results, errors


class TestConcurrentWriters:

    def test_only_one_claim_wins(self, file_store):
        file_store.upsert_discovered("A1")

        results, errors = _race(8, lambda i: file_store.claim_enrichment("A1", "T1", max_attempts=3,
                                                                         lease_seconds=600))

        assert errors == []
        assert sorted(results) == [False] * 7 + [True]
        video = file_store.get_by_asset("A1")
        assert video.status == VideoStatus.PROCESSING_AI
        assert video.enrichment_attempts == 1

    def test_racing_discoveries_merge_into_one_record(self, file_store):
        variants = [
            {},
            {"upload_session_id": "U1"},
            {"playback_id": "P1"},
            {"upload_session_id": "U1", "playback_id": "P1"},
            {"upload_session_id": "U1"},
            {"playback_id": "P1"},
        ]

        results, errors = _race(6, lambda i: file_store.upsert_discovered("A1", **variants[i]))

        assert errors == []
        assert len({video.id for video in results}) == 1
        records = file_store.list_recent()
        assert len(records) == 1
        video = records[0]
        assert (video.upload_session_id, video.playback_id, video.status) == ("U1", "P1", VideoStatus.UPLOADED)

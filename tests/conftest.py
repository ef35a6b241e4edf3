"""Pytest configuration and shared fixtures for vidbrief tests."""

import json
import os
import threading

import pytest

# Environment defaults for tests (must be set before vidbrief.core.config is imported)
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MUX_TOKEN_ID", "test-token")
os.environ.setdefault("MUX_TOKEN_SECRET", "test-secret")
os.environ.setdefault("GEMINI_API_KEY", "test-key")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vidbrief.api.dependencies import (
    get_completion_client,
    get_mux_service,
    get_queue_service,
    get_video_store,
)
from vidbrief.core.config import Settings, get_settings
from vidbrief.core.errors import NotFoundError, TranscriptNotReady, UpstreamError
from vidbrief.main import create_app
from vidbrief.services.enrichment import EnrichmentEngine, EnrichmentPipeline
from vidbrief.services.mux_service import AssetInfo, UploadInfo, UploadIntent
from vidbrief.services.queue_service import QueueService
from vidbrief.services.video_store import VideoStore
from vidbrief.shared.db.database import init_db


class FakeMux:
    """In-memory stand-in for MuxService."""

    def __init__(self):
        self.uploads = {}
        self.assets = {}
        self.transcripts = {}
        self.calls = []
        self.fail_create_upload = False
        self.deleted = []
        self.missing_uploads = set()

    def create_upload(self):
        self.calls.append(("create_upload",))
        if self.fail_create_upload:
            raise UpstreamError("Mux request POST /uploads returned 500: boom")
        return UploadIntent(upload_url="https://storage.mux.test/upload/U1", upload_session_id="U1")

    def create_asset_from_url(self, video_url):
        self.calls.append(("create_asset_from_url", video_url))
        self.assets["A-URL"] = {"playback_id": None, "status": "preparing"}
        return AssetInfo(asset_id="A-URL", status="preparing", playback_id=None)

    def get_upload(self, upload_session_id):
        self.calls.append(("get_upload", upload_session_id))
        if upload_session_id in self.missing_uploads:
            raise NotFoundError(f"Upload session {upload_session_id} not found")
        upload = self.uploads.get(upload_session_id, {"status": "waiting"})
        return UploadInfo(upload_session_id=upload_session_id, **upload)

    def get_asset(self, asset_id):
        self.calls.append(("get_asset", asset_id))
        if asset_id not in self.assets:
            raise UpstreamError(f"Mux request GET /assets/{asset_id} returned 404: not found")
        asset = self.assets[asset_id]
        return AssetInfo(asset_id=asset_id, status=asset.get("status"), playback_id=asset.get("playback_id"))

    def delete_asset(self, asset_id):
        self.calls.append(("delete_asset", asset_id))
        if asset_id not in self.assets:
            return False
        del self.assets[asset_id]
        self.deleted.append(asset_id)
        return True

    def fetch_transcript(self, playback_id, track_id):
        self.calls.append(("fetch_transcript", playback_id, track_id))
        text = self.transcripts.get((playback_id, track_id), "")
        if not text.strip():
            raise TranscriptNotReady(f"Transcript {track_id} is empty")
        return text


class FakeCompletionClient:
    def __init__(self):
        self.prompts = []
        self.fail = False
        self._lock = threading.Lock()

    def complete(self, prompt):
        with self._lock:
            self.prompts.append(prompt)
        if self.fail:
            raise UpstreamError("Gemini completion failed: quota exceeded")
        if prompt.startswith("Provide ONE concise summary"):
            return "A short greeting video. The speaker says hello to the world."
        return "Say hello!\n- Friendly greeting\n- Short and sweet\n#hello #world"


class FakeRedis:
    def __init__(self):
        self.zsets = {}

    def zadd(self, name, mapping):
        zset = self.zsets.setdefault(name, {})
        added = len([m for m in mapping if m not in zset])
        zset.update(mapping)
        return added

    def zrangebyscore(self, name, min, max, start=None, num=None):
        zset = self.zsets.get(name, {})
        members = [m for m, score in sorted(zset.items(), key=lambda item: item[1]) if min <= score <= max]
        if start is not None and num is not None:
            members = members[start:start + num]
        return members

    def zrem(self, name, *members):
        zset = self.zsets.get(name, {})
        return len([zset.pop(m) for m in members if m in zset])

    def jobs(self, name):
        """Queued jobs ordered by due time, as (job, due) pairs."""
        zset = self.zsets.get(name, {})
        return [(json.loads(m), score) for m, score in sorted(zset.items(), key=lambda item: item[1])]


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return VideoStore(session_factory)


@pytest.fixture
def fake_mux():
    mux = FakeMux()
    mux.assets["A1"] = {"playback_id": "P1", "status": "ready"}
    mux.transcripts[("P1", "T1")] = "Hello world."
    return mux


@pytest.fixture
def fake_ai():
    return FakeCompletionClient()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def queue(fake_redis):
    return QueueService(Settings(REDIS_URL=None), redis_client=fake_redis)


@pytest.fixture
def pipeline(store, fake_mux, fake_ai, queue):
    return EnrichmentPipeline(
        store=store,
        mux=fake_mux,
        engine=EnrichmentEngine(fake_ai),
        queue=queue,
        max_attempts=3,
        lease_seconds=600,
        retry_base_delay=30.0,
    )


@pytest.fixture
def client(store, fake_mux, fake_ai, queue):
    app = create_app(init_database=False)
    app.dependency_overrides[get_video_store] = lambda: store
    app.dependency_overrides[get_mux_service] = lambda: fake_mux
    app.dependency_overrides[get_completion_client] = lambda: fake_ai
    app.dependency_overrides[get_queue_service] = lambda: queue
    return TestClient(app)

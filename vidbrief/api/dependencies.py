# vidbrief/api/dependencies.py
# ทุก client ภายนอกถูกส่งเข้ามาผ่าน Depends เพื่อให้ test สลับเป็นตัวปลอมได้ (dependency_overrides)

from functools import lru_cache

from fastapi import Depends

from vidbrief.core.config import Settings, get_settings
from vidbrief.services.asset_resolver import AssetResolver
from vidbrief.services.enrichment import CompletionClient, EnrichmentEngine, EnrichmentPipeline
from vidbrief.services.gemini_service import GeminiService
from vidbrief.services.mux_service import MuxService
from vidbrief.services.notification_router import NotificationRouter
from vidbrief.services.queue_service import QueueService
from vidbrief.services.video_store import VideoStore
from vidbrief.shared.db.database import Session_Local


@lru_cache()
def get_video_store() -> VideoStore:
    return VideoStore(Session_Local)


@lru_cache()
def get_mux_service() -> MuxService:
    return MuxService(get_settings())


@lru_cache()
def get_completion_client() -> CompletionClient:
    return GeminiService(get_settings())


@lru_cache()
def get_queue_service() -> QueueService:
    return QueueService(get_settings())


def get_pipeline(
    settings: Settings = Depends(get_settings),
    store: VideoStore = Depends(get_video_store),
    mux: MuxService = Depends(get_mux_service),
    client: CompletionClient = Depends(get_completion_client),
    queue: QueueService = Depends(get_queue_service),
) -> EnrichmentPipeline:
    return EnrichmentPipeline(
        store=store,
        mux=mux,
        engine=EnrichmentEngine(client),
        queue=queue,
        max_attempts=settings.ENRICHMENT_MAX_ATTEMPTS,
        lease_seconds=settings.ENRICHMENT_LEASE_SECONDS,
        retry_base_delay=settings.ENRICHMENT_RETRY_BASE_DELAY,
    )


def get_notification_router(
    store: VideoStore = Depends(get_video_store),
    pipeline: EnrichmentPipeline = Depends(get_pipeline),
) -> NotificationRouter:
    return NotificationRouter(store, pipeline)


def get_asset_resolver(
    mux: MuxService = Depends(get_mux_service),
    store: VideoStore = Depends(get_video_store),
) -> AssetResolver:
    return AssetResolver(mux, store)

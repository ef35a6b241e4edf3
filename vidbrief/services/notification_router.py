# vidbrief/services/notification_router.py

import logging
from typing import Any, Callable

from vidbrief.models.notification import (
    AssetCreated,
    AssetErrored,
    AssetReady,
    Notification,
    TranscriptTrackReady,
    Unrecognized,
)
from vidbrief.services.enrichment import EnrichmentPipeline
from vidbrief.services.video_store import VideoStore

logger = logging.getLogger(__name__)

Scheduler = Callable[..., Any]


def run_now(func: Callable[..., Any], *args: Any) -> None:
    func(*args)


class NotificationRouter:
    """
    Push side of asset discovery and the only trigger for enrichment and
    failure transitions. Handlers are idempotent: Mux delivers at least
    once and in no particular order.
    """

    def __init__(self, store: VideoStore, pipeline: EnrichmentPipeline):
        self.store = store
        self.pipeline = pipeline

    def handle(self, notification: Notification, schedule: Scheduler = run_now) -> None:
        """
        Apply one notification. Slow work (the enrichment pipeline) is handed
        to `schedule` so the webhook can be acknowledged first.
        """
        if isinstance(notification, (AssetCreated, AssetReady)):
            video = self.store.upsert_discovered(
                notification.asset_id,
                upload_session_id=notification.upload_session_id,
                playback_id=notification.playback_id,
            )
            logger.info(f"Webhook processed: {notification.kind} for asset {notification.asset_id} "
                        f"(status {video.status.value})")

        elif isinstance(notification, TranscriptTrackReady):
            self._on_track_ready(notification, schedule)

        elif isinstance(notification, AssetErrored):
            self.store.mark_failed(notification.asset_id, notification.message)
            logger.error(f"Mux asset errored: {notification.asset_id} ({notification.message})")

        elif isinstance(notification, Unrecognized):
            logger.warning(f"Ignoring notification {notification.type}: {notification.reason}")

    def _on_track_ready(self, notification: TranscriptTrackReady, schedule: Scheduler) -> None:
        # track.ready อาจมาก่อน asset_created ได้ จึงสร้าง record ผ่าน upsert ก่อน
        self.store.upsert_discovered(notification.asset_id)
        if not self.pipeline.claim(notification.asset_id, notification.track_id):
            logger.info(f"Transcript for asset {notification.asset_id} already handled, skipping")
            return
        logger.info(f"Asset {notification.asset_id} moved to PROCESSING_AI, starting enrichment")
        schedule(self.pipeline.run, notification.asset_id, notification.track_id)

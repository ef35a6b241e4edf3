# vidbrief/services/enrichment.py
# ต่อจาก transcript ที่ Mux สร้างให้ ไปยังการสรุปด้วย Gemini และบันทึกผลลง DB

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from pydantic import BaseModel

from vidbrief.core.errors import UpstreamError
from vidbrief.models.video import Video, VideoStatus
from vidbrief.services.mux_service import MuxService
from vidbrief.services.queue_service import QueueService
from vidbrief.services.video_store import VideoStore

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = (
    "Provide ONE concise summary (2-3 sentences) of this video transcript. "
    "Do not provide options or a list. Output only the summary: \n\n{transcript}"
)

DESCRIPTION_PROMPT = (
    "Write ONE catchy, high-conversion video description based on this transcript. "
    "Include 3-4 bullet points of key takeaways and relevant hashtags. "
    "Do not provide multiple versions or choices. Output the final text only: \n\n{transcript}"
)


class CompletionClient(Protocol):
    def complete(self, prompt: str) -> str: ...


class Enrichment(BaseModel):
    summary: str
    description: str


class EnrichmentEngine:
    def __init__(self, client: CompletionClient):
        self.client = client

    def enrich(self, asset_id: str, transcript: str) -> Enrichment:
        """
        Run the summary and description prompts concurrently and wait for both.
        Raises UpstreamError if either completion fails.
        """
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix=f"enrich-{asset_id}") as pool:
            summary_future = pool.submit(self.client.complete, SUMMARY_PROMPT.format(transcript=transcript))
            description_future = pool.submit(self.client.complete, DESCRIPTION_PROMPT.format(transcript=transcript))
            summary = summary_future.result()
            description = description_future.result()
        return Enrichment(summary=summary, description=description)


class EnrichmentPipeline:
    """
    Transcript fetch -> Gemini enrichment -> final write, guarded by the
    enrichment lease in VideoStore.
    """

    def __init__(self, store: VideoStore, mux: MuxService, engine: EnrichmentEngine,
                 queue: QueueService, max_attempts: int, lease_seconds: int,
                 retry_base_delay: float = 30.0):
        self.store = store
        self.mux = mux
        self.engine = engine
        self.queue = queue
        self.max_attempts = max_attempts
        self.lease_seconds = lease_seconds
        self.retry_base_delay = retry_base_delay

    def claim(self, asset_id: str, track_id: str) -> bool:
        return self.store.claim_enrichment(asset_id, track_id, self.max_attempts, self.lease_seconds)

    def claim_and_run(self, asset_id: str, track_id: str) -> Video | None:
        if not self.claim(asset_id, track_id):
            logger.info(f"Enrichment for asset {asset_id} already claimed or finished, skipping")
            return None
        return self.run(asset_id, track_id)

    def run(self, asset_id: str, track_id: str) -> Video | None:
        """Caller must hold the lease (see claim)."""
        try:
            playback_id = self._playback_id(asset_id)
            transcript = self.mux.fetch_transcript(playback_id, track_id)
            enrichment = self.engine.enrich(asset_id, transcript)
        except UpstreamError as e:
            self._release(asset_id, track_id, e.message)
            return None
        except Exception as e:
            logger.error(f"Unexpected enrichment error for asset {asset_id}: {e}", exc_info=True)
            self.store.release_enrichment(asset_id, str(e))
            raise

        if not self.store.complete_enrichment(asset_id, playback_id, transcript,
                                              enrichment.summary, enrichment.description):
            # เช่น asset ถูก mark FAILED ระหว่างที่ Gemini กำลังทำงาน
            logger.warning(f"Asset {asset_id} left PROCESSING_AI before enrichment finished, result dropped")
            return None
        logger.info(f"AI generation complete for asset {asset_id}")
        return self.store.get_by_asset(asset_id)

    def _playback_id(self, asset_id: str) -> str:
        video = self.store.get_by_asset(asset_id)
        if video is not None and video.playback_id:
            return video.playback_id
        playback_id = self.mux.get_asset(asset_id).playback_id
        if not playback_id:
            raise UpstreamError(f"Asset {asset_id} has no playback id yet")
        return playback_id

    def _release(self, asset_id: str, track_id: str, error: str) -> None:
        video = self.store.release_enrichment(asset_id, error)
        if video is None or video.status != VideoStatus.PROCESSING_AI:
            # FAILED ระหว่างทาง: ไม่ต้อง retry อีก
            logger.warning(f"Enrichment for asset {asset_id} failed after it left PROCESSING_AI: {error}")
            return
        attempts = video.enrichment_attempts
        if attempts < self.max_attempts and self.queue.enqueue_enrichment_retry(
                asset_id, track_id, attempts + 1, self.retry_base_delay):
            logger.warning(f"Enrichment attempt {attempts} for asset {asset_id} failed, retry queued: {error}")
        else:
            logger.warning(
                f"Enrichment attempt {attempts} for asset {asset_id} failed, "
                f"waiting for a new notification or manual retry: {error}"
            )

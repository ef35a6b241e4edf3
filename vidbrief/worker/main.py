# vidbrief/worker/main.py
# Worker สำหรับ retry งาน enrichment ที่ค้างอยู่ที่ PROCESSING_AI (ดึงงานที่ถึงกำหนดจาก Redis)

import logging
import time
from typing import Callable

from vidbrief.api.dependencies import (
    get_completion_client,
    get_mux_service,
    get_queue_service,
    get_video_store,
)
from vidbrief.core.config import Settings, settings
from vidbrief.services.enrichment import EnrichmentEngine, EnrichmentPipeline
from vidbrief.services.queue_service import QueueService
from vidbrief.shared.db.database import init_db

logger = logging.getLogger(__name__)


def process_retry_job(job_data: dict, pipeline: EnrichmentPipeline) -> None:
    """
    ประมวลผล retry 1 งาน
    """
    asset_id = job_data.get("asset_id")
    track_id = job_data.get("track_id")
    attempt = int(job_data.get("attempt") or 1)
    if not asset_id or not track_id:
        logger.warning(f"Dropping malformed retry job: {job_data}")
        return

    logger.info(f"Running retry {attempt} for asset {asset_id}")
    video = pipeline.claim_and_run(asset_id, track_id)
    if video is not None:
        logger.info(f"Retry {attempt} completed asset {asset_id}")


def build_pipeline(settings: Settings) -> EnrichmentPipeline:
    return EnrichmentPipeline(
        store=get_video_store(),
        mux=get_mux_service(),
        engine=EnrichmentEngine(get_completion_client()),
        queue=get_queue_service(),
        max_attempts=settings.ENRICHMENT_MAX_ATTEMPTS,
        lease_seconds=settings.ENRICHMENT_LEASE_SECONDS,
        retry_base_delay=settings.ENRICHMENT_RETRY_BASE_DELAY,
    )


def main_loop(queue: QueueService, pipeline: EnrichmentPipeline, poll_interval: float,
              sleep: Callable[[float], None] = time.sleep) -> None:
    """
    วนลูปดึงงานที่ถึงกำหนดจาก Redis ถ้ายังไม่มีก็รอ poll_interval
    """
    logger.info(f"Worker started, polling queue '{queue.queue_name}' for due jobs...")
    while True:
        try:
            job_data = queue.pop_due_job()
            if job_data:
                process_retry_job(job_data, pipeline)
                continue
        except Exception as e:
            logger.error(f"A critical error occurred in the main loop: {e}", exc_info=True)
            sleep(5)
            continue
        sleep(poll_interval)


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL)
    init_db()
    queue = get_queue_service()
    if not queue.enabled:
        raise SystemExit("REDIS_URL is not configured, nothing to consume")
    main_loop(queue, build_pipeline(settings), settings.ENRICHMENT_POLL_INTERVAL)


if __name__ == "__main__":
    main()

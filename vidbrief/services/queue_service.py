# vidbrief/services/queue_service.py
# คิว retry ใน Redis: sorted set ที่ score = เวลาที่งานถึงกำหนด

import json
import logging
import time

import redis

from vidbrief.core.config import Settings

logger = logging.getLogger(__name__)


def retry_delay(attempt: int, base_delay: float) -> float:
    """Exponential backoff: base, 2*base, 4*base, ... for attempt 2, 3, 4, ..."""
    return base_delay * (2 ** max(attempt - 2, 0))


class QueueService:
    """
    Enrichment retries for records stuck at PROCESSING_AI.

    Jobs sit in a sorted set scored by the unix time they become due, so a
    waiting job never holds up the ones behind it and stays in Redis until a
    worker actually takes it.
    """

    def __init__(self, settings: Settings, redis_client: redis.Redis | None = None):
        self.queue_name = settings.ENRICHMENT_QUEUE_NAME
        self.redis_client = redis_client
        if self.redis_client is None and settings.REDIS_URL:
            try:
                self.redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
                logger.info("Connected to Redis for enrichment retries.")
            except redis.RedisError as e:
                logger.error(f"Error connecting to Redis for queuing: {e}")
                self.redis_client = None

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    def enqueue_enrichment_retry(self, asset_id: str, track_id: str, attempt: int,
                                 base_delay: float = 0.0, now: float | None = None) -> bool:
        if self.redis_client is None:
            return False
        now = time.time() if now is None else now
        delay = retry_delay(attempt, base_delay)
        try:
            job_data = {
                "asset_id": asset_id,
                "track_id": track_id,
                "attempt": attempt,
            }
            self.redis_client.zadd(self.queue_name, {json.dumps(job_data): now + delay})
            logger.info(f"Enqueued enrichment retry {attempt} for asset {asset_id}, due in {delay:.0f}s")
            return True
        except redis.RedisError as e:
            logger.error(f"Error enqueuing enrichment retry for asset {asset_id}: {e}")
            return False

    def pop_due_job(self, now: float | None = None) -> dict | None:
        """Take the earliest job whose due time has passed, or None."""
        now = time.time() if now is None else now
        due = self.redis_client.zrangebyscore(self.queue_name, 0, now, start=0, num=1)
        if not due:
            return None
        # ZREM คืน 1 ให้ worker เดียวเท่านั้น ตัวอื่นที่เห็นงานเดียวกันจะได้ 0
        if not self.redis_client.zrem(self.queue_name, due[0]):
            return None
        return json.loads(due[0])

# vidbrief/models/video.py

import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Integer, DateTime, Uuid, Enum as PgEnum

from vidbrief.shared.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class VideoStatus(str, enum.Enum):
    """Enum for video processing statuses."""
    UPLOADED = "UPLOADED"
    PROCESSING_AI = "PROCESSING_AI"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def rank(self) -> int:
        return STATUS_RANK[self]


# FAILED อยู่สูงสุดเสมอ เพื่อไม่ให้ event อื่นย้อนสถานะกลับได้
STATUS_RANK = {
    VideoStatus.UPLOADED: 1,
    VideoStatus.PROCESSING_AI: 2,
    VideoStatus.COMPLETED: 3,
    VideoStatus.FAILED: 100,
}


class Video(Base):
    """
    Represents the Video model in our database.
    One row per Mux asset; asset_id is the idempotency key for every write.
    """
    __tablename__ = "videos"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    upload_session_id = Column(String, nullable=True, index=True)
    asset_id = Column(String, unique=True, nullable=False)
    playback_id = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)

    status = Column(PgEnum(VideoStatus, name="video_status_enum", native_enum=False), nullable=False, default=VideoStatus.UPLOADED)
    status_rank = Column(Integer, nullable=False, default=STATUS_RANK[VideoStatus.UPLOADED])

    transcript = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    # To be filled by the enrichment pipeline
    track_id = Column(String, nullable=True)
    enrichment_attempts = Column(Integer, nullable=False, default=0)
    enrichment_started_at = Column(DateTime, nullable=True)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

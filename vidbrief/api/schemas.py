# vidbrief/api/schemas.py

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from vidbrief.models.video import Video


class CamelModel(BaseModel):
    """Request/response bodies use camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadIntentResponse(CamelModel):
    upload_url: str
    upload_session_id: str


class CreateAssetRequest(CamelModel):
    video_url: str


class CreateAssetResponse(CamelModel):
    asset_id: str
    playback_id: str | None = None
    video_id: uuid.UUID
    status: str | None = None
    message: str


class CheckUploadRequest(CamelModel):
    upload_session_id: str
    # True = poll with the bounded retry policy instead of a single check
    wait: bool = False


class VideoRef(BaseModel):
    id: uuid.UUID


class CheckUploadResponse(CamelModel):
    asset_id: str | None = None
    status: str
    message: str | None = None
    video: VideoRef | None = None


class VideoResponse(CamelModel):
    id: uuid.UUID
    asset_id: str
    upload_session_id: str | None = None
    playback_id: str | None = None
    thumbnail_url: str | None = None
    status: str
    summary: str | None = None
    description: str | None = None
    transcript: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class VideoListResponse(BaseModel):
    videos: list[VideoResponse]


def thumbnail_for(video: Video, image_base: str) -> str | None:
    if video.thumbnail_url:
        return video.thumbnail_url
    if video.playback_id:
        return f"{image_base.rstrip('/')}/{video.playback_id}/thumbnail.jpg?time=0"
    return None


def to_video_response(video: Video, image_base: str) -> VideoResponse:
    return VideoResponse(
        id=video.id,
        asset_id=video.asset_id,
        upload_session_id=video.upload_session_id,
        playback_id=video.playback_id,
        thumbnail_url=thumbnail_for(video, image_base),
        status=video.status.value,
        summary=video.summary,
        description=video.description,
        transcript=video.transcript,
        created_at=video.created_at,
        updated_at=video.updated_at,
    )

# vidbrief/api/endpoints/videos.py

import logging
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, status

from vidbrief.api.dependencies import get_mux_service, get_pipeline, get_video_store
from vidbrief.api.schemas import VideoListResponse, VideoResponse, to_video_response
from vidbrief.core.config import Settings, get_settings
from vidbrief.services.enrichment import EnrichmentPipeline
from vidbrief.services.mux_service import MuxService
from vidbrief.services.video_store import VideoStore

logger = logging.getLogger(__name__)

# Router for endpoint
router = APIRouter(prefix="/videos", tags=["Videos"])


@router.get("", response_model=VideoListResponse, summary="List videos, newest first")
def list_videos(
    store: VideoStore = Depends(get_video_store),
    settings: Settings = Depends(get_settings),
):
    videos = store.list_recent()
    return VideoListResponse(videos=[to_video_response(v, settings.MUX_IMAGE_BASE) for v in videos])


@router.get("/{video_id}", response_model=VideoResponse, summary="Get one video")
def get_video(
    video_id: uuid.UUID,
    store: VideoStore = Depends(get_video_store),
    settings: Settings = Depends(get_settings),
):
    return to_video_response(store.get(video_id), settings.MUX_IMAGE_BASE)


@router.delete(
    "/{video_id}",
    status_code=status.HTTP_200_OK,
    summary="Delete a video",
    description="Deletes the Mux asset first (an asset that is already gone is fine), then the record.",
)
def delete_video(
    video_id: uuid.UUID,
    store: VideoStore = Depends(get_video_store),
    mux: MuxService = Depends(get_mux_service),
):
    video = store.get(video_id)
    if not mux.delete_asset(video.asset_id):
        logger.info(f"Mux asset {video.asset_id} was already deleted")
    store.delete(video_id)
    logger.info(f"Deleted video {video_id} (asset {video.asset_id})")
    return {"deleted": True, "id": str(video_id)}


@router.post(
    "/{video_id}/retry-enrichment",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Retry AI enrichment for a video stuck at PROCESSING_AI",
)
def retry_enrichment(
    video_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    pipeline: EnrichmentPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    video = pipeline.store.claim_manual_retry(video_id, settings.ENRICHMENT_LEASE_SECONDS)
    background_tasks.add_task(pipeline.run, video.asset_id, video.track_id)
    logger.info(f"Manual enrichment retry started for video {video_id}")
    return {"retrying": True, "id": str(video_id)}

# vidbrief/api/endpoints/uploads.py

import logging

from fastapi import APIRouter, Depends, status

from vidbrief.api.dependencies import get_asset_resolver, get_mux_service, get_video_store
from vidbrief.api.schemas import (
    CheckUploadRequest,
    CheckUploadResponse,
    CreateAssetRequest,
    CreateAssetResponse,
    UploadIntentResponse,
    VideoRef,
)
from vidbrief.core.config import Settings, get_settings
from vidbrief.core.errors import ValidationError
from vidbrief.services.asset_resolver import AssetResolver, poll_for_asset
from vidbrief.services.mux_service import MuxService
from vidbrief.services.video_store import VideoStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Uploads"])


@router.post(
    "/upload-intent",
    status_code=status.HTTP_200_OK,
    response_model=UploadIntentResponse,
    summary="Request a URL to upload a video",
    description="Returns a short-lived Mux direct-upload URL. No video record is created until Mux reports an asset.",
)
def create_upload_intent(mux: MuxService = Depends(get_mux_service)):
    intent = mux.create_upload()
    return UploadIntentResponse(upload_url=intent.upload_url, upload_session_id=intent.upload_session_id)


@router.post(
    "/assets",
    status_code=status.HTTP_200_OK,
    response_model=CreateAssetResponse,
    summary="Create an asset directly from a video URL",
)
def create_asset(
    request_data: CreateAssetRequest,
    mux: MuxService = Depends(get_mux_service),
    store: VideoStore = Depends(get_video_store),
):
    if not request_data.video_url.strip():
        raise ValidationError("videoUrl is required")
    asset = mux.create_asset_from_url(request_data.video_url)
    # ไม่มี upload session ในเส้นทางนี้ asset_id จึงเป็น key เดียว
    video = store.upsert_discovered(asset.asset_id, playback_id=asset.playback_id)
    return CreateAssetResponse(
        asset_id=asset.asset_id,
        playback_id=asset.playback_id,
        video_id=video.id,
        status=asset.status,
        message="Asset created with auto-generated subtitles. Processing usually takes a couple of minutes.",
    )


@router.post(
    "/check-upload",
    response_model=CheckUploadResponse,
    summary="Check whether an upload has produced a Mux asset",
    description="Polling fallback for asset discovery. Records the asset through the same idempotent upsert as the webhook.",
)
def check_upload(
    request_data: CheckUploadRequest,
    resolver: AssetResolver = Depends(get_asset_resolver),
    settings: Settings = Depends(get_settings),
):
    if not request_data.upload_session_id.strip():
        raise ValidationError("uploadSessionId is required")

    if request_data.wait:
        resolution, video = poll_for_asset(
            resolver,
            request_data.upload_session_id,
            settle_delay=settings.POLL_SETTLE_DELAY,
            attempts=settings.POLL_ATTEMPTS,
            delay=settings.POLL_DELAY,
        )
    else:
        resolution, video = resolver.confirm(request_data.upload_session_id)

    if video is None:
        return CheckUploadResponse(asset_id=None, status=resolution.status, message=resolution.message)
    return CheckUploadResponse(
        asset_id=resolution.asset_id,
        status=video.status.value,
        video=VideoRef(id=video.id),
    )

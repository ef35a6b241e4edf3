# vidbrief/services/asset_resolver.py

import logging
import time
from typing import Callable

from pydantic import BaseModel

from vidbrief.core.errors import UpstreamError
from vidbrief.models.video import Video
from vidbrief.services.mux_service import MuxService
from vidbrief.services.video_store import VideoStore

logger = logging.getLogger(__name__)


class Resolution(BaseModel):
    asset_id: str | None = None
    status: str
    playback_id: str | None = None
    message: str | None = None

    @property
    def resolved(self) -> bool:
        return self.asset_id is not None


class AssetResolver:
    """
    Pull side of asset discovery: asks Mux whether an upload session already
    produced an asset and records it through the same upsert as notifications.
    """

    def __init__(self, mux: MuxService, store: VideoStore):
        self.mux = mux
        self.store = store

    def resolve(self, upload_session_id: str) -> Resolution:
        upload = self.mux.get_upload(upload_session_id)
        if not upload.asset_id:
            if upload.status == "waiting":
                message = "Asset not ready yet"
            elif upload.status == "errored":
                message = upload.error_message or "Upload errored"
            else:
                message = upload.status
            return Resolution(status=upload.status, message=message)

        # asset อาจยัง process อยู่ จึงยังไม่มี playback id ก็ได้
        playback_id = None
        try:
            playback_id = self.mux.get_asset(upload.asset_id).playback_id
        except UpstreamError as e:
            logger.info(f"Asset {upload.asset_id} lookup failed, continuing without playback id: {e}")
        return Resolution(asset_id=upload.asset_id, status=upload.status, playback_id=playback_id)

    def confirm(self, upload_session_id: str) -> tuple[Resolution, Video | None]:
        resolution = self.resolve(upload_session_id)
        if not resolution.resolved:
            return resolution, None
        video = self.store.upsert_discovered(
            resolution.asset_id,
            upload_session_id=upload_session_id,
            playback_id=resolution.playback_id,
        )
        logger.info(f"Poll confirmed asset {resolution.asset_id} for upload {upload_session_id}")
        return resolution, video


def poll_for_asset(resolver: AssetResolver, upload_session_id: str, settle_delay: float,
                   attempts: int = 5, delay: float = 2.0,
                   sleep: Callable[[float], None] = time.sleep) -> tuple[Resolution, Video | None]:
    """
    One check after settle_delay, then up to `attempts` retries spaced by `delay`.

    Never raises for a missing asset: when the budget runs out the last
    "not ready" resolution is returned and discovery is left to notifications.
    """
    sleep(settle_delay)
    resolution, video = resolver.confirm(upload_session_id)
    for attempt in range(1, attempts + 1):
        if resolution.resolved or resolution.status == "errored":
            break
        logger.debug(f"Upload {upload_session_id} not ready (retry {attempt}/{attempts})")
        sleep(delay)
        resolution, video = resolver.confirm(upload_session_id)
    return resolution, video

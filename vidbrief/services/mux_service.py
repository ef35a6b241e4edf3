# vidbrief/services/mux_service.py

import logging

import requests
from pydantic import BaseModel

from vidbrief.core.config import Settings
from vidbrief.core.errors import NotFoundError, TranscriptNotReady, UpstreamError

logger = logging.getLogger(__name__)

# นโยบายของ asset ที่สร้างใหม่ทุกตัว: เล่นได้แบบ public, คุณภาพ basic, สร้าง subtitle ภาษาอังกฤษอัตโนมัติ
GENERATED_SUBTITLES = [{"language_code": "en", "name": "English CC"}]
PLAYBACK_POLICIES = ["public"]
VIDEO_QUALITY = "basic"


class UploadIntent(BaseModel):
    upload_url: str
    upload_session_id: str


class UploadInfo(BaseModel):
    upload_session_id: str
    status: str
    asset_id: str | None = None
    error_message: str | None = None


class AssetInfo(BaseModel):
    asset_id: str
    status: str | None = None
    playback_id: str | None = None


def first_playback_id(data: dict) -> str | None:
    playback_ids = data.get("playback_ids") or []
    if playback_ids and isinstance(playback_ids[0], dict):
        return playback_ids[0].get("id")
    return None


class MuxService:
    """
    Service class for interacting with the Mux Video API.
    """
    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.api_base = settings.MUX_API_BASE.rstrip("/")
        self.stream_base = settings.MUX_STREAM_BASE.rstrip("/")
        self.cors_origin = settings.MUX_CORS_ORIGIN
        self.timeout = settings.HTTP_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.session.auth = (settings.MUX_TOKEN_ID, settings.MUX_TOKEN_SECRET)

    def _request(self, method: str, path: str, not_found: str | None = None, **kwargs) -> requests.Response:
        """Any 4xx/5xx is an UpstreamError, except a 404 when `not_found` names the missing resource."""
        url = f"{self.api_base}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise UpstreamError(f"Mux request {method} {path} failed: {e}") from e
        if response.status_code == 404 and not_found:
            raise NotFoundError(not_found)
        if response.status_code >= 400:
            raise UpstreamError(
                f"Mux request {method} {path} returned {response.status_code}: {response.text[:200]}"
            )
        return response

    def _data(self, response: requests.Response) -> dict:
        try:
            return response.json().get("data") or {}
        except ValueError as e:
            raise UpstreamError(f"Mux returned a non-JSON body: {e}") from e

    def create_upload(self) -> UploadIntent:
        """
        ขอ URL สำหรับให้ client อัปโหลดไฟล์ตรงไปที่ Mux (ยังไม่สร้าง record ใน DB)
        """
        body = {
            "new_asset_settings": {
                "playback_policies": PLAYBACK_POLICIES,
                "video_quality": VIDEO_QUALITY,
                "inputs": [{"generated_subtitles": GENERATED_SUBTITLES}],
            },
            "cors_origin": self.cors_origin,
        }
        data = self._data(self._request("POST", "/uploads", json=body))
        if not data.get("url") or not data.get("id"):
            raise UpstreamError("Mux upload response is missing url or id")
        logger.info(f"Created Mux upload {data['id']}")
        return UploadIntent(upload_url=data["url"], upload_session_id=data["id"])

    def create_asset_from_url(self, video_url: str) -> AssetInfo:
        """Ingest a publicly reachable video URL without an upload session."""
        body = {
            "inputs": [{"url": video_url, "generated_subtitles": GENERATED_SUBTITLES}],
            "playback_policies": PLAYBACK_POLICIES,
            "video_quality": VIDEO_QUALITY,
        }
        data = self._data(self._request("POST", "/assets", json=body))
        if not data.get("id"):
            raise UpstreamError("Mux asset response is missing id")
        logger.info(f"Created Mux asset {data['id']} from URL")
        return AssetInfo(asset_id=data["id"], status=data.get("status"), playback_id=first_playback_id(data))

    def get_upload(self, upload_session_id: str) -> UploadInfo:
        data = self._data(self._request(
            "GET", f"/uploads/{upload_session_id}", not_found=f"Upload session {upload_session_id} not found"
        ))
        error = data.get("error") or {}
        return UploadInfo(
            upload_session_id=upload_session_id,
            status=data.get("status") or "unknown",
            asset_id=data.get("asset_id"),
            error_message=error.get("message"),
        )

    def get_asset(self, asset_id: str) -> AssetInfo:
        data = self._data(self._request("GET", f"/assets/{asset_id}"))
        return AssetInfo(asset_id=asset_id, status=data.get("status"), playback_id=first_playback_id(data))

    def delete_asset(self, asset_id: str) -> bool:
        """Returns False when Mux no longer knows the asset."""
        try:
            response = self.session.delete(f"{self.api_base}/assets/{asset_id}", timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"Mux asset delete failed: {e}") from e
        if response.status_code == 404:
            logger.info(f"Mux asset {asset_id} already gone")
            return False
        if response.status_code >= 400:
            raise UpstreamError(f"Mux asset delete returned {response.status_code}: {response.text[:200]}")
        return True

    def fetch_transcript(self, playback_id: str, track_id: str) -> str:
        """
        ดึง transcript แบบ .txt (ไม่มี timestamp ของ VTT)
        """
        url = f"{self.stream_base}/{playback_id}/text/{track_id}.txt"
        try:
            # public stream host, the API credentials stay off this request
            response = self.session.get(url, timeout=self.timeout, auth=lambda r: r)
        except requests.RequestException as e:
            raise UpstreamError(f"Transcript fetch failed: {e}") from e
        if response.status_code >= 400:
            raise UpstreamError(f"Transcript fetch returned {response.status_code}")
        text = response.text
        if not text or not text.strip():
            raise TranscriptNotReady(f"Transcript {track_id} is empty")
        return text

# vidbrief/models/notification.py

from typing import Any, Literal, Union

from pydantic import BaseModel

ASSET_CREATED = "video.upload.asset_created"
ASSET_READY = "video.asset.ready"
TRACK_READY = "video.asset.track.ready"
ASSET_ERRORED = "video.asset.errored"

GENERATED_TEXT_SOURCE = "generated_vod"

# ชื่อย่อของ event ที่ยังรับอยู่ (ไม่มี prefix "video.")
EVENT_ALIASES = {
    "asset-created": ASSET_CREATED,
    "upload.asset_created": ASSET_CREATED,
    "asset-ready": ASSET_READY,
    "asset.ready": ASSET_READY,
    "track-ready": TRACK_READY,
    "asset.track.ready": TRACK_READY,
    "asset-errored": ASSET_ERRORED,
    "asset.errored": ASSET_ERRORED,
}


class NotificationEnvelope(BaseModel):
    """Body of an inbound Mux webhook."""
    type: str
    data: dict[str, Any]


class AssetCreated(BaseModel):
    kind: Literal["asset_created"] = "asset_created"
    asset_id: str
    upload_session_id: str | None = None
    playback_id: str | None = None


class AssetReady(BaseModel):
    kind: Literal["asset_ready"] = "asset_ready"
    asset_id: str
    upload_session_id: str | None = None
    playback_id: str | None = None


class TranscriptTrackReady(BaseModel):
    kind: Literal["track_ready"] = "track_ready"
    asset_id: str
    track_id: str


class AssetErrored(BaseModel):
    kind: Literal["asset_errored"] = "asset_errored"
    asset_id: str
    message: str | None = None


class Unrecognized(BaseModel):
    kind: Literal["unrecognized"] = "unrecognized"
    type: str
    reason: str


Notification = Union[AssetCreated, AssetReady, TranscriptTrackReady, AssetErrored, Unrecognized]


def _str_field(data: dict, *keys: str) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _playback_id(data: dict) -> str | None:
    playback_ids = data.get("playback_ids")
    if isinstance(playback_ids, list) and playback_ids and isinstance(playback_ids[0], dict):
        return _str_field(playback_ids[0], "id")
    return None


def _errored_message(data: dict) -> str | None:
    errors = data.get("errors")
    if isinstance(errors, dict):
        messages = errors.get("messages")
        if isinstance(messages, list) and messages:
            return "; ".join(str(m) for m in messages)
        return _str_field(errors, "type")
    return None


def parse_notification(event_type: str, data: dict[str, Any]) -> Notification:
    """
    Classify a webhook into one of the known event variants.

    Anything we cannot act on becomes Unrecognized so the caller can still
    acknowledge it.
    """
    event_type = EVENT_ALIASES.get(event_type, event_type)
    if event_type in (ASSET_CREATED, ASSET_READY):
        # upload.asset_created มี asset_id, ส่วน asset.ready ใช้ id ของ asset เอง
        asset_id = _str_field(data, "asset_id", "id")
        if asset_id is None:
            return Unrecognized(type=event_type, reason="missing asset id")
        model = AssetCreated if event_type == ASSET_CREATED else AssetReady
        return model(
            asset_id=asset_id,
            upload_session_id=_str_field(data, "upload_id"),
            playback_id=_playback_id(data),
        )

    if event_type == TRACK_READY:
        if data.get("text_source") != GENERATED_TEXT_SOURCE:
            return Unrecognized(type=event_type, reason="not a generated transcript track")
        asset_id = _str_field(data, "asset_id")
        track_id = _str_field(data, "id")
        if asset_id is None or track_id is None:
            return Unrecognized(type=event_type, reason="missing asset or track id")
        return TranscriptTrackReady(asset_id=asset_id, track_id=track_id)

    if event_type == ASSET_ERRORED:
        asset_id = _str_field(data, "id", "asset_id")
        if asset_id is None:
            return Unrecognized(type=event_type, reason="missing asset id")
        return AssetErrored(asset_id=asset_id, message=_errored_message(data))

    return Unrecognized(type=event_type, reason="unhandled event type")

# vidbrief/api/endpoints/notifications.py

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as PydanticValidationError

from vidbrief.api.dependencies import get_notification_router
from vidbrief.core.config import Settings, get_settings
from vidbrief.core.errors import UnauthorizedError, ValidationError
from vidbrief.core.security import verify_mux_signature
from vidbrief.models.notification import NotificationEnvelope, parse_notification
from vidbrief.services.notification_router import NotificationRouter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])


@router.post(
    "/notifications",
    status_code=status.HTTP_200_OK,
    summary="Receive a Mux webhook",
    description="Always acknowledges well-formed events, including unknown types. Enrichment runs after the response is sent.",
)
async def receive_notification(
    request: Request,
    background_tasks: BackgroundTasks,
    mux_signature: str | None = Header(None),
    settings: Settings = Depends(get_settings),
    notification_router: NotificationRouter = Depends(get_notification_router),
):
    body = await request.body()

    if settings.MUX_WEBHOOK_SECRET and not verify_mux_signature(
        mux_signature, body, settings.MUX_WEBHOOK_SECRET, settings.MUX_WEBHOOK_TOLERANCE_SECONDS
    ):
        raise UnauthorizedError("Invalid webhook signature")

    try:
        envelope = NotificationEnvelope.model_validate(json.loads(body))
    except (ValueError, PydanticValidationError) as e:
        raise ValidationError(f"Malformed notification body: {e}") from e

    notification = parse_notification(envelope.type, envelope.data)
    # handler เป็น sync (SQLAlchemy/requests) จึงรันใน threadpool ไม่ให้บล็อก event loop
    await run_in_threadpool(notification_router.handle, notification, background_tasks.add_task)
    return {"received": True}

"""Push notification endpoints called by the external scheduler."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from tilly.core.logging import get_logger
from tilly.dependencies import Config, CronAuth, Sender, Source, Store
from tilly.schemas.notifications import DeliveryResponse
from tilly.services.notification_delivery import (
    DeviceNotFoundError,
    deliver_notifications,
    send_test_notification,
)
from tilly.services.notification_store import AccountNotFoundError
from tilly.services.user_source import UserSourceError

logger = get_logger(__name__)

router = APIRouter()


class TestNotificationRequest(BaseModel):
    """Request body for a device test notification."""

    user_id: str = Field(alias="userID")
    endpoint: str


class MessageResponse(BaseModel):
    message: str


@router.post(
    "/deliver-notifications",
    response_model=DeliveryResponse,
    response_model_by_alias=True,
    dependencies=[CronAuth],
)
async def deliver_notifications_endpoint(
    source: Source,
    store: Store,
    sender: Sender,
    config: Config,
) -> DeliveryResponse:
    """
    Deliver today's due-reminder notifications to every eligible account.

    Called hourly by the external scheduler with the cron bearer token. Always
    returns 200 with whatever was processed; only a failure to enumerate
    accounts is reported as an error.
    """
    try:
        run = await deliver_notifications(source, store, sender, config.push)
    except UserSourceError as e:
        logger.bind(error=str(e)).error("notification_delivery_aborted")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not enumerate accounts",
        ) from e

    return DeliveryResponse(message=run.message, results=run.results)


@router.post(
    "/send-test-notification",
    response_model=MessageResponse,
    dependencies=[CronAuth],
)
async def send_test_notification_endpoint(
    body: TestNotificationRequest,
    store: Store,
    sender: Sender,
    config: Config,
) -> MessageResponse:
    """Send a test notification to one of an account's enabled devices."""
    try:
        outcomes = await send_test_notification(
            store, sender, config.push, body.user_id, endpoint=body.endpoint
        )
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except DeviceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    _, result = outcomes[0]
    if not result.ok:
        logger.bind(user_id=body.user_id, error=result.error).error("test_notification_failed")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send notification",
        )

    return MessageResponse(message="success")

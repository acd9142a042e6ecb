"""In-app notifications for the signed-in user."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from timesheet_engine.api.dependencies import CurrentActor, DbSession
from timesheet_engine.api.schemas import ErrorResponse, MessageResponse, NotificationResponse
from timesheet_engine.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    db: DbSession,
    actor: CurrentActor,
    unread_only: Annotated[bool, Query()] = False,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> list[NotificationResponse]:
    notifications = await NotificationService(db).list_for_user(actor, unread_only, limit)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.post("/read-all", response_model=MessageResponse)
async def mark_all_read(db: DbSession, actor: CurrentActor) -> MessageResponse:
    count = await NotificationService(db).mark_all_read(actor)
    return MessageResponse(message=f"Marked {count} notification(s) as read")


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def mark_read(
    db: DbSession,
    actor: CurrentActor,
    notification_id: Annotated[UUID, Path()],
) -> NotificationResponse:
    notification = await NotificationService(db).mark_read(actor, notification_id)
    return NotificationResponse.model_validate(notification)

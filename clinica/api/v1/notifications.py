from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from clinica.api.deps import get_notifications
from clinica.core.errors import NotFoundError
from clinica.core.notifications import NotificationFeed

router = APIRouter()


class NotificationResponse(BaseModel):
    id: str
    message: str
    kind: str

    class Config:
        from_attributes = True


@router.get("/", response_model=List[NotificationResponse])
async def list_notifications(notifications: NotificationFeed = Depends(get_notifications)):
    return [NotificationResponse.model_validate(n) for n in notifications.snapshot()]


@router.delete("/{notification_id}", status_code=204)
async def dismiss_notification(
    notification_id: str,
    notifications: NotificationFeed = Depends(get_notifications)
):
    if not notifications.dismiss(notification_id):
        raise NotFoundError("Notificación no encontrada")


@router.delete("/", status_code=204)
async def clear_notifications(notifications: NotificationFeed = Depends(get_notifications)):
    notifications.clear()

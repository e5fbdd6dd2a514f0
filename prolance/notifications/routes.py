from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from prolance.auth.models import User
from prolance.database import get_db
from prolance.notifications.crud import (
    get_notifications, count_notifications, mark_notification_read, mark_all_read, delete_notification
)
from prolance.notifications.schemas import NotificationResponse, NotificationListResponse, UnreadCountResponse
from prolance.security import get_current_user

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def get_user_notifications(
    limit: int = 50,
    skip: int = 0,
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notifications = get_notifications(db, current_user.id, limit, skip, unread_only)
    return NotificationListResponse(
        notifications=notifications,
        unread_count=count_notifications(db, current_user.id, unread_only=True),
        total=count_notifications(db, current_user.id),
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return UnreadCountResponse(unread_count=count_notifications(db, current_user.id, unread_only=True))


@router.patch("/read-all")
def mark_all_as_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    updated = mark_all_read(db, current_user.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notification = mark_notification_read(db, notification_id, current_user.id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


@router.delete("/{notification_id}")
def remove_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if not delete_notification(db, notification_id, current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return {"message": "Notification deleted"}

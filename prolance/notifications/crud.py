from typing import Optional

from sqlalchemy.orm import Session

from prolance.notifications.models import Notification


def create_notification(
    db: Session,
    user_id: int,
    type: str,
    title: str,
    message: str,
    project_id: Optional[int] = None,
    data: dict = None,
):
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        project_id=project_id,
        data=data or {}
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def get_notifications(db: Session, user_id: int, limit: int = 50, skip: int = 0, unread_only: bool = False):
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(skip).limit(limit).all()


def count_notifications(db: Session, user_id: int, unread_only: bool = False) -> int:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)
    return query.count()


def get_notification(db: Session, notification_id: int, user_id: int):
    return db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id
    ).first()


def mark_notification_read(db: Session, notification_id: int, user_id: int):
    notification = get_notification(db, notification_id, user_id)
    if notification:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    updated = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read == False
    ).update({"is_read": True})
    db.commit()
    return updated


def delete_notification(db: Session, notification_id: int, user_id: int) -> bool:
    notification = get_notification(db, notification_id, user_id)
    if not notification:
        return False
    db.delete(notification)
    db.commit()
    return True

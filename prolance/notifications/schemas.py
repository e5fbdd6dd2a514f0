from pydantic import BaseModel
from typing import Optional, Any, List
from datetime import datetime


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: str
    title: str
    message: str
    project_id: Optional[int] = None
    data: Optional[Any] = None
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
    total: int


class UnreadCountResponse(BaseModel):
    unread_count: int

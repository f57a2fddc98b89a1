"""Notification models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Notification(BaseModel):
    """Row of the notifications table."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: str
    type: str
    title: str
    message: str
    read: bool = False
    created_at: Optional[datetime] = None


class NotificationCreate(BaseModel):
    """Notification insert payload (id, read and created_at are DB defaults)."""

    user_id: str
    type: str
    title: str
    message: str

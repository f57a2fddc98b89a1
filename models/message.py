"""Conversation message models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Message(BaseModel):
    """Row of the messages table."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    sender_id: Optional[str] = None
    recipient_business_id: Optional[str] = None
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    subject: str
    message: str
    message_type: str = "general"
    is_urgent: bool = False
    is_read: bool = False
    sender_type: Optional[str] = None
    sender_business_id: Optional[str] = None
    conversation_id: Optional[str] = None
    created_at: Optional[datetime] = None


class MessageCreate(BaseModel):
    """
    Message insert payload.

    ``sender_id`` references the profiles table, so business replies are
    attributed to the business owner's profile.
    """

    sender_id: Optional[str] = None
    recipient_business_id: str
    sender_name: str
    sender_email: Optional[str] = None
    subject: str
    message: str
    message_type: str = "booking"
    is_urgent: bool = False
    is_read: bool = False
    sender_type: str = "business"
    sender_business_id: str
    conversation_id: str

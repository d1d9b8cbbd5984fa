"""
Notification Schemas
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime

from src.models.notification import NotificationChannel, NotificationPriority, NotificationStatus


class NotificationCreate(BaseModel):
    user_id: int
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    channel: NotificationChannel = NotificationChannel.IN_APP
    priority: NotificationPriority = NotificationPriority.NORMAL
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    action_url: Optional[str] = None
    template_id: Optional[str] = None


class NotificationBatchCreate(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    channel: NotificationChannel = NotificationChannel.IN_APP
    priority: NotificationPriority = NotificationPriority.NORMAL
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    action_url: Optional[str] = None
    template_id: Optional[str] = None


class MarkReadRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    status: NotificationStatus
    error_message: Optional[str] = None


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    channel: NotificationChannel
    status: NotificationStatus
    priority: NotificationPriority
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    action_url: Optional[str] = None
    created_at: datetime
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    class Config:
        from_attributes = True


class NotificationStatistics(BaseModel):
    total: int
    unread: int
    by_status: Dict[str, int]
    by_channel: Dict[str, int]

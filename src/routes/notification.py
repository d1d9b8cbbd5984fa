"""
Notification Routes
User notification management endpoints
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from src.config.database import get_db
from src.config.permissions import Permission
from src.services.auth_service import auth_service
from src.services.notification_service import notification_service
from src.models.notification import NotificationChannel, NotificationStatus
from src.models.user import User
from src.schemas.common import CountResponse, MessageResponse, Page
from src.schemas.notification import (
    NotificationCreate, NotificationBatchCreate, MarkReadRequest, StatusUpdate,
    NotificationResponse, NotificationStatistics
)

router = APIRouter()

notification_admin = auth_service.require_permission(Permission.MANAGE_NOTIFICATIONS)


@router.get("", response_model=Page[NotificationResponse])
async def get_my_notifications(
    unread_only: bool = False,
    status: Optional[NotificationStatus] = None,
    channel: Optional[NotificationChannel] = None,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """
    Get current user's notifications

    **Parameters:**
    - unread_only: If True, only return unread notifications
    - cursor: next_cursor from the previous page
    """
    return await notification_service.get_my(
        db, current_user, unread_only=unread_only, status=status, channel=channel, limit=limit, cursor=cursor
    )


@router.get("/unread-count", response_model=CountResponse)
async def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return {"count": notification_service.unread_count(db, current_user.id)}


@router.get("/statistics", response_model=NotificationStatistics)
async def get_notification_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(notification_admin)
):
    return await notification_service.get_statistics(db)


@router.post("", response_model=NotificationResponse, status_code=201)
async def create_notification(
    data: NotificationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(notification_admin)
):
    return await notification_service.create(db, data.model_dump())


@router.post("/batch", response_model=List[NotificationResponse], status_code=201)
async def create_notifications_batch(
    data: NotificationBatchCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(notification_admin)
):
    """Send the same notification to several users"""
    payload = data.model_dump(exclude={"user_ids"})
    return await notification_service.create_batch(db, data.user_ids, payload)


@router.put("/read-all", response_model=CountResponse)
async def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return {"count": await notification_service.mark_all_as_read(db, current_user)}


@router.put("/read-many", response_model=CountResponse)
async def mark_many_as_read(
    data: MarkReadRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Mark several of the caller's notifications as read"""
    return {"count": await notification_service.mark_many_as_read(db, current_user, data.ids)}


@router.delete("/read", response_model=CountResponse)
async def delete_all_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return {"count": await notification_service.delete_all_read(db, current_user)}


@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await notification_service.get_by_id(db, current_user, notification_id)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    return await notification_service.mark_as_read(db, current_user, notification_id)


@router.put("/{notification_id}/status", response_model=NotificationResponse)
async def update_notification_status(
    notification_id: int,
    data: StatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(notification_admin)
):
    """Delivery callback: record SENT / DELIVERED / FAILED"""
    return await notification_service.update_status(db, notification_id, data.status, data.error_message)


@router.post("/{notification_id}/resend", response_model=NotificationResponse)
async def resend_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(notification_admin)
):
    return await notification_service.resend(db, notification_id)


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    await notification_service.delete(db, current_user, notification_id)
    return {"message": "Notification deleted"}

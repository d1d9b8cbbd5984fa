"""
Notification Service
Handles creation, delivery hand-off and management of user notifications
"""

from datetime import datetime
from typing import Dict, Any, Iterable, List, Optional
from sqlalchemy import event, func
from sqlalchemy.orm import Session

from src.config.permissions import Permission
from src.models.notification import (
    Notification, NotificationChannel, NotificationStatus, NotificationPriority
)
from src.models.user import User
from src.utils.exceptions import NotFoundError, ForbiddenError, BadRequestError
from src.utils.helpers import paginate
from src.utils.logger import setup_logger

logger = setup_logger()

# Session.info key holding notifications created but not yet dispatched
PENDING_KEY = "pending_notifications"


@event.listens_for(Session, "after_rollback")
def _discard_pending(session):
    discarded = session.info.pop(PENDING_KEY, None)
    if discarded:
        logger.warning(f"Discarded {len(discarded)} undelivered notification(s) after rollback")


class NotificationSender:
    """Delivery channel collaborator"""

    def send(self, notification: Notification) -> None:
        raise NotImplementedError


class LogNotificationSender(NotificationSender):
    """Default sender: records the hand-off in the application log"""

    def send(self, notification: Notification) -> None:
        logger.info(
            f"Dispatching {notification.channel.value} notification to user {notification.user_id}: "
            f"{notification.title}"
        )


class NotificationService:
    """Service for managing notifications"""

    def __init__(self, sender: Optional[NotificationSender] = None):
        self.sender = sender or LogNotificationSender()

    def set_sender(self, sender: NotificationSender):
        """Swap the delivery collaborator"""
        self.sender = sender

    def dispatch(self, notification: Notification):
        """
        Hand a notification to the sender and record the outcome

        Args:
            notification: Notification to deliver
        """
        try:
            self.sender.send(notification)
        except Exception as e:
            logger.error(f"Failed to deliver notification {notification.id} to user {notification.user_id}: {e}")
            notification.status = NotificationStatus.FAILED
            notification.failed_at = datetime.utcnow()
            notification.error_message = str(e)
            return

        notification.status = NotificationStatus.SENT
        notification.sent_at = datetime.utcnow()

    def notify(
        self,
        db: Session,
        user_id: int,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        action_url: Optional[str] = None,
        channel: NotificationChannel = NotificationChannel.IN_APP,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        template_id: Optional[str] = None
    ) -> Notification:
        """
        Create a notification inside the caller's transaction

        The row is queued on the session and only handed to the sender by
        ``deliver_pending`` once the caller has committed, so a transition
        that rolls back never reaches the recipient.

        Args:
            db: Database session
            user_id: Recipient
            title: Short title
            message: Body text
            entity_type: Related entity model name
            entity_id: Related entity id
            action_url: Link for the client
            channel: Delivery channel
            priority: Delivery priority
            template_id: Optional message template key

        Returns:
            Notification: The new PENDING notification (not committed)
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
            action_url=action_url,
            channel=channel,
            priority=priority,
            template_id=template_id,
            status=NotificationStatus.PENDING
        )
        db.add(notification)
        db.flush()
        db.info.setdefault(PENDING_KEY, []).append(notification)
        return notification

    def deliver_pending(self, db: Session) -> int:
        """
        Dispatch the notifications queued by ``notify`` and commit their status

        Call after the transaction that created them has committed.

        Returns:
            int: Number of notifications handed to the sender
        """
        pending = db.info.pop(PENDING_KEY, [])
        if not pending:
            return 0
        for notification in pending:
            self.dispatch(notification)
        db.commit()
        return len(pending)

    # ------------------------------------------------------------------
    # API operations
    # ------------------------------------------------------------------

    async def get_my(
        self,
        db: Session,
        current_user: User,
        unread_only: bool = False,
        status: Optional[NotificationStatus] = None,
        channel: Optional[NotificationChannel] = None,
        limit: int = 50,
        cursor: Optional[int] = None
    ):
        query = db.query(Notification).filter(Notification.user_id == current_user.id)
        if unread_only:
            query = query.filter(Notification.read_at.is_(None))
        if status:
            query = query.filter(Notification.status == status)
        if channel:
            query = query.filter(Notification.channel == channel)
        items, next_cursor = paginate(query, Notification.id, limit, cursor)
        return {"items": items, "next_cursor": next_cursor}

    def unread_count(self, db: Session, user_id: int) -> int:
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read_at.is_(None)
        ).count()

    async def get_by_id(self, db: Session, current_user: User, notification_id: int) -> Notification:
        notification = db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise NotFoundError("Notification not found")
        if notification.user_id != current_user.id and not current_user.has_permission(Permission.MANAGE_NOTIFICATIONS):
            raise ForbiddenError("You do not have access to this notification")
        return notification

    async def create(self, db: Session, data: Dict[str, Any]) -> Notification:
        if not db.query(User).filter(User.id == data["user_id"]).first():
            raise NotFoundError("Recipient not found")
        notification = self.notify(db, **data)
        db.commit()
        self.deliver_pending(db)
        db.refresh(notification)
        return notification

    async def create_batch(self, db: Session, user_ids: Iterable[int], data: Dict[str, Any]) -> List[Notification]:
        user_ids = list(dict.fromkeys(user_ids))
        found = {u.id for u in db.query(User.id).filter(User.id.in_(user_ids)).all()}
        missing = [uid for uid in user_ids if uid not in found]
        if missing:
            raise NotFoundError(f"Recipients not found: {missing}")

        created = [self.notify(db, user_id=uid, **data) for uid in user_ids]
        db.commit()
        self.deliver_pending(db)
        logger.info(f"Created {len(created)} notifications in batch")
        return created

    def _mark_read(self, notification: Notification, now: datetime):
        if notification.read_at is None:
            notification.read_at = now
            notification.status = NotificationStatus.READ

    async def mark_as_read(self, db: Session, current_user: User, notification_id: int) -> Notification:
        notification = db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise NotFoundError("Notification not found")
        if notification.user_id != current_user.id:
            raise ForbiddenError("You can only mark your own notifications as read")
        self._mark_read(notification, datetime.utcnow())
        db.commit()
        db.refresh(notification)
        return notification

    async def mark_all_as_read(self, db: Session, current_user: User) -> int:
        unread = db.query(Notification).filter(
            Notification.user_id == current_user.id,
            Notification.read_at.is_(None)
        ).all()
        now = datetime.utcnow()
        for notification in unread:
            self._mark_read(notification, now)
        db.commit()
        return len(unread)

    async def mark_many_as_read(self, db: Session, current_user: User, ids: List[int]) -> int:
        notifications = db.query(Notification).filter(Notification.id.in_(ids)).all()
        if len(notifications) != len(set(ids)):
            raise NotFoundError("One or more notifications not found")
        if any(n.user_id != current_user.id for n in notifications):
            raise ForbiddenError("You can only mark your own notifications as read")
        now = datetime.utcnow()
        for notification in notifications:
            self._mark_read(notification, now)
        db.commit()
        return len(notifications)

    async def delete(self, db: Session, current_user: User, notification_id: int):
        notification = await self.get_by_id(db, current_user, notification_id)
        if notification.user_id != current_user.id:
            raise ForbiddenError("You can only delete your own notifications")
        db.delete(notification)
        db.commit()

    async def delete_all_read(self, db: Session, current_user: User) -> int:
        deleted = db.query(Notification).filter(
            Notification.user_id == current_user.id,
            Notification.read_at.isnot(None)
        ).delete(synchronize_session=False)
        db.commit()
        return deleted

    async def update_status(
        self,
        db: Session,
        notification_id: int,
        status: NotificationStatus,
        error_message: Optional[str] = None
    ) -> Notification:
        notification = db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise NotFoundError("Notification not found")

        now = datetime.utcnow()
        notification.status = status
        if status == NotificationStatus.SENT:
            notification.sent_at = now
        elif status == NotificationStatus.DELIVERED:
            notification.delivered_at = now
        elif status == NotificationStatus.READ:
            notification.read_at = notification.read_at or now
        elif status == NotificationStatus.FAILED:
            notification.failed_at = now
            notification.error_message = error_message

        db.commit()
        db.refresh(notification)
        return notification

    async def get_statistics(self, db: Session) -> Dict[str, Any]:
        by_status = db.query(Notification.status, func.count(Notification.id)).group_by(Notification.status).all()
        by_channel = db.query(Notification.channel, func.count(Notification.id)).group_by(Notification.channel).all()
        return {
            "total": db.query(Notification).count(),
            "unread": db.query(Notification).filter(Notification.read_at.is_(None)).count(),
            "by_status": {s.value: c for s, c in by_status},
            "by_channel": {ch.value: c for ch, c in by_channel}
        }

    async def resend(self, db: Session, notification_id: int) -> Notification:
        notification = db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise NotFoundError("Notification not found")
        if notification.status != NotificationStatus.FAILED:
            raise BadRequestError("Only failed notifications can be resent")

        notification.status = NotificationStatus.PENDING
        notification.failed_at = None
        notification.error_message = None
        db.commit()
        db.info.setdefault(PENDING_KEY, []).append(notification)
        self.deliver_pending(db)
        db.refresh(notification)
        logger.info(f"Notification {notification.id} resent: {notification.status.value}")
        return notification


# Create singleton instance
notification_service = NotificationService()

"""In-app notifications plus the log-only email/push delivery stubs."""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from marketing_community.models.domain import Notification
from marketing_community.models.enums import NotificationType
from marketing_community.settings import get_settings

logger = logging.getLogger(__name__)


class NotificationTemplates:
    """Message templates for common notifications."""

    @staticmethod
    def post_liked(actor_name: str, post_title: str) -> Tuple[str, str, str]:
        return (
            NotificationType.POST_LIKED.value,
            "게시글 좋아요",
            f'{actor_name}님이 "{post_title}" 게시글을 좋아합니다.',
        )

    @staticmethod
    def post_commented(actor_name: str, post_title: str) -> Tuple[str, str, str]:
        return (
            NotificationType.POST_COMMENTED.value,
            "새 댓글",
            f'{actor_name}님이 "{post_title}" 게시글에 댓글을 남겼습니다.',
        )

    @staticmethod
    def follow_request(actor_name: str) -> Tuple[str, str, str]:
        return (
            NotificationType.FOLLOW_REQUEST.value,
            "팔로우 요청",
            f"{actor_name}님이 팔로우를 요청했습니다.",
        )

    @staticmethod
    def event_reminder(event_title: str) -> Tuple[str, str, str]:
        return (
            NotificationType.EVENT_REMINDER.value,
            "이벤트 알림",
            f'"{event_title}" 이벤트가 곧 시작됩니다.',
        )

    @staticmethod
    def points_earned(points: int, reason: str) -> Tuple[str, str, str]:
        return (
            NotificationType.POINTS_EARNED.value,
            "포인트 획득",
            f"{reason}로 {points}포인트를 획득했습니다!",
        )

    @staticmethod
    def system_notice(message: str) -> Tuple[str, str, str]:
        return (NotificationType.SYSTEM_NOTICE.value, "시스템 공지", message)


def paginate(page: int, limit: int, total_count: int) -> Dict[str, Any]:
    """Pagination envelope shared by list endpoints."""
    total_pages = math.ceil(total_count / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total_count": total_count,
        "total_pages": total_pages,
        "has_more": page < total_pages,
    }


class NotificationService:
    """Creates, lists and expires user notifications."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        email: bool = False,
        push: bool = False
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            metadata_json=metadata,
            is_read=False
        )
        try:
            self.db.add(notification)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create notification for user {user_id}: {e}")
            raise
        self.db.refresh(notification)

        logger.info(f"Notification created: id={notification.id} user={user_id} type={type}")

        if email:
            self._send_email(notification)
        if push:
            self._send_push(notification)

        return notification

    def create_for_users(
        self,
        user_ids: Iterable[str],
        type: str,
        title: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[int, int]:
        """Fan a notification out to several users; one failure does not stop the rest."""
        success_count = 0
        error_count = 0
        for user_id in user_ids:
            try:
                self.create(user_id, type, title, message, metadata)
                success_count += 1
            except Exception:
                error_count += 1

        logger.info(
            f"Bulk notification created: type={type} success={success_count} errors={error_count}"
        )
        return success_count, error_count

    def mark_as_read(self, user_id: str, notification_ids: List[int]) -> int:
        """Mark the caller's own notifications as read. Returns the number updated."""
        if not notification_ids:
            return 0
        updated = self.db.query(Notification).filter(
            Notification.id.in_(notification_ids),
            Notification.user_id == user_id
        ).update({Notification.is_read: True}, synchronize_session=False)
        self.db.commit()

        logger.info(f"Notifications marked as read: user={user_id} count={updated}")
        return updated

    def get_unread_count(self, user_id: str) -> int:
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False)
        ).count()

    def get_notifications(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        type: Optional[str] = None,
        unread_only: bool = False
    ) -> Dict[str, Any]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if type:
            query = query.filter(Notification.type == type)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))

        total_count = query.count()
        notifications = query.order_by(
            Notification.created_at.desc(), Notification.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            "notifications": notifications,
            "pagination": paginate(page, limit, total_count),
        }

    def cleanup(self, older_than_days: Optional[int] = None) -> int:
        """
        Delete read notifications older than the retention window.

        Unread notifications are kept regardless of age.
        """
        if older_than_days is None:
            older_than_days = get_settings().notification_retention_days
        cutoff = datetime.utcnow() - timedelta(days=older_than_days)

        deleted = self.db.query(Notification).filter(
            Notification.created_at < cutoff,
            Notification.is_read.is_(True)
        ).delete(synchronize_session=False)
        self.db.commit()

        logger.info(f"Notifications cleanup completed: deleted={deleted} older_than_days={older_than_days}")
        return deleted

    def _send_email(self, notification: Notification) -> None:
        # SMTP is not configured; delivery is logged only
        logger.info(f"Email notification would be sent: id={notification.id}")

    def _send_push(self, notification: Notification) -> None:
        # FCM is not configured; delivery is logged only
        logger.info(f"Push notification would be sent: id={notification.id}")

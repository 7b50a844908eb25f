"""Enums for the community core - valid values for activity and notification kinds."""
from enum import Enum


class ActivityType(str, Enum):
    """Ledger entry types written by the points service itself."""
    ADMIN_AWARD = "admin_award"
    ADMIN_DEDUCT = "admin_deduct"


class NotificationType(str, Enum):
    """Kinds of in-app notifications."""
    POST_LIKED = "post_liked"
    POST_COMMENTED = "post_commented"
    FOLLOW_REQUEST = "follow_request"
    EVENT_REMINDER = "event_reminder"
    POINTS_EARNED = "points_earned"
    SYSTEM_NOTICE = "system_notice"

"""Community domain models - users, their point ledger, and notifications."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from marketing_community.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    A community member.

    Invariants enforced here:
    - points is a cached balance; it always equals the sum of the user's Activity deltas
    - points is never negative (deductions are refused, not clamped)
    - points is only mutated through the points service
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    nickname = Column(String, nullable=True)
    image = Column(String, nullable=True)
    company = Column(String, nullable=True)
    position = Column(String, nullable=True)

    points = Column(Integer, nullable=False, default=0)

    # Legacy flag, still honoured as an unconditional grant by the permission layer
    is_admin = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    activities = relationship("Activity", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")
    user_roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")


class Activity(Base):
    """
    Append-only ledger entry for a point-affecting action.

    Invariants:
    - Written once per award/deduct, in the same transaction as the balance change
    - points is the signed delta (+award, -deduction)
    - Never edited or deleted
    """
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False, index=True)  # Policy action, e.g. "post_create"
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    points = Column(Integer, nullable=False)
    metadata_json = Column(JSON(none_as_null=True), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="activities")


class Notification(Base):
    """In-app notification. Read notifications are purged by the cleanup job."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    metadata_json = Column(JSON(none_as_null=True), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="notifications")


# Registers UserRole for User.user_roles
from marketing_community.models import permissions  # noqa: E402,F401

"""
Audit logging model for administrative mutations.

This model exists to provide an immutable, append-only trail of sensitive
changes (point adjustments, role grants, permission seeding, banner and logo
edits). It is write-only from the application's point of view; the admin
audit page is its only reader.
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from marketing_community.database import Base


class AuditLog(Base):
    """
    Immutable audit entry.

    Invariants:
    - Once written, never edited or deleted
    - Append-only
    - old_value/new_value/metadata are stored serialized; callers pass plain Python values
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    action = Column(String, nullable=False, index=True)  # e.g., "POINTS_ADJUSTED"
    resource = Column(String, nullable=True)  # ID of the entity being acted upon
    resource_type = Column(String, nullable=True, index=True)  # e.g., "user", "banner"
    old_value = Column(JSON(none_as_null=True), nullable=True)
    new_value = Column(JSON(none_as_null=True), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)  # Nullable for system events
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    metadata_json = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    user = relationship("User")


# Action constants for consistency
class AuditAction:
    """Enumeration of audit actions."""
    # Points
    POINTS_ADJUSTED = "POINTS_ADJUSTED"

    # Permissions
    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    PERMISSIONS_INITIALIZED = "PERMISSIONS_INITIALIZED"

    # Content managed from the admin panel
    BANNER_CREATED = "BANNER_CREATED"
    BANNER_UPDATED = "BANNER_UPDATED"
    BANNER_DELETED = "BANNER_DELETED"
    LOGO_UPDATED = "LOGO_UPDATED"

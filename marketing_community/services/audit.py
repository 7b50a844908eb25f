"""
Audit trail for administrative mutations.

Writing an audit entry is best-effort: a failed write is logged and dropped,
never raised to the business operation that triggered it. Call log() after
the business change has been committed.
"""
import functools
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session, joinedload

from marketing_community.models.audit import AuditLog
from marketing_community.models.domain import User

logger = logging.getLogger(__name__)


def best_effort(method):
    """Swallow and log any failure of an audit write, rolling back the session."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except Exception:
            logger.exception(f"Failed to write audit entry: {method.__name__}")
            try:
                self.db.rollback()
            except Exception:
                logger.exception("Rollback after failed audit write also failed")
            return None

    return wrapper


def _public_profile(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "nickname": user.nickname,
    }


class AuditService:
    """Writes and queries the audit log."""

    def __init__(self, db: Session):
        self.db = db

    @best_effort
    def log(
        self,
        action: str,
        resource: Optional[str] = None,
        resource_type: Optional[str] = None,
        old_value: Any = None,
        new_value: Any = None,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        self.db.add(AuditLog(
            action=action,
            resource=resource,
            resource_type=resource_type,
            old_value=old_value,
            new_value=new_value,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata_json=metadata
        ))
        self.db.commit()

    def get_audit_logs(
        self,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Dict[str, Any]:
        """
        Filtered audit entries, newest first, with the acting user's public profile.

        Filters combine with AND. action is a substring match; user_id and
        resource_type must match exactly.
        """
        query = self.db.query(AuditLog)
        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if action:
            query = query.filter(AuditLog.action.contains(action, autoescape=True))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)

        total = query.count()
        entries = query.options(joinedload(AuditLog.user)).order_by(
            AuditLog.created_at.desc(), AuditLog.id.desc()
        ).offset(offset).limit(limit).all()

        logs = [
            {
                "id": entry.id,
                "action": entry.action,
                "resource": entry.resource,
                "resource_type": entry.resource_type,
                "old_value": entry.old_value,
                "new_value": entry.new_value,
                "user_id": entry.user_id,
                "ip_address": entry.ip_address,
                "user_agent": entry.user_agent,
                "metadata": entry.metadata_json,
                "created_at": entry.created_at,
                "user": _public_profile(entry.user),
            }
            for entry in entries
        ]
        return {"logs": logs, "total": total}

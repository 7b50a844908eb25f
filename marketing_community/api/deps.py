"""Request dependencies: caller identity and permission guards."""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from marketing_community.database import get_db
from marketing_community.models.domain import User
from marketing_community.services.permissions import PermissionsService


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> User:
    """
    Resolve the calling user.

    Session transport lives in front of this service; it forwards the
    authenticated user's id in the X-User-Id header.
    """
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="로그인이 필요합니다")

    user = db.query(User).filter(User.id == x_user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="유효하지 않은 사용자입니다")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="비활성화된 계정입니다")
    return user


def require_permission(permission_name: str):
    """Dependency factory: 403 unless the caller holds permission_name."""

    def checker(
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db)
    ) -> User:
        if not PermissionsService(db).has_permission(user.id, permission_name):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"권한이 없습니다: {permission_name}"
            )
        return user

    return checker

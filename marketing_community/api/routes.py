"""API routes for points, permissions, audit and notifications."""
import math
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from marketing_community.api.deps import get_current_user, require_permission
from marketing_community.api.schemas import (
    ActivityResponse,
    AdminAdjustRequest,
    AdminAdjustResponse,
    AuditLogListResponse,
    ErrorResponse,
    LeaderboardEntry,
    MarkReadRequest,
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
    PointActionRequest,
    PointActionResponse,
    PointHistoryResponse,
    PointsResponse,
    RoleAssignRequest,
    RoleResponse,
    UnreadCountResponse,
    UserPermissionsResponse,
    UserRoleResponse,
)
from marketing_community.database import get_db
from marketing_community.models.audit import AuditAction
from marketing_community.models.domain import User
from marketing_community.services.audit import AuditService
from marketing_community.services.notifications import NotificationService
from marketing_community.services.permissions import PermissionsService, RoleNotFoundError
from marketing_community.services.points import AuthorizationError, PointsService, UserNotFoundError
from marketing_community.settings import get_settings

settings = get_settings()

router = APIRouter()


def _client_info(request: Request):
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


# Points endpoints
@router.get("/users/{user_id}/points", response_model=PointsResponse)
def get_user_points(user_id: str, db: Session = Depends(get_db)):
    """Current balance; 0 for unknown users."""
    return PointsResponse(user_id=user_id, points=PointsService(db).get_user_points(user_id))


@router.get("/users/{user_id}/points/history", response_model=PointHistoryResponse)
def get_point_history(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    type: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Ledger for a user. Members see their own; others need users:view."""
    if current_user.id != user_id and not PermissionsService(db).has_permission(current_user.id, "users:view"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="권한이 없습니다: users:view")

    history = PointsService(db).get_point_history(user_id, page=page, limit=limit, type=type)
    return PointHistoryResponse(
        activities=[ActivityResponse.model_validate(a) for a in history["activities"]],
        pagination=history["pagination"]
    )


@router.get("/points/leaderboard", response_model=List[LeaderboardEntry])
def get_leaderboard(
    limit: int = Query(settings.leaderboard_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db)
):
    return PointsService(db).get_leaderboard(limit)


@router.post("/points/actions", response_model=PointActionResponse, responses={
    402: {"model": ErrorResponse, "description": "Not enough points for a paid action"}
})
def process_point_action(
    action_data: PointActionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Apply the point policy for an action taken by the caller.

    WILL REFUSE (402) if the action costs more points than the caller has.
    """
    service = PointsService(db)
    allowed = service.process_action(current_user.id, action_data.action, action_data.metadata)
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="포인트가 부족하여 이 작업을 수행할 수 없습니다"
        )
    return PointActionResponse(
        action=action_data.action,
        allowed=True,
        points=service.get_user_points(current_user.id)
    )


@router.post("/admin/points/adjust", response_model=AdminAdjustResponse)
def admin_adjust_points(
    adjust_data: AdminAdjustRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Award or deduct points as an administrator. Audited."""
    service = PointsService(db)
    old_points = service.get_user_points(adjust_data.target_user_id)

    try:
        applied = service.admin_adjust_points(
            current_user.id,
            adjust_data.target_user_id,
            adjust_data.amount,
            adjust_data.reason
        )
    except AuthorizationError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    new_points = service.get_user_points(adjust_data.target_user_id)

    ip_address, user_agent = _client_info(request)
    AuditService(db).log(
        action=AuditAction.POINTS_ADJUSTED,
        resource=adjust_data.target_user_id,
        resource_type="user",
        old_value={"points": old_points},
        new_value={"points": new_points},
        user_id=current_user.id,
        ip_address=ip_address,
        user_agent=user_agent,
        metadata={"amount": adjust_data.amount, "reason": adjust_data.reason, "applied": applied}
    )

    return AdminAdjustResponse(
        target_user_id=adjust_data.target_user_id,
        applied=applied,
        points=new_points
    )


# Permission endpoints
@router.get("/users/{user_id}/permissions", response_model=UserPermissionsResponse)
def get_user_permissions(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = PermissionsService(db)
    if current_user.id != user_id and not service.has_permission(current_user.id, "admin:roles"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="권한이 없습니다: admin:roles")

    result = service.get_user_permissions(user_id)
    return UserPermissionsResponse(
        user_id=user_id,
        roles=[RoleResponse.model_validate(role) for role in result["roles"]],
        permissions=result["permissions"]
    )


@router.get("/admin/roles", response_model=List[RoleResponse])
def list_roles(
    current_user: User = Depends(require_permission("admin:roles")),
    db: Session = Depends(get_db)
):
    return [RoleResponse.model_validate(role) for role in PermissionsService(db).get_roles()]


@router.post("/admin/users/{user_id}/roles", response_model=UserRoleResponse, status_code=status.HTTP_201_CREATED)
def assign_role(
    user_id: str,
    role_data: RoleAssignRequest,
    request: Request,
    current_user: User = Depends(require_permission("admin:roles")),
    db: Session = Depends(get_db)
):
    """Grant a role to a user. Re-granting refreshes provenance. Audited."""
    if db.query(User).filter(User.id == user_id).first() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="사용자를 찾을 수 없습니다")

    try:
        user_role = PermissionsService(db).assign_role(user_id, role_data.role_name, granted_by=current_user.id)
    except RoleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    ip_address, user_agent = _client_info(request)
    AuditService(db).log(
        action=AuditAction.ROLE_ASSIGNED,
        resource=user_id,
        resource_type="user_role",
        new_value={"role": role_data.role_name},
        user_id=current_user.id,
        ip_address=ip_address,
        user_agent=user_agent
    )
    return UserRoleResponse.model_validate(user_role)


@router.post("/admin/permissions/init")
def initialize_permissions(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Seed the permission catalog and grant the admin role to the caller.

    Only legacy admins or the configured super-admin account may run it.
    """
    if not current_user.is_admin and current_user.email != settings.super_admin_email:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="권한이 없습니다")

    service = PermissionsService(db)
    service.initialize_permissions()
    service.assign_role(current_user.id, "admin", granted_by=current_user.id)

    ip_address, user_agent = _client_info(request)
    AuditService(db).log(
        action=AuditAction.PERMISSIONS_INITIALIZED,
        resource_type="permission",
        user_id=current_user.id,
        ip_address=ip_address,
        user_agent=user_agent
    )
    return {"success": True, "message": "권한 시스템이 성공적으로 초기화되었습니다"}


# Audit endpoints
@router.get("/admin/audit", response_model=AuditLogListResponse)
def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.audit_page_size, ge=1, le=settings.max_page_size),
    action: Optional[str] = None,
    resource_type: Optional[str] = Query(None, alias="resourceType"),
    user_id: Optional[str] = Query(None, alias="userId"),
    current_user: User = Depends(require_permission("admin:dashboard")),
    db: Session = Depends(get_db)
):
    result = AuditService(db).get_audit_logs(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        limit=limit,
        offset=(page - 1) * limit
    )
    return AuditLogListResponse(
        logs=result["logs"],
        total=result["total"],
        page=page,
        limit=limit,
        total_pages=math.ceil(result["total"] / limit)
    )


# Notification endpoints
@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    type: Optional[str] = None,
    unread_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    result = NotificationService(db).get_notifications(
        current_user.id, page=page, limit=limit, type=type, unread_only=unread_only
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in result["notifications"]],
        pagination=result["pagination"]
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return UnreadCountResponse(unread=NotificationService(db).get_unread_count(current_user.id))


@router.post("/notifications/read", response_model=MarkReadResponse)
def mark_notifications_read(
    read_data: MarkReadRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    updated = NotificationService(db).mark_as_read(current_user.id, read_data.notification_ids)
    return MarkReadResponse(updated=updated)

"""
Role-based permission resolution.

Authorization decision, in order:
1. Legacy admin bypass: a user whose is_admin flag is set holds every permission.
   This is kept for backward compatibility only. New code should grant the
   "admin" role (which carries admin:full) instead of setting the flag.
2. Role grants: the union of permissions over all of the user's assigned roles.
3. Default role: users with no assignment get the default role's permissions.

A role holding admin:full satisfies any permission check.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketing_community.models.domain import User
from marketing_community.models.permissions import Permission, Role, RolePermission, UserRole

logger = logging.getLogger(__name__)

FULL_ACCESS_PERMISSION = "admin:full"
DEFAULT_ROLE_NAME = "user"

DEFAULT_PERMISSIONS: List[Dict[str, str]] = [
    # 게시글
    {"name": "posts:read", "display_name": "게시글 읽기", "category": "posts"},
    {"name": "posts:create", "display_name": "게시글 작성", "category": "posts"},
    {"name": "posts:edit", "display_name": "게시글 수정", "category": "posts"},
    {"name": "posts:delete", "display_name": "게시글 삭제", "category": "posts"},
    {"name": "posts:moderate", "display_name": "게시글 관리", "category": "posts",
     "description": "다른 사용자 게시글 수정/삭제"},
    # 댓글
    {"name": "comments:create", "display_name": "댓글 작성", "category": "comments"},
    {"name": "comments:edit", "display_name": "댓글 수정", "category": "comments"},
    {"name": "comments:delete", "display_name": "댓글 삭제", "category": "comments"},
    {"name": "comments:moderate", "display_name": "댓글 관리", "category": "comments"},
    # Q&A
    {"name": "questions:create", "display_name": "질문 작성", "category": "questions"},
    {"name": "answers:create", "display_name": "답변 작성", "category": "answers"},
    {"name": "questions:moderate", "display_name": "질문/답변 관리", "category": "questions"},
    # 템플릿
    {"name": "templates:create", "display_name": "템플릿 업로드", "category": "templates"},
    {"name": "templates:moderate", "display_name": "템플릿 관리", "category": "templates"},
    # 행사
    {"name": "events:create", "display_name": "행사 등록", "category": "events"},
    {"name": "events:moderate", "display_name": "행사 관리", "category": "events"},
    # 사용자 관리
    {"name": "users:view", "display_name": "사용자 조회", "category": "users"},
    {"name": "users:edit", "display_name": "사용자 수정", "category": "users"},
    {"name": "users:suspend", "display_name": "사용자 정지", "category": "users"},
    {"name": "users:delete", "display_name": "사용자 삭제", "category": "users"},
    # 관리자
    {"name": "admin:dashboard", "display_name": "관리자 대시보드", "category": "admin"},
    {"name": "admin:analytics", "display_name": "통계 및 분석", "category": "admin"},
    {"name": "admin:banners", "display_name": "배너 관리", "category": "admin"},
    {"name": "admin:logo", "display_name": "로고 관리", "category": "admin"},
    {"name": "admin:roles", "display_name": "권한 관리", "category": "admin"},
    {"name": "admin:system", "display_name": "시스템 설정", "category": "admin"},
    {"name": FULL_ACCESS_PERMISSION, "display_name": "전체 관리자", "category": "admin",
     "description": "모든 관리 권한"},
]

DEFAULT_ROLES: List[Dict[str, Any]] = [
    {"name": DEFAULT_ROLE_NAME, "display_name": "일반 사용자", "description": "기본 사용자 권한", "is_default": True},
    {"name": "moderator", "display_name": "모더레이터", "description": "컨텐츠 관리 권한"},
    {"name": "admin", "display_name": "관리자", "description": "전체 시스템 관리 권한"},
]

DEFAULT_ROLE_PERMISSIONS: Dict[str, List[str]] = {
    "user": [
        "posts:read", "posts:create", "posts:edit", "posts:delete",
        "comments:create", "comments:edit", "comments:delete",
        "questions:create", "answers:create",
        "templates:create",
        "events:create",
    ],
    "moderator": [
        "posts:read", "posts:create", "posts:edit", "posts:delete", "posts:moderate",
        "comments:create", "comments:edit", "comments:delete", "comments:moderate",
        "questions:create", "answers:create", "questions:moderate",
        "templates:create", "templates:moderate",
        "events:create", "events:moderate",
        "users:view", "users:edit", "users:suspend",
    ],
    "admin": [FULL_ACCESS_PERMISSION],
}


class RoleNotFoundError(LookupError):
    """Raised when assigning a role name that is not in the catalog."""

    def __init__(self, role_name: str):
        self.role_name = role_name
        super().__init__(f"Role {role_name} not found")


class PermissionsService:
    """Resolves and grants role-based permissions."""

    def __init__(self, db: Session):
        self.db = db

    def has_permission(self, user_id: str, permission_name: str) -> bool:
        """
        Decide whether a user holds a permission.

        Any failure while resolving denies rather than propagates.
        """
        try:
            if self._has_legacy_admin_flag(user_id):
                return True
            granted = self._effective_permissions(user_id)
        except Exception as e:
            logger.error(f"Permission check failed: user={user_id} permission={permission_name} error={e}")
            if isinstance(e, SQLAlchemyError):
                self.db.rollback()
            return False

        return permission_name in granted or FULL_ACCESS_PERMISSION in granted

    def assign_role(self, user_id: str, role_name: str, granted_by: Optional[str] = None) -> UserRole:
        """
        Grant a role to a user.

        Re-granting an existing role refreshes granted_by/granted_at instead of
        adding a second row.
        """
        role = self.db.query(Role).filter(Role.name == role_name).first()
        if role is None:
            raise RoleNotFoundError(role_name)

        try:
            user_role = self._upsert_user_role(user_id, role, granted_by)
            self.db.commit()
        except IntegrityError:
            # A concurrent grant inserted the row first; refresh that row instead
            self.db.rollback()
            user_role = self._upsert_user_role(user_id, role, granted_by)
            self.db.commit()

        self.db.refresh(user_role)
        logger.info(f"Role assigned: user={user_id} role={role_name} granted_by={granted_by}")
        return user_role

    def get_user_permissions(self, user_id: str) -> Dict[str, Any]:
        """All roles assigned to a user and the union of their permission names."""
        roles = self._assigned_roles(user_id)
        permissions: Set[str] = set()
        for role in roles:
            permissions.update(role.permission_names)

        return {"roles": roles, "permissions": sorted(permissions)}

    def get_roles(self) -> List[Role]:
        return self.db.query(Role).order_by(Role.id).all()

    def initialize_permissions(self) -> None:
        """
        Seed the permission catalog, roles and their links.

        Safe to run on every deployment: existing rows are updated in place and
        links outside the catalog are left alone.
        """
        logger.info("Initializing permissions and roles...")

        try:
            permissions_by_name = {}
            for data in DEFAULT_PERMISSIONS:
                permission = self.db.query(Permission).filter(Permission.name == data["name"]).first()
                if permission is None:
                    permission = Permission(name=data["name"])
                    self.db.add(permission)
                permission.display_name = data["display_name"]
                permission.description = data.get("description")
                permission.category = data["category"]
                permissions_by_name[data["name"]] = permission

            roles_by_name = {}
            for data in DEFAULT_ROLES:
                role = self.db.query(Role).filter(Role.name == data["name"]).first()
                if role is None:
                    role = Role(name=data["name"])
                    self.db.add(role)
                role.display_name = data["display_name"]
                role.description = data.get("description")
                role.is_default = data.get("is_default", False)
                roles_by_name[data["name"]] = role

            # Only the catalog default may stay default
            self.db.query(Role).filter(
                Role.name != DEFAULT_ROLE_NAME,
                Role.is_default.is_(True)
            ).update({Role.is_default: False}, synchronize_session=False)

            self.db.flush()

            for role_name, permission_names in DEFAULT_ROLE_PERMISSIONS.items():
                role = roles_by_name[role_name]
                for permission_name in permission_names:
                    permission = permissions_by_name[permission_name]
                    exists = self.db.query(RolePermission).filter(
                        RolePermission.role_id == role.id,
                        RolePermission.permission_id == permission.id
                    ).first()
                    if exists is None:
                        self.db.add(RolePermission(role_id=role.id, permission_id=permission.id))

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to initialize permissions: {e}")
            raise

        logger.info("Permissions and roles initialized successfully")

    def _has_legacy_admin_flag(self, user_id: str) -> bool:
        is_admin = self.db.query(User.is_admin).filter(User.id == user_id).scalar()
        return bool(is_admin)

    def _assigned_roles(self, user_id: str) -> List[Role]:
        user_roles = self.db.query(UserRole).filter(
            UserRole.user_id == user_id
        ).order_by(UserRole.id).all()
        return [user_role.role for user_role in user_roles]

    def _effective_permissions(self, user_id: str) -> Set[str]:
        roles = self._assigned_roles(user_id)
        if not roles:
            default_role = self.db.query(Role).filter(Role.is_default.is_(True)).order_by(Role.id).first()
            roles = [default_role] if default_role else []

        granted: Set[str] = set()
        for role in roles:
            granted.update(role.permission_names)
        return granted

    def _upsert_user_role(self, user_id: str, role: Role, granted_by: Optional[str]) -> UserRole:
        user_role = self.db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.role_id == role.id
        ).first()
        if user_role is None:
            user_role = UserRole(user_id=user_id, role_id=role.id)
            self.db.add(user_role)
        user_role.granted_by = granted_by
        user_role.granted_at = datetime.utcnow()
        self.db.flush()
        return user_role

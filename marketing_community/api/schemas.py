"""Pydantic schemas for request/response validation."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_more: bool


# Points schemas
class PointsResponse(BaseModel):
    user_id: str
    points: int


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    type: str
    title: str
    description: Optional[str]
    points: int
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("metadata_json", "metadata"))
    created_at: datetime


class PointHistoryResponse(BaseModel):
    activities: List[ActivityResponse]
    pagination: Pagination


class LeaderboardEntry(BaseModel):
    rank: int
    id: str
    name: Optional[str]
    nickname: Optional[str]
    image: Optional[str]
    company: Optional[str]
    position: Optional[str]
    points: int


class PointActionRequest(BaseModel):
    action: str = Field(..., min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class PointActionResponse(BaseModel):
    action: str
    allowed: bool
    points: int


class AdminAdjustRequest(BaseModel):
    target_user_id: str
    amount: int
    reason: str = Field(..., min_length=1, max_length=200)


class AdminAdjustResponse(BaseModel):
    """applied is False when a deduction exceeded the target's balance."""
    target_user_id: str
    applied: bool
    points: int


# Permission schemas
class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    display_name: str
    description: Optional[str]
    is_default: bool
    permission_names: List[str] = []


class UserPermissionsResponse(BaseModel):
    user_id: str
    roles: List[RoleResponse]
    permissions: List[str]


class RoleAssignRequest(BaseModel):
    role_name: str = Field(..., min_length=1)


class UserRoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    role_id: int
    granted_by: Optional[str]
    granted_at: datetime


# Audit schemas
class AuditUser(BaseModel):
    id: str
    name: Optional[str]
    email: str
    nickname: Optional[str]


class AuditLogResponse(BaseModel):
    id: int
    action: str
    resource: Optional[str]
    resource_type: Optional[str]
    old_value: Any = None
    new_value: Any = None
    user_id: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    metadata: Optional[Dict[str, Any]]
    created_at: datetime
    user: Optional[AuditUser]


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
    page: int
    limit: int
    total_pages: int


# Notification schemas
class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("metadata_json", "metadata"))
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    pagination: Pagination


class MarkReadRequest(BaseModel):
    notification_ids: List[int] = Field(..., min_length=1)


class MarkReadResponse(BaseModel):
    updated: int


class UnreadCountResponse(BaseModel):
    unread: int


# Error response
class ErrorResponse(BaseModel):
    """Response body for refused actions."""
    detail: str

"""Schemas for the activity log and approval queue."""

from datetime import datetime

from pydantic import BaseModel, Field

from goagri.schemas.common import PageInfo


class ActivityLogOut(BaseModel):
    id: str
    admin_id: str
    admin_name: str
    admin_email: str
    action: str
    entity: str
    entity_id: str | None = None
    entity_name: str | None = None
    changes: dict | None = None
    description: str
    status: str
    requires_approval: bool
    reviewed_by: str | None = None
    reviewed_by_name: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict | None = Field(default=None, validation_alias="extra_metadata")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ActivityLogListResponse(BaseModel):
    success: bool = True
    data: list[ActivityLogOut]
    pagination: PageInfo


class ActivityLogResponse(BaseModel):
    success: bool = True
    data: ActivityLogOut


class PendingApprovalsResponse(BaseModel):
    success: bool = True
    data: list[ActivityLogOut]
    count: int


class PendingCountResponse(BaseModel):
    success: bool = True
    count: int


class ReviewRequest(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class ReviewResponse(BaseModel):
    success: bool = True
    message: str
    data: ActivityLogOut


class GroupCount(BaseModel):
    key: str
    count: int


class ActivityStats(BaseModel):
    by_status: list[GroupCount]
    by_action: list[GroupCount]
    by_entity: list[GroupCount]
    recent_activity: list[ActivityLogOut]


class ActivityStatsResponse(BaseModel):
    success: bool = True
    data: ActivityStats

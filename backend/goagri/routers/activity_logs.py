"""Activity log routes — audit trail queries and the superadmin review queue.

Static paths (/pending, /pending/count, /stats) are registered before
/{log_id} so they are not captured as ids.
"""

import math
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from goagri.auth.deps import require_actor, require_superadmin
from goagri.config import settings
from goagri.database import get_db
from goagri.middleware.exceptions import ResourceNotFoundError
from goagri.models.activity_log import ActionType, ActivityLog, EntityType, LogStatus
from goagri.models.user import User
from goagri.schemas.activity_log import (
    ActivityLogListResponse,
    ActivityLogOut,
    ActivityLogResponse,
    ActivityStats,
    ActivityStatsResponse,
    GroupCount,
    PendingApprovalsResponse,
    PendingCountResponse,
    ReviewRequest,
    ReviewResponse,
)
from goagri.schemas.common import PageInfo
from goagri.schemas.validators import require_valid_id
from goagri.services.approval import approve_action, reject_action
from goagri.services.broadcast import (
    Broadcaster,
    announce_review,
    count_pending,
    get_broadcaster,
)

router = APIRouter()


# ── Audit trail ──────────────────────────────────────────────

@router.get("", response_model=ActivityLogListResponse)
async def list_activity_logs(
    status: LogStatus | None = None,
    action: ActionType | None = None,
    entity: EntityType | None = None,
    admin_id: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_actor),
):
    """Filtered, paginated audit trail, newest first."""
    filters = []
    if status:
        filters.append(ActivityLog.status == status.value)
    if action:
        filters.append(ActivityLog.action == action.value)
    if entity:
        filters.append(ActivityLog.entity == entity.value)
    if admin_id:
        filters.append(ActivityLog.admin_id == admin_id)
    if start_date:
        filters.append(ActivityLog.created_at >= start_date)
    if end_date:
        filters.append(ActivityLog.created_at <= end_date)

    total = await db.scalar(
        select(func.count()).select_from(ActivityLog).where(*filters)
    ) or 0

    result = await db.execute(
        select(ActivityLog)
        .where(*filters)
        .order_by(ActivityLog.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )

    return ActivityLogListResponse(
        data=[ActivityLogOut.model_validate(log) for log in result.scalars().all()],
        pagination=PageInfo(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


# ── Review queue ─────────────────────────────────────────────

@router.get("/pending", response_model=PendingApprovalsResponse)
async def list_pending(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_superadmin),
):
    result = await db.execute(
        select(ActivityLog)
        .where(ActivityLog.status == LogStatus.PENDING.value)
        .order_by(ActivityLog.created_at.desc())
    )
    logs = result.scalars().all()
    return PendingApprovalsResponse(
        data=[ActivityLogOut.model_validate(log) for log in logs],
        count=len(logs),
    )


@router.get("/pending/count", response_model=PendingCountResponse)
async def pending_count(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_superadmin),
):
    """Badge counter polled by the admin dashboard."""
    return PendingCountResponse(count=await count_pending(db))


# ── Reporting ────────────────────────────────────────────────

async def _group_counts(db: AsyncSession, column) -> list[GroupCount]:
    result = await db.execute(
        select(column, func.count())
        .group_by(column)
        .order_by(func.count().desc())
    )
    return [GroupCount(key=key, count=count) for key, count in result.all()]


@router.get("/stats", response_model=ActivityStatsResponse)
async def activity_stats(
    recent: int = Query(10, ge=0, le=50),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_actor),
):
    recent_result = await db.execute(
        select(ActivityLog).order_by(ActivityLog.created_at.desc()).limit(recent)
    )
    return ActivityStatsResponse(
        data=ActivityStats(
            by_status=await _group_counts(db, ActivityLog.status),
            by_action=await _group_counts(db, ActivityLog.action),
            by_entity=await _group_counts(db, ActivityLog.entity),
            recent_activity=[
                ActivityLogOut.model_validate(log)
                for log in recent_result.scalars().all()
            ],
        )
    )


# ── Single log ───────────────────────────────────────────────

@router.get("/{log_id}", response_model=ActivityLogResponse)
async def get_activity_log(
    log_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_actor),
):
    require_valid_id(log_id, "activity log id")
    log = await db.get(ActivityLog, log_id)
    if log is None:
        raise ResourceNotFoundError("Activity log", log_id)
    return ActivityLogResponse(data=ActivityLogOut.model_validate(log))


@router.post("/{log_id}/approve", response_model=ReviewResponse)
async def approve(
    log_id: str,
    body: ReviewRequest | None = None,
    db: AsyncSession = Depends(get_db),
    reviewer: User = Depends(require_superadmin),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    require_valid_id(log_id, "activity log id")
    log = await approve_action(db, log_id, reviewer, body.notes if body else None)
    await db.commit()
    await announce_review(db, broadcaster, log)
    return ReviewResponse(
        message="Activity approved successfully",
        data=ActivityLogOut.model_validate(log),
    )


@router.post("/{log_id}/reject", response_model=ReviewResponse)
async def reject(
    log_id: str,
    body: ReviewRequest | None = None,
    db: AsyncSession = Depends(get_db),
    reviewer: User = Depends(require_superadmin),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    require_valid_id(log_id, "activity log id")
    log = await reject_action(db, log_id, reviewer, body.notes if body else None)
    await db.commit()
    await announce_review(db, broadcaster, log)
    return ReviewResponse(
        message="Activity rejected successfully",
        data=ActivityLogOut.model_validate(log),
    )

"""Recording admin actions in the activity log.

Usage:
    log = await record_action(
        db, user,
        action=ActionType.UPDATE_PRODUCT, entity=EntityType.PRODUCT,
        entity_id=product.id, entity_name=product.name,
        before=before, after=updates,
        requires_approval=gated, request=request,
    )

The row is written inside a SAVEPOINT of the caller's transaction, so a
superadmin's entity change and its AUTO_APPROVED log commit together.
If the insert itself fails the savepoint is rolled back, the failure is
logged, and None is returned: a broken audit write never fails the
business operation it describes.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from goagri.middleware.exceptions import ConflictError
from goagri.models.activity_log import ActionType, ActivityLog, EntityType, LogStatus
from goagri.models.user import User

logger = logging.getLogger(__name__)


DESCRIPTION_TEMPLATES: dict[ActionType, str] = {
    ActionType.CREATE_PRODUCT: '{admin_name} created a new product: "{entity_name}"',
    ActionType.UPDATE_PRODUCT: '{admin_name} updated product: "{entity_name}"',
    ActionType.DELETE_PRODUCT: '{admin_name} deleted product: "{entity_name}"',
    ActionType.CREATE_CATEGORY: '{admin_name} created a new category: "{entity_name}"',
    ActionType.UPDATE_CATEGORY: '{admin_name} updated category: "{entity_name}"',
    ActionType.DELETE_CATEGORY: '{admin_name} deleted category: "{entity_name}"',
    ActionType.CREATE_PROMO: '{admin_name} created a new promotion: "{entity_name}"',
    ActionType.UPDATE_PROMO: '{admin_name} updated promotion: "{entity_name}"',
    ActionType.DELETE_PROMO: '{admin_name} deleted promotion: "{entity_name}"',
    ActionType.UPDATE_DELIVERY: "{admin_name} updated delivery settings",
    ActionType.UPDATE_INVENTORY: '{admin_name} updated inventory for: "{entity_name}"',
    ActionType.UPDATE_LOYALTY_PROGRAM: "{admin_name} updated loyalty program settings",
    ActionType.UPDATE_SETTINGS: "{admin_name} updated system settings",
}

FALLBACK_TEMPLATE = "{admin_name} performed {action} on {entity}"


def _value(member: Any) -> str:
    return member.value if hasattr(member, "value") else str(member)


def describe_action(
    action: ActionType | str,
    entity: EntityType | str,
    *,
    admin_name: str | None,
    entity_name: str | None,
) -> str:
    """Build the one-line summary shown in the activity feed."""
    try:
        template = DESCRIPTION_TEMPLATES.get(ActionType(action), FALLBACK_TEMPLATE)
    except ValueError:
        template = FALLBACK_TEMPLATE
    return template.format(
        admin_name=admin_name or "Admin",
        entity_name=entity_name or "item",
        action=_value(action),
        entity=_value(entity),
    )


def snapshot(obj) -> dict:
    """JSON-safe dict of every mapped column on `obj`."""
    state = inspect(obj)
    return jsonable_encoder(
        {attr.key: getattr(obj, attr.key) for attr in state.mapper.column_attrs}
    )


def client_ip(request: Request | None) -> str | None:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def record_action(
    db: AsyncSession,
    actor: User,
    *,
    action: ActionType,
    entity: EntityType,
    entity_id: str | None,
    entity_name: str | None,
    before: dict | None,
    after: dict | None,
    requires_approval: bool,
    description: str | None = None,
    request: Request | None = None,
    metadata: dict | None = None,
) -> ActivityLog | None:
    """Append an activity log row for an admin action.

    Returns the persisted row, or None if the insert failed.
    """
    status = LogStatus.PENDING if requires_approval else LogStatus.AUTO_APPROVED

    entry = ActivityLog(
        admin_id=actor.id,
        admin_name=actor.name,
        admin_email=actor.email,
        action=action.value,
        entity=entity.value,
        entity_id=entity_id,
        entity_name=entity_name,
        changes=jsonable_encoder({"before": before, "after": after}),
        description=description or describe_action(
            action, entity, admin_name=actor.name, entity_name=entity_name
        ),
        status=status.value,
        requires_approval=requires_approval,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent") if request else None,
        extra_metadata=metadata,
    )

    # Entity writes go out first so their errors surface to the caller
    # instead of being mistaken for an audit failure.
    await db.flush()

    try:
        async with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError:
        logger.exception(
            "Failed to record activity %s on %s %s by %s; "
            "the change itself was kept",
            action.value, entity.value, entity_id, actor.id,
        )
        return None

    logger.info(
        "Activity logged: %s on %s %s by %s - status %s",
        action.value, entity.value, entity_id, actor.name, status.value,
    )
    return entry


async def find_pending_for_entity(
    db: AsyncSession,
    entity: EntityType,
    entity_id: str,
) -> ActivityLog | None:
    """Return the PENDING log already queued against this entity, if any."""
    result = await db.execute(
        select(ActivityLog)
        .where(
            ActivityLog.entity == entity.value,
            ActivityLog.entity_id == entity_id,
            ActivityLog.status == LogStatus.PENDING.value,
        )
        .order_by(ActivityLog.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def ensure_no_pending(
    db: AsyncSession,
    entity: EntityType,
    entity_id: str,
) -> None:
    """Refuse a second deferred change while one is still awaiting review."""
    pending = await find_pending_for_entity(db, entity, entity_id)
    if pending is not None:
        raise ConflictError(
            f"{entity.value.title()} {entity_id} already has a change awaiting "
            f"approval ({pending.action})",
            error_code="PENDING_APPROVAL_EXISTS",
        )

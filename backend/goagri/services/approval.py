"""Approval resolver — superadmin review of deferred admin actions.

State machine per activity log:

    PENDING ──approve──▶ APPROVED   (deferred change committed)
    PENDING ──reject───▶ REJECTED   (placeholder state rolled back)
    AUTO_APPROVED                   (terminal from creation, never reviewed)

The PENDING → reviewed transition is a single conditional UPDATE
(`... WHERE id = :id AND status = 'PENDING'`), so two reviewers racing
on the same log cannot both win: the loser sees rowcount 0 and gets a
409 naming the status the winner set.

The status change and the entity commit/rollback run in one database
transaction.  If a handler fails the whole review rolls back and the log
stays PENDING, ready to be reviewed again.

Commit / rollback per action:

    action                    approve                       reject
    CREATE_PRODUCT/CATEGORY   active = True                 delete placeholder
    UPDATE_PRODUCT/CATEGORY   apply changes.after           nothing (never applied)
    DELETE_PRODUCT/CATEGORY   delete row (orphan products)  restore changes.before, active = True
    UPDATE_DELIVERY           apply changes.after           restore changes.before
    reserved / unknown        warning only                  warning only
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable

from sqlalchemy import DateTime, inspect, update
from sqlalchemy.ext.asyncio import AsyncSession

from goagri.middleware.exceptions import ResourceNotFoundError, ReviewConflictError
from goagri.models.activity_log import ActionType, ActivityLog, LogStatus
from goagri.models.category import Category
from goagri.models.delivery import Delivery
from goagri.models.product import Product
from goagri.models.user import User

logger = logging.getLogger(__name__)

Handler = Callable[[AsyncSession, ActivityLog], Awaitable[None]]

DEFAULT_REJECT_NOTES = "Action rejected by super admin"


# ── Field application ────────────────────────────────────────

def apply_fields(obj, data: dict | None) -> list[str]:
    """Write the mutable fields present in `data` onto `obj`.

    `data` comes from a JSON snapshot, so ISO strings for DateTime
    columns are parsed back.  Returns the names of the fields written.
    """
    if not data:
        return []

    columns = inspect(type(obj)).columns
    written = []
    for key in obj.MUTABLE_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, str) and isinstance(columns[key].type, DateTime):
            value = datetime.fromisoformat(value)
        setattr(obj, key, value)
        written.append(key)
    return written


async def _get_target(db: AsyncSession, model, log: ActivityLog):
    if not log.entity_id:
        logger.warning(f"Log {log.id} ({log.action}) has no entity_id; nothing to do")
        return None
    obj = await db.get(model, log.entity_id)
    if obj is None:
        logger.warning(
            f"{model.__name__} {log.entity_id} referenced by log {log.id} no longer exists"
        )
    return obj


def _changes(log: ActivityLog, side: str) -> dict | None:
    return (log.changes or {}).get(side)


# ── Handler factories ────────────────────────────────────────

def _activate(model) -> Handler:
    async def handler(db: AsyncSession, log: ActivityLog) -> None:
        obj = await _get_target(db, model, log)
        if obj is None:
            return
        obj.active = True
        logger.info(f"{model.__name__} {obj.id} marked as active")
    return handler


def _apply_after(model) -> Handler:
    async def handler(db: AsyncSession, log: ActivityLog) -> None:
        obj = await _get_target(db, model, log)
        if obj is None:
            return
        fields = apply_fields(obj, _changes(log, "after"))
        logger.info(f"{model.__name__} {obj.id} updated ({', '.join(fields) or 'no fields'})")
    return handler


def _restore_before(model, reactivate: bool = False) -> Handler:
    async def handler(db: AsyncSession, log: ActivityLog) -> None:
        before = _changes(log, "before")
        if not log.entity_id or not before:
            logger.warning(f"Log {log.id} ({log.action}) has no before snapshot; nothing to restore")
            return

        obj = await _get_target(db, model, log)
        if obj is None:
            return
        apply_fields(obj, before)
        if reactivate:
            obj.active = True
        logger.info(f"{model.__name__} {log.entity_id} restored to previous state")
    return handler


def _remove(model) -> Handler:
    async def handler(db: AsyncSession, log: ActivityLog) -> None:
        obj = await _get_target(db, model, log)
        if obj is None:
            return
        await db.delete(obj)
        logger.info(f"{model.__name__} {log.entity_id} deleted")
    return handler


async def detach_category_products(db: AsyncSession, category_id: str) -> int:
    """Leave a category's products uncategorized. Returns how many moved."""
    result = await db.execute(
        update(Product)
        .where(Product.category_id == category_id)
        .values(category_id=None)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount:
        logger.warning(f"Category {category_id} had {result.rowcount} products; moved to uncategorized")
    return result.rowcount or 0


async def _delete_category(db: AsyncSession, log: ActivityLog) -> None:
    category = await _get_target(db, Category, log)
    if category is None:
        return
    await detach_category_products(db, category.id)
    await db.delete(category)
    logger.info(f"Category {category.id} deleted")


async def _nothing_to_undo(db: AsyncSession, log: ActivityLog) -> None:
    """Update rejections: the stored record was never touched."""
    logger.info(f"{log.action} {log.entity_id} rejected; stored record left unchanged")


async def _unhandled(db: AsyncSession, log: ActivityLog) -> None:
    logger.warning(f"No commit/rollback behaviour for action {log.action} (log {log.id})")


# ── Dispatch tables (one entry per ActionType) ───────────────

COMMIT_HANDLERS: dict[ActionType, Handler] = {
    ActionType.CREATE_PRODUCT: _activate(Product),
    ActionType.UPDATE_PRODUCT: _apply_after(Product),
    ActionType.DELETE_PRODUCT: _remove(Product),
    ActionType.CREATE_CATEGORY: _activate(Category),
    ActionType.UPDATE_CATEGORY: _apply_after(Category),
    ActionType.DELETE_CATEGORY: _delete_category,
    ActionType.UPDATE_DELIVERY: _apply_after(Delivery),
    ActionType.CREATE_PROMO: _unhandled,
    ActionType.UPDATE_PROMO: _unhandled,
    ActionType.DELETE_PROMO: _unhandled,
    ActionType.UPDATE_INVENTORY: _unhandled,
    ActionType.UPDATE_LOYALTY_PROGRAM: _unhandled,
    ActionType.UPDATE_SETTINGS: _unhandled,
    ActionType.OTHER: _unhandled,
}

ROLLBACK_HANDLERS: dict[ActionType, Handler] = {
    ActionType.CREATE_PRODUCT: _remove(Product),
    ActionType.UPDATE_PRODUCT: _nothing_to_undo,
    ActionType.DELETE_PRODUCT: _restore_before(Product, reactivate=True),
    ActionType.CREATE_CATEGORY: _remove(Category),
    ActionType.UPDATE_CATEGORY: _nothing_to_undo,
    ActionType.DELETE_CATEGORY: _restore_before(Category, reactivate=True),
    ActionType.UPDATE_DELIVERY: _restore_before(Delivery),
    ActionType.CREATE_PROMO: _unhandled,
    ActionType.UPDATE_PROMO: _unhandled,
    ActionType.DELETE_PROMO: _unhandled,
    ActionType.UPDATE_INVENTORY: _unhandled,
    ActionType.UPDATE_LOYALTY_PROGRAM: _unhandled,
    ActionType.UPDATE_SETTINGS: _unhandled,
    ActionType.OTHER: _unhandled,
}


def resolve_handler(table: dict[ActionType, Handler], action: str) -> Handler:
    """Look up the handler for a stored action string.

    Rows written with an action this build does not know (old data,
    migrations) fall back to a logged no-op instead of failing the review.
    """
    try:
        return table[ActionType(action)]
    except (ValueError, KeyError):
        return _unhandled


# ── Review operations ────────────────────────────────────────

async def _transition(
    db: AsyncSession,
    log_id: str,
    reviewer: User,
    *,
    verb: str,
    new_status: LogStatus,
    notes: str | None,
) -> ActivityLog:
    """Move a PENDING log to `new_status` atomically, or raise."""
    now = datetime.utcnow()
    result = await db.execute(
        update(ActivityLog)
        .where(
            ActivityLog.id == log_id,
            ActivityLog.status == LogStatus.PENDING.value,
        )
        .values(
            status=new_status.value,
            reviewed_by=reviewer.id,
            reviewed_by_name=reviewer.name,
            reviewed_at=now,
            review_notes=notes,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )

    log = await db.get(ActivityLog, log_id, populate_existing=True)
    if log is None:
        raise ResourceNotFoundError("Activity log", log_id)
    if result.rowcount != 1:
        raise ReviewConflictError(verb, log.status)
    return log


async def approve_action(
    db: AsyncSession,
    log_id: str,
    reviewer: User,
    notes: str | None = None,
) -> ActivityLog:
    """Approve a pending action and apply the deferred change."""
    log = await _transition(
        db, log_id, reviewer, verb="approve", new_status=LogStatus.APPROVED, notes=notes
    )
    logger.info(f"Executing approved action: {log.action} for {log.entity} {log.entity_id}")
    await resolve_handler(COMMIT_HANDLERS, log.action)(db, log)
    await db.flush()
    logger.info(f"Log {log.id} approved by {reviewer.name}")
    return log


async def reject_action(
    db: AsyncSession,
    log_id: str,
    reviewer: User,
    notes: str | None = None,
) -> ActivityLog:
    """Reject a pending action and undo any placeholder state."""
    log = await _transition(
        db, log_id, reviewer,
        verb="reject",
        new_status=LogStatus.REJECTED,
        notes=notes or DEFAULT_REJECT_NOTES,
    )
    logger.info(f"Rolling back rejected action: {log.action} for {log.entity} {log.entity_id}")
    await resolve_handler(ROLLBACK_HANDLERS, log.action)(db, log)
    await db.flush()
    logger.info(f"Log {log.id} rejected by {reviewer.name}")
    return log

"""Category routes — public listing plus gated admin mutations.

Mutations by a superadmin are applied immediately and logged
AUTO_APPROVED.  Mutations by any other admin are deferred: creates land
as inactive placeholders, deletes soft-delete the row, and updates leave
the stored row untouched until the logged change is approved.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from goagri.auth.deps import require_actor
from goagri.auth.permissions import requires_approval
from goagri.database import get_db
from goagri.middleware.exceptions import (
    ConflictError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from goagri.models.activity_log import ActionType, EntityType
from goagri.models.category import Category
from goagri.models.user import User
from goagri.schemas.catalog import (
    CategoryCreate,
    CategoryListResponse,
    CategoryMutationResponse,
    CategoryOut,
    CategoryUpdate,
)
from goagri.schemas.validators import require_valid_id
from goagri.services.approval import apply_fields, detach_category_products
from goagri.services.broadcast import Broadcaster, announce_mutation, get_broadcaster
from goagri.utils.activity import ensure_no_pending, record_action, snapshot

router = APIRouter()


async def _get_category(db: AsyncSession, category_id: str) -> Category:
    require_valid_id(category_id, "category id")
    category = await db.get(Category, category_id)
    if category is None:
        raise ResourceNotFoundError("Category", category_id)
    return category


async def _ensure_unique_name(
    db: AsyncSession, name: str, exclude_id: str | None = None
) -> None:
    stmt = select(Category.id).where(
        func.lower(Category.category_name) == name.lower()
    )
    if exclude_id:
        stmt = stmt.where(Category.id != exclude_id)
    if await db.scalar(stmt):
        raise ConflictError(
            f'Category "{name}" already exists', error_code="DUPLICATE_RECORD"
        )


# ── Reads ────────────────────────────────────────────────────

@router.get("", response_model=CategoryListResponse)
async def list_categories(db: AsyncSession = Depends(get_db)):
    """Active categories only; placeholders awaiting approval stay hidden."""
    result = await db.execute(
        select(Category)
        .where(Category.active.is_(True))
        .order_by(Category.category_name)
    )
    return CategoryListResponse(
        data=[CategoryOut.model_validate(c) for c in result.scalars().all()]
    )


@router.get("/{category_id}", response_model=CategoryOut)
async def get_category(
    category_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_actor),
):
    return CategoryOut.model_validate(await _get_category(db, category_id))


# ── Gated mutations ──────────────────────────────────────────

@router.post(
    "",
    response_model=CategoryMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_category(
    body: CategoryCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_actor),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    await _ensure_unique_name(db, body.category_name)

    gated = requires_approval(user.role)
    category = Category(**body.model_dump(), active=not gated)
    db.add(category)
    await db.flush()
    await db.refresh(category)
    created = snapshot(category)

    log = await record_action(
        db, user,
        action=ActionType.CREATE_CATEGORY,
        entity=EntityType.CATEGORY,
        entity_id=category.id,
        entity_name=category.category_name,
        before=None,
        after=created,
        requires_approval=gated,
        request=request,
    )
    await db.commit()
    await announce_mutation(
        db, broadcaster, gated=gated, log=log, event="category.created", payload=created
    )

    return CategoryMutationResponse(
        message=(
            "Category created and pending approval"
            if gated else "Category created successfully"
        ),
        category=CategoryOut.model_validate(category),
        requires_approval=gated,
    )


@router.api_route(
    "/{category_id}",
    methods=["PUT", "PATCH"],
    response_model=CategoryMutationResponse,
)
async def update_category(
    category_id: str,
    body: CategoryUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_actor),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    category = await _get_category(db, category_id)

    changes = body.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    if not changes:
        raise ValidationFailedError("No fields to update")
    if "category_name" in changes:
        await _ensure_unique_name(db, changes["category_name"], exclude_id=category.id)

    gated = requires_approval(user.role)
    if gated:
        await ensure_no_pending(db, EntityType.CATEGORY, category.id)

    before = snapshot(category)
    if not gated:
        apply_fields(category, changes)
        await db.flush()
        await db.refresh(category)

    log = await record_action(
        db, user,
        action=ActionType.UPDATE_CATEGORY,
        entity=EntityType.CATEGORY,
        entity_id=category.id,
        entity_name=before["category_name"],
        before=before,
        after=changes,
        requires_approval=gated,
        request=request,
    )
    await db.commit()
    await announce_mutation(
        db, broadcaster,
        gated=gated, log=log,
        event="category.updated", payload=snapshot(category),
    )

    return CategoryMutationResponse(
        message=(
            "Category update pending approval"
            if gated else "Category updated successfully"
        ),
        category=CategoryOut.model_validate(category),
        requires_approval=gated,
    )


@router.delete("/{category_id}", response_model=CategoryMutationResponse)
async def delete_category(
    category_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_actor),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    category = await _get_category(db, category_id)

    gated = requires_approval(user.role)
    if gated:
        await ensure_no_pending(db, EntityType.CATEGORY, category.id)

    before = snapshot(category)
    if gated:
        # Soft delete until a superadmin decides
        category.active = False
    else:
        await detach_category_products(db, category.id)
        await db.delete(category)
    await db.flush()

    log = await record_action(
        db, user,
        action=ActionType.DELETE_CATEGORY,
        entity=EntityType.CATEGORY,
        entity_id=before["id"],
        entity_name=before["category_name"],
        before=before,
        after=None,
        requires_approval=gated,
        request=request,
    )
    await db.commit()
    await announce_mutation(
        db, broadcaster,
        gated=gated, log=log,
        event="category.deleted", payload={"id": before["id"]},
    )

    return CategoryMutationResponse(
        message=(
            "Category deletion pending approval"
            if gated else "Category deleted successfully"
        ),
        category=CategoryOut.model_validate(category) if gated else None,
        requires_approval=gated,
    )

"""Product routes — storefront listing plus gated admin mutations."""

from fastapi import APIRouter, Depends, Query, Request, status
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
from goagri.models.product import Product
from goagri.models.user import User
from goagri.schemas.catalog import (
    ProductCreate,
    ProductMutationResponse,
    ProductOut,
    ProductUpdate,
)
from goagri.schemas.common import PaginatedResponse
from goagri.schemas.validators import is_valid_id, require_valid_id
from goagri.services.approval import apply_fields
from goagri.services.broadcast import Broadcaster, announce_mutation, get_broadcaster
from goagri.utils.activity import ensure_no_pending, record_action, snapshot

router = APIRouter()


async def _get_product(db: AsyncSession, product_id: str) -> Product:
    require_valid_id(product_id, "product id")
    product = await db.get(Product, product_id)
    if product is None:
        raise ResourceNotFoundError("Product", product_id)
    return product


async def _ensure_category_exists(db: AsyncSession, category_id: str) -> None:
    if not is_valid_id(category_id) or await db.get(Category, category_id) is None:
        raise ValidationFailedError(
            f"Category does not exist: {category_id}", error_code="INVALID_CATEGORY"
        )


async def _ensure_unique_name(
    db: AsyncSession, name: str, exclude_id: str | None = None
) -> None:
    stmt = select(Product.id).where(Product.name == name)
    if exclude_id:
        stmt = stmt.where(Product.id != exclude_id)
    if await db.scalar(stmt):
        raise ConflictError(
            f'Product "{name}" already exists', error_code="DUPLICATE_RECORD"
        )


# ── Reads ────────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[ProductOut])
async def list_products(
    search: str | None = Query(None, max_length=100),
    category: str | None = None,
    catalog: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Active products only, newest first."""
    stmt = select(Product).where(Product.active.is_(True))
    if search:
        stmt = stmt.where(Product.name.ilike(f"%{search}%"))
    if category:
        stmt = stmt.where(Product.category_id == category)
    if catalog is not None:
        stmt = stmt.where(Product.catalog.is_(catalog))

    total = await db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    offset = (page - 1) * limit
    result = await db.execute(
        stmt.order_by(Product.created_at.desc()).limit(limit).offset(offset)
    )

    return PaginatedResponse(
        items=[ProductOut.model_validate(p) for p in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(
    product_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_actor),
):
    """Any state, including placeholders and soft-deleted rows."""
    return ProductOut.model_validate(await _get_product(db, product_id))


# ── Gated mutations ──────────────────────────────────────────

@router.post(
    "",
    response_model=ProductMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_product(
    body: ProductCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_actor),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    await _ensure_category_exists(db, body.category_id)
    await _ensure_unique_name(db, body.name)

    gated = requires_approval(user.role)
    product = Product(**body.model_dump(), active=not gated)
    db.add(product)
    await db.flush()
    await db.refresh(product)
    created = snapshot(product)

    log = await record_action(
        db, user,
        action=ActionType.CREATE_PRODUCT,
        entity=EntityType.PRODUCT,
        entity_id=product.id,
        entity_name=product.name,
        before=None,
        after=created,
        requires_approval=gated,
        request=request,
    )
    await db.commit()
    await announce_mutation(
        db, broadcaster, gated=gated, log=log, event="product.created", payload=created
    )

    return ProductMutationResponse(
        message=(
            "Product created and pending approval"
            if gated else "Product created successfully"
        ),
        product=ProductOut.model_validate(product),
        requires_approval=gated,
    )


@router.api_route(
    "/{product_id}",
    methods=["PUT", "PATCH"],
    response_model=ProductMutationResponse,
)
async def update_product(
    product_id: str,
    body: ProductUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_actor),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    product = await _get_product(db, product_id)

    changes = body.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    if not changes:
        raise ValidationFailedError("No fields to update")
    if "category_id" in changes:
        await _ensure_category_exists(db, changes["category_id"])
    if "name" in changes:
        await _ensure_unique_name(db, changes["name"], exclude_id=product.id)

    gated = requires_approval(user.role)
    if gated:
        await ensure_no_pending(db, EntityType.PRODUCT, product.id)

    before = snapshot(product)
    if not gated:
        apply_fields(product, changes)
        await db.flush()
        await db.refresh(product)

    log = await record_action(
        db, user,
        action=ActionType.UPDATE_PRODUCT,
        entity=EntityType.PRODUCT,
        entity_id=product.id,
        entity_name=before["name"],
        before=before,
        after=changes,
        requires_approval=gated,
        request=request,
    )
    await db.commit()
    await announce_mutation(
        db, broadcaster,
        gated=gated, log=log,
        event="product.updated", payload=snapshot(product),
    )

    return ProductMutationResponse(
        message=(
            "Product update pending approval"
            if gated else "Product updated successfully"
        ),
        product=ProductOut.model_validate(product),
        requires_approval=gated,
    )


@router.delete("/{product_id}", response_model=ProductMutationResponse)
async def delete_product(
    product_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_actor),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    product = await _get_product(db, product_id)

    gated = requires_approval(user.role)
    if gated:
        await ensure_no_pending(db, EntityType.PRODUCT, product.id)

    before = snapshot(product)
    if gated:
        product.active = False
    else:
        await db.delete(product)
    await db.flush()

    log = await record_action(
        db, user,
        action=ActionType.DELETE_PRODUCT,
        entity=EntityType.PRODUCT,
        entity_id=before["id"],
        entity_name=before["name"],
        before=before,
        after=None,
        requires_approval=gated,
        request=request,
    )
    await db.commit()
    await announce_mutation(
        db, broadcaster,
        gated=gated, log=log,
        event="product.deleted", payload={"id": before["id"]},
    )

    return ProductMutationResponse(
        message=(
            "Product deletion pending approval"
            if gated else "Product deleted successfully"
        ),
        product=ProductOut.model_validate(product) if gated else None,
        requires_approval=gated,
    )

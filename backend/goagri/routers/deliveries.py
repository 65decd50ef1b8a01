"""Delivery routes — admin listing and gated delivery updates.

Deliveries are created by the order service; this API only reads them
and changes scheduling/status details (UPDATE_DELIVERY).
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from goagri.auth.deps import require_actor
from goagri.auth.permissions import requires_approval
from goagri.database import get_db
from goagri.middleware.exceptions import ResourceNotFoundError, ValidationFailedError
from goagri.models.activity_log import ActionType, EntityType
from goagri.models.delivery import Delivery
from goagri.models.user import User
from goagri.schemas.delivery import (
    DeliveryListResponse,
    DeliveryMutationResponse,
    DeliveryOut,
    DeliveryUpdate,
)
from goagri.schemas.validators import (
    normalize_delivery_status,
    require_valid_id,
    validate_delivery_type,
)
from goagri.services.approval import apply_fields
from goagri.services.broadcast import Broadcaster, announce_mutation, get_broadcaster
from goagri.utils.activity import ensure_no_pending, record_action, snapshot

router = APIRouter()


async def _get_delivery(db: AsyncSession, delivery_id: str) -> Delivery:
    require_valid_id(delivery_id, "delivery id")
    delivery = await db.get(Delivery, delivery_id)
    if delivery is None:
        raise ResourceNotFoundError("Delivery", delivery_id)
    return delivery


@router.get("", response_model=DeliveryListResponse)
async def list_deliveries(
    type: str | None = None,
    status: str | None = None,
    q: str | None = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_actor),
):
    stmt = select(Delivery)
    try:
        if type:
            stmt = stmt.where(Delivery.type == validate_delivery_type(type))
        if status:
            stmt = stmt.where(Delivery.status == normalize_delivery_status(status))
    except ValueError as e:
        raise ValidationFailedError(str(e))
    if q:
        pattern = f"%{q}%"
        stmt = stmt.where(
            or_(
                Delivery.order_id.ilike(pattern),
                Delivery.delivery_address.ilike(pattern),
                Delivery.third_party_provider.ilike(pattern),
            )
        )

    result = await db.execute(stmt.order_by(Delivery.created_at.desc()))
    return DeliveryListResponse(
        deliveries=[DeliveryOut.model_validate(d) for d in result.scalars().all()]
    )


@router.get("/{delivery_id}", response_model=DeliveryOut)
async def get_delivery(
    delivery_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(require_actor),
):
    return DeliveryOut.model_validate(await _get_delivery(db, delivery_id))


@router.api_route(
    "/{delivery_id}",
    methods=["PUT", "PATCH"],
    response_model=DeliveryMutationResponse,
)
async def update_delivery(
    delivery_id: str,
    body: DeliveryUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_actor),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    delivery = await _get_delivery(db, delivery_id)

    changes = body.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    if not changes:
        raise ValidationFailedError("No fields to update")
    if changes.get("status") == "completed" and not delivery.delivered_at:
        changes.setdefault("delivered_at", datetime.utcnow().isoformat())

    gated = requires_approval(user.role)
    if gated:
        await ensure_no_pending(db, EntityType.DELIVERY, delivery.id)

    before = snapshot(delivery)
    if not gated:
        apply_fields(delivery, changes)
        await db.flush()
        await db.refresh(delivery)

    log = await record_action(
        db, user,
        action=ActionType.UPDATE_DELIVERY,
        entity=EntityType.DELIVERY,
        entity_id=delivery.id,
        entity_name=f"Order {delivery.order_id}",
        before=before,
        after=changes,
        requires_approval=gated,
        request=request,
    )
    await db.commit()
    await announce_mutation(
        db, broadcaster,
        gated=gated, log=log,
        event="delivery.updated", payload=snapshot(delivery),
    )

    return DeliveryMutationResponse(
        message=(
            "Delivery update pending approval"
            if gated else "Delivery updated successfully"
        ),
        delivery=DeliveryOut.model_validate(delivery),
        requires_approval=gated,
    )

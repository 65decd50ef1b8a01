import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from goagri.database import Base

DELIVERY_TYPES = ("pickup", "third-party", "in-house")
DELIVERY_STATUSES = ("pending", "assigned", "in-transit", "completed", "cancelled")


class Delivery(Base):
    __tablename__ = "deliveries"

    MUTABLE_FIELDS = (
        "status", "scheduled_date", "pickup_location", "third_party_provider",
        "delivery_address", "delivery_fee", "estimated_delivery_time",
        "notes", "delivered_at",
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Orders live in the order service; kept as an opaque reference here
    order_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # pickup | third-party | in-house
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    # pending | assigned | in-transit | completed | cancelled
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)

    delivery_address: Mapped[str | None] = mapped_column(Text)
    pickup_location: Mapped[str | None] = mapped_column(Text)
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime)
    third_party_provider: Mapped[str | None] = mapped_column(String(100))
    assigned_vehicle: Mapped[str | None] = mapped_column(String(50))
    assigned_driver: Mapped[str | None] = mapped_column(String(36))
    delivery_fee: Mapped[float | None] = mapped_column(Float)
    estimated_delivery_time: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

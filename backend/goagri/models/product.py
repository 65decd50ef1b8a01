"""Product catalogue entries (fertilizer, seeds, feeds, tools, ...)."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from goagri.database import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_active_created", "active", "created_at"),
    )

    MUTABLE_FIELDS = (
        "name", "description", "stock", "sold", "price", "min_stock",
        "weight_kg", "category_id", "images", "catalog", "active",
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")

    # ── Inventory ──────────────────────────────────────────────
    stock: Mapped[int] = mapped_column(Integer, default=0)
    sold: Mapped[int] = mapped_column(Integer, default=0)
    min_stock: Mapped[int] = mapped_column(Integer, default=0)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    weight_kg: Mapped[float | None] = mapped_column(Float)

    # Nullable: approving a category delete leaves its products uncategorized
    category_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("categories.id"), index=True
    )

    # JSON array of http(s) image URLs
    images: Mapped[list] = mapped_column(JSON, default=list)
    catalog: Mapped[bool] = mapped_column(Boolean, default=True)

    # true = approved/visible, false = pending approval or pending delete
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

"""ActivityLog — audit trail and approval queue for admin actions.

Records who did what, to which entity, with a before/after snapshot.
Actions taken by a superadmin are written as AUTO_APPROVED; everyone
else's are PENDING until a superadmin approves or rejects them.

Admin and reviewer names/emails are copied onto the row at write time
and never joined back to the users table, so the trail survives
account renames and deletions.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from goagri.database import Base


class ActionType(str, enum.Enum):
    CREATE_PRODUCT = "CREATE_PRODUCT"
    UPDATE_PRODUCT = "UPDATE_PRODUCT"
    DELETE_PRODUCT = "DELETE_PRODUCT"
    CREATE_CATEGORY = "CREATE_CATEGORY"
    UPDATE_CATEGORY = "UPDATE_CATEGORY"
    DELETE_CATEGORY = "DELETE_CATEGORY"
    UPDATE_DELIVERY = "UPDATE_DELIVERY"
    # Reserved: accepted in the log, no commit/rollback behaviour yet
    CREATE_PROMO = "CREATE_PROMO"
    UPDATE_PROMO = "UPDATE_PROMO"
    DELETE_PROMO = "DELETE_PROMO"
    UPDATE_INVENTORY = "UPDATE_INVENTORY"
    UPDATE_LOYALTY_PROGRAM = "UPDATE_LOYALTY_PROGRAM"
    UPDATE_SETTINGS = "UPDATE_SETTINGS"
    OTHER = "OTHER"


class EntityType(str, enum.Enum):
    PRODUCT = "PRODUCT"
    CATEGORY = "CATEGORY"
    PROMO = "PROMO"
    DELIVERY = "DELIVERY"
    INVENTORY = "INVENTORY"
    LOYALTY = "LOYALTY"
    SETTINGS = "SETTINGS"
    OTHER = "OTHER"


class LogStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    AUTO_APPROVED = "AUTO_APPROVED"


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_logs_admin_created", "admin_id", "created_at"),
        Index("ix_activity_logs_status_created", "status", "created_at"),
        Index("ix_activity_logs_entity_entity_id", "entity", "entity_id"),
        Index("ix_activity_logs_action_created", "action", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # ── Who ────────────────────────────────────────────────────
    admin_id: Mapped[str] = mapped_column(String(36), nullable=False)
    admin_name: Mapped[str] = mapped_column(String(255), nullable=False)
    admin_email: Mapped[str] = mapped_column(String(255), nullable=False)

    # ── What ───────────────────────────────────────────────────
    # Stored as plain strings so rows with an action this build does not
    # know about still load.
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36))
    entity_name: Mapped[str | None] = mapped_column(String(255))

    # {"before": {...} | null, "after": {...} | null}
    changes: Mapped[dict | None] = mapped_column(JSON)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Approval workflow ──────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LogStatus.PENDING.value
    )
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    reviewed_by: Mapped[str | None] = mapped_column(String(36))
    reviewed_by_name: Mapped[str | None] = mapped_column(String(255))
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime)
    review_notes: Mapped[str | None] = mapped_column(Text)

    # ── Provenance (best effort) ───────────────────────────────
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(String(500))
    extra_metadata: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    @property
    def is_pending(self) -> bool:
        return self.status == LogStatus.PENDING.value

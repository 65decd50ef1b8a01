import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from goagri.database import Base


class Category(Base):
    __tablename__ = "categories"

    # Fields an update, approval commit or rejection restore may write.
    MUTABLE_FIELDS = ("category_name", "category_description", "image", "active")

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    category_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    category_description: Mapped[str | None] = mapped_column(Text)
    image: Mapped[str | None] = mapped_column(String(500))

    # False while a create awaits approval or a delete awaits approval
    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

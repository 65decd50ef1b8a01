"""Aggregate model imports for Alembic auto-detection."""

from goagri.models.user import User, UserRole  # noqa: F401
from goagri.models.category import Category  # noqa: F401
from goagri.models.product import Product  # noqa: F401
from goagri.models.delivery import Delivery  # noqa: F401
from goagri.models.activity_log import (  # noqa: F401
    ActionType,
    ActivityLog,
    EntityType,
    LogStatus,
)

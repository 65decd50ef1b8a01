"""Role checks and the approval gate.

The gate decides, from the caller's role alone, whether a mutating admin
action is applied immediately or deferred until a superadmin reviews it:

    superadmin      → applied now, logged AUTO_APPROVED
    any other role  → deferred, logged PENDING

It must run before the action is recorded so the log row is created
with the right `requires_approval` and `status`.
"""

from __future__ import annotations

from goagri.config import SUPERADMIN_ROLE

# Roles allowed to call the admin mutation endpoints at all
ADMIN_ROLES: set[str] = {"admin", SUPERADMIN_ROLE}


def is_superadmin(role: str | None) -> bool:
    return role == SUPERADMIN_ROLE


def requires_approval(role: str | None) -> bool:
    """Return True when an action by `role` must wait for superadmin review."""
    return not is_superadmin(role)

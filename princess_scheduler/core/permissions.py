from __future__ import annotations

from typing import Literal, Optional, get_args

from princess_scheduler.core.errors import OverrideError
from princess_scheduler.core.model import DateOverride


Role = Literal["admin", "agency", "client"]
Permission = Literal["edit_schedule", "unlock_dates"]

ALLOWED_ROLES: tuple[str, ...] = get_args(Role)

# Clients review the schedule but never edit it.
ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "admin": frozenset(get_args(Permission)),
    "agency": frozenset({"edit_schedule"}),
    "client": frozenset(),
}

ROLE_DISPLAY_NAMES: dict[str, str] = {
    "admin": "Administrator",
    "agency": "Agency Team",
    "client": "Client Team",
}


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def check_override_permission(role: Role, existing: Optional[DateOverride]) -> None:
    """Raise OverrideError unless role may change (or remove) the override on a stage.

    Editing needs edit_schedule; touching an already locked override also
    needs unlock_dates.
    """
    if role not in ROLE_PERMISSIONS:
        raise OverrideError(
            code="E_UNKNOWN_ROLE",
            message=f"unknown role: {role} (choose one of: {', '.join(ALLOWED_ROLES)})",
            path="role",
        )

    if not has_permission(role, "edit_schedule"):
        raise OverrideError(
            code="E_PERMISSION_DENIED",
            message=f"{ROLE_DISPLAY_NAMES[role]} cannot edit stage dates",
            path="role",
        )

    if existing is not None and existing.locked and not has_permission(role, "unlock_dates"):
        raise OverrideError(
            code="E_PERMISSION_DENIED",
            message=f"{ROLE_DISPLAY_NAMES[role]} cannot change the locked date on {existing.stage_id}",
            path=existing.stage_id,
        )

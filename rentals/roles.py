# rentals/roles.py
"""Staff roles and the capability table every workflow consults."""
from __future__ import annotations

from django.db import models


class Role(models.TextChoices):
    OWNER = "owner", "Owner"
    ADMIN = "admin", "Admin"
    EMPLOYEE = "employee", "Employee"
    GUIDE = "guide", "Guide"


APPROVE_PRICE_OVERRIDE = "approve_price_override"
DECIDE_EXTENSION = "decide_extension"
VOID_RENTAL = "void_rental"
BYPASS_APPROVAL_GATE = "bypass_approval_gate"

CAPABILITIES = {
    Role.OWNER: {APPROVE_PRICE_OVERRIDE, DECIDE_EXTENSION, VOID_RENTAL, BYPASS_APPROVAL_GATE},
    Role.ADMIN: {APPROVE_PRICE_OVERRIDE, DECIDE_EXTENSION, VOID_RENTAL, BYPASS_APPROVAL_GATE},
    Role.EMPLOYEE: set(),
    Role.GUIDE: set(),
}


def role_of(user) -> Role:
    """
    Role of a user: superusers and company owners are owners,
    everyone else takes the role of their StaffMember profile (employee if none).
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return Role.GUIDE
    if user.is_superuser:
        return Role.OWNER
    if hasattr(user, "company"):
        return Role.OWNER
    staff = getattr(user, "staff_profile", None)
    if staff is not None:
        return Role(staff.role)
    return Role.EMPLOYEE


def has_capability(user, capability: str) -> bool:
    return capability in CAPABILITIES[role_of(user)]


def can_approve_price_override(user) -> bool:
    return has_capability(user, APPROVE_PRICE_OVERRIDE)

"""
Roles and the capabilities each role grants.

The mapping is fixed; an identity resolves its capability set once
(see `capabilities_for`) instead of looking permissions up on every check.
Shared by the API (permission_required) and the session client.
"""
from __future__ import annotations

from enum import Enum
from typing import FrozenSet


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    EMPLOYEE = "employee"


class Capability(str, Enum):
    MANAGE_USERS = "manage_users"
    MANAGE_PACKAGES = "manage_packages"
    DELETE_PACKAGES = "delete_packages"
    CREATE_INVOICES = "create_invoices"
    EDIT_INVOICES = "edit_invoices"
    DOWNLOAD_INVOICES = "download_invoices"
    DELETE_HISTORY = "delete_history"


_STAFF = frozenset({
    Capability.CREATE_INVOICES,
    Capability.EDIT_INVOICES,
    Capability.DOWNLOAD_INVOICES,
})

_ADMIN = _STAFF | frozenset({
    Capability.MANAGE_USERS,
    Capability.MANAGE_PACKAGES,
    Capability.DELETE_PACKAGES,
    Capability.DELETE_HISTORY,
})

ROLE_CAPABILITIES: dict[Role, FrozenSet[Capability]] = {
    Role.SUPERADMIN: _ADMIN,
    Role.ADMIN: _ADMIN,
    Role.EMPLOYEE: _STAFF,
}

def parse_role(value) -> Role:
    """Return the Role for value; raises ValueError for anything outside the whitelist."""
    if isinstance(value, Role):
        return value
    return Role(str(value).strip().lower())


def capabilities_for(role) -> FrozenSet[Capability]:
    """Capability set of role; unknown roles get nothing."""
    try:
        return ROLE_CAPABILITIES[parse_role(role)]
    except ValueError:
        return frozenset()

"""
RBAC Policy

Staff roles form a closed set. Every rule that depends on a role reads the
policy table below instead of comparing role strings at the call site.

Roles:
- ADMIN: everything, including loyalty settings and staff management
- MANAGER: floor operations, settings, discounts
- CASHIER: orders, settlement and cash handling
- CHEF: kitchen display only; never handles cash, so no shift is required
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class StaffRole(str, Enum):
    """Staff roles."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"
    CHEF = "CHEF"


class Capability(str, Enum):
    """Capabilities checked by routes and services."""
    TAKE_ORDERS = "can_take_orders"
    SETTLE = "can_settle"
    VIEW_KITCHEN = "can_view_kitchen"
    ACCESS_SETTINGS = "can_access_settings"
    MANAGE_STAFF = "can_manage_staff"
    MANAGE_TABLES = "can_manage_tables"


@dataclass(frozen=True)
class RolePolicy:
    requires_shift: bool
    can_take_orders: bool
    can_settle: bool
    can_view_kitchen: bool
    can_access_settings: bool
    can_manage_staff: bool
    can_manage_tables: bool

    def allows(self, capability: Capability) -> bool:
        return bool(getattr(self, capability.value))


ROLE_POLICIES: Dict[StaffRole, RolePolicy] = {
    StaffRole.ADMIN: RolePolicy(
        requires_shift=True,
        can_take_orders=True,
        can_settle=True,
        can_view_kitchen=True,
        can_access_settings=True,
        can_manage_staff=True,
        can_manage_tables=True,
    ),
    StaffRole.MANAGER: RolePolicy(
        requires_shift=True,
        can_take_orders=True,
        can_settle=True,
        can_view_kitchen=True,
        can_access_settings=True,
        can_manage_staff=False,
        can_manage_tables=True,
    ),
    StaffRole.CASHIER: RolePolicy(
        requires_shift=True,
        can_take_orders=True,
        can_settle=True,
        can_view_kitchen=True,
        can_access_settings=False,
        can_manage_staff=False,
        can_manage_tables=False,
    ),
    StaffRole.CHEF: RolePolicy(
        requires_shift=False,
        can_take_orders=False,
        can_settle=False,
        can_view_kitchen=True,
        can_access_settings=False,
        can_manage_staff=False,
        can_manage_tables=False,
    ),
}


def policy_for(role: StaffRole) -> RolePolicy:
    """Get the policy for a role."""
    return ROLE_POLICIES[StaffRole(role)]

"""Terminal session context and login/logout.

A terminal's "who is logged in, which shift is open" state is an explicit
``TerminalSession`` value handed to every service call that needs it. The
API layer rebuilds it on each request from the bearer token and the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from dinepos.core.exceptions import NotFoundError, ValidationError
from dinepos.core.rbac_policy import Capability, RolePolicy, StaffRole, policy_for
from dinepos.core.security import verify_pin
from dinepos.models.catalog import Staff
from dinepos.models.shift import Shift, ShiftStatus
from dinepos.services import audit_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerminalSession:
    """Who is operating a terminal and which shift their takings belong to."""

    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    role: Optional[StaffRole] = None
    shift_id: Optional[str] = None

    @property
    def is_logged_in(self) -> bool:
        return self.staff_id is not None

    @property
    def actor(self) -> str:
        return self.staff_name or "System"

    @property
    def policy(self) -> Optional[RolePolicy]:
        return policy_for(self.role) if self.role else None

    def can(self, capability: Capability) -> bool:
        policy = self.policy
        return bool(policy and policy.allows(capability))


ANONYMOUS = TerminalSession()


def find_active_shift(db: Session, staff_id: str) -> Optional[Shift]:
    stmt = (
        select(Shift)
        .where(Shift.staff_id == staff_id, Shift.status == ShiftStatus.ACTIVE)
        .order_by(Shift.start_time.desc())
    )
    return db.execute(stmt).scalars().first()


class TerminalSessionService:
    """Staff login by id + PIN and the logout policy."""

    def __init__(self, db: Session):
        self.db = db

    def resume(self, staff_id: str) -> TerminalSession:
        """Rebuild the session of an already authenticated staff member."""
        staff = self.db.get(Staff, staff_id.upper())
        if staff is None or not staff.is_active:
            raise NotFoundError("Staff", staff_id)
        shift = find_active_shift(self.db, staff.id)
        return TerminalSession(
            staff_id=staff.id,
            staff_name=staff.name,
            role=staff.role,
            shift_id=shift.id if shift else None,
        )

    def login(self, staff_id: str, pin: str) -> TerminalSession:
        staff = self.db.get(Staff, (staff_id or "").strip().upper())
        if staff is None or not staff.is_active or not verify_pin(pin, staff.pin_hash):
            logger.info("Rejected login for staff id %s", staff_id)
            raise ValidationError("Invalid staff ID or PIN")

        session = self.resume(staff.id)
        audit_service.log_action(
            audit_service.LOGIN, f"{staff.name} ({staff.role.value}) logged in",
            actor=staff.name, db=self.db,
        )
        return session

    def logout(self, session: TerminalSession) -> TerminalSession:
        """End the terminal session.

        Staff whose role requires a shift must close it first so cash is
        never left unreconciled.
        """
        if not session.is_logged_in:
            return ANONYMOUS
        policy = session.policy
        if policy.requires_shift and find_active_shift(self.db, session.staff_id) is not None:
            raise ValidationError("Close your active shift before logging out")

        audit_service.log_action(
            audit_service.LOGOUT, f"{session.staff_name} logged out",
            actor=session.actor, db=self.db,
        )
        return ANONYMOUS

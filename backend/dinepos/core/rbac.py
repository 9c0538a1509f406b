"""Role-Based Access Control (RBAC) dependencies for routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from dinepos.core.exceptions import NotFoundError
from dinepos.core.rbac_policy import Capability
from dinepos.core.security import decode_access_token
from dinepos.db.session import DbSession
from dinepos.services.terminal_session import TerminalSession, TerminalSessionService


def get_terminal_session(request: Request, db: DbSession) -> TerminalSession:
    """Rebuild the terminal session from the bearer token.

    The token only names the staff member; the active shift is looked up in
    the store on every request so a shift started or closed on another
    terminal is seen at once.
    """
    payload = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            payload = decode_access_token(token)

    if payload is None or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return TerminalSessionService(db).resume(payload["sub"])
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Staff account is disabled",
        )


def require_capability(capability: Capability, needs_shift: bool = False):
    """Dependency requiring a role capability, and optionally an open shift."""

    def capability_checker(
        session: Annotated[TerminalSession, Depends(get_terminal_session)]
    ) -> TerminalSession:
        if not session.can(capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {session.role.value} cannot {capability.value.removeprefix('can_').replace('_', ' ')}",
            )
        if needs_shift and session.policy.requires_shift and not session.shift_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Start a shift first",
            )
        return session

    return capability_checker


CurrentSession = Annotated[TerminalSession, Depends(get_terminal_session)]
RequireOrders = Annotated[TerminalSession, Depends(require_capability(Capability.TAKE_ORDERS, needs_shift=True))]
RequireSettle = Annotated[TerminalSession, Depends(require_capability(Capability.SETTLE, needs_shift=True))]
RequireCounter = Annotated[TerminalSession, Depends(require_capability(Capability.SETTLE))]
RequireKitchen = Annotated[TerminalSession, Depends(require_capability(Capability.VIEW_KITCHEN))]
RequireSettings = Annotated[TerminalSession, Depends(require_capability(Capability.ACCESS_SETTINGS))]
RequireTables = Annotated[TerminalSession, Depends(require_capability(Capability.MANAGE_TABLES))]
RequireStaffAdmin = Annotated[TerminalSession, Depends(require_capability(Capability.MANAGE_STAFF))]

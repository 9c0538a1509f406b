"""Terminal authentication routes: staff id + PIN login and logout."""

import logging

from fastapi import APIRouter, Request

from dinepos.core.rate_limit import limiter
from dinepos.core.rbac import CurrentSession
from dinepos.core.security import create_access_token
from dinepos.db.session import DbSession
from dinepos.schemas.auth import StaffLoginRequest, TerminalSessionResponse, Token
from dinepos.services.terminal_session import TerminalSession, TerminalSessionService

logger = logging.getLogger(__name__)

router = APIRouter()


def session_response(session: TerminalSession) -> TerminalSessionResponse:
    return TerminalSessionResponse(
        staff_id=session.staff_id,
        staff_name=session.staff_name,
        role=session.role,
        shift_id=session.shift_id,
        requires_shift=bool(session.policy and session.policy.requires_shift),
    )


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
def login(request: Request, login_request: StaffLoginRequest, db: DbSession):
    """Authenticate a staff member and open a terminal session."""
    session = TerminalSessionService(db).login(login_request.staff_id, login_request.pin)
    token = create_access_token({"sub": session.staff_id, "role": session.role.value})
    client_ip = request.client.host if request.client else "unknown"
    logger.info(f"Staff {session.staff_id} logged in from {client_ip}")
    return Token(access_token=token, session=session_response(session))


@router.post("/logout")
@limiter.limit("30/minute")
def logout(request: Request, session: CurrentSession, db: DbSession):
    """End the terminal session; cash-handling roles must close their shift first."""
    TerminalSessionService(db).logout(session)
    return {"status": "logged_out"}


@router.get("/me", response_model=TerminalSessionResponse)
def current_session(session: CurrentSession):
    return session_response(session)

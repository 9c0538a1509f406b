"""Loyalty programme settings routes."""

from fastapi import APIRouter

from dinepos.core.rbac import CurrentSession, RequireSettings
from dinepos.db.session import DbSession
from dinepos.schemas.loyalty import LoyaltySettingsResponse, LoyaltySettingsUpdate
from dinepos.services.loyalty_service import LoyaltyLedger

router = APIRouter()


@router.get("/settings", response_model=LoyaltySettingsResponse)
def get_loyalty_settings(db: DbSession, session: CurrentSession):
    ledger = LoyaltyLedger(db)
    row = ledger.get_settings()
    db.commit()  # persist the seeded row
    return row


@router.put("/settings", response_model=LoyaltySettingsResponse)
def update_loyalty_settings(body: LoyaltySettingsUpdate, db: DbSession, session: RequireSettings):
    return LoyaltyLedger(db).update_settings(body.model_dump(exclude_unset=True), session)

"""Loyalty ledger.

Customers are keyed by phone. Every point movement is an append-only
``LoyaltyTransaction``; the customer's running balance is updated in the same
transaction as the append, and ``ledger_balance`` folds the history so the
two can be compared.
"""

from __future__ import annotations

import logging
import math
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.core.config import settings
from dinepos.core.exceptions import NotFoundError, StoreWriteError, ValidationError
from dinepos.core.money import ZERO, to_decimal
from dinepos.db.base import utcnow
from dinepos.models.customer import (
    Customer,
    LoyaltySettings,
    LoyaltyTransaction,
    LoyaltyTransactionType,
)
from dinepos.models.operations import AuditSeverity
from dinepos.services import audit_service
from dinepos.services.terminal_session import TerminalSession

logger = logging.getLogger(__name__)

_CREDIT_TYPES = {LoyaltyTransactionType.EARNED, LoyaltyTransactionType.ADJUSTMENT}
_DEBIT_TYPES = {LoyaltyTransactionType.REDEEMED, LoyaltyTransactionType.EXPIRED}


def new_transaction_id(kind: str) -> str:
    return f"tx_{int(time.time() * 1000)}_{kind}_{secrets.token_hex(3)}"


def points_for(final_total: Decimal, earning_rate: Decimal) -> int:
    """One point per ``earning_rate`` currency units, rounded down."""
    if final_total <= 0:
        return 0
    return int(math.floor(to_decimal(final_total) / to_decimal(earning_rate)))


def redeemable_points(points: int, total: Decimal, redemption_value: Decimal) -> int:
    """Points needed to cover the bill, limited by the balance."""
    if total <= 0 or points <= 0:
        return 0
    return min(points, int(math.ceil(to_decimal(total) / to_decimal(redemption_value))))


def ledger_balance(history: Iterable[LoyaltyTransaction]) -> int:
    balance = 0
    for tx in history:
        if tx.type in _CREDIT_TYPES:
            balance += tx.points
        elif tx.type in _DEBIT_TYPES:
            balance -= tx.points
    return balance


@dataclass
class LoyaltyEligibility:
    eligible: bool
    points: int
    max_redeemable_points: int
    max_discount: Decimal
    reason: Optional[str] = None


class LoyaltyLedger:
    """Customer point balances and the programme settings row."""

    def __init__(self, db: Session):
        self.db = db

    # ========== SETTINGS ==========

    def get_settings(self) -> LoyaltySettings:
        """The settings row, seeded from configuration on first use."""
        row = self.db.get(LoyaltySettings, 1)
        if row is None:
            row = LoyaltySettings(
                id=1,
                enabled=settings.loyalty_enabled,
                earning_rate=settings.loyalty_earning_rate,
                redemption_value=settings.loyalty_redemption_value,
                min_points_to_redeem=settings.loyalty_min_points_to_redeem,
                min_order_value_to_redeem=settings.loyalty_min_order_value_to_redeem,
                expiry_months=settings.loyalty_expiry_months,
            )
            self.db.add(row)
            self.db.flush()
        return row

    def update_settings(self, changes: Dict[str, Any], session: TerminalSession) -> LoyaltySettings:
        row = self.get_settings()
        try:
            for key, value in changes.items():
                if value is None or not hasattr(LoyaltySettings, key) or key in ("id", "updated_at"):
                    continue
                setattr(row, key, value)
        except ValueError as e:
            self.db.rollback()
            raise ValidationError(str(e)) from e
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreWriteError("Loyalty settings update", e.__class__.__name__) from e

        audit_service.log_action(
            audit_service.SETTINGS_UPDATE,
            f"Loyalty settings changed: {', '.join(sorted(k for k, v in changes.items() if v is not None))}",
            actor=session.actor, severity=AuditSeverity.WARNING, db=self.db,
        )
        return row

    # ========== CUSTOMERS ==========

    def get_customer(self, phone: str) -> Optional[Customer]:
        if not phone:
            return None
        return self.db.get(Customer, phone)

    def require_customer(self, phone: str) -> Customer:
        customer = self.get_customer(phone)
        if customer is None:
            raise NotFoundError("Customer", phone)
        return customer

    def eligibility(self, phone: Optional[str], bill_total: Decimal) -> LoyaltyEligibility:
        """Whether a bill of ``bill_total`` may be paid partly with points."""
        config = self.get_settings()
        customer = self.get_customer(phone) if phone else None
        points = customer.loyalty_points if customer else 0
        bill_total = to_decimal(bill_total)

        reason = None
        if not config.enabled:
            reason = "Loyalty programme is disabled"
        elif customer is None:
            reason = "No customer with this phone"
        elif bill_total < to_decimal(config.min_order_value_to_redeem):
            reason = f"Bill must be at least {config.min_order_value_to_redeem} to redeem"
        elif points < config.min_points_to_redeem:
            reason = f"At least {config.min_points_to_redeem} points needed to redeem"

        if reason:
            return LoyaltyEligibility(False, points, 0, ZERO, reason)

        value = to_decimal(config.redemption_value)
        max_points = redeemable_points(points, bill_total, value)
        return LoyaltyEligibility(True, points, max_points, max_points * value)

    # ========== SETTLEMENT FAN-OUT ==========

    def record_settlement(
        self,
        phone: str,
        order_id: str,
        final_total: Decimal,
        fully_paid: bool,
        redeemed_points: int = 0,
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
        delivery_address: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Customer:
        """Upsert the customer and append EARNED/REDEEMED entries.

        Does not commit: the caller owns the transaction.
        """
        config = self.get_settings()
        now = now or utcnow()

        customer = self.get_customer(phone)
        if customer is None:
            customer = Customer(
                phone=phone,
                name=customer_name or "Guest",
                first_visit=now,
                loyalty_points=0,
                total_points_earned=0,
                total_points_redeemed=0,
            )
            self.db.add(customer)
        elif customer_name:
            customer.name = customer_name
        if customer_email:
            customer.email = customer_email
        if delivery_address:
            customer.address = delivery_address

        if redeemed_points:
            if redeemed_points > customer.loyalty_points:
                raise ValidationError(
                    f"Cannot redeem {redeemed_points} points, balance is {customer.loyalty_points}"
                )
            customer.loyalty_history.append(LoyaltyTransaction(
                id=new_transaction_id("redeem"),
                date=now,
                type=LoyaltyTransactionType.REDEEMED,
                points=redeemed_points,
                order_id=order_id,
                description=f"Redeemed on order {order_id}",
            ))
            customer.loyalty_points -= redeemed_points
            customer.total_points_redeemed += redeemed_points

        earned = points_for(to_decimal(final_total), config.earning_rate) if fully_paid else 0
        if earned:
            customer.loyalty_history.append(LoyaltyTransaction(
                id=new_transaction_id("earn"),
                date=now,
                type=LoyaltyTransactionType.EARNED,
                points=earned,
                order_id=order_id,
                description=f"Earned on order {order_id}",
                expiry_date=now + relativedelta(months=config.expiry_months),
            ))
            customer.loyalty_points += earned
            customer.total_points_earned += earned

        customer.last_visit = now
        logger.debug(f"Loyalty for {phone}: +{earned} -{redeemed_points} on {order_id}")
        return customer

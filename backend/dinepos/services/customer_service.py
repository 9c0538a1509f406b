"""Customer profiles (CRM).

Customers are created at settlement; here staff edit the profile fields.
Loyalty balances are never edited from here, only through the ledger.
"""

import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.core.exceptions import NotFoundError, StoreWriteError, ValidationError
from dinepos.models.customer import Customer
from dinepos.services import audit_service
from dinepos.services.terminal_session import TerminalSession

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "email", "address", "notes")


class CustomerService:
    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, phone: str) -> Customer:
        customer = self.db.get(Customer, phone)
        if customer is None:
            raise NotFoundError("Customer", phone)
        return customer

    def search(self, term: Optional[str] = None, limit: int = 50) -> List[Customer]:
        stmt = select(Customer).order_by(Customer.name).limit(limit)
        if term:
            pattern = f"%{term.strip()}%"
            stmt = stmt.where(or_(Customer.name.ilike(pattern), Customer.phone.like(pattern)))
        return list(self.db.execute(stmt).scalars())

    def update_customer(self, phone: str, session: TerminalSession, **fields) -> Customer:
        """Change profile fields. Blank optional fields are cleared."""
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit {', '.join(sorted(unknown))} on a customer")
        customer = self.get_customer(phone)

        changed = []
        for key, value in fields.items():
            value = value.strip() if isinstance(value, str) else value
            if key == "name":
                if not value:
                    raise ValidationError("Customer name cannot be blank")
            else:
                value = value or None
            if getattr(customer, key) != value:
                setattr(customer, key, value)
                changed.append(key)

        if not changed:
            return customer
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreWriteError("Customer update", e.__class__.__name__) from e

        audit_service.log_action(
            audit_service.CUSTOMER_UPDATE, f"Customer {customer.phone} updated: {', '.join(changed)}",
            actor=session.actor, db=self.db,
        )
        return customer

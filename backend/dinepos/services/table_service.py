"""Floor, catalog and staff maintenance plus the table occupancy view."""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dinepos.core.config import settings
from dinepos.core.exceptions import NotFoundError, StoreWriteError, ValidationError
from dinepos.core.money import ZERO
from dinepos.core.rbac_policy import StaffRole
from dinepos.core.security import get_pin_hash
from dinepos.models.catalog import DiningTable, Product, Staff
from dinepos.models.operations import AuditSeverity
from dinepos.models.order import Order, OrderStatus
from dinepos.services import audit_service
from dinepos.services.terminal_session import TerminalSession, find_active_shift

logger = logging.getLogger(__name__)


def table_id_for(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip())


@dataclass
class TableStatus:
    table_id: str
    name: str
    floor: str
    is_delivery: bool
    status: str  # AVAILABLE / OCCUPIED
    order_id: Optional[str] = None
    order_total: Decimal = ZERO


class TableService:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError(f"{operation} conflicts with an existing record") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreWriteError(operation, e.__class__.__name__) from e

    def add_table(self, name: str, floor: str = "Ground Floor") -> DiningTable:
        if not name or not name.strip():
            raise ValidationError("Table name is required")
        table_id = table_id_for(name)
        if self.db.get(DiningTable, table_id) is not None:
            raise ValidationError(f"Table '{name.strip()}' already exists")
        table = DiningTable(id=table_id, name=name.strip(), floor=floor or "Ground Floor")
        self.db.add(table)
        self._commit("Table add")
        return table

    def remove_table(self, table_id: str, session: TerminalSession) -> None:
        """Delete a table. Orders keep their table id as history."""
        table = self.db.get(DiningTable, table_id)
        if table is None:
            raise NotFoundError("Table", table_id)
        self.db.delete(table)
        self._commit("Table removal")
        audit_service.log_action(
            audit_service.TABLE_REMOVE, f"Table {table.name} ({table.floor}) removed",
            actor=session.actor, severity=AuditSeverity.WARNING, db=self.db,
        )

    def table_status(self) -> List[TableStatus]:
        """Each table with the order that currently occupies it, if any."""
        active = {
            order.table_id: order
            for order in self.db.execute(
                select(Order).where(Order.status == OrderStatus.OPEN)
            ).scalars()
        }
        statuses = []
        tables = self.db.execute(select(DiningTable).order_by(DiningTable.floor, DiningTable.name)).scalars()
        for table in tables:
            order = active.get(table.id)
            statuses.append(TableStatus(
                table_id=table.id,
                name=table.name,
                floor=table.floor,
                is_delivery=table.is_delivery,
                status="OCCUPIED" if order else "AVAILABLE",
                order_id=order.id if order else None,
                order_total=order.total if order else ZERO,
            ))
        return statuses

    def add_product(self, product_id: str, name: str, price: Decimal, **fields) -> Product:
        if self.db.get(Product, product_id) is not None:
            raise ValidationError(f"Product '{product_id}' already exists")
        product = Product(id=product_id, name=name, price=price, **fields)
        self.db.add(product)
        self._commit("Product add")
        logger.info(f"Product {product.id} added at {product.price}")
        return product

    def list_products(self) -> List[Product]:
        return list(self.db.execute(select(Product).order_by(Product.category, Product.name)).scalars())

    def add_staff(
        self,
        staff_id: str,
        name: str,
        pin: str,
        role: StaffRole,
        session: Optional[TerminalSession] = None,
    ) -> Staff:
        if not pin or len(pin) < 4:
            raise ValidationError("PIN must have at least 4 digits")
        staff_id = staff_id.strip().upper()
        if self.db.get(Staff, staff_id) is not None:
            raise ValidationError(f"Staff id {staff_id} is already taken")
        staff = Staff(id=staff_id, name=name, pin_hash=get_pin_hash(pin), role=StaffRole(role))
        self.db.add(staff)
        self._commit("Staff add")
        audit_service.log_action(
            audit_service.STAFF_ADD, f"Staff {staff.name} ({staff.id}) added as {staff.role.value}",
            actor=session.actor if session else "System", db=self.db,
        )
        return staff

    def remove_staff(self, staff_id: str, session: TerminalSession) -> None:
        """Delete a staff member. The default super admin always stays."""
        staff_id = (staff_id or "").strip().upper()
        if staff_id == settings.super_admin_id.upper():
            raise ValidationError("Cannot delete the default super admin")
        staff = self.db.get(Staff, staff_id)
        if staff is None:
            raise NotFoundError("Staff", staff_id)
        if find_active_shift(self.db, staff_id) is not None:
            raise ValidationError(f"{staff.name} has an active shift, close it first")

        self.db.delete(staff)
        self._commit("Staff removal")
        audit_service.log_action(
            audit_service.STAFF_REMOVE, f"Staff member removed: {staff.name} ({staff_id})",
            actor=session.actor, severity=AuditSeverity.WARNING, db=self.db,
        )

    def ensure_super_admin(self) -> Optional[Staff]:
        """Create the default super admin when the staff list is empty."""
        if self.db.execute(select(Staff.id).limit(1)).first() is not None:
            return None
        admin = self.add_staff(
            settings.super_admin_id, settings.super_admin_name, settings.super_admin_pin, StaffRole.ADMIN,
        )
        logger.warning(f"No staff found, created default super admin {admin.id}; change its PIN")
        return admin

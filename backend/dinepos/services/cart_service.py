"""Cart aggregation for a terminal.

The cart is terminal-local state: nothing here touches the store. Lines
merge on ``(product_id, variant signature)`` and carry the unit price
resolved when the line was first added.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from dinepos.core.exceptions import NotFoundError, ValidationError
from dinepos.core.money import ZERO, money_sum, to_decimal
from dinepos.models.catalog import Product


def variant_signature(selection: Optional[Mapping[str, Mapping]]) -> str:
    """``groupId:optionId`` pairs sorted by group id and joined with ``|``."""
    if not selection:
        return ""
    return "|".join(f"{group_id}:{selection[group_id]['id']}" for group_id in sorted(selection))


def line_key(product_id: str, selection: Optional[Mapping[str, Mapping]] = None) -> str:
    signature = variant_signature(selection)
    return f"{product_id}_{signature}" if signature else product_id


def resolve_variants(product: Product, selection: Optional[Mapping[str, str]]) -> Dict[str, dict]:
    """Turn ``{group_id: option_id}`` into option snapshots keyed by group id."""
    resolved: Dict[str, dict] = {}
    for group_id, option_id in (selection or {}).items():
        group = product.variant_group(group_id)
        if group is None:
            raise ValidationError(f"Product {product.id} has no variant group '{group_id}'")
        option = next((o for o in group.get("options", []) if o.get("id") == option_id), None)
        if option is None:
            raise ValidationError(f"Variant group '{group_id}' has no option '{option_id}'")
        resolved[group_id] = {
            "id": option["id"],
            "name": option.get("name", ""),
            "group_name": group.get("name", ""),
            "price_modifier": str(to_decimal(option.get("price_modifier", 0))),
        }
    return resolved


@dataclass
class CartLine:
    key: str
    product_id: str
    name: str
    unit_price: Decimal
    qty: int = 1
    category: Optional[str] = None
    tax_rate: Optional[Decimal] = None
    is_veg: bool = False
    variants: Dict[str, dict] = field(default_factory=dict)
    notes: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.qty


class Cart:
    """Lines a waiter has picked but not yet sent to the kitchen."""

    def __init__(self):
        self._lines: Dict[str, CartLine] = {}

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def subtotal(self) -> Decimal:
        return money_sum(line.line_total for line in self._lines.values())

    def add_line(
        self,
        product: Product,
        selection: Optional[Mapping[str, str]] = None,
        quantity: int = 1,
        note: Optional[str] = None,
    ) -> CartLine:
        """Add ``quantity`` units, merging with an identical existing line."""
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if not product.is_available:
            raise ValidationError(f"{product.name} is out of stock")

        variants = resolve_variants(product, selection)
        key = line_key(product.id, variants)
        existing = self._lines.get(key)
        if existing is not None:
            existing.qty += quantity
            if note:
                existing.notes = note
            return existing

        unit_price = to_decimal(product.price) + money_sum(
            v["price_modifier"] for v in variants.values()
        )
        line = CartLine(
            key=key,
            product_id=product.id,
            name=product.name,
            unit_price=max(unit_price, ZERO),
            qty=quantity,
            category=product.category,
            tax_rate=product.tax_rate,
            is_veg=product.is_veg,
            variants=variants,
            notes=note,
        )
        self._lines[key] = line
        return line

    def set_quantity(self, key: str, qty: int) -> Optional[CartLine]:
        """Replace a line's quantity; zero or less removes the line."""
        if key not in self._lines:
            raise NotFoundError("Cart line", key)
        if qty <= 0:
            self.remove_line(key)
            return None
        line = self._lines[key]
        line.qty = qty
        return line

    def set_note(self, key: str, note: Optional[str]) -> CartLine:
        if key not in self._lines:
            raise NotFoundError("Cart line", key)
        self._lines[key].notes = note or None
        return self._lines[key]

    def remove_line(self, key: str) -> None:
        self._lines.pop(key, None)

    def clear(self) -> None:
        self._lines.clear()

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Any


MONEY_PLACES = Decimal("0.01")


def quantize_money(amount: Decimal) -> Decimal:
    return amount.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value).strip().replace(",", "."))


@dataclass(frozen=True)
class Personalization:
    label: str = ""
    name: str = ""
    type: str = "text"
    value: str | list[str] | None = None
    file: str | None = None


@dataclass(frozen=True)
class LineItem:
    id: int
    cart_item_id: str
    unit_price: Decimal
    quantity: int = 1
    unit_price_reduced: Decimal | None = None
    title: str = ""
    personalization: tuple[Personalization, ...] = field(default_factory=tuple)

    @property
    def effective_unit_price(self) -> Decimal:
        if self.unit_price_reduced is not None:
            return self.unit_price_reduced
        return self.unit_price

    @property
    def subtotal(self) -> Decimal:
        return quantize_money(self.effective_unit_price * self.quantity)


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    item_count: int


class CartLedger:
    """Line items of the shopper's cart and the totals derived from them.

    Quantities below 1 are clamped, never rejected. Listeners registered with
    ``subscribe`` are called after every mutation.
    """

    def __init__(self, items: list[LineItem] | None = None) -> None:
        self._items: list[LineItem] = []
        self._listeners: list[Callable[[CartLedger], None]] = []
        for item in items or []:
            self._append(item)

    @property
    def items(self) -> list[LineItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def subscribe(self, listener: Callable[[CartLedger], None]) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Callable[[CartLedger], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _index(self, cart_item_id: str) -> int | None:
        key = str(cart_item_id)
        for i, item in enumerate(self._items):
            if item.cart_item_id == key:
                return i
        return None

    def _append(self, item: LineItem) -> None:
        item = replace(
            item,
            cart_item_id=str(item.cart_item_id or item.id),
            quantity=max(1, int(item.quantity or 1)),
            unit_price=max(Decimal("0"), to_decimal(item.unit_price)),
            unit_price_reduced=(
                max(Decimal("0"), to_decimal(item.unit_price_reduced))
                if item.unit_price_reduced not in (None, "")
                else None
            ),
        )
        idx = self._index(item.cart_item_id)
        if idx is None:
            self._items.append(item)
        else:
            existing = self._items[idx]
            self._items[idx] = replace(existing, quantity=existing.quantity + item.quantity)

    def add_item(self, item: LineItem) -> None:
        self._append(item)
        self._changed()

    def update_quantity(self, cart_item_id: str, qty: int) -> None:
        idx = self._index(cart_item_id)
        if idx is None:
            return
        qty_i = max(1, int(qty))
        if self._items[idx].quantity == qty_i:
            return
        self._items[idx] = replace(self._items[idx], quantity=qty_i)
        self._changed()

    def remove_item(self, cart_item_id: str) -> None:
        idx = self._index(cart_item_id)
        if idx is None:
            return
        del self._items[idx]
        self._changed()

    def clear(self) -> None:
        if not self._items:
            return
        self._items = []
        self._changed()

    def line_subtotal(self, cart_item_id: str) -> Decimal:
        idx = self._index(cart_item_id)
        if idx is None:
            return Decimal("0.00")
        return self._items[idx].subtotal

    def totals(self) -> CartTotals:
        subtotal = sum((item.effective_unit_price * item.quantity for item in self._items), Decimal("0"))
        return CartTotals(
            subtotal=quantize_money(subtotal),
            item_count=sum(item.quantity for item in self._items),
        )

    def signature(self) -> str:
        # Content-derived key used to detect when an applied coupon needs revalidation.
        return "|".join(f"{item.id}:{item.cart_item_id}:{item.quantity}" for item in self._items)

from __future__ import annotations

from decimal import Decimal

from ninja import Schema


class QuoteItemIn(Schema):
    id: int
    cart_item_id: str | None = None
    quantity: int = 1
    unit_price: Decimal
    unit_price_reduced: Decimal | None = None


class QuoteIn(Schema):
    items: list[QuoteItemIn]
    delivery_method: str = "sameday"
    coupon_discount: Decimal = Decimal("0")
    county: str = ""
    locality: str = ""
    commune: str | None = None


class QuoteOut(Schema):
    currency: str = "RON"
    subtotal: Decimal
    item_count: int
    coupon_discount: Decimal
    discounted_subtotal: Decimal
    shipping: Decimal
    free_shipping: bool
    total: Decimal
    extra_km: Decimal

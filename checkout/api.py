from __future__ import annotations

from decimal import Decimal

from ninja import Router
from ninja.errors import HttpError

from shipping.datasets import get_address_resolver
from shipping.services import ShippingResolver

from .cart import CartLedger, LineItem, quantize_money
from .schemas import QuoteIn, QuoteOut


router = Router(tags=["checkout"])


@router.post("/quote", response=QuoteOut)
def checkout_quote(request, payload: QuoteIn):
    ledger = CartLedger([
        LineItem(
            id=it.id,
            cart_item_id=str(it.cart_item_id or it.id),
            quantity=it.quantity,
            unit_price=it.unit_price,
            unit_price_reduced=it.unit_price_reduced,
        )
        for it in payload.items
    ])
    cart = ledger.totals()

    resolver = get_address_resolver()
    county_code = resolver.county_code_for(payload.county) if payload.county else ""
    if payload.county and not county_code:
        raise HttpError(400, "Unknown county")

    discount = min(max(Decimal(payload.coupon_discount), Decimal("0")), cart.subtotal)
    discounted = cart.subtotal - discount

    shipping = ShippingResolver(resolver=resolver)
    if shipping.is_pickup(payload.delivery_method) and not shipping.is_local_pickup_eligible(county_code):
        raise HttpError(400, "In-person pickup is only available in Ilfov and Bucuresti")
    try:
        quote = shipping.quote(
            payload.delivery_method,
            discounted,
            county_code=county_code,
            locality=payload.locality,
            commune=payload.commune,
        )
    except ValueError as exc:
        raise HttpError(400, str(exc))

    return QuoteOut(
        subtotal=cart.subtotal,
        item_count=cart.item_count,
        coupon_discount=quantize_money(discount),
        discounted_subtotal=quantize_money(discounted),
        shipping=quote.fee,
        free_shipping=quote.free_shipping,
        total=quantize_money(discounted + quote.fee),
        extra_km=quote.extra_km,
    )

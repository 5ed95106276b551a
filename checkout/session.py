from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from accounts.services import CustomerLookup
from promotions.coupons import CouponNotice, CouponValidator
from shipping.localities import AddressResolver
from shipping.lockers import LockerDirectory, LockerMatcher
from shipping.services import ShippingResolver
from storefront.client import StorefrontApiError, StorefrontClient

from .addresses import AddressBook, project_shipping
from .cart import CartLedger, quantize_money
from .drafts import CheckoutDraft, CheckoutDraftStore, CompanyInfo
from .orders import CheckoutIncomplete, OrderResult, OrderSubmissionError, build_order_payload
from .storage import KeyValueStore
from .validation import missing_fields, report_missing_fields


logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("ramburs", "transfer")
CUSTOMER_TYPES = ("individual", "company")
MSG_ORDER_FAILED = "Could not create the order."
MSG_ORDER_UNREACHABLE = "Could not send the order. Please try again."
MSG_PICKUP_UNAVAILABLE = "In-person pickup is only available in Ilfov and Bucuresti."


@dataclass(frozen=True)
class CheckoutTotals:
    subtotal: Decimal
    item_count: int
    coupon_discount: Decimal
    discounted_subtotal: Decimal
    shipping: Decimal
    total: Decimal
    extra_km: Decimal = Decimal("0")


class CheckoutSession:
    """One shopper's checkout: cart, coupon, addresses, delivery and draft.

    The session is the single owner of all checkout state and is driven from
    one event loop; every mutating call re-derives the locker selection and
    persists the encrypted draft.
    """

    def __init__(
        self,
        *,
        ledger: CartLedger,
        resolver: AddressResolver,
        lockers: LockerDirectory,
        store: KeyValueStore,
        client: StorefrontClient | None = None,
        shipping: ShippingResolver | None = None,
        coupon_delay: float | None = None,
        lookup_delay: float | None = None,
        notify: Callable[[CouponNotice], None] | None = None,
    ) -> None:
        self._client = client
        self.ledger = ledger
        self.resolver = resolver
        self.shipping = shipping or ShippingResolver(resolver=resolver)
        if self.shipping.resolver is None:
            self.shipping.resolver = resolver
        self.addresses = AddressBook(resolver)
        self.lockers = LockerMatcher(lockers, resolver, locker_methods=self.shipping.cfg.locker_methods)
        self.coupon = CouponValidator(ledger, client, store=store, delay=coupon_delay, notify=notify)
        self.customer = CustomerLookup(client, delay=lookup_delay)
        self.drafts = CheckoutDraftStore(store)

        self.delivery_method = self.shipping.cfg.default_method
        self.payment_method = PAYMENT_METHODS[0]
        self.customer_type = CUSTOMER_TYPES[0]
        self.company = CompanyInfo()
        self.order_note = ""
        self.terms_accepted = False
        self.locker_query = ""
        self.completed: OrderResult | None = None
        self._submitting = False

    @property
    def client(self) -> StorefrontClient:
        if self._client is None:
            self._client = StorefrontClient()
        return self._client

    # --- draft ---

    def hydrate(self) -> bool:
        draft = self.drafts.hydrate()
        if draft is not None:
            self.addresses.load(
                billing=draft.billing,
                shipping=draft.shipping,
                use_different_shipping=draft.use_different_shipping,
            )
            if draft.delivery_method in self.shipping.cfg.rates:
                self.delivery_method = draft.delivery_method
            if draft.payment_method in PAYMENT_METHODS:
                self.payment_method = draft.payment_method
            if draft.customer_type in CUSTOMER_TYPES:
                self.customer_type = draft.customer_type
            self.company = draft.company
            self.locker_query = draft.locker_query
            self._enforce_pickup_area()
            self._refresh_lockers()
            if draft.selected_locker_id:
                self.lockers.restore(draft.selected_locker_id)
            self._apply_locker()
        self.coupon.restore()
        return draft is not None

    def draft(self) -> CheckoutDraft:
        return CheckoutDraft(
            billing=self.addresses.billing,
            shipping=self.addresses.shipping,
            company=self.company,
            customer_type=self.customer_type,
            delivery_method=self.delivery_method,
            payment_method=self.payment_method,
            use_different_shipping=self.addresses.use_different_shipping,
            selected_locker_id=self.lockers.selected_id,
            locker_query=self.locker_query,
        )

    def _changed(self) -> None:
        self._enforce_pickup_area()
        self._refresh_lockers()
        self._apply_locker()
        if self.completed is None:
            self.drafts.persist(self.draft())

    # --- form input ---

    def update_billing(self, **changes: Any) -> None:
        previous_email = self.addresses.billing.email
        self.addresses.update_billing(**changes)
        if "email" in changes and self.addresses.billing.email.strip() != previous_email.strip():
            self.customer.check(self.addresses.billing.email)
        self._changed()

    def update_shipping(self, **changes: Any) -> None:
        self.addresses.update_shipping(**changes)
        self._changed()

    def set_use_different_shipping(self, flag: bool) -> None:
        if not flag and self.shipping.is_locker(self.delivery_method):
            raise ValueError("Locker delivery needs its own shipping address")
        self.addresses.set_use_different_shipping(flag)
        self._changed()

    def set_delivery_method(self, method: str) -> None:
        method = (method or "").strip().lower()
        self.shipping.base_rate(method)
        if self.shipping.is_pickup(method) and not self.pickup_available():
            raise ValueError(MSG_PICKUP_UNAVAILABLE)
        leaving_locker = self.shipping.is_locker(self.delivery_method) and not self.shipping.is_locker(method)
        self.delivery_method = method

        if self.shipping.is_locker(method):
            if not self.addresses.use_different_shipping:
                self.addresses.set_use_different_shipping(True)
            if self.addresses.is_shipping_empty():
                self.addresses.set_shipping(replace(project_shipping(self.addresses.billing), commune=""))
        elif leaving_locker and self.addresses.use_different_shipping:
            self.addresses.set_shipping(self.lockers.strip_marker(self.addresses.shipping))
        self._changed()

    def select_locker(self, locker_id: str) -> None:
        locker = self.lockers.select(locker_id)
        self.locker_query = locker.label
        self._changed()

    def set_payment_method(self, method: str) -> None:
        if method not in PAYMENT_METHODS:
            raise ValueError(f"Unsupported payment method: {method}")
        self.payment_method = method
        self._changed()

    def set_customer_type(self, customer_type: str) -> None:
        if customer_type not in CUSTOMER_TYPES:
            raise ValueError(f"Unsupported customer type: {customer_type}")
        self.customer_type = customer_type
        self._changed()

    def update_company(self, **changes: str) -> None:
        self.company = replace(self.company, **{k: str(v or "") for k, v in changes.items()})
        self._changed()

    # --- delivery area ---

    def pickup_available(self) -> bool:
        return self.shipping.is_local_pickup_eligible(self.addresses.delivery_address.county)

    def _enforce_pickup_area(self) -> None:
        if not self.shipping.is_pickup(self.delivery_method) or self.pickup_available():
            return
        fallback = self.shipping.cfg.default_method
        logger.info(
            "Pickup not offered for the delivery county, switching method",
            extra={"county": self.addresses.delivery_address.county, "delivery_method": fallback},
        )
        self.delivery_method = fallback

    # --- lockers ---

    def _refresh_lockers(self) -> None:
        address = self.addresses.delivery_address
        before = self.lockers.selected_id
        self.lockers.refresh(self.delivery_method, address.county, address.locality)
        if self.lockers.selected_id != before:
            self.locker_query = self.lockers.selected.label if self.lockers.selected else ""

    def _apply_locker(self) -> None:
        if not self.shipping.is_locker(self.delivery_method) or self.lockers.selected is None:
            return
        if self.addresses.use_different_shipping:
            self.addresses.set_shipping(self.lockers.apply_to_address(self.addresses.shipping))
        billing = self.lockers.fill_postcode(self.addresses.billing)
        if billing.postcode != self.addresses.billing.postcode:
            self.addresses.update_billing(postcode=billing.postcode)

    # --- totals ---

    def totals(self) -> CheckoutTotals:
        cart = self.ledger.totals()
        discount = min(self.coupon.total_discount, cart.subtotal)
        discounted = max(Decimal("0.00"), cart.subtotal - discount)
        address = self.addresses.delivery_address
        quote = self.shipping.quote(
            self.delivery_method,
            discounted,
            county_code=address.county,
            locality=address.locality,
            commune=address.commune or None,
        )
        return CheckoutTotals(
            subtotal=cart.subtotal,
            item_count=cart.item_count,
            coupon_discount=quantize_money(discount),
            discounted_subtotal=quantize_money(discounted),
            shipping=quote.fee,
            total=quantize_money(discounted + quote.fee),
            extra_km=quote.extra_km,
        )

    # --- submission ---

    def missing_fields(self) -> list[str]:
        missing = missing_fields(self.draft(), terms_accepted=self.terms_accepted)
        if self.shipping.is_locker(self.delivery_method) and self.lockers.selected is None:
            missing.append("Locker")
        if not len(self.ledger):
            missing.append("Cart")
        return missing

    def build_order_payload(self) -> dict[str, Any]:
        return build_order_payload(
            draft=self.draft(),
            items=self.ledger.items,
            shipping=self.shipping,
            coupon_code=self.coupon.applied_code,
            locker=self.lockers.selected,
            order_note=self.order_note,
        )

    async def submit(self) -> OrderResult:
        if self._submitting:
            raise OrderSubmissionError("An order submission is already in progress.")
        missing = self.missing_fields()
        if missing:
            report_missing_fields(missing)
            raise CheckoutIncomplete(missing)

        self._submitting = True
        try:
            # The order must carry a coupon validated against the cart as it is now.
            await self.coupon.revalidate_if_stale()
            payload = self.build_order_payload()
            response = await asyncio.to_thread(self.client.create_order, payload=payload)
        except StorefrontApiError as exc:
            logger.warning("Order submission failed", extra={"error": str(exc)})
            raise OrderSubmissionError(MSG_ORDER_UNREACHABLE) from exc
        finally:
            self._submitting = False

        if not response.success:
            raise OrderSubmissionError(response.message or MSG_ORDER_FAILED)

        order = response.order
        result = OrderResult(
            number=str(order.number or "") if order else "",
            key=str(order.key or "") if order else "",
            message=response.message or "",
        )
        self.completed = result
        # Nothing of this order may carry over into the next one.
        self.drafts.clear()
        self.coupon.clear()
        self.ledger.clear()
        logger.info("Order submitted", extra={"order_number": result.number})
        return result

    def close(self) -> None:
        self.coupon.close()
        self.customer.close()

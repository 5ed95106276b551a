from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.db import models

from checkout.cart import CartLedger, quantize_money
from storefront.client import StorefrontApiError, StorefrontClient
from storefront.schemas import CouponProductRequest, CouponVerifyRequest, CouponVerifyResponse
from storefront.timers import Debouncer


logger = logging.getLogger(__name__)

MSG_ENTER_CODE = "Enter a coupon code."
MSG_INVALID = "Invalid coupon."
MSG_NO_PRODUCTS = "The coupon does not apply to any product in the cart."
MSG_PRODUCT_NOT_ELIGIBLE = "The coupon does not apply to this product."
MSG_APPLIED = "Coupon applied."
MSG_CHECK_FAILED = "Could not verify the coupon. Please try again."


class CouponState(models.TextChoices):
    IDLE = "idle", "Idle"
    VALIDATING = "validating", "Validating"
    APPLIED = "applied", "Applied"
    REJECTED = "rejected", "Rejected"
    INVALIDATED = "invalidated", "Invalidated"


@dataclass(frozen=True)
class IneligibleProduct:
    title: str
    reason: str


@dataclass(frozen=True)
class CouponResult:
    code: str
    valid: bool
    reason: str = ""
    discount_text: str = ""
    conditions: tuple[str, ...] = ()
    total_discount: Decimal = Decimal("0.00")
    has_applicable_products: bool = False
    invalid_products: tuple[IneligibleProduct, ...] = field(default_factory=tuple)

    @property
    def applied(self) -> bool:
        return self.valid and self.has_applicable_products


@dataclass(frozen=True)
class CouponNotice:
    kind: str  # "success" | "error"
    message: str


def interpret_response(*, code: str, response: CouponVerifyResponse, subtotal: Decimal) -> CouponResult:
    valid = bool(response.cupon.valid)
    has_applicable = any(bool(p.valabil_cupon) for p in response.produse)
    invalid = tuple(
        IneligibleProduct(
            title=p.titlu or "Product",
            reason=p.reason or MSG_PRODUCT_NOT_ELIGIBLE,
        )
        for p in response.produse
        if not p.valabil_cupon
    )

    reason = ""
    if not valid:
        reason = response.cupon.reason or MSG_INVALID
    elif not has_applicable:
        reason = MSG_NO_PRODUCTS

    discount = Decimal("0.00")
    if valid and has_applicable:
        raw = Decimal(response.totals.total_discount or 0)
        discount = quantize_money(min(max(raw, Decimal("0")), Decimal(subtotal)))

    return CouponResult(
        code=code,
        valid=valid,
        reason=reason,
        discount_text=response.cupon.discount_text or "",
        conditions=tuple(str(c) for c in response.cupon.conditii),
        total_discount=discount,
        has_applicable_products=has_applicable,
        invalid_products=invalid,
    )


class CouponValidator:
    """Coupon lifecycle for one cart.

    IDLE -> VALIDATING -> APPLIED | REJECTED, and APPLIED -> INVALIDATED when
    the cart signature drifts; the drift schedules a silent revalidation after
    the debounce window. Each submission carries a generation number and only
    the latest generation may change state.
    """

    def __init__(
        self,
        ledger: CartLedger,
        client: StorefrontClient | None = None,
        *,
        store=None,
        storage_key: str | None = None,
        delay: float | None = None,
        notify: Callable[[CouponNotice], None] | None = None,
    ) -> None:
        self.ledger = ledger
        self._client = client
        self.store = store
        self.storage_key = storage_key or getattr(settings, "COUPON_STORAGE_KEY", "cartCouponCode")
        if delay is None:
            delay = float(getattr(settings, "COUPON_REVALIDATE_DELAY_SECONDS", 0.45))
        self._debouncer = Debouncer(delay)
        self._notify = notify

        self.state: str = CouponState.IDLE
        self.applied_code: str | None = None
        self.result: CouponResult | None = None
        self.notice: CouponNotice | None = None

        self._generation = 0
        self._validated_signature: str | None = None
        self._closed = False

        self._listener = lambda _ledger: self.cart_changed()
        ledger.subscribe(self._listener)

    @property
    def client(self) -> StorefrontClient:
        if self._client is None:
            self._client = StorefrontClient()
        return self._client

    @property
    def total_discount(self) -> Decimal:
        if self.state not in (CouponState.APPLIED, CouponState.INVALIDATED) or self.result is None:
            return Decimal("0.00")
        subtotal = self.ledger.totals().subtotal
        return quantize_money(min(self.result.total_discount, subtotal))

    @property
    def revalidation_pending(self) -> bool:
        return self._debouncer.pending

    # --- messages ---

    async def apply(self, code: str) -> str:
        trimmed = (code or "").strip()
        self._debouncer.cancel()
        self._discard()
        if not trimmed:
            self._generation += 1
            self._set_code(None)
            self.state = CouponState.REJECTED
            self._emit(CouponNotice("error", MSG_ENTER_CODE))
            return self.state

        # Recorded before the response so a second submission cannot race it.
        self._set_code(trimmed)
        self._validated_signature = self.ledger.signature()
        await self._validate(show_success=True)
        return self.state

    def cart_changed(self) -> None:
        if self._closed or not self.applied_code:
            return
        signature = self.ledger.signature()
        if signature == self._validated_signature:
            return
        if self.state == CouponState.APPLIED:
            self.state = CouponState.INVALIDATED
        if not len(self.ledger):
            self._debouncer.cancel()
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop to time the debounce; revalidate_if_stale() catches up before submission.
            if self.state != CouponState.VALIDATING:
                self.state = CouponState.INVALIDATED
            return
        self._debouncer.schedule(self._revalidate)

    async def revalidate_if_stale(self) -> str:
        if self.applied_code and len(self.ledger) and self.ledger.signature() != self._validated_signature:
            self._debouncer.cancel()
            await self._revalidate()
        return self.state

    def restore(self) -> None:
        """Pick up the coupon code persisted by a previous page and revalidate it silently."""
        if self.store is None or self.applied_code:
            return
        code = (self.store.get(self.storage_key) or "").strip()
        if not code:
            return
        self.applied_code = code
        self._validated_signature = None
        self.cart_changed()

    def clear(self) -> None:
        self._debouncer.cancel()
        self._generation += 1
        self._discard()
        self._set_code(None)
        self._validated_signature = None
        self.state = CouponState.IDLE

    def close(self) -> None:
        self._closed = True
        self.ledger.unsubscribe(self._listener)
        self._debouncer.cancel()
        self._generation += 1

    async def settle(self) -> None:
        """Wait for a scheduled revalidation (if any) to complete."""
        await self._debouncer.wait()

    # --- internals ---

    def _emit(self, notice: CouponNotice) -> None:
        self.notice = notice
        if self._notify is not None:
            self._notify(notice)

    def _discard(self) -> None:
        self.result = None
        self.notice = None

    def _set_code(self, code: str | None) -> None:
        self.applied_code = code
        if self.store is None:
            return
        if code:
            self.store.set(self.storage_key, code)
        else:
            self.store.remove(self.storage_key)

    async def _revalidate(self) -> None:
        self._validated_signature = self.ledger.signature()
        await self._validate(show_success=False)

    async def _validate(self, *, show_success: bool) -> None:
        self._generation += 1
        generation = self._generation
        code = self.applied_code or ""
        signature = self.ledger.signature()
        subtotal = self.ledger.totals().subtotal

        self.state = CouponState.VALIDATING
        self.result = None
        request = CouponVerifyRequest(
            cod_cupon=code,
            produse=[CouponProductRequest(id=int(it.id), quantity=int(it.quantity)) for it in self.ledger.items],
        )

        try:
            response = await asyncio.to_thread(self.client.verify_coupon, request=request)
            result = interpret_response(code=code, response=response, subtotal=subtotal)
        except StorefrontApiError as exc:
            if generation != self._generation:
                return
            logger.warning("Coupon verification failed", extra={"coupon": code, "error": str(exc)})
            self._reject(CouponNotice("error", MSG_CHECK_FAILED))
            return
        except Exception:
            if generation != self._generation:
                return
            logger.exception("Unexpected error while verifying coupon", extra={"coupon": code})
            self._reject(CouponNotice("error", MSG_CHECK_FAILED))
            return

        if generation != self._generation:
            logger.debug("Dropping stale coupon response", extra={"coupon": code, "generation": generation})
            return

        if not result.applied:
            self.result = result
            self._reject(CouponNotice("error", result.reason))
            return

        self.result = result
        self.state = CouponState.APPLIED
        if show_success:
            self._emit(CouponNotice("success", result.discount_text or MSG_APPLIED))

        if self.ledger.signature() != signature:
            # Cart moved while the request was in flight; the pending timer revalidates it.
            self.state = CouponState.INVALIDATED

    def _reject(self, notice: CouponNotice) -> None:
        self._debouncer.cancel()
        self._set_code(None)
        self._validated_signature = None
        self.state = CouponState.REJECTED
        self._emit(notice)

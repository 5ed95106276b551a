import asyncio
import threading
from decimal import Decimal

from promotions.coupons import (
    MSG_CHECK_FAILED,
    MSG_ENTER_CODE,
    MSG_NO_PRODUCTS,
    CouponState,
    CouponValidator,
    interpret_response,
)
from storefront.client import StorefrontApiError
from storefront.schemas import CouponInfo, CouponProductVerdict, CouponTotals, CouponVerifyResponse


def _validator(ledger, client, store, notices=None):
    return CouponValidator(
        ledger,
        client,
        store=store,
        delay=0.02,
        notify=(notices.append if notices is not None else None),
    )


def test_apply_valid_coupon(ledger, client, store):
    notices = []

    async def scenario():
        v = _validator(ledger, client, store, notices)
        state = await v.apply("  VARA10 ")
        return v, state

    v, state = asyncio.run(scenario())
    assert state == CouponState.APPLIED
    assert v.applied_code == "VARA10"
    assert v.total_discount == Decimal("10.00")
    assert [n.kind for n in notices] == ["success"]
    assert notices[0].message == "Reducere 10%"
    assert store.get("cartCouponCode") == "VARA10"

    request = client.coupon_requests[0]
    assert request.cod_cupon == "VARA10"
    assert [(p.id, p.quantity) for p in request.produse] == [(11, 2), (12, 1)]


def test_invalid_coupon_is_rejected_with_server_reason(ledger, client, store, coupon_invalid):
    client.coupon_handler = lambda request: coupon_invalid("Cuponul a expirat.")
    notices = []

    async def scenario():
        v = _validator(ledger, client, store, notices)
        await v.apply("OLD")
        return v

    v = asyncio.run(scenario())
    assert v.state == CouponState.REJECTED
    assert v.applied_code is None
    assert v.total_discount == Decimal("0.00")
    assert notices[-1].message == "Cuponul a expirat."
    assert store.get("cartCouponCode") is None


def test_coupon_without_applicable_products_is_rejected(ledger, client, store):
    client.coupon_handler = lambda request: CouponVerifyResponse(
        cupon=CouponInfo(valid=True, conditii=["Minim 100 lei"]),
        produse=[CouponProductVerdict(titlu="Rama foto", valabil_cupon=False)],
        totals=CouponTotals(total_discount=Decimal("15")),
    )

    async def scenario():
        v = _validator(ledger, client, store)
        await v.apply("RAME")
        return v

    v = asyncio.run(scenario())
    assert v.state == CouponState.REJECTED
    assert v.notice.message == MSG_NO_PRODUCTS
    assert v.result.conditions == ("Minim 100 lei",)
    assert v.result.invalid_products[0].title == "Rama foto"
    assert v.total_discount == Decimal("0.00")


def test_network_failure_rejects_with_generic_reason(ledger, client, store):
    def boom(request):
        raise StorefrontApiError("connection reset")

    client.coupon_handler = boom

    async def scenario():
        v = _validator(ledger, client, store)
        return v, await v.apply("VARA10")

    v, state = asyncio.run(scenario())
    assert state == CouponState.REJECTED
    assert v.notice.message == MSG_CHECK_FAILED
    assert v.applied_code is None


def test_unexpected_error_never_escapes(ledger, client, store):
    def broken(request):
        raise KeyError("totals")

    client.coupon_handler = broken

    async def scenario():
        v = _validator(ledger, client, store)
        return await v.apply("VARA10")

    assert asyncio.run(scenario()) == CouponState.REJECTED


def test_empty_code_is_rejected_without_a_request(ledger, client, store):
    async def scenario():
        v = _validator(ledger, client, store)
        await v.apply("   ")
        return v

    v = asyncio.run(scenario())
    assert v.state == CouponState.REJECTED
    assert v.notice.message == MSG_ENTER_CODE
    assert client.coupon_requests == []


def test_discount_is_clamped_to_subtotal(ledger, client, store, coupon_ok):
    client.coupon_handler = lambda request: coupon_ok(discount="999")

    async def scenario():
        v = _validator(ledger, client, store)
        await v.apply("ALL")
        return v

    v = asyncio.run(scenario())
    assert v.total_discount == Decimal("150.00")


def test_negative_discount_counts_as_zero(ledger, client, store, coupon_ok):
    client.coupon_handler = lambda request: coupon_ok(discount="-20")

    async def scenario():
        v = _validator(ledger, client, store)
        await v.apply("NEG")
        return v

    assert asyncio.run(scenario()).total_discount == Decimal("0.00")


def test_same_code_and_cart_validate_to_the_same_outcome(ledger, client, store):
    async def scenario():
        v = _validator(ledger, client, store)
        first = (await v.apply("VARA10"), v.total_discount)
        second = (await v.apply("VARA10"), v.total_discount)
        return first, second

    first, second = asyncio.run(scenario())
    assert first == second == (CouponState.APPLIED, Decimal("10.00"))


def test_quantity_change_revalidates_once_after_debounce(ledger, client, store):
    notices = []

    async def scenario():
        v = _validator(ledger, client, store, notices)
        await v.apply("VARA10")
        ledger.update_quantity("11-a", 3)
        ledger.update_quantity("11-a", 4)
        ledger.update_quantity("12-a", 2)
        assert v.state == CouponState.INVALIDATED
        assert v.revalidation_pending
        assert len(client.coupon_requests) == 1
        await v.settle()
        return v

    v = asyncio.run(scenario())
    assert len(client.coupon_requests) == 2
    assert [(p.id, p.quantity) for p in client.coupon_requests[-1].produse] == [(11, 4), (12, 2)]
    assert v.state == CouponState.APPLIED
    # Silent path: only the manual apply announced success.
    assert [n.kind for n in notices] == ["success"]


def test_failed_revalidation_reports_an_error(ledger, client, store, coupon_invalid):
    notices = []

    async def scenario():
        v = _validator(ledger, client, store, notices)
        await v.apply("VARA10")
        client.coupon_handler = lambda request: coupon_invalid("Minim 3 produse.")
        ledger.remove_item("12-a")
        await v.settle()
        return v

    v = asyncio.run(scenario())
    assert v.state == CouponState.REJECTED
    assert [n.kind for n in notices] == ["success", "error"]
    assert notices[-1].message == "Minim 3 produse."


def test_manual_apply_wins_over_pending_revalidation(ledger, client, store):
    async def scenario():
        v = _validator(ledger, client, store)
        await v.apply("VARA10")
        ledger.update_quantity("11-a", 5)
        assert v.revalidation_pending
        await v.apply("IARNA20")
        assert not v.revalidation_pending
        await asyncio.sleep(0.06)
        return v

    v = asyncio.run(scenario())
    assert [r.cod_cupon for r in client.coupon_requests] == ["VARA10", "IARNA20"]
    assert v.applied_code == "IARNA20"


def test_out_of_order_response_is_ignored(ledger, client, store, coupon_ok):
    gate = threading.Event()

    def handler(request):
        if request.cod_cupon == "SLOW":
            gate.wait(2)
            return coupon_ok(discount="40")
        return coupon_ok(discount="5")

    client.coupon_handler = handler

    async def scenario():
        v = _validator(ledger, client, store)
        slow = asyncio.create_task(v.apply("SLOW"))
        await asyncio.sleep(0.05)
        await v.apply("FAST")
        gate.set()
        await slow
        return v

    v = asyncio.run(scenario())
    assert v.applied_code == "FAST"
    assert v.total_discount == Decimal("5.00")
    assert v.state == CouponState.APPLIED


def test_cart_change_while_validating_triggers_follow_up(ledger, client, store, coupon_ok):
    gate = threading.Event()

    def handler(request):
        gate.wait(2)
        return coupon_ok(discount="10")

    client.coupon_handler = handler

    async def scenario():
        v = CouponValidator(ledger, client, store=store, delay=0.2)
        pending = asyncio.create_task(v.apply("VARA10"))
        await asyncio.sleep(0.05)
        ledger.update_quantity("11-a", 3)
        gate.set()
        await pending
        assert v.state == CouponState.INVALIDATED
        await v.settle()
        return v

    v = asyncio.run(scenario())
    assert len(client.coupon_requests) == 2
    assert v.state == CouponState.APPLIED


def test_restore_revalidates_persisted_code_silently(ledger, client, store):
    store.set("cartCouponCode", "VARA10")
    notices = []

    async def scenario():
        v = _validator(ledger, client, store, notices)
        v.restore()
        assert v.revalidation_pending
        await v.settle()
        return v

    v = asyncio.run(scenario())
    assert v.state == CouponState.APPLIED
    assert v.applied_code == "VARA10"
    assert notices == []


def test_emptied_cart_drops_the_discount_without_a_request(ledger, client, store):
    async def scenario():
        v = _validator(ledger, client, store)
        await v.apply("VARA10")
        ledger.clear()
        return v

    v = asyncio.run(scenario())
    assert not v.revalidation_pending
    assert v.total_discount == Decimal("0.00")
    assert len(client.coupon_requests) == 1


def test_clear_and_close(ledger, client, store):
    async def scenario():
        v = _validator(ledger, client, store)
        await v.apply("VARA10")
        ledger.update_quantity("11-a", 9)
        v.close()
        assert not v.revalidation_pending
        v.clear()
        return v

    v = asyncio.run(scenario())
    assert v.state == CouponState.IDLE
    assert store.get("cartCouponCode") is None
    assert len(client.coupon_requests) == 1


def test_interpret_response_defaults_for_ineligible_products():
    response = CouponVerifyResponse(
        cupon=CouponInfo(valid=True),
        produse=[CouponProductVerdict(valabil_cupon=True), CouponProductVerdict()],
        totals=CouponTotals(total_discount=None),
    )
    result = interpret_response(code="X", response=response, subtotal=Decimal("80"))
    assert result.applied
    assert result.total_discount == Decimal("0.00")
    assert result.invalid_products[0].title == "Product"


def test_closed_validator_ignores_cart_changes(ledger, client, store):
    async def scenario():
        v = _validator(ledger, client, store)
        await v.apply("VARA10")
        v.close()
        ledger.update_quantity("11-a", 7)
        assert not v.revalidation_pending
        await asyncio.sleep(0.08)
        return v

    v = asyncio.run(scenario())
    assert len(client.coupon_requests) == 1
    assert v.state == CouponState.APPLIED


def test_stale_coupon_catches_up_without_a_loop(ledger, client, store, coupon_ok):
    v = CouponValidator(ledger, client, store=store, delay=0.02)
    asyncio.run(v.apply("VARA10"))

    ledger.update_quantity("12-a", 3)
    assert v.state == CouponState.INVALIDATED
    assert not v.revalidation_pending

    client.coupon_handler = lambda request: coupon_ok(discount="30")
    assert asyncio.run(v.revalidate_if_stale()) == CouponState.APPLIED
    assert v.total_discount == Decimal("30.00")
    assert len(client.coupon_requests) == 2

    # Nothing drifted since: no further request.
    asyncio.run(v.revalidate_if_stale())
    assert len(client.coupon_requests) == 2

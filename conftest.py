"""Shared pytest fixtures for the checkout core."""

from __future__ import annotations

import json
import threading
from decimal import Decimal
from pathlib import Path

import pytest
from ninja.testing import TestClient

from checkout.cart import CartLedger, LineItem
from checkout.storage import MemoryStore
from shipping.localities import AddressResolver
from shipping.lockers import LockerDirectory
from storefront.schemas import (
    CouponInfo,
    CouponProductVerdict,
    CouponTotals,
    CouponVerifyResponse,
    CustomerCheckResponse,
    OrderCreateResponse,
)


DATA_DIR = Path(__file__).resolve().parent / "data"


class FakeStorefrontClient:
    """In-process stand-in for the shop API; records every call."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.coupon_requests = []
        self.customer_requests: list[str] = []
        self.order_payloads: list[dict] = []
        self.coupon_handler = lambda request: coupon_ok(discount="10")
        self.customer_handler = lambda email: CustomerCheckResponse(customer_exists=False)
        self.order_handler = lambda payload: OrderCreateResponse(success=True, order={"number": "1234", "key": "wc_order_abc"})

    def verify_coupon(self, *, request):
        with self.lock:
            self.coupon_requests.append(request)
        return self.coupon_handler(request)

    def check_customer(self, *, email):
        with self.lock:
            self.customer_requests.append(email)
        return self.customer_handler(email)

    def create_order(self, *, payload):
        with self.lock:
            self.order_payloads.append(payload)
        return self.order_handler(payload)


def coupon_ok(*, discount="10", conditions=(), text="Reducere 10%") -> CouponVerifyResponse:
    return CouponVerifyResponse(
        cupon=CouponInfo(valid=True, discount_text=text, conditii=list(conditions)),
        produse=[CouponProductVerdict(titlu="Cana personalizata", valabil_cupon=True)],
        totals=CouponTotals(total_discount=Decimal(discount)),
    )


def coupon_invalid(reason="Cuponul a expirat.") -> CouponVerifyResponse:
    return CouponVerifyResponse(cupon=CouponInfo(valid=False, reason=reason))


@pytest.fixture(scope="session")
def http():
    # One client per run: every NinjaAPI URL build registers its namespace.
    from api.api import api

    return TestClient(api)


@pytest.fixture
def locality_rows():
    return json.loads((DATA_DIR / "retea-sameday.json").read_text(encoding="utf-8"))


@pytest.fixture
def resolver(locality_rows):
    return AddressResolver(locality_rows)


@pytest.fixture
def locker_directory():
    rows = json.loads((DATA_DIR / "sameday-lockers.json").read_text(encoding="utf-8"))
    return LockerDirectory.from_rows(rows)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def client():
    return FakeStorefrontClient()


@pytest.fixture
def ledger():
    """Cart worth 150.00: 2 x 50 mugs and one reduced 50.00 frame."""
    return CartLedger([
        LineItem(id=11, cart_item_id="11-a", unit_price=Decimal("50"), quantity=2, title="Cana personalizata"),
        LineItem(id=12, cart_item_id="12-a", unit_price=Decimal("65"), unit_price_reduced=Decimal("50"), title="Rama foto"),
    ])


@pytest.fixture(name="coupon_ok")
def coupon_ok_fixture():
    return coupon_ok


@pytest.fixture(name="coupon_invalid")
def coupon_invalid_fixture():
    return coupon_invalid

from __future__ import annotations

from decimal import Decimal

from ninja import Schema


class CouponProductRequest(Schema):
    id: int
    quantity: int


class CouponVerifyRequest(Schema):
    cod_cupon: str
    produse: list[CouponProductRequest]


class CouponInfo(Schema):
    valid: bool = False
    reason: str | None = None
    discount_text: str | None = None
    conditii: list[str] = []


class CouponProductVerdict(Schema):
    titlu: str | None = None
    valabil_cupon: bool | None = None
    reason: str | None = None


class CouponTotals(Schema):
    total_discount: Decimal | None = None


class CouponVerifyResponse(Schema):
    cupon: CouponInfo = CouponInfo()
    produse: list[CouponProductVerdict] = []
    totals: CouponTotals = CouponTotals()


class CustomerCheckRequest(Schema):
    email: str


class CustomerCheckFlag(Schema):
    searched: str | None = None
    found: bool | None = None


class CustomerChecks(Schema):
    email: CustomerCheckFlag | None = None
    telefon: CustomerCheckFlag | None = None


class CustomerCheckResponse(Schema):
    success: bool | None = None
    customer_exists: bool | None = None
    found_by: list[str] = []
    verificari: CustomerChecks = CustomerChecks()


class OrderReference(Schema):
    number: str | int | None = None
    key: str | None = None


class OrderCreateResponse(Schema):
    success: bool = False
    order: OrderReference | None = None
    message: str | None = None

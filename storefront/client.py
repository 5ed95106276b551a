from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests
from django.conf import settings
from pydantic import ValidationError

from .schemas import (
    CouponVerifyRequest,
    CouponVerifyResponse,
    CustomerCheckRequest,
    CustomerCheckResponse,
    OrderCreateResponse,
)


@dataclass(frozen=True)
class StorefrontConfig:
    base_url: str
    timeout: int = 20


class StorefrontApiError(RuntimeError):
    pass


def _get_cfg() -> StorefrontConfig:
    base_url = str(getattr(settings, "STOREFRONT_API_BASE_URL", "")).strip().rstrip("/")
    if not base_url:
        raise StorefrontApiError("STOREFRONT_API_BASE_URL is not configured")
    timeout = int(getattr(settings, "STOREFRONT_API_TIMEOUT", 20) or 20)
    return StorefrontConfig(base_url=base_url, timeout=timeout)


class StorefrontClient:
    """Client for the shop's public JSON endpoints used during checkout."""

    def __init__(self, cfg: StorefrontConfig | None = None) -> None:
        self.cfg = cfg or _get_cfg()

    def _post(self, path: str, *, payload: dict[str, Any], label: str) -> tuple[int, Any]:
        url = f"{self.cfg.base_url}{path}"
        try:
            r = requests.post(
                url,
                json=payload,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                timeout=self.cfg.timeout,
            )
        except requests.RequestException as exc:
            raise StorefrontApiError(f"{label} request failed: {exc}") from exc
        try:
            data = r.json()
        except ValueError as exc:
            raise StorefrontApiError(
                f"{label}: non-JSON response {r.status_code} {r.text[:300]}") from exc
        return r.status_code, data

    def verify_coupon(self, *, request: CouponVerifyRequest) -> CouponVerifyResponse:
        status, data = self._post(
            "/api-verificare-cupon/verify", payload=request.model_dump(), label="Coupon verify")
        if status >= 500:
            raise StorefrontApiError(f"Coupon verify failed: {status}")
        if not isinstance(data, dict):
            raise StorefrontApiError("Coupon verify: unexpected response")
        try:
            out = CouponVerifyResponse(**data)
        except ValidationError as exc:
            raise StorefrontApiError("Coupon verify: malformed response") from exc
        # 4xx bodies still carry the rejection reason.
        if status >= 400:
            out.cupon.valid = False
        return out

    def check_customer(self, *, email: str) -> CustomerCheckResponse:
        status, data = self._post(
            "/api-verificare-customer/check",
            payload=CustomerCheckRequest(email=email).model_dump(),
            label="Customer check",
        )
        if status >= 400 or not isinstance(data, dict):
            raise StorefrontApiError(f"Customer check failed: {status}")
        try:
            return CustomerCheckResponse(**data)
        except ValidationError as exc:
            raise StorefrontApiError("Customer check: malformed response") from exc

    def create_order(self, *, payload: dict[str, Any]) -> OrderCreateResponse:
        status, data = self._post("/api-comanda/create", payload=payload, label="Order create")
        if not isinstance(data, dict):
            raise StorefrontApiError(f"Order create: unexpected response {status}")
        try:
            out = OrderCreateResponse(**data)
        except ValidationError as exc:
            raise StorefrontApiError("Order create: malformed response") from exc
        if status >= 400:
            out.success = False
        return out

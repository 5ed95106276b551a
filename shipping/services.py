from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings

from checkout.cart import quantize_money, to_decimal

from .localities import AddressResolver, normalize_text


LOCAL_PICKUP_COUNTIES = ("ilfov", "bucuresti", "if", "b")


def _method_key(method: str) -> str:
    return str(method or "").strip().lower()


@dataclass(frozen=True)
class ShippingConfig:
    rates: dict[str, Decimal]
    free_shipping_threshold: Decimal = Decimal("200")
    pickup_methods: tuple[str, ...] = ("pickup",)
    locker_methods: tuple[str, ...] = ("easybox",)
    instance_ids: dict[str, int] = field(default_factory=dict)
    courier_services: dict[str, tuple[int, str]] = field(default_factory=dict)
    default_method: str = "sameday"

    def __post_init__(self) -> None:
        # Method names are matched lowercased everywhere.
        object.__setattr__(self, "rates", {_method_key(k): to_decimal(v) for k, v in self.rates.items()})
        object.__setattr__(self, "free_shipping_threshold", to_decimal(self.free_shipping_threshold))
        object.__setattr__(self, "pickup_methods", tuple(_method_key(m) for m in self.pickup_methods if _method_key(m)))
        object.__setattr__(self, "locker_methods", tuple(_method_key(m) for m in self.locker_methods if _method_key(m)))
        object.__setattr__(self, "instance_ids", {_method_key(k): v for k, v in self.instance_ids.items()})
        object.__setattr__(self, "courier_services", {_method_key(k): v for k, v in self.courier_services.items()})
        object.__setattr__(self, "default_method", _method_key(self.default_method))


def get_shipping_config() -> ShippingConfig:
    raw_rates = getattr(
        settings,
        "CHECKOUT_SHIPPING_RATES",
        {"sameday": "17", "dpd": "20", "fan": "21", "easybox": "13", "pickup": "0"},
    )
    return ShippingConfig(
        rates=dict(raw_rates),
        free_shipping_threshold=getattr(settings, "CHECKOUT_FREE_SHIPPING_THRESHOLD", "200"),
        pickup_methods=tuple(getattr(settings, "CHECKOUT_PICKUP_METHODS", ["pickup"])),
        locker_methods=tuple(getattr(settings, "CHECKOUT_LOCKER_METHODS", ["easybox"])),
        instance_ids=dict(getattr(settings, "CHECKOUT_SHIPPING_INSTANCE_IDS", {})),
        courier_services=dict(getattr(settings, "CHECKOUT_COURIER_SERVICES", {})),
        default_method=getattr(settings, "CHECKOUT_DEFAULT_DELIVERY_METHOD", "sameday"),
    )


@dataclass(frozen=True)
class ShippingQuote:
    method: str
    fee: Decimal
    free_shipping: bool
    # Courier surcharge distance for remote localities; shown to the shopper, never added to the fee.
    extra_km: Decimal = Decimal("0")


class ShippingResolver:
    def __init__(self, cfg: ShippingConfig | None = None, resolver: AddressResolver | None = None) -> None:
        self.cfg = cfg or get_shipping_config()
        self.resolver = resolver

    def methods(self) -> list[str]:
        return list(self.cfg.rates)

    def is_pickup(self, method: str) -> bool:
        return _method_key(method) in self.cfg.pickup_methods

    def is_locker(self, method: str) -> bool:
        return _method_key(method) in self.cfg.locker_methods

    def base_rate(self, method: str) -> Decimal:
        key = _method_key(method)
        if not key:
            raise ValueError("delivery method is required")
        if key not in self.cfg.rates:
            raise ValueError(f"Unsupported delivery method: {method}")
        return self.cfg.rates[key]

    def fee(self, method: str, discounted_subtotal: Decimal) -> Decimal:
        base = self.base_rate(method)
        if self.is_pickup(method):
            return Decimal("0.00")
        if to_decimal(discounted_subtotal) >= self.cfg.free_shipping_threshold:
            return Decimal("0.00")
        return quantize_money(base)

    def quote(
        self,
        method: str,
        discounted_subtotal: Decimal,
        *,
        county_code: str = "",
        locality: str = "",
        commune: str | None = None,
    ) -> ShippingQuote:
        fee = self.fee(method, discounted_subtotal)
        extra_km = Decimal("0")
        if self.resolver is not None and not self.is_pickup(method):
            extra_km = self.resolver.surcharge_for(county_code, locality, commune)
        return ShippingQuote(
            method=_method_key(method),
            fee=fee,
            free_shipping=fee == 0 and self.base_rate(method) > 0,
            extra_km=extra_km,
        )

    def instance_id(self, method: str) -> int | None:
        return self.cfg.instance_ids.get(_method_key(method))

    def courier_service(self, method: str) -> tuple[int, str] | None:
        return self.cfg.courier_services.get(_method_key(method))

    @staticmethod
    def is_local_pickup_eligible(county: str) -> bool:
        return normalize_text(county) in LOCAL_PICKUP_COUNTIES

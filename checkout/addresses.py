from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from shipping.localities import AddressResolver, normalize_text


DEFAULT_COUNTRY = "Romania"


@dataclass(frozen=True)
class Address:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    county: str = ""
    locality: str = ""
    commune: str = ""
    address1: str = ""
    address2: str = ""
    postcode: str = ""
    country: str = DEFAULT_COUNTRY

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Address":
        data = data or {}
        known = {f.name for f in fields(cls)}
        return cls(**{k: str(v if v is not None else "") for k, v in data.items() if k in known})


ADDRESS_FIELDS = tuple(f.name for f in fields(Address))


def project_shipping(billing: Address) -> Address:
    """Shipping address while it mirrors billing: a field-by-field copy."""
    return replace(billing, country=billing.country or DEFAULT_COUNTRY)


def is_address_empty(address: Address) -> bool:
    return not any(
        getattr(address, name).strip() for name in ADDRESS_FIELDS if name != "country"
    )


def _cascade(current: Address, changes: dict[str, Any], resolver: AddressResolver | None) -> Address:
    unknown = set(changes) - set(ADDRESS_FIELDS)
    if unknown:
        raise ValueError(f"Unknown address fields: {', '.join(sorted(unknown))}")

    updates = {k: str(v if v is not None else "") for k, v in changes.items()}

    downstream: tuple[str, ...] = ()
    if "county" in updates and updates["county"] != current.county:
        downstream = ("locality", "commune", "address1", "address2")
    elif "locality" in updates and normalize_text(updates["locality"]) != normalize_text(current.locality):
        downstream = ("commune", "address1", "address2")
    for name in downstream:
        updates.setdefault(name, "")

    nxt = replace(current, **updates)

    if resolver is not None and nxt.county and nxt.locality:
        communes = resolver.communes_for(nxt.county, nxt.locality)
        if not communes:
            nxt = replace(nxt, commune="")
        elif len(communes) == 1:
            nxt = replace(nxt, commune=communes[0])
    elif not nxt.locality and nxt.commune:
        nxt = replace(nxt, commune="")

    return nxt


class AddressBook:
    """Billing and shipping addresses of a checkout.

    While ``use_different_shipping`` is false the shipping address is
    recomputed from billing on every change and cannot be edited directly.
    """

    def __init__(
        self,
        resolver: AddressResolver | None = None,
        *,
        billing: Address | None = None,
        shipping: Address | None = None,
        use_different_shipping: bool = False,
    ) -> None:
        self.resolver = resolver
        self._billing = billing or Address()
        self._use_different_shipping = bool(use_different_shipping)
        if self._use_different_shipping:
            self._shipping = shipping or Address()
        else:
            self._shipping = project_shipping(self._billing)

    @property
    def billing(self) -> Address:
        return self._billing

    @property
    def shipping(self) -> Address:
        return self._shipping

    @property
    def use_different_shipping(self) -> bool:
        return self._use_different_shipping

    @property
    def delivery_address(self) -> Address:
        return self._shipping if self._use_different_shipping else self._billing

    def update_billing(self, **changes: Any) -> Address:
        self._billing = _cascade(self._billing, changes, self.resolver)
        if not self._use_different_shipping:
            self._shipping = project_shipping(self._billing)
        return self._billing

    def update_shipping(self, **changes: Any) -> Address:
        if not self._use_different_shipping:
            raise ValueError("Shipping address mirrors billing; enable a different shipping address first")
        self._shipping = _cascade(self._shipping, changes, self.resolver)
        return self._shipping

    def set_shipping(self, address: Address) -> None:
        """Replace the diverging shipping address as-is (no cascade)."""
        if not self._use_different_shipping:
            raise ValueError("Shipping address mirrors billing; enable a different shipping address first")
        self._shipping = address

    def is_shipping_empty(self) -> bool:
        return is_address_empty(self._shipping)

    def set_use_different_shipping(self, flag: bool) -> None:
        self._use_different_shipping = bool(flag)
        if not self._use_different_shipping:
            self._shipping = project_shipping(self._billing)

    def load(self, *, billing: Address, shipping: Address, use_different_shipping: bool) -> None:
        self._billing = billing
        self._use_different_shipping = bool(use_different_shipping)
        self._shipping = shipping if self._use_different_shipping else project_shipping(billing)

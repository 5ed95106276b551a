from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from shipping.lockers import Locker
from shipping.services import ShippingResolver

from .cart import LineItem
from .drafts import CheckoutDraft


PAYMENT_METHOD_IDS = {"ramburs": "cod", "transfer": "bacs"}


class CheckoutIncomplete(ValueError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__("Missing required fields: " + ", ".join(self.missing))


class OrderSubmissionError(RuntimeError):
    pass


@dataclass(frozen=True)
class OrderResult:
    number: str
    key: str
    message: str = ""


def personalization_meta(item: LineItem) -> dict[str, Any]:
    meta: dict[str, Any] = {}
    for entry in item.personalization:
        key = (entry.label or "").strip() or entry.name
        if not key or not key.strip():
            continue
        if entry.type == "upload" and entry.file:
            meta[key] = entry.file
        elif isinstance(entry.value, (list, tuple)):
            meta[key] = ", ".join(str(v) for v in entry.value)
        else:
            meta[key] = entry.value if entry.value is not None else ""
    return meta


def _address_block(address, *, include_email: bool) -> dict[str, str]:
    block = {
        "first_name": address.first_name,
        "last_name": address.last_name,
        "phone": address.phone,
        "address_1": address.address1,
        "address_2": address.address2,
        "city": address.locality,
        "state": address.county,
        "postcode": address.postcode,
    }
    if include_email:
        block["email"] = address.email
    return block


def build_order_payload(
    *,
    draft: CheckoutDraft,
    items: list[LineItem],
    shipping: ShippingResolver,
    coupon_code: str | None = None,
    locker: Locker | None = None,
    order_note: str = "",
) -> dict[str, Any]:
    produse = []
    for item in items:
        line: dict[str, Any] = {"product_id": item.id, "quantity": item.quantity}
        meta = personalization_meta(item)
        if meta:
            line["meta_data"] = meta
        produse.append(line)

    method = (draft.delivery_method or "").strip().lower()
    payload: dict[str, Any] = {
        "billing": _address_block(draft.billing, include_email=True),
        "shipping_identic": not draft.use_different_shipping,
        "produse": produse,
        "payment_method": PAYMENT_METHOD_IDS.get(draft.payment_method, draft.payment_method),
    }
    instance_id = shipping.instance_id(method)
    if instance_id is not None:
        payload["shipping_method"] = str(instance_id)
    if order_note.strip():
        payload["customer_note"] = order_note.strip()

    is_locker = shipping.is_locker(method) and locker is not None
    if draft.use_different_shipping:
        block = _address_block(draft.shipping, include_email=False)
        if is_locker:
            block["address_2"] = locker.marker
        payload["shipping"] = block

    if draft.customer_type == "company":
        payload["este_firma"] = True
        payload["cui"] = draft.company.cui
        payload["reg_com"] = draft.company.registry
        payload["nume_firma"] = draft.company.name

    if coupon_code:
        payload["cupon"] = coupon_code

    service = shipping.courier_service(method)
    if service is not None and (is_locker or not shipping.is_locker(method)):
        payload["service_id"], payload["service_code"] = service[0], service[1]

    if is_locker:
        payload["_sameday_shipping_locker_id"] = {
            "lockerId": locker.id,
            "oohType": "0",
            "name": locker.name,
            "address": locker.address,
            "cityId": "",
            "city": locker.city,
            "countyId": "",
            "county": locker.county,
            "supportedPayment": "1",
            "postalCode": locker.postal_code,
        }
        payload["_sameday_shipping_hd_address"] = {
            "_shipping_first_name": "",
            "_shipping_last_name": "",
            "_shipping_phone": "",
            "_shipping_country": "RO",
            "_shipping_state": "",
            "_shipping_city": "",
            "_shipping_address_1": "",
            "_shipping_address_2": locker.marker if locker.id and locker.name else "",
            "_shipping_postcode": "",
            "_shipping_method": [f"samedaycourier:{service[0]}:{service[1]}"] if service else [],
        }
    return payload

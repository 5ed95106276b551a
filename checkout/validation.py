from __future__ import annotations

import logging

from .drafts import CheckoutDraft


logger = logging.getLogger(__name__)

FIELD_LABELS = {
    "first_name": "First name",
    "last_name": "Last name",
    "email": "Email",
    "phone": "Phone",
    "county": "County",
    "locality": "Locality",
    "address1": "Address",
    "postcode": "Postcode",
    "country": "Country",
}

BILLING_REQUIRED = ("first_name", "last_name", "email", "phone", "county", "locality", "address1", "postcode", "country")
SHIPPING_REQUIRED = ("first_name", "last_name", "phone", "county", "locality", "address1", "postcode", "country")


def _blank(value: str) -> bool:
    return not (value or "").strip()


def missing_fields(draft: CheckoutDraft, *, terms_accepted: bool) -> list[str]:
    missing: list[str] = []
    for name in BILLING_REQUIRED:
        if _blank(getattr(draft.billing, name)):
            missing.append(f"Billing: {FIELD_LABELS[name]}")
    if draft.customer_type == "company":
        if _blank(draft.company.name):
            missing.append("Company name")
        if _blank(draft.company.cui):
            missing.append("Company CUI")
    if draft.use_different_shipping:
        for name in SHIPPING_REQUIRED:
            if _blank(getattr(draft.shipping, name)):
                missing.append(f"Shipping: {FIELD_LABELS[name]}")
    if _blank(draft.delivery_method):
        missing.append("Delivery method")
    if _blank(draft.payment_method):
        missing.append("Payment method")
    if not terms_accepted:
        missing.append("Terms and conditions")
    return missing


def report_missing_fields(missing: list[str]) -> None:
    if missing:
        logger.info("Checkout blocked by missing fields", extra={"missing_fields": list(missing)})

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from django.conf import settings

from .addresses import Address
from .storage import KeyValueStore


logger = logging.getLogger(__name__)

KEY_LENGTH = 32
NONCE_LENGTH = 12


class DraftDecryptError(ValueError):
    pass


def derive_key(passphrase: str) -> bytes:
    # Passphrase right-padded with "0" (or truncated) to a 256-bit key.
    return passphrase.encode("utf-8")[:KEY_LENGTH].ljust(KEY_LENGTH, b"0")


def encrypt_payload(payload: Any, *, passphrase: str) -> str:
    nonce = os.urandom(NONCE_LENGTH)
    data = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    cipher = AESGCM(derive_key(passphrase)).encrypt(nonce, data, None)
    return json.dumps({
        "iv": base64.b64encode(nonce).decode("ascii"),
        "data": base64.b64encode(cipher).decode("ascii"),
    })


def decrypt_payload(raw: str, *, passphrase: str) -> Any:
    try:
        envelope = json.loads(raw)
        if not isinstance(envelope, dict) or not envelope.get("iv") or not envelope.get("data"):
            raise DraftDecryptError("not an encrypted draft")
        nonce = base64.b64decode(envelope["iv"], validate=True)
        data = base64.b64decode(envelope["data"], validate=True)
        if len(nonce) != NONCE_LENGTH:
            raise DraftDecryptError("bad nonce")
        plain = AESGCM(derive_key(passphrase)).decrypt(nonce, data, None)
        return json.loads(plain.decode("utf-8"))
    except DraftDecryptError:
        raise
    except (ValueError, TypeError, InvalidTag) as exc:
        raise DraftDecryptError(str(exc) or exc.__class__.__name__) from exc


@dataclass(frozen=True)
class CompanyInfo:
    name: str = ""
    cui: str = ""
    registry: str = ""


@dataclass(frozen=True)
class CheckoutDraft:
    billing: Address = field(default_factory=Address)
    shipping: Address = field(default_factory=Address)
    company: CompanyInfo = field(default_factory=CompanyInfo)
    customer_type: str = "individual"
    delivery_method: str = ""
    payment_method: str = ""
    use_different_shipping: bool = False
    selected_locker_id: str = ""
    locker_query: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "billingData": self.billing.to_dict(),
            "shippingData": self.shipping.to_dict(),
            "companyData": {
                "companyName": self.company.name,
                "cui": self.company.cui,
                "registry": self.company.registry,
            },
            "customerType": self.customer_type,
            "deliveryMethod": self.delivery_method,
            "paymentMethod": self.payment_method,
            "useDifferentShipping": self.use_different_shipping,
            "selectedLockerId": self.selected_locker_id,
            "lockerQuery": self.locker_query,
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "CheckoutDraft":
        if not isinstance(payload, dict):
            raise DraftDecryptError("draft payload is not an object")
        company = payload.get("companyData") or {}
        if not isinstance(company, dict):
            company = {}
        use_diff = payload.get("useDifferentShipping")
        return cls(
            billing=Address.from_dict(payload.get("billingData") if isinstance(payload.get("billingData"), dict) else None),
            shipping=Address.from_dict(payload.get("shippingData") if isinstance(payload.get("shippingData"), dict) else None),
            company=CompanyInfo(
                name=str(company.get("companyName") or ""),
                cui=str(company.get("cui") or ""),
                registry=str(company.get("registry") or ""),
            ),
            customer_type=str(payload.get("customerType") or "individual"),
            delivery_method=str(payload.get("deliveryMethod") or ""),
            payment_method=str(payload.get("paymentMethod") or ""),
            use_different_shipping=use_diff if isinstance(use_diff, bool) else False,
            selected_locker_id=str(payload.get("selectedLockerId") or ""),
            locker_query=str(payload.get("lockerQuery") or ""),
        )


class CheckoutDraftStore:
    """Encrypted persistence of the in-progress checkout form.

    ``hydrate()`` runs once; until it has run, ``persist()`` is a no-op so an
    empty form cannot overwrite a stored draft. Undecryptable blobs are
    treated as absent.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        passphrase: str | None = None,
        storage_key: str | None = None,
    ) -> None:
        self.store = store
        self.passphrase = passphrase or getattr(settings, "CHECKOUT_DRAFT_PASSPHRASE", "")
        self.storage_key = storage_key or getattr(settings, "CHECKOUT_DRAFT_STORAGE_KEY", "checkout-form")
        self._hydrated = False

    @property
    def hydrated(self) -> bool:
        return self._hydrated

    def hydrate(self) -> CheckoutDraft | None:
        if self._hydrated:
            return None
        self._hydrated = True
        raw = self.store.get(self.storage_key)
        if not raw:
            return None
        try:
            return CheckoutDraft.from_payload(decrypt_payload(raw, passphrase=self.passphrase))
        except DraftDecryptError as exc:
            logger.debug("Dropping unreadable checkout draft", extra={"error": str(exc)})
            return None

    def persist(self, draft: CheckoutDraft) -> bool:
        if not self._hydrated:
            return False
        blob = encrypt_payload(draft.to_payload(), passphrase=self.passphrase)
        try:
            self.store.set(self.storage_key, blob)
        except Exception:
            logger.exception("Failed to persist checkout draft")
            return False
        return True

    def clear(self) -> None:
        self.store.remove(self.storage_key)

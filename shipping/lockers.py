from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from .localities import CAPITAL_COUNTY_CODE, CAPITAL_NAME, AddressResolver, normalize_text

if TYPE_CHECKING:
    from checkout.addresses import Address


_SIZE_RE = re.compile(r'\*size";s:\d+:"([A-Za-z]+)"')
_COUNT_RE = re.compile(r'\*number";i:(\d+)')
UNKNOWN_POSTCODES = ("", "0000")


def parse_locker_boxes(value: Any) -> tuple[int, dict[str, int]]:
    """Box capacity of a locker as (total, per-size counts).

    The directory carries this as a number, a JSON list/object or a
    serialized object dump with size/number pairs.
    """
    if isinstance(value, bool) or value is None or value == "":
        return 0, {}
    if isinstance(value, (int, float)):
        return int(value), {}
    raw = str(value)
    try:
        return int(float(raw)), {}
    except ValueError:
        pass
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
    if isinstance(parsed, (list, dict)):
        return len(parsed), {}

    sizes: dict[str, int] = {}
    for size, count in zip(_SIZE_RE.findall(raw), _COUNT_RE.findall(raw)):
        sizes[size] = sizes.get(size, 0) + int(count)
    total = sum(sizes.values())
    if total > 0:
        return total, sizes
    return raw.count("BoxObject"), {}


def _to_float(value: Any) -> float | None:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if num == num and num not in (float("inf"), float("-inf")) else None


@dataclass(frozen=True)
class Locker:
    id: str
    name: str = ""
    address: str = ""
    county: str = ""
    city: str = ""
    lat: float | None = None
    lng: float | None = None
    postal_code: str = ""
    box_capacity: int = 0
    box_sizes: dict[str, int] = field(default_factory=dict, compare=False)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Locker":
        total, sizes = parse_locker_boxes(row.get("boxes"))
        return cls(
            id=str(row.get("locker_id") or row.get("id") or "").strip(),
            name=str(row.get("name") or "").strip(),
            address=str(row.get("address") or "").strip(),
            county=str(row.get("county") or "").strip(),
            city=str(row.get("city") or "").strip(),
            lat=_to_float(row.get("lat")),
            lng=_to_float(row.get("lng")),
            postal_code=str(row.get("postal_code") or "").strip(),
            box_capacity=total,
            box_sizes=sizes,
        )

    @property
    def label(self) -> str:
        name = self.name or "Locker"
        return f"{name} - {self.address}" if self.address else name

    @property
    def marker(self) -> str:
        return f"{self.id} - {self.name}".strip()


@dataclass(frozen=True)
class LockerDirectory:
    lockers: tuple[Locker, ...] = ()

    @classmethod
    def from_rows(cls, rows: list[dict[str, Any]]) -> "LockerDirectory":
        return cls(tuple(lk for lk in (Locker.from_row(r) for r in rows) if lk.id))

    def get(self, locker_id: str) -> Locker | None:
        key = str(locker_id or "").strip()
        return next((lk for lk in self.lockers if lk.id == key), None)


class LockerMatcher:
    """Keeps at most one valid locker selection for the delivery address.

    The selection is tied to a ``county|city`` context; moving to another
    context drops it, and a context with a single locker selects it.
    """

    def __init__(
        self,
        directory: LockerDirectory,
        resolver: AddressResolver,
        *,
        locker_methods: tuple[str, ...] | list[str] = ("easybox",),
    ) -> None:
        self.directory = directory
        self.resolver = resolver
        self.locker_methods = tuple(m.lower() for m in locker_methods)
        self._context = ""
        self._options: list[Locker] = []
        self._selected: Locker | None = None
        self._marker = ""

    @property
    def selected(self) -> Locker | None:
        return self._selected

    @property
    def selected_id(self) -> str:
        return self._selected.id if self._selected else ""

    @property
    def current_options(self) -> list[Locker]:
        return list(self._options)

    @property
    def context(self) -> str:
        return self._context

    def is_locker_method(self, method: str) -> bool:
        return (method or "").strip().lower() in self.locker_methods

    def _locker_locality(self, county_code: str, locality: str) -> str:
        if (county_code or "").upper() == CAPITAL_COUNTY_CODE and locality:
            return CAPITAL_NAME
        return locality or ""

    def options(self, county_code: str, locality: str) -> list[Locker]:
        county = normalize_text(self.resolver.county_name_for(county_code) or county_code)
        if not county:
            return []
        city = normalize_text(self._locker_locality(county_code, locality))
        is_capital = (county_code or "").upper() == CAPITAL_COUNTY_CODE
        capital = normalize_text(CAPITAL_NAME)

        out: list[Locker] = []
        for lk in self.directory.lockers:
            row_county = normalize_text(lk.county)
            if is_capital:
                # Capital lockers are listed per sector; any county mentioning the capital matches.
                if capital in row_county:
                    out.append(lk)
                continue
            if row_county != county:
                continue
            if city and normalize_text(lk.city) != city:
                continue
            out.append(lk)
        return out

    def clear(self) -> None:
        self._selected = None

    def refresh(self, method: str, county_code: str, locality: str) -> Locker | None:
        if not self.is_locker_method(method):
            self._selected = None
            self._context = ""
            self._options = []
            return None

        county_name = self.resolver.county_name_for(county_code) or (county_code or "")
        key = f"{county_name}|{self._locker_locality(county_code, locality)}"
        if self._context and self._context != key:
            self._selected = None
        self._context = key

        self._options = self.options(county_code, locality)
        if self._selected is not None and self._selected in self._options:
            return self._selected
        if len(self._options) == 1:
            self._selected = self._options[0]
        else:
            self._selected = None
        return self._selected

    def select(self, locker_id: str) -> Locker:
        key = str(locker_id or "").strip()
        locker = next((lk for lk in self._options if lk.id == key), None)
        if locker is None:
            raise ValueError(f"Locker {key!r} is not available for the current address")
        self._selected = locker
        return locker

    def restore(self, locker_id: str) -> Locker | None:
        """Re-select a persisted locker id if it is still offered."""
        try:
            return self.select(locker_id)
        except ValueError:
            return None

    def apply_to_address(self, address: "Address") -> "Address":
        locker = self._selected
        if locker is None:
            return address
        county = self.resolver.county_code_for(locker.county) or address.county
        address1 = address.address1 if address.address1.strip() else locker.address
        postcode = address.postcode
        if postcode.strip() in UNKNOWN_POSTCODES and locker.postal_code:
            postcode = locker.postal_code
        self._marker = locker.marker
        # A commune only makes sense within the county it was picked for.
        commune = address.commune if county == address.county else ""
        return replace(
            address,
            county=county,
            commune=commune,
            address1=address1,
            postcode=postcode,
            address2=locker.marker,
        )

    def fill_postcode(self, address: "Address") -> "Address":
        locker = self._selected
        if locker is None or not locker.postal_code:
            return address
        if address.postcode.strip() not in UNKNOWN_POSTCODES:
            return address
        return replace(address, postcode=locker.postal_code)

    def strip_marker(self, address: "Address") -> "Address":
        if self._marker and address.address2 == self._marker:
            address = replace(address, address2="")
        self._marker = ""
        return address

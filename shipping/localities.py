from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any


CAPITAL_COUNTY_CODE = "B"
CAPITAL_NAME = "Bucuresti"

COUNTIES: tuple[tuple[str, str], ...] = (
    ("Alba", "AB"),
    ("Arad", "AR"),
    ("Arges", "AG"),
    ("Bacau", "BC"),
    ("Bihor", "BH"),
    ("Bistrita-Nasaud", "BN"),
    ("Botosani", "BT"),
    ("Braila", "BR"),
    ("Brasov", "BV"),
    ("Bucuresti", "B"),
    ("Buzau", "BZ"),
    ("Calarasi", "CL"),
    ("Caras-Severin", "CS"),
    ("Cluj", "CJ"),
    ("Constanta", "CT"),
    ("Covasna", "CV"),
    ("Dambovita", "DB"),
    ("Dolj", "DJ"),
    ("Galati", "GL"),
    ("Giurgiu", "GR"),
    ("Gorj", "GJ"),
    ("Harghita", "HR"),
    ("Hunedoara", "HD"),
    ("Ialomita", "IL"),
    ("Iasi", "IS"),
    ("Ilfov", "IF"),
    ("Maramures", "MM"),
    ("Mehedinti", "MH"),
    ("Mures", "MS"),
    ("Neamt", "NT"),
    ("Olt", "OT"),
    ("Prahova", "PH"),
    ("Salaj", "SJ"),
    ("Satu Mare", "SM"),
    ("Sibiu", "SB"),
    ("Suceava", "SV"),
    ("Teleorman", "TR"),
    ("Timis", "TM"),
    ("Tulcea", "TL"),
    ("Valcea", "VL"),
    ("Vaslui", "VS"),
    ("Vrancea", "VN"),
)


def normalize_text(value: Any) -> str:
    decomposed = unicodedata.normalize("NFD", str(value or ""))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower().strip()


def collation_key(value: str) -> tuple[str, str]:
    # Base letters first, then the diacritic variant (a < ă < â).
    return normalize_text(value), value.lower()


def parse_km(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        num = Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        return Decimal("0")
    if not num.is_finite():
        return Decimal("0")
    return num


@dataclass(frozen=True)
class LocalityRow:
    county: str
    locality: str
    commune: str = ""
    extra_km: Decimal = Decimal("0")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "LocalityRow":
        return cls(
            county=str(row.get("Judet") or "").strip(),
            locality=str(row.get("Localitate") or "").strip(),
            commune=str(row.get("Comuna") or "").strip(),
            extra_km=parse_km(row.get("Km aditionali")),
        )


class AddressResolver:
    """County/locality/commune lookups over the courier locality table.

    All comparisons ignore case and diacritics. Counties are addressed by
    their two-letter code everywhere except the raw dataset rows.
    """

    def __init__(self, rows: list[dict[str, Any]] | list[LocalityRow] | None = None) -> None:
        self._name_by_code = {code: name for name, code in COUNTIES}
        self._code_by_name = {normalize_text(name): code for name, code in COUNTIES}
        self._rows_by_county: dict[str, list[LocalityRow]] = {}
        for raw in rows or []:
            row = raw if isinstance(raw, LocalityRow) else LocalityRow.from_row(raw)
            county = normalize_text(row.county)
            if not county:
                continue
            self._rows_by_county.setdefault(county, []).append(row)

    def counties(self) -> list[tuple[str, str]]:
        return [(code, name) for name, code in COUNTIES]

    def county_code_for(self, name: str) -> str:
        value = (name or "").strip()
        if not value:
            return ""
        code = self._code_by_name.get(normalize_text(value))
        if code:
            return code
        upper = value.upper()
        return upper if upper in self._name_by_code else ""

    def county_name_for(self, code: str) -> str:
        return self._name_by_code.get((code or "").strip().upper(), "")

    def _county_rows(self, county_code: str) -> list[LocalityRow]:
        name = self.county_name_for(county_code)
        if not name:
            return []
        return self._rows_by_county.get(normalize_text(name), [])

    def localities_for(self, county_code: str) -> list[str]:
        seen: set[str] = set()
        for row in self._county_rows(county_code):
            if row.locality:
                seen.add(row.locality)
        return sorted(seen, key=collation_key)

    def communes_for(self, county_code: str, locality: str) -> list[str]:
        target = normalize_text(locality)
        if not target:
            return []
        seen: set[str] = set()
        for row in self._county_rows(county_code):
            if normalize_text(row.locality) != target:
                continue
            if not row.commune or normalize_text(row.commune) == target:
                continue
            seen.add(row.commune)
        return sorted(seen, key=collation_key)

    def surcharge_for(self, county_code: str, locality: str, commune: str | None = None) -> Decimal:
        """Extra kilometres the courier charges for a locality (advisory)."""
        target = normalize_text(locality)
        if not target:
            return Decimal("0")
        matching = [r for r in self._county_rows(county_code) if normalize_text(r.locality) == target]
        if not matching:
            return Decimal("0")
        row = matching[0]
        if commune:
            commune_target = normalize_text(commune)
            row = next((r for r in matching if normalize_text(r.commune) == commune_target), row)
        return row.extra_km

    @staticmethod
    def filter_localities(localities: list[str], query: str) -> list[str]:
        if not query:
            return list(localities)
        needle = normalize_text(query)
        return [item for item in localities if needle in normalize_text(item)]

    @staticmethod
    def is_known_locality(localities: list[str], value: str) -> bool:
        if not value:
            return False
        target = normalize_text(value)
        return any(normalize_text(item) == target for item in localities)

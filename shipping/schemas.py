from __future__ import annotations

from ninja import Schema


class CountyOut(Schema):
    code: str
    name: str


class LockerOut(Schema):
    id: str
    name: str = ""
    label: str = ""
    address: str = ""
    county: str = ""
    city: str = ""
    postal_code: str = ""
    lat: float | None = None
    lng: float | None = None
    box_capacity: int = 0

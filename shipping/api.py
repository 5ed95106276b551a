from __future__ import annotations

from ninja import Router
from ninja.errors import HttpError

from .datasets import get_address_resolver, get_locker_directory
from .localities import AddressResolver
from .lockers import LockerMatcher
from .schemas import CountyOut, LockerOut


router = Router(tags=["shipping"])


def _county_code(resolver: AddressResolver, county: str) -> str:
    code = resolver.county_code_for(county)
    if not code:
        raise HttpError(400, "Unknown county")
    return code


@router.get("/counties", response=list[CountyOut])
def shipping_counties(request):
    return [CountyOut(code=code, name=name) for code, name in get_address_resolver().counties()]


@router.get("/localities", response=list[str])
def shipping_localities(request, county: str, search: str | None = None):
    resolver = get_address_resolver()
    localities = resolver.localities_for(_county_code(resolver, county))
    return resolver.filter_localities(localities, search or "")


@router.get("/communes", response=list[str])
def shipping_communes(request, county: str, locality: str):
    resolver = get_address_resolver()
    return resolver.communes_for(_county_code(resolver, county), locality)


@router.get("/lockers", response=list[LockerOut])
def shipping_lockers(request, county: str, locality: str | None = None):
    resolver = get_address_resolver()
    matcher = LockerMatcher(get_locker_directory(), resolver)
    out: list[LockerOut] = []
    for lk in matcher.options(_county_code(resolver, county), locality or ""):
        out.append(
            LockerOut(
                id=lk.id,
                name=lk.name,
                label=lk.label,
                address=lk.address,
                county=lk.county,
                city=lk.city,
                postal_code=lk.postal_code,
                lat=lk.lat,
                lng=lk.lng,
                box_capacity=lk.box_capacity,
            )
        )
    return out

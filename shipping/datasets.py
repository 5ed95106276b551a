from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import requests
from django.conf import settings

from .localities import AddressResolver
from .lockers import LockerDirectory


logger = logging.getLogger(__name__)


def _read_rows(source: str) -> list[dict[str, Any]]:
    source = (source or "").strip()
    if not source:
        return []
    try:
        if source.startswith(("http://", "https://")):
            r = requests.get(source, headers={"Accept": "application/json"}, timeout=20)
            if r.status_code >= 400:
                logger.warning("Reference dataset fetch failed", extra={"source": source, "status": r.status_code})
                return []
            data = r.json()
        else:
            data = json.loads(Path(source).read_text(encoding="utf-8"))
    except (OSError, ValueError, requests.RequestException):
        logger.exception("Reference dataset could not be loaded", extra={"source": source})
        return []
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]


@lru_cache(maxsize=4)
def load_locality_rows(source: str | None = None) -> tuple[dict[str, Any], ...]:
    return tuple(_read_rows(source if source is not None else settings.LOCALITY_DATASET))


@lru_cache(maxsize=4)
def load_locker_rows(source: str | None = None) -> tuple[dict[str, Any], ...]:
    return tuple(_read_rows(source if source is not None else settings.LOCKER_DATASET))


@lru_cache(maxsize=1)
def get_address_resolver() -> AddressResolver:
    return AddressResolver(list(load_locality_rows()))


@lru_cache(maxsize=1)
def get_locker_directory() -> LockerDirectory:
    return LockerDirectory.from_rows(list(load_locker_rows()))


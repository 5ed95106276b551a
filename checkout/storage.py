from __future__ import annotations

from typing import Protocol

from django.conf import settings
from django.core.cache import caches


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class CacheStore:
    """Per-shopper key-value store on top of the Django cache framework."""

    def __init__(self, namespace: str, *, alias: str = "default", timeout: int | None = None) -> None:
        namespace = (namespace or "").strip()
        if not namespace:
            raise ValueError("namespace is required")
        self.namespace = namespace
        self.cache = caches[alias]
        self.timeout = timeout if timeout is not None else int(getattr(settings, "CHECKOUT_DRAFT_TTL_SECONDS", 0) or 0) or None

    def _key(self, key: str) -> str:
        return f"checkout:{self.namespace}:{key}"

    def get(self, key: str) -> str | None:
        value = self.cache.get(self._key(key))
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        self.cache.set(self._key(key), value, timeout=self.timeout)

    def remove(self, key: str) -> None:
        self.cache.delete(self._key(key))

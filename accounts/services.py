from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from django.conf import settings

from storefront.client import StorefrontApiError, StorefrontClient
from storefront.timers import Debouncer


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerMatch:
    email: str
    customer_exists: bool = False
    found_by_email: bool = False
    found_by_phone: bool = False


class CustomerLookup:
    """Advisory "do we already know this e-mail?" check.

    Input is debounced; each new e-mail supersedes the previous check, and
    a completion from an older check is ignored. Failures leave the result
    unknown (``None``).
    """

    def __init__(self, client: StorefrontClient | None = None, *, delay: float | None = None) -> None:
        self._client = client
        if delay is None:
            delay = float(getattr(settings, "CUSTOMER_LOOKUP_DELAY_SECONDS", 0.5))
        self._debouncer = Debouncer(delay)
        self._generation = 0
        self._inflight: asyncio.Task | None = None
        self.loading = False
        self.result: CustomerMatch | None = None

    @property
    def client(self) -> StorefrontClient:
        if self._client is None:
            self._client = StorefrontClient()
        return self._client

    def check(self, email: str) -> None:
        email = (email or "").strip()
        self._generation += 1
        self._abort()
        if not email:
            self.loading = False
            self.result = None
            return
        if self.result is not None and self.result.email != email:
            self.result = None
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Advisory only; without a loop there is nothing to time the debounce.
            logger.debug("Customer check skipped outside an event loop")
            return
        generation = self._generation
        self._debouncer.schedule(lambda: self._run(email, generation))

    async def _run(self, email: str, generation: int) -> None:
        if generation != self._generation:
            return
        self.loading = True
        self._inflight = asyncio.get_running_loop().create_task(
            asyncio.to_thread(self.client.check_customer, email=email)
        )
        try:
            response = await self._inflight
        except asyncio.CancelledError:
            # Superseded by a newer check (or teardown).
            return
        except StorefrontApiError as exc:
            if generation == self._generation:
                logger.info("Customer check failed", extra={"error": str(exc)})
                self.loading = False
                self.result = None
            return
        except Exception:
            if generation == self._generation:
                logger.exception("Unexpected error during customer check")
                self.loading = False
                self.result = None
            return
        finally:
            if generation == self._generation:
                self._inflight = None

        if generation != self._generation:
            return
        checks = response.verificari
        self.result = CustomerMatch(
            email=email,
            customer_exists=bool(response.customer_exists),
            found_by_email=bool(checks.email and checks.email.found),
            found_by_phone=bool(checks.telefon and checks.telefon.found),
        )
        self.loading = False

    def _abort(self) -> None:
        self._debouncer.cancel()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None
        self.loading = False

    def close(self) -> None:
        self._generation += 1
        self._abort()

    async def settle(self) -> None:
        await self._debouncer.wait()

import asyncio
import threading

from accounts.services import CustomerLookup
from storefront.client import StorefrontApiError
from storefront.schemas import CustomerCheckFlag, CustomerCheckResponse, CustomerChecks


def test_typing_burst_sends_one_request(client):
    async def scenario():
        lookup = CustomerLookup(client, delay=0.02)
        for email in ("a@x.ro", "an@x.ro", "ana@x.ro"):
            lookup.check(email)
        await lookup.settle()
        return lookup

    lookup = asyncio.run(scenario())
    assert client.customer_requests == ["ana@x.ro"]
    assert lookup.result.email == "ana@x.ro"
    assert lookup.result.customer_exists is False
    assert lookup.loading is False


def test_known_customer_flags(client):
    client.customer_handler = lambda email: CustomerCheckResponse(
        success=True,
        customer_exists=True,
        found_by=["email"],
        verificari=CustomerChecks(email=CustomerCheckFlag(searched=email, found=True)),
    )

    async def scenario():
        lookup = CustomerLookup(client, delay=0.01)
        lookup.check(" ana@x.ro ")
        await lookup.settle()
        return lookup.result

    result = asyncio.run(scenario())
    assert result.customer_exists
    assert result.found_by_email
    assert not result.found_by_phone


def test_blank_email_resets_without_request(client):
    async def scenario():
        lookup = CustomerLookup(client, delay=0.01)
        lookup.check("ana@x.ro")
        await lookup.settle()
        lookup.check("   ")
        return lookup

    lookup = asyncio.run(scenario())
    assert lookup.result is None
    assert client.customer_requests == ["ana@x.ro"]


def test_failure_leaves_result_unknown(client):
    def down(email):
        raise StorefrontApiError("503")

    client.customer_handler = down

    async def scenario():
        lookup = CustomerLookup(client, delay=0.01)
        lookup.check("ana@x.ro")
        await lookup.settle()
        return lookup

    lookup = asyncio.run(scenario())
    assert lookup.result is None
    assert lookup.loading is False


def test_new_email_clears_previous_answer(client):
    async def scenario():
        lookup = CustomerLookup(client, delay=0.01)
        lookup.check("ana@x.ro")
        await lookup.settle()
        assert lookup.result is not None
        lookup.check("ion@x.ro")
        cleared = lookup.result
        await lookup.settle()
        return cleared, lookup.result

    cleared, result = asyncio.run(scenario())
    assert cleared is None
    assert result.email == "ion@x.ro"


def test_in_flight_check_is_superseded(client):
    gate = threading.Event()

    def handler(email):
        if email == "slow@x.ro":
            gate.wait(2)
            return CustomerCheckResponse(customer_exists=True)
        return CustomerCheckResponse(customer_exists=False)

    client.customer_handler = handler

    async def scenario():
        lookup = CustomerLookup(client, delay=0.01)
        lookup.check("slow@x.ro")
        await asyncio.sleep(0.1)
        assert lookup.loading
        lookup.check("fast@x.ro")
        gate.set()
        await lookup.settle()
        await asyncio.sleep(0.05)
        return lookup

    lookup = asyncio.run(scenario())
    assert client.customer_requests == ["slow@x.ro", "fast@x.ro"]
    assert lookup.result.email == "fast@x.ro"
    assert lookup.result.customer_exists is False


def test_close_cancels_pending_check(client):
    async def scenario():
        lookup = CustomerLookup(client, delay=0.05)
        lookup.check("ana@x.ro")
        lookup.close()
        await asyncio.sleep(0.1)
        return lookup

    lookup = asyncio.run(scenario())
    assert client.customer_requests == []
    assert lookup.result is None

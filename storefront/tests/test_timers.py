import asyncio

from storefront.timers import Debouncer


def test_only_last_call_runs():
    calls = []

    async def scenario():
        debouncer = Debouncer(0.02)
        for n in range(3):
            async def fire(n=n):
                calls.append(n)

            debouncer.schedule(fire)
        assert debouncer.pending
        await debouncer.wait()
        assert not debouncer.pending

    asyncio.run(scenario())
    assert calls == [2]


def test_cancel_drops_pending_call():
    calls = []

    async def fire():
        calls.append("fired")

    async def scenario():
        debouncer = Debouncer(0.02)
        debouncer.schedule(fire)
        debouncer.cancel()
        await debouncer.wait()
        await asyncio.sleep(0.04)

    asyncio.run(scenario())
    assert calls == []


def test_callback_may_reschedule_itself():
    calls = []

    async def scenario():
        debouncer = Debouncer(0.01)

        async def fire():
            calls.append(len(calls))
            if len(calls) < 2:
                debouncer.schedule(fire)

        debouncer.schedule(fire)
        await debouncer.wait()

    asyncio.run(scenario())
    assert calls == [0, 1]


def test_wait_without_schedule_returns():
    asyncio.run(Debouncer(1).wait())

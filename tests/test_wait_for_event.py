import asyncio
import pytest
from fakes import FakeClient, transfer_event, success_event
from subsend.tx.errors import SubmissionTimeout
from subsend.tx.events import EventRecord
from subsend.tx.waiter import wait_for_event


async def _started(client, coro):
    task = asyncio.ensure_future(coro)
    while client.event_callback is None:
        await asyncio.sleep(0)
    return task


@pytest.mark.asyncio
async def test_wait_for_event_resolves_first_match():
    client = FakeClient()
    task = await _started(client, wait_for_event(client, "Balances", "Transfer"))

    client.emit([success_event()])
    assert not task.done()

    first = transfer_event(1)
    client.emit([success_event(), first, transfer_event(2)])
    client.emit([transfer_event(3)])

    assert await task is first
    assert client.subscription.unsubscribe_calls == 1


@pytest.mark.asyncio
async def test_wait_for_event_unwraps_records():
    class Wrapped:
        def __init__(self, event):
            self.event = event

    client = FakeClient()
    task = await _started(client, wait_for_event(client, "System", "Remarked"))

    remarked = EventRecord("System", "Remarked", ["alice", "0x00"])
    client.emit([Wrapped(remarked)])

    assert await task is remarked


@pytest.mark.asyncio
async def test_wait_for_event_timeout_unsubscribes():
    client = FakeClient()

    with pytest.raises(SubmissionTimeout):
        await wait_for_event(client, "Balances", "Transfer", timeout=0.05)

    assert client.subscription.unsubscribe_calls == 1


@pytest.mark.asyncio
async def test_wait_for_event_cancel_unsubscribes():
    client = FakeClient()
    task = await _started(client, wait_for_event(client, "Balances", "Transfer"))

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert client.subscription.unsubscribe_calls == 1


@pytest.mark.asyncio
async def test_wait_for_event_propagates_client_errors():
    client = FakeClient()
    task = await _started(client, wait_for_event(client, "Balances", "Transfer"))

    client.emit(ConnectionError("websocket closed"))

    with pytest.raises(ConnectionError):
        await task

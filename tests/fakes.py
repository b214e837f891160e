import asyncio
from subsend.apis.substrate_client import MetaError
from subsend.tx.events import EventRecord, TypeDef
from subsend.tx.status import StatusUpdate, StatusKind


class FakeSubscription:
    def __init__(self):
        self.unsubscribe_calls = 0

    @property
    def closed(self):
        return self.unsubscribe_calls > 0

    def unsubscribe(self):
        self.unsubscribe_calls += 1


class FakeCall:
    """
    Plays back `statuses` to the callback of `send`, one per loop iteration.

    Like a real stream it keeps delivering after `unsubscribe()` (`leaky`), so the waiter has to cope
    with redundant callbacks. With `immediate`, everything is delivered before `send` returns.
    """

    def __init__(self, statuses, leaky=True, immediate=False):
        self.statuses = statuses
        self.leaky = leaky
        self.immediate = immediate
        self.subscription = None
        self.delivered = []

    async def send(self, callback):
        self.subscription = FakeSubscription()
        if self.immediate:
            for status in self.statuses:
                self._deliver(callback, status)
        else:
            loop = asyncio.get_running_loop()
            for status in self.statuses:
                loop.call_soon(self._deliver, callback, status)
        return self.subscription

    def _deliver(self, callback, status):
        if self.subscription.closed and not self.leaky:
            return
        self.delivered.append(status)
        callback(status)


class FakeClient:
    def __init__(self, meta_errors=None):
        self.meta_errors = meta_errors or {}
        self.event_callback = None
        self.subscription = None

    def is_extrinsic_failed(self, record):
        return record.pallet == "System" and record.method == "ExtrinsicFailed"

    def find_meta_error(self, dispatch_error):
        module = dispatch_error["Module"]
        return self.meta_errors[(module["index"], module["error"])]

    async def subscribe_events(self, callback):
        self.event_callback = callback
        self.subscription = FakeSubscription()
        return self.subscription

    def emit(self, records):
        self.event_callback(records)


def in_block(events=None, block_hash="0xaa"):
    return StatusUpdate(StatusKind.IN_BLOCK, block_hash, events if events is not None else [])


def finalized(events=None, block_hash="0xaa"):
    return StatusUpdate(StatusKind.FINALIZED, block_hash, events if events is not None else [])


def status(name):
    return StatusUpdate.from_rpc(name)


def success_event():
    return EventRecord("System", "ExtrinsicSuccess", [{"weight": 1000}], [TypeDef("DispatchInfo")])


def transfer_event(amount=10):
    return EventRecord(
        "Balances", "Transfer",
        ["alice", "bob", amount],
        [TypeDef("AccountId32", "from"), TypeDef("AccountId32", "to"), TypeDef("u128", "amount")]
    )


def failed_event(dispatch_error):
    return EventRecord(
        "System", "ExtrinsicFailed",
        [dispatch_error, {"weight": 1000}],
        [TypeDef("DispatchError", "dispatch_error"), TypeDef("DispatchInfo", "dispatch_info")]
    )


INSUFFICIENT_BALANCE = MetaError("Balances", "InsufficientBalance", ["Balance too low", "to send value."])

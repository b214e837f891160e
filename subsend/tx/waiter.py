import asyncio
import itertools
import logging
from subsend.tx.errors import InvalidTransaction, ModuleDispatchFailure, RawDispatchFailure, SubmissionTimeout, \
    is_module_error
from subsend.tx.events import unwrap_event
from subsend.tx.status import StatusUpdate

logger = logging.getLogger(__name__)

# only used to tell the log lines of concurrent submissions apart
_tx_ids = itertools.count()


def check_dispatch(events: list, client) -> list:
    """
    Looks for `System.ExtrinsicFailed` among the events of a terminal status.

    :param events: the events triggered by the extrinsic
    :type events: list
    :param client: the chain client, used to recognize failure events and to look up module errors
    :return: `events`, untouched, if the dispatch succeeded
    :raises ModuleDispatchFailure: if the first failure carries a pallet error
    :raises RawDispatchFailure: if the first failure carries any other dispatch error
    """
    failures = [record for record in events if client.is_extrinsic_failed(unwrap_event(record))]
    if len(failures) == 0:
        return events

    # data of System.ExtrinsicFailed is (DispatchError, DispatchInfo)
    data = unwrap_event(failures[0]).data
    dispatch_error = data[0] if len(data) > 0 else None
    if is_module_error(dispatch_error):
        meta_error = client.find_meta_error(dispatch_error)
        raise ModuleDispatchFailure(meta_error.section, meta_error.method, meta_error.documentation)
    raise RawDispatchFailure(dispatch_error)


async def _settled(future, timeout, what):
    if timeout is None:
        return await future
    try:
        return await asyncio.wait_for(future, timeout)
    except asyncio.TimeoutError:
        raise SubmissionTimeout(f"{what} did not complete within {timeout}s") from None


async def submit_and_wait(call, client, wait_for_finalization: bool = True, timeout: float = None) -> list:
    """
    Submits `call` and waits for the first terminal status.

    Terminal is `InBlock` when not waiting for finalization, `Finalized` otherwise. `Invalid` always is.
    Only the first terminal status counts; whatever the subscription delivers afterwards is ignored.

    :param call: a prepared call offering `await call.send(callback) -> subscription`
    :param client: the chain client (see `SubstrateClient`)
    :param wait_for_finalization: wait for `Finalized` instead of `InBlock`
    :type wait_for_finalization: bool
    :param timeout: seconds to wait at most. None waits forever
    :type timeout: float or None
    :return: the events the extrinsic triggered
    :raises InvalidTransaction: if the node reports the extrinsic as invalid
    :raises DispatchFailure: if the extrinsic was included but failed to dispatch
    :raises SubmissionTimeout: if `timeout` passed without a terminal status
    """
    tx_id = next(_tx_ids)
    loop = asyncio.get_running_loop()
    future = loop.create_future()
    subscription = None

    def debug_msg(msg):
        logger.debug(f"submit_and_wait[id={tx_id}] - {msg}")

    def unsubscribe():
        if subscription is not None:
            subscription.unsubscribe()

    def settle(events):
        unsubscribe()
        try:
            future.set_result(check_dispatch(events, client))
        except Exception as e:
            logger.warning(f"submit_and_wait[id={tx_id}] - {e}")
            future.set_exception(e)

    def on_status(status: StatusUpdate):
        if future.done():
            debug_msg(f"Ignoring status {status}, outcome already decided")
            return

        if isinstance(status, Exception):
            unsubscribe()
            future.set_exception(status)
            return

        debug_msg(f"Current status is {status}")
        if status.is_in_block:
            debug_msg(f"Transaction included at blockHash {status.block_hash}")
            if not wait_for_finalization:
                settle(status.events if status.events is not None else [])
        elif status.is_finalized:
            debug_msg(f"Transaction finalized at blockHash {status.block_hash}")
            if wait_for_finalization:
                settle(status.events if status.events is not None else [])
        elif status.is_invalid:
            logger.warning(f"submit_and_wait[id={tx_id}] - Transaction failed (Invalid)")
            unsubscribe()
            future.set_exception(InvalidTransaction())

    subscription = await call.send(on_status)
    debug_msg("Submitted transaction...")

    try:
        events = await _settled(future, timeout, f"submit_and_wait[id={tx_id}]")
        logger.info(f"submit_and_wait[id={tx_id}] - Transaction succeeded with {len(events)} events")
        return events
    finally:
        subscription.unsubscribe()


async def wait_for_event(client, pallet: str, method: str, timeout: float = None):
    """
    Waits for the chain to emit `pallet.method` and returns that event.

    The event feed is unsubscribed as soon as the wait is over, however it ends.

    :param client: the chain client, offering `await client.subscribe_events(callback) -> subscription`
    :param pallet: the pallet name, e.g. `Balances`
    :type pallet: str
    :param method: the event name, e.g. `Transfer`
    :type method: str
    :param timeout: seconds to wait at most. None waits forever
    :type timeout: float or None
    :return: the first matching `EventRecord`
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def on_events(records):
        if future.done():
            return
        if isinstance(records, Exception):
            future.set_exception(records)
            return
        for record in records:
            event = unwrap_event(record)
            logger.debug(f"Found event: {event.pallet}:{event.method}")
            if event.pallet == pallet and event.method == method:
                future.set_result(event)
                return

    subscription = await client.subscribe_events(on_events)
    try:
        return await _settled(future, timeout, f"wait_for_event({pallet}.{method})")
    finally:
        subscription.unsubscribe()

import asyncio
import functools
import logging
import threading
from collections import namedtuple
from hashlib import blake2b
from scalecodec.types import GenericExtrinsic
from substrateinterface import SubstrateInterface, Keypair, ExtrinsicReceipt
from subsend.tx.errors import module_error_index
from subsend.tx.events import EventRecord, TypeDef
from subsend.tx.status import StatusUpdate, StatusKind

MetaError = namedtuple("MetaError", ["section", "method", "documentation"])


class Subscription:
    """
    Handle of a subscription running on the node.

    After `unsubscribe()` nothing more is delivered to the callback, even if the node keeps sending for a
    while. The RPC subscription itself is closed by the worker as soon as it sees the next message.
    """

    def __init__(self, name):
        self.name = name
        self.subscription_id = None
        self.worker = None
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def unsubscribe(self):
        self._closed.set()


class SubmittableCall:
    """An extrinsic ready to be sent with `submit_and_wait`."""

    def __init__(self, client: "SubstrateClient", extrinsic: GenericExtrinsic):
        self.client = client
        self.extrinsic = extrinsic

    @property
    def extrinsic_hash(self) -> str:
        return "0x" + blake2b(self.extrinsic.data.data, digest_size=32).hexdigest()

    async def send(self, callback) -> Subscription:
        """
        Submits the extrinsic and reports every status change to `callback` as a `StatusUpdate`.
        If the node rejects the submission, `callback` receives the exception instead.
        """
        return await self.client.watch_extrinsic(self, callback)

    def __str__(self):
        call = self.extrinsic.value.get("call", {}) if isinstance(self.extrinsic.value, dict) else {}
        return f"{call.get('call_module')}.{call.get('call_function')} ({self.extrinsic_hash})"


class SubstrateClient:
    """
    Async facade over a (blocking) `SubstrateInterface`.

    Every subscription runs on the default executor over its own connection, opened with `connect` and closed
    when the subscription ends, and hands its updates back to the event loop. `substrate` is kept for the
    short one-off requests, which `lock` serializes.
    """

    def __init__(self, substrate: SubstrateInterface, connect=None):
        """
        :param substrate: the connection for one-off requests
        :type substrate: SubstrateInterface
        :param connect: opens a new connection to the same node. Defaults to one with the url, ss58 format and
            type registry preset of `substrate`
        """
        self.logger = logging.getLogger(__name__)
        self.substrate = substrate
        self.connect = connect or self._connect_like_substrate
        self.lock = threading.RLock()
        self._type_defs = {}

    def _connect_like_substrate(self) -> SubstrateInterface:
        return SubstrateInterface(
            url=self.substrate.url,
            ss58_format=self.substrate.ss58_format,
            type_registry_preset=self.substrate.type_registry_preset
        )

    def is_extrinsic_failed(self, record: EventRecord) -> bool:
        return record.pallet == "System" and record.method == "ExtrinsicFailed"

    def find_meta_error(self, dispatch_error) -> MetaError:
        """
        Resolves a `Module` dispatch error to its pallet, name and docs.

        :param dispatch_error: the decoded `DispatchError`, e.g. `{'Module': {'index': 5, 'error': '0x02000000'}}`
        :return: `MetaError(section, method, documentation)`
        """
        module_index, error_index = module_error_index(dispatch_error)
        # metadata is in memory once the runtime is known; only load it when it is not
        metadata = self.substrate.metadata
        if metadata is None:
            with self.lock:
                self.substrate.init_runtime()
            metadata = self.substrate.metadata

        section = self._pallet_name(metadata, module_index)
        error = metadata.get_module_error(module_index=module_index, error_index=error_index)

        if error is None:
            self.logger.warning(f"No metadata for module error {module_index}-{error_index}")
            return MetaError(section, str(error_index), [])
        return MetaError(section, error.name, list(error.docs or []))

    @staticmethod
    def _pallet_name(metadata, module_index) -> str:
        for idx, pallet in enumerate(metadata.pallets):
            index = pallet.value.get("index", idx) if isinstance(pallet.value, dict) else idx
            if index == module_index:
                return pallet.name
        return str(module_index)

    async def create_call(self, call_module: str, call_function: str, call_params: dict = None,
                          keypair: Keypair = None) -> SubmittableCall:
        """
        Composes a call and wraps it in an extrinsic. This queries the node (runtime, nonce), so it runs on the
        executor.

        :param call_module: the pallet, like `System`
        :type call_module: str
        :param call_function: the call, like `remark`
        :type call_function: str
        :param call_params: the call's arguments
        :type call_params: dict
        :param keypair: signs the extrinsic. Without one, an unsigned extrinsic is created
        :type keypair: Keypair
        :return: the `SubmittableCall`
        """
        loop = asyncio.get_running_loop()
        extrinsic = await loop.run_in_executor(
            None, functools.partial(self._create_extrinsic, call_module, call_function, call_params or {}, keypair))
        return SubmittableCall(self, extrinsic)

    def _create_extrinsic(self, call_module, call_function, call_params, keypair) -> GenericExtrinsic:
        with self.lock:
            call = self.substrate.compose_call(
                call_module=call_module,
                call_function=call_function,
                call_params=call_params
            )
            if keypair is None:
                return self.substrate.create_unsigned_extrinsic(call)
            return self.substrate.create_signed_extrinsic(call=call, keypair=keypair)

    def to_event_record(self, scale_record, substrate: SubstrateInterface = None) -> EventRecord:
        """
        Converts one element of `System.Events` into an `EventRecord`.

        :param scale_record: the decoded `EventRecord` scale object (or its value)
        :param substrate: the connection whose metadata describes the event. Defaults to `self.substrate`
        :type substrate: SubstrateInterface
        :return: the `EventRecord`
        """
        value = scale_record.value if hasattr(scale_record, "value") else scale_record
        pallet = value["module_id"]
        method = value["event_id"]
        attributes = value.get("attributes")

        if isinstance(attributes, dict):
            data = list(attributes.values())
        elif isinstance(attributes, (list, tuple)):
            data = list(attributes)
        elif attributes is None:
            data = []
        else:
            data = [attributes]

        return EventRecord(
            pallet=pallet,
            method=method,
            data=data,
            type_def=self._event_type_def(pallet, method, substrate),
            phase=value.get("phase"),
            extrinsic_idx=value.get("extrinsic_idx")
        )

    def _event_type_def(self, pallet, method, substrate=None) -> list:
        shared = substrate is None or substrate is self.substrate
        if substrate is None:
            substrate = self.substrate

        key = (substrate.runtime_version, pallet, method)
        if key in self._type_defs:
            return self._type_defs[key]

        if shared:
            with self.lock:
                event_metadata = substrate.get_metadata_event(pallet, method)
        else:
            event_metadata = substrate.get_metadata_event(pallet, method)

        type_def = []
        if event_metadata is not None:
            meta = event_metadata.value
            # V14 metadata lists `fields`, earlier versions only the type names as `args`
            for arg in meta.get("fields") or meta.get("args") or []:
                if isinstance(arg, dict):
                    type_def.append(TypeDef(arg.get("typeName") or arg.get("type"), arg.get("name")))
                else:
                    type_def.append(TypeDef(arg))

        self._type_defs[key] = type_def
        return type_def

    def _triggered_events(self, substrate, extrinsic_hash, block_hash) -> list:
        receipt = ExtrinsicReceipt(substrate=substrate, extrinsic_hash=extrinsic_hash, block_hash=block_hash)
        return [self.to_event_record(event, substrate) for event in receipt.triggered_events]

    async def _subscribe(self, name, run, callback) -> Subscription:
        """
        Starts `run(substrate, subscription, forward)` on the executor, with `substrate` a connection of its own.
        Whatever the worker passes to `forward` reaches `callback` on the event loop, unless the subscription was
        cancelled in between.
        """
        loop = asyncio.get_running_loop()
        subscription = Subscription(name)

        def deliver(item):
            if subscription.closed:
                self.logger.debug(f"{name} - dropping update after unsubscribe")
                return
            callback(item)

        def forward(item):
            try:
                loop.call_soon_threadsafe(deliver, item)
            except RuntimeError:
                self.logger.debug(f"{name} - event loop closed, dropping update")

        def worker():
            substrate = None
            try:
                substrate = self.connect()
                run(substrate, subscription, forward)
            except Exception as e:
                self.logger.error(f"{name} - subscription failed: {e}")
                forward(e)
            finally:
                if substrate is not None:
                    substrate.close()
            self.logger.debug(f"{name} - subscription ended")

        subscription.worker = loop.run_in_executor(None, worker)
        return subscription

    async def watch_extrinsic(self, call: SubmittableCall, callback) -> Subscription:
        extrinsic_hash = call.extrinsic_hash

        def run(substrate, subscription, forward):
            def result_handler(message, update_nr, subscription_id):
                subscription.subscription_id = subscription_id
                if subscription.closed:
                    substrate.rpc_request("author_unwatchExtrinsic", [subscription_id])
                    return {"extrinsic_hash": extrinsic_hash, "unsubscribed": True}

                if "params" not in message:
                    return None

                status = StatusUpdate.from_rpc(message["params"]["result"])
                if status.kind in (StatusKind.IN_BLOCK, StatusKind.FINALIZED):
                    status.events = self._triggered_events(substrate, extrinsic_hash, status.block_hash)
                forward(status)

                # the node closes the subscription by itself after these
                if status.is_final:
                    return {"extrinsic_hash": extrinsic_hash, "status": status}
                return None

            substrate.rpc_request(
                "author_submitAndWatchExtrinsic",
                [str(call.extrinsic.data)],
                result_handler=result_handler
            )

        self.logger.info(f"Submitting extrinsic {extrinsic_hash}")
        return await self._subscribe(f"watch_extrinsic[{extrinsic_hash}]", run, callback)

    async def subscribe_events(self, callback) -> Subscription:
        """
        Reports the events of every new block to `callback` as a list of `EventRecord`.
        """

        def run(substrate, subscription, forward):
            def subscription_handler(events, update_nr, subscription_id):
                subscription.subscription_id = subscription_id
                if subscription.closed:
                    # any return value ends the storage subscription
                    return True
                forward([self.to_event_record(record, substrate) for record in events.elements])
                return None

            substrate.query("System", "Events", subscription_handler=subscription_handler)

        return await self._subscribe("subscribe_events", run, callback)

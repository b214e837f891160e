import logging
from dataclasses import dataclass, field
from typing import Optional
from scalecodec.base import ScaleType

logger = logging.getLogger(__name__)


@dataclass
class TypeDef:
    """Declared type of one event field, e.g. `TypeDef("AccountId32", "who")`."""
    type: Optional[str]
    name: Optional[str] = None


@dataclass
class EventRecord:
    """A decoded runtime event: `pallet.method(*data)` plus the declared type of each value."""
    pallet: str
    method: str
    data: list = field(default_factory=list)
    type_def: list = field(default_factory=list)
    phase: object = None
    extrinsic_idx: Optional[int] = None

    def __str__(self):
        return f"{self.pallet}:{self.method}"


def unwrap_event(record):
    """
    Events are sometimes handed around wrapped in a record holding them under `.event`.
    Returns the inner event in that case, the record itself otherwise.
    """
    inner = getattr(record, "event", None)
    if inner is not None:
        return inner
    return record


def find_event(events: list, pallet: str, method: str):
    """
    Returns the first event of `events` matching `pallet` and `method` exactly, or None.

    :param events: list of (possibly wrapped) event records
    :type events: list
    :param pallet: the pallet name, e.g. `Balances`
    :type pallet: str
    :param method: the event name, e.g. `Transfer`
    :type method: str
    :return: the matching item as found in `events`, or None if nothing matches
    """
    for record in events:
        event = unwrap_event(record)
        if event.pallet == pallet and event.method == method:
            return record
    return None


def to_json(value):
    """Converts a decoded SCALE value into something `json.dumps` accepts."""
    if isinstance(value, ScaleType):
        value = value.value
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, dict):
        return {key: to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    return value


def get_event_data(record) -> dict:
    """
    Maps each field's declared type name to its JSON value.

    Field types are not unique within an event (think `Transfer(AccountId, AccountId, Balance)`);
    for duplicates the later value wins.

    :param record: an `EventRecord` or a wrapper holding one under `.event`
    :return: dict of type name -> JSON value, in declaration order
    """
    event = unwrap_event(record)
    types = event.type_def or []

    result = {}
    for index, value in enumerate(event.data):
        key = types[index].type if index < len(types) else None
        logger.debug(f"get_event_data: {key}={value}")
        result[key] = to_json(value)
    return result

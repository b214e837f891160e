from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class StatusKind(Enum):
    FUTURE = "future"
    READY = "ready"
    BROADCAST = "broadcast"
    IN_BLOCK = "inblock"
    RETRACTED = "retracted"
    FINALITY_TIMEOUT = "finalitytimeout"
    FINALIZED = "finalized"
    USURPED = "usurped"
    DROPPED = "dropped"
    INVALID = "invalid"
    OTHER = "other"


# statuses after which the node sends nothing more for the watched extrinsic
FINAL_KINDS = {
    StatusKind.FINALIZED,
    StatusKind.FINALITY_TIMEOUT,
    StatusKind.USURPED,
    StatusKind.DROPPED,
    StatusKind.INVALID,
}

_KINDS_BY_KEY = {kind.value: kind for kind in StatusKind}


@dataclass
class StatusUpdate:
    """
    One message of an `author_submitAndWatchExtrinsic` subscription, together with the events the
    extrinsic triggered (only known once it is in a block).
    """
    kind: StatusKind
    data: object = None
    events: list = field(default_factory=list)

    @classmethod
    def from_rpc(cls, result, events=None):
        """
        Parses the `result` of a subscription message.

        The node sends unit statuses as plain strings (`"ready"`) and everything else as a single-key
        dict (`{"inBlock": "0x..."}`). Keys are matched case-insensitively like `substrate-interface` does.

        :param result: the `params.result` part of the message
        :type result: str or dict
        :param events: the triggered events, if already known
        :type events: list
        :return: the parsed `StatusUpdate`
        """
        if events is None:
            events = []

        if type(result) is str:
            kind = _KINDS_BY_KEY.get(result.lower(), StatusKind.OTHER)
            return cls(kind, None, events)

        if isinstance(result, dict) and len(result) > 0:
            key, data = next(iter(result.items()))
            kind = _KINDS_BY_KEY.get(key.lower(), StatusKind.OTHER)
            return cls(kind, data, events)

        return cls(StatusKind.OTHER, result, events)

    @property
    def is_in_block(self) -> bool:
        return self.kind is StatusKind.IN_BLOCK

    @property
    def is_finalized(self) -> bool:
        return self.kind is StatusKind.FINALIZED

    @property
    def is_invalid(self) -> bool:
        return self.kind is StatusKind.INVALID

    @property
    def is_final(self) -> bool:
        return self.kind in FINAL_KINDS

    @property
    def block_hash(self) -> Optional[str]:
        if self.kind in (StatusKind.IN_BLOCK, StatusKind.FINALIZED, StatusKind.RETRACTED):
            return self.data
        return None

    def __str__(self):
        if self.data is None:
            return self.kind.name
        return f"{self.kind.name}({self.data})"

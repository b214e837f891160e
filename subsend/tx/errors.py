import asyncio
import simplejson as json
from scalecodec.base import ScaleType


class SubmissionError(Exception):
    """Base class for everything `submit_and_wait` can fail with."""


class InvalidTransaction(SubmissionError):
    """The node reported the extrinsic as `Invalid`. Never retried."""

    def __init__(self, message="Transaction failed (Invalid)"):
        super().__init__(message)


class DispatchFailure(SubmissionError):
    """The extrinsic made it into a block but its dispatch emitted `System.ExtrinsicFailed`."""


class ModuleDispatchFailure(DispatchFailure):
    def __init__(self, section: str, method: str, documentation: list):
        self.section = section
        self.method = method
        self.documentation = list(documentation or [])
        super().__init__(f"DispatchError: {section}.{method}: {' '.join(self.documentation)}")


class RawDispatchFailure(DispatchFailure):
    def __init__(self, error):
        self.error = error
        super().__init__(f"DispatchError: {stringify_dispatch_error(error)}")


class SubmissionTimeout(SubmissionError, asyncio.TimeoutError):
    """Raised only when the caller asked for a bounded wait."""


def is_module_error(dispatch_error) -> bool:
    """
    Checks whether a decoded `DispatchError` value points at a pallet error.

    :param dispatch_error: the decoded value, e.g. `{'Module': {'index': 5, 'error': '0x02000000'}}` or `'BadOrigin'`
    :return: True for the `Module` variant
    """
    return isinstance(dispatch_error, dict) and "Module" in dispatch_error


def module_error_index(dispatch_error) -> tuple:
    """
    Extracts `(module_index, error_index)` from a `Module` dispatch error.

    Both the legacy tuple form and the named form are accepted. Since the
    `[u8; 4]` error encoding, the actual error index is the first byte (`0x02000000` -> 2).

    :param dispatch_error: the decoded `DispatchError` value
    :return: tuple of `(module_index, error_index)`
    """
    module = dispatch_error["Module"]
    if type(module) in (tuple, list):
        module_index, error_index = module[0], module[1]
    else:
        module_index, error_index = module["index"], module["error"]

    if type(error_index) is str:
        error_index = int(error_index[2:4], 16)

    return module_index, error_index


def stringify_dispatch_error(dispatch_error) -> str:
    """
    Renders a non-module dispatch error. Unit variants come through as their name (`BadOrigin`),
    everything else is written as compact JSON.
    """
    if isinstance(dispatch_error, ScaleType):
        dispatch_error = dispatch_error.value
    if type(dispatch_error) is str:
        return dispatch_error
    return json.dumps(dispatch_error, separators=(",", ":"), default=str)

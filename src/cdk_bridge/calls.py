"""Interpretation of the per-call status out-parameter."""

from enum import IntEnum
from typing import TYPE_CHECKING

from cdk_bridge.converters import STRING
from cdk_bridge.converters import FfiConverter
from cdk_bridge.errors import BridgeProtocolError
from cdk_bridge.errors import NativePanicError
from cdk_bridge.ffi import RustCallStatus

if TYPE_CHECKING:
    from cdk_bridge.bridge import NativeBridge

DOUBLE_PANIC_MESSAGE: str = "native library panicked while handling a panic"


class CallStatusCode(IntEnum):
    """Status vocabulary shared with the native side."""

    SUCCESS = 0
    ERROR = 1
    PANIC = 2


def _raise_panic(bridge: "NativeBridge", status: RustCallStatus) -> None:
    """Raise the fatal failure for a panicking call.

    An empty error buffer means the native side panicked again while building
    the panic message, so there is nothing to decode.

    :param bridge: Bridge that owns the error buffer.
    :param status: Call status with ``code == PANIC``.
    :raises NativePanicError: Always.
    """
    if status.error_buf.len > 0:
        message: str = STRING.lift(status.error_buf, bridge)
        raise NativePanicError(message)
    raise NativePanicError(DOUBLE_PANIC_MESSAGE)


def check_call_status(
    bridge: "NativeBridge",
    status: RustCallStatus,
    error_converter: FfiConverter | None = None,
) -> None:
    """Raise the failure reported by ``status``, if any.

    :param bridge: Bridge that owns any error buffer.
    :param status: Status filled in by the native call.
    :param error_converter: Converter for the call's declared error type, or
        ``None`` when the call declares no error.
    :raises FfiError: For a declared error (a subclass decoded from the buffer).
    :raises NativePanicError: For a native panic.
    :raises BridgeProtocolError: For an unknown status code, or a declared
        error from a call that declares none.
    """
    code: int = int(status.code)
    if code == CallStatusCode.SUCCESS:
        return

    if code == CallStatusCode.ERROR:
        if error_converter is None:
            bridge.free_buffer(status.error_buf)
            raise BridgeProtocolError("Function not returning an error returned an error")
        error: object = error_converter.lift(status.error_buf, bridge)
        if isinstance(error, BaseException) is False:
            raise BridgeProtocolError(f"{error_converter.name} did not decode to an exception: {error!r}")
        raise error  # type: ignore[misc]

    if code == CallStatusCode.PANIC:
        _raise_panic(bridge, status)

    raise BridgeProtocolError(f"Unknown call status code: {code}")

"""Per-library bridge session: initialization, buffers and native calls."""

import ctypes
import threading
from collections.abc import Callable
from contextlib import ExitStack
from ctypes import POINTER
from ctypes import c_uint8
from typing import Any

from cdk_bridge.calls import check_call_status
from cdk_bridge.contract import DEFAULT_CONTRACT
from cdk_bridge.contract import ContractTable
from cdk_bridge.contract import verify_contract
from cdk_bridge.converters import FfiConverter
from cdk_bridge.converters import decode
from cdk_bridge.converters import encode
from cdk_bridge.errors import BridgeProtocolError
from cdk_bridge.ffi import BUFFER_FREE_SYMBOL
from cdk_bridge.ffi import BUFFER_FROM_BYTES_SYMBOL
from cdk_bridge.ffi import ForeignBytes
from cdk_bridge.ffi import NativeLibrary
from cdk_bridge.ffi import RustBuffer
from cdk_bridge.ffi import RustCallStatus
from cdk_bridge.ffi import load_library
from cdk_bridge.wire import INT32_MAX


class NativeBridge:
    """Own one native library and the protocol spoken with it."""

    _library: NativeLibrary
    _contract: ContractTable
    _lock: threading.Lock
    _is_initialized: bool

    def __init__(self, library: NativeLibrary, contract: ContractTable = DEFAULT_CONTRACT) -> None:
        """Initialize a bridge session.

        :param library: Native symbol source.
        :param contract: Expected contract version and checksums.
        """
        self._library = library
        self._contract = contract
        self._lock = threading.Lock()
        self._is_initialized = False

    @property
    def library(self) -> NativeLibrary:
        """Return the native library behind this bridge.

        :returns: Native symbol source.
        """
        return self._library

    @property
    def is_initialized(self) -> bool:
        """Report whether ``initialize`` has completed.

        :returns: ``True`` once the contract was verified.
        """
        with self._lock:
            return self._is_initialized

    def initialize(self) -> None:
        """Verify the native contract once; later calls are no-ops.

        :raises ContractMismatchError: If the native library does not match.
        """
        with self._lock:
            if self._is_initialized is True:
                return
            verify_contract(self._library, self._contract)
            self._is_initialized = True

    def _require_initialized(self) -> None:
        """Fail unless the contract has been verified.

        :raises BridgeProtocolError: If ``initialize`` has not succeeded.
        """
        if self._is_initialized is False:
            raise BridgeProtocolError("Bridge is not initialized; call initialize() first")

    def resolve(self, symbol_name: str) -> Callable[..., Any]:
        """Resolve a native entry point once the contract is verified.

        :param symbol_name: Exported symbol name.
        :returns: Callable taking the native arguments and the status pointer.
        :raises BridgeProtocolError: If the bridge is not initialized or the
            library does not export ``symbol_name``.
        """
        self._require_initialized()
        return self._library.symbol(symbol_name)

    def call_resolved(
        self,
        function: Callable[..., Any],
        *args: Any,
        error_converter: FfiConverter | None = None,
    ) -> Any:
        """Invoke a resolved entry point and check its call status.

        :param function: Callable returned by ``resolve``.
        :param args: Native arguments, excluding the status out-parameter.
        :param error_converter: Converter for the declared error type, if any.
        :returns: Raw native return value.
        """
        status = RustCallStatus()
        result: Any = function(*args, ctypes.pointer(status))
        check_call_status(self, status, error_converter)
        return result

    def call(self, symbol_name: str, *args: Any, error_converter: FfiConverter | None = None) -> Any:
        """Invoke one native entry point and check its call status.

        :param symbol_name: Exported symbol name.
        :param args: Native arguments, excluding the status out-parameter.
        :param error_converter: Converter for the declared error type, if any.
        :returns: Raw native return value.
        """
        function: Callable[..., Any] = self.resolve(symbol_name)
        return self.call_resolved(function, *args, error_converter=error_converter)

    def bytes_to_buffer(self, payload: bytes) -> RustBuffer:
        """Copy host bytes into a native-allocated buffer.

        :param payload: Bytes to transfer.
        :returns: Buffer owned by whoever receives it next.
        :raises ValueError: If ``payload`` is longer than ``INT32_MAX``.
        """
        size: int = len(payload)
        if size == 0:
            return RustBuffer()
        if size > INT32_MAX:
            raise ValueError("Payload is too large to fit into Int32")
        array = (c_uint8 * size).from_buffer_copy(payload)
        foreign = ForeignBytes(len=size, data=ctypes.cast(array, POINTER(c_uint8)))
        buffer: RustBuffer = self.call(BUFFER_FROM_BYTES_SYMBOL, foreign)
        return buffer

    def buffer_to_bytes(self, buffer: RustBuffer) -> bytes:
        """Copy the contents of a buffer without freeing it.

        :param buffer: Native buffer.
        :returns: Copied bytes.
        :raises BridgeProtocolError: If a non-empty buffer has a null pointer.
        """
        length: int = int(buffer.len)
        if length == 0:
            return b""
        if bool(buffer.data) is False:
            raise BridgeProtocolError(f"Buffer of length {length} has a null data pointer")
        return ctypes.string_at(buffer.data, length)

    def free_buffer(self, buffer: RustBuffer) -> None:
        """Return a buffer to the native allocator.

        :param buffer: Buffer received from the native side.
        """
        self.call(BUFFER_FREE_SYMBOL, buffer)

    def consume_buffer(self, buffer: RustBuffer) -> bytes:
        """Copy a received buffer and free it.

        :param buffer: Buffer received from the native side.
        :returns: Copied bytes.
        """
        try:
            return self.buffer_to_bytes(buffer)
        finally:
            self.free_buffer(buffer)

    def lift_from_buffer(self, converter: FfiConverter, buffer: RustBuffer) -> Any:
        """Decode one top-level value from a received buffer and free it.

        :param converter: Converter for the value's type.
        :param buffer: Buffer received from the native side.
        :returns: Decoded value.
        :raises BridgeProtocolError: If bytes remain after the value.
        """
        return decode(converter, self.consume_buffer(buffer))

    def lower_into_buffer(self, converter: FfiConverter, value: Any) -> RustBuffer:
        """Encode one top-level value into a native-allocated buffer.

        :param converter: Converter for the value's type.
        :param value: Python value.
        :returns: Buffer to pass to a native call.
        """
        return self.bytes_to_buffer(encode(converter, value))

    def arguments(self) -> "CallArguments":
        """Open an argument scope for one native call.

        :returns: Fresh argument scope.
        """
        return CallArguments(self)


class CallArguments:
    """Lower arguments for one native call and keep borrowed handles alive.

    Handles borrowed through ``borrow`` stay borrowed until the scope exits,
    which is after the native call returns. Buffers lowered before a failure
    that prevents the call are freed on exit; once ``invoke`` runs the native
    side owns them.
    """

    _bridge: NativeBridge
    _stack: ExitStack
    _pending: list[RustBuffer]

    def __init__(self, bridge: NativeBridge) -> None:
        """Initialize an argument scope.

        :param bridge: Bridge the call goes through.
        """
        self._bridge = bridge
        self._stack = ExitStack()
        self._pending = []

    def __enter__(self) -> "CallArguments":
        self._stack.__enter__()
        return self

    def __exit__(self, exc_type: object, exc_value: object, exc_traceback: object) -> bool:
        try:
            pending: list[RustBuffer] = self._pending
            self._pending = []
            for buffer in pending:
                self._bridge.free_buffer(buffer)
        finally:
            self._stack.__exit__(exc_type, exc_value, exc_traceback)
        return False

    def lower(self, converter: FfiConverter, value: Any) -> Any:
        """Lower one argument.

        :param converter: Converter for the argument's type.
        :param value: Python value.
        :returns: Raw native argument.
        """
        raw: Any = converter.lower(value, self._bridge)
        if isinstance(raw, RustBuffer) is True:
            self._pending.append(raw)
        return raw

    def borrow(self, native_object: Any) -> int:
        """Borrow a handle object's pointer until this scope exits.

        :param native_object: Object exposing a ``handle`` attribute.
        :returns: Cloned native pointer valid for the call.
        :raises ValueError: If the object belongs to another bridge.
        """
        handle = native_object.handle
        if handle.bridge is not self._bridge:
            raise ValueError(f"{type(native_object).__name__} belongs to a different bridge")
        pointer: int = self._stack.enter_context(handle.hold())
        return pointer

    def invoke(self, symbol_name: str, *args: Any, error_converter: FfiConverter | None = None) -> Any:
        """Invoke the native call, handing lowered buffers to the native side.

        :param symbol_name: Exported symbol name.
        :param args: Raw native arguments.
        :param error_converter: Converter for the declared error type, if any.
        :returns: Raw native return value.
        :raises BridgeProtocolError: If the symbol cannot be resolved; pending
            buffers are then still freed on exit.
        """
        function: Callable[..., Any] = self._bridge.resolve(symbol_name)
        self._pending = []
        return self._bridge.call_resolved(function, *args, error_converter=error_converter)


_DEFAULT_BRIDGE_LOCK: threading.Lock = threading.Lock()
_DEFAULT_BRIDGE: NativeBridge | None = None


def initialize_default_bridge(
    library_path: str | None = None,
    library: NativeLibrary | None = None,
) -> NativeBridge:
    """Create, verify and register the process-wide bridge exactly once.

    :param library_path: Optional explicit path of the native library.
    :param library: Optional already-loaded library; wins over ``library_path``.
    :returns: The process-wide bridge.
    :raises LibraryNotFoundError: If the native library cannot be loaded.
    :raises ContractMismatchError: If the native contract does not match.
    """
    global _DEFAULT_BRIDGE
    with _DEFAULT_BRIDGE_LOCK:
        if _DEFAULT_BRIDGE is not None:
            return _DEFAULT_BRIDGE
        if library is None:
            library = load_library(library_path)
        bridge = NativeBridge(library)
        bridge.initialize()
        _DEFAULT_BRIDGE = bridge
        return bridge


def get_default_bridge() -> NativeBridge:
    """Return the process-wide bridge.

    :returns: The bridge registered by ``initialize_default_bridge``.
    :raises BridgeProtocolError: If no bridge has been initialized.
    """
    bridge: NativeBridge | None = _DEFAULT_BRIDGE
    if bridge is None:
        raise BridgeProtocolError("Bridge is not initialized; call cdk_bridge.initialize() first")
    return bridge


def resolve_bridge(bridge: NativeBridge | None) -> NativeBridge:
    """Return ``bridge``, or the process-wide bridge when ``None``.

    :param bridge: Explicit bridge or ``None``.
    :returns: Bridge to use.
    """
    if bridge is not None:
        return bridge
    return get_default_bridge()

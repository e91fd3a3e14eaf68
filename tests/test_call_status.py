"""Tests for call status interpretation and error propagation."""

from collections.abc import Iterator

import pytest

from cdk_bridge.bridge import NativeBridge
from cdk_bridge.calls import DOUBLE_PANIC_MESSAGE
from cdk_bridge.calls import check_call_status
from cdk_bridge.converters import FFI_ERROR
from cdk_bridge.converters import STRING
from cdk_bridge.converters import encode
from cdk_bridge.errors import BridgeFatalError
from cdk_bridge.errors import BridgeProtocolError
from cdk_bridge.errors import FfiError
from cdk_bridge.errors import InvalidInput
from cdk_bridge.errors import NativePanicError
from cdk_bridge.errors import WalletError
from cdk_bridge.ffi import BUFFER_FREE_SYMBOL
from cdk_bridge.ffi import FN_PREFIX
from cdk_bridge.ffi import RustCallStatus
from cdk_bridge.wallet import generate_mnemonic
from tests.fixtures.fake_native import MNEMONIC_WORDS
from tests.fixtures.fake_native import FakeNativeLibrary
from tests.fixtures.fake_native import initialized_bridge

GENERATE_MNEMONIC: str = f"{FN_PREFIX}func_generate_mnemonic"


@pytest.fixture
def fake() -> Iterator[FakeNativeLibrary]:
    """Provide a fake library and check it for buffer misuse afterwards.

    :yields: Fake native library.
    """
    library = FakeNativeLibrary()
    yield library
    assert library.invalid_frees == []
    assert library.live_buffers == 0


@pytest.fixture
def bridge(fake: FakeNativeLibrary) -> NativeBridge:
    return initialized_bridge(fake)


def _status(bridge: NativeBridge, code: int, payload: bytes = b"") -> RustCallStatus:
    """Build a status the way a native call would leave it.

    :param bridge: Bridge used to allocate the error buffer.
    :param code: Raw status code.
    :param payload: Error buffer contents.
    :returns: Filled-in call status.
    """
    status = RustCallStatus()
    status.code = code
    status.error_buf = bridge.bytes_to_buffer(payload)
    return status


def test_success_status_returns_quietly(bridge: NativeBridge) -> None:
    """Verify a success status raises nothing."""
    check_call_status(bridge, RustCallStatus(), FFI_ERROR)


def test_declared_error_surfaces_specific_variant(bridge: NativeBridge, fake: FakeNativeLibrary) -> None:
    """Verify variant 2 with message "bad amount" becomes ``InvalidInput``."""
    payload: bytes = b"\x00\x00\x00\x02" + encode(STRING, "bad amount")
    status: RustCallStatus = _status(bridge, 1, payload)

    with pytest.raises(InvalidInput) as exc_info:
        check_call_status(bridge, status, FFI_ERROR)

    error: InvalidInput = exc_info.value
    assert error.msg == "bad amount"
    assert error == InvalidInput("bad amount")
    assert isinstance(error, WalletError) is False
    assert fake.live_buffers == 0


def test_error_from_call_without_error_type_is_protocol_error(
    bridge: NativeBridge,
    fake: FakeNativeLibrary,
) -> None:
    """Verify an error status is impossible for calls that declare no error."""
    status: RustCallStatus = _status(bridge, 1, encode(FFI_ERROR, WalletError("x")))

    with pytest.raises(BridgeProtocolError, match="Function not returning an error returned an error"):
        check_call_status(bridge, status, None)
    assert fake.live_buffers == 0


def test_panic_message_is_decoded(bridge: NativeBridge, fake: FakeNativeLibrary) -> None:
    """Verify a panic buffer is read as a raw string and freed."""
    status: RustCallStatus = _status(bridge, 2, "index out of bounds".encode("utf-8"))

    with pytest.raises(NativePanicError, match="index out of bounds") as exc_info:
        check_call_status(bridge, status, FFI_ERROR)

    assert exc_info.value.message == "index out of bounds"
    assert isinstance(exc_info.value, FfiError) is False
    assert fake.live_buffers == 0


def test_empty_panic_buffer_reports_double_panic(bridge: NativeBridge, fake: FakeNativeLibrary) -> None:
    """Verify an empty panic buffer is never decoded."""
    status: RustCallStatus = _status(bridge, 2)
    fake.calls.clear()

    with pytest.raises(NativePanicError) as exc_info:
        check_call_status(bridge, status, FFI_ERROR)

    assert exc_info.value.message == DOUBLE_PANIC_MESSAGE
    assert BUFFER_FREE_SYMBOL not in fake.calls


def test_unknown_status_code_is_protocol_error(bridge: NativeBridge) -> None:
    """Verify status codes outside the shared vocabulary are fatal."""
    with pytest.raises(BridgeProtocolError, match="Unknown call status code: 3"):
        check_call_status(bridge, _status(bridge, 3), FFI_ERROR)

    with pytest.raises(BridgeProtocolError, match="Unknown call status code: -1"):
        check_call_status(bridge, _status(bridge, -1), None)


def test_declared_error_from_native_call(bridge: NativeBridge, fake: FakeNativeLibrary) -> None:
    """Verify a native call that reports an error raises it to the caller."""
    fake.fail_with_error(GENERATE_MNEMONIC, WalletError("no entropy"))

    with pytest.raises(WalletError, match="Wallet error: no entropy"):
        generate_mnemonic(bridge)

    words: str = generate_mnemonic(bridge)
    assert words == MNEMONIC_WORDS
    assert len(words.split()) == 12


def test_native_panic_is_fatal(bridge: NativeBridge, fake: FakeNativeLibrary) -> None:
    """Verify a panicking native call raises a fatal failure."""
    fake.fail_with_panic(GENERATE_MNEMONIC, "rng poisoned")

    with pytest.raises(BridgeFatalError, match="rng poisoned"):
        generate_mnemonic(bridge)


def test_unknown_status_from_native_call(bridge: NativeBridge, fake: FakeNativeLibrary) -> None:
    """Verify a native call reporting an unknown code raises a protocol error."""
    fake.fail_with_status(GENERATE_MNEMONIC, 7)

    with pytest.raises(BridgeProtocolError, match="Unknown call status code: 7"):
        generate_mnemonic(bridge)


def test_unresolved_symbol_frees_lowered_arguments(bridge: NativeBridge, fake: FakeNativeLibrary) -> None:
    """Verify buffers stay owned by the host until the entry point is found."""
    missing: str = f"{FN_PREFIX}method_ffiwallet_swap"

    with pytest.raises(BridgeProtocolError, match="does not export"):
        with bridge.arguments() as call:
            argument: object = call.lower(STRING, "x")
            assert fake.live_buffers == 1
            call.invoke(missing, argument)

    assert fake.live_buffers == 0
    assert missing not in fake.calls


def test_calls_require_initialize(fake: FakeNativeLibrary) -> None:
    """Verify no native entry point runs before the contract is verified."""
    bridge = NativeBridge(fake)

    with pytest.raises(BridgeProtocolError, match="call initialize\\(\\) first"):
        generate_mnemonic(bridge)
    assert GENERATE_MNEMONIC not in fake.calls

"""Tests for the contract version and checksum guard."""

import pytest

from cdk_bridge.bridge import NativeBridge
from cdk_bridge.contract import CHECKSUMS
from cdk_bridge.contract import CONTRACT_VERSION
from cdk_bridge.contract import DEFAULT_CONTRACT
from cdk_bridge.contract import ContractTable
from cdk_bridge.contract import verify_contract
from cdk_bridge.errors import BridgeProtocolError
from cdk_bridge.errors import ContractMismatchError
from cdk_bridge.ffi import CHECKSUM_PREFIX
from cdk_bridge.ffi import CONTRACT_VERSION_SYMBOL
from cdk_bridge.ffi import FN_PREFIX
from tests.fixtures.fake_native import FakeNativeLibrary


def _native_calls(fake: FakeNativeLibrary) -> list[str]:
    """Return logged calls that are neither the version nor a checksum query.

    :param fake: Fake native library.
    :returns: Symbol names of real entry point calls.
    """
    return [
        name
        for name in fake.calls
        if name != CONTRACT_VERSION_SYMBOL and name.startswith(CHECKSUM_PREFIX) is False
    ]


def test_checksum_table_covers_every_exposed_symbol() -> None:
    """Verify the compiled-in table lists each function, method and constructor."""
    assert CONTRACT_VERSION == 26
    assert len(CHECKSUMS) == 16
    assert CHECKSUMS["func_generate_mnemonic"] == 44815
    assert CHECKSUMS["constructor_ffilocalstore_new_with_path"] == 766
    assert DEFAULT_CONTRACT.checksum_symbol("method_ffiwallet_unit") == (
        "uniffi_cdk_ffi_checksum_method_ffiwallet_unit"
    )


def test_matching_library_initializes_once() -> None:
    """Verify a matching library passes and later initialize calls are no-ops."""
    fake = FakeNativeLibrary()
    bridge = NativeBridge(fake)
    assert bridge.is_initialized is False

    bridge.initialize()
    queries: int = len(fake.calls)
    assert queries == 1 + len(CHECKSUMS)
    assert fake.calls[0] == CONTRACT_VERSION_SYMBOL

    bridge.initialize()
    assert len(fake.calls) == queries
    assert bridge.is_initialized is True


def test_version_mismatch_aborts_before_checksums() -> None:
    """Verify a different contract version is fatal and stops the handshake."""
    fake = FakeNativeLibrary()
    fake.contract_version = 25
    bridge = NativeBridge(fake)

    with pytest.raises(ContractMismatchError) as exc_info:
        bridge.initialize()

    error: ContractMismatchError = exc_info.value
    assert error.symbol_name == "contract_version"
    assert error.expected == 26
    assert error.actual == 25
    assert fake.calls == [CONTRACT_VERSION_SYMBOL]
    assert bridge.is_initialized is False


def test_wrong_checksum_aborts_before_any_other_call() -> None:
    """Verify one wrong checksum names the symbol and blocks every later call."""
    fake = FakeNativeLibrary()
    bad_symbol: str = f"{CHECKSUM_PREFIX}method_ffiwallet_mint"
    fake.checksums[bad_symbol] = 1234
    bridge = NativeBridge(fake)

    with pytest.raises(ContractMismatchError, match="method_ffiwallet_mint: contract mismatch") as exc_info:
        bridge.initialize()

    assert exc_info.value.symbol_name == bad_symbol
    assert exc_info.value.expected == 58480
    assert exc_info.value.actual == 1234
    assert _native_calls(fake) == []
    assert isinstance(exc_info.value, BridgeProtocolError) is True

    with pytest.raises(BridgeProtocolError, match="not initialized"):
        bridge.call(f"{FN_PREFIX}func_generate_mnemonic")
    assert _native_calls(fake) == []


def test_custom_contract_table() -> None:
    """Verify the guard checks exactly the table it is given."""
    fake = FakeNativeLibrary()
    contract = ContractTable(version=CONTRACT_VERSION, checksums={"func_generate_mnemonic": 44815})

    verify_contract(fake, contract)
    assert fake.calls == [
        CONTRACT_VERSION_SYMBOL,
        f"{CHECKSUM_PREFIX}func_generate_mnemonic",
    ]


def test_missing_checksum_symbol_is_protocol_error() -> None:
    """Verify a library lacking an expected checksum export is rejected."""
    fake = FakeNativeLibrary()
    del fake.checksums[f"{CHECKSUM_PREFIX}method_ffiwallet_send"]

    with pytest.raises(BridgeProtocolError, match="does not export"):
        verify_contract(fake)

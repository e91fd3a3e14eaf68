"""Tests for the process-wide entry points and native library discovery."""

import ctypes.util
from pathlib import Path

import pytest

import cdk_bridge
from cdk_bridge import bridge as bridge_module
from cdk_bridge import ffi as ffi_module
from cdk_bridge.errors import BridgeProtocolError
from cdk_bridge.errors import LibraryNotFoundError
from cdk_bridge.ffi import LIBRARY_ENV_VAR
from cdk_bridge.ffi import candidate_paths
from cdk_bridge.ffi import load_library
from cdk_bridge.ffi import signature_for
from cdk_bridge.wallet import LocalStore
from tests.fixtures.fake_native import MNEMONIC_WORDS
from tests.fixtures.fake_native import FakeNativeLibrary


@pytest.fixture
def no_default_bridge(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start each test without a process-wide bridge.

    :param monkeypatch: Pytest monkeypatch fixture.
    """
    monkeypatch.setattr(bridge_module, "_DEFAULT_BRIDGE", None)


def test_get_bridge_before_initialize_fails(no_default_bridge: None) -> None:
    """Verify using the default bridge before ``initialize`` is refused."""
    with pytest.raises(BridgeProtocolError, match="call cdk_bridge.initialize\\(\\) first"):
        cdk_bridge.get_bridge()

    with pytest.raises(BridgeProtocolError):
        LocalStore()


def test_initialize_is_idempotent(no_default_bridge: None, monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify the first ``initialize`` wins and later calls reuse its bridge."""
    fake = FakeNativeLibrary()
    requested: list[str | None] = []

    def fake_load(library_path: str | None = None) -> FakeNativeLibrary:
        requested.append(library_path)
        return fake

    monkeypatch.setattr(bridge_module, "load_library", fake_load)

    first: cdk_bridge.NativeBridge = cdk_bridge.initialize("/opt/cdk/libcdk_ffi.so")
    second: cdk_bridge.NativeBridge = cdk_bridge.initialize("/elsewhere/libcdk_ffi.so")

    assert first is second
    assert first.is_initialized is True
    assert requested == ["/opt/cdk/libcdk_ffi.so"]
    assert cdk_bridge.get_bridge() is first

    assert cdk_bridge.generate_mnemonic() == MNEMONIC_WORDS
    with LocalStore() as store:
        assert store.bridge is first
    assert fake.live_buffers == 0
    assert fake.objects == {}


def test_failed_initialize_registers_nothing(no_default_bridge: None, monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify a contract mismatch leaves the process uninitialized."""
    fake = FakeNativeLibrary()
    fake.contract_version = 1
    monkeypatch.setattr(bridge_module, "load_library", lambda library_path=None: fake)

    with pytest.raises(cdk_bridge.ContractMismatchError):
        cdk_bridge.initialize()
    with pytest.raises(BridgeProtocolError, match="not initialized"):
        cdk_bridge.get_bridge()


def test_candidate_paths_order(monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify explicit path, environment, loader search and default in order."""
    monkeypatch.setenv(LIBRARY_ENV_VAR, "/env/libcdk_ffi.so")
    monkeypatch.setattr(ctypes.util, "find_library", lambda name: "libcdk_ffi.so.1")
    monkeypatch.setattr(ffi_module, "_default_file_name", lambda: "libcdk_ffi.so")

    assert candidate_paths("/explicit/libcdk_ffi.so") == [
        "/explicit/libcdk_ffi.so",
        "/env/libcdk_ffi.so",
        "libcdk_ffi.so.1",
        "libcdk_ffi.so",
    ]
    assert candidate_paths("/env/libcdk_ffi.so") == [
        "/env/libcdk_ffi.so",
        "libcdk_ffi.so.1",
        "libcdk_ffi.so",
    ]


def test_missing_library_lists_every_location(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Verify a failed load reports all tried locations."""
    env_path: str = str(tmp_path / "env" / "libcdk_ffi.so")
    default_path: str = str(tmp_path / "default" / "libcdk_ffi.so")
    explicit_path: str = str(tmp_path / "explicit" / "libcdk_ffi.so")
    monkeypatch.setenv(LIBRARY_ENV_VAR, env_path)
    monkeypatch.setattr(ctypes.util, "find_library", lambda name: None)
    monkeypatch.setattr(ffi_module, "_default_file_name", lambda: default_path)

    with pytest.raises(LibraryNotFoundError) as exc_info:
        load_library(explicit_path)

    message: str = str(exc_info.value)
    for path in (explicit_path, env_path, default_path):
        assert path in message
    assert LIBRARY_ENV_VAR in message


def test_signature_table_rejects_unknown_symbols() -> None:
    """Verify only the known symbol surface gets a ctypes signature."""
    argtypes, restype = signature_for("uniffi_cdk_ffi_checksum_func_generate_mnemonic")
    assert argtypes == []
    assert restype is ctypes.c_uint16

    with pytest.raises(BridgeProtocolError, match="Unknown native symbol"):
        signature_for("uniffi_cdk_ffi_fn_method_ffiwallet_swap")

"""ctypes structures and shared-library loading for the cdk_ffi native library."""

import ctypes
import ctypes.util
import logging
import os
import platform
import threading
from collections.abc import Callable
from ctypes import POINTER
from ctypes import Structure
from ctypes import c_int8
from ctypes import c_int32
from ctypes import c_uint8
from ctypes import c_uint16
from ctypes import c_uint32
from ctypes import c_uint64
from ctypes import c_void_p
from typing import Any

from cdk_bridge.errors import BridgeProtocolError
from cdk_bridge.errors import LibraryNotFoundError

logger = logging.getLogger(__name__)

LIBRARY_ENV_VAR: str = "CDK_BRIDGE_LIBRARY"
LIBRARY_NAME: str = "cdk_ffi"
SYMBOL_PREFIX: str = "uniffi_cdk_ffi_"
CHECKSUM_PREFIX: str = f"{SYMBOL_PREFIX}checksum_"
FN_PREFIX: str = f"{SYMBOL_PREFIX}fn_"
BUFFER_FROM_BYTES_SYMBOL: str = "ffi_cdk_ffi_rustbuffer_from_bytes"
BUFFER_FREE_SYMBOL: str = "ffi_cdk_ffi_rustbuffer_free"
CONTRACT_VERSION_SYMBOL: str = "ffi_cdk_ffi_uniffi_contract_version"


class RustBuffer(Structure):
    """Contiguous byte region owned by whichever side produced it."""

    _fields_ = [
        ("capacity", c_uint64),
        ("len", c_uint64),
        ("data", POINTER(c_uint8)),
    ]

    def __repr__(self) -> str:
        return f"RustBuffer(len={self.len}, capacity={self.capacity})"


class ForeignBytes(Structure):
    """Borrowed host bytes handed to the native allocator."""

    _fields_ = [
        ("len", c_int32),
        ("data", POINTER(c_uint8)),
    ]


class RustCallStatus(Structure):
    """Per-call out-parameter reporting success, declared error or panic."""

    _fields_ = [
        ("code", c_int8),
        ("error_buf", RustBuffer),
    ]


_STATUS = POINTER(RustCallStatus)

# name -> (argtypes, restype); checksum symbols are resolved by prefix
SIGNATURES: dict[str, tuple[list[Any], Any]] = {
    BUFFER_FROM_BYTES_SYMBOL: ([ForeignBytes, _STATUS], RustBuffer),
    BUFFER_FREE_SYMBOL: ([RustBuffer, _STATUS], None),
    CONTRACT_VERSION_SYMBOL: ([], c_uint32),
    f"{FN_PREFIX}func_generate_mnemonic": ([_STATUS], RustBuffer),
    f"{FN_PREFIX}clone_ffilocalstore": ([c_void_p, _STATUS], c_void_p),
    f"{FN_PREFIX}free_ffilocalstore": ([c_void_p, _STATUS], None),
    f"{FN_PREFIX}constructor_ffilocalstore_new": ([_STATUS], c_void_p),
    f"{FN_PREFIX}constructor_ffilocalstore_new_with_path": ([RustBuffer, _STATUS], c_void_p),
    f"{FN_PREFIX}clone_ffiwallet": ([c_void_p, _STATUS], c_void_p),
    f"{FN_PREFIX}free_ffiwallet": ([c_void_p, _STATUS], None),
    f"{FN_PREFIX}constructor_ffiwallet_from_mnemonic": (
        [RustBuffer, RustBuffer, c_void_p, RustBuffer, _STATUS],
        c_void_p,
    ),
    f"{FN_PREFIX}constructor_ffiwallet_restore_from_mnemonic": (
        [RustBuffer, RustBuffer, c_void_p, RustBuffer, _STATUS],
        c_void_p,
    ),
    f"{FN_PREFIX}method_ffiwallet_balance": ([c_void_p, _STATUS], RustBuffer),
    f"{FN_PREFIX}method_ffiwallet_get_mint_info": ([c_void_p, _STATUS], RustBuffer),
    f"{FN_PREFIX}method_ffiwallet_melt": ([c_void_p, RustBuffer, _STATUS], RustBuffer),
    f"{FN_PREFIX}method_ffiwallet_melt_quote": ([c_void_p, RustBuffer, _STATUS], RustBuffer),
    f"{FN_PREFIX}method_ffiwallet_mint": ([c_void_p, RustBuffer, RustBuffer, _STATUS], RustBuffer),
    f"{FN_PREFIX}method_ffiwallet_mint_quote": ([c_void_p, RustBuffer, RustBuffer, _STATUS], RustBuffer),
    f"{FN_PREFIX}method_ffiwallet_mint_quote_state": ([c_void_p, RustBuffer, _STATUS], RustBuffer),
    f"{FN_PREFIX}method_ffiwallet_mint_url": ([c_void_p, _STATUS], RustBuffer),
    f"{FN_PREFIX}method_ffiwallet_prepare_send": ([c_void_p, RustBuffer, RustBuffer, _STATUS], RustBuffer),
    f"{FN_PREFIX}method_ffiwallet_send": (
        [c_void_p, RustBuffer, RustBuffer, RustBuffer, _STATUS],
        RustBuffer,
    ),
    f"{FN_PREFIX}method_ffiwallet_unit": ([c_void_p, _STATUS], RustBuffer),
}


def signature_for(symbol_name: str) -> tuple[list[Any], Any]:
    """Return the ctypes signature of one exported symbol.

    :param symbol_name: Exported symbol name.
    :returns: Tuple of ``(argtypes, restype)``.
    :raises BridgeProtocolError: If the symbol is not part of the known surface.
    """
    if symbol_name.startswith(CHECKSUM_PREFIX) is True:
        return [], c_uint16
    signature: tuple[list[Any], Any] | None = SIGNATURES.get(symbol_name)
    if signature is None:
        raise BridgeProtocolError(f"Unknown native symbol: {symbol_name}")
    return signature


class NativeLibrary:
    """Symbol source for the bridge; subclasses resolve names to callables."""

    def symbol(self, name: str) -> Callable[..., Any]:
        """Resolve one exported symbol.

        :param name: Exported symbol name.
        :returns: Callable taking the native arguments.
        """
        raise NotImplementedError


class CdllLibrary(NativeLibrary):
    """Native library loaded through ``ctypes.CDLL``."""

    _path: str
    _cdll: ctypes.CDLL
    _lock: threading.Lock
    _resolved: dict[str, Callable[..., Any]]

    def __init__(self, path: str) -> None:
        """Load a shared library.

        :param path: Path or soname passed to the dynamic loader.
        :raises OSError: If the dynamic loader rejects the path.
        """
        self._path = path
        self._cdll = ctypes.CDLL(path)
        self._lock = threading.Lock()
        self._resolved = {}

    @property
    def path(self) -> str:
        """Return the path this library was loaded from.

        :returns: Loader path.
        """
        return self._path

    def symbol(self, name: str) -> Callable[..., Any]:
        """Resolve one exported symbol and configure its ctypes signature.

        :param name: Exported symbol name.
        :returns: Configured foreign function.
        :raises BridgeProtocolError: If the library does not export ``name``.
        """
        with self._lock:
            cached: Callable[..., Any] | None = self._resolved.get(name)
            if cached is not None:
                return cached

            argtypes, restype = signature_for(name)
            try:
                function = getattr(self._cdll, name)
            except AttributeError as exc:
                raise BridgeProtocolError(f"Native library {self._path} does not export {name}") from exc
            function.argtypes = argtypes
            function.restype = restype
            self._resolved[name] = function
            return function


def _default_file_name() -> str:
    """Return the platform file name of the native library.

    :returns: Shared-library file name.
    """
    system: str = platform.system()
    if system == "Darwin":
        return f"lib{LIBRARY_NAME}.dylib"
    if system == "Windows":
        return f"{LIBRARY_NAME}.dll"
    return f"lib{LIBRARY_NAME}.so"


def candidate_paths(library_path: str | None = None) -> list[str]:
    """List library locations in resolution order, without duplicates.

    :param library_path: Explicit path, tried first when given.
    :returns: Ordered candidate paths.
    """
    candidates: list[str] = []
    if library_path is not None:
        candidates.append(library_path)
    env_path: str | None = os.environ.get(LIBRARY_ENV_VAR)
    if env_path:
        candidates.append(env_path)
    found: str | None = ctypes.util.find_library(LIBRARY_NAME)
    if found is not None:
        candidates.append(found)
    candidates.append(_default_file_name())

    unique: list[str] = []
    for candidate in candidates:
        if candidate not in unique:
            unique.append(candidate)
    return unique


def load_library(library_path: str | None = None) -> CdllLibrary:
    """Load the native library from the first location that succeeds.

    :param library_path: Optional explicit path.
    :returns: Loaded library.
    :raises LibraryNotFoundError: If no candidate location could be loaded.
    """
    candidates: list[str] = candidate_paths(library_path)
    for candidate in candidates:
        logger.debug("Attempting to load %s from %s", LIBRARY_NAME, candidate)
        try:
            library = CdllLibrary(candidate)
        except OSError as exc:
            logger.debug("Failed to load %s: %s", candidate, exc)
            continue
        logger.info("Loaded %s from %s", LIBRARY_NAME, candidate)
        return library

    tried: str = ", ".join(candidates)
    raise LibraryNotFoundError(
        f"Could not load the {LIBRARY_NAME} native library. Tried: {tried}. "
        + f"Set {LIBRARY_ENV_VAR} or pass library_path explicitly."
    )

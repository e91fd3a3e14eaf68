"""User-facing API entrypoints for cdk_bridge."""

from cdk_bridge.bridge import NativeBridge
from cdk_bridge.bridge import get_default_bridge
from cdk_bridge.bridge import initialize_default_bridge
from cdk_bridge.wallet import generate_mnemonic as _generate_mnemonic


def initialize(library_path: str | None = None) -> NativeBridge:
    """Load the native library and verify its contract once per process.

    Calling this again returns the already-initialized bridge and ignores
    ``library_path``.

    :param library_path: Optional explicit path of the native library. When omitted,
        ``CDK_BRIDGE_LIBRARY`` and the platform search path are tried.
    :returns: The process-wide bridge.
    :raises LibraryNotFoundError: If the native library cannot be loaded.
    :raises ContractMismatchError: If the library was built from a different interface.
    """
    return initialize_default_bridge(library_path)


def get_bridge() -> NativeBridge:
    """Return the process-wide bridge.

    :returns: The bridge created by ``initialize``.
    :raises BridgeProtocolError: If ``initialize`` has not been called.
    """
    return get_default_bridge()


def generate_mnemonic() -> str:
    """Generate a fresh 12-word mnemonic through the process-wide bridge.

    :returns: Space-separated mnemonic words.
    :raises FfiError: If the native side reports an error.
    """
    return _generate_mnemonic()

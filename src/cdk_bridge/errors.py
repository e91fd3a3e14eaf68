"""Custom error types for cdk_bridge."""


class BridgeError(Exception):
    """Base class for all cdk_bridge errors."""


class LibraryNotFoundError(BridgeError):
    """Raised when the native shared library cannot be loaded."""


class BridgeFatalError(BridgeError):
    """Base class for unrecoverable bridge failures."""


class BridgeProtocolError(BridgeFatalError):
    """Raised when the host and native sides disagree on the wire contract."""


class ContractMismatchError(BridgeProtocolError):
    """Raised when a native contract version or symbol checksum does not match."""

    symbol_name: str
    expected: int
    actual: int

    def __init__(self, symbol_name: str, expected: int, actual: int) -> None:
        """Initialize a contract mismatch error.

        :param symbol_name: Offending symbol, or ``contract_version``.
        :param expected: Value compiled into the host bindings.
        :param actual: Value reported by the native library.
        """
        self.symbol_name = symbol_name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"cdk_ffi: {symbol_name}: contract mismatch "
            + f"(expected {expected}, native library reports {actual})"
        )


class HandleDestroyedError(BridgeProtocolError):
    """Raised when borrowing a handle whose native object was destroyed."""


class HandleOverflowError(BridgeProtocolError):
    """Raised when a handle call counter would overflow."""


class NativePanicError(BridgeFatalError):
    """Raised when the native library reports a panic."""

    message: str

    def __init__(self, message: str) -> None:
        """Initialize a native panic wrapper.

        :param message: Panic message decoded from the native side.
        """
        self.message = message
        super().__init__(message)


class FfiError(BridgeError):
    """Declared error returned by fallible native calls."""

    label: str = "Ffi error"
    msg: str

    def __init__(self, msg: str) -> None:
        """Initialize a declared native error.

        :param msg: Error message reported by the native library.
        """
        self.msg = msg
        super().__init__(f"{self.label}: {msg}")

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.msg == other.msg  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.msg))


class WalletError(FfiError):
    """Wallet operation failed on the native side."""

    label = "Wallet error"


class InvalidInput(FfiError):
    """Native side rejected an argument."""

    label = "Invalid input"


class NetworkError(FfiError):
    """Native side could not reach the mint."""

    label = "Network error"


class InternalError(FfiError):
    """Native side hit an internal failure."""

    label = "Internal error"

"""Big-endian scalar primitives for the bridge buffer protocol."""

import struct

from cdk_bridge.errors import BridgeProtocolError

INT32_MAX: int = 2**31 - 1

_I8 = struct.Struct(">b")
_U8 = struct.Struct(">B")
_I16 = struct.Struct(">h")
_U16 = struct.Struct(">H")
_I32 = struct.Struct(">i")
_U32 = struct.Struct(">I")
_I64 = struct.Struct(">q")
_U64 = struct.Struct(">Q")
_F32 = struct.Struct(">f")
_F64 = struct.Struct(">d")


def _pack(layout: struct.Struct, value: int | float, type_name: str) -> bytes:
    """Pack one scalar, turning range errors into ``ValueError``.

    :param layout: Compiled struct layout.
    :param value: Scalar value.
    :param type_name: Wire type name used in the error message.
    :returns: Encoded bytes.
    :raises ValueError: If ``value`` does not fit ``layout``.
    """
    try:
        return layout.pack(value)
    except (struct.error, OverflowError) as exc:
        raise ValueError(f"{value!r} does not fit in {type_name}") from exc


class WireWriter:
    """Accumulate one encoded value."""

    _chunks: bytearray

    def __init__(self) -> None:
        """Initialize an empty writer."""
        self._chunks = bytearray()

    def getvalue(self) -> bytes:
        """Return everything written so far.

        :returns: Encoded bytes.
        """
        return bytes(self._chunks)

    def write_raw(self, payload: bytes) -> None:
        """Append bytes with no length prefix."""
        self._chunks += payload

    def write_i8(self, value: int) -> None:
        """Write one big-endian ``i8``."""
        self._chunks += _pack(_I8, value, "i8")

    def write_u8(self, value: int) -> None:
        """Write one big-endian ``u8``."""
        self._chunks += _pack(_U8, value, "u8")

    def write_i16(self, value: int) -> None:
        """Write one big-endian ``i16``."""
        self._chunks += _pack(_I16, value, "i16")

    def write_u16(self, value: int) -> None:
        """Write one big-endian ``u16``."""
        self._chunks += _pack(_U16, value, "u16")

    def write_i32(self, value: int) -> None:
        """Write one big-endian ``i32``."""
        self._chunks += _pack(_I32, value, "i32")

    def write_u32(self, value: int) -> None:
        """Write one big-endian ``u32``."""
        self._chunks += _pack(_U32, value, "u32")

    def write_i64(self, value: int) -> None:
        """Write one big-endian ``i64``."""
        self._chunks += _pack(_I64, value, "i64")

    def write_u64(self, value: int) -> None:
        """Write one big-endian ``u64``."""
        self._chunks += _pack(_U64, value, "u64")

    def write_f32(self, value: float) -> None:
        """Write one big-endian ``f32``."""
        self._chunks += _pack(_F32, value, "f32")

    def write_f64(self, value: float) -> None:
        """Write one big-endian ``f64``."""
        self._chunks += _pack(_F64, value, "f64")

    def write_length(self, length: int, what: str) -> None:
        """Write an i32 length or count prefix.

        :param length: Item or byte count.
        :param what: Description used in the error message.
        :raises ValueError: If ``length`` exceeds ``INT32_MAX``.
        """
        if length > INT32_MAX:
            raise ValueError(f"{what} is too large to fit into Int32")
        self.write_i32(length)


class WireReader:
    """Consume one encoded value from a byte block."""

    _payload: bytes
    _offset: int

    def __init__(self, payload: bytes) -> None:
        """Initialize a reader positioned at the start of ``payload``.

        :param payload: Encoded bytes.
        """
        self._payload = payload
        self._offset = 0

    @property
    def remaining(self) -> int:
        """Return the number of unread bytes.

        :returns: Unread byte count.
        """
        return len(self._payload) - self._offset

    def read_raw(self, size: int) -> bytes:
        """Read exactly ``size`` bytes.

        :param size: Byte count.
        :returns: Raw bytes.
        :raises BridgeProtocolError: If fewer than ``size`` bytes remain.
        """
        if size < 0:
            raise BridgeProtocolError(f"Negative length prefix {size} in buffer")
        end: int = self._offset + size
        if end > len(self._payload):
            raise BridgeProtocolError(
                f"Buffer underflow: wanted {size} bytes at offset {self._offset}, "
                + f"only {self.remaining} remain"
            )
        chunk: bytes = self._payload[self._offset:end]
        self._offset = end
        return chunk

    def _unpack(self, layout: struct.Struct) -> int | float:
        value: int | float = layout.unpack(self.read_raw(layout.size))[0]
        return value

    def read_i8(self) -> int:
        """Read one big-endian ``i8``."""
        return int(self._unpack(_I8))

    def read_u8(self) -> int:
        """Read one big-endian ``u8``."""
        return int(self._unpack(_U8))

    def read_i16(self) -> int:
        """Read one big-endian ``i16``."""
        return int(self._unpack(_I16))

    def read_u16(self) -> int:
        """Read one big-endian ``u16``."""
        return int(self._unpack(_U16))

    def read_i32(self) -> int:
        """Read one big-endian ``i32``."""
        return int(self._unpack(_I32))

    def read_u32(self) -> int:
        """Read one big-endian ``u32``."""
        return int(self._unpack(_U32))

    def read_i64(self) -> int:
        """Read one big-endian ``i64``."""
        return int(self._unpack(_I64))

    def read_u64(self) -> int:
        """Read one big-endian ``u64``."""
        return int(self._unpack(_U64))

    def read_f32(self) -> float:
        """Read one big-endian ``f32``."""
        return float(self._unpack(_F32))

    def read_f64(self) -> float:
        """Read one big-endian ``f64``."""
        return float(self._unpack(_F64))

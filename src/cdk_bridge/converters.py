"""Per-type converters between Python values and the bridge wire format.

Every converter exposes four operations:

* ``read`` / ``write`` move a value through an in-memory buffer encoding.
* ``lift`` / ``lower`` move a top-level value across the native boundary.
  Scalars cross directly; everything else travels in a ``RustBuffer`` that
  the receiving side frees.

Converters hold no mutable state, so one shared instance per type is safe to
use from any thread.
"""

from enum import IntEnum
from typing import TYPE_CHECKING
from typing import Any

from cdk_bridge.errors import BridgeProtocolError
from cdk_bridge.errors import InternalError
from cdk_bridge.errors import InvalidInput
from cdk_bridge.errors import NetworkError
from cdk_bridge.errors import WalletError
from cdk_bridge.ffi import RustBuffer
from cdk_bridge.records import Amount
from cdk_bridge.records import CurrencyUnit
from cdk_bridge.records import MeltQuote
from cdk_bridge.records import Melted
from cdk_bridge.records import MintQuote
from cdk_bridge.records import MintQuoteBolt11Response
from cdk_bridge.records import MintQuoteState
from cdk_bridge.records import OfflineExact
from cdk_bridge.records import OfflineTolerance
from cdk_bridge.records import OnlineExact
from cdk_bridge.records import OnlineTolerance
from cdk_bridge.records import PreparedSend
from cdk_bridge.records import SendMemo
from cdk_bridge.records import SendOptions
from cdk_bridge.records import SplitTarget
from cdk_bridge.records import Token
from cdk_bridge.wire import WireReader
from cdk_bridge.wire import WireWriter

if TYPE_CHECKING:
    from cdk_bridge.bridge import NativeBridge


class FfiConverter:
    """Base converter; buffered types inherit ``lift`` and ``lower``."""

    name: str = "value"

    def read(self, reader: WireReader) -> Any:
        """Read one nested value.

        :param reader: Reader positioned at the value.
        :returns: Decoded value.
        :raises BridgeProtocolError: If the bytes do not form a valid value.
        """
        raise NotImplementedError

    def write(self, writer: WireWriter, value: Any) -> None:
        """Write one nested value.

        :param writer: Writer to append to.
        :param value: Python value.
        """
        raise NotImplementedError

    def lift(self, raw: Any, bridge: "NativeBridge") -> Any:
        """Decode one top-level value received from the native side.

        :param raw: ``RustBuffer`` returned by the native call.
        :param bridge: Bridge that owns the buffer.
        :returns: Decoded value.
        """
        return bridge.lift_from_buffer(self, raw)

    def lower(self, value: Any, bridge: "NativeBridge") -> Any:
        """Encode one top-level value for a native call.

        :param value: Python value.
        :param bridge: Bridge used to allocate the buffer.
        :returns: Native-allocated ``RustBuffer``.
        """
        return bridge.lower_into_buffer(self, value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def _require_int(value: object, type_name: str) -> int:
    """Reject non-integers, including ``bool``.

    :param value: Candidate value.
    :param type_name: Wire type name used in the error message.
    :returns: ``value`` as ``int``.
    :raises TypeError: If ``value`` is not an ``int``.
    """
    if isinstance(value, bool) is True or isinstance(value, int) is False:
        raise TypeError(f"{type_name} value must be int, got {type(value).__name__}")
    return int(value)  # type: ignore[arg-type]


class IntegerConverter(FfiConverter):
    """Fixed-width integer, passed by value across the boundary."""

    _bits: int
    _signed: bool

    def __init__(self, bits: int, signed: bool) -> None:
        """Initialize an integer converter.

        :param bits: Width in bits (8, 16, 32 or 64).
        :param signed: Whether the integer is two's complement signed.
        """
        self._bits = bits
        self._signed = signed
        prefix: str = "i" if signed is True else "u"
        self.name = f"{prefix}{bits}"

    def _check_range(self, value: object) -> int:
        number: int = _require_int(value, self.name)
        if self._signed is True:
            low: int = -(2 ** (self._bits - 1))
            high: int = 2 ** (self._bits - 1) - 1
        else:
            low = 0
            high = 2**self._bits - 1
        if number < low or number > high:
            raise ValueError(f"{number} does not fit in {self.name}")
        return number

    def read(self, reader: WireReader) -> int:
        """Read the integer at its natural width."""
        result: int = getattr(reader, f"read_{self.name}")()
        return result

    def write(self, writer: WireWriter, value: int) -> None:
        """Write the integer after checking its range."""
        getattr(writer, f"write_{self.name}")(self._check_range(value))

    def lift(self, raw: Any, bridge: "NativeBridge") -> int:
        """Return an integer passed by value."""
        _ = bridge
        return int(raw)

    def lower(self, value: int, bridge: "NativeBridge") -> int:
        """Pass the integer by value after checking its range."""
        _ = bridge
        return self._check_range(value)


class FloatConverter(FfiConverter):
    """IEEE-754 float, passed by value across the boundary."""

    def __init__(self, bits: int) -> None:
        self.name = f"f{bits}"

    def _check_range(self, value: object) -> float:
        """Reject non-numbers and values that overflow this width.

        :param value: Candidate value.
        :returns: ``value`` as ``float``.
        :raises TypeError: If ``value`` is not an ``int`` or ``float``.
        :raises ValueError: If ``value`` does not fit this float width.
        """
        if isinstance(value, (int, float)) is False or isinstance(value, bool) is True:
            raise TypeError(f"{self.name} value must be float, got {type(value).__name__}")
        try:
            number: float = float(value)  # type: ignore[arg-type]
        except OverflowError as exc:
            raise ValueError(f"{value!r} does not fit in {self.name}") from exc
        getattr(WireWriter(), f"write_{self.name}")(number)
        return number

    def read(self, reader: WireReader) -> float:
        """Read an IEEE-754 float."""
        result: float = getattr(reader, f"read_{self.name}")()
        return result

    def write(self, writer: WireWriter, value: float) -> None:
        """Write an IEEE-754 float after checking its range."""
        getattr(writer, f"write_{self.name}")(self._check_range(value))

    def lift(self, raw: Any, bridge: "NativeBridge") -> float:
        """Return a float passed by value."""
        _ = bridge
        return float(raw)

    def lower(self, value: float, bridge: "NativeBridge") -> float:
        """Pass the float by value after checking its range."""
        _ = bridge
        return self._check_range(value)


class BoolConverter(FfiConverter):
    """Boolean as one byte; lifted as an ``int8`` register value."""

    name = "bool"

    def read(self, reader: WireReader) -> bool:
        """Read one byte; any nonzero byte is true."""
        return reader.read_i8() != 0

    def write(self, writer: WireWriter, value: bool) -> None:
        """Write ``1`` or ``0``."""
        if isinstance(value, bool) is False:
            raise TypeError(f"bool value must be bool, got {type(value).__name__}")
        writer.write_i8(1 if value is True else 0)

    def lift(self, raw: Any, bridge: "NativeBridge") -> bool:
        """Return a bool passed as an ``i8``."""
        _ = bridge
        return int(raw) != 0

    def lower(self, value: bool, bridge: "NativeBridge") -> int:
        """Pass the bool as an ``i8``."""
        _ = bridge
        if isinstance(value, bool) is False:
            raise TypeError(f"bool value must be bool, got {type(value).__name__}")
        return 1 if value is True else 0


class StringConverter(FfiConverter):
    """UTF-8 string; length-prefixed when nested, raw bytes at top level."""

    name = "string"

    @staticmethod
    def _encode(value: object) -> bytes:
        if isinstance(value, str) is False:
            raise TypeError(f"string value must be str, got {type(value).__name__}")
        return value.encode("utf-8")  # type: ignore[union-attr]

    @staticmethod
    def _decode(payload: bytes) -> str:
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BridgeProtocolError("String payload is not valid UTF-8") from exc

    def read(self, reader: WireReader) -> str:
        """Read an i32 byte length then UTF-8 bytes."""
        length: int = reader.read_i32()
        return self._decode(reader.read_raw(length))

    def write(self, writer: WireWriter, value: str) -> None:
        """Write an i32 byte length then UTF-8 bytes."""
        encoded: bytes = self._encode(value)
        writer.write_length(len(encoded), "String")
        writer.write_raw(encoded)

    def lift(self, raw: Any, bridge: "NativeBridge") -> str:
        """Decode a whole buffer as UTF-8 with no length prefix."""
        return self._decode(bridge.consume_buffer(raw))

    def lower(self, value: str, bridge: "NativeBridge") -> RustBuffer:
        """Copy UTF-8 bytes into a buffer with no length prefix."""
        return bridge.bytes_to_buffer(self._encode(value))


class BytesConverter(FfiConverter):
    """Opaque byte blob with an i32 length prefix."""

    name = "bytes"

    def read(self, reader: WireReader) -> bytes:
        """Read an i32 byte length then the raw bytes."""
        length: int = reader.read_i32()
        return reader.read_raw(length)

    def write(self, writer: WireWriter, value: bytes) -> None:
        """Write an i32 byte length then the raw bytes."""
        if isinstance(value, (bytes, bytearray, memoryview)) is False:
            raise TypeError(f"bytes value must be bytes, got {type(value).__name__}")
        payload: bytes = bytes(value)
        writer.write_length(len(payload), "Bytes")
        writer.write_raw(payload)


class OptionalConverter(FfiConverter):
    """Presence tag (0 absent, 1 present) followed by the inner value."""

    _inner: FfiConverter

    def __init__(self, inner: FfiConverter) -> None:
        self._inner = inner
        self.name = f"optional<{inner.name}>"

    def read(self, reader: WireReader) -> Any:
        """Read a presence tag and, when set, the inner value."""
        tag: int = reader.read_i8()
        if tag == 0:
            return None
        if tag != 1:
            raise BridgeProtocolError(f"Invalid presence tag {tag} for {self.name}")
        return self._inner.read(reader)

    def write(self, writer: WireWriter, value: Any) -> None:
        """Write a presence tag and, when present, the inner value."""
        if value is None:
            writer.write_i8(0)
            return
        writer.write_i8(1)
        self._inner.write(writer, value)


class SequenceConverter(FfiConverter):
    """Count-prefixed ordered sequence."""

    _inner: FfiConverter

    def __init__(self, inner: FfiConverter) -> None:
        self._inner = inner
        self.name = f"sequence<{inner.name}>"

    def read(self, reader: WireReader) -> list[Any]:
        """Read an i32 count then that many items."""
        count: int = reader.read_i32()
        if count < 0:
            raise BridgeProtocolError(f"Negative item count {count} for {self.name}")
        return [self._inner.read(reader) for _ in range(count)]

    def write(self, writer: WireWriter, value: Any) -> None:
        """Write an i32 count then each item."""
        if isinstance(value, (list, tuple)) is False:
            raise TypeError(f"{self.name} value must be list or tuple, got {type(value).__name__}")
        writer.write_length(len(value), self.name)
        for item in value:
            self._inner.write(writer, item)


class MapConverter(FfiConverter):
    """Count-prefixed key/value pairs with unique keys."""

    _key: FfiConverter
    _value: FfiConverter

    def __init__(self, key: FfiConverter, value: FfiConverter) -> None:
        self._key = key
        self._value = value
        self.name = f"map<{key.name}, {value.name}>"

    def read(self, reader: WireReader) -> dict[Any, Any]:
        """Read an i32 count then key/value pairs."""
        count: int = reader.read_i32()
        if count < 0:
            raise BridgeProtocolError(f"Negative entry count {count} for {self.name}")
        result: dict[Any, Any] = {}
        for _ in range(count):
            key: Any = self._key.read(reader)
            if key in result:
                raise BridgeProtocolError(f"Duplicate key {key!r} in {self.name}")
            result[key] = self._value.read(reader)
        return result

    def write(self, writer: WireWriter, value: Any) -> None:
        """Write an i32 count then key/value pairs in iteration order."""
        if isinstance(value, dict) is False:
            raise TypeError(f"{self.name} value must be dict, got {type(value).__name__}")
        writer.write_length(len(value), self.name)
        for key, item in value.items():
            self._key.write(writer, key)
            self._value.write(writer, item)


class RecordConverter(FfiConverter):
    """Fields concatenated in declaration order, with no per-field tags."""

    _record_type: type
    _fields: tuple[tuple[str, FfiConverter], ...]

    def __init__(self, record_type: type, fields: tuple[tuple[str, FfiConverter], ...]) -> None:
        self._record_type = record_type
        self._fields = fields
        self.name = record_type.__name__

    def read(self, reader: WireReader) -> Any:
        """Read each field in declaration order."""
        values: dict[str, Any] = {}
        for field_name, converter in self._fields:
            values[field_name] = converter.read(reader)
        return self._record_type(**values)

    def write(self, writer: WireWriter, value: Any) -> None:
        """Write each field in declaration order."""
        if isinstance(value, self._record_type) is False:
            raise TypeError(f"{self.name} converter cannot write {type(value).__name__}")
        for field_name, converter in self._fields:
            converter.write(writer, getattr(value, field_name))


class EnumConverter(FfiConverter):
    """Payload-free enum as its 1-based i32 discriminant."""

    _enum_type: type[IntEnum]

    def __init__(self, enum_type: type[IntEnum]) -> None:
        self._enum_type = enum_type
        self.name = enum_type.__name__

    def read(self, reader: WireReader) -> IntEnum:
        """Read the i32 discriminant of a flat enum."""
        discriminant: int = reader.read_i32()
        try:
            return self._enum_type(discriminant)
        except ValueError as exc:
            raise BridgeProtocolError(f"Invalid enum value {discriminant} for {self.name}") from exc

    def write(self, writer: WireWriter, value: IntEnum) -> None:
        """Write the i32 discriminant of a flat enum."""
        if isinstance(value, self._enum_type) is False:
            raise TypeError(f"{self.name} converter cannot write {value!r}")
        writer.write_i32(int(value))


class VariantConverter(FfiConverter):
    """Tagged union: 1-based i32 discriminant, then that variant's fields.

    The variant list is closed; writing a class outside it is a ``TypeError``
    and reading an unknown discriminant is a protocol violation.
    """

    _variants: tuple[tuple[type, tuple[tuple[str, FfiConverter], ...]], ...]
    _discriminants: dict[type, int]

    def __init__(
        self,
        name: str,
        variants: tuple[tuple[type, tuple[tuple[str, FfiConverter], ...]], ...],
    ) -> None:
        self.name = name
        self._variants = variants
        self._discriminants = {}
        for index, (variant_type, _) in enumerate(variants):
            self._discriminants[variant_type] = index + 1

    def read(self, reader: WireReader) -> Any:
        """Read a discriminant then the variant's fields."""
        discriminant: int = reader.read_i32()
        if discriminant < 1 or discriminant > len(self._variants):
            raise BridgeProtocolError(f"Unknown variant {discriminant} for {self.name}")
        variant_type, fields = self._variants[discriminant - 1]
        values: dict[str, Any] = {}
        for field_name, converter in fields:
            values[field_name] = converter.read(reader)
        return variant_type(**values)

    def write(self, writer: WireWriter, value: Any) -> None:
        """Write a discriminant then the variant's fields."""
        discriminant: int | None = self._discriminants.get(type(value))
        if discriminant is None:
            raise TypeError(f"Invalid {self.name} value {value!r}")
        writer.write_i32(discriminant)
        _, fields = self._variants[discriminant - 1]
        for field_name, converter in fields:
            converter.write(writer, getattr(value, field_name))


INT8 = IntegerConverter(8, signed=True)
UINT8 = IntegerConverter(8, signed=False)
INT16 = IntegerConverter(16, signed=True)
UINT16 = IntegerConverter(16, signed=False)
INT32 = IntegerConverter(32, signed=True)
UINT32 = IntegerConverter(32, signed=False)
INT64 = IntegerConverter(64, signed=True)
UINT64 = IntegerConverter(64, signed=False)
FLOAT32 = FloatConverter(32)
FLOAT64 = FloatConverter(64)
BOOL = BoolConverter()
STRING = StringConverter()
BYTES = BytesConverter()

OPTIONAL_UINT64 = OptionalConverter(UINT64)
OPTIONAL_STRING = OptionalConverter(STRING)
MAP_STRING_STRING = MapConverter(STRING, STRING)

AMOUNT = RecordConverter(Amount, (("value", UINT64),))
MINT_QUOTE_STATE = EnumConverter(MintQuoteState)
SPLIT_TARGET = EnumConverter(SplitTarget)
CURRENCY_UNIT = EnumConverter(CurrencyUnit)
MINT_QUOTE = RecordConverter(
    MintQuote,
    (
        ("id", STRING),
        ("mint_url", STRING),
        ("amount", AMOUNT),
        ("unit", STRING),
        ("request", STRING),
        ("state", MINT_QUOTE_STATE),
        ("expiry", UINT64),
    ),
)
MINT_QUOTE_BOLT11_RESPONSE = RecordConverter(
    MintQuoteBolt11Response,
    (
        ("quote", STRING),
        ("request", STRING),
        ("state", MINT_QUOTE_STATE),
        ("expiry", OPTIONAL_UINT64),
    ),
)
MELT_QUOTE = RecordConverter(
    MeltQuote,
    (
        ("id", STRING),
        ("unit", STRING),
        ("amount", AMOUNT),
        ("request", STRING),
        ("fee_reserve", AMOUNT),
        ("expiry", UINT64),
        ("payment_preimage", OPTIONAL_STRING),
    ),
)
MELTED = RecordConverter(
    Melted,
    (
        ("state", STRING),
        ("preimage", OPTIONAL_STRING),
        ("amount", AMOUNT),
        ("fee_paid", AMOUNT),
    ),
)
TOKEN = RecordConverter(
    Token,
    (
        ("token_string", STRING),
        ("mint", STRING),
        ("memo", OPTIONAL_STRING),
        ("unit", STRING),
    ),
)
SEND_MEMO = RecordConverter(SendMemo, (("memo", STRING), ("include_memo", BOOL)))
OPTIONAL_SEND_MEMO = OptionalConverter(SEND_MEMO)
SEND_KIND = VariantConverter(
    "SendKind",
    (
        (OnlineExact, ()),
        (OnlineTolerance, (("tolerance", AMOUNT),)),
        (OfflineExact, ()),
        (OfflineTolerance, (("tolerance", AMOUNT),)),
    ),
)
SEND_OPTIONS = RecordConverter(
    SendOptions,
    (
        ("memo", OPTIONAL_SEND_MEMO),
        ("amount_split_target", SPLIT_TARGET),
        ("send_kind", SEND_KIND),
        ("include_fee", BOOL),
        ("metadata", MAP_STRING_STRING),
        ("max_proofs", OPTIONAL_UINT64),
    ),
)
PREPARED_SEND = RecordConverter(
    PreparedSend,
    (
        ("amount", AMOUNT),
        ("swap_fee", AMOUNT),
        ("send_fee", AMOUNT),
        ("total_fee", AMOUNT),
    ),
)
FFI_ERROR = VariantConverter(
    "FfiError",
    (
        (WalletError, (("msg", STRING),)),
        (InvalidInput, (("msg", STRING),)),
        (NetworkError, (("msg", STRING),)),
        (InternalError, (("msg", STRING),)),
    ),
)

CONVERTERS: dict[str, FfiConverter] = {}
for _converter in (
    INT8,
    UINT8,
    INT16,
    UINT16,
    INT32,
    UINT32,
    INT64,
    UINT64,
    FLOAT32,
    FLOAT64,
    BOOL,
    STRING,
    BYTES,
    OPTIONAL_UINT64,
    OPTIONAL_STRING,
    MAP_STRING_STRING,
    AMOUNT,
    MINT_QUOTE_STATE,
    SPLIT_TARGET,
    CURRENCY_UNIT,
    MINT_QUOTE,
    MINT_QUOTE_BOLT11_RESPONSE,
    MELT_QUOTE,
    MELTED,
    TOKEN,
    SEND_MEMO,
    OPTIONAL_SEND_MEMO,
    SEND_KIND,
    SEND_OPTIONS,
    PREPARED_SEND,
    FFI_ERROR,
):
    CONVERTERS[_converter.name] = _converter
del _converter


def converter_for(name: str) -> FfiConverter:
    """Look up a registered converter by its wire type name.

    :param name: Wire type name, for example ``"u64"`` or ``"MintQuote"``.
    :returns: Shared converter instance.
    :raises KeyError: If no converter is registered under ``name``.
    """
    return CONVERTERS[name]


def encode(converter: FfiConverter, value: Any) -> bytes:
    """Encode one value with ``converter`` into standalone bytes.

    :param converter: Converter for the value's type.
    :param value: Python value.
    :returns: Encoded bytes.
    """
    writer = WireWriter()
    converter.write(writer, value)
    return writer.getvalue()


def decode(converter: FfiConverter, payload: bytes) -> Any:
    """Decode exactly one value from ``payload``.

    :param converter: Converter for the value's type.
    :param payload: Encoded bytes.
    :returns: Decoded value.
    :raises BridgeProtocolError: If bytes remain after the value.
    """
    reader = WireReader(payload)
    value: Any = converter.read(reader)
    if reader.remaining > 0:
        raise BridgeProtocolError(
            f"Junk remaining in buffer after lifting {converter.name}: {reader.remaining} bytes"
        )
    return value

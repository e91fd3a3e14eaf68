"""Value types exchanged with the native wallet library."""

from dataclasses import dataclass
from dataclasses import field
from enum import IntEnum


class MintQuoteState(IntEnum):
    """Payment state of a mint quote."""

    UNPAID = 1
    PAID = 2
    ISSUED = 3


class SplitTarget(IntEnum):
    """How minted proofs are split into denominations."""

    NONE = 1
    DEFAULT = 2


class CurrencyUnit(IntEnum):
    """Unit a wallet is denominated in."""

    SAT = 1
    MSAT = 2
    USD = 3
    EUR = 4


@dataclass(frozen=True)
class Amount:
    value: int


@dataclass(frozen=True)
class MintQuote:
    id: str
    mint_url: str
    amount: Amount
    unit: str
    request: str
    state: MintQuoteState
    expiry: int


@dataclass(frozen=True)
class MintQuoteBolt11Response:
    quote: str
    request: str
    state: MintQuoteState
    expiry: int | None


@dataclass(frozen=True)
class MeltQuote:
    id: str
    unit: str
    amount: Amount
    request: str
    fee_reserve: Amount
    expiry: int
    payment_preimage: str | None


@dataclass(frozen=True)
class Melted:
    state: str
    preimage: str | None
    amount: Amount
    fee_paid: Amount


@dataclass(frozen=True)
class Token:
    token_string: str
    mint: str
    memo: str | None
    unit: str


@dataclass(frozen=True)
class SendMemo:
    memo: str
    include_memo: bool


class SendKind:
    """Base of the closed set of send strategies."""


@dataclass(frozen=True)
class OnlineExact(SendKind):
    pass


@dataclass(frozen=True)
class OnlineTolerance(SendKind):
    tolerance: Amount


@dataclass(frozen=True)
class OfflineExact(SendKind):
    pass


@dataclass(frozen=True)
class OfflineTolerance(SendKind):
    tolerance: Amount


@dataclass(frozen=True)
class SendOptions:
    """Options for preparing or sending a token.

    ``metadata`` is copied as a plain mapping; key order is kept on the wire.
    Instances compare by value but are unhashable because ``metadata`` is a
    ``dict``.
    """

    __hash__ = None  # type: ignore[assignment]

    memo: SendMemo | None = None
    amount_split_target: SplitTarget = SplitTarget.DEFAULT
    send_kind: SendKind = field(default_factory=OnlineExact)
    include_fee: bool = False
    metadata: dict[str, str] = field(default_factory=dict)
    max_proofs: int | None = None


@dataclass(frozen=True)
class PreparedSend:
    amount: Amount
    swap_fee: Amount
    send_fee: Amount
    total_fee: Amount

"""Host objects for the native wallet and its local store."""

import weakref
from typing import Any
from typing import ClassVar

from cdk_bridge.bridge import NativeBridge
from cdk_bridge.bridge import resolve_bridge
from cdk_bridge.converters import AMOUNT
from cdk_bridge.converters import CURRENCY_UNIT
from cdk_bridge.converters import FFI_ERROR
from cdk_bridge.converters import MELT_QUOTE
from cdk_bridge.converters import MELTED
from cdk_bridge.converters import MINT_QUOTE
from cdk_bridge.converters import MINT_QUOTE_BOLT11_RESPONSE
from cdk_bridge.converters import OPTIONAL_SEND_MEMO
from cdk_bridge.converters import OPTIONAL_STRING
from cdk_bridge.converters import PREPARED_SEND
from cdk_bridge.converters import SEND_OPTIONS
from cdk_bridge.converters import SPLIT_TARGET
from cdk_bridge.converters import STRING
from cdk_bridge.converters import TOKEN
from cdk_bridge.ffi import FN_PREFIX
from cdk_bridge.handles import NativeHandle
from cdk_bridge.records import Amount
from cdk_bridge.records import CurrencyUnit
from cdk_bridge.records import MeltQuote
from cdk_bridge.records import Melted
from cdk_bridge.records import MintQuote
from cdk_bridge.records import MintQuoteBolt11Response
from cdk_bridge.records import PreparedSend
from cdk_bridge.records import SendMemo
from cdk_bridge.records import SendOptions
from cdk_bridge.records import SplitTarget
from cdk_bridge.records import Token


def generate_mnemonic(bridge: NativeBridge | None = None) -> str:
    """Generate a 12-word mnemonic phrase.

    :param bridge: Bridge to call through; defaults to the process-wide bridge.
    :returns: Space-separated mnemonic words.
    :raises FfiError: If the native side fails to generate entropy.
    """
    active: NativeBridge = resolve_bridge(bridge)
    with active.arguments() as call:
        raw: Any = call.invoke(f"{FN_PREFIX}func_generate_mnemonic", error_converter=FFI_ERROR)
    return STRING.lift(raw, active)


class NativeObject:
    """Base for host objects that own a native pointer through a handle."""

    _native_name: ClassVar[str]
    _handle: NativeHandle
    _finalizer: weakref.finalize

    def _bind(self, bridge: NativeBridge, pointer: int | None) -> None:
        """Attach a freshly returned native pointer to this object.

        The finalizer is a leak backstop only; callers are expected to
        ``destroy`` explicitly or use the object as a context manager.

        :param bridge: Bridge the pointer came from.
        :param pointer: Native object pointer.
        """
        handle = NativeHandle(
            bridge,
            int(pointer or 0),
            f"{FN_PREFIX}clone_{self._native_name}",
            f"{FN_PREFIX}free_{self._native_name}",
            type(self).__name__,
        )
        self._handle = handle
        self._finalizer = weakref.finalize(self, handle.destroy)

    @classmethod
    def _lift(cls, bridge: NativeBridge, pointer: int | None) -> Any:
        instance = object.__new__(cls)
        instance._bind(bridge, pointer)
        return instance

    @property
    def handle(self) -> NativeHandle:
        """Return the handle that owns the native pointer."""
        return self._handle

    @property
    def bridge(self) -> NativeBridge:
        """Return the bridge this object was created through."""
        return self._handle.bridge

    @property
    def is_destroyed(self) -> bool:
        """Report whether the native object has been released."""
        return self._handle.is_destroyed

    def destroy(self) -> None:
        """Release the native object once no call is using it."""
        was_alive: bool = self._finalizer.alive
        if was_alive is True:
            self._finalizer()

    def __enter__(self) -> Any:
        return self

    def __exit__(self, exc_type: object, exc_value: object, exc_traceback: object) -> None:
        self.destroy()

    def __repr__(self) -> str:
        state: str = "destroyed" if self.is_destroyed is True else "live"
        return f"<{type(self).__name__} {state}>"


class LocalStore(NativeObject):
    """Native wallet database."""

    _native_name = "ffilocalstore"

    def __init__(self, bridge: NativeBridge | None = None) -> None:
        """Create a store backed by a fresh temporary database.

        :param bridge: Bridge to call through; defaults to the process-wide bridge.
        :raises FfiError: If the database cannot be opened.
        """
        active: NativeBridge = resolve_bridge(bridge)
        with active.arguments() as call:
            pointer: int | None = call.invoke(
                f"{FN_PREFIX}constructor_ffilocalstore_new",
                error_converter=FFI_ERROR,
            )
        self._bind(active, pointer)

    @classmethod
    def with_path(cls, db_path: str | None, bridge: NativeBridge | None = None) -> "LocalStore":
        """Create a store at ``db_path``, or a temporary one when ``None``.

        :param db_path: Database file path.
        :param bridge: Bridge to call through; defaults to the process-wide bridge.
        :returns: New store.
        :raises FfiError: If the database cannot be opened.
        """
        active: NativeBridge = resolve_bridge(bridge)
        with active.arguments() as call:
            path_arg: Any = call.lower(OPTIONAL_STRING, db_path)
            pointer: int | None = call.invoke(
                f"{FN_PREFIX}constructor_ffilocalstore_new_with_path",
                path_arg,
                error_converter=FFI_ERROR,
            )
        store: LocalStore = cls._lift(active, pointer)
        return store


class Wallet(NativeObject):
    """Native Cashu wallet bound to one mint and unit."""

    _native_name = "ffiwallet"

    def __init__(self) -> None:
        """Prevent construction without a native constructor.

        :raises TypeError: Always.
        """
        raise TypeError("Use Wallet.from_mnemonic() or Wallet.restore_from_mnemonic()")

    @classmethod
    def _construct(
        cls,
        constructor: str,
        mint_url: str,
        unit: CurrencyUnit,
        localstore: LocalStore,
        mnemonic_words: str,
        bridge: NativeBridge | None,
    ) -> "Wallet":
        active: NativeBridge = localstore.bridge if bridge is None else bridge
        with active.arguments() as call:
            mint_url_arg: Any = call.lower(STRING, mint_url)
            unit_arg: Any = call.lower(CURRENCY_UNIT, unit)
            mnemonic_arg: Any = call.lower(STRING, mnemonic_words)
            store_pointer: int = call.borrow(localstore)
            pointer: int | None = call.invoke(
                f"{FN_PREFIX}constructor_ffiwallet_{constructor}",
                mint_url_arg,
                unit_arg,
                store_pointer,
                mnemonic_arg,
                error_converter=FFI_ERROR,
            )
        wallet: Wallet = cls._lift(active, pointer)
        return wallet

    @classmethod
    def from_mnemonic(
        cls,
        mint_url: str,
        unit: CurrencyUnit,
        localstore: LocalStore,
        mnemonic_words: str,
        bridge: NativeBridge | None = None,
    ) -> "Wallet":
        """Open a wallet from a mnemonic.

        :param mint_url: Mint base URL.
        :param unit: Wallet currency unit.
        :param localstore: Store the wallet persists into.
        :param mnemonic_words: BIP-39 mnemonic phrase.
        :param bridge: Bridge to call through; defaults to the store's bridge.
        :returns: New wallet.
        :raises InvalidInput: If the mnemonic does not parse.
        """
        return cls._construct("from_mnemonic", mint_url, unit, localstore, mnemonic_words, bridge)

    @classmethod
    def restore_from_mnemonic(
        cls,
        mint_url: str,
        unit: CurrencyUnit,
        localstore: LocalStore,
        mnemonic_words: str,
        bridge: NativeBridge | None = None,
    ) -> "Wallet":
        """Open a wallet and restore its proofs from the mint.

        :param mint_url: Mint base URL.
        :param unit: Wallet currency unit.
        :param localstore: Store the wallet persists into.
        :param mnemonic_words: BIP-39 mnemonic phrase.
        :param bridge: Bridge to call through; defaults to the store's bridge.
        :returns: Restored wallet.
        :raises FfiError: If the mnemonic is invalid or the restore fails.
        """
        return cls._construct("restore_from_mnemonic", mint_url, unit, localstore, mnemonic_words, bridge)

    def _method(self, name: str, *values: tuple[Any, Any], fallible: bool = True) -> Any:
        """Call one wallet method with lowered arguments.

        :param name: Method name without the symbol prefix.
        :param values: ``(converter, value)`` pairs, in native argument order.
        :param fallible: Whether the method declares ``FfiError``.
        :returns: Raw native return value.
        """
        bridge: NativeBridge = self.bridge
        with bridge.arguments() as call:
            args: list[Any] = [call.lower(converter, value) for converter, value in values]
            pointer: int = call.borrow(self)
            return call.invoke(
                f"{FN_PREFIX}method_ffiwallet_{name}",
                pointer,
                *args,
                error_converter=FFI_ERROR if fallible is True else None,
            )

    def balance(self) -> Amount:
        """Return the total unspent balance.

        :returns: Balance in the wallet's unit.
        :raises FfiError: If the store cannot be read.
        """
        return AMOUNT.lift(self._method("balance"), self.bridge)

    def get_mint_info(self) -> str:
        """Fetch and store mint information.

        :returns: Status description from the native side.
        :raises NetworkError: If the mint cannot be reached.
        """
        return STRING.lift(self._method("get_mint_info"), self.bridge)

    def melt(self, quote_id: str) -> Melted:
        """Pay the Lightning invoice behind a melt quote.

        :param quote_id: Identifier returned by ``melt_quote``.
        :returns: Payment outcome, including the fee paid.
        :raises WalletError: If the quote is unknown or funds are insufficient.
        """
        return MELTED.lift(self._method("melt", (STRING, quote_id)), self.bridge)

    def melt_quote(self, request: str) -> MeltQuote:
        """Request a quote for paying a Lightning invoice.

        :param request: BOLT11 invoice.
        :returns: Quote with amount and fee reserve.
        :raises InvalidInput: If the invoice does not parse.
        """
        return MELT_QUOTE.lift(self._method("melt_quote", (STRING, request)), self.bridge)

    def mint(self, quote_id: str, split_target: SplitTarget = SplitTarget.DEFAULT) -> Amount:
        """Mint proofs for a paid quote.

        :param quote_id: Identifier returned by ``mint_quote``.
        :param split_target: Denomination split for the new proofs.
        :returns: Minted amount.
        :raises WalletError: If the quote is unknown or not paid.
        """
        raw: Any = self._method("mint", (STRING, quote_id), (SPLIT_TARGET, split_target))
        return AMOUNT.lift(raw, self.bridge)

    def mint_quote(self, amount: Amount, description: str | None = None) -> MintQuote:
        """Request a Lightning invoice for minting ``amount``.

        :param amount: Amount to mint.
        :param description: Optional invoice description.
        :returns: Quote carrying the invoice to pay.
        :raises InvalidInput: If the amount is rejected.
        """
        raw: Any = self._method("mint_quote", (AMOUNT, amount), (OPTIONAL_STRING, description))
        return MINT_QUOTE.lift(raw, self.bridge)

    def mint_quote_state(self, quote_id: str) -> MintQuoteBolt11Response:
        """Ask the mint for the current state of a mint quote.

        :param quote_id: Identifier returned by ``mint_quote``.
        :returns: Quote state as reported by the mint.
        :raises WalletError: If the quote is unknown.
        """
        raw: Any = self._method("mint_quote_state", (STRING, quote_id))
        return MINT_QUOTE_BOLT11_RESPONSE.lift(raw, self.bridge)

    def mint_url(self) -> str:
        """Return the mint URL this wallet is bound to.

        :returns: Mint base URL.
        """
        return STRING.lift(self._method("mint_url", fallible=False), self.bridge)

    def prepare_send(self, amount: Amount, options: SendOptions) -> PreparedSend:
        """Select proofs for ``amount`` and report the fees without sending.

        :param amount: Amount to send.
        :param options: Send options.
        :returns: Amount and fee breakdown.
        :raises WalletError: If funds are insufficient.
        """
        raw: Any = self._method("prepare_send", (AMOUNT, amount), (SEND_OPTIONS, options))
        return PREPARED_SEND.lift(raw, self.bridge)

    def send(self, amount: Amount, options: SendOptions, memo: SendMemo | None = None) -> Token:
        """Prepare and send ``amount``.

        :param amount: Amount to send.
        :param options: Send options.
        :param memo: Optional memo attached to the token.
        :returns: Encoded token for the recipient.
        :raises WalletError: If funds are insufficient.
        """
        raw: Any = self._method(
            "send",
            (AMOUNT, amount),
            (SEND_OPTIONS, options),
            (OPTIONAL_SEND_MEMO, memo),
        )
        return TOKEN.lift(raw, self.bridge)

    def unit(self) -> str:
        """Return the wallet currency unit.

        :returns: Lower-case unit name, for example ``sat``.
        """
        return STRING.lift(self._method("unit", fallible=False), self.bridge)

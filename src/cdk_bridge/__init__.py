"""Public package API for cdk_bridge."""

from cdk_bridge.api import generate_mnemonic
from cdk_bridge.api import get_bridge
from cdk_bridge.api import initialize
from cdk_bridge.bridge import NativeBridge
from cdk_bridge.errors import BridgeError
from cdk_bridge.errors import BridgeFatalError
from cdk_bridge.errors import BridgeProtocolError
from cdk_bridge.errors import ContractMismatchError
from cdk_bridge.errors import FfiError
from cdk_bridge.errors import HandleDestroyedError
from cdk_bridge.errors import HandleOverflowError
from cdk_bridge.errors import InternalError
from cdk_bridge.errors import InvalidInput
from cdk_bridge.errors import LibraryNotFoundError
from cdk_bridge.errors import NativePanicError
from cdk_bridge.errors import NetworkError
from cdk_bridge.errors import WalletError
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
from cdk_bridge.records import SendKind
from cdk_bridge.records import SendMemo
from cdk_bridge.records import SendOptions
from cdk_bridge.records import SplitTarget
from cdk_bridge.records import Token
from cdk_bridge.wallet import LocalStore
from cdk_bridge.wallet import Wallet

__all__: list[str] = [
    "generate_mnemonic",
    "get_bridge",
    "initialize",
    "NativeBridge",
    "LocalStore",
    "Wallet",
    "Amount",
    "CurrencyUnit",
    "MeltQuote",
    "Melted",
    "MintQuote",
    "MintQuoteBolt11Response",
    "MintQuoteState",
    "OfflineExact",
    "OfflineTolerance",
    "OnlineExact",
    "OnlineTolerance",
    "PreparedSend",
    "SendKind",
    "SendMemo",
    "SendOptions",
    "SplitTarget",
    "Token",
    "BridgeError",
    "BridgeFatalError",
    "BridgeProtocolError",
    "ContractMismatchError",
    "FfiError",
    "HandleDestroyedError",
    "HandleOverflowError",
    "InternalError",
    "InvalidInput",
    "LibraryNotFoundError",
    "NativePanicError",
    "NetworkError",
    "WalletError",
]

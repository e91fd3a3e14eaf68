"""Contract version and per-symbol checksum verification."""

import logging
from dataclasses import dataclass
from dataclasses import field

from cdk_bridge.errors import ContractMismatchError
from cdk_bridge.ffi import CHECKSUM_PREFIX
from cdk_bridge.ffi import CONTRACT_VERSION_SYMBOL
from cdk_bridge.ffi import NativeLibrary

logger = logging.getLogger(__name__)

CONTRACT_VERSION: int = 26

# If one of these fails, rebuild the native library and the bindings together.
CHECKSUMS: dict[str, int] = {
    "func_generate_mnemonic": 44815,
    "method_ffiwallet_balance": 40463,
    "method_ffiwallet_get_mint_info": 13159,
    "method_ffiwallet_melt": 3275,
    "method_ffiwallet_melt_quote": 39876,
    "method_ffiwallet_mint": 58480,
    "method_ffiwallet_mint_quote": 42885,
    "method_ffiwallet_mint_quote_state": 60165,
    "method_ffiwallet_mint_url": 18647,
    "method_ffiwallet_prepare_send": 46706,
    "method_ffiwallet_send": 15473,
    "method_ffiwallet_unit": 4593,
    "constructor_ffilocalstore_new": 15364,
    "constructor_ffilocalstore_new_with_path": 766,
    "constructor_ffiwallet_from_mnemonic": 63545,
    "constructor_ffiwallet_restore_from_mnemonic": 38466,
}


@dataclass(frozen=True)
class ContractTable:
    """Compiled-in expectation of the native wire contract."""

    version: int = CONTRACT_VERSION
    checksums: dict[str, int] = field(default_factory=lambda: dict(CHECKSUMS))

    def checksum_symbol(self, name: str) -> str:
        """Return the exported checksum symbol for one exposed item.

        :param name: Item key, for example ``method_ffiwallet_balance``.
        :returns: Full native symbol name.
        """
        return f"{CHECKSUM_PREFIX}{name}"


DEFAULT_CONTRACT: ContractTable = ContractTable()


def verify_contract(library: NativeLibrary, contract: ContractTable = DEFAULT_CONTRACT) -> None:
    """Check the native library against ``contract``.

    :param library: Loaded native library.
    :param contract: Expected contract version and checksums.
    :raises ContractMismatchError: On the first mismatching value.
    """
    actual_version: int = int(library.symbol(CONTRACT_VERSION_SYMBOL)())
    if actual_version != contract.version:
        raise ContractMismatchError("contract_version", contract.version, actual_version)

    for name, expected in contract.checksums.items():
        symbol_name: str = contract.checksum_symbol(name)
        actual: int = int(library.symbol(symbol_name)())
        logger.debug("Checksum %s: expected %d, got %d", symbol_name, expected, actual)
        if actual != expected:
            raise ContractMismatchError(symbol_name, expected, actual)

    logger.info(
        "Native contract version %d verified with %d checksums",
        contract.version,
        len(contract.checksums),
    )

from dataclasses import dataclass

import structlog

from openbook_cli.dex.store import KnownMarketStore
from openbook_cli.errors import AccountNotFound
from openbook_cli.utils.solana import Connection, parse_address

log = structlog.get_logger(__name__)

DEFAULT_DECIMALS = 6
SYMBOL_PREFIX_LEN = 8
UNKNOWN_TOKEN_NAME = "Unknown Token"
UNKNOWN_SYMBOL = "UNKNOWN"


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    name: str
    decimals: int


def fallback_metadata(token_id) -> TokenMetadata:
    symbol = str(token_id)[:SYMBOL_PREFIX_LEN] if token_id else ""
    return TokenMetadata(symbol=symbol or UNKNOWN_SYMBOL, name=UNKNOWN_TOKEN_NAME, decimals=DEFAULT_DECIMALS)


def resolve_symbol(connection: Connection, store: KnownMarketStore, token_id) -> TokenMetadata:
    """Resolve a display symbol for a mint. Never raises.

    Known symbols come from ``store`` only; on-chain name fields are never trusted.
    Cached symbols assume 6 decimals, otherwise decimals come from the live mint.
    """
    try:
        mint = parse_address(token_id)
    except Exception as e:
        log.warning("token_id_invalid", token_id=repr(token_id), error=str(e))
        return fallback_metadata(token_id)

    known = store.get_symbol(mint)
    if known:
        return TokenMetadata(symbol=known, name=known, decimals=DEFAULT_DECIMALS)

    try:
        info = connection.get_parsed_account_info(mint)
        if info is None:
            raise AccountNotFound(mint, what="Token mint")
        decimals = int(info["decimals"])
    except Exception as e:
        log.warning("token_metadata_unavailable", mint=str(mint), error=str(e))
        return fallback_metadata(str(mint))

    return TokenMetadata(symbol=str(mint)[:SYMBOL_PREFIX_LEN], name=UNKNOWN_TOKEN_NAME, decimals=decimals)

from typing import Optional, Union

import structlog
from solders.pubkey import Pubkey

from openbook_cli.dex.identity import fetch_market_account, resolve_identity
from openbook_cli.dex.market import (
    DEFAULT_DEPTH,
    Market,
    MarketDescriptor,
    OrderBook,
    load_market,
    read_order_book,
)
from openbook_cli.dex.store import KnownMarket, KnownMarketStore
from openbook_cli.dex.tokens import resolve_symbol
from openbook_cli.errors import OwnershipMismatch
from openbook_cli.program_ids import ProgramIdentity
from openbook_cli.utils.solana import Connection, parse_address

log = structlog.get_logger(__name__)


def open_market(
        connection: Connection,
        address: Union[str, Pubkey],
        forced: Optional[ProgramIdentity] = None,
) -> Market:
    """Fetch the market account once, decide its program and decode it.

    A forced identity is used without looking at the owner, so a market owned by the
    other program fails in the loader. UNKNOWN owners are rejected.
    """
    address = parse_address(address)
    account = fetch_market_account(connection, address)
    if forced is not None:
        log.info("identity_forced", address=str(address), identity=forced.label)
        identity = forced
    else:
        identity = resolve_identity(connection, address, account)
        if identity is ProgramIdentity.UNKNOWN:
            raise OwnershipMismatch(address, account.owner)
    return load_market(connection, address, identity, account=account)


def _descriptor_from_market(connection: Connection, store: KnownMarketStore, market: Market) -> MarketDescriptor:
    base = resolve_symbol(connection, store, market.base_mint)
    quote = resolve_symbol(connection, store, market.quote_mint)
    return MarketDescriptor(
        address=str(market.address),
        base_mint=str(market.base_mint),
        quote_mint=str(market.quote_mint),
        base_symbol=base.symbol,
        quote_symbol=quote.symbol,
        min_order_size=market.min_order_size,
        price_tick=market.tick_size,
    )


def get_market_info(
        connection: Connection,
        store: KnownMarketStore,
        address: Union[str, Pubkey],
        identity: ProgramIdentity,
        market: Optional[Market] = None,
) -> MarketDescriptor:
    address = parse_address(address)
    known = store.get(address)
    if known is None:
        if market is None:
            market = load_market(connection, address, identity)
        return _descriptor_from_market(connection, store, market)

    base = resolve_symbol(connection, store, known.base_mint)
    quote = resolve_symbol(connection, store, known.quote_mint)
    return MarketDescriptor(
        address=str(address),
        base_mint=known.base_mint,
        quote_mint=known.quote_mint,
        base_symbol=base.symbol,
        quote_symbol=quote.symbol,
        min_order_size=known.min_order_size,
        price_tick=known.price_tick,
        event_queue_length=known.event_queue_length,
        request_queue_length=known.request_queue_length,
        bids_length=known.bids_length,
        asks_length=known.asks_length,
    )


def get_order_book(
        connection: Connection,
        address: Union[str, Pubkey],
        identity: ProgramIdentity,
        depth: int = DEFAULT_DEPTH,
) -> OrderBook:
    market = load_market(connection, address, identity)
    return read_order_book(connection, market, depth)


def add_market(
        connection: Connection,
        store: KnownMarketStore,
        address: Union[str, Pubkey],
        identity: ProgramIdentity,
        market: Optional[Market] = None,
) -> KnownMarket:
    """Load, name and persist a market. Nothing is written unless the load succeeds."""
    address = parse_address(address)
    log.info("add_market_requested", address=str(address), program=identity.label)

    if market is None:
        market = load_market(connection, address, identity)
    base = resolve_symbol(connection, store, market.base_mint)
    quote = resolve_symbol(connection, store, market.quote_mint)

    known = KnownMarket(
        name=f"{base.symbol}/{quote.symbol}",
        base_mint=str(market.base_mint),
        quote_mint=str(market.quote_mint),
        min_order_size=market.min_order_size,
        price_tick=market.tick_size,
    )
    store.put(address, known)
    store.put_symbol_if_absent(market.base_mint, base.symbol)
    store.put_symbol_if_absent(market.quote_mint, quote.symbol)
    store.save()

    log.info("add_market_persisted", address=str(address), name=known.name, path=str(store.path))
    return known

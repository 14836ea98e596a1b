from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Union

import structlog
from solders.pubkey import Pubkey

from openbook_cli.errors import AccountNotFound, DecodeFailure, OwnershipMismatch
from openbook_cli.program_ids import ProgramIdentity
from openbook_cli.utils.serum.state import MarketState, Mint, Side, Slab
from openbook_cli.utils.solana import AccountInfo, Connection, parse_address

log = structlog.get_logger(__name__)

DEFAULT_DEPTH = 20


@dataclass(frozen=True)
class OrderLevel:
    price: float
    size: float
    side: Side


@dataclass(frozen=True)
class OrderBook:
    bids: List[OrderLevel] = field(default_factory=list)
    asks: List[OrderLevel] = field(default_factory=list)


@dataclass(frozen=True)
class MarketStats:
    total_bids: int
    total_asks: int
    best_bid: Optional[float]
    best_ask: Optional[float]
    spread: Optional[float]
    spread_percentage: Optional[float]


@dataclass(frozen=True)
class MarketDescriptor:
    address: str
    base_mint: str
    quote_mint: str
    base_symbol: str
    quote_symbol: str
    min_order_size: Optional[float]
    price_tick: Optional[float]
    event_queue_length: Optional[int] = None
    request_queue_length: Optional[int] = None
    bids_length: Optional[int] = None
    asks_length: Optional[int] = None

    @property
    def name(self) -> str:
        return f"{self.base_symbol}/{self.quote_symbol}"


@dataclass
class Market:
    address: Pubkey
    identity: ProgramIdentity
    state: MarketState
    base_decimals: int
    quote_decimals: int

    @property
    def base_mint(self) -> Pubkey:
        return self.state.base_mint_address

    @property
    def quote_mint(self) -> Pubkey:
        return self.state.quote_mint_address

    @property
    def bids_address(self) -> Pubkey:
        return self.state.bids_address

    @property
    def asks_address(self) -> Pubkey:
        return self.state.asks_address

    @property
    def _base_multiplier(self) -> int:
        return 10 ** self.base_decimals

    @property
    def _quote_multiplier(self) -> int:
        return 10 ** self.quote_decimals

    @property
    def min_order_size(self) -> float:
        return self.base_size_lots_to_number(1)

    @property
    def tick_size(self) -> float:
        return self.price_lots_to_number(1)

    def price_lots_to_number(self, price: int) -> float:
        numerator = Decimal(price) * self.state.quote_lot_size * self._base_multiplier
        denominator = Decimal(self.state.base_lot_size) * self._quote_multiplier
        return float(numerator / denominator)

    def base_size_lots_to_number(self, size: int) -> float:
        return float(Decimal(size) * self.state.base_lot_size / self._base_multiplier)

    def load_bids(self, connection: Connection) -> Slab:
        return _load_slab(connection, self.bids_address, Side.BID)

    def load_asks(self, connection: Connection) -> Slab:
        return _load_slab(connection, self.asks_address, Side.ASK)

    def levels(self, slab: Slab, side: Side, depth: int) -> List[OrderLevel]:
        df = slab.order_bookify(descending=side.descending, depth=depth)
        return [
            OrderLevel(
                price=self.price_lots_to_number(int(row.Price)),
                size=self.base_size_lots_to_number(int(row.Qty)),
                side=side,
            )
            for row in df.itertuples(index=False)
        ]


def _load_mint_decimals(connection: Connection, mint: Pubkey, program_name: str) -> int:
    info = connection.get_account_info(mint)
    if info is None:
        raise DecodeFailure(f"Failed to load {program_name} market: mint {mint} not found")
    try:
        return Mint.from_account_data(info.data).decimals
    except Exception as e:
        raise DecodeFailure(f"Failed to load {program_name} market: invalid mint {mint}: {e}") from e


def load_market(
        connection: Connection,
        address: Union[str, Pubkey],
        identity: ProgramIdentity,
        account: Optional[AccountInfo] = None,
) -> Market:
    """Decode the market at ``address``; a pre-fetched ``account`` saves the market read."""
    address = parse_address(address)
    program_name = identity.label

    info = account if account is not None else connection.get_account_info(address)
    if info is None:
        raise AccountNotFound(address, what="Market account")
    if identity.program_id is None or info.owner != identity.program_id:
        raise OwnershipMismatch(address, info.owner, expected=program_name)

    try:
        state = MarketState.from_account_data(info.data)
    except Exception as e:
        raise DecodeFailure(f"Failed to load {program_name} market: {e}") from e

    if state.address != address:
        raise DecodeFailure(
            f"Failed to load {program_name} market: account describes {state.address}, not {address}"
        )

    market = Market(
        address=address,
        identity=identity,
        state=state,
        base_decimals=_load_mint_decimals(connection, state.base_mint_address, program_name),
        quote_decimals=_load_mint_decimals(connection, state.quote_mint_address, program_name),
    )
    log.info(
        "market_loaded",
        address=str(address),
        program=program_name,
        base_mint=str(market.base_mint),
        quote_mint=str(market.quote_mint),
    )
    return market


def _load_slab(connection: Connection, address: Pubkey, side: Side) -> Slab:
    info = connection.get_account_info(address)
    if info is None:
        raise AccountNotFound(address, what=f"{side.value.capitalize()}s queue")
    try:
        slab = Slab.from_account_data(info.data)
    except Exception as e:
        raise DecodeFailure(f"Failed to decode {side.value}s queue {address}: {e}") from e
    if slab.side is not side:
        raise DecodeFailure(f"Account {address} is not a {side.value}s queue (flags={int(slab.flags):#x})")
    return slab


def read_order_book(connection: Connection, market: Market, depth: int = DEFAULT_DEPTH) -> OrderBook:
    """Read both queues of ``market`` as L2 levels, best price first on each side."""
    if depth < 0:
        raise ValueError(f"depth must be non-negative, got {depth}")

    bids_slab = market.load_bids(connection)
    asks_slab = market.load_asks(connection)
    try:
        bids = market.levels(bids_slab, Side.BID, depth)
        asks = market.levels(asks_slab, Side.ASK, depth)
    except ValueError as e:
        raise DecodeFailure(f"Failed to read {market.identity.label} order book: {e}") from e

    log.info("order_book_read", market=str(market.address), bids=len(bids), asks=len(asks))
    return OrderBook(bids=bids, asks=asks)


def compute_stats(book: OrderBook) -> MarketStats:
    best_bid = book.bids[0].price if book.bids else None
    best_ask = book.asks[0].price if book.asks else None
    spread = best_ask - best_bid if best_bid is not None and best_ask is not None else None
    spread_percentage = spread / best_bid * 100 if spread is not None and best_bid else None
    return MarketStats(
        total_bids=len(book.bids),
        total_asks=len(book.asks),
        best_bid=best_bid,
        best_ask=best_ask,
        spread=spread,
        spread_percentage=spread_percentage,
    )

from typing import Iterable, List, Optional, Tuple

from openbook_cli.dex.market import MarketDescriptor, MarketStats, OrderBook, OrderLevel
from openbook_cli.dex.store import KnownMarket
from openbook_cli.program_ids import ProgramIdentity

RULE = "=" * 60
COLUMN_RULE = "-" * 30
NOT_AVAILABLE = "N/A"


def _fmt(value: Optional[float], digits: int = 4) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value:.{digits}f}"


def _or_unknown(value) -> str:
    return "unknown" if value is None else str(value)


def format_market_info(info: MarketDescriptor, identity: ProgramIdentity) -> str:
    lines = [
        f"Market Information for: {info.name}",
        RULE,
        f"Market Address: {info.address}",
        f"Base Mint: {info.base_mint} ({info.base_symbol})",
        f"Quote Mint: {info.quote_mint} ({info.quote_symbol})",
        f"Min Order Size: {_or_unknown(info.min_order_size)}",
        f"Price Tick: {_or_unknown(info.price_tick)}",
        f"Event Queue Length: {_or_unknown(info.event_queue_length)}",
        f"Request Queue Length: {_or_unknown(info.request_queue_length)}",
        f"Bids Length: {_or_unknown(info.bids_length)}",
        f"Asks Length: {_or_unknown(info.asks_length)}",
        f"Program: {identity.label} ({identity.program_id})",
    ]
    return "\n".join(lines)


def _level_rows(levels: Iterable[OrderLevel]) -> List[str]:
    return [f"{_fmt(level.price):<15}{_fmt(level.size)}" for level in levels]


def format_order_book(name: str, book: OrderBook) -> str:
    lines = [f"Order Book for Market: {name}", RULE, "", "ASKS (Sell Orders):", "Price          Size", COLUMN_RULE]
    # highest ask on top so the book reads downwards into the spread
    lines += _level_rows(reversed(book.asks))
    lines += ["", "BIDS (Buy Orders):", "Price          Size", COLUMN_RULE]
    lines += _level_rows(book.bids)
    return "\n".join(lines)


def format_stats(stats: MarketStats) -> str:
    return "\n".join(
        [
            "Market Stats:",
            f"Total Bids: {stats.total_bids}",
            f"Total Asks: {stats.total_asks}",
            f"Best Bid: {_fmt(stats.best_bid)}",
            f"Best Ask: {_fmt(stats.best_ask)}",
            f"Spread: {_fmt(stats.spread)}",
            f"Spread %: {_fmt(stats.spread_percentage, 2)}%",
        ]
    )


def format_market_list(identity: ProgramIdentity, markets: Iterable[Tuple[str, KnownMarket]]) -> str:
    lines = [f"Known {identity.label} Markets:", RULE]
    rows = [f"{market.name}: {address}" for address, market in markets]
    return "\n".join(lines + (rows or ["(none)"]))

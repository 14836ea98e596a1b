import argparse
import sys
from typing import Callable, Optional, Sequence

import structlog

from openbook_cli import __version__
from openbook_cli.dex import actions
from openbook_cli.dex.market import Market, compute_stats, read_order_book
from openbook_cli.dex.store import KnownMarketStore
from openbook_cli.errors import OpenBookCliError
from openbook_cli.program_ids import ProgramIdentity
from openbook_cli.scripts import report
from openbook_cli.scripts.update import check_for_update
from openbook_cli.settings import RPC_URLS, Settings, configure_logging
from openbook_cli.utils.solana import Connection, parse_address

log = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

REPORT_DEPTH = 15

EPILOG = """\
examples:
  openbook-cli 3ySaxSspDCsEM53zRTfpyr9s9yfq9yNpZFXSEbvbadLf
  openbook-cli 3ySaxSspDCsEM53zRTfpyr9s9yfq9yNpZFXSEbvbadLf --add
  openbook-cli --list --serum

The program owning a market (OpenBook or Serum) is detected automatically;
--serum forces Serum. Known markets are kept per program in
known_openbook_markets.json and known_serum_markets.json under
$OPENBOOK_CLI_HOME (default ~/.openbook-cli).
"""


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="openbook-cli",
        description="Inspect OpenBook and Serum markets on Solana.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("market", nargs="?", help="market address")
    ap.add_argument("-a", "--add", action="store_true", help="add the market to the known markets")
    ap.add_argument("-l", "--list", action="store_true", help="list known markets")
    ap.add_argument("-s", "--serum", action="store_true", help="use the Serum program instead of detecting it")
    ap.add_argument("-v", "--version", action="version", version=f"openbook-cli v{__version__}")
    ap.add_argument("--update", action="store_true", help="check for a newer release")
    ap.add_argument("--depth", type=int, default=REPORT_DEPTH, help="order book levels per side (default: 15)")
    ap.add_argument("--network", choices=sorted(RPC_URLS), default=None, help="cluster to query")
    ap.add_argument("--rpc-url", default=None, help="RPC endpoint, overrides --network")
    return ap


def _list_markets(settings: Settings, identity: ProgramIdentity) -> int:
    store = KnownMarketStore.for_identity(identity, settings.home).load()
    print(report.format_market_list(identity, store.items()))
    return EXIT_OK


def _add_market(connection: Connection, store: KnownMarketStore, market: Market) -> int:
    identity = market.identity
    print(f"Adding {identity.label} market {market.address} to known markets...")
    known = actions.add_market(connection, store, market.address, identity, market=market)
    print(f"Market: {known.name}")
    print(f"Base Token: {known.base_mint}")
    print(f"Quote Token: {known.quote_mint}")
    print()
    print(report.format_market_list(identity, store.items()))
    print(f"\nSaved to {store.path}")
    return EXIT_OK


def _show_market(connection: Connection, store: KnownMarketStore, market: Market, depth: int) -> int:
    info = actions.get_market_info(connection, store, market.address, market.identity, market=market)
    print(report.format_market_info(info, market.identity))

    book = read_order_book(connection, market, depth)
    print()
    print(report.format_order_book(info.name, book))
    print()
    print(report.format_stats(compute_stats(book)))
    return EXIT_OK


def main(
        argv: Optional[Sequence[str]] = None,
        settings: Optional[Settings] = None,
        connection_factory: Callable[[str], Connection] = Connection.from_url,
) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    settings = settings or Settings.from_env()
    configure_logging(settings)

    if args.update:
        return check_for_update(settings.releases_url)

    forced = ProgramIdentity.SERUM if args.serum else None
    if args.list:
        return _list_markets(settings, ProgramIdentity.from_flag(args.serum))

    if not args.market:
        ap.print_usage(sys.stderr)
        print("Error: market address is required", file=sys.stderr)
        return EXIT_USAGE
    if args.depth < 1:
        ap.print_usage(sys.stderr)
        print("Error: --depth must be at least 1", file=sys.stderr)
        return EXIT_USAGE

    try:
        url = args.rpc_url or settings.rpc_url(args.network)
        address = parse_address(args.market)
        connection = connection_factory(url)
        log.debug("connected", endpoint=url)

        market = actions.open_market(connection, address, forced)
        if forced is None:
            print(f"Auto-detected: {market.identity.label} market")

        store = KnownMarketStore.for_identity(market.identity, settings.home).load()
        if args.add:
            return _add_market(connection, store, market)
        return _show_market(connection, store, market, args.depth)
    except (OpenBookCliError, ValueError) as e:
        log.debug("command_failed", error_type=type(e).__name__, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()

import json
import os
import tempfile
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

import structlog

from openbook_cli.program_ids import ProgramIdentity

log = structlog.get_logger(__name__)


@dataclass
class KnownMarket:
    """A persisted market record; queue lengths are ``None`` when unknown."""

    name: str
    base_mint: str
    quote_mint: str
    min_order_size: Optional[float] = None
    price_tick: Optional[float] = None
    event_queue_length: Optional[int] = None
    request_queue_length: Optional[int] = None
    bids_length: Optional[int] = None
    asks_length: Optional[int] = None

    # python field name -> key in the JSON file
    JSON_KEYS = {
        "name": "name",
        "base_mint": "baseMint",
        "quote_mint": "quoteMint",
        "min_order_size": "minOrderSize",
        "price_tick": "priceTick",
        "event_queue_length": "eventQueueLength",
        "request_queue_length": "requestQueueLength",
        "bids_length": "bidsLength",
        "asks_length": "asksLength",
    }

    def to_dict(self) -> dict:
        return {self.JSON_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, raw: dict) -> "KnownMarket":
        if not isinstance(raw, dict):
            raise ValueError(f"Expected an object, got {type(raw).__name__}")
        kwargs = {name: raw.get(key) for name, key in cls.JSON_KEYS.items()}
        for required in ("base_mint", "quote_mint"):
            if not isinstance(kwargs[required], str) or not kwargs[required]:
                raise ValueError(f"Missing {cls.JSON_KEYS[required]}")
        if not kwargs["name"]:
            kwargs["name"] = f"{kwargs['base_mint'][:8]}/{kwargs['quote_mint'][:8]}"
        return cls(**kwargs)


def _check_identity(identity: ProgramIdentity):
    if identity.store_file is None:
        raise ValueError("Known markets are only kept for OpenBook or Serum")


class KnownMarketStore:
    """Markets and token symbols remembered for one program, backed by a JSON file."""

    def __init__(self, identity: ProgramIdentity, path: Union[str, Path]):
        _check_identity(identity)
        self.identity = identity
        self.path = Path(path)
        self.markets: Dict[str, KnownMarket] = {}
        self.symbols: Dict[str, str] = {}

    @classmethod
    def for_identity(cls, identity: ProgramIdentity, home: Union[str, Path]) -> "KnownMarketStore":
        _check_identity(identity)
        return cls(identity, Path(home) / identity.store_file)

    def __len__(self):
        return len(self.markets)

    def __contains__(self, address) -> bool:
        return str(address) in self.markets

    def items(self) -> Iterator[Tuple[str, KnownMarket]]:
        return iter(self.markets.items())

    def get(self, address) -> Optional[KnownMarket]:
        return self.markets.get(str(address))

    def put(self, address, market: KnownMarket):
        self.markets[str(address)] = market

    def get_symbol(self, token_id) -> Optional[str]:
        return self.symbols.get(str(token_id))

    def put_symbol_if_absent(self, token_id, symbol: str) -> bool:
        token_id = str(token_id)
        if self.symbols.get(token_id):
            return False
        self.symbols[token_id] = symbol
        return True

    def load(self) -> "KnownMarketStore":
        self.markets = {}
        self.symbols = {}
        if not self.path.exists():
            log.info("known_markets_missing", program=self.identity.label, path=str(self.path))
            return self

        try:
            with open(self.path, "r", encoding="utf-8") as fp:
                data = json.load(fp)
            if not isinstance(data, dict):
                raise ValueError("top level is not an object")
            markets = data.get("markets") or {}
            symbols = data.get("symbols") or {}
            if not isinstance(markets, dict) or not isinstance(symbols, dict):
                raise ValueError("markets and symbols must be objects")
        except (OSError, ValueError) as e:
            log.warning("known_markets_unreadable", program=self.identity.label, path=str(self.path), error=str(e))
            return self

        for address, raw in markets.items():
            try:
                self.markets[address] = KnownMarket.from_dict(raw)
            except (TypeError, ValueError) as e:
                log.warning("known_market_skipped", address=address, error=str(e))
        self.symbols = {str(k): v for k, v in symbols.items() if isinstance(v, str) and v}

        log.info(
            "known_markets_loaded",
            program=self.identity.label,
            markets=len(self.markets),
            symbols=len(self.symbols),
        )
        return self

    def to_dict(self) -> dict:
        return {
            "markets": {address: market.to_dict() for address, market in self.markets.items()},
            "symbols": dict(self.symbols),
        }

    def save(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fp:
                    json.dump(self.to_dict(), fp, indent=2)
                    fp.write("\n")
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise
        except OSError as e:
            log.error("known_markets_save_failed", program=self.identity.label, path=str(self.path), error=str(e))
            return False

        log.info("known_markets_saved", program=self.identity.label, path=str(self.path))
        return True

import json
import struct

import httpx
import pytest
import structlog
from solana.rpc.api import Client
from solders.pubkey import Pubkey

from openbook_cli.dex.store import KnownMarketStore
from openbook_cli.errors import NetworkFailure
from openbook_cli.program_ids import OPENBOOK_PROGRAM_ID, SERUM_PROGRAM_ID, ProgramIdentity
from openbook_cli.utils.serum.state import AccountFlag
from openbook_cli.utils.solana import AccountInfo, Connection, parse_address

SPL_TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGqPvZEdJBQsY6UzKc3DAZ2")
NODE_LEN = 72


def market_bytes(
        own_address,
        base_mint,
        quote_mint,
        bids,
        asks,
        base_lot_size=1_000_000,
        quote_lot_size=10_000,
        flags=AccountFlag.INITIALIZED | AccountFlag.MARKET,
        head=b"serum",
        tail=b"padding",
):
    zero_key = bytes(32)
    return b"".join(
        [
            head,
            struct.pack("<Q", int(flags)),
            bytes(own_address),
            struct.pack("<Q", 1),
            bytes(base_mint),
            bytes(quote_mint),
            zero_key,  # base vault
            struct.pack("<QQ", 0, 0),
            zero_key,  # quote vault
            struct.pack("<QQQ", 0, 0, 100),
            zero_key,  # request queue
            zero_key,  # event queue
            bytes(bids),
            bytes(asks),
            struct.pack("<QQQQ", base_lot_size, quote_lot_size, 22, 0),
            tail,
        ]
    )


def mint_bytes(decimals, initialized=True):
    return (
        struct.pack("<I", 0)
        + bytes(32)
        + struct.pack("<QBB", 1_000_000_000, decimals, 1 if initialized else 0)
        + struct.pack("<I", 0)
        + bytes(32)
    )


def _leaf(price, quantity, seq):
    key = (price << 64) | seq
    body = struct.pack("<BB2s", 0, 0, b"\0\0") + key.to_bytes(16, "little") + bytes(32)
    body += struct.pack("<QQ", quantity, seq)
    return struct.pack("<I", 2) + body


def _inner(left, right):
    body = struct.pack("<I", 0) + bytes(16) + struct.pack("<II", left, right)
    return (struct.pack("<I", 1) + body).ljust(NODE_LEN, b"\0")


def slab_bytes(orders, flags, spare_nodes=2, root=None):
    """Serialize ``orders`` [(price_lots, quantity_lots)] into a slab account.

    Leaves are paired into inner nodes in the given order, so the tree shape does
    not follow price order.
    """
    nodes = []
    level = []
    for seq, (price, quantity) in enumerate(orders):
        nodes.append(_leaf(price, quantity, seq))
        level.append(len(nodes) - 1)
    while len(level) > 1:
        paired = []
        for i in range(0, len(level) - 1, 2):
            nodes.append(_inner(level[i], level[i + 1]))
            paired.append(len(nodes) - 1)
        if len(level) % 2:
            paired.append(level[-1])
        level = paired

    if root is None:
        root = level[0] if level else 0
    header = b"serum" + struct.pack("<Q", int(flags))
    header += struct.pack("<8I", len(nodes), 0, 0, 0, 0, root, len(orders), 0)
    body = b"".join(node.ljust(NODE_LEN, b"\0") for node in nodes) + bytes(NODE_LEN * spare_nodes)
    return header + body + b"padding"


def bids_bytes(orders, **kwargs):
    return slab_bytes(orders, AccountFlag.INITIALIZED | AccountFlag.BIDS, **kwargs)


def asks_bytes(orders, **kwargs):
    return slab_bytes(orders, AccountFlag.INITIALIZED | AccountFlag.ASKS, **kwargs)


class FakeConnection(Connection):
    def __init__(self):
        super().__init__(client=None)
        self.accounts = {}
        self.parsed = {}
        self.failing = set()
        self.calls = []

    def add_account(self, address, owner, data):
        self.accounts[str(address)] = AccountInfo(owner=owner, data=bytes(data))

    def fail(self, address):
        self.failing.add(str(address))

    def _check(self, method, address):
        addr = str(parse_address(address))
        self.calls.append((method, addr))
        if addr in self.failing:
            raise NetworkFailure(f"connection reset while fetching {addr}")
        return addr

    def get_account_info(self, address):
        return self.accounts.get(self._check("get_account_info", address))

    def get_parsed_account_info(self, address):
        return self.parsed.get(self._check("get_parsed_account_info", address))


def rpc_client(handler):
    """A real solana-py ``Client`` whose HTTP requests are answered by ``handler``."""
    client = Client("http://rpc.test")
    client._provider.session = httpx.Client(transport=httpx.MockTransport(handler))
    return client


def rpc_error_reply(code=-32603, message="Internal error"):
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": body["id"]}
        )
    return handler


def refused(request):
    raise httpx.ConnectError("connection refused", request=request)


class MarketFixture:
    def __init__(self, connection, identity=ProgramIdentity.OPENBOOK, bids=(), asks=(),
                 base_decimals=6, quote_decimals=6, **market_kwargs):
        self.connection = connection
        self.identity = identity
        self.address = Pubkey.new_unique()
        self.base_mint = Pubkey.new_unique()
        self.quote_mint = Pubkey.new_unique()
        self.bids = Pubkey.new_unique()
        self.asks = Pubkey.new_unique()

        connection.add_account(
            self.address,
            identity.program_id,
            market_bytes(self.address, self.base_mint, self.quote_mint, self.bids, self.asks, **market_kwargs),
        )
        connection.add_account(self.base_mint, SPL_TOKEN_PROGRAM_ID, mint_bytes(base_decimals))
        connection.add_account(self.quote_mint, SPL_TOKEN_PROGRAM_ID, mint_bytes(quote_decimals))
        connection.add_account(self.bids, identity.program_id, bids_bytes(list(bids)))
        connection.add_account(self.asks, identity.program_id, asks_bytes(list(asks)))
        connection.parsed[str(self.base_mint)] = {"decimals": base_decimals, "isInitialized": True}
        connection.parsed[str(self.quote_mint)] = {"decimals": quote_decimals, "isInitialized": True}


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def store(tmp_path):
    return KnownMarketStore.for_identity(ProgramIdentity.OPENBOOK, tmp_path).load()


@pytest.fixture
def scenario_market(connection):
    # 1 lot = 1 base unit, 1 price lot = 0.01 quote
    return MarketFixture(
        connection,
        bids=[(119, 30), (120, 50)],
        asks=[(122, 10), (121, 40)],
    )

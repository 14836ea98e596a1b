from enum import Enum, IntFlag

HEAD_PADDING = b"serum"
TAIL_PADDING = b"padding"


class AccountFlag(IntFlag):
    INITIALIZED = 1 << 0
    MARKET = 1 << 1
    OPEN_ORDERS = 1 << 2
    REQUEST_QUEUE = 1 << 3
    EVENT_QUEUE = 1 << 4
    BIDS = 1 << 5
    ASKS = 1 << 6
    DISABLED = 1 << 7
    CLOSED = 1 << 8
    PERMISSIONED = 1 << 9


class Side(Enum):
    BID = "bid"
    ASK = "ask"

    @property
    def descending(self) -> bool:
        return self is Side.BID


def check_padding(buffer: bytes, expected: bytes, where: str):
    if bytes(buffer) != expected:
        raise ValueError(f"Invalid {where} padding: expected {expected!r}, found {bytes(buffer)!r}")

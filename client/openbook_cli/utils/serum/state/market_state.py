from solders.pubkey import Pubkey
from podite import U8, U64, pod, FixedLenArray

from .base import AccountFlag, HEAD_PADDING, TAIL_PADDING, check_padding

PubkeyBytes = FixedLenArray[U8, 32]


@pod
class MarketState:
    head_padding: FixedLenArray[U8, 5]
    account_flags: U64
    own_address: PubkeyBytes
    vault_signer_nonce: U64
    base_mint: PubkeyBytes
    quote_mint: PubkeyBytes
    base_vault: PubkeyBytes
    base_deposits_total: U64
    base_fees_accrued: U64
    quote_vault: PubkeyBytes
    quote_deposits_total: U64
    quote_fees_accrued: U64
    quote_dust_threshold: U64
    request_queue: PubkeyBytes
    event_queue: PubkeyBytes
    bids: PubkeyBytes
    asks: PubkeyBytes
    base_lot_size: U64
    quote_lot_size: U64
    fee_rate_bps: U64
    referrer_rebates_accrued: U64
    tail_padding: FixedLenArray[U8, 7]

    @classmethod
    def from_account_data(cls, data: bytes) -> "MarketState":
        size = cls.calc_size()
        if len(data) < size:
            raise ValueError(f"Market account too small: {len(data)} bytes, expected {size}")
        state = cls.from_bytes(bytes(data[:size]))
        check_padding(state.head_padding, HEAD_PADDING, "market head")
        check_padding(state.tail_padding, TAIL_PADDING, "market tail")

        flags = state.flags
        if not (flags & AccountFlag.INITIALIZED and flags & AccountFlag.MARKET):
            raise ValueError(f"Account is not an initialized market (flags={int(flags):#x})")
        if state.base_lot_size == 0 or state.quote_lot_size == 0:
            raise ValueError("Market has a zero lot size")
        return state

    @property
    def flags(self) -> AccountFlag:
        return AccountFlag(self.account_flags)

    def _key(self, name) -> Pubkey:
        return Pubkey.from_bytes(bytes(getattr(self, name)))

    @property
    def address(self) -> Pubkey:
        return self._key("own_address")

    @property
    def base_mint_address(self) -> Pubkey:
        return self._key("base_mint")

    @property
    def quote_mint_address(self) -> Pubkey:
        return self._key("quote_mint")

    @property
    def bids_address(self) -> Pubkey:
        return self._key("bids")

    @property
    def asks_address(self) -> Pubkey:
        return self._key("asks")

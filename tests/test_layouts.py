import pytest
from solders.pubkey import Pubkey

from openbook_cli.utils.serum.state import AccountFlag, MarketState, Mint, Side, Slab, LeafNode

from conftest import asks_bytes, bids_bytes, market_bytes, mint_bytes, slab_bytes


@pytest.fixture
def keys():
    return [Pubkey.new_unique() for _ in range(5)]


def test_market_state_decodes_addresses_and_lot_sizes(keys):
    own, base, quote, bids, asks = keys
    state = MarketState.from_account_data(market_bytes(own, base, quote, bids, asks, 100, 10))

    assert MarketState.calc_size() == 388
    assert state.address == own
    assert state.base_mint_address == base
    assert state.quote_mint_address == quote
    assert state.bids_address == bids
    assert state.asks_address == asks
    assert state.base_lot_size == 100
    assert state.quote_lot_size == 10
    assert state.flags & AccountFlag.MARKET


def test_market_state_rejects_bad_padding(keys):
    with pytest.raises(ValueError, match="padding"):
        MarketState.from_account_data(market_bytes(*keys, head=b"xxxxx"))
    with pytest.raises(ValueError, match="padding"):
        MarketState.from_account_data(market_bytes(*keys, tail=b"xxxxxxx"))


def test_market_state_rejects_non_market_accounts(keys):
    data = market_bytes(*keys, flags=AccountFlag.INITIALIZED | AccountFlag.BIDS)
    with pytest.raises(ValueError, match="not an initialized market"):
        MarketState.from_account_data(data)


def test_market_state_rejects_short_data(keys):
    with pytest.raises(ValueError, match="too small"):
        MarketState.from_account_data(market_bytes(*keys)[:200])


def test_mint_decimals():
    assert Mint.calc_size() == 82
    assert Mint.from_account_data(mint_bytes(9)).decimals == 9
    with pytest.raises(ValueError):
        Mint.from_account_data(mint_bytes(9, initialized=False))


def test_slab_items_follow_tree_order_and_side_flag():
    slab = Slab.from_account_data(bids_bytes([(5, 1), (7, 2), (3, 4)]))

    assert slab.side is Side.BID
    assert len(slab) == 3
    ascending = [leaf.price for leaf in slab.items()]
    descending = [leaf.price for leaf in slab.items(descending=True)]
    assert sorted(ascending) == [3, 5, 7]
    assert descending == list(reversed(ascending))
    assert all(isinstance(leaf, LeafNode) for leaf in slab.items())


def test_order_bookify_aggregates_and_sorts_levels():
    slab = Slab.from_account_data(asks_bytes([(12, 1), (10, 2), (12, 3), (11, 4), (10, 5)]))

    df = slab.order_bookify(descending=False)
    assert list(df["Price"]) == [10, 11, 12]
    assert list(df["Qty"]) == [7, 4, 4]

    df = slab.order_bookify(descending=True, depth=2)
    assert list(df["Price"]) == [12, 11]


def test_empty_slab_has_no_levels():
    slab = Slab.from_account_data(bids_bytes([]))
    assert slab.root is None
    assert list(slab.items()) == []
    assert slab.order_bookify(descending=True).empty


def test_slab_with_root_out_of_range_is_rejected():
    data = slab_bytes([(1, 1)], AccountFlag.INITIALIZED | AccountFlag.ASKS, spare_nodes=0, root=40)
    with pytest.raises(ValueError, match="out of range"):
        Slab.from_account_data(data)


def test_slab_cycle_is_detected():
    # an inner node pointing at itself never reaches a leaf
    data = bytearray(bids_bytes([(1, 1), (2, 2)]))
    inner_offset = 45 + 2 * 72
    data[inner_offset + 4 + 4 + 16:inner_offset + 4 + 4 + 16 + 8] = (2).to_bytes(4, "little") * 2
    slab = Slab.from_account_data(bytes(data))
    with pytest.raises(ValueError, match="visited more nodes"):
        list(slab.items())

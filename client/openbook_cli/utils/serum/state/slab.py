import struct
from enum import IntEnum
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

import pandas as pd
from podite import U8, U32, U64, U128, pod, FixedLenArray

from .base import AccountFlag, HEAD_PADDING, TAIL_PADDING, Side, check_padding

NODE_TAG_SIZE = 4
NODE_SIZE = 68
SLOT_SIZE = NODE_TAG_SIZE + NODE_SIZE

PRICE_SHIFT = 64


class NodeKind(IntEnum):
    UNINITIALIZED = 0
    INNER = 1
    LEAF = 2
    FREE = 3
    LAST_FREE = 4


@pod
class SlabHeader:
    head_padding: FixedLenArray[U8, 5]
    account_flags: U64
    bump_index: U32
    padding0: U32
    free_list_len: U32
    padding1: U32
    free_list_head: U32
    root_node: U32
    leaf_count: U32
    padding2: U32


@pod
class InnerNode:
    prefix_len: U32
    key: U128
    children: FixedLenArray[U32, 2]


@pod
class LeafNode:
    owner_slot: U8
    fee_tier: U8
    padding: FixedLenArray[U8, 2]
    key: U128
    owner: FixedLenArray[U8, 32]
    quantity: U64
    client_order_id: U64

    @property
    def price(self) -> int:
        return self.key >> PRICE_SHIFT


@pod
class FreeNode:
    next: U32


SLAB_HEADER_LEN = SlabHeader.calc_size()


@dataclass
class Slab:
    """One side of an order book: a crit-bit tree stored in a flat node array."""

    header: SlabHeader
    buffer: bytes = field(repr=False)

    @classmethod
    def from_account_data(cls, data: bytes) -> "Slab":
        data = bytes(data)
        if len(data) < SLAB_HEADER_LEN + len(TAIL_PADDING):
            raise ValueError(f"Order queue account too small: {len(data)} bytes")
        header = SlabHeader.from_bytes(data[:SLAB_HEADER_LEN])
        check_padding(header.head_padding, HEAD_PADDING, "slab head")
        check_padding(data[-len(TAIL_PADDING):], TAIL_PADDING, "slab tail")
        slab = Slab(header, data)
        if slab.header.leaf_count and slab.header.root_node >= slab.capacity:
            raise ValueError(f"Slab root {slab.header.root_node} out of range ({slab.capacity} nodes)")
        return slab

    @property
    def flags(self) -> AccountFlag:
        return AccountFlag(self.header.account_flags)

    @property
    def side(self) -> Optional[Side]:
        if self.flags & AccountFlag.BIDS:
            return Side.BID
        if self.flags & AccountFlag.ASKS:
            return Side.ASK
        return None

    @property
    def capacity(self) -> int:
        return (len(self.buffer) - SLAB_HEADER_LEN - len(TAIL_PADDING)) // SLOT_SIZE

    @property
    def root(self) -> Optional[int]:
        if self.header.leaf_count == 0:
            return None
        return self.header.root_node

    def __len__(self):
        return self.header.leaf_count

    def get_node(self, key: int) -> Union[InnerNode, LeafNode, FreeNode, None]:
        if key >= self.capacity:
            raise ValueError(f"Slab node index {key} out of range ({self.capacity} nodes)")
        start = SLAB_HEADER_LEN + key * SLOT_SIZE
        buffer = self.buffer[start:start + SLOT_SIZE]
        tag = struct.unpack("<I", buffer[:NODE_TAG_SIZE])[0]
        body = buffer[NODE_TAG_SIZE:]
        if tag == NodeKind.INNER:
            return InnerNode.from_bytes(body[:InnerNode.calc_size()])
        if tag == NodeKind.LEAF:
            return LeafNode.from_bytes(body[:LeafNode.calc_size()])
        if tag == NodeKind.FREE or tag == NodeKind.LAST_FREE:
            return FreeNode.from_bytes(body[:FreeNode.calc_size()])
        return None

    def items(self, descending: bool = False) -> Iterator[LeafNode]:
        """Yield leaves in key order; the crit-bit tree keeps smaller keys on the left."""
        root = self.root
        if root is None:
            return

        stack = [root]
        visited = 0
        while stack:
            visited += 1
            if visited > self.capacity:
                raise ValueError("Slab traversal visited more nodes than the slab holds")

            node = self.get_node(stack.pop())
            if isinstance(node, LeafNode):
                yield node
            elif isinstance(node, InnerNode):
                left, right = node.children
                if descending:
                    stack.extend([left, right])
                else:
                    stack.extend([right, left])

    def order_bookify(self, descending: bool, depth: Optional[int] = None) -> pd.DataFrame:
        """Aggregate resting orders into L2 levels (price lots, total quantity lots)."""
        rows = [(leaf.price, leaf.quantity) for leaf in self.items(descending)]
        if not rows:
            return pd.DataFrame({"Price": pd.Series(dtype="uint64"), "Qty": pd.Series(dtype="uint64")})

        df = (
            pd.DataFrame(rows, columns=["Price", "Qty"])
            .groupby("Price", as_index=False)["Qty"]
            .sum()
            .sort_values("Price", ascending=not descending)
            .reset_index(drop=True)
        )
        if depth is not None:
            df = df.head(depth)
        return df

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import base58
import structlog
from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey

from openbook_cli.errors import InvalidAddressFormat, NetworkFailure

log = structlog.get_logger(__name__)

PUBKEY_LEN = 32

# transport failures and JSON-RPC error replies
RPC_ERRORS = (SolanaRpcException, RPCException)


def parse_address(address: Union[str, Pubkey]) -> Pubkey:
    if isinstance(address, Pubkey):
        return address
    if not isinstance(address, str) or not address:
        raise InvalidAddressFormat(address)
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise InvalidAddressFormat(address) from e
    if len(raw) != PUBKEY_LEN:
        raise InvalidAddressFormat(address)
    return Pubkey.from_bytes(raw)


@dataclass
class AccountInfo:
    owner: Pubkey
    data: bytes = field(repr=False)

    def __str__(self) -> str:
        return f"AccountInfo(owner={self.owner}, data_len={len(self.data)})"


class Connection:
    """Thin gateway over a solana-py ``Client``; the only place RPC calls are made."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_url(cls, url: str, commitment: Commitment = Confirmed, timeout: float = 30) -> "Connection":
        return cls(Client(url, commitment=commitment, timeout=timeout))

    def get_account_info(self, address: Union[str, Pubkey]) -> Optional[AccountInfo]:
        addr = parse_address(address)
        log.debug("get_account_info", address=str(addr))
        try:
            resp = self.client.get_account_info(addr)
        except RPC_ERRORS as e:
            raise NetworkFailure(f"Failed to fetch account {addr}: {e}") from e

        value = resp.value
        if value is None:
            return None
        return AccountInfo(owner=value.owner, data=bytes(value.data))

    def get_parsed_account_info(self, address: Union[str, Pubkey]) -> Optional[Dict[str, Any]]:
        addr = parse_address(address)
        log.debug("get_parsed_account_info", address=str(addr))
        try:
            resp = self.client.get_account_info_json_parsed(addr)
        except RPC_ERRORS as e:
            raise NetworkFailure(f"Failed to fetch parsed account {addr}: {e}") from e

        value = resp.value
        if value is None:
            return None

        # nodes fall back to raw bytes for accounts they cannot parse
        parsed = getattr(value.data, "parsed", None)
        if isinstance(parsed, str):
            parsed = json.loads(parsed)
        if not isinstance(parsed, dict):
            return None
        return parsed.get("info")

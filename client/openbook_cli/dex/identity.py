from typing import Optional, Union

import structlog
from solders.pubkey import Pubkey

from openbook_cli.errors import AccountNotFound
from openbook_cli.program_ids import ProgramIdentity
from openbook_cli.utils.solana import AccountInfo, Connection, parse_address

log = structlog.get_logger(__name__)


def fetch_market_account(connection: Connection, address: Union[str, Pubkey]) -> AccountInfo:
    address = parse_address(address)
    info = connection.get_account_info(address)
    if info is None:
        raise AccountNotFound(address, what="Market account")
    return info


def resolve_identity(
        connection: Connection,
        address: Union[str, Pubkey],
        account: Optional[AccountInfo] = None,
) -> ProgramIdentity:
    """Return the program owning ``address``; UNKNOWN when it is neither OpenBook nor Serum.

    ``account`` is used as-is when the caller already fetched it. Raises AccountNotFound
    when the account does not exist.
    """
    address = parse_address(address)
    if account is None:
        account = fetch_market_account(connection, address)

    identity = ProgramIdentity.from_owner(account.owner)
    log.info("identity_resolved", address=str(address), owner=str(account.owner), identity=identity.label)
    return identity

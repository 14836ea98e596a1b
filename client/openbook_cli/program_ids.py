import os
from enum import Enum
from typing import Optional

from solders.pubkey import Pubkey

OPENBOOK_PROGRAM_ID = Pubkey.from_string(
    os.environ.get("OPENBOOK_PROGRAM_ID", "srmqPvymJeFKQ4zGQed1GFppgkRHL9kaELCbyksJtPX")
)
SERUM_PROGRAM_ID = Pubkey.from_string(
    os.environ.get("SERUM_PROGRAM_ID", "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin")
)


class ProgramIdentity(Enum):
    OPENBOOK = ("OpenBook", OPENBOOK_PROGRAM_ID, "known_openbook_markets.json")
    SERUM = ("Serum", SERUM_PROGRAM_ID, "known_serum_markets.json")
    UNKNOWN = ("Unknown", None, None)

    def __init__(self, label: str, program_id: Optional[Pubkey], store_file: Optional[str]):
        self.label = label
        self.program_id = program_id
        self.store_file = store_file

    @classmethod
    def from_owner(cls, owner: Pubkey) -> "ProgramIdentity":
        for identity in (cls.OPENBOOK, cls.SERUM):
            if owner == identity.program_id:
                return identity
        return cls.UNKNOWN

    @classmethod
    def from_flag(cls, serum: bool) -> "ProgramIdentity":
        return cls.SERUM if serum else cls.OPENBOOK

    def __str__(self):
        return self.label

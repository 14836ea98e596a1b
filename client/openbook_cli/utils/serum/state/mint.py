from podite import U8, U32, U64, pod, FixedLenArray


@pod
class Mint:
    mint_authority_option: U32
    mint_authority: FixedLenArray[U8, 32]
    supply: U64
    decimals: U8
    is_initialized: U8
    freeze_authority_option: U32
    freeze_authority: FixedLenArray[U8, 32]

    @classmethod
    def from_account_data(cls, data: bytes) -> "Mint":
        size = cls.calc_size()
        if len(data) < size:
            raise ValueError(f"Mint account too small: {len(data)} bytes, expected {size}")
        mint = cls.from_bytes(bytes(data[:size]))
        if not mint.is_initialized:
            raise ValueError("Mint is not initialized")
        return mint

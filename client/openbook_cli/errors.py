class OpenBookCliError(Exception):
    """Base class for every failure surfaced to the command line."""


class InvalidAddressFormat(OpenBookCliError, ValueError):
    def __init__(self, address):
        self.address = address
        super().__init__(
            f"Invalid public key format: {address!r}. Please ensure it's a valid Solana address."
        )


class AccountNotFound(OpenBookCliError):
    def __init__(self, address, what="Account"):
        self.address = address
        super().__init__(f"{what} not found: {address}")


class OwnershipMismatch(OpenBookCliError):
    def __init__(self, address, owner=None, expected=None):
        self.address = address
        self.owner = owner
        self.expected = expected
        if expected is None:
            message = f"{address} is not a valid market: it is not owned by the OpenBook or Serum programs"
        else:
            message = f"Market not owned by {expected} program"
        if owner is not None:
            message += f". Owner: {owner}"
        super().__init__(message)


class DecodeFailure(OpenBookCliError):
    pass


class NetworkFailure(OpenBookCliError):
    pass

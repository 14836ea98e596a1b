import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

import structlog

RPC_URLS = {
    "devnet": "https://api.devnet.solana.com",
    "dev": "https://api.devnet.solana.com",
    "localnet": "http://localhost:8899",
    "local": "http://localhost:8899",
    "mainnet": "https://api.mainnet-beta.solana.com",
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
}

DEFAULT_RELEASES_URL = "https://api.github.com/repos/belivenn/openbook-cli/releases/latest"


class Settings:
    """Runtime settings read from ``OPENBOOK_CLI_*`` environment variables."""

    PREFIX = "OPENBOOK_CLI_"

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self.values = dict(values or {})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        return cls(
            {
                key[len(cls.PREFIX):].lower(): value
                for key, value in environ.items()
                if key.startswith(cls.PREFIX)
            }
        )

    @property
    def network(self) -> str:
        return self.values.get("network", "mainnet")

    def rpc_url(self, network: Optional[str] = None) -> str:
        if "rpc_url" in self.values:
            return self.values["rpc_url"]
        network = network or self.network
        try:
            return RPC_URLS[network]
        except KeyError:
            raise ValueError(f"Unknown network {network!r}. Choose one of: {', '.join(RPC_URLS)}")

    @property
    def home(self) -> Path:
        if "home" in self.values:
            return Path(self.values["home"]).expanduser()
        return Path.home() / ".openbook-cli"

    @property
    def releases_url(self) -> str:
        return self.values.get("releases_url", DEFAULT_RELEASES_URL)

    @property
    def logging_level(self) -> str:
        return self.values.get("log_level", "WARNING").upper()

    @property
    def logging_format(self) -> str:
        return self.values.get("log_format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.WARNING)


def _stderr_logger(*args) -> structlog.PrintLogger:
    # looked up per logger so a replaced sys.stderr is honoured
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(settings: Settings) -> None:
    """Configure structlog to write to stderr. Call once at application entry."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )

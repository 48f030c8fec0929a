"""
Client configuration: contract addresses, network endpoints and tunables.

Values come from the environment; a .env file in the working directory is
loaded first (existing env vars are not overridden). Never put a private key
in code: set TNS_PRIVATE_KEY in the environment instead.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from web3 import Web3

from tnsclient.errors import InputError

EMPTY_ADDRESS = "0x0000000000000000000000000000000000000000"
EMPTY_NODE = b"\x00" * 32

DEFAULT_TLD = "tomo"
DEFAULT_RPC_URL = "https://rpc.tomochain.com"
# Controller is not discoverable from the registry; deployments pin it.
DEFAULT_CONTROLLER_ADDRESS = "0x6C3EF94eC8CE171B3b3993520e91Df9d4D06f812"
DEFAULT_PRICE_FEED_URL = "https://min-api.cryptocompare.com/data/price?fsym=TOMO&tsyms=USD"
DEFAULT_PRICE_FEED_FIELD = "USD"
# Validating resolver asked for DNSSEC records
DEFAULT_DNS_NAMESERVER = "1.1.1.1"

# Chain ids above this are treated as private/test networks
PRIVATE_NETWORK_CHAIN_ID = 1000
# Headroom added on top of a gas estimate
TRANSFER_GAS_COST = 21000
# 10% buffer on any price paid; the controller refunds the excess
PRICE_BUFFER_NUMERATOR = 110
PRICE_BUFFER_DENOMINATOR = 100

ENV_RPC_URL = "TNS_RPC_URL"
ENV_REGISTRY_ADDRESS = "TNS_REGISTRY_ADDRESS"
ENV_CONTROLLER_ADDRESS = "TNS_CONTROLLER_ADDRESS"
ENV_TLD = "TNS_TLD"
ENV_RESOLVER_NAME = "TNS_RESOLVER_NAME"
ENV_PRIVATE_KEY = "TNS_PRIVATE_KEY"
ENV_PRICE_FEED_URL = "TNS_PRICE_FEED_URL"
ENV_PRICE_FEED_FIELD = "TNS_PRICE_FEED_FIELD"
ENV_HTTP_TIMEOUT = "TNS_HTTP_TIMEOUT"
ENV_LOG_LEVEL = "TNS_LOG_LEVEL"
ENV_DNS_NAMESERVER = "TNS_DNS_NAMESERVER"


def checksum_address(value: str, field: str = "address") -> str:
    """Return the checksummed form of an address or raise InputError."""
    if not isinstance(value, str) or not Web3.is_address(value):
        raise InputError(f"{field} is not a valid address: {value!r}", details={field: value})
    return Web3.to_checksum_address(value)


def is_empty_address(value: Optional[str]) -> bool:
    if not value:
        return True
    try:
        return int(value, 16) == 0
    except ValueError:
        return False


class Settings(BaseModel):
    """Everything needed to build a Session against one deployment."""

    rpc_url: str = DEFAULT_RPC_URL
    registry_address: Optional[str] = None
    controller_address: str = DEFAULT_CONTROLLER_ADDRESS
    tld: str = DEFAULT_TLD
    resolver_name: Optional[str] = None
    private_key: Optional[str] = Field(default=None, repr=False)
    price_feed_url: str = DEFAULT_PRICE_FEED_URL
    price_feed_field: str = DEFAULT_PRICE_FEED_FIELD
    http_timeout: float = 10.0
    dns_nameserver: str = DEFAULT_DNS_NAMESERVER
    log_level: str = "WARNING"

    @field_validator("registry_address", "controller_address")
    @classmethod
    def _check_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return checksum_address(value)

    @field_validator("tld")
    @classmethod
    def _strip_tld(cls, value: str) -> str:
        value = value.strip().lower().lstrip(".")
        if not value:
            raise InputError("TLD must not be empty")
        return value

    @property
    def reserved_resolver_name(self) -> str:
        """Name whose address record is the default resolver, e.g. resolver.tomo."""
        return self.resolver_name or f"resolver.{self.tld}"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        """Build settings from TNS_* env vars (after loading .env)."""
        if env_file is not None:
            load_dotenv(env_file, override=False)
        else:
            load_dotenv(Path.cwd() / ".env", override=False)

        values = {}
        mapping = {
            "rpc_url": ENV_RPC_URL,
            "registry_address": ENV_REGISTRY_ADDRESS,
            "controller_address": ENV_CONTROLLER_ADDRESS,
            "tld": ENV_TLD,
            "resolver_name": ENV_RESOLVER_NAME,
            "private_key": ENV_PRIVATE_KEY,
            "price_feed_url": ENV_PRICE_FEED_URL,
            "price_feed_field": ENV_PRICE_FEED_FIELD,
            "log_level": ENV_LOG_LEVEL,
            "dns_nameserver": ENV_DNS_NAMESERVER,
        }
        for field, env_name in mapping.items():
            raw = (os.getenv(env_name) or "").strip()
            if raw:
                values[field] = raw

        timeout = (os.getenv(ENV_HTTP_TIMEOUT) or "").strip()
        if timeout:
            try:
                values["http_timeout"] = float(timeout)
            except ValueError:
                raise InputError(f"{ENV_HTTP_TIMEOUT} must be a number, got {timeout!r}")

        return cls(**values)


def configure_logging(level: str = "WARNING") -> None:
    """Install a basic stderr handler. Used by the CLI; the library never calls it on import."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

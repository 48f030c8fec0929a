"""
Session: the explicit context every component is built from.

Holds the RPC backend, the discovered contract addresses and the account
that signs. Nothing here is process-global; two sessions can point at two
different networks side by side.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from tnsclient.config import EMPTY_ADDRESS, Settings, checksum_address, is_empty_address
from tnsclient.contracts import (
    BASE_REGISTRAR,
    BULK_RENEWAL,
    CONTROLLER,
    REGISTRY,
    RESOLVER,
    ContractCall,
    interface_id,
)
from tnsclient.errors import InputError, RemoteCallError
from tnsclient.namehash import namehash
from tnsclient.rpc import RegistryRPC, Web3RegistryRPC

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Deployment:
    """Addresses of the contracts behind one TLD."""

    registry: str
    base_registrar: str
    controller: str
    bulk_renewal: str = EMPTY_ADDRESS


@dataclass
class Session:
    rpc: RegistryRPC
    deployment: Deployment
    account: Optional[str] = None
    tld: str = "tomo"
    resolver_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.account is not None:
            self.account = checksum_address(self.account, "account")

    @property
    def reserved_resolver_name(self) -> str:
        return self.resolver_name or f"resolver.{self.tld}"

    @property
    def read_only(self) -> bool:
        return self.account is None

    def require_account(self) -> str:
        if self.account is None:
            raise InputError("This operation needs a signing account; the session is read-only")
        return self.account

    def registry(self, function: str, *args) -> ContractCall:
        return ContractCall(REGISTRY, self.deployment.registry, function, args)

    def base_registrar(self, function: str, *args) -> ContractCall:
        return ContractCall(BASE_REGISTRAR, self.deployment.base_registrar, function, args)

    def controller(self, function: str, *args, value: int = 0) -> ContractCall:
        return ContractCall(CONTROLLER, self.deployment.controller, function, args, value)

    def bulk_renewal(self, function: str, *args, value: int = 0) -> ContractCall:
        if is_empty_address(self.deployment.bulk_renewal):
            raise InputError("No bulk renewal contract is registered for this TLD")
        return ContractCall(BULK_RENEWAL, self.deployment.bulk_renewal, function, args, value)


async def setup_registrar(
    rpc: RegistryRPC,
    registry_address: str,
    controller_address: str,
    account: Optional[str] = None,
    tld: str = "tomo",
    resolver_name: Optional[str] = None,
) -> Session:
    """
    Discover the deployment behind `tld` and return a Session for it.

    The base registrar owns the TLD node; the bulk renewal contract is
    published as an interface implementer on the TLD's resolver.
    """
    registry_address = checksum_address(registry_address, "registry")
    controller_address = checksum_address(controller_address, "controller")
    tld_node = namehash(tld)

    base_registrar = await rpc.call(ContractCall(REGISTRY, registry_address, "owner", (tld_node,)))
    if is_empty_address(base_registrar):
        raise RemoteCallError(f"TLD '{tld}' has no owner in registry {registry_address}")

    bulk_renewal = EMPTY_ADDRESS
    resolver = await rpc.call(ContractCall(REGISTRY, registry_address, "resolver", (tld_node,)))
    if is_empty_address(resolver):
        logger.warning("TLD '%s' has no resolver; bulk renewal disabled", tld)
    else:
        try:
            bulk_renewal = await rpc.call(
                ContractCall(RESOLVER, resolver, "interfaceImplementer", (tld_node, interface_id("bulkRenewal")))
            )
        except RemoteCallError as e:
            logger.warning("Could not look up bulk renewal implementer for '%s': %s", tld, e.message)

    deployment = Deployment(
        registry=registry_address,
        base_registrar=checksum_address(base_registrar, "base_registrar"),
        controller=controller_address,
        bulk_renewal=bulk_renewal or EMPTY_ADDRESS,
    )
    logger.debug("Discovered deployment for %s: %s", tld, deployment)
    return Session(rpc=rpc, deployment=deployment, account=account, tld=tld, resolver_name=resolver_name)


async def connect(settings: Settings) -> Session:
    """Build a web3-backed Session from settings."""
    if not settings.registry_address:
        raise InputError("No registry address configured (set TNS_REGISTRY_ADDRESS)")
    rpc = Web3RegistryRPC.from_url(settings.rpc_url, private_key=settings.private_key)
    account = rpc.account.address if rpc.account is not None else None
    return await setup_registrar(
        rpc,
        settings.registry_address,
        settings.controller_address,
        account=account,
        tld=settings.tld,
        resolver_name=settings.resolver_name,
    )

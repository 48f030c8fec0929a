"""
Registration protocol: price quotes, commit-reveal, renewals and ownership moves.

Typical flow for a new name:

    secret = generate_secret()
    await registrar.commit("alice", secret)
    # wait at least get_minimum_commitment_age() seconds of block time,
    # and no more than get_maximum_commitment_age()
    await registrar.register("alice", duration, secret)

The registrar never sleeps: scheduling the reveal is the caller's job.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from tnsclient.commitment import make_commitment, to_secret
from tnsclient.config import (
    EMPTY_ADDRESS,
    PRICE_BUFFER_DENOMINATOR,
    PRICE_BUFFER_NUMERATOR,
    PRIVATE_NETWORK_CHAIN_ID,
    checksum_address,
    is_empty_address,
)
from tnsclient.contracts import RESOLVER, TEST_REGISTRAR, ContractCall
from tnsclient.entry import EntryResolver
from tnsclient.errors import InputError, RemoteCallError
from tnsclient.gas import estimate_gas_limit
from tnsclient.labelhash import is_encoded_labelhash, label_token_id, labelhash, normalize_label
from tnsclient.namehash import namehash, split_name
from tnsclient.oracle import PriceOracle
from tnsclient.schema import (
    CommitmentStatus,
    PermanentEntry,
    RegistrarEntry,
    RentQuote,
    TxHandle,
    TxResult,
    from_timestamp,
)
from tnsclient.session import Session

logger = logging.getLogger(__name__)

Secret = Union[bytes, str]


def buffered_price(price: int) -> int:
    """Price plus 10%; the controller refunds whatever is not used."""
    return price * PRICE_BUFFER_NUMERATOR // PRICE_BUFFER_DENOMINATOR


def _controller_label(label: str) -> str:
    if is_encoded_labelhash(label):
        raise InputError("The controller needs the plaintext label, not an encoded labelhash", details={"label": label})
    return normalize_label(label)


def _check_duration(duration: int, allow_zero: bool = False) -> int:
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise InputError(f"Duration must be an integer number of seconds, got {duration!r}")
    if duration < 0 or (duration == 0 and not allow_zero):
        raise InputError(f"Duration must be positive, got {duration}")
    return duration


class Registrar:
    """Client side of the permanent registrar and its controller."""

    def __init__(
        self,
        session: Session,
        entries: Optional[EntryResolver] = None,
        price_oracle: Optional[PriceOracle] = None,
    ):
        self._session = session
        self._entries = entries or EntryResolver(session)
        self._price_oracle = price_oracle

    @property
    def session(self) -> Session:
        return self._session

    @property
    def rpc(self):
        return self._session.rpc

    # --- resolver reads ---

    async def get_resolver(self, name: str) -> str:
        return await self.rpc.call(self._session.registry("resolver", namehash(name)))

    async def get_address(self, name: str) -> str:
        """Address record of `name`; the zero address when no resolver is set."""
        node = namehash(name)
        resolver = await self.rpc.call(self._session.registry("resolver", node))
        if is_empty_address(resolver):
            return EMPTY_ADDRESS
        return await self.rpc.call(ContractCall(RESOLVER, resolver, "addr", (node,)))

    async def get_text(self, name: str, key: str) -> Optional[str]:
        node = namehash(name)
        resolver = await self.rpc.call(self._session.registry("resolver", node))
        if is_empty_address(resolver):
            return None
        return await self.rpc.call(ContractCall(RESOLVER, resolver, "text", (node, key)))

    async def get_price_curve(self) -> str:
        try:
            curve = await self.get_text(self._session.tld, "oracle")
        except RemoteCallError as e:
            logger.debug("No price curve record, falling back to linear: %s", e.message)
            return "linear"
        return curve or "linear"

    async def get_eth_price(self) -> Optional[float]:
        """Native token price in USD from the price feed, or None when unavailable."""
        if self._price_oracle is None:
            self._price_oracle = PriceOracle()
        return await self._price_oracle.get_price()

    # --- entries ---

    async def get_entry(self, label: str) -> RegistrarEntry:
        return await self._entries.resolve_entry(label)

    async def get_permanent_entry(self, label: str) -> PermanentEntry:
        return await self._entries.get_permanent_entry(label)

    async def get_grace_period(self) -> timedelta:
        return await self._entries.get_grace_period()

    # --- pricing ---

    async def get_rent_price(self, label: str, duration: int, block: Union[str, int] = "latest") -> int:
        call = self._session.controller("rentPrice", _controller_label(label), _check_duration(duration, allow_zero=True))
        return int(await self.rpc.call(call, block=block))

    async def get_rent_price_and_premium(self, label: str, duration: int, block: Union[str, int] = "latest") -> RentQuote:
        """Price for `duration` plus the premium in effect (the price of a zero duration)."""
        price, premium = await asyncio.gather(
            self.get_rent_price(label, duration, block=block),
            self.get_rent_price(label, 0, block=block),
        )
        return RentQuote(price=price, premium=premium)

    async def get_rent_prices(self, labels: Iterable[str], duration: int) -> int:
        labels = [_controller_label(label) for label in labels]
        if not labels:
            raise InputError("At least one label is required to price a bulk renewal")
        prices = await asyncio.gather(*(self.get_rent_price(label, duration) for label in labels))
        return sum(prices)

    # --- commit-reveal ---

    async def get_minimum_commitment_age(self) -> int:
        return int(await self.rpc.call(self._session.controller("minCommitmentAge")))

    async def get_maximum_commitment_age(self) -> int:
        return int(await self.rpc.call(self._session.controller("maxCommitmentAge")))

    async def _commitment_config(self) -> Optional[str]:
        """Resolver to bind at registration, or None for the simple scheme."""
        resolver = await self.get_address(self._session.reserved_resolver_name)
        return None if is_empty_address(resolver) else resolver

    async def make_commitment(self, label: str, owner: str, secret: Secret) -> bytes:
        """
        Commitment in whichever scheme register() will use.

        With a default resolver configured, the name is committed with that
        resolver and `owner` as its address record.
        """
        label = _controller_label(label)
        resolver = await self._commitment_config()
        if resolver is None:
            return make_commitment(label, owner, secret)
        return make_commitment(label, owner, secret, resolver=resolver, addr=owner)

    async def check_commitment(self, label: str, secret: Secret) -> CommitmentStatus:
        account = self._session.require_account()
        commitment = await self.make_commitment(label, account, secret)
        timestamp = await self.rpc.call(self._session.controller("commitments", commitment))
        return CommitmentStatus(commitment=commitment, timestamp=int(timestamp))

    async def commit(self, label: str, secret: Secret) -> TxHandle:
        account = self._session.require_account()
        commitment = await self.make_commitment(label, account, secret)
        return await self.rpc.transact(self._session.controller("commit", commitment), account)

    async def register(self, label: str, duration: int, secret: Secret) -> TxHandle:
        label = _controller_label(label)
        duration = _check_duration(duration)
        account = self._session.require_account()
        secret_bytes = to_secret(secret)

        price, resolver = await asyncio.gather(
            self.get_rent_price(label, duration),
            self._commitment_config(),
        )
        value = buffered_price(price)
        if resolver is None:
            call = self._session.controller("register", label, account, duration, secret_bytes, value=value)
        else:
            call = self._session.controller(
                "registerWithConfig", label, account, duration, secret_bytes, resolver, account, value=value
            )
        return await self._submit(call, account)

    # --- renewals ---

    async def renew(self, label: str, duration: int) -> TxHandle:
        label = _controller_label(label)
        duration = _check_duration(duration)
        account = self._session.require_account()
        price = await self.get_rent_price(label, duration)
        call = self._session.controller("renew", label, duration, value=buffered_price(price))
        return await self._submit(call, account)

    async def renew_all(self, labels: Iterable[str], duration: int) -> TxHandle:
        labels = [_controller_label(label) for label in labels]
        if not labels:
            raise InputError("At least one label is required for a bulk renewal")
        duration = _check_duration(duration)
        account = self._session.require_account()
        total = await self.get_rent_prices(labels, duration)
        call = self._session.bulk_renewal("renewAll", labels, duration, value=buffered_price(total))
        return await self._submit(call, account)

    async def _submit(self, call: ContractCall, account: str) -> TxHandle:
        gas_limit = await estimate_gas_limit(lambda: self.rpc.estimate_gas(call, account))
        return await self.rpc.transact(call, account, gas_limit=gas_limit)

    # --- ownership ---

    async def transfer_owner(self, name: str, to: str) -> TxResult:
        """Move the registration NFT of `name` to `to`."""
        account = self._session.require_account()
        to = checksum_address(to, "to")
        token_id = label_token_id(split_name(name)[0])
        call = self._session.base_registrar("safeTransferFrom", account, to, token_id)
        return await self._ownership_tx(call, account)

    async def reclaim(self, name: str, address: str) -> TxResult:
        """Set the registry owner of `name` to `address` (caller must hold the NFT)."""
        account = self._session.require_account()
        address = checksum_address(address, "address")
        token_id = label_token_id(split_name(name)[0])
        call = self._session.base_registrar("reclaim", token_id, address)
        return await self._ownership_tx(call, account)

    async def _ownership_tx(self, call: ContractCall, account: str) -> TxResult:
        try:
            gas_limit = None
            if await self.rpc.chain_id() > PRIVATE_NETWORK_CHAIN_ID:
                # private networks under-estimate; double it
                gas_limit = await self.rpc.estimate_gas(call, account) * 2
            tx = await self.rpc.transact(call, account, gas_limit=gas_limit)
        except RemoteCallError as e:
            logger.error("Error calling %s: %s", call.describe(), e.message)
            return TxResult.failure(e.message)
        return TxResult.success(tx)

    # --- test registrar ---

    async def _test_registrar(self) -> str:
        address = await self.rpc.call(self._session.registry("owner", namehash("test")))
        if is_empty_address(address):
            raise RemoteCallError("No test registrar owns the 'test' TLD on this network")
        return address

    async def register_test_domain(self, label: str) -> TxHandle:
        account = self._session.require_account()
        address = await self._test_registrar()
        call = ContractCall(TEST_REGISTRAR, address, "register", (labelhash(label), account))
        return await self.rpc.transact(call, account)

    async def expiry_times(self, label: str) -> Optional[datetime]:
        address = await self._test_registrar()
        result = await self.rpc.call(ContractCall(TEST_REGISTRAR, address, "expiryTimes", (labelhash(label),)))
        if int(result) > 0:
            return from_timestamp(int(result))
        return None

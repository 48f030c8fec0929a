"""
Registry RPC collaborator.

RegistryRPC is the only way the client talks to a chain. Web3RegistryRPC is
the production backend (AsyncWeb3 over HTTP); tests plug in an in-memory one.
Every backend failure surfaces as RemoteCallError carrying the node's message.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

import aiohttp
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import MismatchedABI, Web3Exception, Web3ValidationError

from tnsclient.contracts import ABIS, ContractCall
from tnsclient.errors import InputError, RemoteCallError
from tnsclient.schema import Block, TxHandle

logger = logging.getLogger(__name__)

BlockId = Union[str, int]

# What web3 and its aiohttp transport raise for reverts, node errors and dropped connections
_BACKEND_ERRORS = (Web3Exception, ValueError, OSError, asyncio.TimeoutError, aiohttp.ClientError)
# Arguments that do not fit the ABI
_ARGUMENT_ERRORS = (Web3ValidationError, MismatchedABI, TypeError)


class RegistryRPC(ABC):
    """Reads, simulations and submissions against deployed registry contracts."""

    @abstractmethod
    async def call(self, call: ContractCall, block: BlockId = "latest") -> Any:
        """Run a read-only call and return the decoded result."""

    @abstractmethod
    async def estimate_gas(self, call: ContractCall, sender: Optional[str] = None) -> int:
        """Simulate a state-changing call and return the gas it would use."""

    @abstractmethod
    async def transact(self, call: ContractCall, sender: str, gas_limit: Optional[int] = None) -> TxHandle:
        """Submit a state-changing call. gas_limit=None leaves estimation to the node."""

    @abstractmethod
    async def get_block(self, block: BlockId = "latest") -> Block:
        ...

    @abstractmethod
    async def chain_id(self) -> int:
        ...


class Web3RegistryRPC(RegistryRPC):
    """
    RegistryRPC over AsyncWeb3.

    With an account, transactions are built, signed locally and sent raw.
    Without one, they are sent with eth_sendTransaction and the node signs.
    """

    def __init__(self, w3: AsyncWeb3, account: Optional[LocalAccount] = None):
        self._w3 = w3
        self._account = account

    @classmethod
    def from_url(cls, rpc_url: str, private_key: Optional[str] = None) -> "Web3RegistryRPC":
        w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        account = None
        if private_key:
            pk = private_key.strip()
            if pk.startswith("0x"):
                pk = pk[2:]
            try:
                account = Account.from_key(pk)
            except (ValueError, TypeError) as e:
                raise InputError(f"Invalid private key: {e}") from None
        return cls(w3, account=account)

    @property
    def account(self) -> Optional[LocalAccount]:
        return self._account

    def _function(self, call: ContractCall):
        if call.contract not in ABIS:
            raise InputError(f"Unknown contract kind: {call.contract}")
        try:
            contract = self._w3.eth.contract(address=Web3.to_checksum_address(call.address), abi=ABIS[call.contract])
            return getattr(contract.functions, call.function)(*call.args)
        except _ARGUMENT_ERRORS + (ValueError, AttributeError) as e:
            raise self._bad_arguments(call, e) from e

    def _bad_arguments(self, call: ContractCall, exc: Exception) -> InputError:
        return InputError(
            f"Bad arguments for {call.describe()}: {exc}",
            details={"contract": call.contract, "address": call.address},
        )

    def _wrap(self, call: ContractCall, exc: Exception) -> RemoteCallError:
        logger.debug("%s at %s failed: %s", call.describe(), call.address, exc)
        return RemoteCallError(
            str(exc),
            contract=call.contract,
            function=call.function,
            details={"address": call.address},
        )

    async def call(self, call: ContractCall, block: BlockId = "latest") -> Any:
        fn = self._function(call)
        try:
            return await fn.call(block_identifier=block)
        except _ARGUMENT_ERRORS as e:
            raise self._bad_arguments(call, e) from e
        except _BACKEND_ERRORS as e:
            raise self._wrap(call, e) from e

    async def estimate_gas(self, call: ContractCall, sender: Optional[str] = None) -> int:
        fn = self._function(call)
        params = {"value": call.value}
        if sender:
            params["from"] = sender
        try:
            return int(await fn.estimate_gas(params))
        except _ARGUMENT_ERRORS as e:
            raise self._bad_arguments(call, e) from e
        except _BACKEND_ERRORS as e:
            raise self._wrap(call, e) from e

    async def transact(self, call: ContractCall, sender: str, gas_limit: Optional[int] = None) -> TxHandle:
        fn = self._function(call)
        params = {"from": sender, "value": call.value}
        if gas_limit:
            params["gas"] = gas_limit
        try:
            if self._account is not None:
                params["nonce"] = await self._w3.eth.get_transaction_count(sender)
                params["chainId"] = await self._w3.eth.chain_id
                tx = await fn.build_transaction(params)
                signed = self._account.sign_transaction(tx)
                tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = await fn.transact(params)
        except _ARGUMENT_ERRORS as e:
            raise self._bad_arguments(call, e) from e
        except _BACKEND_ERRORS as e:
            raise self._wrap(call, e) from e

        handle = TxHandle(
            hash=Web3.to_hex(tx_hash),
            contract=call.contract,
            function=call.function,
            sender=sender,
            value=call.value,
            gas_limit=gas_limit,
        )
        logger.info("Sent %s: %s", call.describe(), handle.hash)
        return handle

    async def get_block(self, block: BlockId = "latest") -> Block:
        try:
            data = await self._w3.eth.get_block(block)
        except _BACKEND_ERRORS as e:
            raise RemoteCallError(f"Could not fetch block {block}: {e}") from e
        return Block(number=data["number"], timestamp=data["timestamp"])

    async def chain_id(self) -> int:
        try:
            return int(await self._w3.eth.chain_id)
        except _BACKEND_ERRORS as e:
            raise RemoteCallError(f"Could not fetch chain id: {e}") from e

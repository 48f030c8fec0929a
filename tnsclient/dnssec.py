"""
DNS name claims backed by DNSSEC proofs.

A DNS registrar owns a DNS TLD on chain and lets whoever controls
`_ens.<name>` TXT records claim `<name>`. The proof chain comes from a DNSSEC
prover (an injected collaborator bound to the registrar's oracle); this module
classifies what the prover found and turns it into the claim transaction.

Two registrar protocols exist: the old one takes the proof records as one
flat byte string, the current one takes a list of (rrset, sig) tuples.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

from web3 import Web3

from tnsclient.config import checksum_address, is_empty_address
from tnsclient.contracts import DNS_REGISTRAR, DNS_REGISTRAR_OLD, ContractCall, interface_id
from tnsclient.errors import DnsLookupError, InputError, ProtocolMismatchError, RemoteCallError, TnsError
from tnsclient.registrar import Registrar
from tnsclient.schema import ClaimState, DnsClaim, DnsEntry, DnsRegistrarSupport, TxHandle
from tnsclient.session import Session

logger = logging.getLogger(__name__)

# Intermediate records returned when no _ens TXT record could be proven
RESULTS_DNS_ENTRY_MISSING = 4
RESULTS_SUBDOMAIN_MISSING = 6


class DnsProver(ABC):
    """Looks up `_ens.<name>` through a DNSSEC oracle and returns the claim material."""

    @abstractmethod
    async def lookup(self, name: str) -> DnsClaim:
        """Raise DnsLookupError when DNS cannot be queried."""


# (oracle address, speaks old protocol) -> prover
ProverFactory = Callable[[str, bool], DnsProver]


def _registrar_kind(support: DnsRegistrarSupport) -> str:
    return DNS_REGISTRAR_OLD if support.is_old else DNS_REGISTRAR


def _is_zero(value: str) -> bool:
    try:
        return int(value, 16) == 0
    except ValueError:
        return False


def classify_claim(claim: DnsClaim, expected_owner: Optional[str] = None) -> ClaimState:
    """
    Map a successful lookup to a ClaimState.

    Raises ProtocolMismatchError when the proof chain has a record count
    other than the two known shapes.
    """
    if claim.is_found:
        owner = claim.owner
        if not owner or _is_zero(owner):
            return ClaimState.EMPTY_RECORD
        if not Web3.is_address(owner):
            return ClaimState.INVALID_RECORD
        if not expected_owner or owner.lower() == expected_owner.lower():
            return ClaimState.READY_TO_REGISTER
        return ClaimState.OUT_OF_SYNC

    if not claim.nsec:
        return ClaimState.DNSSEC_DISABLED

    count = len(claim.result.results)
    if count == RESULTS_DNS_ENTRY_MISSING:
        return ClaimState.DNS_ENTRY_MISSING
    if count == RESULTS_SUBDOMAIN_MISSING:
        return ClaimState.SUBDOMAIN_MISSING
    raise ProtocolMismatchError(
        f"DNSSEC results cannot be {count}",
        details={"count": count, "expected": [RESULTS_DNS_ENTRY_MISSING, RESULTS_SUBDOMAIN_MISSING]},
    )


def build_proof_submission(
    claim: DnsClaim,
    support: DnsRegistrarSupport,
    submitter: Optional[str] = None,
    resolver: Optional[str] = None,
) -> ContractCall:
    """
    The registrar call that claims `claim.encoded_name`.

    Nothing left to prove: a bare claim. Otherwise proveAndClaim, or, on the
    current protocol when the submitter is the proven owner and a resolver is
    configured, proveAndClaimWithResolver so the name resolves immediately.
    """
    kind = _registrar_kind(support)
    proof_data = claim.proof_data
    if support.is_old:
        data = proof_data.data
    else:
        data = [rrset.as_tuple() for rrset in proof_data.rrsets]

    if len(data) == 0:
        return ContractCall(kind, support.address, "claim", (claim.encoded_name, proof_data.proof))

    owner_submits = bool(
        claim.owner and submitter and Web3.is_address(claim.owner) and claim.owner.lower() == submitter.lower()
    )
    if not support.is_old and owner_submits and not is_empty_address(resolver):
        return ContractCall(
            kind,
            support.address,
            "proveAndClaimWithResolver",
            (claim.encoded_name, data, proof_data.proof, checksum_address(resolver, "resolver"), checksum_address(claim.owner, "owner")),
        )
    return ContractCall(kind, support.address, "proveAndClaim", (claim.encoded_name, data, proof_data.proof))


class DnsClaimValidator:
    """Reads DNS claim state for a name and submits DNSSEC proofs."""

    def __init__(self, session: Session, prover_factory: ProverFactory, registrar: Optional[Registrar] = None):
        self._session = session
        self._prover_factory = prover_factory
        self._registrar = registrar or Registrar(session)

    async def _supports(self, address: str, interface: str) -> bool:
        call = ContractCall(DNS_REGISTRAR, address, "supportsInterface", (interface_id(interface),))
        try:
            return bool(await self._session.rpc.call(call))
        except RemoteCallError as e:
            logger.debug("supportsInterface(%s) probe on %s failed: %s", interface, address, e.message)
            return False

    async def probe_support(self, parent_owner: str) -> DnsRegistrarSupport:
        """Which claim protocols the registrar at `parent_owner` speaks; a failed probe means no."""
        address = checksum_address(parent_owner, "parent_owner")
        old, new = await asyncio.gather(
            self._supports(address, "dnssecClaimOld"),
            self._supports(address, "dnssecClaimNew"),
        )
        return DnsRegistrarSupport(address=address, old=old, new=new)

    async def is_dns_registrar(self, parent_owner: str) -> bool:
        return (await self.probe_support(parent_owner)).supported

    async def select_dns_registrar(self, parent_owner: str) -> Tuple[str, DnsRegistrarSupport]:
        """Contract kind to talk to the registrar with, and the probe it was chosen from."""
        support = await self.probe_support(parent_owner)
        return _registrar_kind(support), support

    async def _lookup(self, name: str, parent_owner: str, owner: Optional[str]) -> Tuple[DnsEntry, DnsRegistrarSupport]:
        kind, support = await self.select_dns_registrar(parent_owner)
        if not support.supported:
            raise InputError(f"{support.address} is not a DNS registrar")
        oracle = await self._session.rpc.call(ContractCall(kind, support.address, "oracle"))
        prover = self._prover_factory(oracle, support.is_old)
        try:
            claim = await prover.lookup(name)
        except Exception as e:
            message = e.message if isinstance(e, TnsError) else str(e) or type(e).__name__
            logger.warning("Problem fetching data from DNS for %s: %s", name, message)
            return DnsEntry(state=ClaimState.LOOKUP_ERROR, state_error=message), support

        state = classify_claim(claim, owner)
        entry = DnsEntry(state=state, claim=claim, dns_owner=claim.owner if claim.is_found else None)
        return entry, support

    async def get_dns_entry(self, name: str, parent_owner: str, owner: Optional[str] = None) -> DnsEntry:
        """
        Fresh claim state for `name` (never cached: DNS can change at any time).

        `owner` is the address the caller expects the TXT record to name.
        """
        entry, _ = await self._lookup(name, parent_owner, owner)
        return entry

    async def evaluate_claim(self, name: str, parent_owner: str, claimed_owner: Optional[str] = None) -> ClaimState:
        return (await self.get_dns_entry(name, parent_owner, claimed_owner)).state

    async def submit_proof(self, name: str, parent_owner: str) -> TxHandle:
        account = self._session.require_account()
        entry, support = await self._lookup(name, parent_owner, None)
        if entry.claim is None:
            raise DnsLookupError(entry.state_error or f"No DNS claim could be built for {name}")

        resolver = None
        if not support.is_old:
            resolver = await self._registrar.get_address(self._session.reserved_resolver_name)
        call = build_proof_submission(entry.claim, support, submitter=account, resolver=resolver)
        return await self._session.rpc.transact(call, account)

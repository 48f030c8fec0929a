"""
Tests for DNS claim classification, registrar protocol probing and proof submission.
"""

import asyncio
from typing import List, Optional, Tuple

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tnsclient.config import EMPTY_ADDRESS
from tnsclient.contracts import DNS_REGISTRAR, DNS_REGISTRAR_OLD, interface_id
from tnsclient.dnssec import DnsClaimValidator, DnsProver, build_proof_submission, classify_claim
from tnsclient.errors import DnsLookupError, InputError, ProtocolMismatchError
from tnsclient.schema import (
    ClaimState,
    DnsClaim,
    DnsLookupResult,
    DnsRegistrarSupport,
    ProofData,
    RRSetWithSignature,
)

from fakes import ALICE, BOB, DNS_REGISTRAR_ADDRESS, ORACLE_ADDRESS, RESOLVER_ADDRESS, FakeRegistry, make_session

ENCODED_NAME = b"\x07example\x03com\x00"
RRSETS = [RRSetWithSignature(rrset=b"rrset-1", sig=b"sig-1"), RRSetWithSignature(rrset=b"rrset-2", sig=b"sig-2")]


def _found(owner: Optional[str]) -> DnsClaim:
    return DnsClaim(
        is_found=True,
        owner=owner,
        encoded_name=ENCODED_NAME,
        nsec=True,
        result=DnsLookupResult(found=True, results=[object()] * 3),
        proof_data=ProofData(data=b"flat-proof-records", rrsets=RRSETS, proof=b"proof"),
    )


def _missing(nsec: bool, count: int = 0) -> DnsClaim:
    return DnsClaim(
        is_found=False,
        encoded_name=ENCODED_NAME,
        nsec=nsec,
        result=DnsLookupResult(found=False, results=[object()] * count),
    )


class StaticProver(DnsProver):
    def __init__(self, claim: Optional[DnsClaim] = None, error: Optional[Exception] = None):
        self.claim = claim
        self.error = error
        self.names: List[str] = []

    async def lookup(self, name: str) -> DnsClaim:
        self.names.append(name)
        if self.error is not None:
            raise self.error
        return self.claim


class RecordingFactory:
    def __init__(self, prover: DnsProver):
        self.prover = prover
        self.built: List[Tuple[str, bool]] = []

    def __call__(self, oracle: str, is_old: bool) -> DnsProver:
        self.built.append((oracle, is_old))
        return self.prover


def _dns_fake(*interfaces: str) -> FakeRegistry:
    fake = FakeRegistry()
    fake.dns_interfaces[DNS_REGISTRAR_ADDRESS] = {interface_id(name) for name in interfaces}
    return fake


class TestClassifyClaim:
    @pytest.mark.parametrize(
        "claim, expected_owner, state",
        [
            (_found(ALICE), None, ClaimState.READY_TO_REGISTER),
            (_found(ALICE), ALICE.lower(), ClaimState.READY_TO_REGISTER),
            (_found(ALICE), BOB, ClaimState.OUT_OF_SYNC),
            (_found(None), None, ClaimState.EMPTY_RECORD),
            (_found(""), None, ClaimState.EMPTY_RECORD),
            (_found(EMPTY_ADDRESS), None, ClaimState.EMPTY_RECORD),
            (_found("0x0"), None, ClaimState.EMPTY_RECORD),
            (_found("not-an-address"), None, ClaimState.INVALID_RECORD),
            (_found("0x1234"), None, ClaimState.INVALID_RECORD),
            (_missing(nsec=False), None, ClaimState.DNSSEC_DISABLED),
            (_missing(nsec=True, count=4), None, ClaimState.DNS_ENTRY_MISSING),
            (_missing(nsec=True, count=6), None, ClaimState.SUBDOMAIN_MISSING),
        ],
    )
    def test_decision_table(self, claim: DnsClaim, expected_owner: Optional[str], state: ClaimState) -> None:
        assert classify_claim(claim, expected_owner) == state

    @given(count=st.integers(min_value=0, max_value=20).filter(lambda n: n not in (4, 6)))
    @settings(max_examples=30)
    def test_unknown_record_count_fails_loudly(self, count: int) -> None:
        with pytest.raises(ProtocolMismatchError):
            classify_claim(_missing(nsec=True, count=count))


class TestProbeSupport:
    @pytest.mark.parametrize(
        "interfaces, supported, is_old",
        [
            ((), False, False),
            (("dnssecClaimOld",), True, True),
            (("dnssecClaimNew",), True, False),
            (("dnssecClaimOld", "dnssecClaimNew"), True, False),
        ],
    )
    def test_protocol_selection(self, interfaces, supported: bool, is_old: bool) -> None:
        fake = _dns_fake(*interfaces)

        async def run():
            session = await make_session(fake)
            return await DnsClaimValidator(session, RecordingFactory(StaticProver())).probe_support(DNS_REGISTRAR_ADDRESS)

        support = asyncio.run(run())
        assert support.supported is supported
        assert support.is_old is is_old

    def test_select_old_registrar(self) -> None:
        fake = _dns_fake("dnssecClaimOld")

        async def run():
            session = await make_session(fake)
            return await DnsClaimValidator(session, RecordingFactory(StaticProver())).select_dns_registrar(
                DNS_REGISTRAR_ADDRESS
            )

        kind, support = asyncio.run(run())
        assert kind == DNS_REGISTRAR_OLD
        assert support.address == DNS_REGISTRAR_ADDRESS

    def test_failed_probe_counts_as_unsupported(self) -> None:
        fake = _dns_fake("dnssecClaimOld", "dnssecClaimNew")
        fake.call_failures[(DNS_REGISTRAR, "supportsInterface")] = "execution reverted"

        async def run():
            session = await make_session(fake)
            return await DnsClaimValidator(session, RecordingFactory(StaticProver())).is_dns_registrar(DNS_REGISTRAR_ADDRESS)

        assert asyncio.run(run()) is False

    def test_bad_parent_owner_rejected(self) -> None:
        async def run():
            session = await make_session(FakeRegistry())
            await DnsClaimValidator(session, RecordingFactory(StaticProver())).probe_support("example.com")

        with pytest.raises(InputError):
            asyncio.run(run())


class TestGetDnsEntry:
    def _entry(self, fake: FakeRegistry, factory: RecordingFactory, owner: Optional[str] = None):
        async def run():
            session = await make_session(fake)
            return await DnsClaimValidator(session, factory).get_dns_entry("example.com", DNS_REGISTRAR_ADDRESS, owner)

        return asyncio.run(run())

    def test_ready_to_register(self) -> None:
        factory = RecordingFactory(StaticProver(_found(ALICE)))
        entry = self._entry(_dns_fake("dnssecClaimNew"), factory, owner=ALICE)
        assert entry.state == ClaimState.READY_TO_REGISTER
        assert entry.dns_owner == ALICE
        assert factory.built == [(ORACLE_ADDRESS, False)]

    def test_old_protocol_prover(self) -> None:
        factory = RecordingFactory(StaticProver(_missing(nsec=True, count=4)))
        entry = self._entry(_dns_fake("dnssecClaimOld"), factory)
        assert entry.state == ClaimState.DNS_ENTRY_MISSING
        assert entry.dns_owner is None
        assert factory.built == [(ORACLE_ADDRESS, True)]

    def test_lookup_failure_becomes_state(self) -> None:
        factory = RecordingFactory(StaticProver(error=DnsLookupError("SERVFAIL from resolver")))
        entry = self._entry(_dns_fake("dnssecClaimNew"), factory)
        assert entry.state == ClaimState.LOOKUP_ERROR
        assert entry.state_error == "SERVFAIL from resolver"
        assert entry.claim is None

    @pytest.mark.parametrize(
        "error, message",
        [
            (asyncio.TimeoutError("dns timeout"), "dns timeout"),
            (ConnectionResetError(), "ConnectionResetError"),
        ],
    )
    def test_any_prover_failure_becomes_state(self, error: Exception, message: str) -> None:
        entry = self._entry(_dns_fake("dnssecClaimNew"), RecordingFactory(StaticProver(error=error)))
        assert entry.state == ClaimState.LOOKUP_ERROR
        assert entry.state_error == message

    def test_not_a_dns_registrar(self) -> None:
        fake = _dns_fake()
        factory = RecordingFactory(StaticProver(_found(ALICE)))
        with pytest.raises(InputError, match="is not a DNS registrar"):
            self._entry(fake, factory)
        assert factory.built == []
        assert not [c for c in fake.calls if c.function == "oracle"]

    def test_protocol_mismatch_propagates(self) -> None:
        factory = RecordingFactory(StaticProver(_missing(nsec=True, count=5)))
        with pytest.raises(ProtocolMismatchError):
            self._entry(_dns_fake("dnssecClaimNew"), factory)

    def test_every_call_asks_dns_again(self) -> None:
        prover = StaticProver(_found(ALICE))
        fake = _dns_fake("dnssecClaimNew")

        async def run():
            session = await make_session(fake)
            validator = DnsClaimValidator(session, RecordingFactory(prover))
            await validator.get_dns_entry("example.com", DNS_REGISTRAR_ADDRESS)
            return await validator.evaluate_claim("example.com", DNS_REGISTRAR_ADDRESS, BOB)

        assert asyncio.run(run()) == ClaimState.OUT_OF_SYNC
        assert prover.names == ["example.com", "example.com"]


class TestBuildProofSubmission:
    NEW = DnsRegistrarSupport(address=DNS_REGISTRAR_ADDRESS, new=True)
    OLD = DnsRegistrarSupport(address=DNS_REGISTRAR_ADDRESS, old=True)

    def test_nothing_to_prove_claims_directly(self) -> None:
        claim = _found(ALICE)
        claim.proof_data = ProofData(proof=b"proof")
        call = build_proof_submission(claim, self.NEW, submitter=ALICE, resolver=RESOLVER_ADDRESS)
        assert call.function == "claim"
        assert call.args == (ENCODED_NAME, b"proof")

    def test_owner_submits_with_resolver(self) -> None:
        call = build_proof_submission(_found(ALICE), self.NEW, submitter=ALICE.lower(), resolver=RESOLVER_ADDRESS)
        assert call.contract == DNS_REGISTRAR
        assert call.function == "proveAndClaimWithResolver"
        assert call.args == (ENCODED_NAME, [(b"rrset-1", b"sig-1"), (b"rrset-2", b"sig-2")], b"proof", RESOLVER_ADDRESS, ALICE)

    def test_other_submitter_plain_prove(self) -> None:
        call = build_proof_submission(_found(ALICE), self.NEW, submitter=BOB, resolver=RESOLVER_ADDRESS)
        assert call.function == "proveAndClaim"
        assert len(call.args) == 3

    def test_no_resolver_plain_prove(self) -> None:
        call = build_proof_submission(_found(ALICE), self.NEW, submitter=ALICE, resolver=EMPTY_ADDRESS)
        assert call.function == "proveAndClaim"

    def test_old_protocol_sends_flat_bytes(self) -> None:
        call = build_proof_submission(_found(ALICE), self.OLD, submitter=ALICE, resolver=RESOLVER_ADDRESS)
        assert call.contract == DNS_REGISTRAR_OLD
        assert call.function == "proveAndClaim"
        assert call.args == (ENCODED_NAME, b"flat-proof-records", b"proof")


class TestSubmitProof:
    def test_submits_with_resolver_for_owner(self) -> None:
        fake = _dns_fake("dnssecClaimNew")
        fake.set_address("resolver.tomo", RESOLVER_ADDRESS)

        async def run():
            session = await make_session(fake)
            validator = DnsClaimValidator(session, RecordingFactory(StaticProver(_found(ALICE))))
            return await validator.submit_proof("example.com", DNS_REGISTRAR_ADDRESS)

        tx = asyncio.run(run())
        assert tx.function == "proveAndClaimWithResolver"
        assert fake.sent[-1].call.args[3] == RESOLVER_ADDRESS

    def test_lookup_failure_raises(self) -> None:
        fake = _dns_fake("dnssecClaimNew")
        factory = RecordingFactory(StaticProver(error=DnsLookupError("timeout")))

        async def run():
            session = await make_session(fake)
            await DnsClaimValidator(session, factory).submit_proof("example.com", DNS_REGISTRAR_ADDRESS)

        with pytest.raises(DnsLookupError):
            asyncio.run(run())
        assert fake.sent == []

    def test_not_a_dns_registrar_sends_nothing(self) -> None:
        fake = _dns_fake()

        async def run():
            session = await make_session(fake)
            await DnsClaimValidator(session, RecordingFactory(StaticProver(_found(ALICE)))).submit_proof(
                "example.com", DNS_REGISTRAR_ADDRESS
            )

        with pytest.raises(InputError):
            asyncio.run(run())
        assert fake.sent == []

    def test_read_only_session_rejected(self) -> None:
        fake = _dns_fake("dnssecClaimNew")

        async def run():
            session = await make_session(fake, account=None)
            await DnsClaimValidator(session, RecordingFactory(StaticProver(_found(ALICE)))).submit_proof(
                "example.com", DNS_REGISTRAR_ADDRESS
            )

        with pytest.raises(InputError):
            asyncio.run(run())

"""
DNSSEC prover over dnspython.

Asks a validating resolver for `_ens.<name>` TXT with the DO bit set and
collects the signed chain from the root down to the zone that answered:
root DNSKEY, then DS and DNSKEY for every zone below it, then the TXT answer
or the NSEC/NSEC3 record denying it.

Each chain element is an (rrset, sig) pair. `rrset` is the RRSIG rdata
without its signature followed by the covered records in canonical wire
form; `sig` is the signature. The root DNSKEY set is the oracle's trust
anchor and goes out as the proof; everything after it is what gets proven.
"""

import asyncio
import logging
import struct
from typing import Awaitable, Callable, List, Optional

import dns.asyncquery
import dns.exception
import dns.message
import dns.name
import dns.rcode
import dns.rdatatype
import dns.rrset

from tnsclient.dnssec import DnsProver, ProverFactory
from tnsclient.errors import DnsLookupError, InputError
from tnsclient.schema import DnsClaim, DnsLookupResult, ProofData, RRSetWithSignature

logger = logging.getLogger(__name__)

ENS_LABEL = "_ens"
OWNER_PREFIX = "a="
DENIAL_TYPES = (dns.rdatatype.NSEC, dns.rdatatype.NSEC3)
EDNS_PAYLOAD = 4096
DEFAULT_TIMEOUT = 5.0

# Sends one query and returns the resolver's response
Transport = Callable[[dns.message.Message], Awaitable[dns.message.Message]]


def find_rrset(section: List[dns.rrset.RRset], name: dns.name.Name, rdtype: int) -> Optional[dns.rrset.RRset]:
    for rrset in section:
        if rrset.name == name and rrset.rdtype == rdtype:
            return rrset
    return None


def find_signature(section: List[dns.rrset.RRset], rrset: dns.rrset.RRset):
    """The RRSIG in `section` covering `rrset`, or None when it is unsigned."""
    for candidate in section:
        if candidate.rdtype != dns.rdatatype.RRSIG or candidate.name != rrset.name:
            continue
        for rrsig in candidate:
            if rrsig.type_covered == rrset.rdtype:
                return rrsig
    return None


def signed_rrset(rrset: dns.rrset.RRset, rrsig) -> RRSetWithSignature:
    header = struct.pack(
        "!HBBIIIH",
        rrsig.type_covered,
        rrsig.algorithm,
        rrsig.labels,
        rrsig.original_ttl,
        rrsig.expiration,
        rrsig.inception,
        rrsig.key_tag,
    )
    owner = rrset.name.to_digestable()
    fixed = struct.pack("!HHI", rrset.rdtype, rrset.rdclass, rrsig.original_ttl)
    records = b"".join(
        owner + fixed + struct.pack("!H", len(rdata)) + rdata
        for rdata in sorted(r.to_digestable() for r in rrset)
    )
    return RRSetWithSignature(rrset=header + rrsig.signer.to_digestable() + records, sig=rrsig.signature)


def flatten(rrsets: List[RRSetWithSignature]) -> bytes:
    """Old-protocol proof input: length-prefixed rrset and sig, one pair after another."""
    return b"".join(
        struct.pack("!H", len(item.rrset)) + item.rrset + struct.pack("!H", len(item.sig)) + item.sig
        for item in rrsets
    )


def proof_data(results: List[RRSetWithSignature]) -> ProofData:
    anchor, rest = results[0], results[1:]
    return ProofData(data=flatten(rest), rrsets=rest, proof=anchor.rrset)


def txt_owner(rrset: dns.rrset.RRset) -> Optional[str]:
    for rdata in rrset:
        text = b"".join(rdata.strings).decode("utf-8", "replace")
        if text.startswith(OWNER_PREFIX):
            return text[len(OWNER_PREFIX):]
    return None


def zones_from_root(zone: dns.name.Name) -> List[dns.name.Name]:
    zones = [zone]
    while zone != dns.name.root:
        zone = zone.parent()
        zones.append(zone)
    zones.reverse()
    return zones


class DnsPythonProver(DnsProver):
    """
    DnsProver asking one resolver over UDP (TCP when truncated).

    `transport` replaces the network round trip; tests feed canned responses
    through it.
    """

    def __init__(
        self,
        nameserver: str,
        oracle: Optional[str] = None,
        is_old: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[Transport] = None,
    ):
        self.nameserver = nameserver
        self.oracle = oracle
        self.is_old = is_old
        self.timeout = timeout
        self._transport = transport or self._udp_with_fallback

    async def _udp_with_fallback(self, request: dns.message.Message) -> dns.message.Message:
        response, _ = await dns.asyncquery.udp_with_fallback(request, self.nameserver, timeout=self.timeout)
        return response

    async def _query(self, qname: dns.name.Name, rdtype: int) -> dns.message.Message:
        request = dns.message.make_query(qname, rdtype, want_dnssec=True, payload=EDNS_PAYLOAD)
        question = f"{qname} {dns.rdatatype.to_text(rdtype)}"
        try:
            response = await self._transport(request)
        except (dns.exception.DNSException, OSError, asyncio.TimeoutError) as e:
            raise DnsLookupError(
                f"DNS query {question} failed: {str(e) or type(e).__name__}",
                details={"nameserver": self.nameserver},
            ) from e

        rcode = response.rcode()
        if rcode not in (dns.rcode.NOERROR, dns.rcode.NXDOMAIN):
            raise DnsLookupError(
                f"{dns.rcode.to_text(rcode)} for {question}",
                details={"nameserver": self.nameserver, "rcode": dns.rcode.to_text(rcode)},
            )
        return response

    async def _signed(self, qname: dns.name.Name, rdtype: int) -> RRSetWithSignature:
        response = await self._query(qname, rdtype)
        rrset = find_rrset(response.answer, qname, rdtype)
        rrsig = find_signature(response.answer, rrset) if rrset is not None else None
        if rrsig is None:
            raise DnsLookupError(f"No signed {dns.rdatatype.to_text(rdtype)} records for {qname}")
        return signed_rrset(rrset, rrsig)

    async def chain(self, zone: dns.name.Name) -> List[RRSetWithSignature]:
        """Root DNSKEY, then DS and DNSKEY for each zone down to `zone`."""
        queries = [self._signed(dns.name.root, dns.rdatatype.DNSKEY)]
        for child in zones_from_root(zone)[1:]:
            queries.append(self._signed(child, dns.rdatatype.DS))
            queries.append(self._signed(child, dns.rdatatype.DNSKEY))
        return list(await asyncio.gather(*queries))

    async def _proven(self, rrset: dns.rrset.RRset, rrsig) -> List[RRSetWithSignature]:
        return await self.chain(rrsig.signer) + [signed_rrset(rrset, rrsig)]

    async def lookup(self, name: str) -> DnsClaim:
        if not name or not name.strip("."):
            raise InputError("DNS name must not be empty")
        try:
            domain = dns.name.from_text(name)
            qname = dns.name.from_text(ENS_LABEL, origin=domain)
        except dns.exception.DNSException as e:
            raise InputError(f"Not a DNS name: {name!r} ({e})") from None

        logger.debug("Looking up %s TXT via %s", qname, self.nameserver)
        response = await self._query(qname, dns.rdatatype.TXT)
        return await self.claim_from_response(domain, response)

    async def claim_from_response(self, domain: dns.name.Name, response: dns.message.Message) -> DnsClaim:
        qname = dns.name.from_text(ENS_LABEL, origin=domain)
        encoded_name = domain.to_digestable()

        answer = find_rrset(response.answer, qname, dns.rdatatype.TXT)
        if answer is not None:
            rrsig = find_signature(response.answer, answer)
            if rrsig is None:
                logger.info("%s TXT is not signed", qname)
                return DnsClaim(is_found=False, encoded_name=encoded_name, nsec=False)
            results = await self._proven(answer, rrsig)
            return DnsClaim(
                is_found=True,
                owner=txt_owner(answer),
                encoded_name=encoded_name,
                nsec=True,
                result=DnsLookupResult(found=True, results=results),
                proof_data=proof_data(results),
            )

        for rrset in response.authority:
            if rrset.rdtype not in DENIAL_TYPES:
                continue
            rrsig = find_signature(response.authority, rrset)
            if rrsig is None:
                continue
            results = await self._proven(rrset, rrsig)
            return DnsClaim(
                is_found=False,
                encoded_name=encoded_name,
                nsec=True,
                result=DnsLookupResult(found=False, results=results),
                proof_data=proof_data(results),
            )

        logger.info("No signed answer or denial for %s", qname)
        return DnsClaim(is_found=False, encoded_name=encoded_name, nsec=False)


def prover_factory(nameserver: str, timeout: float = DEFAULT_TIMEOUT) -> ProverFactory:
    def build(oracle: str, is_old: bool) -> DnsProver:
        return DnsPythonProver(nameserver, oracle=oracle, is_old=is_old, timeout=timeout)

    return build

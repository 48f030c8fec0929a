"""
Data shapes returned by the client.

Every read is recomputed per call; nothing here is cached.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def from_timestamp(seconds: int) -> datetime:
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)


class Block(BaseModel):
    number: int
    timestamp: int

    @property
    def date(self) -> datetime:
        return from_timestamp(self.timestamp)


class TxHandle(BaseModel):
    """A submitted (not necessarily mined) transaction."""

    hash: str = Field(..., description="0x-prefixed transaction hash")
    contract: str
    function: str
    sender: Optional[str] = None
    value: int = 0
    gas_limit: Optional[int] = Field(None, description="None when the node was left to estimate gas")


class TxResult(BaseModel):
    """Outcome of an ownership operation: either a handle or the error that stopped it."""

    ok: bool
    tx: Optional[TxHandle] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, tx: TxHandle) -> "TxResult":
        return cls(ok=True, tx=tx)

    @classmethod
    def failure(cls, error: str) -> "TxResult":
        return cls(ok=False, error=error)


class RentQuote(BaseModel):
    price: int
    premium: int


class CommitmentStatus(BaseModel):
    """On-chain timestamp of a commitment; 0 means the commit has not been mined."""

    commitment: bytes
    timestamp: int

    @property
    def is_pending(self) -> bool:
        return self.timestamp == 0

    def matures_at(self, min_age: int) -> Optional[datetime]:
        if self.is_pending:
            return None
        return from_timestamp(self.timestamp + min_age)

    def expires_at(self, max_age: int) -> Optional[datetime]:
        if self.is_pending:
            return None
        return from_timestamp(self.timestamp + max_age)

    def is_mature(self, block_time: int, min_age: int, max_age: int) -> bool:
        """True while the commitment can be revealed: min_age <= age <= max_age."""
        if self.is_pending:
            return False
        age = block_time - self.timestamp
        return min_age <= age <= max_age


class PermanentEntry(BaseModel):
    """Snapshot of a label on the permanent registrar."""

    available: bool
    name_expires: Optional[datetime] = None
    grace_period: timedelta
    owner_of: Optional[str] = None


class RegistrarEntry(BaseModel):
    """Merged registration status of a label."""

    available: Optional[bool] = None
    name_expires: Optional[datetime] = None
    owner_of: Optional[str] = None
    grace_period: Optional[timedelta] = None
    is_new_registrar: bool = False
    grace_period_end_date: Optional[datetime] = None
    registrant: Optional[str] = None
    transfer_end_date: Optional[datetime] = None
    current_block_date: datetime
    error: Optional[str] = Field(None, description="Why the permanent registrar snapshot is missing")


class ClaimState(str, Enum):
    """Where a DNS name stands with respect to being claimable on chain."""

    LOOKUP_ERROR = "lookup_error"
    DNS_ENTRY_MISSING = "dns_entry_missing"
    DNSSEC_DISABLED = "dnssec_disabled"
    SUBDOMAIN_MISSING = "subdomain_missing"
    INVALID_RECORD = "invalid_record"
    READY_TO_REGISTER = "ready_to_register"
    OUT_OF_SYNC = "out_of_sync"
    EMPTY_RECORD = "empty_record"


class RRSetWithSignature(BaseModel):
    """One signed resource-record set as the current DNS registrar expects it."""

    rrset: bytes
    sig: bytes

    def as_tuple(self) -> Tuple[bytes, bytes]:
        return (self.rrset, self.sig)


class ProofData(BaseModel):
    data: bytes = b""
    rrsets: List[RRSetWithSignature] = Field(default_factory=list)
    proof: bytes = b""


class DnsLookupResult(BaseModel):
    """Raw oracle answer: the intermediate records of the proof chain."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    found: bool = False
    results: List[Any] = Field(default_factory=list)


class DnsClaim(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    is_found: bool
    owner: Optional[str] = None
    encoded_name: bytes
    nsec: bool = Field(False, description="True when a DNSSEC proof chain came back")
    result: DnsLookupResult = Field(default_factory=DnsLookupResult)
    proof_data: ProofData = Field(default_factory=ProofData)


class DnsEntry(BaseModel):
    state: ClaimState
    claim: Optional[DnsClaim] = None
    dns_owner: Optional[str] = None
    state_error: Optional[str] = None


class DnsRegistrarSupport(BaseModel):
    """Which DNSSEC claim protocols a DNS registrar advertises."""

    address: str
    old: bool = False
    new: bool = False

    @property
    def supported(self) -> bool:
        return self.old or self.new

    @property
    def is_old(self) -> bool:
        """Speak the legacy protocol only when the current one is not offered."""
        return self.old and not self.new

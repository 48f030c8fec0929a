"""
tnsclient — client for the TNS naming system on TomoChain.

- Hash names and labels the way the registry does
- Read one merged registration status per name (availability, owner, expiry, grace)
- Register names with commit-reveal, renew them one at a time or in bulk
- Transfer and reclaim registrations
- Claim DNS names with DNSSEC proofs

Everything that touches the chain goes through a RegistryRPC (AsyncWeb3 in
production), so a Session can be pointed at any deployment.
"""

__version__ = "0.1.0"

from tnsclient.commitment import generate_secret, make_commitment
from tnsclient.config import Settings, configure_logging
from tnsclient.dnssec import DnsClaimValidator, DnsProver, build_proof_submission, classify_claim
from tnsclient.entry import EntryResolver
from tnsclient.errors import DnsLookupError, InputError, ProtocolMismatchError, RemoteCallError, TnsError
from tnsclient.labelhash import decode_labelhash, encode_labelhash, is_encoded_labelhash, labelhash
from tnsclient.namehash import is_label_valid, namehash, parse_search_term, validate_name
from tnsclient.oracle import PriceOracle
from tnsclient.registrar import Registrar, buffered_price
from tnsclient.rpc import RegistryRPC, Web3RegistryRPC
from tnsclient.schema import ClaimState, CommitmentStatus, DnsEntry, RegistrarEntry, TxHandle, TxResult
from tnsclient.session import Deployment, Session, connect, setup_registrar

__all__ = [
    "__version__",
    "ClaimState",
    "CommitmentStatus",
    "Deployment",
    "DnsClaimValidator",
    "DnsEntry",
    "DnsLookupError",
    "DnsProver",
    "EntryResolver",
    "InputError",
    "PriceOracle",
    "ProtocolMismatchError",
    "Registrar",
    "RegistrarEntry",
    "RegistryRPC",
    "RemoteCallError",
    "Session",
    "Settings",
    "TnsError",
    "TxHandle",
    "TxResult",
    "Web3RegistryRPC",
    "build_proof_submission",
    "buffered_price",
    "classify_claim",
    "configure_logging",
    "connect",
    "decode_labelhash",
    "encode_labelhash",
    "generate_secret",
    "is_encoded_labelhash",
    "is_label_valid",
    "labelhash",
    "make_commitment",
    "namehash",
    "parse_search_term",
    "setup_registrar",
    "validate_name",
]

"""
Tests for result shapes and error payloads.
"""

from tnsclient.errors import DnsLookupError, InputError, RemoteCallError
from tnsclient.schema import CommitmentStatus, DnsRegistrarSupport, from_timestamp

from fakes import DNS_REGISTRAR_ADDRESS


class TestCommitmentStatus:
    def test_pending(self) -> None:
        status = CommitmentStatus(commitment=b"\x01" * 32, timestamp=0)
        assert status.is_pending
        assert status.matures_at(60) is None
        assert not status.is_mature(10_000, 60, 86_400)

    def test_window(self) -> None:
        status = CommitmentStatus(commitment=b"\x01" * 32, timestamp=1_000)
        assert status.matures_at(60) == from_timestamp(1_060)
        assert status.expires_at(86_400) == from_timestamp(87_400)
        assert not status.is_mature(1_059, 60, 86_400)
        assert status.is_mature(1_060, 60, 86_400)
        assert status.is_mature(87_400, 60, 86_400)
        assert not status.is_mature(87_401, 60, 86_400)


class TestDnsRegistrarSupport:
    def test_new_protocol_preferred(self) -> None:
        both = DnsRegistrarSupport(address=DNS_REGISTRAR_ADDRESS, old=True, new=True)
        assert both.supported
        assert not both.is_old

    def test_neither(self) -> None:
        assert not DnsRegistrarSupport(address=DNS_REGISTRAR_ADDRESS).supported


class TestErrors:
    def test_to_dict(self) -> None:
        error = RemoteCallError("execution reverted", contract="controller", function="register", details={"a": 1})
        assert error.to_dict() == {
            "error_type": "RemoteCallError",
            "message": "execution reverted",
            "details": {"a": 1},
        }
        assert error.function == "register"

    def test_hierarchy(self) -> None:
        assert isinstance(InputError("x"), ValueError)
        assert isinstance(DnsLookupError("x"), RemoteCallError)

"""
Error types for the TNS client.

InputError is raised synchronously for bad caller input. RemoteCallError wraps
anything that goes wrong talking to the registry node or the DNSSEC oracle.
ProtocolMismatchError means the DNSSEC oracle answered in a shape we do not know.
"""

from typing import Optional


class TnsError(Exception):
    """Base exception for all TNS client errors."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r})"

    def to_dict(self) -> dict:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InputError(TnsError, ValueError):
    """Malformed name, empty label, bad address or secret."""


class RemoteCallError(TnsError):
    """A registry RPC call (read, simulation or submission) failed."""

    def __init__(
        self,
        message: str,
        contract: Optional[str] = None,
        function: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        self.contract = contract
        self.function = function
        super().__init__(message, details)


class DnsLookupError(RemoteCallError):
    """The DNSSEC oracle could not be queried."""


class ProtocolMismatchError(TnsError):
    """DNSSEC lookup returned a record-set shape we cannot classify."""

"""
Gas limit estimation with a narrow fallback.

Simulating register/renew sometimes reverts only because the simulation ran
out of gas; the node then reports how much it tried. We recover that number
from the message instead of failing the whole operation. Anything else comes
back as None, meaning: submit without an explicit gas limit.
"""

import logging
import re
from typing import Awaitable, Callable, Optional

from tnsclient.config import TRANSFER_GAS_COST
from tnsclient.errors import RemoteCallError

logger = logging.getLogger(__name__)

GAS_HINT_PATTERNS = (
    re.compile(r"supplied gas \(?(\d+)\)?"),
    re.compile(r"gas required exceeds allowance \(?(\d+)\)?"),
)


def parse_gas_hint(message: str) -> Optional[int]:
    """Gas figure embedded in a simulation failure message, or None."""
    for pattern in GAS_HINT_PATTERNS:
        match = pattern.search(message or "")
        if match:
            return int(match.group(1))
    return None


def with_headroom(gas: Optional[int]) -> Optional[int]:
    if gas is None or gas <= 0:
        return None
    return gas + TRANSFER_GAS_COST


async def estimate_gas_limit(estimate: Callable[[], Awaitable[int]]) -> Optional[int]:
    """
    Run a gas simulation and return a limit to submit with.

    Only RemoteCallError is recovered here; input errors and bugs propagate.
    """
    try:
        gas = await estimate()
    except RemoteCallError as e:
        gas = parse_gas_hint(e.message)
        if gas is None:
            logger.warning("Gas estimation failed with no usable hint, leaving it to the node: %s", e.message)
        else:
            logger.debug("Gas estimation reverted; using hinted gas %d", gas)
    return with_headroom(gas)

"""
TNS CLI — look up and register names from the shell.

Commands:
  tns namehash <name>          — Print the node hash of a name
  tns labelhash <label>        — Print the hash of one label
  tns entry <label>            — Registration status of <label>.<tld>
  tns price <label> [years]    — Rent price (and premium) for a duration
  tns ages                     — Commitment min/max ages of the controller
  tns dns-support <address>    — Which DNSSEC claim protocols a DNS registrar speaks
  tns dns <name> <registrar> [owner] — DNSSEC claim state of a DNS name
  tns register <label> [years] — Commit, wait for it to mature, then register
  tns renew <label> [years]    — Renew a name

Settings come from TNS_* env vars; a .env in the working directory is loaded first.
"""
import asyncio
import logging
import sys
from typing import Optional

from pydantic import ValidationError

from tnsclient.commitment import generate_secret
from tnsclient.config import Settings, configure_logging
from tnsclient.dnsprover import prover_factory
from tnsclient.dnssec import DnsClaimValidator
from tnsclient.errors import InputError, TnsError
from tnsclient.labelhash import labelhash_hex
from tnsclient.namehash import namehash_hex
from tnsclient.oracle import PriceOracle
from tnsclient.registrar import Registrar, buffered_price
from tnsclient.session import Session, connect

logger = logging.getLogger(__name__)

SECONDS_PER_YEAR = 365 * 24 * 60 * 60
WEI_PER_TOKEN = 10**18
# Extra block time to wait past the minimum commitment age
MATURITY_MARGIN = 15
COMMIT_POLL_INTERVAL = 2


def _years_to_seconds(raw: Optional[str]) -> int:
    if raw is None:
        return SECONDS_PER_YEAR
    try:
        years = float(raw)
    except ValueError:
        raise InputError(f"Years must be a number, got {raw!r}") from None
    if years <= 0:
        raise InputError("Years must be positive")
    return int(years * SECONDS_PER_YEAR)


def _format_amount(wei: int) -> str:
    return f"{wei / WEI_PER_TOKEN:.6f}"


def _registrar(session: Session, settings: Settings) -> Registrar:
    oracle = PriceOracle(settings.price_feed_url, settings.price_feed_field, timeout=settings.http_timeout)
    return Registrar(session, price_oracle=oracle)


async def entry_command(settings: Settings, label: str) -> None:
    session = await connect(settings)
    entry = await _registrar(session, settings).get_entry(label)
    print(f"📇 {label}.{session.tld}")
    if entry.error:
        print(f"   ⚠️  Registrar lookup failed: {entry.error}")
        return
    print(f"   Available:  {entry.available}")
    print(f"   Registrant: {entry.registrant or '-'}")
    print(f"   Expires:    {entry.name_expires.isoformat() if entry.name_expires else '-'}")
    if entry.grace_period_end_date:
        print(f"   In grace period until {entry.grace_period_end_date.isoformat()}")
    print(f"   Block time: {entry.current_block_date.isoformat()}")


async def price_command(settings: Settings, label: str, years: Optional[str]) -> None:
    session = await connect(settings)
    registrar = _registrar(session, settings)
    duration = _years_to_seconds(years)
    quote, usd = await asyncio.gather(
        registrar.get_rent_price_and_premium(label, duration),
        registrar.get_eth_price(),
    )
    print(f"💰 {label}.{session.tld} for {years or 1} year(s)")
    print(f"   Price:   {_format_amount(quote.price)}")
    print(f"   Premium: {_format_amount(quote.premium)}")
    print(f"   Sent with registration (incl. 10% buffer): {_format_amount(buffered_price(quote.price))}")
    if usd is not None:
        print(f"   ≈ ${quote.price / WEI_PER_TOKEN * usd:.2f}")


async def ages_command(settings: Settings) -> None:
    session = await connect(settings)
    registrar = Registrar(session)
    min_age, max_age = await asyncio.gather(
        registrar.get_minimum_commitment_age(),
        registrar.get_maximum_commitment_age(),
    )
    print(f"⏳ Commitments mature after {min_age}s and expire after {max_age}s")


async def dns_support_command(settings: Settings, address: str) -> None:
    session = await connect(settings)

    def no_prover(oracle: str, is_old: bool):
        raise InputError("Probing support does not need a DNSSEC prover")

    support = await DnsClaimValidator(session, no_prover).probe_support(address)
    if not support.supported:
        print(f"❌ {support.address} is not a DNS registrar")
        return
    protocol = "old (flat proof bytes)" if support.is_old else "current (rrset/sig tuples)"
    print(f"✅ {support.address} is a DNS registrar speaking the {protocol} protocol")


async def dns_command(settings: Settings, name: str, parent_owner: str, owner: Optional[str]) -> None:
    session = await connect(settings)
    validator = DnsClaimValidator(session, prover_factory(settings.dns_nameserver, settings.http_timeout))
    entry = await validator.get_dns_entry(name, parent_owner, owner)
    print(f"🌐 {name}: {entry.state.value}")
    if entry.dns_owner:
        print(f"   _ens TXT owner: {entry.dns_owner}")
    if entry.state_error:
        print(f"   ⚠️  {entry.state_error}")


async def register_command(settings: Settings, label: str, years: Optional[str]) -> None:
    session = await connect(settings)
    registrar = _registrar(session, settings)
    duration = _years_to_seconds(years)

    entry = await registrar.get_entry(label)
    if not entry.available:
        print(f"❌ {label}.{session.tld} is not available")
        sys.exit(1)

    secret = generate_secret()
    print(f"🔐 Committing to {label}.{session.tld} (secret 0x{secret.hex()}; keep it until registration)")
    tx = await registrar.commit(label, secret)
    print(f"   Commit tx: {tx.hash}")

    status = await registrar.check_commitment(label, secret)
    while status.is_pending:
        await asyncio.sleep(COMMIT_POLL_INTERVAL)
        status = await registrar.check_commitment(label, secret)

    min_age = await registrar.get_minimum_commitment_age()
    wait_time = min_age + MATURITY_MARGIN
    print(f"\n⏳ Waiting {wait_time}s for the commitment to mature...")
    await asyncio.sleep(wait_time)

    tx = await registrar.register(label, duration, secret)
    print(f"✅ Register tx: {tx.hash} (sent {_format_amount(tx.value)})")


async def renew_command(settings: Settings, label: str, years: Optional[str]) -> None:
    session = await connect(settings)
    tx = await Registrar(session).renew(label, _years_to_seconds(years))
    print(f"✅ Renew tx: {tx.hash} (sent {_format_amount(tx.value)})")


def _usage() -> None:
    print("TNS CLI")
    print("\nCommands:")
    print("  tns namehash <name>          — Print the node hash of a name")
    print("  tns labelhash <label>        — Print the hash of one label")
    print("  tns entry <label>            — Registration status of a name")
    print("  tns price <label> [years]    — Rent price for a duration (default 1 year)")
    print("  tns ages                     — Commitment min/max ages")
    print("  tns dns-support <address>    — Probe a DNS registrar")
    print("  tns dns <name> <registrar> [owner] — DNSSEC claim state of a DNS name")
    print("  tns register <label> [years] — Commit, wait, register (needs TNS_PRIVATE_KEY)")
    print("  tns renew <label> [years]    — Renew a name (needs TNS_PRIVATE_KEY)")
    print("\nExamples:")
    print("  tns namehash alice.tomo")
    print("  tns price alice 2")


def _run(settings: Settings, command: str, args: list) -> None:
    if command == "namehash":
        print(namehash_hex(args[0]))
    elif command == "labelhash":
        print(labelhash_hex(args[0]))
    elif command == "entry":
        asyncio.run(entry_command(settings, args[0]))
    elif command == "price":
        asyncio.run(price_command(settings, args[0], args[1] if len(args) > 1 else None))
    elif command == "ages":
        asyncio.run(ages_command(settings))
    elif command == "dns-support":
        asyncio.run(dns_support_command(settings, args[0]))
    elif command == "dns":
        if len(args) < 2:
            raise InputError("dns needs a name and the DNS registrar address")
        asyncio.run(dns_command(settings, args[0], args[1], args[2] if len(args) > 2 else None))
    elif command == "register":
        asyncio.run(register_command(settings, args[0], args[1] if len(args) > 1 else None))
    elif command == "renew":
        asyncio.run(renew_command(settings, args[0], args[1] if len(args) > 1 else None))
    else:
        print(f"Unknown command: {command}")
        _usage()
        sys.exit(1)


def main():
    """CLI entry point."""
    if len(sys.argv) < 2:
        _usage()
        sys.exit(1)

    try:
        settings = Settings.from_env()
    except (TnsError, ValidationError) as e:
        print(f"❌ Bad configuration: {e}")
        sys.exit(1)
    configure_logging(settings.log_level)
    command, args = sys.argv[1], sys.argv[2:]
    if command not in ("ages",) and not args:
        print(f"'{command}' needs an argument")
        _usage()
        sys.exit(1)

    try:
        _run(settings, command, args)
    except TnsError as e:
        logger.debug("Command %s failed", command, exc_info=True)
        print(f"❌ {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()

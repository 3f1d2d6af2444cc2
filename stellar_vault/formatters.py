"""Formatting and conversion utilities."""

import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from stellar_vault.constants import EXPLORER_HOST, STROOPS_PER_XLM


def as_int(value, *, default: int = 0) -> int:
    """Convert value to int, handling various types."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.startswith("0x"):
            return int(v, 16)
        return int(v)
    return int(value)


def format_xlm(stroops: int) -> str:
    """Format a stroop amount as XLM with two decimals."""
    xlm = Decimal(stroops) / STROOPS_PER_XLM
    return f"{xlm.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):.2f}"


def xlm_to_stroops(value: str) -> int:
    """Parse a user-entered XLM amount ("10.5") into stroops. Raises ValueError on bad input."""
    try:
        xlm = Decimal(value.strip())
    except (InvalidOperation, AttributeError) as ex:
        raise ValueError(f"Invalid amount: {value!r}") from ex
    if not xlm.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return int(xlm * STROOPS_PER_XLM)


def truncate_address(addr: str, chars: int = 6) -> str:
    """Shorten an address to `GABCDE...UVWXYZ`."""
    if not addr or len(addr) <= chars * 2:
        return addr or ""
    return f"{addr[:chars]}...{addr[-chars:]}"


def time_until(unix_timestamp: int, *, now: int | None = None) -> str:
    """Human-readable time remaining until `unix_timestamp`, or "Unlocked"."""
    current = int(time.time()) if now is None else now
    diff = unix_timestamp - current
    if diff <= 0:
        return "Unlocked"
    days, rem = divmod(diff, 86400)
    hours, rem = divmod(rem, 3600)
    mins = rem // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_date(unix_timestamp: int) -> str:
    if not unix_timestamp:
        return "—"
    return datetime.fromtimestamp(unix_timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def explorer_tx_url(tx_hash: str, *, host: str = EXPLORER_HOST, network: str = "testnet") -> str:
    """Block explorer deep link for a transaction."""
    return f"https://{host}/explorer/{network}/tx/{tx_hash}"

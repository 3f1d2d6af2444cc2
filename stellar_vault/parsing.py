"""Decoding of contract values (ScVal) and contract events."""

from datetime import datetime
from typing import Any

from stellar_sdk import scval, xdr

from stellar_vault.constants import EVENT_DEPOSIT, EVENT_LOCK, EVENT_WITHDRAW
from stellar_vault.formatters import as_int
from stellar_vault.models import VaultEvent, VaultInfo

_DECODERS = {
    xdr.SCValType.SCV_BOOL: scval.from_bool,
    xdr.SCValType.SCV_U32: scval.from_uint32,
    xdr.SCValType.SCV_I32: scval.from_int32,
    xdr.SCValType.SCV_U64: scval.from_uint64,
    xdr.SCValType.SCV_I64: scval.from_int64,
    xdr.SCValType.SCV_U128: scval.from_uint128,
    xdr.SCValType.SCV_I128: scval.from_int128,
    xdr.SCValType.SCV_U256: scval.from_uint256,
    xdr.SCValType.SCV_I256: scval.from_int256,
    xdr.SCValType.SCV_TIMEPOINT: scval.from_timepoint,
    xdr.SCValType.SCV_DURATION: scval.from_duration,
    xdr.SCValType.SCV_SYMBOL: scval.from_symbol,
    xdr.SCValType.SCV_BYTES: scval.from_bytes,
}


def decode_scval(value: "xdr.SCVal | str") -> "xdr.SCVal":
    """Accept either an SCVal or its base64 XDR form, as returned by the RPC."""
    if isinstance(value, str):
        return xdr.SCVal.from_xdr(value)
    return value


def scval_to_native(value: "xdr.SCVal | str") -> Any:
    """
    Convert an SCVal into plain Python values.

    Maps become dicts keyed by their native keys, vectors become lists, addresses become
    strkey strings and strings are decoded as UTF-8. Raises ValueError for unsupported types.
    """
    sc_val = decode_scval(value)
    kind = sc_val.type
    if kind == xdr.SCValType.SCV_VOID:
        return None
    if kind == xdr.SCValType.SCV_STRING:
        raw = scval.from_string(sc_val)
        return raw.decode("utf-8") if isinstance(raw, bytes) else raw
    if kind == xdr.SCValType.SCV_ADDRESS:
        return scval.from_address(sc_val).address
    if kind == xdr.SCValType.SCV_VEC:
        return [scval_to_native(v) for v in scval.from_vec(sc_val)]
    if kind == xdr.SCValType.SCV_MAP:
        entries = sc_val.map.sc_map if sc_val.map is not None else []
        return {scval_to_native(e.key): scval_to_native(e.val) for e in entries}
    decoder = _DECODERS.get(kind)
    if decoder is None:
        raise ValueError(f"Unsupported SCVal type: {kind}")
    return decoder(sc_val)


def parse_vault_info(retval: "xdr.SCVal | str") -> VaultInfo:
    """Parse the map returned by `get_vault_info`."""
    raw = scval_to_native(retval)
    if not isinstance(raw, dict):
        raise ValueError("Unexpected get_vault_info result (expected a map)")
    return VaultInfo(
        admin=str(raw.get("admin") or ""),
        token=str(raw.get("token") or ""),
        total_deposited=as_int(raw.get("total_deposited")),
        deposit_count=as_int(raw.get("deposit_count")),
    )


def event_timestamp(ledger_close_at: Any) -> int:
    """Unix timestamp of an event's ledger close time (datetime or ISO-8601 string)."""
    if isinstance(ledger_close_at, datetime):
        return int(ledger_close_at.timestamp())
    return int(datetime.fromisoformat(str(ledger_close_at).replace("Z", "+00:00")).timestamp())


def parse_vault_event(event: Any) -> VaultEvent | None:
    """
    Parse one RPC event into a `VaultEvent`.

    The first topic is the event name. Payloads are tuples:
    deposit/withdraw -> (user, amount, total), lock -> (user, unlock_time).
    Returns None for events this client does not know; decoding errors raise.
    """
    topics = [scval_to_native(t) for t in event.topic]
    name = str(topics[0]) if topics else ""
    if name not in (EVENT_DEPOSIT, EVENT_WITHDRAW, EVENT_LOCK):
        return None

    data = scval_to_native(event.value)
    values = data if isinstance(data, list) else []
    user = str(values[0]) if values else ""
    second = as_int(values[1]) if len(values) > 1 else 0

    common = {
        "type": name,
        "user": user,
        "timestamp": event_timestamp(event.ledger_close_at),
        "tx_id": str(event.id),
        "ledger": int(event.ledger),
    }
    if name == EVENT_LOCK:
        return VaultEvent(**common, unlock_time=second)
    return VaultEvent(**common, amount=second)

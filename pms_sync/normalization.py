"""
Normalization helpers shared by vendor adapters
Strict status lookup, date parsing and amount coercion
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping, Optional, TypeVar

from dateutil import parser as date_parser

from pms_sync.contracts import IntegrationError

S = TypeVar("S")


def map_status(table: Mapping[str, S], value: Optional[str], kind: str = "status") -> S:
    """
    Translate a vendor status string through an explicit lookup table.

    Unknown values are rejected with ``UNMAPPED_STATUS`` instead of being
    silently coerced to a default.
    """
    if value is not None and value in table:
        return table[value]
    raise IntegrationError(
        f"Unmapped {kind} status: {value!r}",
        status_code=422,
        code="UNMAPPED_STATUS",
        details={"kind": kind, "value": value, "known": sorted(table)},
    )


def vendor_status(table: Mapping[Any, str], status: Any, kind: str = "status") -> str:
    """Reverse lookup: canonical status to the vendor's vocabulary, equally strict"""
    canonical = getattr(status, "value", status)
    for key, value in table.items():
        if getattr(key, "value", key) == canonical:
            return value
    raise IntegrationError(
        f"No vendor {kind} status for {canonical!r}",
        status_code=422,
        code="UNMAPPED_STATUS",
        details={"kind": kind, "value": canonical, "known": sorted(getattr(k, "value", k) for k in table)},
    )


def require_field(payload: Any, name: str, kind: str) -> Any:
    """Value of a mandatory payload key, or ``INVALID_PAYLOAD`` naming what is missing"""
    value = payload.get(name) if isinstance(payload, Mapping) else None
    if value is None or value == "":
        raise IntegrationError.invalid_payload(f"{kind} is missing {name}", field=name)
    return value


def parse_date(value: Any) -> date:
    """Parse a vendor date (ISO string, datetime or date) to a calendar date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise IntegrationError.invalid_payload("Missing date value")
    try:
        return date_parser.parse(str(value)).date()
    except (ValueError, OverflowError) as e:
        raise IntegrationError.invalid_payload(f"Invalid date: {value!r}", value=str(value)) from e


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a vendor timestamp; naive values are assumed UTC"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.isoparse(str(value))
        except ValueError:
            try:
                parsed = date_parser.parse(str(value))
            except (ValueError, OverflowError) as e:
                raise IntegrationError.invalid_payload(
                    f"Invalid timestamp: {value!r}", value=str(value)
                ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_amount(value: Any) -> Optional[Decimal]:
    """Monetary value as Decimal quantized to cents"""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise IntegrationError.invalid_payload(f"Invalid amount: {value!r}", value=str(value)) from e


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def full_name(first: Optional[str], last: Optional[str]) -> Optional[str]:
    name = " ".join(part for part in (first, last) if part)
    return name or None

"""
Timestamp Utilities

Parsing of API timestamps and formatting of the dates used when
signing requests.

Example:
    "2017-07-26 05:57:49.608Z" and "2017-07-26T05:57:49.608+00:00"
    both parse to the same aware UTC datetime.
"""

import re
from datetime import datetime, timezone
from email.utils import format_datetime

# datetime.fromisoformat before 3.11 takes only 3 or 6 fraction digits
_FRACTION = re.compile(r"(?<=\d)\.(\d+)")


def _six_digit_fraction(match: re.Match) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(value: str | int | float | datetime | None) -> datetime | None:
    """
    Parse an API timestamp into an aware UTC datetime.

    Accepts ISO strings with a space or "T" separator, a "Z" suffix and
    any number of fraction digits, epoch milliseconds, or a datetime. Naive values are taken as UTC.

    Returns:
        Aware datetime, or None if the value is missing or unparseable
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(value / 1000.0, timezone.utc)
    elif isinstance(value, str):
        try:
            ts_clean = value.strip().replace("Z", "+00:00")
            ts_clean = _FRACTION.sub(_six_digit_fraction, ts_clean, count=1)
            dt = datetime.fromisoformat(ts_clean)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def http_date(ts: datetime) -> str:
    """RFC 1123 date for the X-SN-Date header, e.g. 'Thu, 26 Feb 2015 21:00:00 GMT'"""
    return format_datetime(ts.astimezone(timezone.utc), usegmt=True)


def signing_date(ts: datetime) -> str:
    """Day stamp used to derive the signing key (yyyyMMdd)"""
    return ts.astimezone(timezone.utc).strftime("%Y%m%d")


def signing_timestamp(ts: datetime) -> str:
    """Compact timestamp used in the string to sign (yyyyMMddTHHmmssZ)"""
    return ts.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

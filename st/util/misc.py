import math
import re
from datetime import datetime, timezone

_HEX_COLOR = re.compile(r"^#([0-9a-f]{6}|[0-9a-f]{3})$", re.IGNORECASE)
_NON_DIGITS = re.compile(r"[^0-9]")
_FRACTION = re.compile(r"\.(\d+)")


# Simply returns the current local time as an ISO8601 string with timezone offset.
def now_iso():
    return datetime.now().astimezone().isoformat()


# Renders an aware datetime the way the API expects it: UTC, millisecond precision, trailing Z.
# Naive datetimes are taken as local time.
def to_api_iso(dt):
    if dt.tzinfo is None:
        dt = dt.astimezone()
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


# Parses an ISO8601 string from the API into an aware datetime, or None when it's missing or garbage.
def parse_api_iso(value):
    if not value or not isinstance(value, str):
        return None
    raw = value.strip()
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"
    # The server may send anywhere from 1 to 9 fractional digits, datetime wants exactly 6
    raw = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw, count=1)
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# Formats a millisecond count as HH:MM:SS, flooring to whole seconds. Negative, zero and non-finite values all
# come out as 00:00:00.
def format_duration(ms):
    if ms is None or not isinstance(ms, (int, float)) or not math.isfinite(ms) or ms <= 0:
        return "00:00:00"
    total_seconds = int(ms // 1000)
    h, rem = divmod(total_seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


# Returns the given color if it's a 3 or 6 digit hex color, otherwise the fallback.
def normalize_color(value, fallback):
    raw = value.strip() if isinstance(value, str) else ""
    if _HEX_COLOR.match(raw):
        return raw
    return fallback


def is_hex_color(value):
    return isinstance(value, str) and bool(_HEX_COLOR.match(value.strip()))


# Strips everything but 0-9 out of the given text.
def digits_only(text):
    return _NON_DIGITS.sub("", text or "")


# Short label like "Mar 5" for a YYYY-MM-DD trend date. Anything unparseable comes back as given.
def format_trend_label(date_string):
    if not date_string:
        return ""
    try:
        day = datetime.strptime(date_string[:10], "%Y-%m-%d")
    except ValueError:
        return date_string
    return f"{day:%b} {day.day}"

"""InfluxDB line protocol decoder.

Parses a batch of lines of the form::

    measurement[,tag=value...] field=value[,field=value...] [timestamp]

into immutable :class:`Point` objects. Field sections are kept raw on the
point and decoded on access through :meth:`Point.fields`.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

PRECISION_MULTIPLIERS = {
    "n": 1,
    "ns": 1,
    "u": 1_000,
    "us": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
UINT64_MAX = 2 ** 64 - 1

_BOOL_TRUE = {"t", "T", "true", "True", "TRUE"}
_BOOL_FALSE = {"f", "F", "false", "False", "FALSE"}

_FLOAT_RE = re.compile(r"^-?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INT_RE = re.compile(r"^-?\d+i$")
_UINT_RE = re.compile(r"^\d+u$")
_TIMESTAMP_RE = re.compile(r"^-?\d+$")

_MEASUREMENT_ESCAPES = re.compile(r"\\([, ])")
_KEY_ESCAPES = re.compile(r"\\([,= ])")
_STRING_ESCAPES = re.compile(r'\\(["\\])')


class LineProtocolError(ValueError):
    """Raised when a line protocol buffer cannot be decoded."""


class FieldParseError(LineProtocolError):
    """Raised when the field section of a single point cannot be read."""


@dataclass(frozen=True)
class FieldValue:
    """Base of the closed set of decoded field value variants."""

    def as_float(self) -> Optional[float]:
        """Numeric form of the value, or None when it has none."""
        return None


@dataclass(frozen=True)
class FloatValue(FieldValue):
    value: float

    def as_float(self) -> Optional[float]:
        return self.value


@dataclass(frozen=True)
class IntValue(FieldValue):
    value: int

    def as_float(self) -> Optional[float]:
        return float(self.value)


@dataclass(frozen=True)
class BoolValue(FieldValue):
    value: bool

    def as_float(self) -> Optional[float]:
        return 1.0 if self.value else 0.0


@dataclass(frozen=True)
class OtherValue(FieldValue):
    """Unsigned integers and strings. Carried through, never converted."""
    value: Union[int, str]
    kind: str


@dataclass(frozen=True)
class Point:
    """A single decoded line."""
    measurement: str
    tags: Sequence[Tuple[str, str]]
    raw_fields: str
    time: int  # nanoseconds since the epoch

    def fields(self) -> Dict[str, FieldValue]:
        """Decode the field section. Raises FieldParseError."""
        return parse_fields(self.raw_fields)


def precision_multiplier(precision: str) -> int:
    """Nanoseconds per timestamp unit for a precision string."""
    try:
        return PRECISION_MULTIPLIERS[precision]
    except KeyError:
        raise ValueError(
            f"Unknown precision '{precision}', expected one of "
            f"{', '.join(PRECISION_MULTIPLIERS)}"
        )


def _split_unescaped(text: str, sep: str, quoted: bool = False, maxsplit: int = -1) -> List[str]:
    """Split on separators that are neither backslash-escaped nor quoted."""
    parts = []
    start = 0
    in_quote = False
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if quoted and ch == '"':
            in_quote = not in_quote
        elif ch == sep and not in_quote and maxsplit != len(parts):
            parts.append(text[start:i])
            start = i + 1
        i += 1
    parts.append(text[start:])
    return parts


def _split_lines(text: str) -> List[Tuple[int, str]]:
    """
    Split a buffer into (line number, line) pairs.

    A newline inside a quoted string field does not end the line. Line
    numbers count physical lines, so a point spanning several of them is
    numbered by its first.
    """
    lines = []
    start = 0
    lineno = 1
    start_lineno = 1
    in_key = False
    in_fields = False
    in_comment = False
    in_quote = False
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\n" and not in_quote:
            lines.append((start_lineno, text[start:i]))
            start = i + 1
            lineno += 1
            start_lineno = lineno
            in_key = in_fields = in_comment = False
            i += 1
            continue

        if ch == "\n":
            lineno += 1
        elif in_comment:
            pass
        elif ch == "\\" and i + 1 < len(text) and text[i + 1] != "\n":
            in_key = True
            i += 2
            continue
        elif in_fields:
            if ch == '"':
                in_quote = not in_quote
        elif ch == " ":
            in_fields = in_key
        elif ch not in "\t\r":
            if not in_key and ch == "#":
                in_comment = True
            in_key = True
        i += 1

    lines.append((start_lineno, text[start:]))
    return lines


def _split_sections(line: str) -> List[str]:
    """Split a line into its key, field and timestamp sections."""
    sections = []
    current = []
    in_quote = False
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\" and i + 1 < len(line):
            current.append(line[i:i + 2])
            i += 2
            continue
        # Quotes only delimit strings inside the field section
        if ch == '"' and len(sections) == 1:
            in_quote = not in_quote
        elif ch == " " and not in_quote:
            if current:
                sections.append("".join(current))
                current = []
            i += 1
            continue
        current.append(ch)
        i += 1

    if in_quote:
        raise LineProtocolError("unbalanced quotes")
    if current:
        sections.append("".join(current))
    return sections


def _parse_field_value(raw: str) -> FieldValue:
    if raw.startswith('"'):
        if len(raw) < 2 or not raw.endswith('"'):
            raise FieldParseError(f"invalid string field value: {raw}")
        return OtherValue(_STRING_ESCAPES.sub(r"\1", raw[1:-1]), "string")

    if raw in _BOOL_TRUE:
        return BoolValue(True)
    if raw in _BOOL_FALSE:
        return BoolValue(False)

    if _INT_RE.match(raw):
        value = int(raw[:-1])
        if not INT64_MIN <= value <= INT64_MAX:
            raise FieldParseError(f"integer value out of range: {raw}")
        return IntValue(value)

    if _UINT_RE.match(raw):
        value = int(raw[:-1])
        if value > UINT64_MAX:
            raise FieldParseError(f"unsigned value out of range: {raw}")
        return OtherValue(value, "unsigned")

    if _FLOAT_RE.match(raw):
        return FloatValue(float(raw))

    raise FieldParseError(f"invalid field value: {raw}")


def parse_fields(raw: str) -> Dict[str, FieldValue]:
    """Decode a raw field section into an ordered name -> value mapping."""
    if not raw:
        raise FieldParseError("missing fields")

    fields: Dict[str, FieldValue] = {}
    for pair in _split_unescaped(raw, ",", quoted=True):
        kv = _split_unescaped(pair, "=", quoted=True, maxsplit=1)
        if len(kv) != 2:
            raise FieldParseError(f"missing field value: {pair}")
        key, value = kv
        if not key:
            raise FieldParseError(f"missing field key: {pair}")
        if not value:
            raise FieldParseError(f"missing field value: {pair}")
        fields[_KEY_ESCAPES.sub(r"\1", key)] = _parse_field_value(value)
    return fields


def _parse_key(section: str) -> Tuple[str, List[Tuple[str, str]]]:
    parts = _split_unescaped(section, ",")
    measurement = _MEASUREMENT_ESCAPES.sub(r"\1", parts[0])
    if not measurement:
        raise LineProtocolError("missing measurement")

    tags: List[Tuple[str, str]] = []
    seen = set()
    for pair in parts[1:]:
        kv = _split_unescaped(pair, "=", maxsplit=1)
        if not kv[0]:
            raise LineProtocolError(f"missing tag key: {pair}")
        if len(kv) != 2 or not kv[1]:
            raise LineProtocolError(f"missing tag value: {pair}")
        key = _KEY_ESCAPES.sub(r"\1", kv[0])
        if key in seen:
            raise LineProtocolError(f"duplicate tags: {key}")
        seen.add(key)
        tags.append((key, _KEY_ESCAPES.sub(r"\1", kv[1])))
    return measurement, tags


def parse_line(line: str, default_time_ns: int, multiplier: int = 1) -> Point:
    """Decode a single non-empty, non-comment line."""
    sections = _split_sections(line)
    if len(sections) < 2:
        raise LineProtocolError("missing fields")
    if len(sections) > 3:
        raise LineProtocolError(f"unexpected trailing data: {' '.join(sections[3:])}")

    measurement, tags = _parse_key(sections[0])
    raw_fields = sections[1]
    try:
        parse_fields(raw_fields)
    except FieldParseError as e:
        raise LineProtocolError(str(e))

    if len(sections) == 3:
        if not _TIMESTAMP_RE.match(sections[2]):
            raise LineProtocolError(f"invalid timestamp: {sections[2]}")
        timestamp = int(sections[2]) * multiplier
        if not INT64_MIN <= timestamp <= INT64_MAX:
            raise LineProtocolError(f"time outside range: {sections[2]}")
    else:
        timestamp = default_time_ns - default_time_ns % multiplier

    return Point(measurement, tuple(tags), raw_fields, timestamp)


def parse_points(buf: Union[bytes, str], default_time_ns: int, precision: str = "ns") -> List[Point]:
    """
    Decode a whole line protocol buffer.

    Args:
        buf: Raw buffer, bytes are decoded as UTF-8
        default_time_ns: Timestamp for points without one, in nanoseconds
        precision: Unit of explicit timestamps (n, ns, u, us, ms, s, m, h)

    Returns:
        Points in input order

    Raises:
        LineProtocolError: listing every line that failed to parse
    """
    multiplier = precision_multiplier(precision)

    if isinstance(buf, bytes):
        try:
            text = buf.decode("utf-8")
        except UnicodeDecodeError as e:
            raise LineProtocolError(f"input is not valid UTF-8: {e}")
    else:
        text = buf

    points: List[Point] = []
    errors: List[str] = []
    for lineno, line in _split_lines(text):
        line = line.strip(" \t\r")
        if not line or line.startswith("#"):
            continue
        try:
            points.append(parse_line(line, default_time_ns, multiplier))
        except LineProtocolError as e:
            errors.append(f"line {lineno}: {e}")

    if errors:
        raise LineProtocolError("unable to parse points: " + "; ".join(errors))
    return points

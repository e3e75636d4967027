"""File-name pattern language used to pick out a table's data files.

A pattern is a string made of:

- literals: any character other than ``{``, ``}``, ``*``, ``?`` or ``\\``,
  plus the escapes ``\\{``, ``\\}``, ``\\*``, ``\\?`` and ``\\\\``;
- wildcards: ``*`` (any run of characters) and ``?`` (exactly one);
- ``{table}``, replaced by the table name at match time;
- ``{<timestamp>}``, a Joda-style timestamp built from the letters
  ``y M d H m s``.  Non-letter characters inside the braces are literals.

Examples::

    {table}{yyyyMMdd}.DAT
    {table}_{yyyyMMdd_HHmm}.TXT.*.{yyyyMMddHHmm}
    ??_{table}-{ddMMyy}*

A pattern is parsed once by :func:`compile_pattern` into a list of segments;
the regular expression for a given table name is built on first use and
cached on the `FilePattern`.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

from wharf.errors import (
    InvalidTimestampError,
    PatternCompileError,
    TimestampMismatchError,
    UnsupportedTimestampFieldError,
)

_SPECIAL = "{}*?\\"
_TABLE_TOKEN = "table"


class DateField(Enum):
    """Timestamp fields, declared in the order they appear in date paths."""

    YEAR = "y"
    MONTH = "M"
    DAY = "d"
    HOUR = "H"
    MINUTE = "m"
    SECOND = "s"

    @property
    def label(self) -> str:
        return self.name.lower()


_FIELD_ORDER = list(DateField)
_SYMBOLS = {f.value: f for f in DateField}

_RANGES: dict[DateField, tuple[int, int]] = {
    DateField.MONTH: (1, 12),
    DateField.HOUR: (0, 23),
    DateField.MINUTE: (0, 59),
    DateField.SECOND: (0, 59),
}


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class AnyChar:
    """``?``"""


@dataclass(frozen=True)
class AnyChars:
    """``*``"""


@dataclass(frozen=True)
class TableName:
    """``{table}``"""


@dataclass(frozen=True)
class TimestampPart:
    """One run of a timestamp letter, e.g. ``yyyy`` is ``(YEAR, 4)``."""

    field: DateField
    width: int

    def regex(self) -> str:
        if self.width > 1:
            return rf"(\d{{{self.width}}})"
        if self.field is DateField.YEAR:
            return r"(\d{1,4})"
        return r"(\d{1,2})"

    def render(self, value: int) -> str:
        if self.field is DateField.YEAR and self.width == 2:
            value %= 100
        if self.width == 1:
            return str(value)
        return str(value).zfill(self.width)


@dataclass(frozen=True)
class Timestamp:
    """A ``{...}`` timestamp block: field runs interleaved with literal text."""

    format: str
    parts: tuple[Union[TimestampPart, str], ...]

    @property
    def fields(self) -> list[TimestampPart]:
        return [p for p in self.parts if isinstance(p, TimestampPart)]


Segment = Union[Literal, AnyChar, AnyChars, TableName, Timestamp]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _parse_timestamp(pattern: str, body: str) -> Timestamp:
    parts: list[Union[TimestampPart, str]] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch.isalpha():
            if ch not in _SYMBOLS:
                raise UnsupportedTimestampFieldError(pattern, ch)
            j = i
            while j < len(body) and body[j] == ch:
                j += 1
            parts.append(TimestampPart(_SYMBOLS[ch], j - i))
            i = j
        else:
            if parts and isinstance(parts[-1], str):
                parts[-1] += ch
            else:
                parts.append(ch)
            i += 1

    if not any(isinstance(p, TimestampPart) for p in parts):
        raise PatternCompileError(pattern, f"'{{{body}}}' contains no timestamp fields")
    return Timestamp(format=body, parts=tuple(parts))


def parse_pattern(pattern: str) -> list[Segment]:
    """Split *pattern* into segments, raising `PatternCompileError` if malformed."""
    segments: list[Segment] = []
    literal: list[str] = []

    def flush() -> None:
        if literal:
            segments.append(Literal("".join(literal)))
            literal.clear()

    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            if i + 1 >= len(pattern):
                raise PatternCompileError(pattern, "unterminated escape at end of pattern")
            escaped = pattern[i + 1]
            if escaped not in _SPECIAL:
                raise PatternCompileError(pattern, f"invalid escape '\\{escaped}'")
            literal.append(escaped)
            i += 2
        elif ch == "{":
            end = pattern.find("}", i + 1)
            if end == -1:
                raise PatternCompileError(pattern, f"unterminated '{{' at position {i}")
            body = pattern[i + 1 : end]
            if not body:
                raise PatternCompileError(pattern, "empty '{}'")
            if "{" in body:
                raise PatternCompileError(pattern, f"nested '{{' at position {i}")
            flush()
            if body == _TABLE_TOKEN:
                segments.append(TableName())
            else:
                segments.append(_parse_timestamp(pattern, body))
            i = end + 1
        elif ch == "}":
            raise PatternCompileError(pattern, f"unmatched '}}' at position {i}")
        elif ch == "*":
            flush()
            segments.append(AnyChars())
            i += 1
        elif ch == "?":
            flush()
            segments.append(AnyChar())
            i += 1
        else:
            literal.append(ch)
            i += 1

    flush()
    return segments


# ---------------------------------------------------------------------------
# Match results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimestampFields:
    """Timestamp values extracted from one file name.

    ``raw`` keeps every captured value in the order it appeared in the file
    name; ``values`` holds one ``(field, value)`` pair per distinct field, in
    canonical order.
    """

    raw: tuple[tuple[DateField, str], ...] = ()
    values: tuple[tuple[DateField, int], ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.values

    @property
    def date_dirs(self) -> list[str]:
        """Path components for the present fields: year, month, day, hour, ..."""
        return [
            str(value).zfill(4 if f is DateField.YEAR else 2) for f, value in self.values
        ]

    @property
    def date_path(self) -> str:
        return "/".join(self.date_dirs)

    def get(self, f: DateField) -> int | None:
        for key, value in self.values:
            if key is f:
                return value
        return None


def _resolve_year(part: TimestampPart, digits: str) -> int:
    value = int(digits)
    if part.width == 2:
        # Joda's default two-digit pivot: 1950-2049.
        return 2000 + value if value < 50 else 1900 + value
    return value


def _validate(filename: str, values: dict[DateField, int]) -> None:
    for f, (low, high) in _RANGES.items():
        v = values.get(f)
        if v is not None and not low <= v <= high:
            raise InvalidTimestampError(filename, f"{f.label} {v} not in {low}..{high}")

    day = values.get(DateField.DAY)
    if day is None:
        return
    year = values.get(DateField.YEAR, 2000)  # leap year when unknown
    month = values.get(DateField.MONTH)
    last = calendar.monthrange(year, month)[1] if month else 31
    if not 1 <= day <= last:
        raise InvalidTimestampError(filename, f"day {day} not in 1..{last}")


# ---------------------------------------------------------------------------
# Compiled pattern
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilePattern:
    """A compiled file pattern.

    Use :meth:`match` to test a file name for a given table; it returns the
    extracted `TimestampFields`, or ``None`` when the name does not match.
    """

    pattern: str
    segments: tuple[Segment, ...]
    _regex_cache: dict[str, re.Pattern] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    @property
    def timestamp_parts(self) -> list[TimestampPart]:
        parts: list[TimestampPart] = []
        for seg in self.segments:
            if isinstance(seg, Timestamp):
                parts.extend(seg.fields)
        return parts

    @property
    def has_timestamp(self) -> bool:
        return bool(self.timestamp_parts)

    def regex(self, table: str) -> re.Pattern:
        """Return the anchored regular expression for *table*."""
        cached = self._regex_cache.get(table)
        if cached is not None:
            return cached

        pieces: list[str] = []
        for seg in self.segments:
            if isinstance(seg, Literal):
                pieces.append(re.escape(seg.text))
            elif isinstance(seg, AnyChar):
                pieces.append(".")
            elif isinstance(seg, AnyChars):
                pieces.append(".*")
            elif isinstance(seg, TableName):
                pieces.append(re.escape(table))
            else:
                for part in seg.parts:
                    pieces.append(re.escape(part) if isinstance(part, str) else part.regex())

        compiled = re.compile("".join(pieces), re.DOTALL)
        self._regex_cache[table] = compiled
        return compiled

    def match(self, filename: str, table: str) -> TimestampFields | None:
        m = self.regex(table).fullmatch(filename)
        if m is None:
            return None

        parts = self.timestamp_parts
        raw = tuple((p.field, g) for p, g in zip(parts, m.groups()))
        values: dict[DateField, int] = {}
        for part, digits in zip(parts, m.groups()):
            value = _resolve_year(part, digits) if part.field is DateField.YEAR else int(digits)
            previous = values.setdefault(part.field, value)
            if previous != value:
                raise TimestampMismatchError(filename, part.field.label, previous, value)

        _validate(filename, values)
        ordered = tuple((f, values[f]) for f in _FIELD_ORDER if f in values)
        return TimestampFields(raw=raw, values=ordered)

    def render(self, table: str, when: datetime | None = None) -> str:
        """Build a file name this pattern matches, for *table* at *when*."""
        when = when or datetime(2000, 1, 1)
        values = {
            DateField.YEAR: when.year,
            DateField.MONTH: when.month,
            DateField.DAY: when.day,
            DateField.HOUR: when.hour,
            DateField.MINUTE: when.minute,
            DateField.SECOND: when.second,
        }
        out: list[str] = []
        for seg in self.segments:
            if isinstance(seg, Literal):
                out.append(seg.text)
            elif isinstance(seg, AnyChar):
                out.append("x")
            elif isinstance(seg, TableName):
                out.append(table)
            elif isinstance(seg, Timestamp):
                for part in seg.parts:
                    out.append(part if isinstance(part, str) else part.render(values[part.field]))
        return "".join(out)


def compile_pattern(pattern: str) -> FilePattern:
    """Compile *pattern*, raising `PatternCompileError` if it is malformed."""
    return FilePattern(pattern=pattern, segments=tuple(parse_pattern(pattern)))

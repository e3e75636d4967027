"""Separate upstream control files from the data files we ingest."""

from __future__ import annotations

import re
from enum import Enum

from wharf.errors import PatternCompileError


class FileKind(Enum):
    CONTROL = "control"
    DATA = "data"


class ControlPattern:
    """Regular expressions that identify control files."""

    #: Completion flags and control records conventionally dropped next to
    #: data files by upstream producers.  Case-sensitive.
    DEFAULT = (
        r"^(.*\.(CTL|ctl|CTR|ctr|OK|ok|DONE|done|FLG|flg)"
        r"|.*_(CONTROL|control|SUCCESS|success|COMPLETE|complete)"
        r")$"
    )

    @classmethod
    def default(cls) -> re.Pattern:
        return re.compile(cls.DEFAULT)

    @staticmethod
    def compile(expression: str | re.Pattern | None) -> re.Pattern:
        """Return the control regex for a user override, or the default."""
        if expression is None:
            return ControlPattern.default()
        if isinstance(expression, re.Pattern):
            return expression
        try:
            return re.compile(expression)
        except re.error as exc:
            raise PatternCompileError(expression, f"bad control pattern: {exc}") from exc


def classify(filename: str, control_pattern: re.Pattern | None = None) -> FileKind:
    """Return `FileKind.CONTROL` if *filename* matches the control pattern."""
    regex = control_pattern if control_pattern is not None else ControlPattern.default()
    if regex.fullmatch(filename):
        return FileKind.CONTROL
    return FileKind.DATA

"""Custom exceptions for Wharf."""


class WharfError(Exception):
    """Base exception for all Wharf errors.

    ``context`` names the unit of work that failed (e.g. ``source/domain/table``)
    and is prefixed to the message once set.
    """

    context: str | None = None

    def __str__(self) -> str:
        message = super().__str__()
        if self.context:
            return f"{self.context}: {message}"
        return message


class ProjectNotInitializedError(WharfError):
    """Raised when a wharf command is run outside an initialized project."""

    def __init__(self, path: str = "."):
        super().__init__(
            f"No wharf project found at '{path}'. Run 'wharf new-project' first."
        )


class ConfigError(WharfError):
    """Raised for configuration file issues."""


class FilesystemError(WharfError):
    """Raised when a filesystem cannot be resolved or opened."""


# ---------------------------------------------------------------------------
# File patterns
# ---------------------------------------------------------------------------


class PatternError(WharfError):
    """Raised for file pattern compilation or matching issues."""


class PatternCompileError(PatternError):
    """Raised when a file pattern string is malformed."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(f"Invalid file pattern '{pattern}': {reason}")
        self.pattern = pattern
        self.reason = reason


class UnsupportedTimestampFieldError(PatternCompileError):
    """Raised when a timestamp block uses a field other than y, M, d, H, m, s."""

    def __init__(self, pattern: str, symbol: str):
        super().__init__(
            pattern,
            f"unsupported timestamp field '{symbol}' "
            "(supported: y, M, d, H, m, s)",
        )
        self.symbol = symbol


class InvalidTimestampError(PatternError):
    """Raised when a matched file name does not carry a valid date/time."""

    def __init__(self, filename: str, reason: str):
        super().__init__(f"File '{filename}' has an invalid timestamp: {reason}")
        self.filename = filename


class TimestampMismatchError(PatternError):
    """Raised when repeated timestamp fields in one file name disagree."""

    def __init__(self, filename: str, field: str, first: int, second: int):
        super().__init__(
            f"File '{filename}' has conflicting values for {field}: "
            f"{first} and {second}"
        )
        self.filename = filename
        self.field = field


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class IngestError(WharfError):
    """Raised for data ingest issues."""


class DestinationExistsError(IngestError):
    """Raised when a landing or archive target is already present."""

    def __init__(self, path: str, source: str | None = None):
        msg = f"Destination '{path}' already exists"
        if source:
            msg += f" (refusing to copy '{source}')"
        super().__init__(msg)
        self.path = path
        self.source = source


class TransferError(IngestError):
    """Raised when reading, writing or copying a file fails."""

    def __init__(self, path: str, exc: BaseException):
        super().__init__(f"Transfer failed for '{path}': {exc}")
        self.path = path


class CompressionError(IngestError):
    """Raised when an archive copy cannot be compressed."""


class NoSourcesError(IngestError):
    """Raised when an upload landed no files but downstream steps need some."""


# ---------------------------------------------------------------------------
# Batch-state guard
# ---------------------------------------------------------------------------


class GuardError(WharfError):
    """Raised when batch directories cannot be read or marked."""

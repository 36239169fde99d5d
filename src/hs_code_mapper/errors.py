"""
Error taxonomy for HS code handling.

Format and existence problems are reported as ``ErrorKind`` / ``WarningKind``
values inside structured results. Exceptions are only raised for load-time
structural problems, lookups of unknown codes and queries against versions
that were never loaded.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Fatal validation problems."""

    INVALID_FORMAT = "InvalidFormat"
    TOO_SHORT = "TooShort"
    TOO_LONG = "TooLong"
    RESERVED_CHAPTER = "ReservedChapter"
    NOT_FOUND = "NotFound"
    JURISDICTION_UNSUPPORTED = "JurisdictionUnsupported"
    STRUCTURAL_ERROR = "StructuralError"
    VERSION_UNSUPPORTED = "VersionUnsupported"

    def __str__(self) -> str:
        return self.value


class WarningKind(str, Enum):
    """Non-fatal validation findings."""

    UNUSUAL_LENGTH = "UnusualLength"

    def __str__(self) -> str:
        return self.value


class HSCodeError(Exception):
    """Base class for all hs_code_mapper exceptions."""

    kind: Optional[ErrorKind] = None


class CodeFormatError(HSCodeError, ValueError):
    """Raised by ``parse_code`` when a raw string is not a usable code."""

    def __init__(self, raw, kind: ErrorKind, message: str):
        super().__init__(message)
        self.raw = raw
        self.kind = kind


class StructuralError(HSCodeError, ValueError):
    """Raised when a batch of entries or edges does not form a valid structure."""

    kind = ErrorKind.STRUCTURAL_ERROR


class CodeNotFoundError(HSCodeError, KeyError):
    """Raised when a code is absent from a registry."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, code: str, version: Optional[str] = None):
        self.code = code
        self.version = version
        where = f" in version '{version}'" if version else ""
        super().__init__(f"Code '{code}' not found{where}")

    def __str__(self) -> str:
        return self.args[0]


class VersionUnsupportedError(HSCodeError, KeyError):
    """Raised when a query targets a nomenclature version that was never loaded."""

    kind = ErrorKind.VERSION_UNSUPPORTED

    def __init__(self, version, available=None):
        self.version = version
        self.available = list(available or [])
        super().__init__(
            f"Nomenclature version '{version}' is not loaded. "
            f"Available versions: {self.available}"
        )

    def __str__(self) -> str:
        return self.args[0]

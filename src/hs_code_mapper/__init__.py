"""
HS Code Mapper

Harmonized System classification codes across nomenclature versions:
- Parsing and formatting of 6 to 12 digit codes (chapter, heading,
  subheading, national extension)
- Immutable per-version registries with hierarchy navigation
- Structured validation verdicts (errors vs. warnings)
- Correlation between versions that preserves splits and merges
- Deterministic free-text search over descriptions

This module can be used as a library or through the ``hs-code-mapper`` CLI.
"""

from .codes import HSCode, format_code, parse_code
from .correlation import Confidence, Conversion, CorrelationEngine, CorrelationTable
from .errors import (
    CodeFormatError,
    CodeNotFoundError,
    ErrorKind,
    StructuralError,
    VersionUnsupportedError,
    WarningKind,
)
from .registry import NomenclatureCatalog, NomenclatureRegistry, RegistryEntry
from .search import SearchHit, SearchIndex
from .validator import CodeValidator, ValidationResult, validate

__version__ = "0.1.0"

__all__ = [
    "HSCode",
    "parse_code",
    "format_code",
    "NomenclatureRegistry",
    "NomenclatureCatalog",
    "RegistryEntry",
    "CodeValidator",
    "ValidationResult",
    "validate",
    "CorrelationTable",
    "CorrelationEngine",
    "Conversion",
    "Confidence",
    "SearchIndex",
    "SearchHit",
    "ErrorKind",
    "WarningKind",
    "CodeFormatError",
    "CodeNotFoundError",
    "StructuralError",
    "VersionUnsupportedError",
]

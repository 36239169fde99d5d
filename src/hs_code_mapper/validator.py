"""
Validation of raw HS code strings.

Validation never raises for bad input: it returns a ``ValidationResult`` that
lets callers tell "malformed" from "well-formed but unknown" from "valid".
Only a query against a version that was never loaded raises, because that is
a caller error rather than a property of the code.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import pandas as pd

from .codes import HSCode, parse_code
from .errors import CodeFormatError, ErrorKind, VersionUnsupportedError, WarningKind
from .registry import NomenclatureCatalog, get_default_catalog

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Structured verdict for one raw code."""

    valid: bool
    errors: List[ErrorKind] = field(default_factory=list)
    warnings: List[WarningKind] = field(default_factory=list)
    code: Optional[HSCode] = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": [e.value for e in self.errors],
            "warnings": [w.value for w in self.warnings],
            "code": self.code.digits if self.code else None,
        }


class CodeValidator:
    """
    Combine format checks with registry existence checks.

    Usage:
        validator = CodeValidator(catalog)

        validator.validate("8471.30", version="2022")
        # ValidationResult(valid=True, errors=[], warnings=[], ...)

        validator.validate("84713A")
        # ValidationResult(valid=False, errors=[ErrorKind.INVALID_FORMAT], ...)
    """

    def __init__(self, catalog: Optional[NomenclatureCatalog] = None):
        """
        Args:
            catalog: Catalog used for existence checks (defaults to the
                process-wide catalog)
        """
        self.catalog = catalog if catalog is not None else get_default_catalog()

    def validate(
        self,
        raw,
        version: Optional[str] = None,
        jurisdiction: Optional[str] = None,
        check_existence: bool = True
    ) -> ValidationResult:
        """
        Validate a raw code string.

        Args:
            raw: Raw code, with or without separators
            version: Nomenclature version (defaults to the catalog's current one)
            jurisdiction: Jurisdiction whose registry validates extension digits
            check_existence: Whether to require the code to be registered

        Returns:
            ValidationResult

        Raises:
            VersionUnsupportedError: if an existence check targets a version
                that was never loaded
        """
        try:
            code = parse_code(raw, version=version, jurisdiction=jurisdiction)
        except CodeFormatError as e:
            logger.debug(f"Rejected {raw!r}: {e}")
            return ValidationResult(valid=False, errors=[e.kind])

        errors: List[ErrorKind] = []
        warnings: List[WarningKind] = []

        if code.unusual_length:
            warnings.append(WarningKind.UNUSUAL_LENGTH)

        jurisdiction_registry = None
        if jurisdiction is not None and code.has_extension:
            resolved = version if version is not None else self.catalog.current_version()
            if resolved is not None and self.catalog.has_jurisdiction(resolved, jurisdiction):
                jurisdiction_registry = self.catalog.get_registry(resolved, jurisdiction)
            else:
                errors.append(ErrorKind.JURISDICTION_UNSUPPORTED)

        if check_existence:
            resolved = version if version is not None else self.catalog.current_version()
            if resolved is None or not self.catalog.has_version(resolved):
                raise VersionUnsupportedError(resolved, self.catalog.versions())
            code = code.with_version(resolved)

            registry = self.catalog.get_registry(resolved)
            found = registry.exists(code.subheading)
            if found and jurisdiction_registry is not None:
                found = jurisdiction_registry.exists(code.digits)
            if not found:
                errors.append(ErrorKind.NOT_FOUND)

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings, code=code)

    def validate_many(
        self,
        codes: Iterable,
        version: Optional[str] = None,
        jurisdiction: Optional[str] = None,
        check_existence: bool = True
    ) -> pd.DataFrame:
        """
        Validate a batch of raw codes.

        Args:
            codes: Raw code strings
            version: Nomenclature version
            jurisdiction: Jurisdiction for extension digits
            check_existence: Whether to require registration

        Returns:
            DataFrame with columns code, valid, errors, warnings
        """
        rows = []
        for raw in codes:
            result = self.validate(
                raw,
                version=version,
                jurisdiction=jurisdiction,
                check_existence=check_existence,
            )
            rows.append({
                "code": raw,
                "valid": result.valid,
                "errors": ",".join(e.value for e in result.errors),
                "warnings": ",".join(w.value for w in result.warnings),
            })

        df = pd.DataFrame(rows, columns=["code", "valid", "errors", "warnings"])
        logger.info(f"Validated {len(df)} codes, {int((~df['valid']).sum()) if len(df) else 0} invalid")
        return df


def validate(
    raw,
    version: Optional[str] = None,
    jurisdiction: Optional[str] = None,
    check_existence: bool = True,
    catalog: Optional[NomenclatureCatalog] = None
) -> ValidationResult:
    """Validate a code against ``catalog`` (or the process-wide catalog)."""
    return CodeValidator(catalog).validate(
        raw,
        version=version,
        jurisdiction=jurisdiction,
        check_existence=check_existence,
    )

"""
Unit tests for CodeValidator.

Run with: python -m pytest test_validator.py
"""

import pytest
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from hs_code_mapper import CodeValidator, NomenclatureCatalog, format_code, validate
from hs_code_mapper.errors import ErrorKind, VersionUnsupportedError, WarningKind


@pytest.fixture
def catalog():
    """Create a catalog with an international and a US registry for 2022"""
    catalog = NomenclatureCatalog()
    catalog.load([
        ("84", "Machinery", None, None),
        ("8471", "Automatic data processing machines", "84", None),
        ("847130", "Portable automatic data processing machines", "84", "8471"),
    ], "2022")
    catalog.load([
        ("84", "Machinery", None, None),
        ("8471", "Automatic data processing machines", "84", None),
        ("847130", "Portable machines", "84", "8471"),
        ("8471300100", "Portable computers", None, None),
    ], "2022", jurisdiction="US")
    return catalog


@pytest.fixture
def validator(catalog):
    return CodeValidator(catalog)


class TestFormatChecks:
    """Test cases for format-level verdicts"""

    def test_valid_subheading_without_existence(self, validator):
        result = validator.validate("847130", check_existence=False)
        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_invalid_format(self, validator):
        result = validator.validate("84713A")
        assert result.valid is False
        assert result.errors == [ErrorKind.INVALID_FORMAT]
        assert result.warnings == []

    def test_arabic_indic_digits(self, validator):
        result = validator.validate("01٠١٢١", check_existence=False)
        assert result.valid is False
        assert result.errors == [ErrorKind.INVALID_FORMAT]
        assert result.code is None

    def test_unusual_length_is_warning_only(self, validator):
        result = validator.validate("8471300000", check_existence=False)
        assert result.valid is True
        assert result.errors == []
        assert result.warnings == [WarningKind.UNUSUAL_LENGTH]

    def test_too_short(self, validator):
        result = validator.validate("8471", check_existence=False)
        assert result.valid is False
        assert result.errors == [ErrorKind.TOO_SHORT]

    def test_reserved_chapter(self, validator):
        result = validator.validate("990100", check_existence=False)
        assert result.errors == [ErrorKind.RESERVED_CHAPTER]

    @pytest.mark.parametrize("chapter", ["01", "28", "50", "76", "78", "97"])
    def test_any_usable_chapter_is_valid(self, validator, chapter):
        result = validator.validate(f"{chapter}0110", check_existence=False)
        assert result.valid is True

    def test_error_kinds_compare_as_strings(self, validator):
        result = validator.validate("84713A")
        assert result.errors == ["InvalidFormat"]
        assert result.to_dict() == {
            "valid": False, "errors": ["InvalidFormat"], "warnings": [], "code": None,
        }

    def test_formatted_code_keeps_verdict(self, validator):
        """Test validating a re-formatted code gives the same verdict"""
        for raw in ("8471300000", "847130", "847199"):
            original = validator.validate(raw, version="2022")
            again = validator.validate(format_code(raw), version="2022")
            assert again.valid == original.valid
            assert again.errors == original.errors
            assert again.warnings == original.warnings


class TestExistenceChecks:
    """Test cases for registry-backed checks"""

    def test_existing_code(self, validator):
        result = validator.validate("8471.30", version="2022")
        assert result.valid is True
        assert result.code.version == "2022"

    def test_defaults_to_current_version(self, validator):
        assert validator.validate("847130").valid is True

    def test_not_found(self, validator):
        result = validator.validate("847199", version="2022")
        assert result.valid is False
        assert result.errors == [ErrorKind.NOT_FOUND]

    def test_unknown_version_raises(self, validator):
        with pytest.raises(VersionUnsupportedError):
            validator.validate("847130", version="2012")

    def test_unknown_version_ignored_without_existence(self, validator):
        assert validator.validate("847130", version="2012", check_existence=False).valid

    def test_extension_checked_against_jurisdiction(self, validator):
        assert validator.validate("8471.30.01.00", version="2022", jurisdiction="US").valid
        result = validator.validate("8471.30.09.00", version="2022", jurisdiction="US")
        assert result.errors == [ErrorKind.NOT_FOUND]

    def test_extension_without_jurisdiction_checks_subheading(self, validator):
        result = validator.validate("8471309900", version="2022")
        assert result.valid is True
        assert result.warnings == [WarningKind.UNUSUAL_LENGTH]

    def test_unsupported_jurisdiction_with_extension(self, validator):
        result = validator.validate("84713001", version="2022", jurisdiction="EU")
        assert result.valid is False
        assert result.errors == [ErrorKind.JURISDICTION_UNSUPPORTED]

    def test_unsupported_jurisdiction_without_extension(self, validator):
        result = validator.validate("847130", version="2022", jurisdiction="EU")
        assert result.valid is True

    def test_validate_many(self, validator):
        df = validator.validate_many(["847130", "84713A", "847199"], version="2022")
        assert df["valid"].tolist() == [True, False, False]
        assert df["errors"].tolist() == ["", "InvalidFormat", "NotFound"]


def test_module_level_validate(catalog):
    """Test the convenience function"""
    result = validate("847130", catalog=catalog)
    assert result.valid
    assert validate("84713A", catalog=catalog).errors == [ErrorKind.INVALID_FORMAT]


def test_format_failure_does_not_need_a_version():
    """Test format errors are reported even with an empty catalog"""
    result = CodeValidator(NomenclatureCatalog()).validate("84713A")
    assert result.errors == [ErrorKind.INVALID_FORMAT]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

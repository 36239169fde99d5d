"""
Parsing and formatting of Harmonized System classification codes.

Supports raw code strings like:
- 847130
- 8471.30
- 8471.30.00.00
- 8471 30 0000

A parsed code decomposes positionally into:
1. Chapter (first 2 digits)
2. Heading (first 4 digits)
3. Subheading (first 6 digits, the international leaf)
4. National extension (any digits after the subheading)

Nothing in this module touches a registry; parsing is a pure function.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .errors import CodeFormatError, ErrorKind

# Separators tolerated between digit groups: "8471.30", "8471 30", "8471-30"
_SEPARATOR_RE = re.compile(r'[.\s\-]+')
# ASCII digits only
_DIGITS_RE = re.compile(r'[0-9]+')

MIN_LENGTH = 6
MAX_LENGTH = 12
# Codes at or beyond this length are accepted but flagged as unusual
UNUSUAL_LENGTH = 10

# Chapters 98 and 99 are reserved for national use, 77 is held by the WCO
# for future use and 00 does not exist.
NATIONAL_USE_CHAPTERS = frozenset({"98", "99"})
RESERVED_CHAPTERS = frozenset({"00", "77"}) | NATIONAL_USE_CHAPTERS


@dataclass(frozen=True)
class HSCode:
    """
    An immutable classification code.

    The digits are stored without separators. Two codes are equal only when
    digits, version and jurisdiction all match.
    """

    digits: str
    version: Optional[str] = None
    jurisdiction: Optional[str] = None

    @property
    def chapter(self) -> str:
        return self.digits[:2]

    @property
    def heading(self) -> str:
        return self.digits[:4]

    @property
    def subheading(self) -> str:
        return self.digits[:6]

    @property
    def extension(self) -> str:
        """National extension digits beyond the 6-digit subheading."""
        return self.digits[6:]

    @property
    def has_extension(self) -> bool:
        return len(self.digits) > 6

    @property
    def unusual_length(self) -> bool:
        return len(self.digits) >= UNUSUAL_LENGTH

    def with_version(self, version: Optional[str]) -> "HSCode":
        return HSCode(self.digits, version=version, jurisdiction=self.jurisdiction)

    def __len__(self) -> int:
        return len(self.digits)

    def __str__(self) -> str:
        return self.digits


def normalize_digits(raw) -> str:
    """
    Strip separators from a raw code without validating it.

    Examples:
        >>> normalize_digits(" 8471.30.00 ")
        '84713000'

    Args:
        raw: Raw code (string, int or HSCode)

    Returns:
        The code with dots, whitespace and hyphens removed
    """
    if isinstance(raw, HSCode):
        return raw.digits
    if raw is None:
        return ""
    return _SEPARATOR_RE.sub('', str(raw))


def is_numeric_code(digits: str) -> bool:
    """Check that a normalized code is non-empty and made of ASCII digits 0-9."""
    return bool(digits) and _DIGITS_RE.fullmatch(digits) is not None


def is_reserved_chapter(chapter: str) -> bool:
    """Check if a 2-digit chapter is outside the usable 01-97 range."""
    return chapter in RESERVED_CHAPTERS or not ("01" <= chapter <= "97")


def parse_code(
    raw,
    version: Optional[str] = None,
    jurisdiction: Optional[str] = None
) -> HSCode:
    """
    Parse a raw string into an HSCode.

    Examples:
        >>> parse_code("8471.30")
        HSCode(digits='847130', version=None, jurisdiction=None)

        >>> parse_code("8471300000", version="2022").extension
        '0000'

    Args:
        raw: Raw code string, possibly with separators
        version: Nomenclature version the code belongs to
        jurisdiction: Issuing jurisdiction for national extensions

    Returns:
        Parsed HSCode

    Raises:
        CodeFormatError: with ``kind`` set to InvalidFormat, TooShort,
            TooLong or ReservedChapter
    """
    if isinstance(raw, HSCode):
        raw = raw.digits

    if raw is None or (not isinstance(raw, str) and not isinstance(raw, int)):
        raise CodeFormatError(raw, ErrorKind.INVALID_FORMAT, f"Not a code string: {raw!r}")

    digits = normalize_digits(raw)

    if not is_numeric_code(digits):
        raise CodeFormatError(
            raw, ErrorKind.INVALID_FORMAT,
            f"Code must contain only digits and separators: {raw!r}"
        )

    if len(digits) < MIN_LENGTH:
        raise CodeFormatError(
            raw, ErrorKind.TOO_SHORT,
            f"Code has {len(digits)} digits, at least {MIN_LENGTH} required: {raw!r}"
        )

    if len(digits) > MAX_LENGTH:
        raise CodeFormatError(
            raw, ErrorKind.TOO_LONG,
            f"Code has {len(digits)} digits, at most {MAX_LENGTH} allowed: {raw!r}"
        )

    if is_reserved_chapter(digits[:2]):
        raise CodeFormatError(
            raw, ErrorKind.RESERVED_CHAPTER,
            f"Chapter {digits[:2]} is reserved: {raw!r}"
        )

    return HSCode(digits, version=version, jurisdiction=jurisdiction)


def try_parse_code(raw, version: Optional[str] = None) -> Optional[HSCode]:
    """
    Parse a raw code, returning None instead of raising.

    Args:
        raw: Raw code string
        version: Nomenclature version

    Returns:
        HSCode or None if the string is not a valid code
    """
    try:
        return parse_code(raw, version=version)
    except CodeFormatError:
        return None


def format_code(code) -> str:
    """
    Render a code in dotted notation.

    Examples:
        >>> format_code(parse_code("847130"))
        '8471.30'

        >>> format_code("8471300000")
        '8471.30.00.00'

    Args:
        code: HSCode or raw digit string

    Returns:
        Dotted representation (heading, then pairs of digits)
    """
    digits = normalize_digits(code)
    if len(digits) <= 4:
        return digits

    groups = [digits[:4]]
    rest = digits[4:]
    while rest:
        groups.append(rest[:2])
        rest = rest[2:]
    return ".".join(groups)


def parent_code(digits: str) -> Optional[str]:
    """
    Positional parent of a code.

    Chapters have no parent, headings hang from their chapter, subheadings
    from their heading and national lines from the digits two shorter.

    Args:
        digits: Code digits without separators

    Returns:
        Parent digits or None for a chapter
    """
    if len(digits) <= 2:
        return None
    if len(digits) <= 4:
        return digits[:2]
    if len(digits) <= 6:
        return digits[:4]
    return digits[:len(digits) - 2] if len(digits) % 2 == 0 else digits[:len(digits) - 1]


def level_of(digits: str) -> str:
    """Name the hierarchy level of a code by its length."""
    if len(digits) == 2:
        return "chapter"
    if len(digits) == 4:
        return "heading"
    if len(digits) == 6:
        return "subheading"
    return "national"

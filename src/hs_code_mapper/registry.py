"""
Registries of HS classification entries.

A ``NomenclatureRegistry`` holds every entry of one nomenclature version
(optionally for one jurisdiction's national extensions). It is built once in
bulk and never modified afterwards.

A ``NomenclatureCatalog`` keeps all loaded versions side by side and answers
version-addressed queries. Loading a new version builds the registry off to
the side and swaps a new snapshot into place, so readers never see a
half-built tree.
"""

import logging
import threading
from bisect import bisect_left
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

import pandas as pd

from .codes import MAX_LENGTH, is_numeric_code, is_reserved_chapter, level_of, normalize_digits
from .errors import CodeNotFoundError, StructuralError, VersionUnsupportedError
from .search import SearchHit, SearchIndex

logger = logging.getLogger(__name__)

# Number of individual problems quoted in a StructuralError message
_MAX_REPORTED_PROBLEMS = 5


@dataclass(frozen=True)
class RegistryEntry:
    """A single code of one nomenclature version and what it means."""

    code: str
    description: str
    version: Optional[str] = None
    jurisdiction: Optional[str] = None
    parent: Optional[str] = None
    section: Optional[str] = None
    notes: Tuple[str, ...] = field(default=(), compare=False)

    @property
    def level(self) -> str:
        return level_of(self.code)

    @property
    def chapter(self) -> str:
        return self.code[:2]

    @property
    def heading(self) -> Optional[str]:
        return self.code[:4] if len(self.code) >= 4 else None

    @property
    def subheading(self) -> Optional[str]:
        return self.code[:6] if len(self.code) >= 6 else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "description": self.description,
            "level": self.level,
            "parent": self.parent,
            "section": self.section,
            "notes": list(self.notes),
            "version": self.version,
            "jurisdiction": self.jurisdiction,
        }


def _clean(value) -> Optional[str]:
    """Turn NaN/None/blank cells into None and everything else into a stripped string."""
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _coerce_notes(value) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(n.strip() for n in value.split(";") if n.strip())
    if isinstance(value, float) and pd.isna(value):
        return ()
    return tuple(str(n) for n in value)


def _coerce_row(row) -> Dict[str, Any]:
    """
    Normalize one ingestion row into a dictionary.

    Accepted shapes:
    - RegistryEntry
    - Mapping with keys code, description, parent_chapter, parent_heading,
      section, notes
    - Tuple (code, description, parent_chapter, parent_heading[, section[, notes]])
    """
    if isinstance(row, RegistryEntry):
        return {
            "code": row.code,
            "description": row.description,
            "parent_chapter": None,
            "parent_heading": None,
            "section": row.section,
            "notes": row.notes,
        }

    if isinstance(row, Mapping):
        data = dict(row)
    else:
        values = list(row)
        if len(values) < 2:
            raise StructuralError(f"Entry needs at least a code and a description: {row!r}")
        keys = ["code", "description", "parent_chapter", "parent_heading", "section", "notes"]
        data = dict(zip(keys, values))

    return {
        "code": _clean(data.get("code")),
        "description": _clean(data.get("description")) or "",
        "parent_chapter": _clean(data.get("parent_chapter")),
        "parent_heading": _clean(data.get("parent_heading")),
        "section": _clean(data.get("section")),
        "notes": _coerce_notes(data.get("notes")),
    }


def _resolve_parent(digits: str, known: Mapping[str, Any]) -> Optional[str]:
    """
    Positional parent for a code, given the set of codes in the batch.

    National lines hang from the nearest registered prefix of at least six
    digits; if none is registered the 6-digit subheading is returned so the
    caller can report it as missing.
    """
    if len(digits) == 2:
        return None
    if len(digits) == 4:
        return digits[:2]
    if len(digits) == 6:
        return digits[:4]

    for length in range(len(digits) - 1, 5, -1):
        if digits[:length] in known:
            return digits[:length]
    return digits[:6]


class NomenclatureRegistry:
    """
    All entries of one nomenclature version.

    Usage:
        registry = NomenclatureRegistry.load(
            [
                ("84", "Nuclear reactors, boilers, machinery", None, None),
                ("8471", "Automatic data processing machines", "84", None),
                ("847130", "Portable machines, weighing not more than 10 kg", "84", "8471"),
            ],
            version="2022",
        )

        registry.exists("8471.30")          # True
        registry.lookup("847130").description
        registry.children("8471")           # [RegistryEntry(code='847130', ...)]
        registry.ancestors_of("847130")     # chapter, heading, subheading
    """

    def __init__(
        self,
        entries: Mapping[str, RegistryEntry],
        version: str,
        jurisdiction: Optional[str] = None
    ):
        """
        Wrap an already validated entry mapping. Use ``load`` to build one.

        Args:
            entries: Mapping of code digits to RegistryEntry
            version: Nomenclature version identifier
            jurisdiction: Jurisdiction for national registries, None for the
                international nomenclature
        """
        self.version = version
        self.jurisdiction = jurisdiction
        self._entries = MappingProxyType(dict(entries))
        self._sorted_codes = tuple(sorted(self._entries))
        logger.info(f"Initialized registry {self.name} with {len(self._entries)} entries")

    @property
    def name(self) -> str:
        if self.jurisdiction:
            return f"{self.version}/{self.jurisdiction}"
        return str(self.version)

    @classmethod
    def load(
        cls,
        entries: Iterable,
        version: str,
        jurisdiction: Optional[str] = None
    ) -> "NomenclatureRegistry":
        """
        Build a registry from a batch of ingestion rows.

        Args:
            entries: Rows of (code, description, parent_chapter, parent_heading),
                mappings with the same keys, or RegistryEntry objects
            version: Nomenclature version identifier
            jurisdiction: Jurisdiction for national registries

        Returns:
            NomenclatureRegistry instance

        Raises:
            StructuralError: if any row is malformed, duplicated, or refers to
                a parent that is not part of the batch
        """
        rows: Dict[str, Dict[str, Any]] = {}
        problems: List[str] = []

        for raw_row in entries:
            row = _coerce_row(raw_row)
            digits = normalize_digits(row["code"])

            if not is_numeric_code(digits):
                problems.append(f"code {row['code']!r} is not numeric")
                continue
            if len(digits) not in (2, 4) and not 6 <= len(digits) <= MAX_LENGTH:
                problems.append(f"code {digits} has invalid length {len(digits)}")
                continue
            if jurisdiction is None and len(digits) > 6:
                problems.append(
                    f"code {digits} carries national extension digits but the "
                    f"registry has no jurisdiction"
                )
                continue
            if jurisdiction is None and is_reserved_chapter(digits[:2]):
                problems.append(f"code {digits} is in reserved chapter {digits[:2]}")
                continue
            if digits in rows:
                problems.append(f"code {digits} appears more than once")
                continue

            rows[digits] = row

        built: Dict[str, RegistryEntry] = {}
        for digits, row in rows.items():
            parent = _resolve_parent(digits, rows)

            if parent is not None and parent not in rows:
                problems.append(f"code {digits} references missing parent {parent}")
                continue

            declared_chapter = normalize_digits(row["parent_chapter"]) or None
            if declared_chapter and len(digits) > 2 and declared_chapter != digits[:2]:
                problems.append(
                    f"code {digits} declares chapter {declared_chapter}, expected {digits[:2]}"
                )
                continue

            declared_heading = normalize_digits(row["parent_heading"]) or None
            if declared_heading and len(digits) > 4 and declared_heading != digits[:4]:
                problems.append(
                    f"code {digits} declares heading {declared_heading}, expected {digits[:4]}"
                )
                continue

            built[digits] = RegistryEntry(
                code=digits,
                description=row["description"],
                version=version,
                jurisdiction=jurisdiction,
                parent=parent,
                section=row["section"] if len(digits) == 2 else None,
                notes=row["notes"],
            )

        if problems:
            shown = "; ".join(problems[:_MAX_REPORTED_PROBLEMS])
            more = len(problems) - _MAX_REPORTED_PROBLEMS
            suffix = f" (and {more} more)" if more > 0 else ""
            label = f"{version}/{jurisdiction}" if jurisdiction else version
            raise StructuralError(
                f"Refusing to load version '{label}': {len(problems)} structural "
                f"problem(s): {shown}{suffix}"
            )

        return cls(built, version=version, jurisdiction=jurisdiction)

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        version: str,
        jurisdiction: Optional[str] = None,
        code_column: str = "code",
        description_column: str = "description",
        parent_chapter_column: str = "parent_chapter",
        parent_heading_column: str = "parent_heading",
        section_column: str = "section",
        notes_column: str = "notes"
    ) -> "NomenclatureRegistry":
        """
        Create a registry from a pandas DataFrame.

        Only the code and description columns are required; parent, section
        and notes columns are used when present.

        Args:
            df: DataFrame with one row per code
            version: Nomenclature version identifier
            jurisdiction: Jurisdiction for national registries
            code_column: Name of code column
            description_column: Name of description column
            parent_chapter_column: Name of declared chapter column
            parent_heading_column: Name of declared heading column
            section_column: Name of section column
            notes_column: Name of notes column

        Returns:
            NomenclatureRegistry instance
        """
        if code_column not in df.columns or description_column not in df.columns:
            raise ValueError(
                f"Columns {code_column} and {description_column} must exist in DataFrame. "
                f"Available columns: {df.columns.tolist()}"
            )

        optional = {
            "parent_chapter": parent_chapter_column,
            "parent_heading": parent_heading_column,
            "section": section_column,
            "notes": notes_column,
        }

        rows = []
        for record in df.to_dict(orient="records"):
            row = {
                "code": record[code_column],
                "description": record[description_column],
            }
            for key, column in optional.items():
                if column in df.columns:
                    row[key] = record[column]
            rows.append(row)

        return cls.load(rows, version=version, jurisdiction=jurisdiction)

    @classmethod
    def from_file(
        cls,
        file_path: Union[str, Path],
        version: str,
        jurisdiction: Optional[str] = None,
        delimiter: str = ",",
        encoding: str = "utf-8",
        code_column: str = "code",
        description_column: str = "description",
        **read_csv_kwargs
    ) -> "NomenclatureRegistry":
        """
        Load a registry from a CSV/TXT file.

        Codes are read as strings so leading zeros survive ("010121").

        Args:
            file_path: Path to the entries file
            version: Nomenclature version identifier
            jurisdiction: Jurisdiction for national registries
            delimiter: File delimiter (default: ',')
            encoding: File encoding (default: 'utf-8')
            code_column: Name of the column containing codes
            description_column: Name of the column containing descriptions
            **read_csv_kwargs: Additional arguments for pd.read_csv

        Returns:
            NomenclatureRegistry instance
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Entries file not found: {file_path}")

        read_csv_kwargs.setdefault("dtype", str)
        df = pd.read_csv(
            file_path,
            delimiter=delimiter,
            encoding=encoding,
            **read_csv_kwargs
        )

        logger.info(f"Read {len(df)} rows from {file_path.name}")

        return cls.from_dataframe(
            df,
            version=version,
            jurisdiction=jurisdiction,
            code_column=code_column,
            description_column=description_column,
        )

    def exists(self, code) -> bool:
        """Check if a code (with or without separators) is registered."""
        return normalize_digits(code) in self._entries

    def lookup(self, code) -> RegistryEntry:
        """
        Get the entry for a code.

        Args:
            code: Code string, with or without separators, or HSCode

        Returns:
            RegistryEntry

        Raises:
            CodeNotFoundError: if the code is not registered
        """
        digits = normalize_digits(code)
        try:
            return self._entries[digits]
        except KeyError:
            logger.debug(f"Code not found in {self.name}: {digits}")
            raise CodeNotFoundError(digits, self.name) from None

    def get_description(self, code, default: str = "Unknown") -> str:
        """Get the description of a code, or ``default`` when it is absent."""
        entry = self._entries.get(normalize_digits(code))
        return entry.description if entry is not None else default

    def children(self, code=None) -> List[RegistryEntry]:
        """
        Direct children of a code, ordered by code ascending.

        Args:
            code: Parent code, or None for the list of chapters

        Returns:
            New list of RegistryEntry on every call

        Raises:
            CodeNotFoundError: if the parent code is not registered
        """
        if code is None:
            return [self._entries[c] for c in self._sorted_codes if len(c) == 2]

        digits = normalize_digits(code)
        if digits not in self._entries:
            raise CodeNotFoundError(digits, self.name)

        # Every code sharing the prefix sits in one contiguous run of the sorted codes
        result = []
        start = bisect_left(self._sorted_codes, digits) + 1
        for candidate in self._sorted_codes[start:]:
            if not candidate.startswith(digits):
                break
            entry = self._entries[candidate]
            if entry.parent == digits:
                result.append(entry)
        return result

    def ancestors_of(self, code) -> List[RegistryEntry]:
        """
        Chain of entries from the chapter down to the code itself.

        For a subheading this is [chapter, heading, subheading]; national
        lines add every registered intermediate level.

        Args:
            code: Code string or HSCode

        Returns:
            List of RegistryEntry, shallowest first

        Raises:
            CodeNotFoundError: if any positional level is not registered
        """
        digits = normalize_digits(code)
        if digits not in self._entries:
            raise CodeNotFoundError(digits, self.name)

        levels = [digits[:n] for n in (2, 4, 6) if n <= len(digits)]
        if len(digits) > 6:
            levels.extend(
                digits[:n] for n in range(7, len(digits))
                if digits[:n] in self._entries
            )
            levels.append(digits)

        chain = []
        for level in levels:
            if not self.exists(level):
                raise CodeNotFoundError(level, self.name)
            chain.append(self._entries[level])
        return chain

    def section_of(self, code) -> Optional[str]:
        """Section of the chapter a code belongs to, if the data declares one."""
        chapter = self._entries.get(normalize_digits(code)[:2])
        return chapter.section if chapter is not None else None

    def codes(self) -> List[str]:
        """Get all registered codes in ascending order."""
        return list(self._sorted_codes)

    def entries(self) -> List[RegistryEntry]:
        """Get all entries in ascending code order."""
        return [self._entries[c] for c in self._sorted_codes]

    def get_stats(self) -> Dict[str, int]:
        """Count entries per hierarchy level."""
        stats = {"total_codes": len(self._entries), "chapter": 0, "heading": 0,
                 "subheading": 0, "national": 0}
        for entry in self._entries.values():
            stats[entry.level] += 1
        return stats

    def __contains__(self, code) -> bool:
        return self.exists(code)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, code) -> RegistryEntry:
        return self.lookup(code)

    def __repr__(self) -> str:
        return f"NomenclatureRegistry(name='{self.name}', total_codes={len(self._entries)})"


def _to_date(value) -> Optional[date]:
    if value is None or isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    return date.fromisoformat(str(value))


@dataclass(frozen=True)
class NomenclatureVersion:
    """A dated revision of the classification tree, effective on [effective_from, effective_to)."""

    version_id: str
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None

    def is_effective_on(self, on: date) -> bool:
        if self.effective_from is None:
            return False
        if on < self.effective_from:
            return False
        return self.effective_to is None or on < self.effective_to

    def overlaps(self, other: "NomenclatureVersion") -> bool:
        if self.effective_from is None or other.effective_from is None:
            return False
        self_end = self.effective_to or date.max
        other_end = other.effective_to or date.max
        return self.effective_from < other_end and other.effective_from < self_end


class _Snapshot(NamedTuple):
    registries: Mapping[Tuple[str, Optional[str]], NomenclatureRegistry]
    indexes: Mapping[Tuple[str, Optional[str]], SearchIndex]
    versions: Mapping[str, NomenclatureVersion]
    current: Optional[str]


_EMPTY_SNAPSHOT = _Snapshot(MappingProxyType({}), MappingProxyType({}), MappingProxyType({}), None)


class NomenclatureCatalog:
    """
    Centralized catalog of every loaded nomenclature version.

    Usage:
        catalog = NomenclatureCatalog()

        catalog.load(entries_2017, "2017", effective_from="2017-01-01",
                     effective_to="2022-01-01")
        catalog.load(entries_2022, "2022", effective_from="2022-01-01")
        catalog.load(us_lines_2022, "2022", jurisdiction="US")

        catalog.lookup("847130", "2022")
        catalog.version_in_effect("2019-06-30")    # "2017"
        catalog.search("portable computer", "2022")

    All reads go through one immutable snapshot; ``load`` and ``set_current``
    build a new snapshot and swap it in under a single-writer lock.
    """

    def __init__(self):
        """Initialize empty catalog."""
        self._snapshot = _EMPTY_SNAPSHOT
        self._write_lock = threading.Lock()
        logger.info("Initialized NomenclatureCatalog")

    def load(
        self,
        entries: Iterable,
        version: str,
        jurisdiction: Optional[str] = None,
        effective_from=None,
        effective_to=None,
        make_current: Optional[bool] = None
    ) -> NomenclatureRegistry:
        """
        Ingest a version's dataset and make it visible atomically.

        If the batch is structurally invalid nothing changes: the previously
        loaded version (if any) stays active.

        Args:
            entries: Ingestion rows, see ``NomenclatureRegistry.load``
            version: Nomenclature version identifier
            jurisdiction: Jurisdiction for a national registry
            effective_from: Start of the version's effective range
            effective_to: End (exclusive) of the version's effective range
            make_current: Whether the version becomes current; by default it
                does when nothing is current yet or it is in effect today

        Returns:
            The newly built NomenclatureRegistry

        Raises:
            StructuralError: if the batch is invalid or the date range overlaps
                another version
        """
        return self.add_registry(
            NomenclatureRegistry.load(entries, version, jurisdiction=jurisdiction),
            effective_from=effective_from,
            effective_to=effective_to,
            make_current=make_current,
        )

    def add_registry(
        self,
        registry: NomenclatureRegistry,
        effective_from=None,
        effective_to=None,
        make_current: Optional[bool] = None
    ) -> NomenclatureRegistry:
        """Publish an already built registry (see ``load``)."""
        key = (registry.version, registry.jurisdiction)
        index = SearchIndex(registry)

        with self._write_lock:
            snapshot = self._snapshot
            versions = dict(snapshot.versions)
            known = versions.get(registry.version)

            if known is None or effective_from is not None or effective_to is not None:
                candidate = NomenclatureVersion(
                    registry.version,
                    _to_date(effective_from) if effective_from is not None else (known and known.effective_from),
                    _to_date(effective_to) if effective_to is not None else (known and known.effective_to),
                )
                self._check_overlap(candidate, versions)
                versions[registry.version] = candidate

            registries = dict(snapshot.registries)
            indexes = dict(snapshot.indexes)
            if key in registries:
                logger.info(f"Replacing registry {registry.name}")
            registries[key] = registry
            indexes[key] = index

            current = snapshot.current
            if registry.jurisdiction is None:
                if make_current is None:
                    make_current = (
                        current is None
                        or versions[registry.version].is_effective_on(date.today())
                    )
                if make_current:
                    current = registry.version

            self._snapshot = _Snapshot(
                MappingProxyType(registries),
                MappingProxyType(indexes),
                MappingProxyType(versions),
                current,
            )

        logger.info(
            f"Loaded registry {registry.name} with {len(registry)} entries "
            f"(current version: {current})"
        )
        return registry

    @staticmethod
    def _check_overlap(candidate: NomenclatureVersion, versions: Mapping[str, NomenclatureVersion]):
        if (candidate.effective_from is not None and candidate.effective_to is not None
                and candidate.effective_to <= candidate.effective_from):
            raise StructuralError(
                f"Version '{candidate.version_id}' ends before it starts"
            )
        for other in versions.values():
            if other.version_id != candidate.version_id and candidate.overlaps(other):
                raise StructuralError(
                    f"Version '{candidate.version_id}' overlaps the effective range "
                    f"of version '{other.version_id}'"
                )

    def set_current(self, version: str):
        """Point the catalog's current version at an already loaded version."""
        with self._write_lock:
            snapshot = self._snapshot
            if version not in snapshot.versions:
                raise VersionUnsupportedError(version, snapshot.versions.keys())
            self._snapshot = snapshot._replace(current=version)
        logger.info(f"Current version set to {version}")

    def remove_version(self, version: str):
        """Drop a version and all its jurisdiction registries."""
        with self._write_lock:
            snapshot = self._snapshot
            if version not in snapshot.versions:
                logger.warning(f"Version '{version}' not found, nothing to remove")
                return

            registries = {k: v for k, v in snapshot.registries.items() if k[0] != version}
            indexes = {k: v for k, v in snapshot.indexes.items() if k[0] != version}
            versions = {k: v for k, v in snapshot.versions.items() if k != version}
            current = None if snapshot.current == version else snapshot.current

            self._snapshot = _Snapshot(
                MappingProxyType(registries),
                MappingProxyType(indexes),
                MappingProxyType(versions),
                current,
            )
        logger.info(f"Removed version: {version}")

    def versions(self) -> List[str]:
        """Loaded version identifiers, ordered by effective date where known."""
        ordered = list(self._snapshot.versions.values())
        ordered.sort(key=lambda v: v.effective_from or date.min)
        return [v.version_id for v in ordered]

    def has_version(self, version: str) -> bool:
        return version in self._snapshot.versions

    def get_version(self, version: str) -> NomenclatureVersion:
        snapshot = self._snapshot
        if version not in snapshot.versions:
            raise VersionUnsupportedError(version, snapshot.versions.keys())
        return snapshot.versions[version]

    def current_version(self) -> Optional[str]:
        """The version queries default to, or None when nothing is loaded."""
        return self._snapshot.current

    def version_in_effect(self, on) -> str:
        """
        Version whose effective range contains a given date.

        Historical transactions must resolve against the version in force on
        their transaction date rather than the current one.

        Args:
            on: date, datetime or ISO date string

        Returns:
            Version identifier

        Raises:
            VersionUnsupportedError: if no loaded version covers the date
        """
        on = _to_date(on)
        snapshot = self._snapshot
        for version in snapshot.versions.values():
            if version.is_effective_on(on):
                return version.version_id
        raise VersionUnsupportedError(f"in effect on {on.isoformat()}", snapshot.versions.keys())

    def jurisdictions(self, version: str) -> List[str]:
        """Jurisdictions with a national registry for a version."""
        return sorted(
            j for (v, j) in self._snapshot.registries if v == version and j is not None
        )

    def has_jurisdiction(self, version: str, jurisdiction: str) -> bool:
        return (version, jurisdiction) in self._snapshot.registries

    def get_registry(
        self,
        version: Optional[str] = None,
        jurisdiction: Optional[str] = None
    ) -> NomenclatureRegistry:
        """
        Get a loaded registry.

        Args:
            version: Version identifier (defaults to the current version)
            jurisdiction: Jurisdiction, None for the international registry

        Returns:
            NomenclatureRegistry

        Raises:
            VersionUnsupportedError: if the version (or its jurisdiction
                registry) was never loaded
        """
        snapshot = self._snapshot
        return snapshot.registries[self._registry_key(snapshot, version, jurisdiction)]

    @staticmethod
    def _registry_key(
        snapshot: _Snapshot,
        version: Optional[str],
        jurisdiction: Optional[str]
    ) -> Tuple[str, Optional[str]]:
        if version is None:
            version = snapshot.current

        key = (version, jurisdiction)
        if key not in snapshot.registries:
            label = f"{version}/{jurisdiction}" if jurisdiction else version
            raise VersionUnsupportedError(label, [
                f"{v}/{j}" if j else v for (v, j) in snapshot.registries
            ])
        return key

    def exists(self, code, version: Optional[str] = None, jurisdiction: Optional[str] = None) -> bool:
        return self.get_registry(version, jurisdiction).exists(code)

    def lookup(self, code, version: Optional[str] = None, jurisdiction: Optional[str] = None) -> RegistryEntry:
        return self.get_registry(version, jurisdiction).lookup(code)

    def children(self, code=None, version: Optional[str] = None,
                 jurisdiction: Optional[str] = None) -> List[RegistryEntry]:
        return self.get_registry(version, jurisdiction).children(code)

    def ancestors_of(self, code, version: Optional[str] = None,
                     jurisdiction: Optional[str] = None) -> List[RegistryEntry]:
        return self.get_registry(version, jurisdiction).ancestors_of(code)

    def get_description(self, code, version: Optional[str] = None, default: str = "Unknown") -> str:
        return self.get_registry(version).get_description(code, default=default)

    def search(
        self,
        query: str,
        version: Optional[str] = None,
        chapters: Optional[Iterable[str]] = None,
        limit: int = 10,
        mode: str = "prefix",
        jurisdiction: Optional[str] = None
    ) -> List[SearchHit]:
        """
        Rank the entries of one version against a free-text query.

        See ``SearchIndex.search`` for the modes and ordering guarantees.
        """
        snapshot = self._snapshot
        index = snapshot.indexes[self._registry_key(snapshot, version, jurisdiction)]
        return index.search(query, chapters=chapters, limit=limit, mode=mode)

    def get_all_stats(self) -> Dict[str, Dict[str, int]]:
        """Get statistics for all loaded registries."""
        return {
            registry.name: registry.get_stats()
            for registry in self._snapshot.registries.values()
        }

    def __len__(self) -> int:
        """Return number of loaded versions."""
        return len(self._snapshot.versions)

    def __repr__(self) -> str:
        registry_info = ", ".join(
            f"{registry.name}({len(registry)} codes)"
            for registry in self._snapshot.registries.values()
        )
        return f"NomenclatureCatalog({registry_info})"


# Global catalog instance (optional convenience)
_default_catalog: Optional[NomenclatureCatalog] = None


def get_default_catalog() -> NomenclatureCatalog:
    """Get or create the process-wide catalog instance."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = NomenclatureCatalog()
    return _default_catalog

"""
Correlation of HS codes between nomenclature versions.

A correlation table lists directed edges from a code in one version to one
or more codes in another version. Each edge carries the confidence the source
data declares for it:

- exact:     unambiguous one-to-one
- probable:  heuristic single best match
- uncertain: several plausible targets
- split:     one old code became several new codes
- merge:     several old codes became one new code

Edges are directed; nothing here derives the reverse direction.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

import pandas as pd

from .codes import HSCode, MAX_LENGTH, is_numeric_code, normalize_digits
from .errors import StructuralError, VersionUnsupportedError

logger = logging.getLogger(__name__)

_MAX_REPORTED_PROBLEMS = 5


class Confidence(str, Enum):
    """Closed set of correlation verdicts."""

    EXACT = "exact"
    PROBABLE = "probable"
    UNCERTAIN = "uncertain"
    SPLIT = "split"
    MERGE = "merge"
    NOT_FOUND = "not_found"

    def __str__(self) -> str:
        return self.value


# Verdicts that may appear on an edge in a correlation table
EDGE_CONFIDENCES = (
    Confidence.EXACT,
    Confidence.PROBABLE,
    Confidence.UNCERTAIN,
    Confidence.SPLIT,
    Confidence.MERGE,
)

# Weakest-link order used when chaining several tables
_STRENGTH = {
    Confidence.EXACT: 0,
    Confidence.PROBABLE: 1,
    Confidence.UNCERTAIN: 2,
    Confidence.MERGE: 3,
    Confidence.SPLIT: 4,
}


@dataclass(frozen=True)
class CorrelationEdge:
    """A directed link from (from_version, from_code) to (to_version, to_code)."""

    from_version: str
    from_code: str
    to_version: str
    to_code: str
    confidence: Confidence
    weight: float = 1.0


@dataclass
class Conversion:
    """Result of projecting one code onto another version."""

    source_code: HSCode
    from_version: str
    to_version: str
    target_code: Optional[HSCode]
    confidence: Confidence
    alternatives: List[HSCode] = field(default_factory=list)
    fallback_used: bool = False
    merged_sources: List[HSCode] = field(default_factory=list)
    path: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "source_code": self.source_code.digits,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "target_code": self.target_code.digits if self.target_code else None,
            "confidence": self.confidence.value,
            "alternatives": [c.digits for c in self.alternatives],
            "fallback_used": self.fallback_used,
            "merged_sources": [c.digits for c in self.merged_sources],
            "path": list(self.path),
        }


def _coerce_confidence(value) -> Confidence:
    if isinstance(value, Confidence):
        confidence = value
    else:
        confidence = Confidence(str(value).strip().lower())
    if confidence not in EDGE_CONFIDENCES:
        raise ValueError(f"'{confidence.value}' cannot be declared on an edge")
    return confidence


def _coerce_weight(value) -> float:
    if value is None:
        return 1.0
    weight = float(value)
    if pd.isna(weight):
        return 1.0
    return weight


class CorrelationTable:
    """
    Directed correlation edges between nomenclature versions.

    Usage:
        table = CorrelationTable.from_records([
            ("2017", "847130", "2022", "847130", "exact", 1.0),
            ("2017", "851712", "2022", "851713", "split", 0.6),
            ("2017", "851712", "2022", "851714", "split", 0.4),
        ])

        table.edges_for("851712", "2017", "2022")

    The table checks itself on construction: a split source must fan out to
    at least two targets and a merge target must collect at least two sources.
    """

    def __init__(self, edges: Iterable[CorrelationEdge]):
        """
        Args:
            edges: CorrelationEdge objects

        Raises:
            StructuralError: if the edges are inconsistent
        """
        problems: List[str] = []
        forward: Dict[Tuple[str, str], Dict[str, List[CorrelationEdge]]] = defaultdict(lambda: defaultdict(list))
        incoming: Dict[Tuple[str, str], Dict[str, List[CorrelationEdge]]] = defaultdict(lambda: defaultdict(list))
        seen: Set[Tuple[str, str, str, str]] = set()

        for edge in edges:
            key = (edge.from_version, edge.from_code, edge.to_version, edge.to_code)
            if edge.from_version == edge.to_version:
                problems.append(f"edge {edge.from_code} -> {edge.to_code} stays in version {edge.from_version}")
                continue
            if key in seen:
                problems.append(
                    f"edge {edge.from_version}:{edge.from_code} -> "
                    f"{edge.to_version}:{edge.to_code} appears more than once"
                )
                continue
            if edge.weight < 0:
                problems.append(f"edge {edge.from_code} -> {edge.to_code} has negative weight")
                continue
            seen.add(key)
            pair = (edge.from_version, edge.to_version)
            forward[pair][edge.from_code].append(edge)
            incoming[pair][edge.to_code].append(edge)

        for pair, by_source in forward.items():
            for source, source_edges in by_source.items():
                if any(e.confidence is Confidence.SPLIT for e in source_edges) and len(source_edges) < 2:
                    problems.append(
                        f"{pair[0]}:{source} is declared split but has a single target"
                    )

        for pair, by_target in incoming.items():
            for target, target_edges in by_target.items():
                merging = [e for e in target_edges if e.confidence is Confidence.MERGE]
                if merging and len(merging) < 2:
                    problems.append(
                        f"{pair[1]}:{target} is declared merge but has a single source"
                    )

        if problems:
            shown = "; ".join(problems[:_MAX_REPORTED_PROBLEMS])
            more = len(problems) - _MAX_REPORTED_PROBLEMS
            suffix = f" (and {more} more)" if more > 0 else ""
            raise StructuralError(
                f"Refusing to load correlation table: {len(problems)} problem(s): {shown}{suffix}"
            )

        self._forward = {
            pair: {code: tuple(es) for code, es in by_source.items()}
            for pair, by_source in forward.items()
        }
        self._incoming = {
            pair: {code: tuple(es) for code, es in by_target.items()}
            for pair, by_target in incoming.items()
        }
        self._size = len(seen)
        logger.info(f"Initialized correlation table with {self._size} edges across {len(self._forward)} version pairs")

    @classmethod
    def from_records(cls, records: Iterable) -> "CorrelationTable":
        """
        Build a table from ingestion tuples or mappings.

        Args:
            records: (from_version, from_code, to_version, to_code, confidence,
                weight) tuples, or mappings with those keys; weight is optional

        Returns:
            CorrelationTable instance
        """
        keys = ["from_version", "from_code", "to_version", "to_code", "confidence", "weight"]
        edges = []
        problems = []

        for record in records:
            if isinstance(record, CorrelationEdge):
                edges.append(record)
                continue
            data = dict(record) if isinstance(record, Mapping) else dict(zip(keys, record))

            from_code = normalize_digits(data.get("from_code"))
            to_code = normalize_digits(data.get("to_code"))
            bad = [c for c in (from_code, to_code) if not is_numeric_code(c) or not 4 <= len(c) <= MAX_LENGTH]
            if bad:
                problems.append(f"invalid code(s) {bad} in {record!r}")
                continue
            if any(data.get(k) is None or not str(data.get(k)).strip() for k in ("from_version", "to_version")):
                problems.append(f"missing version in {record!r}")
                continue
            try:
                confidence = _coerce_confidence(data.get("confidence"))
                weight = _coerce_weight(data.get("weight"))
            except ValueError as e:
                problems.append(f"{e} in {record!r}")
                continue

            edges.append(CorrelationEdge(
                from_version=str(data.get("from_version")).strip(),
                from_code=from_code,
                to_version=str(data.get("to_version")).strip(),
                to_code=to_code,
                confidence=confidence,
                weight=weight,
            ))

        if problems:
            shown = "; ".join(problems[:_MAX_REPORTED_PROBLEMS])
            raise StructuralError(
                f"Refusing to load correlation table: {len(problems)} bad record(s): {shown}"
            )

        return cls(edges)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "CorrelationTable":
        """
        Create a table from a DataFrame with columns from_version, from_code,
        to_version, to_code, confidence and (optionally) weight.
        """
        required = ["from_version", "from_code", "to_version", "to_code", "confidence"]
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ValueError(
                f"Correlation columns {missing} not found. "
                f"Available columns: {df.columns.tolist()}"
            )
        return cls.from_records(df.to_dict(orient="records"))

    @classmethod
    def from_file(
        cls,
        file_path: Union[str, Path],
        delimiter: str = ",",
        encoding: str = "utf-8",
        **read_csv_kwargs
    ) -> "CorrelationTable":
        """
        Load a table from a CSV/TXT file.

        Args:
            file_path: Path to the correlation file
            delimiter: File delimiter
            encoding: File encoding
            **read_csv_kwargs: Additional arguments for pd.read_csv

        Returns:
            CorrelationTable instance
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Correlation file not found: {file_path}")

        read_csv_kwargs.setdefault("dtype", {
            "from_version": str, "from_code": str, "to_version": str, "to_code": str,
        })
        df = pd.read_csv(file_path, delimiter=delimiter, encoding=encoding, **read_csv_kwargs)
        logger.info(f"Read {len(df)} correlation rows from {file_path.name}")
        return cls.from_dataframe(df)

    @classmethod
    def merge(cls, *tables: "CorrelationTable") -> "CorrelationTable":
        """Combine several tables into one (edges must not repeat)."""
        return cls(edge for table in tables for edge in table.edges())

    def edges_for(self, code, from_version: str, to_version: str) -> Tuple[CorrelationEdge, ...]:
        """Edges leaving ``code`` in ``from_version`` towards ``to_version``."""
        return self._forward.get((from_version, to_version), {}).get(normalize_digits(code), ())

    def sources_of(self, code, from_version: str, to_version: str) -> Tuple[CorrelationEdge, ...]:
        """Edges arriving at ``code`` in ``to_version`` from ``from_version``."""
        return self._incoming.get((from_version, to_version), {}).get(normalize_digits(code), ())

    def has_pair(self, from_version: str, to_version: str) -> bool:
        return (from_version, to_version) in self._forward

    def pairs(self) -> List[Tuple[str, str]]:
        """Directed version pairs with at least one edge."""
        return sorted(self._forward)

    def versions(self) -> Set[str]:
        return {v for pair in self._forward for v in pair}

    def edges(self) -> List[CorrelationEdge]:
        return [
            edge
            for pair in sorted(self._forward)
            for code in sorted(self._forward[pair])
            for edge in self._forward[pair][code]
        ]

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"CorrelationTable(edges={self._size}, pairs={self.pairs()})"


class CorrelationEngine:
    """
    Project codes from one nomenclature version onto another.

    Usage:
        engine = CorrelationEngine(table, catalog)

        result = engine.correlate("847130", "2017", "2022")
        result.confidence      # Confidence.EXACT
        result.target_code     # HSCode(digits='847130', version='2022')

    The engine never turns a declared split or merge into a one-to-one
    mapping; ambiguous results carry every candidate in ``alternatives``.
    """

    def __init__(self, table: CorrelationTable, catalog=None):
        """
        Args:
            table: Correlation edges
            catalog: Optional NomenclatureCatalog, used to accept a heading
                that exists in both versions as a fallback target
        """
        self.table = table
        self.catalog = catalog

    def correlate(self, code, from_version: str, to_version: str) -> Conversion:
        """
        Map a code from ``from_version`` to ``to_version``.

        Args:
            code: Code string or HSCode
            from_version: Version the code belongs to
            to_version: Version to project onto

        Returns:
            Conversion

        Raises:
            VersionUnsupportedError: if either version is unknown to both the
                table and the catalog
        """
        digits = normalize_digits(code)

        if from_version == to_version:
            return Conversion(
                source_code=HSCode(digits, version=from_version),
                from_version=from_version,
                to_version=to_version,
                target_code=HSCode(digits, version=to_version),
                confidence=Confidence.EXACT,
                path=[from_version],
            )

        self._check_versions(from_version, to_version)

        if self.table.has_pair(from_version, to_version):
            return self._direct(digits, from_version, to_version)

        path = self._find_path(from_version, to_version)
        if path is None:
            logger.warning(f"No correlation tables lead from {from_version} to {to_version}")
            return self._not_found(digits, from_version, to_version)

        logger.debug(f"Chaining {digits} through versions {path}")
        return self._chained(digits, path)

    def correlate_many(self, codes: Iterable, from_version: str, to_version: str) -> pd.DataFrame:
        """
        Correlate a batch of codes.

        Returns:
            DataFrame with columns source_code, target_code, confidence,
            alternatives (semicolon separated) and fallback_used
        """
        rows = []
        for code in codes:
            result = self.correlate(code, from_version, to_version)
            rows.append({
                "source_code": result.source_code.digits,
                "target_code": result.target_code.digits if result.target_code else None,
                "confidence": result.confidence.value,
                "alternatives": ";".join(c.digits for c in result.alternatives),
                "fallback_used": result.fallback_used,
            })
        # object dtype keeps a missing target as None rather than NaN
        df = pd.DataFrame(
            rows,
            columns=["source_code", "target_code", "confidence", "alternatives", "fallback_used"],
            dtype=object,
        )
        df["fallback_used"] = df["fallback_used"].astype(bool)
        return df

    def _check_versions(self, from_version: str, to_version: str):
        known = set(self.table.versions())
        if self.catalog is not None:
            known.update(self.catalog.versions())
        for version in (from_version, to_version):
            if version not in known:
                raise VersionUnsupportedError(version, sorted(known))

    def _not_found(self, digits: str, from_version: str, to_version: str, path=None) -> Conversion:
        return Conversion(
            source_code=HSCode(digits, version=from_version),
            from_version=from_version,
            to_version=to_version,
            target_code=None,
            confidence=Confidence.NOT_FOUND,
            path=list(path or [from_version, to_version]),
        )

    def _heading_survives(self, heading: str, from_version: str, to_version: str) -> bool:
        if self.catalog is None:
            return False
        for version in (from_version, to_version):
            if not self.catalog.has_version(version) or not self.catalog.exists(heading, version):
                return False
        return True

    def _direct(self, digits: str, from_version: str, to_version: str) -> Conversion:
        edges = self.table.edges_for(digits, from_version, to_version)
        fallback = False

        if not edges and len(digits) > 4:
            heading = digits[:4]
            edges = self.table.edges_for(heading, from_version, to_version)
            fallback = True
            if not edges and self._heading_survives(heading, from_version, to_version):
                logger.debug(f"{digits} falls back to surviving heading {heading}")
                return Conversion(
                    source_code=HSCode(digits, version=from_version),
                    from_version=from_version,
                    to_version=to_version,
                    target_code=HSCode(heading, version=to_version),
                    confidence=Confidence.PROBABLE,
                    fallback_used=True,
                    path=[from_version, to_version],
                )

        if not edges:
            logger.debug(f"No correlation for {digits} from {from_version} to {to_version}")
            return self._not_found(digits, from_version, to_version)

        result = self._classify(digits, edges, from_version, to_version)
        if fallback:
            result.fallback_used = True
            # A heading-level match is never better than probable
            if result.confidence is Confidence.EXACT:
                result.confidence = Confidence.PROBABLE
        return result

    def _classify(
        self,
        digits: str,
        edges: Tuple[CorrelationEdge, ...],
        from_version: str,
        to_version: str
    ) -> Conversion:
        ranked = sorted(edges, key=lambda e: (-e.weight, e.to_code))
        candidates = [HSCode(e.to_code, version=to_version) for e in ranked]
        declared = {e.confidence for e in edges}

        result = Conversion(
            source_code=HSCode(digits, version=from_version),
            from_version=from_version,
            to_version=to_version,
            target_code=None,
            confidence=Confidence.UNCERTAIN,
            path=[from_version, to_version],
        )

        if Confidence.SPLIT in declared:
            result.confidence = Confidence.SPLIT
            result.alternatives = candidates
        elif Confidence.MERGE in declared:
            result.confidence = Confidence.MERGE
            if len(candidates) == 1:
                result.target_code = candidates[0]
                result.merged_sources = sorted(
                    (HSCode(e.from_code, version=from_version)
                     for e in self.table.sources_of(candidates[0].digits, from_version, to_version)
                     if e.confidence is Confidence.MERGE and e.from_code != ranked[0].from_code),
                    key=lambda c: c.digits,
                )
            else:
                result.alternatives = candidates
        elif len(candidates) > 1:
            result.confidence = Confidence.UNCERTAIN
            result.alternatives = candidates
        else:
            result.confidence = ranked[0].confidence
            result.target_code = candidates[0]

        return result

    def _find_path(self, from_version: str, to_version: str) -> Optional[List[str]]:
        """Shortest chain of versions connected by correlation tables."""
        adjacency: Dict[str, List[str]] = defaultdict(list)
        for source, target in self.table.pairs():
            adjacency[source].append(target)

        previous: Dict[str, Optional[str]] = {from_version: None}
        queue = deque([from_version])
        while queue:
            version = queue.popleft()
            if version == to_version:
                path = []
                while version is not None:
                    path.append(version)
                    version = previous[version]
                return path[::-1]
            for neighbour in adjacency[version]:
                if neighbour not in previous:
                    previous[neighbour] = version
                    queue.append(neighbour)
        return None

    def _chained(self, digits: str, path: List[str]) -> Conversion:
        """
        Follow a chain of tables hop by hop, fanning out over every branch.

        The weakest hop decides the confidence, with two demotions to
        ``uncertain``: when some branch of a fan-out has no onward edge, and
        when the branches of a split end up in a single code again.
        """
        frontier = [digits]
        worst = Confidence.EXACT
        fallback = False
        partial = False
        merged: List[HSCode] = []

        for step_from, step_to in zip(path, path[1:]):
            next_frontier: List[str] = []
            merged = []
            for current in frontier:
                step = self._direct(current, step_from, step_to)
                if step.confidence is Confidence.NOT_FOUND:
                    partial = True
                    continue
                fallback = fallback or step.fallback_used
                if _STRENGTH[step.confidence] > _STRENGTH[worst]:
                    worst = step.confidence
                reached = [step.target_code] if step.target_code else step.alternatives
                for code in reached:
                    if code.digits not in next_frontier:
                        next_frontier.append(code.digits)
                for code in step.merged_sources:
                    if code not in merged:
                        merged.append(code)
            if not next_frontier:
                return self._not_found(digits, path[0], path[-1], path=path)
            if len(next_frontier) > 1 and _STRENGTH[worst] < _STRENGTH[Confidence.UNCERTAIN]:
                worst = Confidence.UNCERTAIN
            sources = frontier
            frontier = next_frontier

        to_version = path[-1]
        candidates = [HSCode(c, version=to_version) for c in frontier]

        confidence = worst
        if partial:
            logger.debug(f"Some branches of {digits} have no correlation along {path}")
            confidence = Confidence.UNCERTAIN
        elif worst is Confidence.SPLIT and len(candidates) < 2:
            confidence = Confidence.UNCERTAIN

        result = Conversion(
            source_code=HSCode(digits, version=path[0]),
            from_version=path[0],
            to_version=to_version,
            target_code=None,
            confidence=confidence,
            fallback_used=fallback,
            path=list(path),
        )
        if partial or len(candidates) > 1:
            result.alternatives = candidates
        else:
            result.target_code = candidates[0]
            if confidence is Confidence.MERGE:
                # Codes merged on the last hop, other than this chain's own branches
                result.merged_sources = sorted(
                    (c for c in merged if c.digits not in sources),
                    key=lambda c: c.digits,
                )
        return result

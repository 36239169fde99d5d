"""
Free-text search over registry descriptions.

Three matching modes are supported:
- exact:  the query must appear literally (case-insensitive) in the description
- prefix: every query word must start some description word
- fuzzy:  query words may be a small edit distance away from description words

Queries made only of digits and separators match code prefixes instead of
descriptions, in every mode.

Results are ordered by score (descending), then by shorter description, then
by ascending code, so identical inputs always produce identical output.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
from rapidfuzz.distance import Levenshtein

from .codes import normalize_digits

logger = logging.getLogger(__name__)

SEARCH_MODES = ("exact", "prefix", "fuzzy")

_TOKEN_RE = re.compile(r'[^\W_]+', flags=re.UNICODE)
_CODE_QUERY_RE = re.compile(r'^[0-9.\s\-]+$')

# Scores are rounded so that float noise never decides an ordering
_SCORE_DIGITS = 6

Span = Tuple[int, int]


@dataclass(frozen=True)
class SearchHit:
    """One ranked search result."""

    code: str
    description: str
    score: float
    highlights: Tuple[Span, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "code": self.code,
            "description": self.description,
            "score": self.score,
            "highlights": [list(span) for span in self.highlights],
        }


def max_edits_for(token: str) -> int:
    """Edit distance allowed for a query word in fuzzy mode."""
    if len(token) <= 2:
        return 0
    if len(token) <= 4:
        return 1
    return 2


def tokenize(text: str) -> List[Tuple[str, int]]:
    """Split lower-cased text into (word, start offset) pairs."""
    return [(m.group(0), m.start()) for m in _TOKEN_RE.finditer(text.lower())]


class _Document:
    __slots__ = ("code", "description", "lowered", "tokens")

    def __init__(self, code: str, description: str):
        self.code = code
        self.description = description
        self.lowered = description.lower()
        self.tokens = tokenize(description)


class SearchIndex:
    """
    Search index over the entries of one registry.

    Usage:
        index = SearchIndex(registry)
        hits = index.search("portable computer", mode="prefix", limit=5)
        for hit in hits:
            print(hit.code, hit.score, hit.description)

    The index is built once and never changes; each ``search`` call
    re-executes the query from scratch.
    """

    def __init__(self, registry):
        """
        Build the index.

        Args:
            registry: NomenclatureRegistry (anything exposing ``entries()``)
        """
        self.name = getattr(registry, "name", "SearchIndex")
        self._documents = [
            _Document(entry.code, entry.description)
            for entry in registry.entries()
        ]
        logger.debug(f"Indexed {len(self._documents)} descriptions for {self.name}")

    def search(
        self,
        query: str,
        chapters: Optional[Iterable] = None,
        limit: int = 10,
        mode: str = "prefix"
    ) -> List[SearchHit]:
        """
        Rank codes by relevance to a query.

        Args:
            query: Free-text query or code prefix
            chapters: Restrict results to these 2-digit chapters
            limit: Maximum number of results (must be positive)
            mode: One of "exact", "prefix", "fuzzy"

        Returns:
            List of SearchHit, best first
        """
        if mode not in SEARCH_MODES:
            raise ValueError(f"Unknown search mode '{mode}'. Expected one of {SEARCH_MODES}")
        if not isinstance(limit, int) or limit <= 0:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")

        query = (query or "").strip()
        if not query:
            return []

        chapter_filter = None
        if chapters is not None:
            chapter_filter = {str(c).strip().zfill(2) for c in chapters}

        if _CODE_QUERY_RE.match(query):
            digits = normalize_digits(query)
            if not digits:
                return []
            matcher = self._code_matcher(digits)
        elif mode == "exact":
            matcher = self._exact_matcher(query.lower())
        else:
            query_tokens = [token for token, _ in tokenize(query)]
            if not query_tokens:
                return []
            if mode == "prefix":
                matcher = self._prefix_matcher(query_tokens)
            else:
                matcher = self._fuzzy_matcher(query_tokens)

        hits = []
        for doc in self._documents:
            if chapter_filter is not None and doc.code[:2] not in chapter_filter:
                continue
            matched = matcher(doc)
            if matched is None:
                continue
            score, highlights = matched
            hits.append(SearchHit(
                code=doc.code,
                description=doc.description,
                score=round(score, _SCORE_DIGITS),
                highlights=tuple(sorted(set(highlights))),
            ))

        hits.sort(key=lambda hit: (-hit.score, len(hit.description), hit.code))
        logger.debug(f"Query {query!r} ({mode}) matched {len(hits)} codes in {self.name}")
        return hits[:limit]

    @staticmethod
    def _code_matcher(digits: str):
        def match(doc: _Document):
            if not doc.code.startswith(digits):
                return None
            return len(digits) / len(doc.code), []
        return match

    @staticmethod
    def _exact_matcher(needle: str):
        def match(doc: _Document):
            spans = []
            start = doc.lowered.find(needle)
            while start != -1:
                spans.append((start, start + len(needle)))
                start = doc.lowered.find(needle, start + 1)
            if not spans:
                return None

            coverage = min(1.0, len(needle) / len(doc.lowered))
            word_starts = {offset for _, offset in doc.tokens}
            # Matches that begin on a word outrank matches inside a word
            if any(s in word_starts for s, _ in spans):
                return 0.5 + 0.5 * coverage, spans
            return 0.5 * coverage, spans
        return match

    @staticmethod
    def _prefix_matcher(query_tokens: List[str]):
        def match(doc: _Document):
            ratios = []
            spans = []
            for query_token in query_tokens:
                best = None
                for token, offset in doc.tokens:
                    if token.startswith(query_token):
                        ratio = len(query_token) / len(token)
                        if best is None or ratio > best[0]:
                            best = (ratio, offset)
                if best is None:
                    return None
                ratios.append(best[0])
                spans.append((best[1], best[1] + len(query_token)))
            return sum(ratios) / len(ratios), spans
        return match

    @staticmethod
    def _fuzzy_matcher(query_tokens: List[str]):
        def match(doc: _Document):
            total = 0.0
            spans = []
            for query_token in query_tokens:
                allowed = max_edits_for(query_token)
                best = None
                for token, offset in doc.tokens:
                    if token.startswith(query_token):
                        similarity = len(query_token) / len(token)
                        span = (offset, offset + len(query_token))
                    else:
                        distance = Levenshtein.distance(query_token, token, score_cutoff=allowed)
                        if distance > allowed:
                            continue
                        similarity = 1.0 - distance / max(len(query_token), len(token))
                        span = (offset, offset + len(token))
                    if best is None or similarity > best[0]:
                        best = (similarity, span)
                if best is not None:
                    total += best[0]
                    spans.append(best[1])
            if not spans:
                return None
            return total / len(query_tokens), spans
        return match

    def __len__(self) -> int:
        return len(self._documents)

    def __repr__(self) -> str:
        return f"SearchIndex(name='{self.name}', documents={len(self._documents)})"


def hits_to_dataframe(hits: List[SearchHit]) -> pd.DataFrame:
    """
    Convert search hits into a DataFrame with code, description and score columns.

    Args:
        hits: Result of ``SearchIndex.search``

    Returns:
        DataFrame with one row per hit, in ranking order
    """
    return pd.DataFrame(
        [{"code": h.code, "description": h.description, "score": h.score} for h in hits],
        columns=["code", "description", "score"],
    )

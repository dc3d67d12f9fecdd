"""Collection matching — resolve free-text hints against the merchant catalog.

Scoring is pluggable: scorers subclass BaseScorer and register by name
(selected with the ``scorer`` setting). The default scorer tries, in order
of preference:

1. ``exact``     normalized strings are equal (score 1.0)
2. ``substring`` the shorter string (at least ``min_containment_length``
                 characters) starts at a word boundary inside the longer one
                 (score = shorter / longer length)
3. ``token``     Jaccard overlap of content tokens reaches
                 ``similarity_threshold`` (score = the overlap)

Candidates rank by method, then score, then source (collections are more
specific than product types), then catalog order.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from bundlecraft.core.config import AssemblyConfig
from bundlecraft.core.models import (
    SOURCE_COLLECTION,
    SOURCE_PRODUCT_TYPE,
    CatalogContext,
    Category,
)

METHOD_EXACT = "exact"
METHOD_SUBSTRING = "substring"
METHOD_TOKEN = "token"

METHOD_RANK = {METHOD_EXACT: 3, METHOD_SUBSTRING: 2, METHOD_TOKEN: 1}
SOURCE_RANK = {SOURCE_COLLECTION: 0, SOURCE_PRODUCT_TYPE: 1}

STOPWORDS = {
    "a", "an", "and", "any", "all", "for", "from", "in", "of", "on",
    "or", "our", "my", "the", "to", "with",
}

_PUNCT_RE = re.compile(r"[^\w\s]|_")
_SPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase, turn punctuation into spaces, collapse and trim whitespace."""
    text = _PUNCT_RE.sub(" ", text.lower())
    return _SPACE_RE.sub(" ", text).strip()


def _fold_plural(token: str) -> str:
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def tokenize(text: str) -> set[str]:
    """Content tokens of a normalized string, stop words dropped, plurals folded."""
    return {_fold_plural(t) for t in text.split() if t not in STOPWORDS}


def token_overlap(text_a: str, text_b: str) -> float:
    """Jaccard similarity of the content tokens of two normalized strings.

    Unlike document similarity, two empty token sets score 0.0: an empty
    hint must never match anything.
    """
    tokens_a = tokenize(text_a)
    tokens_b = tokenize(text_b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def contains_at_word_start(longer: str, shorter: str) -> bool:
    return re.search(r"(?:^|\s)" + re.escape(shorter), longer) is not None


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Score:
    method: str
    value: float

    @property
    def rank(self) -> tuple[int, float]:
        return (METHOD_RANK[self.method], self.value)


@dataclass(frozen=True)
class Candidate:
    """A matchable catalog entry."""

    id: str
    title: str
    source: str
    order: int
    normalized: str
    product_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one hint."""

    hint: str
    matched: bool
    id: str | None = None
    title: str | None = None
    source: str | None = None
    method: str | None = None
    score: float = 0.0
    product_ids: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def unmatched(cls, hint: str) -> MatchResult:
        return cls(hint=hint, matched=False)

    def to_category(self) -> Category:
        if not self.matched:
            raise ValueError(f"Hint {self.hint!r} did not match a catalog entry")
        return Category(
            id=self.id or "",
            title=self.title or "",
            source=self.source or SOURCE_COLLECTION,
            product_ids=list(self.product_ids),
        )

    def to_dict(self) -> dict[str, Any]:
        if not self.matched:
            return {"hint": self.hint, "matched": False}
        return {
            "hint": self.hint,
            "matched": True,
            "id": self.id,
            "title": self.title,
            "source": self.source,
            "method": self.method,
            "score": round(self.score, 4),
        }


# ---------------------------------------------------------------------------
# BaseScorer ABC + registry
# ---------------------------------------------------------------------------


class BaseScorer(ABC):
    """Abstract base class for hint/candidate similarity scorers."""

    @abstractmethod
    def score(self, hint: str, candidate: str, config: AssemblyConfig) -> Score | None:
        """Score two normalized strings. Returns None when they do not match."""
        ...


_SCORERS: dict[str, type[BaseScorer]] = {}


def register_scorer(name: str):
    """Decorator to register a scorer class by name."""

    def wrapper(cls: type[BaseScorer]) -> type[BaseScorer]:
        _SCORERS[name] = cls
        return cls

    return wrapper


def get_scorer(name: str) -> BaseScorer:
    """Get an instantiated scorer by name."""
    if name not in _SCORERS:
        raise ValueError(f"Unknown scorer: {name}. Available: {list(_SCORERS.keys())}")
    return _SCORERS[name]()


def available_scorers() -> list[str]:
    return sorted(_SCORERS)


@register_scorer("default")
class DefaultScorer(BaseScorer):
    """Exact, then word-boundary substring, then token overlap."""

    def score(self, hint: str, candidate: str, config: AssemblyConfig) -> Score | None:
        if not hint or not candidate:
            return None
        if hint == candidate:
            return Score(METHOD_EXACT, 1.0)

        shorter, longer = sorted((hint, candidate), key=len)
        if len(shorter) >= config.min_containment_length and contains_at_word_start(longer, shorter):
            return Score(METHOD_SUBSTRING, len(shorter) / len(longer))

        overlap = token_overlap(hint, candidate)
        if overlap >= config.similarity_threshold:
            return Score(METHOD_TOKEN, overlap)
        return None


@register_scorer("exact")
class ExactScorer(BaseScorer):
    """Normalized equality only."""

    def score(self, hint: str, candidate: str, config: AssemblyConfig) -> Score | None:
        if hint and hint == candidate:
            return Score(METHOD_EXACT, 1.0)
        return None


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------


def build_candidates(catalog: CatalogContext) -> list[Candidate]:
    """Collections in catalog order, then each distinct product type."""
    candidates = [
        Candidate(
            id=c.id,
            title=c.title,
            source=SOURCE_COLLECTION,
            order=i,
            normalized=normalize_text(c.title),
        )
        for i, c in enumerate(catalog.collections)
    ]

    type_products: dict[str, list[str]] = {}
    type_titles: dict[str, str] = {}
    for p in catalog.products:
        key = normalize_text(p.product_type)
        if not key:
            continue
        if key not in type_products:
            type_products[key] = []
            type_titles[key] = p.product_type
        type_products[key].append(p.id)

    for i, (key, product_ids) in enumerate(type_products.items()):
        candidates.append(Candidate(
            id=type_titles[key],
            title=type_titles[key],
            source=SOURCE_PRODUCT_TYPE,
            order=i,
            normalized=key,
            product_ids=tuple(product_ids),
        ))
    return candidates


class CollectionMatcher:
    """Pure hint resolver. One instance can serve any number of catalogs."""

    def __init__(self, config: AssemblyConfig | None = None, scorer: BaseScorer | None = None):
        self.config = config or AssemblyConfig()
        self.scorer = scorer or get_scorer(self.config.scorer)

    def rank(self, hint: str, catalog: CatalogContext) -> list[MatchResult]:
        """All candidates that match the hint, best first."""
        normalized = normalize_text(hint)
        if not normalized:
            return []

        scored: list[tuple[Score, Candidate]] = []
        for candidate in build_candidates(catalog):
            score = self.scorer.score(normalized, candidate.normalized, self.config)
            if score is not None:
                scored.append((score, candidate))

        scored.sort(key=lambda sc: (
            -sc[0].rank[0],
            -sc[0].rank[1],
            SOURCE_RANK[sc[1].source],
            sc[1].order,
        ))
        return [
            MatchResult(
                hint=hint,
                matched=True,
                id=c.id,
                title=c.title,
                source=c.source,
                method=s.method,
                score=s.value,
                product_ids=c.product_ids,
            )
            for s, c in scored
        ]

    def match(self, hint: str, catalog: CatalogContext) -> MatchResult:
        """Best candidate for the hint, or an unmatched result."""
        ranked = self.rank(hint, catalog)
        if not ranked:
            return MatchResult.unmatched(hint)
        return ranked[0]

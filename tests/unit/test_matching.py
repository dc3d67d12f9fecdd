"""Tests for collection hint matching."""

from __future__ import annotations

import pytest

from bundlecraft.assembly.catalog import parse_catalog
from bundlecraft.assembly.matching import (
    METHOD_EXACT,
    METHOD_SUBSTRING,
    METHOD_TOKEN,
    CollectionMatcher,
    ExactScorer,
    available_scorers,
    build_candidates,
    contains_at_word_start,
    get_scorer,
    normalize_text,
    token_overlap,
    tokenize,
)
from bundlecraft.core.config import AssemblyConfig


@pytest.fixture
def apparel(catalog):
    return parse_catalog(catalog)


@pytest.fixture
def matcher():
    return CollectionMatcher()


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


class TestTextHelpers:
    def test_normalize_text(self):
        assert normalize_text("  Summer-Dresses! ") == "summer dresses"
        assert normalize_text("T_Shirts") == "t shirts"

    def test_tokenize_drops_stopwords_and_folds_plurals(self):
        assert tokenize("all of the shirts") == {"shirt"}
        assert tokenize("dress") == {"dress"}

    def test_token_overlap(self):
        assert token_overlap("summer dresses", "dresses for summer") == 1.0
        assert token_overlap("summer linen dresses", "summer dresses") == pytest.approx(2 / 3)

    def test_empty_tokens_never_overlap(self):
        assert token_overlap("", "shirts") == 0.0
        assert token_overlap("the", "the") == 0.0

    def test_word_start_containment(self):
        assert contains_at_word_start("leather belts", "belts")
        assert not contains_at_word_start("shirts", "irts")


# ---------------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------------


class TestCollectionMatcher:
    def test_exact_match(self, matcher, apparel):
        result = matcher.match("shirts", apparel)
        assert result.matched
        assert result.id == "c1"
        assert result.method == METHOD_EXACT
        assert result.score == 1.0

    def test_substring_match(self, matcher, apparel):
        result = matcher.match("Dresses", apparel)
        assert result.id == "c2"
        assert result.method == METHOD_SUBSTRING
        assert result.score == pytest.approx(7 / 14)

    def test_token_match(self, matcher, apparel):
        result = matcher.match("Dresses for Summer", apparel)
        assert result.id == "c2"
        assert result.method == METHOD_TOKEN

    def test_substring_needs_word_boundary(self, matcher, apparel):
        assert not matcher.match("irts", apparel).matched

    def test_substring_needs_min_length(self, matcher, apparel):
        assert not matcher.match("sh", apparel).matched

    def test_no_match(self, matcher, apparel):
        result = matcher.match("Widgets", apparel)
        assert result.matched is False
        assert result.id is None
        assert result.to_dict() == {"hint": "Widgets", "matched": False}

    def test_blank_hint_never_matches(self, matcher, apparel):
        assert not matcher.match("   ", apparel).matched

    def test_product_type_match(self, matcher, apparel):
        result = matcher.match("Hats", apparel)
        assert result.source == "productType"
        assert result.id == "Hat"
        category = result.to_category()
        assert category.product_ids == ["p1", "p2"]
        assert category.to_dict()["productIds"] == ["p1", "p2"]

    def test_collection_beats_product_type_on_tie(self, matcher):
        catalog = parse_catalog({
            "collections": [{"id": "c9", "title": "Hat"}],
            "products": [{"id": "p1", "productType": "Hat"}],
        })
        result = matcher.match("hat", catalog)
        assert result.source == "collection"
        assert result.id == "c9"

    def test_catalog_order_breaks_remaining_ties(self, matcher):
        catalog = parse_catalog({"collections": [
            {"id": "first", "title": "Shirts"},
            {"id": "second", "title": "shirts"},
        ]})
        assert matcher.match("Shirts", catalog).id == "first"

    def test_better_method_wins_over_order(self, matcher):
        catalog = parse_catalog({"collections": [
            {"id": "pack", "title": "Socks Pack"},
            {"id": "socks", "title": "Socks"},
        ]})
        assert matcher.match("socks", catalog).id == "socks"

    def test_rank_orders_best_first(self, matcher, apparel):
        ranked = matcher.rank("summer dresses", apparel)
        assert ranked[0].id == "c2"
        assert ranked[0].method == METHOD_EXACT

    def test_threshold_is_configurable(self, apparel):
        strict = CollectionMatcher(AssemblyConfig(similarity_threshold=0.9))
        loose = CollectionMatcher(AssemblyConfig(similarity_threshold=0.5))
        assert not strict.match("summer linen dresses", apparel).matched
        assert loose.match("summer linen dresses", apparel).id == "c2"

    def test_deterministic(self, matcher, apparel):
        first = [matcher.match(h, apparel) for h in ("Shirts", "Hats", "Belts", "Widgets")]
        second = [matcher.match(h, apparel) for h in ("Shirts", "Hats", "Belts", "Widgets")]
        assert first == second

    def test_unmatched_to_category_raises(self, matcher, apparel):
        with pytest.raises(ValueError):
            matcher.match("Widgets", apparel).to_category()


class TestCandidates:
    def test_product_types_grouped(self, apparel):
        candidates = build_candidates(apparel)
        types = [c for c in candidates if c.source == "productType"]
        assert [(c.id, c.product_ids) for c in types] == [("Hat", ("p1", "p2")), ("Scarf", ("p3",))]


class TestScorerRegistry:
    def test_registered(self):
        assert {"default", "exact"} <= set(available_scorers())

    def test_unknown_scorer(self):
        with pytest.raises(ValueError, match="Unknown scorer"):
            get_scorer("fuzzy")

    def test_exact_scorer(self, apparel):
        matcher = CollectionMatcher(scorer=ExactScorer())
        assert matcher.match("Shirts", apparel).matched
        assert not matcher.match("Dresses", apparel).matched

    def test_scorer_from_config(self, apparel):
        matcher = CollectionMatcher(AssemblyConfig(scorer="exact"))
        assert isinstance(matcher.scorer, ExactScorer)

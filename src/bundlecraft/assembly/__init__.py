"""Assembly components: matcher, step builder, normalizers and decision engine."""

from bundlecraft.assembly.catalog import parse_catalog, parse_collections, parse_products
from bundlecraft.assembly.context import AssemblyContext, FlagSet
from bundlecraft.assembly.decision import DecisionEngine, StatusRule, assemble, decide
from bundlecraft.assembly.discount import DiscountNormalizer, normalize_discount
from bundlecraft.assembly.matching import (
    BaseScorer,
    CollectionMatcher,
    MatchResult,
    get_scorer,
    register_scorer,
)
from bundlecraft.assembly.rules import RulesNormalizer, normalize_rules
from bundlecraft.assembly.steps import StepBuilder

__all__ = [
    "AssemblyContext",
    "BaseScorer",
    "CollectionMatcher",
    "DecisionEngine",
    "DiscountNormalizer",
    "FlagSet",
    "MatchResult",
    "RulesNormalizer",
    "StatusRule",
    "StepBuilder",
    "assemble",
    "decide",
    "get_scorer",
    "normalize_discount",
    "normalize_rules",
    "parse_catalog",
    "parse_collections",
    "parse_products",
    "register_scorer",
]

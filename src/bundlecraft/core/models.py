"""Core data models for Bundlecraft.

Raw models mirror what the three text-understanding components emit. Their
fields hold either a usable value, ``ABSENT`` (the key was not there) or an
``Invalid`` marker (the key was there but unusable), so that flag attribution
can tell a missing field from a malformed one.

Derived models are created fresh for every assembly call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bundlecraft.core.fingerprint import Fingerprint, compute_fingerprint


class _Absent:
    """Marker for a field that was not present in the raw output."""

    _instance: _Absent | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


@dataclass(frozen=True)
class Invalid:
    """A field that was present but could not be used."""

    raw: Any
    reason: str


# Vocabularies
SINGLE_STEP = "SINGLE_STEP"
MULTI_STEP = "MULTI_STEP"
STRUCTURE_TYPES = (SINGLE_STEP, MULTI_STEP)

PERCENTAGE = "PERCENTAGE"
FIXED = "FIXED"
FIXED_BUNDLE_PRICE = "FIXED_BUNDLE_PRICE"
DISCOUNT_MODES = (PERCENTAGE, FIXED, FIXED_BUNDLE_PRICE)

# discountMode -> DiscountRule.unit
DISCOUNT_UNITS = {
    PERCENTAGE: "percent",
    FIXED: "fixed",
    FIXED_BUNDLE_PRICE: "fixedBundlePrice",
}

QUANTITY = "quantity"
AMOUNT = "amount"
QUALIFIER_TYPES = (QUANTITY, AMOUNT)

# raw condition name -> SelectionRule.operator
OPERATORS = {
    "equalTo": "eq",
    "greaterThanOrEqualTo": "gte",
    "lessThanOrEqualTo": "lte",
}
OPERATOR_NAMES = {v: k for k, v in OPERATORS.items()}

SOURCE_COLLECTION = "collection"
SOURCE_PRODUCT_TYPE = "productType"


class PipelineStatus(str, Enum):
    """Final confidence verdict of one assembly run."""

    AUTO = "AUTO"
    DOWNGRADED_TO_MANUAL = "DOWNGRADED_TO_MANUAL"
    MANUAL = "MANUAL"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Collection:
    id: str
    title: str


@dataclass(frozen=True)
class Product:
    id: str
    product_type: str
    title: str = ""


@dataclass(frozen=True)
class CatalogContext:
    """Merchant catalog supplied by the caller. Immutable for one call."""

    collections: tuple[Collection, ...] = ()
    products: tuple[Product, ...] = ()
    skipped_entries: int = 0  # malformed entries dropped while parsing

    @property
    def is_empty(self) -> bool:
        return not self.collections and not self.products

    def to_dict(self) -> dict:
        return {
            "collections": [{"id": c.id, "title": c.title} for c in self.collections],
            "products": [
                {"id": p.id, "productType": p.product_type, **({"title": p.title} if p.title else {})}
                for p in self.products
            ],
        }


# ---------------------------------------------------------------------------
# Raw component outputs
# ---------------------------------------------------------------------------


@dataclass
class RawStep:
    """One step as declared by the Structure component."""

    label: str | Invalid | _Absent = ABSENT
    collection_hints: list[str | Invalid] | Invalid | _Absent = ABSENT


@dataclass
class RawStructureOutput:
    present: bool = False  # the output itself was a mapping
    structure_type: str | None | Invalid | _Absent = ABSENT
    steps: list[RawStep | Invalid] | Invalid | _Absent = ABSENT
    legacy_shape: bool = False  # stepLabels/collectionHints instead of steps
    hints_unassigned: bool = False  # legacy hints could not be paired with labels


@dataclass
class RawDiscountRule:
    qualifier_type: str | Invalid | _Absent = ABSENT
    value: int | float | Invalid | _Absent = ABSENT
    discount_value: int | float | Invalid | _Absent = ABSENT


@dataclass
class RawDiscountOutput:
    present: bool = False
    discount_mode: str | None | Invalid | _Absent = ABSENT
    rules: list[RawDiscountRule | Invalid] | Invalid | _Absent = ABSENT


@dataclass
class RawCondition:
    operator: str | Invalid | _Absent = ABSENT
    value: int | float | Invalid | _Absent = ABSENT
    step_index: int | Invalid | _Absent = ABSENT
    qualifier_type: str | Invalid | _Absent = ABSENT


@dataclass
class RawRulesOutput:
    present: bool = False
    conditions: list[RawCondition | Invalid] | Invalid | _Absent = ABSENT


# ---------------------------------------------------------------------------
# Derived bundle entities
# ---------------------------------------------------------------------------


@dataclass
class Category:
    """A category pool assigned to a step."""

    id: str
    title: str
    source: str  # "collection" or "productType"
    product_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id, "title": self.title, "source": self.source}
        if self.source == SOURCE_PRODUCT_TYPE:
            d["productIds"] = list(self.product_ids)
        return d


@dataclass
class BundleStep:
    index: int
    label: str
    categories: list[Category] = field(default_factory=list)
    unmatched_hints: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "label": self.label,
            "categories": [c.to_dict() for c in self.categories],
            "unmatchedHints": list(self.unmatched_hints),
        }


@dataclass(frozen=True)
class DiscountRule:
    """Canonical discount tier."""

    qualifier_type: str  # "quantity" or "amount"
    threshold: int | float
    discount_value: int | float
    unit: str  # "percent", "fixed", "fixedBundlePrice"

    def to_dict(self) -> dict[str, Any]:
        return {
            "qualifierType": self.qualifier_type,
            "threshold": self.threshold,
            "discountValue": self.discount_value,
            "unit": self.unit,
        }

    def to_raw(self) -> dict[str, Any]:
        """Render back into the Discount component's rule shape."""
        return {
            "type": self.qualifier_type,
            "value": self.threshold,
            "discountValue": self.discount_value,
        }


@dataclass
class DiscountConfiguration:
    discount_mode: str | None = None
    rules: list[DiscountRule] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "discountMode": self.discount_mode,
            "rules": [r.to_dict() for r in self.rules],
        }

    def to_raw(self) -> dict[str, Any]:
        return {
            "discountMode": self.discount_mode,
            "rules": [r.to_raw() for r in self.rules],
        }


@dataclass(frozen=True)
class SelectionRule:
    step_index: int
    qualifier_type: str
    operator: str  # "eq", "gte", "lte"
    value: int | float

    def to_dict(self) -> dict[str, Any]:
        return {
            "stepIndex": self.step_index,
            "qualifierType": self.qualifier_type,
            "operator": self.operator,
            "value": self.value,
        }

    def to_raw(self) -> dict[str, Any]:
        return {
            "condition": OPERATOR_NAMES[self.operator],
            "value": self.value,
            "stepIndex": self.step_index,
            "type": self.qualifier_type,
        }


@dataclass
class BundleConfig:
    steps: list[BundleStep] = field(default_factory=list)
    discount_configuration: DiscountConfiguration = field(default_factory=DiscountConfiguration)
    selection_rules: list[SelectionRule] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [s.to_dict() for s in self.steps],
            "discountConfiguration": self.discount_configuration.to_dict(),
            "selectionRules": [r.to_dict() for r in self.selection_rules],
        }


# ---------------------------------------------------------------------------
# Traces and result
# ---------------------------------------------------------------------------


@dataclass
class TraceEntry:
    """One observational record in the execution trace."""

    step: int
    name: str
    duration_ms: int | float | None = None
    pattern: str | None = None
    output: Any = ABSENT
    extras: dict[str, Any] = field(default_factory=dict)

    def to_dict(self, include_duration: bool = True) -> dict[str, Any]:
        d: dict[str, Any] = {"step": self.step, "name": self.name}
        if include_duration and self.duration_ms is not None:
            d["durationMs"] = self.duration_ms
        if self.pattern is not None:
            d["pattern"] = self.pattern
        if self.output is not ABSENT:
            d["output"] = self.output
        d.update(self.extras)
        return d


@dataclass
class DecisionTraceEntry:
    """Audit record for one evaluated status rule."""

    rule: str
    matched: bool
    applied: bool
    status: str
    inspected: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "matched": self.matched,
            "applied": self.applied,
            "status": self.status,
            "inspected": dict(self.inspected),
            "description": self.description,
        }


@dataclass
class PipelineResult:
    status: PipelineStatus
    bundle_config: BundleConfig | None
    flags: dict[str, bool] = field(default_factory=dict)
    decision_trace: list[DecisionTraceEntry] = field(default_factory=list)
    trace: list[TraceEntry] = field(default_factory=list)
    debug: dict[str, Any] = field(default_factory=dict)

    @property
    def raised_flags(self) -> list[str]:
        return [name for name, value in self.flags.items() if value]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase payload the dashboard consumes."""
        return {
            "status": self.status.value,
            "bundleConfig": self.bundle_config.to_dict() if self.bundle_config else None,
            "flags": dict(self.flags),
            "decision_trace": [d.to_dict() for d in self.decision_trace],
            "trace": [t.to_dict() for t in self.trace],
            "_debug": dict(self.debug),
        }

    def fingerprint(self) -> Fingerprint:
        """Hash of everything deterministic in the result (durations excluded)."""
        return compute_fingerprint({
            "status": self.status.value,
            "bundleConfig": self.bundle_config.to_dict() if self.bundle_config else None,
            "flags": dict(self.flags),
            "decision_trace": [d.to_dict() for d in self.decision_trace],
            "trace": [t.to_dict(include_duration=False) for t in self.trace],
        })

"""Decision engine — orchestrate assembly and pick the pipeline status.

The engine parses the three component outputs, builds steps, normalizes
discount and selection rules, then walks an ordered status policy. The first
matching rule decides the status; every rule is still evaluated and recorded
in the decision trace for auditability.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from bundlecraft.assembly.catalog import parse_catalog
from bundlecraft.assembly.context import AssemblyContext, FlagSet
from bundlecraft.assembly.discount import DiscountNormalizer
from bundlecraft.assembly.matching import CollectionMatcher
from bundlecraft.assembly.parsing import parse_discount, parse_rules, parse_structure
from bundlecraft.assembly.rules import RulesNormalizer
from bundlecraft.assembly.steps import StepBuilder, structure_rejection
from bundlecraft.core.config import AssemblyConfig
from bundlecraft.core.errors import CatalogMissingError
from bundlecraft.core.logging import AssemblyLogger
from bundlecraft.core.models import (
    ABSENT,
    BundleConfig,
    BundleStep,
    DecisionTraceEntry,
    DiscountConfiguration,
    Invalid,
    PipelineResult,
    PipelineStatus,
    RawDiscountOutput,
    RawRulesOutput,
    RawStructureOutput,
    SelectionRule,
)

logger = logging.getLogger(__name__)


@dataclass
class DecisionState:
    """Everything the status policy may inspect."""

    flags: FlagSet
    steps: list[BundleStep] = field(default_factory=list)
    rejection: str | None = None

    @property
    def step_count(self) -> int:
        return len(self.steps)

    @property
    def single_step(self) -> BundleStep | None:
        return self.steps[0] if len(self.steps) == 1 else None


# ---------------------------------------------------------------------------
# Status policy
# ---------------------------------------------------------------------------


class StatusRule(ABC):
    """One entry of the ordered status policy."""

    rule_id: str = ""
    status: PipelineStatus = PipelineStatus.AUTO
    description: str = ""
    inspects: tuple[str, ...] = ()

    @abstractmethod
    def matches(self, state: DecisionState) -> bool:
        ...

    def inspected(self, state: DecisionState) -> dict[str, Any]:
        values: dict[str, Any] = {name: state.flags.is_set(name) for name in self.inspects}
        values["stepsCount"] = state.step_count
        return values


class StructureRejectedRule(StatusRule):
    rule_id = "STRUCTURE_REJECTED"
    status = PipelineStatus.MANUAL
    description = "No usable structure: nothing safe to assemble"
    inspects = ("structureRejected",)

    def matches(self, state: DecisionState) -> bool:
        return state.rejection is not None


class MultiStepEmptyCategoriesRule(StatusRule):
    rule_id = "MULTI_STEP_EMPTY_CATEGORIES"
    status = PipelineStatus.MANUAL
    description = "A step of a multi-step bundle has no categories"
    inspects = ("emptyStepCategories",)

    def matches(self, state: DecisionState) -> bool:
        return state.step_count > 1 and any(not s.categories for s in state.steps)


class NormalizationConflictRule(StatusRule):
    rule_id = "NORMALIZATION_CONFLICT"
    status = PipelineStatus.DOWNGRADED_TO_MANUAL
    description = "Discount or rules conflict was resolved by tie-break and needs review"
    inspects = ("hasConflict",)

    def matches(self, state: DecisionState) -> bool:
        return state.flags.is_set("hasConflict")


class SingleStepUnmatchedHintRule(StatusRule):
    rule_id = "SINGLE_STEP_UNMATCHED_HINT"
    status = PipelineStatus.DOWNGRADED_TO_MANUAL
    description = "Single-step bundle lost a hint but kept other categories"
    inspects = ("collectionHintUnmatched",)

    def matches(self, state: DecisionState) -> bool:
        step = state.single_step
        return (
            state.flags.is_set("collectionHintUnmatched")
            and step is not None
            and bool(step.categories)
        )


# Flags that mean part of the bundle was guessed or could not be read
DEGRADING_FLAGS = (
    "malformedOutput",
    "structureTypeMismatch",
    "collectionHintsUnassigned",
    "stepIndexDefaulted",
)


class DegradedOutputRule(StatusRule):
    rule_id = "DEGRADED_OUTPUT"
    status = PipelineStatus.DOWNGRADED_TO_MANUAL
    description = "Part of the bundle was guessed or unreadable and needs review"
    inspects = (*DEGRADING_FLAGS, "emptyStepCategories")

    def matches(self, state: DecisionState) -> bool:
        step = state.single_step
        return (
            any(state.flags.is_set(name) for name in DEGRADING_FLAGS)
            or (step is not None and not step.categories)
        )


class DefaultAutoRule(StatusRule):
    rule_id = "DEFAULT_AUTO"
    status = PipelineStatus.AUTO
    description = "Nothing blocks automatic application"

    def matches(self, state: DecisionState) -> bool:
        return True


DEFAULT_POLICY: tuple[StatusRule, ...] = (
    StructureRejectedRule(),
    MultiStepEmptyCategoriesRule(),
    NormalizationConflictRule(),
    SingleStepUnmatchedHintRule(),
    DegradedOutputRule(),
    DefaultAutoRule(),
)


def decide(
    state: DecisionState, policy: tuple[StatusRule, ...] = DEFAULT_POLICY
) -> tuple[StatusRule, list[DecisionTraceEntry]]:
    """Evaluate every rule in order; the first match is applied."""
    applied: StatusRule | None = None
    entries: list[DecisionTraceEntry] = []
    for rule in policy:
        matched = rule.matches(state)
        is_applied = matched and applied is None
        if is_applied:
            applied = rule
        entries.append(DecisionTraceEntry(
            rule=rule.rule_id,
            matched=matched,
            applied=is_applied,
            status=rule.status.value,
            inspected=rule.inspected(state),
            description=rule.description,
        ))
    if applied is None:
        raise ValueError("Status policy has no catch-all rule")
    return applied, entries


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _marker_value(value: Any) -> Any:
    if value is ABSENT:
        return None
    if isinstance(value, Invalid):
        return str(value.raw)
    return value


def _list_size(value: Any) -> int:
    return len(value) if isinstance(value, list) else 0


class DecisionEngine:
    """Runs one assembly per call. Holds configuration only, never run state."""

    def __init__(
        self,
        config: AssemblyConfig | None = None,
        run_logger: AssemblyLogger | None = None,
        policy: tuple[StatusRule, ...] = DEFAULT_POLICY,
    ):
        self.config = config or AssemblyConfig()
        self.run_logger = run_logger
        # structureType null must always end MANUAL
        if not policy or not isinstance(policy[0], StructureRejectedRule):
            policy = (StructureRejectedRule(), *policy)
        self.policy = policy
        self.step_builder = StepBuilder(CollectionMatcher(self.config))
        self.discount_normalizer = DiscountNormalizer()
        self.rules_normalizer = RulesNormalizer()

    def run(
        self,
        structure: Any = None,
        discount: Any = None,
        rules: Any = None,
        catalog: Any = None,
        *,
        case_id: str = "case",
        llm_durations: dict[str, int | float] | None = None,
    ) -> PipelineResult:
        """Assemble one bundle. Never raises for malformed component output."""
        ctx = AssemblyContext(case_id=case_id, logger=self.run_logger)
        start = self.run_logger.assembly_start(case_id) if self.run_logger else 0.0
        durations = llm_durations or {}
        debug = {
            "structureOutput": structure,
            "discountOutput": discount,
            "rulesOutput": rules,
        }

        raw_structure = parse_structure(structure)
        raw_discount = parse_discount(discount)
        raw_rules = parse_rules(rules)
        self._record_ingestion(ctx, raw_structure, raw_discount, raw_rules, durations)

        catalog_ctx = parse_catalog(catalog)
        if catalog_ctx is not None and catalog_ctx.skipped_entries:
            ctx.flag("invalidCatalogEntry", "catalog")

        rejection = structure_rejection(raw_structure)
        steps: list[BundleStep] = []
        discount_config = DiscountConfiguration()
        selection: list[SelectionRule] = []

        if rejection is not None:
            self._flag_rejection(ctx, rejection)
            ctx.record("Step building", pattern=rejection, output=[], stepsCount=0)
            ctx.record("Discount normalization", pattern="SKIPPED")
            ctx.record("Rules normalization", pattern="SKIPPED")
        else:
            try:
                steps = self.step_builder.build(raw_structure, catalog_ctx, ctx)
            except CatalogMissingError as e:
                return self._abort(ctx, e, debug, start)
            if not steps:
                rejection = "NO_STEPS"
                ctx.flag("noStepsDeclared", "structure")
                ctx.flag("structureRejected", "structure")
            discount_config = self.discount_normalizer.normalize(raw_discount, ctx)
            selection = self.rules_normalizer.normalize(raw_rules, steps, ctx)

        state = DecisionState(flags=ctx.flags, steps=steps, rejection=rejection)
        applied, decision_trace = decide(state, self.policy)
        ctx.record("Decision", pattern=applied.rule_id, output=applied.status.value)

        bundle_config = None
        if rejection is None:
            bundle_config = BundleConfig(
                steps=steps,
                discount_configuration=discount_config,
                selection_rules=selection,
            )

        logger.debug(
            "Assembled %s: status=%s rule=%s flags=%s",
            case_id, applied.status.value, applied.rule_id, ctx.flags.raised(),
        )
        if self.run_logger is not None:
            self.run_logger.assembly_finish(
                case_id, applied.status.value, applied.rule_id, ctx.flags.raised(), start
            )

        return PipelineResult(
            status=applied.status,
            bundle_config=bundle_config,
            flags=ctx.flags.snapshot(),
            decision_trace=decision_trace,
            trace=ctx.trace,
            debug=debug,
        )

    def _record_ingestion(
        self,
        ctx: AssemblyContext,
        structure: RawStructureOutput,
        discount: RawDiscountOutput,
        rules: RawRulesOutput,
        durations: dict[str, int | float],
    ) -> None:
        ctx.record(
            "Structure LLM",
            duration_ms=durations.get("structure"),
            output={
                "structureType": _marker_value(structure.structure_type),
                "stepsCount": _list_size(structure.steps),
            },
            received=structure.present,
        )
        ctx.record(
            "Discount LLM",
            duration_ms=durations.get("discount"),
            output={
                "discountMode": _marker_value(discount.discount_mode),
                "rulesCount": _list_size(discount.rules),
            },
            received=discount.present,
        )
        ctx.record(
            "Rules LLM",
            duration_ms=durations.get("rules"),
            output={"conditionsCount": _list_size(rules.conditions)},
            received=rules.present,
        )

    def _flag_rejection(self, ctx: AssemblyContext, rejection: str) -> None:
        ctx.flag("structureRejected", "structure")
        if rejection == "STRUCTURE_MISSING":
            ctx.flag("structureOutputMissing", "structure")
        elif rejection == "STRUCTURE_TYPE_MISSING":
            ctx.flag("structureTypeMissing", "structure")
        elif rejection == "STRUCTURE_TYPE_INVALID":
            ctx.flag_malformed("invalidStructureType", "structure")

    def _abort(
        self,
        ctx: AssemblyContext,
        error: CatalogMissingError,
        debug: dict[str, Any],
        start: float,
    ) -> PipelineResult:
        """Caller contract violation: short-circuit to MANUAL without a bundle."""
        ctx.flag("catalogMissing", "catalog")
        ctx.record(
            "Assembly aborted",
            pattern="ABORT_CATALOG_MISSING",
            output=str(error),
            hintsCount=error.hint_count,
        )
        entry = DecisionTraceEntry(
            rule="CATALOG_MISSING",
            matched=True,
            applied=True,
            status=PipelineStatus.MANUAL.value,
            inspected={"catalogMissing": True},
            description="Catalog context is required for matching but was not supplied",
        )
        ctx.record("Decision", pattern=entry.rule, output=entry.status)

        logger.warning("Assembly %s aborted: %s", ctx.case_id, error)
        if self.run_logger is not None:
            self.run_logger.aborted(ctx.case_id, str(error))
            self.run_logger.assembly_finish(
                ctx.case_id, entry.status, entry.rule, ctx.flags.raised(), start
            )

        return PipelineResult(
            status=PipelineStatus.MANUAL,
            bundle_config=None,
            flags=ctx.flags.snapshot(),
            decision_trace=[entry],
            trace=ctx.trace,
            debug=debug,
        )


def assemble(
    structure: Any = None,
    discount: Any = None,
    rules: Any = None,
    catalog: Any = None,
    *,
    config: AssemblyConfig | None = None,
    llm_durations: dict[str, int | float] | None = None,
    logger: AssemblyLogger | None = None,
    case_id: str = "case",
) -> PipelineResult:
    """Assemble a bundle configuration from the three component outputs.

    Args:
        structure: Raw Structure component output.
        discount: Raw Discount component output.
        rules: Raw Rules component output.
        catalog: ``{collections, products}`` mapping or a CatalogContext.
        config: Matching configuration; defaults apply when omitted.
        llm_durations: Upstream call timings keyed by "structure",
            "discount" and "rules", copied onto the ingestion trace entries.
        logger: Optional structured run logger.
        case_id: Label used in logs.

    Returns:
        PipelineResult. Malformed input degrades into flags and a more
        conservative status; it never raises.
    """
    engine = DecisionEngine(config=config, run_logger=logger)
    return engine.run(
        structure,
        discount,
        rules,
        catalog,
        case_id=case_id,
        llm_durations=llm_durations,
    )

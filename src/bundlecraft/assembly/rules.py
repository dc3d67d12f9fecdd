"""Rules normalizer — per-step selection rules from the Rules component output."""

from __future__ import annotations

from typing import Any

from bundlecraft.assembly.context import AssemblyContext
from bundlecraft.assembly.parsing import parse_rules
from bundlecraft.core.models import (
    ABSENT,
    QUANTITY,
    BundleStep,
    Invalid,
    RawCondition,
    RawRulesOutput,
    SelectionRule,
)

SOURCE = "rules"


class RulesNormalizer:
    """Maps raw conditions onto built steps; last write wins per (step, qualifier)."""

    def normalize(
        self,
        rules: RawRulesOutput,
        steps: list[BundleStep],
        ctx: AssemblyContext,
    ) -> list[SelectionRule]:
        conditions = rules.conditions
        if not rules.present and conditions is ABSENT:
            ctx.flag("rulesOutputMissing", SOURCE)
        if isinstance(conditions, Invalid):
            ctx.flag_malformed("invalidConditions", SOURCE)
            conditions = []
        elif conditions is ABSENT:
            conditions = []

        selected: dict[tuple[int, str], SelectionRule] = {}
        duplicate = False
        for raw in conditions:
            rule = self._coerce_condition(raw, len(steps), ctx)
            if rule is None:
                continue
            key = (rule.step_index, rule.qualifier_type)
            if key in selected:
                duplicate = True
                ctx.flag("DUPLICATE_RULE", SOURCE)
                ctx.flag("hasConflict", SOURCE)
            selected[key] = rule

        result = list(selected.values())
        constrained = {r.step_index for r in result}
        default_steps = [s.index for s in steps if s.index not in constrained]

        extras: dict[str, Any] = {"rulesCount": len(result)}
        if default_steps:
            extras["defaultRuleApplied"] = True
            extras["defaultSteps"] = default_steps
        if duplicate:
            extras["hasConflict"] = True

        ctx.record(
            "Rules normalization",
            pattern="DEFAULT_ANY_QUANTITY" if not result else "EXPLICIT",
            output=[r.to_dict() for r in result],
            **extras,
        )
        return result

    def _coerce_condition(
        self,
        raw: RawCondition | Invalid,
        step_count: int,
        ctx: AssemblyContext,
    ) -> SelectionRule | None:
        if isinstance(raw, Invalid):
            ctx.flag_malformed("invalidCondition", SOURCE)
            return None

        operator = raw.operator
        if operator is ABSENT or isinstance(operator, Invalid):
            ctx.flag_malformed("invalidCondition", SOURCE)
            return None

        value = raw.value
        if value is ABSENT or isinstance(value, Invalid):
            ctx.flag_malformed("invalidConditionValue", SOURCE)
            return None
        if value < 0:
            ctx.flag("invalidConditionValue", SOURCE)
            return None

        qualifier = raw.qualifier_type
        if isinstance(qualifier, Invalid):
            ctx.flag_malformed("invalidQualifierType", SOURCE)
            return None
        if qualifier is ABSENT:
            qualifier = QUANTITY

        step_index = raw.step_index
        if isinstance(step_index, Invalid):
            ctx.flag_malformed("invalidStepIndex", SOURCE)
            return None
        if step_index is ABSENT:
            step_index = 0
            if step_count > 1:
                ctx.flag("stepIndexDefaulted", SOURCE)

        if not 0 <= step_index < step_count:
            ctx.flag("invalidStepIndex", SOURCE)
            return None

        return SelectionRule(
            step_index=step_index,
            qualifier_type=qualifier,
            operator=operator,
            value=value,
        )


def normalize_rules(raw: Any, steps: list[BundleStep]) -> tuple[list[SelectionRule], dict[str, bool]]:
    """Normalize a raw Rules output against built steps, returning rules and flags."""
    ctx = AssemblyContext(case_id="rules")
    result = RulesNormalizer().normalize(parse_rules(raw), steps, ctx)
    return result, ctx.flags.snapshot()

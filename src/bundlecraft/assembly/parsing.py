"""Defensive parsing of the three component outputs into raw models.

Nothing here raises for bad input. Every field ends up as a usable value,
``ABSENT`` or ``Invalid``; the normalizers decide which flags that earns.
"""

from __future__ import annotations

import math
import re
from typing import Any

from bundlecraft.core.models import (
    ABSENT,
    DISCOUNT_MODES,
    OPERATORS,
    QUALIFIER_TYPES,
    SINGLE_STEP,
    STRUCTURE_TYPES,
    Invalid,
    RawCondition,
    RawDiscountOutput,
    RawDiscountRule,
    RawRulesOutput,
    RawStep,
    RawStructureOutput,
    _Absent,
)

_NUMBER_RE = re.compile(r"^[$€£]?\s*([-+]?(?:\d+\.?\d*|\.\d+))\s*%?$")

_OPERATOR_LOOKUP = {name.lower(): op for name, op in OPERATORS.items()}
_OPERATOR_LOOKUP.update({op: op for op in OPERATORS.values()})

_NULL_STRINGS = {"null", "none", ""}


def _field(data: dict, *keys: str) -> Any:
    """Return the first present key's value, or ABSENT."""
    for key in keys:
        if key in data:
            return data[key]
    return ABSENT


def coerce_number(raw: Any) -> int | float | Invalid | _Absent:
    """Coerce an LLM-supplied number (possibly a numeric string).

    Integral floats collapse to int so ``2.0`` and ``"2"`` normalize alike.
    """
    if raw is ABSENT or raw is None:
        return ABSENT
    if isinstance(raw, bool):
        return Invalid(raw, "boolean is not a number")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if not math.isfinite(raw):
            return Invalid(raw, "number is not finite")
        return int(raw) if raw.is_integer() else raw
    if isinstance(raw, str):
        match = _NUMBER_RE.match(raw.strip())
        if match is None:
            return Invalid(raw, "string is not numeric")
        return coerce_number(float(match.group(1)))
    return Invalid(raw, f"unsupported number type {type(raw).__name__}")


def coerce_index(raw: Any) -> int | Invalid | _Absent:
    """Coerce a step index; only non-negative integral values qualify as ints."""
    number = coerce_number(raw)
    if number is ABSENT or isinstance(number, Invalid):
        return number
    if isinstance(number, float):
        return Invalid(raw, "step index is not an integer")
    return number


def coerce_choice(raw: Any, choices: tuple[str, ...]) -> str | Invalid | _Absent:
    """Match a string against a closed vocabulary, case-insensitively."""
    if raw is ABSENT:
        return ABSENT
    if not isinstance(raw, str):
        return Invalid(raw, "expected a string")
    wanted = raw.strip().lower()
    for choice in choices:
        if choice.lower() == wanted:
            return choice
    return Invalid(raw, f"expected one of {list(choices)}")


def _coerce_nullable_choice(raw: Any, choices: tuple[str, ...]) -> str | None | Invalid | _Absent:
    if raw is None:
        return None
    if isinstance(raw, str) and raw.strip().lower() in _NULL_STRINGS:
        return None
    return coerce_choice(raw, choices)


def _coerce_label(raw: Any) -> str | Invalid | _Absent:
    if raw is ABSENT or raw is None:
        return ABSENT
    if isinstance(raw, str):
        return raw.strip()
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return str(raw)
    return Invalid(raw, "label is not a string")


def _coerce_hints(raw: Any) -> list[str | Invalid] | Invalid | _Absent:
    if raw is ABSENT or raw is None:
        return ABSENT
    if isinstance(raw, str):
        return [raw.strip()]
    if not isinstance(raw, list):
        return Invalid(raw, "collectionHints is not a list")
    hints: list[str | Invalid] = []
    for item in raw:
        if isinstance(item, str):
            hints.append(item.strip())
        else:
            hints.append(Invalid(item, "hint is not a string"))
    return hints


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


def parse_structure(raw: Any) -> RawStructureOutput:
    """Parse the Structure component output.

    Accepts ``{structureType, steps: [{label, collectionHints}]}`` and the
    flat ``{structureType, stepLabels, collectionHints}`` shape.
    """
    if raw is None:
        return RawStructureOutput()
    if not isinstance(raw, dict):
        return RawStructureOutput(structure_type=Invalid(raw, "structure output is not an object"))

    output = RawStructureOutput(present=True)
    output.structure_type = _coerce_nullable_choice(_field(raw, "structureType"), STRUCTURE_TYPES)

    if "steps" in raw and raw["steps"] is not None:
        steps = raw["steps"]
        if not isinstance(steps, list):
            output.steps = Invalid(steps, "steps is not a list")
            return output
        parsed: list[RawStep | Invalid] = []
        for item in steps:
            if isinstance(item, dict):
                parsed.append(RawStep(
                    label=_coerce_label(_field(item, "label")),
                    collection_hints=_coerce_hints(_field(item, "collectionHints")),
                ))
            else:
                parsed.append(Invalid(item, "step is not an object"))
        output.steps = parsed
    elif "stepLabels" in raw or "collectionHints" in raw:
        _parse_flat_steps(raw, output)

    return output


def _parse_flat_steps(raw: dict, output: RawStructureOutput) -> None:
    output.legacy_shape = True
    labels = raw.get("stepLabels")
    hints = _coerce_hints(_field(raw, "collectionHints"))

    if labels is None:
        labels = []
    if not isinstance(labels, list):
        output.steps = Invalid(labels, "stepLabels is not a list")
        return

    step_labels = [_coerce_label(label) for label in labels]
    if not step_labels and output.structure_type == SINGLE_STEP:
        step_labels = [ABSENT]
    if not step_labels:
        output.steps = []
        return

    if not isinstance(hints, list):
        output.steps = [RawStep(label=label, collection_hints=hints) for label in step_labels]
        return

    if len(step_labels) == 1:
        output.steps = [RawStep(label=step_labels[0], collection_hints=hints)]
    elif len(hints) == len(step_labels):
        output.steps = [
            RawStep(label=label, collection_hints=[hint])
            for label, hint in zip(step_labels, hints)
        ]
    elif not hints:
        output.steps = [RawStep(label=label, collection_hints=[]) for label in step_labels]
    else:
        output.hints_unassigned = True
        output.steps = [RawStep(label=label, collection_hints=list(hints)) for label in step_labels]


# ---------------------------------------------------------------------------
# Discount
# ---------------------------------------------------------------------------


def parse_discount(raw: Any) -> RawDiscountOutput:
    """Parse the Discount component output."""
    if raw is None:
        return RawDiscountOutput()
    if not isinstance(raw, dict):
        return RawDiscountOutput(discount_mode=Invalid(raw, "discount output is not an object"))

    wrapped = raw.get("discountConfiguration")
    if "discountMode" not in raw and isinstance(wrapped, dict):
        raw = wrapped

    output = RawDiscountOutput(present=True)
    output.discount_mode = _coerce_nullable_choice(_field(raw, "discountMode", "mode"), DISCOUNT_MODES)

    rules = _field(raw, "rules")
    if rules is ABSENT or rules is None:
        return output
    if not isinstance(rules, list):
        output.rules = Invalid(rules, "rules is not a list")
        return output

    parsed: list[RawDiscountRule | Invalid] = []
    for item in rules:
        if not isinstance(item, dict):
            parsed.append(Invalid(item, "discount rule is not an object"))
            continue
        parsed.append(RawDiscountRule(
            qualifier_type=coerce_choice(_field(item, "type"), QUALIFIER_TYPES),
            value=coerce_number(_field(item, "value")),
            discount_value=coerce_number(_field(item, "discountValue")),
        ))
    output.rules = parsed
    return output


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _coerce_operator(raw: Any) -> str | Invalid | _Absent:
    if raw is ABSENT or raw is None:
        return ABSENT
    if not isinstance(raw, str):
        return Invalid(raw, "condition is not a string")
    op = _OPERATOR_LOOKUP.get(raw.strip().lower())
    if op is None:
        return Invalid(raw, f"unknown condition {raw!r}")
    return op


def parse_rules(raw: Any) -> RawRulesOutput:
    """Parse the Rules component output.

    ``conditions`` may be a list, ``{rules: [...]}``, or the output itself
    may be a bare list of conditions.
    """
    if raw is None:
        return RawRulesOutput()
    if isinstance(raw, list):
        conditions: Any = raw
    elif isinstance(raw, dict):
        conditions = _field(raw, "conditions", "rules")
        if isinstance(conditions, dict):
            conditions = _field(conditions, "rules")
    else:
        return RawRulesOutput(conditions=Invalid(raw, "rules output is not an object"))

    output = RawRulesOutput(present=True)
    if conditions is ABSENT or conditions is None:
        return output
    if not isinstance(conditions, list):
        output.conditions = Invalid(conditions, "conditions is not a list")
        return output

    parsed: list[RawCondition | Invalid] = []
    for item in conditions:
        if not isinstance(item, dict):
            parsed.append(Invalid(item, "condition is not an object"))
            continue
        parsed.append(RawCondition(
            operator=_coerce_operator(_field(item, "condition", "operator")),
            value=coerce_number(_field(item, "value")),
            step_index=coerce_index(_field(item, "stepIndex")),
            qualifier_type=coerce_choice(_field(item, "type"), QUALIFIER_TYPES),
        ))
    output.conditions = parsed
    return output

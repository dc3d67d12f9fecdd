"""Discount normalizer — canonical discount tiers from the Discount component output."""

from __future__ import annotations

from typing import Any

from bundlecraft.assembly.context import AssemblyContext
from bundlecraft.assembly.parsing import parse_discount
from bundlecraft.core.models import (
    ABSENT,
    DISCOUNT_UNITS,
    FIXED_BUNDLE_PRICE,
    PERCENTAGE,
    QUANTITY,
    DiscountConfiguration,
    DiscountRule,
    Invalid,
    RawDiscountOutput,
    RawDiscountRule,
)

SOURCE = "discount"

MAX_PERCENTAGE = 100


class DiscountNormalizer:
    """Validates discount mode and tiers, resolving conflicts deterministically."""

    def normalize(self, discount: RawDiscountOutput, ctx: AssemblyContext) -> DiscountConfiguration:
        mode = discount.discount_mode

        if not discount.present and mode is ABSENT:
            ctx.flag("discountOutputMissing", SOURCE)
            return self._finish(DiscountConfiguration(), ctx, "NO_DISCOUNT")

        if isinstance(mode, Invalid):
            ctx.flag_malformed("invalidDiscountMode", SOURCE)
            mode = None
        elif mode is ABSENT:
            ctx.flag("discountModeMissing", SOURCE)
            mode = None

        raw_rules = discount.rules
        if isinstance(raw_rules, Invalid):
            ctx.flag_malformed("invalidDiscountRules", SOURCE)
            raw_rules = []
        elif raw_rules is ABSENT:
            raw_rules = []

        if mode is None:
            if raw_rules:
                ctx.flag("discountRulesIgnored", SOURCE)
            return self._finish(DiscountConfiguration(), ctx, "NO_DISCOUNT")

        unit = DISCOUNT_UNITS[mode]
        rules = [
            rule for rule in (self._coerce_rule(raw, mode, unit, ctx) for raw in raw_rules)
            if rule is not None
        ]

        conflict = False
        exceeded = False
        if mode == FIXED_BUNDLE_PRICE:
            if len(raw_rules) > 1:
                conflict = exceeded = True
                ctx.flag("hasConflict", SOURCE)
                ctx.flag("exceededLimit", SOURCE)
            if not rules:
                ctx.flag_malformed("missingBundlePrice", SOURCE)
            rules = rules[:1]
            pattern = "BUNDLE_PRICE"
        else:
            if not rules:
                ctx.flag_malformed("missingDiscountTiers", SOURCE)
            rules, conflict = self._single_qualifier(rules, ctx)
            rules = self._dedupe_tiers(rules, ctx)
            rules = self._sort_tiers(rules, ctx)
            pattern = "TIERED" if len(rules) > 1 else "SINGLE_TIER"

        config = DiscountConfiguration(discount_mode=mode, rules=rules)
        return self._finish(config, ctx, pattern, hasConflict=conflict, exceededLimit=exceeded)

    def _coerce_rule(
        self,
        raw: RawDiscountRule | Invalid,
        mode: str,
        unit: str,
        ctx: AssemblyContext,
    ) -> DiscountRule | None:
        if isinstance(raw, Invalid):
            ctx.flag_malformed("invalidDiscountRule", SOURCE)
            return None

        qualifier = raw.qualifier_type
        if isinstance(qualifier, Invalid):
            ctx.flag_malformed("invalidQualifierType", SOURCE)
            return None
        if qualifier is ABSENT:
            ctx.flag("defaultQualifierApplied", SOURCE)
            qualifier = QUANTITY

        threshold = raw.value
        if threshold is ABSENT or isinstance(threshold, Invalid):
            ctx.flag_malformed("invalidThreshold", SOURCE)
            return None
        if threshold <= 0:
            ctx.flag("invalidThreshold", SOURCE)
            return None

        value = raw.discount_value
        if value is ABSENT or isinstance(value, Invalid):
            ctx.flag_malformed("invalidDiscountValue", SOURCE)
            return None
        if value <= 0 or (mode == PERCENTAGE and value > MAX_PERCENTAGE):
            ctx.flag("invalidDiscountValue", SOURCE)
            return None

        return DiscountRule(
            qualifier_type=qualifier,
            threshold=threshold,
            discount_value=value,
            unit=unit,
        )

    def _single_qualifier(
        self, rules: list[DiscountRule], ctx: AssemblyContext
    ) -> tuple[list[DiscountRule], bool]:
        """Tiers must all qualify on one measure; the first rule decides which."""
        if not rules:
            return rules, False
        qualifier = rules[0].qualifier_type
        kept = [r for r in rules if r.qualifier_type == qualifier]
        if len(kept) == len(rules):
            return rules, False
        ctx.flag("mixedQualifierTypes", SOURCE)
        ctx.flag("hasConflict", SOURCE)
        return kept, True

    def _dedupe_tiers(self, rules: list[DiscountRule], ctx: AssemblyContext) -> list[DiscountRule]:
        seen: set[int | float] = set()
        kept: list[DiscountRule] = []
        for rule in rules:
            if rule.threshold in seen:
                ctx.flag("duplicateTier", SOURCE)
                continue
            seen.add(rule.threshold)
            kept.append(rule)
        return kept

    def _sort_tiers(self, rules: list[DiscountRule], ctx: AssemblyContext) -> list[DiscountRule]:
        ordered = sorted(rules, key=lambda r: r.threshold)
        if ordered != rules:
            ctx.flag("rulesReordered", SOURCE)
        return ordered

    def _finish(
        self,
        config: DiscountConfiguration,
        ctx: AssemblyContext,
        pattern: str,
        **extras: Any,
    ) -> DiscountConfiguration:
        ctx.record(
            "Discount normalization",
            pattern=pattern,
            output=[r.to_dict() for r in config.rules],
            discountMode=config.discount_mode,
            rulesCount=len(config.rules),
            **{k: v for k, v in extras.items() if v},
        )
        return config


def normalize_discount(raw: Any) -> tuple[DiscountConfiguration, dict[str, bool]]:
    """Normalize a raw Discount output on its own, returning rules and flags."""
    ctx = AssemblyContext(case_id="discount")
    config = DiscountNormalizer().normalize(parse_discount(raw), ctx)
    return config, ctx.flags.snapshot()

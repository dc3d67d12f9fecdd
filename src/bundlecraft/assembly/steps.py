"""Step builder — turn declared steps plus matched catalog entries into bundle steps."""

from __future__ import annotations

from bundlecraft.assembly.context import AssemblyContext
from bundlecraft.assembly.matching import CollectionMatcher, MatchResult
from bundlecraft.core.errors import CatalogMissingError
from bundlecraft.core.models import (
    ABSENT,
    MULTI_STEP,
    SINGLE_STEP,
    BundleStep,
    CatalogContext,
    Category,
    Invalid,
    RawStep,
    RawStructureOutput,
)

SOURCE = "structure"


def structure_rejection(structure: RawStructureOutput) -> str | None:
    """Why the structure output cannot seed a bundle, or None when it can."""
    if not structure.present and structure.structure_type is ABSENT:
        return "STRUCTURE_MISSING"
    if structure.structure_type is None:
        return "STRUCTURE_REJECTED"
    if structure.structure_type is ABSENT:
        return "STRUCTURE_TYPE_MISSING"
    if isinstance(structure.structure_type, Invalid):
        return "STRUCTURE_TYPE_INVALID"
    return None


class StepBuilder:
    """Builds the ordered bundle steps for one assembly call."""

    def __init__(self, matcher: CollectionMatcher):
        self.matcher = matcher

    def build(
        self,
        structure: RawStructureOutput,
        catalog: CatalogContext | None,
        ctx: AssemblyContext,
    ) -> list[BundleStep]:
        """Build steps in declared order.

        Returns [] for a rejected structure. Raises CatalogMissingError when
        the catalog is absent and at least one hint needs matching.
        """
        if structure_rejection(structure) is not None:
            return []

        declared = self._prepare(structure, ctx)

        hint_count = sum(len(hints) for _, hints in declared)
        if catalog is None and hint_count:
            raise CatalogMissingError(hint_count)
        if catalog is None:
            catalog = CatalogContext()

        if (structure.structure_type == SINGLE_STEP and len(declared) > 1) or (
            structure.structure_type == MULTI_STEP and len(declared) < 2
        ):
            ctx.flag("structureTypeMismatch", SOURCE)

        ctx.record(
            "Step building",
            pattern=structure.structure_type,
            output=[label for label, _ in declared],
            stepsCount=len(declared),
        )

        steps: list[BundleStep] = []
        for index, (label, hints) in enumerate(declared):
            steps.append(self._build_step(index, label, hints, catalog, ctx))
        return steps

    def _prepare(self, structure: RawStructureOutput, ctx: AssemblyContext) -> list[tuple[str, list[str]]]:
        """Resolve labels and hint lists, flagging anything malformed."""
        raw_steps = structure.steps
        if isinstance(raw_steps, Invalid):
            ctx.flag_malformed("invalidSteps", SOURCE)
            raw_steps = []
        elif raw_steps is ABSENT:
            raw_steps = []

        if not raw_steps and structure.structure_type == SINGLE_STEP:
            ctx.flag("defaultStepApplied", SOURCE)
            raw_steps = [RawStep()]

        if structure.hints_unassigned:
            ctx.flag("collectionHintsUnassigned", SOURCE)

        declared: list[tuple[str, list[str]]] = []
        for raw_step in raw_steps:
            if isinstance(raw_step, Invalid):
                ctx.flag_malformed("invalidStep", SOURCE)
                continue

            label = raw_step.label
            if isinstance(label, Invalid):
                ctx.flag_malformed("invalidStepLabel", SOURCE)
                label = ""
            elif label is ABSENT:
                label = ""

            hints: list[str] = []
            raw_hints = raw_step.collection_hints
            if isinstance(raw_hints, Invalid):
                ctx.flag_malformed("invalidCollectionHints", SOURCE)
            elif raw_hints is not ABSENT:
                for hint in raw_hints:
                    if isinstance(hint, Invalid):
                        ctx.flag_malformed("invalidCollectionHint", SOURCE)
                        continue
                    hints.append(hint)

            declared.append((label, hints))
        return declared

    def _build_step(
        self,
        index: int,
        label: str,
        hints: list[str],
        catalog: CatalogContext,
        ctx: AssemblyContext,
    ) -> BundleStep:
        results: list[MatchResult] = [self.matcher.match(hint, catalog) for hint in hints]

        categories: list[Category] = []
        seen: set[str] = set()
        unmatched: list[str] = []
        for result in results:
            if not result.matched:
                unmatched.append(result.hint)
                ctx.flag("collectionHintUnmatched", "matcher")
                continue
            if result.id in seen:
                continue
            seen.add(result.id)
            categories.append(result.to_category())

        if not categories:
            ctx.flag("emptyStepCategories", SOURCE)

        if not hints:
            pattern = "NO_HINTS"
        elif not categories:
            pattern = "NO_MATCH"
        elif unmatched:
            pattern = "PARTIAL_MATCH"
        else:
            pattern = "MATCHED"

        ctx.record(
            f"Collection match: step {index}",
            pattern=pattern,
            output=[c.id for c in categories],
            categoriesCount=len(categories),
            matches=[r.to_dict() for r in results],
        )
        return BundleStep(index=index, label=label, categories=categories, unmatched_hints=unmatched)

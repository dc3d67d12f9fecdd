"""Per-run accumulator threaded through every assembly component."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from bundlecraft.core.logging import AssemblyLogger
from bundlecraft.core.models import ABSENT, TraceEntry

# Flags every result carries, false until raised
WELL_KNOWN_FLAGS = (
    "structureRejected",
    "catalogMissing",
    "collectionHintUnmatched",
    "emptyStepCategories",
    "hasConflict",
    "exceededLimit",
    "rulesReordered",
    "duplicateTier",
    "invalidDiscountValue",
    "DUPLICATE_RULE",
    "invalidStepIndex",
    "malformedOutput",
)


class FlagSet:
    """Monotonic flag map: a flag can be raised, never cleared."""

    def __init__(self, seed: tuple[str, ...] = WELL_KNOWN_FLAGS):
        self._flags: dict[str, bool] = {name: False for name in seed}

    def raise_flag(self, name: str) -> bool:
        """Set a flag. Returns True when this call raised it for the first time."""
        if self._flags.get(name):
            return False
        self._flags[name] = True
        return True

    def is_set(self, name: str) -> bool:
        return self._flags.get(name, False)

    def __contains__(self, name: str) -> bool:
        return self.is_set(name)

    def raised(self) -> list[str]:
        return [name for name, value in self._flags.items() if value]

    def snapshot(self) -> dict[str, bool]:
        return dict(self._flags)


@dataclass
class AssemblyContext:
    """Flags and execution trace for a single assembly call."""

    case_id: str = "case"
    logger: AssemblyLogger | None = None
    flags: FlagSet = field(default_factory=FlagSet)
    trace: list[TraceEntry] = field(default_factory=list)
    flag_sources: dict[str, str] = field(default_factory=dict)

    def flag(self, name: str, source: str) -> None:
        """Raise a flag on behalf of a component."""
        if self.flags.raise_flag(name):
            self.flag_sources[name] = source
            if self.logger is not None:
                self.logger.flag_raised(self.case_id, name, source)

    def flag_malformed(self, name: str, source: str) -> None:
        """Raise a specific flag plus the umbrella malformedOutput flag."""
        self.flag(name, source)
        self.flag("malformedOutput", source)

    def record(
        self,
        name: str,
        *,
        pattern: str | None = None,
        output: Any = ABSENT,
        duration_ms: int | float | None = None,
        **extras: Any,
    ) -> TraceEntry:
        """Append an execution-trace entry. Step numbers start at 1."""
        entry = TraceEntry(
            step=len(self.trace) + 1,
            name=name,
            duration_ms=duration_ms,
            pattern=pattern,
            output=output,
            extras=extras,
        )
        self.trace.append(entry)
        if self.logger is not None:
            self.logger.stage(self.case_id, name, entry.to_dict())
        return entry

"""Assembly case files — recorded component outputs plus catalog, in JSON or YAML.

A case is a mapping with ``structure``, ``discount``, ``rules`` and either a
``catalog`` mapping or top-level ``collections``/``products``. Pipeline
history log entries (``{input: {...}, output: {structureLLM, discountLLM,
rulesLLM}}``) are accepted too, so logged runs can be replayed.

A case file holds one case, a list of cases, or ``{cases: [...]}``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from bundlecraft.core.errors import CaseFileError

_STRUCTURE_KEYS = ("structure", "structureOutput", "structureLLM")
_DISCOUNT_KEYS = ("discount", "discountOutput", "discountLLM")
_RULES_KEYS = ("rules", "rulesOutput", "rulesLLM")


def _first(data: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


@dataclass
class AssemblyCase:
    """One set of inputs for the assembly engine."""

    case_id: str
    structure: Any = None
    discount: Any = None
    rules: Any = None
    catalog: Any = None
    llm_durations: dict[str, Any] = field(default_factory=dict)
    merchant_text: str = ""

    @classmethod
    def from_dict(cls, data: dict, default_id: str = "case") -> AssemblyCase:
        if not isinstance(data, dict):
            raise CaseFileError(f"Case {default_id} is not a mapping")

        case_id = str(data.get("id", default_id))
        outputs = data
        inputs = data
        if isinstance(data.get("output"), dict):
            outputs = data["output"]
            inputs = data.get("input") if isinstance(data.get("input"), dict) else {}

        catalog = data.get("catalog")
        if catalog is None and ("collections" in inputs or "products" in inputs):
            catalog = {
                "collections": inputs.get("collections") or [],
                "products": inputs.get("products") or [],
            }

        durations = data.get("llmDurations") or {}
        if not isinstance(durations, dict):
            raise CaseFileError(f"Case {case_id}: llmDurations must be a mapping")

        return cls(
            case_id=case_id,
            structure=_first(outputs, _STRUCTURE_KEYS),
            discount=_first(outputs, _DISCOUNT_KEYS),
            rules=_first(outputs, _RULES_KEYS),
            catalog=catalog,
            llm_durations=durations,
            merchant_text=str(inputs.get("merchantText") or ""),
        )

    def with_catalog(self, collections: list[dict] | None, products: list[dict] | None) -> AssemblyCase:
        """Return a copy whose catalog lists are replaced where given."""
        base = self.catalog if isinstance(self.catalog, dict) else {}
        catalog = {
            "collections": collections if collections is not None else base.get("collections", []),
            "products": products if products is not None else base.get("products", []),
        }
        return AssemblyCase(
            case_id=self.case_id,
            structure=self.structure,
            discount=self.discount,
            rules=self.rules,
            catalog=catalog,
            llm_durations=dict(self.llm_durations),
            merchant_text=self.merchant_text,
        )


def read_case_data(path: Path) -> Any:
    """Load raw JSON or YAML (by extension; YAML for anything not .json)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CaseFileError(f"Cannot read case file {path}: {e}") from e

    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise CaseFileError(f"Cannot parse case file {path}: {e}") from e


def load_cases(path: Path) -> list[AssemblyCase]:
    """Load every case in a file."""
    data = read_case_data(path)
    if isinstance(data, dict) and isinstance(data.get("cases"), list):
        data = data["cases"]
    if isinstance(data, dict):
        return [AssemblyCase.from_dict(data, default_id=path.stem)]
    if isinstance(data, list):
        if not data:
            raise CaseFileError(f"Case file {path} contains no cases")
        return [AssemblyCase.from_dict(item, default_id=f"{path.stem}-{i}") for i, item in enumerate(data, start=1)]
    raise CaseFileError(f"Case file {path} must contain a mapping or a list of mappings")


def load_case(path: Path) -> AssemblyCase:
    """Load a file that must hold exactly one case."""
    cases = load_cases(path)
    if len(cases) != 1:
        raise CaseFileError(f"Case file {path} holds {len(cases)} cases; use `bundlecraft batch`")
    return cases[0]

"""Bundlecraft - deterministic assembly of merchant bundle configurations.

Usage:
    from bundlecraft import assemble

    result = assemble(
        structure={"structureType": "SINGLE_STEP",
                   "steps": [{"label": "Pick items", "collectionHints": ["Shirts"]}]},
        discount={"discountMode": "PERCENTAGE",
                  "rules": [{"type": "quantity", "value": 2, "discountValue": 10}]},
        rules={"conditions": []},
        catalog={"collections": [{"id": "c1", "title": "Shirts"}], "products": []},
    )
    result.status          # PipelineStatus.AUTO
    result.to_dict()       # payload with bundleConfig, flags, decision_trace, trace
"""

from bundlecraft.assembly.decision import DecisionEngine, assemble
from bundlecraft.core.config import AssemblyConfig
from bundlecraft.core.models import (
    BundleConfig,
    BundleStep,
    CatalogContext,
    Category,
    DiscountConfiguration,
    DiscountRule,
    PipelineResult,
    PipelineStatus,
    SelectionRule,
    TraceEntry,
)

__all__ = [
    "AssemblyConfig",
    "BundleConfig",
    "BundleStep",
    "CatalogContext",
    "Category",
    "DecisionEngine",
    "DiscountConfiguration",
    "DiscountRule",
    "PipelineResult",
    "PipelineStatus",
    "SelectionRule",
    "TraceEntry",
    "assemble",
]

__version__ = "0.1.0"

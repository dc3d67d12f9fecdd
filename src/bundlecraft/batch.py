"""Batch runner — assemble many cases concurrently, results in input order."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed

from bundlecraft.assembly.decision import DecisionEngine
from bundlecraft.cases import AssemblyCase
from bundlecraft.core.models import PipelineResult


def run_batch(
    engine: DecisionEngine,
    cases: list[AssemblyCase],
    concurrency: int = 1,
) -> list[PipelineResult]:
    """Run every case through one engine.

    The engine keeps no per-run state, so cases can share it across
    threads. Results come back in the same order as ``cases``.

    Args:
        engine: Configured decision engine.
        cases: Cases to assemble.
        concurrency: Maximum number of concurrent workers.

    Returns:
        One PipelineResult per case.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    def _run_one(case: AssemblyCase) -> PipelineResult:
        return engine.run(
            case.structure,
            case.discount,
            case.rules,
            case.catalog,
            case_id=case.case_id,
            llm_durations=case.llm_durations,
        )

    if concurrency == 1 or len(cases) <= 1:
        return [_run_one(case) for case in cases]

    results: list[PipelineResult | Exception | None] = [None] * len(cases)
    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        futures = {pool.submit(_run_one, case): i for i, case in enumerate(cases)}
        for future in as_completed(futures):
            idx = futures[future]
            try:
                results[idx] = future.result()
            except Exception as exc:
                results[idx] = exc

    ordered: list[PipelineResult] = []
    for i, result in enumerate(results):
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise RuntimeError(f"Batch produced no result for case {i}")
        ordered.append(result)
    return ordered

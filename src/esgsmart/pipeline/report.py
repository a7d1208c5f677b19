from __future__ import annotations

import logging
from typing import Any, Dict

from esgsmart.analytics.benchmark_engine import analyze_benchmark
from esgsmart.analytics.gap_aggregator import gap_view
from esgsmart.analytics.summary_normalizer import summary_view
from esgsmart.types import ReadinessResponse

logger = logging.getLogger(__name__)


def build_report(response: ReadinessResponse) -> Dict[str, Any]:
    """
    Build the final report for one document.

    Output shape:
    {
        "document_id": str,
        "ready": {"summary": bool, "benchmark": bool, "gap": bool, "all": bool},
        "summary": {...} | None,     # all three None unless ready["all"]
        "benchmark": {...} | None,
        "gap": {...} | None,
        "errors": {artifact: reason},
        "paths": {artifact: dbfs path},
    }
    """
    ready = response.ready

    # The three views are pending together until every artifact is ready
    summary = benchmark = gap = None
    if ready.all:
        summary = summary_view(response.summary)
        benchmark = analyze_benchmark(response.benchmark)
        gap = gap_view(response.gap)

    for name, flag in ready.to_dict().items():
        if name != "all" and not flag:
            logger.warning(
                "build_report: %s not ready for %s (%s)",
                name,
                response.document_id,
                response.errors.get(name, "not_found"),
            )

    return {
        "document_id": response.document_id,
        "ready": ready.to_dict(),
        "summary": summary,
        "benchmark": benchmark,
        "gap": gap,
        "errors": dict(response.errors),
        "paths": dict(response.paths),
    }

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from esgsmart.config import DatabricksSettings
from esgsmart.errors import ArtifactError, MalformedArtifact, NotFound
from esgsmart.store.dbfs_gateway import DbfsGateway
from esgsmart.types import ReadinessResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Candidate paths
# ---------------------------------------------------------------------


def benchmark_candidates(benchmark_dir: str, document_id: str) -> List[str]:
    base = benchmark_dir.rstrip("/")
    return [
        f"{base}/{document_id}.json",
        f"{base}/benchmark_{document_id}.json",
        f"{base}/{document_id}/benchmark.json",
    ]


def gap_candidates(gap_dir: str, document_id: str) -> List[str]:
    base = gap_dir.rstrip("/")
    return [
        f"{base}/severity_{document_id}.json",
        f"{base}/{document_id}.json",
        f"{base}/gap_{document_id}.json",
    ]


# ---------------------------------------------------------------------
# Batch predictions
# ---------------------------------------------------------------------


def embedded_document_id(row: Any) -> Optional[str]:
    """
    The document id of a prediction row, wherever the endpoint put it.
    """
    if not isinstance(row, Mapping):
        return None
    if row.get("pdf_id") is not None:
        return str(row["pdf_id"])
    for wrapper in ("json_schema", "metadata", "context"):
        inner = row.get(wrapper)
        if isinstance(inner, Mapping) and inner.get("pdf_id") is not None:
            return str(inner["pdf_id"])
    return None


def parse_batch(text: str, path: str = "") -> List[Any]:
    """
    Parse a batch file holding one JSON object, a JSON array, or NDJSON.
    """
    stripped = text.strip()
    if not stripped:
        return []

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        rows: List[Any] = []
        for lineno, line in enumerate(stripped.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                rows.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise MalformedArtifact(path, f"NDJSON line {lineno}: {e}") from e
        return rows

    if isinstance(data, list):
        return data
    if isinstance(data, Mapping) and isinstance(data.get("predictions"), list):
        return list(data["predictions"])
    return [data]


def find_summary_row(rows: List[Any], document_id: str) -> Optional[Dict[str, Any]]:
    for row in rows:
        if embedded_document_id(row) == document_id:
            return dict(row)
    return None


# ---------------------------------------------------------------------
# Per-artifact reads
# ---------------------------------------------------------------------


class ArtifactLookup:
    """
    One fetch cycle over the three artifact categories of a document.

    Each artifact is resolved independently; a failure of one is recorded in
    the response and never prevents the others from being read.
    """

    def __init__(
        self,
        gateway: Optional[DbfsGateway] = None,
        settings: Optional[DatabricksSettings] = None,
    ):
        self.gateway = gateway or DbfsGateway()
        self.settings = settings or self.gateway.client.settings

    def read_summary(self, document_id: str, batch_path: str) -> Optional[Dict[str, Any]]:
        text = self.gateway.read_text(batch_path)
        rows = parse_batch(text, batch_path)
        row = find_summary_row(rows, document_id)
        if row is None:
            logger.debug("No matching document id %s in batch %s", document_id, batch_path)
        return row

    def read_benchmark(self, document_id: str) -> tuple[str, Dict[str, Any]]:
        path, data = self.gateway.read_first_of(
            benchmark_candidates(self.settings.benchmark_dir, document_id)
        )
        if not isinstance(data, Mapping):
            raise MalformedArtifact(path, f"benchmark is not an object (got {type(data).__name__})")
        return path, dict(data)

    def read_gap(self, document_id: str) -> tuple[str, List[Any]]:
        path, data = self.gateway.read_first_of(
            gap_candidates(self.settings.gap_dir, document_id)
        )
        if not isinstance(data, list):
            raise MalformedArtifact(path, f"gap result is not an array (got {type(data).__name__})")
        return path, data

    # ------------------------------------------------------------------

    def fetch_all(self, document_id: str, batch_path: Optional[str] = None) -> ReadinessResponse:
        response = ReadinessResponse(document_id=document_id)

        # Summary
        if batch_path:
            try:
                response.summary = self.read_summary(document_id, batch_path)
                if response.summary is None:
                    response.errors["summary"] = "no matching record in batch"
                else:
                    response.paths["summary"] = batch_path
            except ArtifactError as e:
                _record(response, "summary", e)
        else:
            logger.debug("No batch path for %s, skipping summary", document_id)
            response.errors["summary"] = "no batch path"

        # Benchmark
        try:
            path, response.benchmark = self.read_benchmark(document_id)
            response.paths["benchmark"] = path
        except ArtifactError as e:
            _record(response, "benchmark", e)

        # Gap
        try:
            path, response.gap = self.read_gap(document_id)
            response.paths["gap"] = path
        except ArtifactError as e:
            _record(response, "gap", e)

        logger.info("Ready status for %s: %s", document_id, response.ready.to_dict())
        return response


def _record(response: ReadinessResponse, name: str, err: ArtifactError) -> None:
    if isinstance(err, NotFound):
        logger.debug("%s not ready: %s", name, err)
    elif isinstance(err, MalformedArtifact):
        logger.error("%s artifact is malformed: %s", name, err)
    else:
        logger.warning("%s read failed: %s", name, err)
    response.errors[name] = f"{err.kind}: {err.message}" if err.message else err.kind

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from esgsmart.store.artifact_lookup import embedded_document_id
from esgsmart.store.dbfs_gateway import DbfsGateway
from esgsmart.store.http_client import DatabricksClient
from esgsmart.types import SubmissionResult
from esgsmart.utils.pdf_reader import extract_text

logger = logging.getLogger(__name__)

RUN_NOW_API = "/api/2.1/jobs/run-now"
RUNS_GET_API = "/api/2.1/jobs/runs/get"


def compute_document_id(text: str, raw: bytes = b"") -> tuple[str, str]:
    """(sha256 hex, "pdf_<first 16 hex>") of the text, or of the raw bytes if no text."""
    digest = hashlib.sha256(text.encode("utf-8") if text else raw).hexdigest()
    return digest, f"pdf_{digest[:16]}"


def prediction_rows(serving_response: Any) -> List[Any]:
    if isinstance(serving_response, list):
        return serving_response
    if isinstance(serving_response, dict) and isinstance(serving_response.get("predictions"), list):
        return serving_response["predictions"]
    return []


def batch_path_for(dbfs_base: str, today: Optional[str] = None) -> str:
    day = today or datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return f"{dbfs_base.rstrip('/')}/{day}/batch_{uuid.uuid4()}.json"


def submit_document(
    pdf_path: str,
    client: Optional[DatabricksClient] = None,
    gateway: Optional[DbfsGateway] = None,
) -> SubmissionResult:
    """
    Send a report through extraction and kick off the downstream job.

    1. text via pdfplumber, hashed into the candidate document id
    2. serving endpoint call with one dataframe record
    3. predictions written as NDJSON to a dated batch file
    4. merge/benchmark job triggered, if a job id is configured
    """
    client = client or DatabricksClient()
    gateway = gateway or DbfsGateway(client)
    settings = client.settings

    text = extract_text(pdf_path).strip()
    raw = b"" if text else Path(pdf_path).read_bytes()
    digest, candidate_id = compute_document_id(text, raw)
    logger.info("Submitting %s as %s (%d chars)", pdf_path, candidate_id, len(text))

    records = [
        {"pdf_id": candidate_id, "pdf_doc": text, "text_sha256": digest, "company_name": None}
    ]
    serving = client.post_json(
        f"/serving-endpoints/{settings.endpoint}/invocations",
        {"dataframe_records": records},
        operation="Serving",
    )

    rows = prediction_rows(serving)
    first = rows[0] if rows else (serving if isinstance(serving, dict) else {})
    document_id = str(embedded_document_id(first) or candidate_id)
    if document_id != candidate_id:
        logger.info("Serving endpoint resolved document id %s -> %s", candidate_id, document_id)

    ndjson = "\n".join(json.dumps(r) for r in rows) if rows else json.dumps(first)
    batch_path = batch_path_for(settings.dbfs_base)
    gateway.put_text(batch_path, ndjson)
    logger.info("Wrote %d prediction row(s) to %s", max(len(rows), 1), batch_path)

    run_id = trigger_job(batch_path, client)

    return SubmissionResult(
        document_id=document_id,
        batch_path=batch_path,
        job_run_id=run_id,
        text_sha256=digest,
        computed_document_id=candidate_id,
    )


def trigger_job(batch_path: str, client: Optional[DatabricksClient] = None) -> Optional[int]:
    """run-now with the batch as notebook params; None when no job is configured."""
    client = client or DatabricksClient()
    settings = client.settings
    if not settings.job_id:
        logger.info("No DATABRICKS_JOB_ID configured, skipping job trigger")
        return None

    payload = {
        "job_id": settings.job_id,
        "notebook_params": {
            "batch_path": batch_path,
            "target_table": settings.target_table,
            "output_dir": settings.benchmark_dir,
        },
    }
    answer = client.post_json(RUN_NOW_API, payload, operation="run-now")
    run_id = answer.get("run_id") if isinstance(answer, dict) else None
    logger.info("Triggered job %s, run_id=%s", settings.job_id, run_id)
    return run_id


def get_run_status(run_id: int, client: Optional[DatabricksClient] = None) -> Dict[str, Any]:
    client = client or DatabricksClient()
    return client.post_json(RUNS_GET_API, {"run_id": int(run_id)}, operation="runs/get")

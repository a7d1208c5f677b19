# tests/test_trigger.py
import base64
import hashlib
import json
from unittest.mock import patch

import pytest

from esgsmart.config import DatabricksSettings
from esgsmart.errors import ServiceError
from esgsmart.pipeline.trigger import (
    RUN_NOW_API,
    RUNS_GET_API,
    batch_path_for,
    compute_document_id,
    get_run_status,
    prediction_rows,
    submit_document,
)

REPORT_TEXT = "Acme REIT Sustainability Report 2024. Scope 1 emissions 1,234 tCO2e."


def settings(**overrides):
    return DatabricksSettings(
        host="https://dbc.example.com",
        token="t0k",
        endpoint="esgsmart_chatbot",
        dbfs_base="dbfs:/tmp/pdf_extractions",
        **overrides,
    )


def serving_path(s):
    return f"/serving-endpoints/{s.endpoint}/invocations"


def test_compute_document_id():
    digest, doc_id = compute_document_id(REPORT_TEXT)
    assert digest == hashlib.sha256(REPORT_TEXT.encode("utf-8")).hexdigest()
    assert doc_id == f"pdf_{digest[:16]}"


def test_compute_document_id_falls_back_to_bytes():
    digest, _ = compute_document_id("", b"%PDF-1.7")
    assert digest == hashlib.sha256(b"%PDF-1.7").hexdigest()


def test_prediction_rows():
    assert prediction_rows([{"a": 1}]) == [{"a": 1}]
    assert prediction_rows({"predictions": [{"a": 1}]}) == [{"a": 1}]
    assert prediction_rows({"a": 1}) == []


def test_batch_path_for():
    path = batch_path_for("dbfs:/tmp/pdf_extractions/", today="2025-03-01")
    assert path.startswith("dbfs:/tmp/pdf_extractions/2025-03-01/batch_")
    assert path.endswith(".json")


@patch("esgsmart.pipeline.trigger.extract_text", return_value=REPORT_TEXT)
def test_submit_document_resolves_id_and_writes_batch(mock_extract, fake_client, tmp_path):
    s = settings(job_id=0)
    rows = [{"json_schema": {"pdf_id": "pdf_resolved"}, "company_name": "Acme REIT"}]
    client = fake_client(settings=s, answers={serving_path(s): {"predictions": rows}})

    result = submit_document(str(tmp_path / "report.pdf"), client=client)

    _, doc_id = compute_document_id(REPORT_TEXT)
    assert result.computed_document_id == doc_id
    assert result.document_id == "pdf_resolved"
    assert result.job_run_id is None

    serving_call, put_call = client.posts
    record = serving_call[1]["dataframe_records"][0]
    assert record["pdf_id"] == doc_id
    assert record["pdf_doc"] == REPORT_TEXT
    assert record["company_name"] is None

    assert put_call[0] == "/api/2.0/dbfs/put"
    assert put_call[1]["path"] == result.batch_path
    written = base64.b64decode(put_call[1]["contents"]).decode("utf-8")
    assert [json.loads(line) for line in written.splitlines()] == rows


@patch("esgsmart.pipeline.trigger.extract_text", return_value=REPORT_TEXT)
def test_submit_document_falls_back_to_computed_id(mock_extract, fake_client, tmp_path):
    s = settings(job_id=0)
    client = fake_client(settings=s, answers={serving_path(s): [{"company_name": "Acme"}]})

    result = submit_document(str(tmp_path / "report.pdf"), client=client)
    assert result.document_id == result.computed_document_id


@patch("esgsmart.pipeline.trigger.extract_text", return_value=REPORT_TEXT)
def test_submit_document_triggers_job(mock_extract, fake_client, tmp_path):
    s = settings(job_id=42, target_table="cat.schema.table")
    client = fake_client(
        settings=s,
        answers={serving_path(s): [{"pdf_id": "pdf_x"}], RUN_NOW_API: {"run_id": 7}},
    )

    result = submit_document(str(tmp_path / "report.pdf"), client=client)

    assert result.job_run_id == 7
    path, payload, _ = client.posts[-1]
    assert path == RUN_NOW_API
    assert payload["job_id"] == 42
    assert payload["notebook_params"] == {
        "batch_path": result.batch_path,
        "target_table": "cat.schema.table",
        "output_dir": s.benchmark_dir,
    }


@patch("esgsmart.pipeline.trigger.extract_text", return_value=REPORT_TEXT)
def test_serving_failure_propagates(mock_extract, fake_client, tmp_path):
    s = settings(job_id=0)
    client = fake_client(settings=s, answers={serving_path(s): ServiceError("Serving", 500, "boom")})

    with pytest.raises(ServiceError):
        submit_document(str(tmp_path / "report.pdf"), client=client)
    assert len(client.posts) == 1


def test_get_run_status(fake_client):
    client = fake_client(answers={RUNS_GET_API: {"state": {"life_cycle_state": "RUNNING"}}})

    status = get_run_status("12", client=client)

    assert status["state"]["life_cycle_state"] == "RUNNING"
    assert client.posts[0][1] == {"run_id": 12}

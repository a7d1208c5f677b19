# tests/conftest.py
import base64
import json

import pytest

from esgsmart.config import DatabricksSettings


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload
        self.text = text or json.dumps(payload)
        self.content = self.text.encode("utf-8")

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON")
        return self._payload


class FakeClient:
    """Stands in for DatabricksClient; serves DBFS files from a dict of path -> bytes."""

    def __init__(self, files=None, errors=None, answers=None, settings=None):
        self.files = files or {}
        self.errors = errors or {}
        self.answers = answers or {}
        self.settings = settings or DatabricksSettings(host="https://dbc.example.com", token="t0k")
        self.reads = []
        self.posts = []

    def get(self, path, params=None):
        p = params["path"]
        self.reads.append((p, params["offset"]))
        if p in self.errors:
            err = self.errors[p]
            if isinstance(err, Exception):
                raise err
            return err
        if p not in self.files:
            return FakeResponse(404, {"error_code": "RESOURCE_DOES_NOT_EXIST"})
        data = self.files[p]
        if isinstance(data, str):
            data = data.encode("utf-8")
        chunk = data[params["offset"]: params["offset"] + params["length"]]
        return FakeResponse(
            200,
            {"bytes_read": len(chunk), "data": base64.b64encode(chunk).decode("ascii")},
        )

    def post_json(self, path, payload, operation):
        self.posts.append((path, payload, operation))
        answer = self.answers.get(path, {})
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def fake_client():
    return FakeClient


@pytest.fixture
def fake_response():
    return FakeResponse

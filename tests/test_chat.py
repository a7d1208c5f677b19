# tests/test_chat.py
from unittest.mock import patch

import pytest

from esgsmart.assistant.chat import ask, build_messages, is_regulatory_question
from esgsmart.assistant.prompts import (
    REGULATORY_FACTS,
    SYSTEM_PROMPT,
    build_context_block,
    shorten_text,
)
from esgsmart.config import DatabricksSettings

SUMMARY = {
    "pdf_id": "pdf_1",
    "company_name": "Acme REIT",
    "json_schema": {"reporting_year": 2024, "main_country": "Singapore"},
    "pdf_doc": "Full report text",
}
BENCHMARK = {
    "company": {"sbti_target_year": 2030, "sbti_scope_1_2_reduction_pct": 42},
    "peers_country": [{}, {}],
    "peers_region": [{}],
}
GAP = [
    {"framework_question_code": "GRI 305-1", "framework_question_name": "Direct emissions", "severity": 3},
    {"framework_question_code": "GRI 302-1", "severity": 0},
]


class MockChoice:
    def __init__(self, content):
        self.message = type("m", (), {"content": content})


class MockCompletion:
    def __init__(self, content):
        self.choices = [MockChoice(content)]


def test_shorten_text_keeps_head_and_tail():
    text = "a" * 5000 + "b" * 5000
    short = shorten_text(text, max_chars=1000)

    assert short.startswith("a" * 600)
    assert short.endswith("b" * 200)
    assert "[9200 chars omitted]" in short


def test_shorten_text_leaves_short_text_alone():
    assert shorten_text("short") == "short"


def test_context_block_contents():
    block = build_context_block(SUMMARY, BENCHMARK, GAP)

    assert "Company: Acme REIT" in block
    assert "Year: 2024" in block
    assert "Country/Region: Singapore/N/A" in block
    assert "Target year: 2030" in block
    assert "Country peers: 2 companies" in block
    assert "3 | GRI 305-1 | Direct emissions" in block
    assert "Severity 3 (Missing): 1" in block
    assert "Full report text" in block


def test_context_block_without_gaps():
    assert "No gaps data available" in build_context_block(SUMMARY, None, None)


@pytest.mark.parametrize(
    "question, expected",
    [
        ("Is GRI mandatory under SGX rules?", True),
        ("What does IFRS S2 require?", True),
        ("What were our scope 1 emissions?", False),
    ],
)
def test_is_regulatory_question(question, expected):
    assert is_regulatory_question([{"role": "user", "content": question}]) is expected


def test_build_messages_order():
    user = [{"role": "user", "content": "Does SGX mandate GRI?"}]
    msgs = build_messages(user, SUMMARY, BENCHMARK, GAP)

    assert msgs[0]["content"] == SYSTEM_PROMPT
    assert msgs[1]["content"].startswith("DOCUMENT SCOPE")
    assert "Primary data sources" in msgs[2]["content"]
    assert msgs[3]["content"] == REGULATORY_FACTS
    assert msgs[-1] == user[0]


def test_build_messages_without_document():
    msgs = build_messages([{"role": "user", "content": "Hello"}])
    assert len(msgs) == 3
    assert not any(m["content"].startswith("DOCUMENT SCOPE") for m in msgs)


def test_ask_calls_chat_endpoint():
    captured = {}

    def mock_create(*args, **kwargs):
        captured.update(kwargs)
        return MockCompletion("  Scope 1 was 1,234 tCO2e.  ")

    settings = DatabricksSettings(host="https://dbc.example.com", token="t0k", chat_endpoint="chat-model")

    with patch("openai.resources.chat.completions.Completions.create", new=mock_create):
        answer = ask([{"role": "user", "content": "Scope 1?"}], SUMMARY, BENCHMARK, GAP, settings=settings)

    assert answer == "Scope 1 was 1,234 tCO2e."
    assert captured["model"] == "chat-model"
    assert captured["temperature"] == 0.1
    assert captured["max_tokens"] == 1200

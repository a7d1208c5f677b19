from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from esgsmart.config import DatabricksSettings
from esgsmart.errors import ServiceError
from esgsmart.assistant.prompts import (
    DATA_SOURCES_INFO,
    DATA_SOURCES_PREAMBLE,
    REGULATORY_FACTS,
    SYSTEM_PROMPT,
    build_context_block,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 1200
CHAT_TIMEOUT_SECONDS = 120.0

_REGULATORY_PATTERN = re.compile(
    r"sgx|711a|711b|issb|ifrs s1|ifrs s2|mandatory|comply or explain|regulation|"
    r"listing rule|does singapore|is it required|mandate|law|rules"
)

Message = Dict[str, str]


def is_regulatory_question(messages: List[Message]) -> bool:
    if not messages:
        return False
    last = str(messages[-1].get("content") or "").lower()
    return bool(_REGULATORY_PATTERN.search(last))


def build_messages(
    messages: List[Message],
    summary: Optional[Dict[str, Any]] = None,
    benchmark: Optional[Dict[str, Any]] = None,
    gap: Optional[List[Any]] = None,
) -> List[Message]:
    """
    System prompt, document context (when any artifact is present), data
    sources background, regulatory facts (on regulatory questions), then the
    user's conversation.
    """
    out: List[Message] = [{"role": "system", "content": SYSTEM_PROMPT}]

    if summary or benchmark or gap:
        out.append({"role": "system", "content": build_context_block(summary, benchmark, gap)})

    out.append({"role": "system", "content": f"{DATA_SOURCES_PREAMBLE}\n\n{DATA_SOURCES_INFO}"})

    if is_regulatory_question(messages):
        out.append({"role": "system", "content": REGULATORY_FACTS})

    out.extend(messages)
    return out


def make_client(settings: Optional[DatabricksSettings] = None) -> OpenAI:
    """OpenAI-compatible client pointed at the workspace's serving endpoints."""
    settings = settings or DatabricksSettings()
    return OpenAI(
        api_key=settings.token,
        base_url=f"{settings.host}/serving-endpoints",
        timeout=CHAT_TIMEOUT_SECONDS,
    )


def ask(
    messages: List[Message],
    summary: Optional[Dict[str, Any]] = None,
    benchmark: Optional[Dict[str, Any]] = None,
    gap: Optional[List[Any]] = None,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    settings: Optional[DatabricksSettings] = None,
    client: Optional[OpenAI] = None,
) -> str:
    """
    Ask the chat endpoint a question about the current document.

    The artifacts go in verbatim as context; the answer comes back as plain
    text and is not interpreted.
    """
    settings = settings or DatabricksSettings()
    client = client or make_client(settings)
    payload = build_messages(messages, summary, benchmark, gap)

    logger.debug(
        "Calling chat endpoint=%s with %d messages", settings.chat_endpoint, len(payload)
    )

    try:
        response = client.chat.completions.create(
            model=settings.chat_endpoint,
            messages=payload,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except OpenAIError as e:
        logger.error("Chat endpoint call failed: %s", e)
        raise ServiceError("chat", getattr(e, "status_code", None), str(e)) from e

    content = response.choices[0].message.content if response.choices else ""
    return (content or "").strip()

"""Greenlist-grounded answers: retrieve, prompt the model, sanitize links."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from link_guard.links.sanitizer import LinkSanitizer
from link_guard.llm.prompts import greenlist_system_prompt
from link_guard.rag.context import build_context_block

logger = logging.getLogger(__name__)

Retriever = Callable[[str, int], list[dict]]
LLMFactory = Callable[..., BaseChatModel]

_ROLE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "human": HumanMessage,
    "assistant": AIMessage,
    "ai": AIMessage,
}


class AskError(ValueError):
    """Raised when an ask payload cannot be understood."""


def parse_ask_body(body: str) -> dict[str, Any]:
    """Parse a raw request body; non-JSON text becomes a single user message."""
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return {"messages": [{"role": "user", "content": body}]}
    if isinstance(payload, str):
        return {"messages": [{"role": "user", "content": payload}]}
    if not isinstance(payload, dict):
        raise AskError("invalid_body")
    return payload


def _messages_of(payload: dict[str, Any]) -> list[dict[str, str]]:
    messages = payload.get("messages") or []
    if not isinstance(messages, list):
        raise AskError("messages_must_be_list")

    clean = []
    for msg in messages:
        if not isinstance(msg, dict):
            raise AskError("invalid_message")
        role = str(msg.get("role", "")).strip().lower()
        if role not in _ROLE_TYPES:
            raise AskError("invalid_role")
        clean.append({"role": role, "content": str(msg.get("content") or "")})
    return clean


def to_langchain_messages(messages: list[dict[str, str]]) -> list[BaseMessage]:
    return [_ROLE_TYPES[m["role"]](content=m["content"]) for m in messages]


def answer_question(
    payload: dict[str, Any],
    *,
    retrieve: Retriever,
    llm_factory: LLMFactory,
    sanitizer: LinkSanitizer,
    top_k: int = 10,
    max_context_urls: int = 8,
) -> str:
    """Answer the first user message using greenlist context.

    A system message listing the retrieved URLs is prepended unless the
    conversation already has one. The model reply is link-sanitized.
    """
    messages = _messages_of(payload)
    question = next((m["content"] for m in messages if m["role"] == "user"), "")

    rows = retrieve(question, top_k)
    logger.debug("Retrieved %d greenlist rows", len(rows))

    if not any(m["role"] == "system" for m in messages):
        context = build_context_block(rows, limit=max_context_urls)
        messages.insert(0, {"role": "system", "content": greenlist_system_prompt(context)})

    kwargs: dict[str, Any] = {}
    for key, cast in (("temperature", float), ("max_tokens", int)):
        value = payload.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            kwargs[key] = cast(value)
    llm = llm_factory(**kwargs)

    response = llm.invoke(to_langchain_messages(messages))
    reply = str(getattr(response, "content", "") or "")
    logger.debug("Model reply length: %d", len(reply))

    return sanitizer.sanitize(reply)

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any

from app.core.config import get_settings
from app.core.errors import InvalidInputError
from app.services.opportunities.aggregator import (
    CATEGORIES,
    MAX_LIMIT,
    PRIORITIES,
    SORT_KEYS,
    TYPES,
    OpportunityFilters,
)
from app.services.prompts import render_prompt

logger = logging.getLogger(__name__)

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "introduction": ("intro", "introduce", "introduction"),
    "reconnection": ("reconnect", "catch up", "reach back", "lost touch"),
    "business_match": ("partner", "client", "deal", "vendor", "prospect"),
    "network_expansion": ("gap", "expand", "grow my network"),
    "strategic_move": ("invest", "board", "advisor"),
}
PRIORITY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "urgent": ("urgent", "asap"),
    "high": ("high priority", "important"),
}
SORT_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("impact", ("most impactful", "highest impact", "biggest")),
    ("urgency", ("urgent", "asap", "time sensitive")),
    ("date", ("newest", "latest", "recent")),
    ("confidence", ("most likely", "safest")),
)
CONFIDENCE_KEYWORDS = ("confident", "likely")
KEYWORD_MIN_CONFIDENCE = 0.6

_TOP_N = re.compile(r"\b(?:top|best|first)\s+(\d{1,3})\b")


@dataclass(frozen=True)
class ParsedQuery:
    text: str
    filters: OpportunityFilters
    parser: str
    model: str | None = None

    def as_dict(self) -> dict:
        return {"text": self.text, "parser": self.parser, "model": self.model, "filters": self.filters.as_dict()}


def _contains(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase)}", text) is not None


def parse_with_keywords(text: str) -> OpportunityFilters:
    lowered = " ".join(text.lower().split())

    categories = tuple(
        category
        for category, words in CATEGORY_KEYWORDS.items()
        if any(_contains(lowered, word) for word in words)
    )
    priorities = tuple(
        priority
        for priority, words in PRIORITY_KEYWORDS.items()
        if any(_contains(lowered, word) for word in words)
    )

    sort_by = "composite"
    for key, words in SORT_KEYWORDS:
        if any(_contains(lowered, word) for word in words):
            sort_by = key
            break

    limit = get_settings().opportunity_default_limit
    match = _TOP_N.search(lowered)
    if match:
        limit = max(1, min(MAX_LIMIT, int(match.group(1))))

    min_confidence = KEYWORD_MIN_CONFIDENCE if any(_contains(lowered, word) for word in CONFIDENCE_KEYWORDS) else None

    return OpportunityFilters(
        categories=categories,
        priorities=priorities,
        min_confidence=min_confidence,
        sort_by=sort_by,
        limit=limit,
    )


def _extract_json_object(text: str) -> dict[str, Any] | None:
    raw = text.strip()
    if not raw:
        return None

    candidates = [raw]
    start = raw.find("{")
    end = raw.rfind("}")
    if start >= 0 and end > start:
        candidates.append(raw[start : end + 1])

    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(payload, dict):
            return payload
    return None


def _filters_from_payload(payload: dict[str, Any]) -> OpportunityFilters:
    """Keep only the values the model was allowed to produce; anything out of vocabulary is dropped."""

    def _subset(key: str, allowed: tuple[str, ...]) -> tuple[str, ...]:
        values = payload.get(key) or []
        if isinstance(values, str):
            values = [values]
        return tuple(dict.fromkeys(str(item).strip().lower() for item in values if str(item).strip().lower() in allowed))

    def _bounded(key: str, low: float, high: float) -> float | None:
        value = payload.get(key)
        if value is None:
            return None
        try:
            return max(low, min(high, float(value)))
        except (TypeError, ValueError):
            return None

    sort_by = str(payload.get("sort_by") or "composite").strip().lower()
    limit = payload.get("limit")
    try:
        limit = max(1, min(MAX_LIMIT, int(limit))) if limit is not None else get_settings().opportunity_default_limit
    except (TypeError, ValueError):
        limit = get_settings().opportunity_default_limit

    return OpportunityFilters(
        categories=_subset("categories", CATEGORIES),
        types=_subset("types", TYPES),
        priorities=_subset("priorities", PRIORITIES),
        min_confidence=_bounded("min_confidence", 0.0, 1.0),
        min_impact=_bounded("min_impact", 0.0, 100.0),
        sort_by=sort_by if sort_by in SORT_KEYS else "composite",
        limit=limit,
    )


def _parse_with_openai(*, model: str, api_key: str, timeout: float, text: str) -> dict[str, Any]:
    from openai import OpenAI

    client = OpenAI(api_key=api_key, timeout=timeout)
    messages = [
        {
            "role": "system",
            "content": render_prompt(
                "opportunity_query_system",
                categories=", ".join(CATEGORIES),
                types=", ".join(TYPES),
                priorities=", ".join(PRIORITIES),
                sort_keys=", ".join(SORT_KEYS),
                max_limit=str(MAX_LIMIT),
            ),
        },
        {
            "role": "user",
            "content": render_prompt("opportunity_query_user", query_text=text),
        },
    ]
    response = client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=0.0,
        response_format={"type": "json_object"},
    )
    content = (response.choices[0].message.content or "").strip()
    payload = _extract_json_object(content)
    if payload is None:
        raise ValueError("model returned no JSON object")
    return payload


def parse_opportunity_query(text: str) -> ParsedQuery:
    text = (text or "").strip()
    if not text:
        raise InvalidInputError("query text must not be empty")

    settings = get_settings()
    if settings.llm_provider.strip().lower() != "openai":
        logger.warning("opportunity_query_provider_not_supported", extra={"provider": settings.llm_provider})
        return ParsedQuery(text=text, filters=parse_with_keywords(text), parser="keyword")

    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if not api_key:
        logger.info("opportunity_query_missing_api_key")
        return ParsedQuery(text=text, filters=parse_with_keywords(text), parser="keyword")

    try:
        payload = _parse_with_openai(
            model=settings.llm_model,
            api_key=api_key,
            timeout=settings.llm_timeout_seconds,
            text=text,
        )
        filters = _filters_from_payload(payload)
    except Exception:
        logger.exception("opportunity_query_failed_fallback_keyword", extra={"llm_model": settings.llm_model})
        return ParsedQuery(text=text, filters=parse_with_keywords(text), parser="keyword")

    return ParsedQuery(text=text, filters=filters, parser="openai", model=settings.llm_model)

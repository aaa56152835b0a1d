from __future__ import annotations

import pytest

from app.core.config import Settings, get_settings
from app.core.errors import InvalidInputError
from app.services.query import parser
from app.services.query.parser import parse_opportunity_query, parse_with_keywords


def test_keyword_parser_reads_count_priority_and_category() -> None:
    filters = parse_with_keywords("Show me the top 5 urgent introductions")

    assert filters.categories == ("introduction",)
    assert filters.priorities == ("urgent",)
    assert filters.sort_by == "urgency"
    assert filters.limit == 5
    assert filters.min_confidence is None


def test_keyword_parser_maps_confidence_words_to_threshold() -> None:
    filters = parse_with_keywords("Catch up with partners I am confident about")

    assert filters.categories == ("reconnection", "business_match")
    assert filters.min_confidence == 0.6
    assert filters.sort_by == "composite"
    assert filters.limit == get_settings().opportunity_default_limit


def test_keyword_parser_caps_requested_count() -> None:
    assert parse_with_keywords("best 900 gaps").limit == 200


def test_empty_query_is_rejected() -> None:
    with pytest.raises(InvalidInputError):
        parse_opportunity_query("   ")


def test_missing_api_key_uses_keyword_parser(monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    parsed = parse_opportunity_query("newest reconnections")

    assert parsed.parser == "keyword"
    assert parsed.model is None
    assert parsed.filters.categories == ("reconnection",)
    assert parsed.filters.sort_by == "date"


def test_unsupported_provider_uses_keyword_parser(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(parser, "get_settings", lambda: Settings(llm_provider="local"))

    def _unexpected(**_: object) -> dict:
        raise AssertionError("model should not be called")

    monkeypatch.setattr(parser, "_parse_with_openai", _unexpected)

    assert parse_opportunity_query("reconnect").parser == "keyword"


def test_model_failure_falls_back_to_keywords(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    def _boom(**_: object) -> dict:
        raise RuntimeError("upstream timeout")

    monkeypatch.setattr(parser, "_parse_with_openai", _boom)

    parsed = parse_opportunity_query("top 3 introductions")

    assert parsed.parser == "keyword"
    assert parsed.filters.limit == 3


def test_model_payload_is_restricted_to_known_values(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    captured: dict = {}

    def _fake(**kwargs: object) -> dict:
        captured.update(kwargs)
        return {
            "categories": ["Introduction", "gossip"],
            "types": ["partnership", "yacht_sale"],
            "priorities": "high",
            "min_confidence": 3,
            "sort_by": "vibes",
            "limit": "7",
        }

    monkeypatch.setattr(parser, "_parse_with_openai", _fake)

    parsed = parse_opportunity_query("warm partnership intros")

    assert parsed.parser == "openai"
    assert parsed.model == get_settings().llm_model
    assert captured["text"] == "warm partnership intros"
    assert parsed.filters.categories == ("introduction",)
    assert parsed.filters.types == ("partnership",)
    assert parsed.filters.priorities == ("high",)
    assert parsed.filters.min_confidence == 1.0
    assert parsed.filters.sort_by == "composite"
    assert parsed.filters.limit == 7


def test_json_object_is_extracted_from_wrapped_text() -> None:
    assert parser._extract_json_object('Here you go: {"limit": 4} thanks') == {"limit": 4}
    assert parser._extract_json_object("no json here") is None

from __future__ import annotations

import pytest

from app.services.prompts import get_prompt_definitions, render_prompt


def test_prompt_definitions_include_metadata() -> None:
    prompts = get_prompt_definitions()
    assert prompts
    for prompt in prompts:
        assert prompt.key
        assert prompt.description
        assert prompt.used_by
        assert prompt.template


def test_render_query_prompts_substitute_vocabulary() -> None:
    system = render_prompt(
        "opportunity_query_system",
        categories="introduction, reconnection",
        types="partnership",
        priorities="urgent, high",
        sort_keys="composite, impact",
        max_limit="200",
    )
    user = render_prompt("opportunity_query_user", query_text="top 5 intros")

    assert "subset of introduction, reconnection" in system
    assert "integer 1-200" in system
    assert user.endswith("top 5 intros")


def test_render_prompt_reports_missing_variables_and_unknown_keys() -> None:
    with pytest.raises(ValueError, match="query_text"):
        render_prompt("opportunity_query_user")
    with pytest.raises(KeyError):
        render_prompt("draft_email_user")

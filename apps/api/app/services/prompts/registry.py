from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PromptDefinition:
    key: str
    description: str
    used_by: str
    template: str


_PROMPTS: dict[str, PromptDefinition] = {
    "opportunity_query_system": PromptDefinition(
        key="opportunity_query_system",
        description=(
            "System instructions for translating a free-text opportunity request into the structured "
            "filter shape accepted by opportunity generation. Forces strict JSON output."
        ),
        used_by="app/services/query/parser.py::_parse_with_openai",
        template=(
            "You translate networking requests into opportunity filters. "
            "Return strict JSON with only these keys: categories, types, priorities, min_confidence, "
            "min_impact, sort_by, limit.\n"
            "- categories: subset of {categories}.\n"
            "- types: subset of {types}.\n"
            "- priorities: subset of {priorities}.\n"
            "- min_confidence: number 0-1 or null. min_impact: number 0-100 or null.\n"
            "- sort_by: one of {sort_keys}.\n"
            "- limit: integer 1-{max_limit} or null.\n"
            "Leave a list empty when the request does not constrain it. Do not invent contact names."
        ),
    ),
    "opportunity_query_user": PromptDefinition(
        key="opportunity_query_user",
        description="User prompt carrying the raw free-text request to be parsed into filters.",
        used_by="app/services/query/parser.py::_parse_with_openai",
        template="Convert this request into opportunity filters:\n{query_text}",
    ),
}


def get_prompt_definitions() -> list[PromptDefinition]:
    return list(_PROMPTS.values())


def render_prompt(key: str, **variables: str) -> str:
    prompt = _PROMPTS.get(key)
    if prompt is None:
        raise KeyError(f"Unknown prompt key: {key}")

    try:
        return prompt.template.format(**variables)
    except KeyError as exc:
        missing_key = str(exc).strip("'")
        raise ValueError(f"Missing variable '{missing_key}' for prompt '{key}'") from exc

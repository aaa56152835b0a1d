from __future__ import annotations

from app.services.scoring.keywords import OPPORTUNITY_WEIGHTS, PRIORITY_WEIGHTS, STRATEGIC_WEIGHTS


def _weighted(factor_scores: dict[str, float], weights: dict[str, float]) -> tuple[float, dict]:
    components = {name: round(factor_scores.get(name, 0.0) * weight, 3) for name, weight in weights.items()}
    total = float(max(0.0, min(100.0, round(sum(components.values())))))
    return total, components


def compute_priority_score(
    factor_scores: dict[str, float],
    *,
    weights: dict[str, float] = PRIORITY_WEIGHTS,
) -> tuple[float, dict]:
    return _weighted(factor_scores, weights)


def compute_opportunity_score(
    factor_scores: dict[str, float],
    *,
    weights: dict[str, float] = OPPORTUNITY_WEIGHTS,
) -> tuple[float, dict]:
    return _weighted(factor_scores, weights)


def compute_strategic_value(
    factor_scores: dict[str, float],
    *,
    weights: dict[str, float] = STRATEGIC_WEIGHTS,
) -> tuple[float, dict]:
    return _weighted(factor_scores, weights)

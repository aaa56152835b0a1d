from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from app.services.graph.records import AnalyticsRecord, CampaignRecord, EdgeRecord, OutreachRecord
from app.services.scoring.keywords import (
    COMPANY_GROWTH_KEYWORDS,
    COMPANY_SIZE_KEYWORDS,
    COMPANY_SIZE_SCORES,
    DEFAULT_SENIORITY_SCORE,
    HIGH_VALUE_TIERS,
    INDUSTRY_KEYWORDS,
    POSITIVE_CAMPAIGN_STATUSES,
    ROLE_EXPANSION_KEYWORDS,
    SENIORITY_SCORES,
    TRENDING_INDUSTRY_KEYWORDS,
)
from app.services.text import mentions

NO_ANALYTICS_NETWORK_SCORE = 20.0


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return float(max(low, min(high, value)))


def compute_network_position_score(analytics: AnalyticsRecord | None) -> tuple[float, dict]:
    if analytics is None:
        return NO_ANALYTICS_NETWORK_SCORE, {
            "influence": 0.0,
            "connections": 0.0,
            "centrality": 0.0,
            "total_connections": 0,
            "analytics_available": False,
        }

    influence = min(100.0, max(analytics.influence_score, 0.0) * 100.0)
    connections = min(100.0, math.log10(max(analytics.total_connections, 0) + 1) * 25.0)
    centrality = min(100.0, max(analytics.betweenness_centrality, 0.0) * 100.0)
    total = _clamp(round(influence * 0.4 + connections * 0.3 + centrality * 0.3))
    return total, {
        "influence": round(influence, 2),
        "connections": round(connections, 2),
        "centrality": round(centrality, 2),
        "total_connections": analytics.total_connections,
        "analytics_available": True,
    }


def industry_alignment(
    company: str | None,
    position: str | None,
    goals: list[str] | None = None,
    *,
    keywords: tuple[str, ...] = INDUSTRY_KEYWORDS,
) -> float:
    text = f"{company or ''} {position or ''}".lower()
    hits = sum(1 for keyword in keywords if keyword in text)
    goal_bonus = 0.0
    if goals and any(goal.strip().lower() in text for goal in goals if goal.strip()):
        goal_bonus = 20.0
    return min(100.0, hits * 15.0 + goal_bonus)


def seniority_level(
    position: str | None,
    *,
    table: dict[str, float] = SENIORITY_SCORES,
    default: float = DEFAULT_SENIORITY_SCORE,
) -> float:
    title = (position or "").lower()
    for keyword, score in table.items():
        if mentions(title, keyword):
            return float(score)
    return float(default)


def company_size_score(
    company: str | None,
    *,
    size_keywords: dict[str, tuple[str, ...]] = COMPANY_SIZE_KEYWORDS,
    size_scores: dict[str, float] = COMPANY_SIZE_SCORES,
) -> float:
    name = (company or "").lower()
    for bucket, keywords in size_keywords.items():
        if any(keyword in name for keyword in keywords):
            return float(size_scores[bucket])
    return float(size_scores["small"])


def compute_professional_relevance_score(
    company: str | None,
    position: str | None,
    goals: list[str] | None = None,
    *,
    industry_keywords: tuple[str, ...] = INDUSTRY_KEYWORDS,
    seniority_table: dict[str, float] = SENIORITY_SCORES,
) -> tuple[float, dict]:
    industry = industry_alignment(company, position, goals, keywords=industry_keywords)
    seniority = seniority_level(position, table=seniority_table)
    size = company_size_score(company)
    total = _clamp(round(industry * 0.4 + seniority * 0.35 + size * 0.25))
    return total, {"industry_alignment": industry, "seniority_level": seniority, "company_size": size}


def compute_mutual_connections_score(
    contact_id: str,
    edges: list[EdgeRecord],
    tiers: dict[str, str],
    *,
    high_value_tiers: frozenset[str] = HIGH_VALUE_TIERS,
) -> tuple[float, dict]:
    """Score how well-connected a contact is through confirmed edges.

    ``tiers`` maps contact id to tier for the other ends of ``edges``; an edge counts as
    high value when its other end sits in one of ``high_value_tiers``.
    """
    own_edges = [edge for edge in edges if edge.touches(contact_id)]
    count = len(own_edges)
    high_value = sum(1 for edge in own_edges if tiers.get(edge.other(contact_id)) in high_value_tiers)
    quality = (high_value / max(1, count)) * 100.0
    total = _clamp(round(math.log10(count + 1) * 40.0 + quality * 0.6))
    return total, {
        "mutual_count": count,
        "high_value_count": high_value,
        "connection_quality": round(quality, 2),
        "warm_intro_path_length": 1 if count > 0 else 3,
    }


def compute_engagement_score(
    outreach: list[OutreachRecord],
    campaigns: list[CampaignRecord],
    *,
    positive_statuses: frozenset[str] = POSITIVE_CAMPAIGN_STATUSES,
) -> tuple[float, dict]:
    total_outreach = len(outreach)
    responded = sum(1 for item in outreach if item.responded)
    response_rate = (responded / total_outreach) * 100.0 if total_outreach else 0.0
    # Repeated unanswered outreach wears a relationship down.
    fatigue = 100.0 if total_outreach == 0 else max(0.0, 100.0 - total_outreach * 5.0)
    if campaigns:
        positive = sum(1 for item in campaigns if (item.status or "").upper() in positive_statuses)
        campaign = (positive / len(campaigns)) * 100.0
    else:
        campaign = 50.0

    total = _clamp(round(response_rate * 0.4 + fatigue * 0.3 + campaign * 0.3))
    return total, {
        "response_rate": round(response_rate, 2),
        "outreach_count": total_outreach,
        "outreach_fatigue": fatigue,
        "campaign_conversion": round(campaign, 2),
    }


def compute_opportunity_indicators_score(
    company: str | None,
    position: str | None,
    updated_at: datetime | None,
    last_contact_at: datetime | None,
    *,
    now: datetime | None = None,
    trending_keywords: tuple[str, ...] = TRENDING_INDUSTRY_KEYWORDS,
    role_keywords: tuple[str, ...] = ROLE_EXPANSION_KEYWORDS,
    growth_keywords: tuple[str, ...] = COMPANY_GROWTH_KEYWORDS,
) -> tuple[float, dict]:
    now = now or datetime.now(timezone.utc)
    company_text = (company or "").lower()
    position_text = (position or "").lower()
    flags: list[str] = []
    score = 0.0

    recent_update = updated_at is not None and (now - updated_at) < timedelta(days=30)
    if recent_update and (company or position):
        flags.append("recent_job_change")
        score += 25.0

    trend = 80.0 if any(keyword in company_text for keyword in trending_keywords) else 50.0
    score += trend * 0.3

    if any(keyword in position_text for keyword in role_keywords):
        flags.append("role_expansion_potential")
        score += 20.0

    if any(keyword in company_text for keyword in growth_keywords):
        flags.append("company_growth")
        score += 15.0

    days_since = (now - last_contact_at).days if last_contact_at else None
    if days_since is not None and 90 < days_since < 365:
        flags.append("reconnection_opportunity")
        score += 10.0

    total = _clamp(round(score))
    return total, {"industry_trend": trend, "days_since_last_contact": days_since, "flags": flags}

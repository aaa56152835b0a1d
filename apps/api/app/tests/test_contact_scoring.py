from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.services.graph.records import AnalyticsRecord, CampaignRecord, ContactRecord, EdgeRecord, OutreachRecord
from app.services.scoring.contact_scoring import score_contact_record
from app.services.scoring.factor_scores import (
    compute_engagement_score,
    compute_mutual_connections_score,
    compute_network_position_score,
    compute_opportunity_indicators_score,
    seniority_level,
)
from app.services.scoring.priority_score import compute_priority_score
from app.services.scoring.relationship_score import compute_relationship_score, relationship_kind_score

NOW = datetime(2026, 5, 4, 12, 0, tzinfo=timezone.utc)


def _contact(**overrides) -> ContactRecord:
    values = {
        "contact_id": "c-1",
        "account_id": "acct-1",
        "first_name": "Dana",
        "last_name": "Reyes",
        "company": "Northwind Software Inc",
        "position": "VP Sales",
        "relationship_type": "client",
        "created_at": NOW - timedelta(days=400),
        "updated_at": NOW - timedelta(days=200),
        "last_contact_date": NOW - timedelta(days=20),
    }
    values.update(overrides)
    return ContactRecord(**values)


def test_scores_and_factors_stay_within_bounds() -> None:
    contact = _contact()
    edges = [
        EdgeRecord(relationship_id=f"e-{index}", contact_id="c-1", related_contact_id=f"n-{index}", is_verified=True)
        for index in range(12)
    ]
    outreach = [
        OutreachRecord(type="EMAIL", status="SENT", responded=index % 2 == 0, sent_at=NOW - timedelta(days=index))
        for index in range(30)
    ]
    scoring = score_contact_record(
        contact,
        edges=edges,
        tiers={f"n-{index}": "TIER_1" for index in range(12)},
        outreach=outreach,
        campaigns=[CampaignRecord(campaign_id="camp-1", status="CONVERTED")],
        analytics=AnalyticsRecord(
            contact_id="c-1", influence_score=4.0, betweenness_centrality=2.5, total_connections=10**9
        ),
        goals=["software"],
        now=NOW,
    )

    for value in (scoring.priority, scoring.opportunity, scoring.strategic_value):
        assert 0.0 <= value <= 100.0
    for name in (
        "network_position",
        "relationship_strength",
        "professional_relevance",
        "mutual_connections",
        "engagement_patterns",
        "opportunity_indicators",
    ):
        assert 0.0 <= scoring.factors[name]["score"] <= 100.0
    assert scoring.scored_at == NOW


def test_missing_analytics_gives_fixed_network_position() -> None:
    score, components = compute_network_position_score(None)

    assert score == 20.0
    assert components["analytics_available"] is False


def test_network_position_blends_influence_connections_and_centrality() -> None:
    score, components = compute_network_position_score(
        AnalyticsRecord(contact_id="c-1", influence_score=0.5, betweenness_centrality=0.2, total_connections=99)
    )

    # influence 50, connections log10(100)*25 = 50, centrality 20
    assert components["connections"] == 50.0
    assert score == round(50 * 0.4 + 50 * 0.3 + 20 * 0.3)


def test_unknown_relationship_kind_falls_back_to_default() -> None:
    assert relationship_kind_score("pen-pal") == 50.0
    assert relationship_kind_score(None) == 50.0
    assert relationship_kind_score("Mentor") == 95.0


def test_relationship_score_prefers_recent_contact() -> None:
    recent, _ = compute_relationship_score(NOW - timedelta(days=3), 4, NOW - timedelta(days=120), "partner", now=NOW)
    stale, components = compute_relationship_score(
        NOW - timedelta(days=300), 4, NOW - timedelta(days=120), "partner", now=NOW
    )

    assert recent > stale
    assert components["recency"] == 0.0
    assert components["days_since_last_contact"] == 300


def test_relationship_score_without_contact_history_uses_kind_only() -> None:
    score, components = compute_relationship_score(None, 0, None, "acquaintance", now=NOW)

    assert components["recency"] == 0.0
    assert components["frequency"] == 0.0
    assert score == round(60 * 0.3)


def test_seniority_first_keyword_wins() -> None:
    assert seniority_level("CEO and Founder") == 100.0
    assert seniority_level("Gardener") == 45.0


def test_mutual_connections_counts_high_value_tiers() -> None:
    edges = [
        EdgeRecord(relationship_id="e-1", contact_id="c-1", related_contact_id="n-1"),
        EdgeRecord(relationship_id="e-2", contact_id="n-2", related_contact_id="c-1"),
        EdgeRecord(relationship_id="e-3", contact_id="n-3", related_contact_id="n-4"),
    ]

    _, components = compute_mutual_connections_score("c-1", edges, {"n-1": "TIER_1", "n-2": "TIER_3"})

    assert components["mutual_count"] == 2
    assert components["high_value_count"] == 1
    assert components["connection_quality"] == 50.0


def test_engagement_without_outreach_is_neutral() -> None:
    score, components = compute_engagement_score([], [])

    assert components["outreach_fatigue"] == 100.0
    assert components["campaign_conversion"] == 50.0
    assert score == round(100 * 0.3 + 50 * 0.3)


def test_opportunity_indicators_raise_flags() -> None:
    score, components = compute_opportunity_indicators_score(
        "Stealth AI Startup",
        "Senior Product Manager",
        NOW - timedelta(days=5),
        NOW - timedelta(days=120),
        now=NOW,
    )

    assert set(components["flags"]) == {
        "recent_job_change",
        "role_expansion_potential",
        "company_growth",
        "reconnection_opportunity",
    }
    assert components["industry_trend"] == 80.0
    assert score == 94.0


def test_priority_composite_uses_fixed_weights() -> None:
    factors = {
        "network_position": 100.0,
        "relationship_strength": 0.0,
        "professional_relevance": 0.0,
        "mutual_connections": 0.0,
        "engagement_patterns": 0.0,
        "opportunity_indicators": 0.0,
    }

    score, components = compute_priority_score(factors)

    assert score == 25.0
    assert components["network_position"] == 25.0

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.services.graph.records import AnalyticsRecord, ContactRecord, EdgeRecord, NetworkSnapshot, OutreachRecord
from app.services.opportunities.business_match import (
    MatchContext,
    decision_power,
    detect_business_matches,
    estimate_company_size,
    match_client_prospect,
    match_contact,
    match_investment,
)
from app.services.opportunities.introduction import business_match, detect_introductions
from app.services.opportunities.reconnection import (
    analyze_outreach,
    detect_reconnections,
    optimal_timing,
    reconnection_confidence,
    reconnection_impact,
)

NOW = datetime(2026, 5, 6, 15, 0, tzinfo=timezone.utc)


def _contact(contact_id: str, **overrides) -> ContactRecord:
    values = {"contact_id": contact_id, "account_id": "acct-1", "first_name": contact_id.title()}
    values.update(overrides)
    return ContactRecord(**values)


def _edge(edge_id: str, left: str, right: str, strength: float = 0.8) -> EdgeRecord:
    return EdgeRecord(
        relationship_id=edge_id,
        contact_id=left,
        related_contact_id=right,
        strength=strength,
        is_verified=True,
    )


def _triangle(*, connect_ends: bool = False) -> NetworkSnapshot:
    contacts = [
        _contact("ann", relationship_type="colleague", position="Engineer"),
        _contact("bob", relationship_type="prospect", company="Acme Tech", position="Sales Director"),
        _contact("cat", relationship_type="prospect", company="Bright Marketing", position="Marketing Director"),
    ]
    edges = [_edge("e-1", "ann", "bob"), _edge("e-2", "ann", "cat")]
    if connect_ends:
        edges.append(_edge("e-3", "bob", "cat"))
    return NetworkSnapshot.build("acct-1", contacts, edges)


def test_business_match_rewards_complementary_industries_and_roles() -> None:
    source = _contact("bob", company="Acme Tech", position="Sales Director")
    target = _contact("cat", company="Bright Marketing", position="Marketing Director")

    score, factors, criteria = business_match(source, target)

    assert score == 0.75
    assert criteria == {"industry_alignment": True, "complementary_skills": True, "seniority_balance": True}
    assert any("Complementary roles" in factor for factor in factors)


def test_introduction_found_for_unconnected_pair_through_introducer() -> None:
    found = detect_introductions(_triangle(), now=NOW)

    assert len(found) == 1
    candidate = found[0]
    assert candidate.introducer.contact_id == "ann"
    assert {candidate.source.contact_id, candidate.target.contact_id} == {"bob", "cat"}
    assert candidate.intro_type == "partnership"
    assert candidate.edge_strengths == (0.8, 0.8)
    # 0.75 * 0.4 + 0.8 * 0.3 + 0.375 * 0.2 + 0.8 * 0.1
    assert abs(candidate.confidence - 0.695) < 1e-6
    # Warm introducer lowers the base effort of 50.
    assert candidate.effort == 35.0


def test_no_introduction_when_pair_already_connected() -> None:
    assert detect_introductions(_triangle(connect_ends=True), now=NOW) == []


def test_weak_edges_do_not_qualify_introducers() -> None:
    snapshot = _triangle()
    weakened = NetworkSnapshot.build(
        "acct-1",
        list(snapshot.contacts.values()),
        [_edge("e-1", "ann", "bob", 0.5), _edge("e-2", "ann", "cat")],
    )

    assert detect_introductions(weakened, now=NOW) == []


def test_outreach_profile_defaults_to_email_without_history() -> None:
    profile = analyze_outreach(())

    assert profile.total == 0
    assert profile.preferred_channel == "EMAIL"


def test_outreach_profile_measures_response_rate_and_channel() -> None:
    outreach = (
        OutreachRecord(type="LINKEDIN", status="SENT", responded=True, sent_at=NOW - timedelta(days=10), responded_at=NOW - timedelta(days=9)),
        OutreachRecord(type="LINKEDIN", status="SENT", responded=False, sent_at=NOW - timedelta(days=20)),
        OutreachRecord(type="EMAIL", status="RESPONDED", responded=False, sent_at=NOW - timedelta(days=30)),
    )

    profile = analyze_outreach(outreach)

    assert profile.preferred_channel == "LINKEDIN"
    assert round(profile.response_rate, 2) == 66.67
    assert profile.avg_response_days == 1.0


def test_unknown_relationship_kind_uses_default_reconnection_value() -> None:
    contact = _contact("x", relationship_type="pen-pal")

    impact, factors = reconnection_impact(contact, 400, None)

    assert impact == 10.0
    assert factors == []
    confidence = reconnection_confidence(contact, analyze_outreach(()), 400)
    assert abs(confidence - (0.3 + 0.1 + 0.5 * 0.3)) < 1e-9


def test_reconnection_detector_respects_dormancy_window() -> None:
    contacts = [
        _contact("fresh", relationship_type="mentor", last_contact_date=NOW - timedelta(days=10)),
        _contact("dormant", relationship_type="mentor", last_contact_date=NOW - timedelta(days=120), strategic_value=85),
        _contact("ancient", relationship_type="mentor", last_contact_date=NOW - timedelta(days=900)),
        _contact("never", relationship_type="mentor"),
    ]
    snapshot = NetworkSnapshot.build(
        "acct-1",
        contacts,
        [],
        [AnalyticsRecord(contact_id="dormant", influence_score=0.9)],
    )

    found = detect_reconnections(snapshot, now=NOW)

    assert [item.contact.contact_id for item in found] == ["dormant"]
    candidate = found[0]
    assert candidate.days_since_contact == 120
    assert candidate.approach["tone"] == "PERSONAL"
    assert "Optimal reconnection timing" in candidate.reasoning
    assert candidate.timing["suggested_date"] == NOW


def test_optimal_timing_moves_weekends_to_monday() -> None:
    saturday = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)

    timing = optimal_timing(120, saturday)

    assert timing["suggested_date"].date().isoformat() == "2026-01-12"
    assert "Scheduled for weekday contact" in timing["reasoning"]


def test_optimal_timing_avoids_last_week_of_quarter() -> None:
    quarter_end = datetime(2026, 3, 27, 9, 0, tzinfo=timezone.utc)

    timing = optimal_timing(200, quarter_end)

    assert timing["suggested_date"].date().isoformat() == "2026-04-05"
    assert "Avoiding end-of-quarter timing" in timing["reasoning"]


def test_company_size_and_decision_power_tables() -> None:
    assert estimate_company_size("Google") == "enterprise"
    assert estimate_company_size("Toyota Motor") == "large"
    assert estimate_company_size("Stealth Startup") == "startup"
    assert estimate_company_size("Initech Corp") == "medium"
    assert estimate_company_size(None) == "small"
    assert decision_power("Founder & CEO") == 1.0
    assert decision_power("Engineer") == 0.3


def test_client_prospect_for_enterprise_executive() -> None:
    contact = _contact("ceo", company="Google", position="CEO", relationship_type="prospect", opportunity_score=95)

    candidate = match_client_prospect(contact, MatchContext(now=NOW))

    assert candidate is not None
    assert candidate.archetype == "client_prospect"
    assert candidate.category == "business_match"
    assert candidate.estimated_value == 500_000
    assert candidate.timeline == 90.0
    assert candidate.deadline == NOW + timedelta(days=30)
    assert candidate.confidence == 0.85


def test_existing_clients_are_not_client_prospects() -> None:
    contact = _contact("cli", company="Google", position="CEO", relationship_type="client")

    assert match_client_prospect(contact, MatchContext(now=NOW)) is None


def test_investment_needs_supporting_signal() -> None:
    investor = _contact("vc", company="Harbor Capital", position="Partner")

    assert match_investment(investor, MatchContext(now=NOW)) is None
    seeded = match_investment(
        investor,
        MatchContext(now=NOW, analytics=AnalyticsRecord(contact_id="vc", investment_stage="seed")),
    )
    assert seeded is not None
    assert seeded.category == "strategic_move"
    assert seeded.estimated_value == 1_000_000.0


def test_one_contact_can_match_several_archetypes() -> None:
    contact = _contact(
        "multi",
        company="Harbor Capital",
        position="Board Advisor and Keynote Speaker",
        relationship_type="partner",
    )

    matches = match_contact(contact, MatchContext(now=NOW))

    assert len({item.archetype for item in matches}) == len(matches)
    assert all(item.confidence >= 0.3 for item in matches)


def test_business_matches_skip_inactive_and_respect_limit() -> None:
    contacts = [
        _contact(f"c{index}", company="Google", position="VP Sales", relationship_type="prospect")
        for index in range(4)
    ] + [_contact("off", company="Google", position="CEO", status="ARCHIVED")]
    snapshot = NetworkSnapshot.build("acct-1", contacts, [])

    found = detect_business_matches(snapshot, now=NOW, limit=3)

    assert len(found) == 3
    assert all(item.contact.contact_id != "off" for item in found)
    scores = [item.confidence * item.impact * item.timeline for item in found]
    assert scores == sorted(scores, reverse=True)

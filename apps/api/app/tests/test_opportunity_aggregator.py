from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from app.core.config import get_settings
from app.core.errors import InvalidInputError
from app.db.pg.base import Base
from app.db.pg.models import OpportunitySuggestion
from app.db.pg.session import SessionLocal, engine
from app.services.graph.records import NetworkSnapshot
from app.services.opportunities.aggregator import (
    OpportunityFilters,
    UnifiedSuggestion,
    apply_filters,
    business_priority,
    composite_score,
    generate_opportunities,
    rank,
    run_detectors,
)
from app.services.opportunities.candidates import ContactRef
from app.services.opportunities.network_gaps import detect_network_gaps

NOW = datetime(2026, 5, 6, 12, 0, tzinfo=timezone.utc)


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def _suggestion(title: str, *, confidence: float, impact: float, urgency: float, **overrides) -> UnifiedSuggestion:
    values = {
        "title": title,
        "description": title,
        "category": "reconnection",
        "type": "reconnection",
        "priority": "medium",
        "confidence": confidence,
        "impact": impact,
        "effort": 20.0,
        "urgency": urgency,
        "reasoning": {},
        "source_engine": "reconnection",
        "suggested_at": NOW,
    }
    values.update(overrides)
    return UnifiedSuggestion(**values)


def _two_gaps(snapshot, now, settings):
    return detect_network_gaps(snapshot, now=now, limit=2)


def _broken(snapshot, now, settings):
    raise RuntimeError("detector exploded")


def test_composite_score_and_business_priority() -> None:
    assert composite_score(0.8, 50.0, 50.0) == pytest.approx(20.0)
    assert business_priority(100.0, 0.9) == "urgent"
    assert business_priority(100.0, 0.7) == "high"
    assert business_priority(100.0, 0.5) == "medium"
    assert business_priority(10.0, 1.0) == "low"


def test_filters_validate_vocabulary_and_bounds() -> None:
    with pytest.raises(InvalidInputError):
        OpportunityFilters(categories=("gossip",))
    with pytest.raises(InvalidInputError):
        OpportunityFilters(min_confidence=1.5)
    with pytest.raises(InvalidInputError):
        OpportunityFilters(limit=0)
    with pytest.raises(InvalidInputError):
        OpportunityFilters(sort_by="alphabetical")

    parsed = OpportunityFilters.from_dict({"categories": ["Introduction"], "limit": None, "unknown": 1})
    assert parsed.categories == ("introduction",)
    assert parsed.limit == 50


def test_contact_scope_keeps_contactless_suggestions() -> None:
    scoped = _suggestion(
        "Reconnect with Ann",
        confidence=0.9,
        impact=80.0,
        urgency=60.0,
        primary_contact=ContactRef("ann", "Ann"),
    )
    other = _suggestion(
        "Reconnect with Bob",
        confidence=0.9,
        impact=80.0,
        urgency=60.0,
        primary_contact=ContactRef("bob", "Bob"),
    )
    gap = _suggestion(
        "Address Finance Industry Gap",
        confidence=0.8,
        impact=80.0,
        urgency=80.0,
        category="network_expansion",
        type="cold_outreach",
    )

    kept = apply_filters([scoped, other, gap], OpportunityFilters(contact_ids=("ann",)))

    assert [item.title for item in kept] == ["Reconnect with Ann", "Address Finance Industry Gap"]


def test_filters_apply_thresholds_and_categories() -> None:
    strong = _suggestion("strong", confidence=0.9, impact=90.0, urgency=50.0)
    weak = _suggestion("weak", confidence=0.4, impact=90.0, urgency=50.0)
    intro = _suggestion("intro", confidence=0.9, impact=90.0, urgency=50.0, category="introduction")

    kept = apply_filters(
        [strong, weak, intro],
        OpportunityFilters(categories=("reconnection",), min_confidence=0.5, min_impact=50.0),
    )

    assert [item.title for item in kept] == ["strong"]


def test_rank_orders_by_requested_key() -> None:
    high_confidence = _suggestion("a", confidence=0.9, impact=40.0, urgency=40.0)
    high_impact = _suggestion("b", confidence=0.5, impact=95.0, urgency=90.0)
    later = _suggestion("c", confidence=0.1, impact=10.0, urgency=10.0, suggested_at=NOW + timedelta(hours=1))

    suggestions = [high_confidence, high_impact, later]

    assert [item.title for item in rank(suggestions)] == ["b", "a", "c"]
    assert [item.title for item in rank(suggestions, "confidence")] == ["a", "b", "c"]
    assert [item.title for item in rank(suggestions, "date")][0] == "c"


def test_date_rank_keeps_detector_order_within_one_run() -> None:
    intro = _suggestion("intro", confidence=0.2, impact=20.0, urgency=20.0, category="introduction")
    reconnect = _suggestion("reconnect", confidence=0.9, impact=90.0, urgency=90.0)
    gap = _suggestion("gap", confidence=0.5, impact=50.0, urgency=50.0, category="network_expansion")
    earlier = _suggestion("earlier", confidence=0.9, impact=90.0, urgency=90.0, suggested_at=NOW - timedelta(days=1))

    ranked = rank([earlier, intro, reconnect, gap], "date")

    assert [item.title for item in ranked] == ["intro", "reconnect", "gap", "earlier"]


def test_failing_detector_is_skipped_while_others_contribute() -> None:
    snapshot = NetworkSnapshot.build("acct-1", [], [])

    runs = run_detectors(
        snapshot,
        now=NOW,
        settings=get_settings(),
        detectors={"broken": _broken, "network_gap": _two_gaps},
    )

    by_engine = {run.engine: run for run in runs}
    assert by_engine["broken"].failed is True
    assert by_engine["broken"].candidates == []
    assert by_engine["network_gap"].failed is False
    assert len(by_engine["network_gap"].candidates) == 2


def test_generation_deduplicates_within_window() -> None:
    reset_db()
    db = SessionLocal()
    try:
        first = generate_opportunities(
            db,
            account_id="acct-1",
            now=NOW,
            detectors={"network_gap": _two_gaps, "broken": _broken},
        )
        second = generate_opportunities(
            db,
            account_id="acct-1",
            now=NOW + timedelta(days=1),
            detectors={"network_gap": _two_gaps},
        )

        assert first.created == 2
        assert first.skipped_engines == ["broken"]
        assert second.created == 0
        assert second.duplicates == 2
        assert {row.opportunity_id for row in second.suggestions} == {row.opportunity_id for row in first.suggestions}
        total = db.scalar(select(func.count()).select_from(OpportunitySuggestion))
        assert total == 2
        assert all(row.status == "PENDING" for row in first.suggestions)
        assert all(row.expires_at is not None for row in first.suggestions)
    finally:
        db.close()


def test_generation_outside_window_creates_fresh_rows() -> None:
    reset_db()
    db = SessionLocal()
    try:
        generate_opportunities(db, account_id="acct-1", now=NOW, detectors={"network_gap": _two_gaps})
        later = generate_opportunities(
            db,
            account_id="acct-1",
            now=NOW + timedelta(days=8),
            detectors={"network_gap": _two_gaps},
        )

        assert later.created == 2
        assert later.duplicates == 0
    finally:
        db.close()

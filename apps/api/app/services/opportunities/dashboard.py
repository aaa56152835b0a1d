from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError
from app.db.pg.models import OpportunitySuggestion
from app.services.graph.records import as_utc
from app.services.graph.store import GraphStore
from app.services.opportunities.aggregator import CATEGORIES, PRIORITIES, composite_score, serialize_suggestion
from app.services.opportunities.network_gaps import analyze_network_gaps
from app.services.opportunities.status import ACCEPTED, COMPLETED, DISMISSED, IN_PROGRESS, PENDING, VIEWED

DASHBOARD_WINDOW_DAYS = 30
TOP_PENDING = 5
TOP_TYPES = 5

VIEWED_OR_LATER = frozenset({VIEWED, ACCEPTED, IN_PROGRESS, COMPLETED})
ACCEPTED_OR_LATER = frozenset({ACCEPTED, IN_PROGRESS, COMPLETED})


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def trend_direction(this_week: int, last_week: int) -> str:
    if this_week > last_week * 1.1:
        return "up"
    if this_week < last_week * 0.9:
        return "down"
    return "stable"


def success_rate(rows: list[OpportunitySuggestion]) -> float:
    statuses = Counter(row.status for row in rows)
    return _pct(statuses[COMPLETED], statuses[COMPLETED] + statuses[DISMISSED])


def _composite(row: OpportunitySuggestion) -> float:
    return composite_score(row.confidence, row.impact_score, row.urgency_score)


def opportunity_dashboard(db: Session, *, account_id: str, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    store = GraphStore(db)
    rows = store.list_opportunities(account_id, since=now - timedelta(days=DASHBOARD_WINDOW_DAYS))

    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)
    this_week = sum(1 for row in rows if as_utc(row.created_at) >= week_ago)
    last_week = sum(1 for row in rows if two_weeks_ago <= as_utc(row.created_at) < week_ago)

    by_category = Counter(row.category for row in rows)
    by_priority = Counter(row.priority for row in rows)
    pending = sorted((row for row in rows if row.status == PENDING), key=_composite, reverse=True)
    network = analyze_network_gaps(store.load_snapshot(account_id), now=now)

    return {
        "summary": {
            "total_opportunities": len(rows),
            "high_priority_count": by_priority["high"] + by_priority["urgent"],
            "urgent_count": by_priority["urgent"],
            "completed_this_month": sum(1 for row in rows if row.status == COMPLETED),
            "average_confidence": round(sum(row.confidence for row in rows) / len(rows), 2) if rows else 0.0,
        },
        "categories": {category: by_category[category] for category in CATEGORIES},
        "priorities": {priority: by_priority[priority] for priority in PRIORITIES},
        "trends": {
            "new_this_week": this_week,
            "new_last_week": last_week,
            "trend_direction": trend_direction(this_week, last_week),
            "success_rate": success_rate(rows),
        },
        "top_opportunities": [serialize_suggestion(row) for row in pending[:TOP_PENDING]],
        "network_health": {
            "overall_score": network.overall_score,
            "diversity": network.health["diversity"],
            "activity": network.health["activity"],
            "influence": network.health["influence"],
        },
    }


def _hours_to_first_action(rows: list[OpportunitySuggestion], first_actions: dict[str, datetime]) -> float:
    deltas = [
        (as_utc(first_actions[row.opportunity_id]) - as_utc(row.created_at)).total_seconds() / 3600
        for row in rows
        if row.opportunity_id in first_actions
    ]
    return round(sum(deltas) / len(deltas), 2) if deltas else 0.0


def top_performing_types(rows: list[OpportunitySuggestion], *, limit: int = TOP_TYPES) -> list[dict]:
    totals = Counter(row.type for row in rows)
    completed = Counter(row.type for row in rows if row.status == COMPLETED)
    ranked = [
        {"type": kind, "total": total, "completed": completed[kind], "success_rate": _pct(completed[kind], total)}
        for kind, total in totals.items()
    ]
    ranked.sort(key=lambda item: (item["success_rate"], item["total"]), reverse=True)
    return ranked[:limit]


def opportunity_analytics(db: Session, *, account_id: str, days: int = 30, now: datetime | None = None) -> dict:
    if not 1 <= days <= 365:
        raise InvalidInputError("days must be between 1 and 365")
    now = now or datetime.now(timezone.utc)
    store = GraphStore(db)
    rows = store.list_opportunities(account_id, since=now - timedelta(days=days))

    first_actions: dict[str, datetime] = {}
    for action in store.list_opportunity_actions([row.opportunity_id for row in rows]):
        first_actions.setdefault(action.opportunity_id, action.created_at)

    total = len(rows)
    statuses = Counter(row.status for row in rows)
    return {
        "period_days": days,
        "total": total,
        "by_category": dict(Counter(row.category for row in rows)),
        "by_type": dict(Counter(row.type for row in rows)),
        "by_status": dict(statuses),
        "conversion_rates": {
            "viewed": _pct(sum(statuses[status] for status in VIEWED_OR_LATER), total),
            "accepted": _pct(sum(statuses[status] for status in ACCEPTED_OR_LATER), total),
            "completed": _pct(statuses[COMPLETED], total),
        },
        "average_hours_to_first_action": _hours_to_first_action(rows, first_actions),
        "top_performing_types": top_performing_types(rows),
    }

from __future__ import annotations

from datetime import datetime, timezone

from app.services.scoring.keywords import DEFAULT_RELATIONSHIP_KIND_SCORE, RELATIONSHIP_KIND_SCORES


def relationship_kind_score(
    relationship_type: str | None,
    *,
    kind_scores: dict[str, float] = RELATIONSHIP_KIND_SCORES,
    default: float = DEFAULT_RELATIONSHIP_KIND_SCORE,
) -> float:
    return float(kind_scores.get((relationship_type or "").strip().lower(), default))


def compute_relationship_score(
    last_contact_at: datetime | None,
    outreach_count: int,
    connected_since: datetime | None,
    relationship_type: str | None,
    *,
    now: datetime | None = None,
    kind_scores: dict[str, float] = RELATIONSHIP_KIND_SCORES,
) -> tuple[float, dict]:
    now = now or datetime.now(timezone.utc)
    if last_contact_at:
        days_since = max((now - last_contact_at).days, 0)
        # Linear decay to zero over five months.
        recency = max(0.0, 100.0 - (days_since / 30.0) * 20.0)
    else:
        days_since = None
        recency = 0.0

    days_connected = max((now - connected_since).days, 0) if connected_since else 365
    contacts_per_month = (max(outreach_count, 0) / days_connected) * 30.0 if days_connected > 0 else 0.0
    frequency = min(100.0, contacts_per_month * 50.0)
    kind = relationship_kind_score(relationship_type, kind_scores=kind_scores)

    total = float(max(0.0, min(100.0, round(recency * 0.4 + frequency * 0.3 + kind * 0.3))))
    components = {
        "days_since_last_contact": days_since,
        "recency": round(recency, 2),
        "contacts_per_month": round(contacts_per_month, 3),
        "frequency": round(frequency, 2),
        "relationship_kind": kind,
    }
    return total, components

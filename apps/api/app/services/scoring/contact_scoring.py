from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import BatchResult
from app.db.pg.session import SessionLocal
from app.services.batching import run_in_waves
from app.services.graph.records import AnalyticsRecord, CampaignRecord, ContactRecord, EdgeRecord, OutreachRecord
from app.services.graph.store import GraphStore
from app.services.scoring.factor_scores import (
    compute_engagement_score,
    compute_mutual_connections_score,
    compute_network_position_score,
    compute_opportunity_indicators_score,
    compute_professional_relevance_score,
)
from app.services.scoring.priority_score import (
    compute_opportunity_score,
    compute_priority_score,
    compute_strategic_value,
)
from app.services.scoring.relationship_score import compute_relationship_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContactScoring:
    contact_id: str
    priority: float
    opportunity: float
    strategic_value: float
    factors: dict
    flags: list[str] = field(default_factory=list)
    scored_at: datetime | None = None

    def as_dict(self) -> dict:
        return {
            "contact_id": self.contact_id,
            "priority": self.priority,
            "opportunity": self.opportunity,
            "strategic_value": self.strategic_value,
            "factors": self.factors,
            "flags": list(self.flags),
            "scored_at": self.scored_at.isoformat() if self.scored_at else None,
        }


def score_contact_record(
    contact: ContactRecord,
    *,
    edges: list[EdgeRecord],
    tiers: dict[str, str],
    outreach: list[OutreachRecord],
    campaigns: list[CampaignRecord],
    analytics: AnalyticsRecord | None,
    goals: list[str] | None = None,
    now: datetime | None = None,
) -> ContactScoring:
    now = now or datetime.now(timezone.utc)

    network, network_components = compute_network_position_score(analytics)
    relationship, relationship_components = compute_relationship_score(
        last_contact_at=contact.last_contact_date,
        outreach_count=len(outreach),
        connected_since=contact.created_at,
        relationship_type=contact.relationship_type,
        now=now,
    )
    professional, professional_components = compute_professional_relevance_score(
        contact.company, contact.position, goals
    )
    mutual, mutual_components = compute_mutual_connections_score(contact.contact_id, edges, tiers)
    engagement, engagement_components = compute_engagement_score(outreach, campaigns)
    opportunity_signals, opportunity_components = compute_opportunity_indicators_score(
        contact.company,
        contact.position,
        contact.updated_at,
        contact.last_contact_date,
        now=now,
    )

    factor_scores = {
        "network_position": network,
        "relationship_strength": relationship,
        "professional_relevance": professional,
        "mutual_connections": mutual,
        "engagement_patterns": engagement,
        "opportunity_indicators": opportunity_signals,
    }
    factor_components = {
        "network_position": network_components,
        "relationship_strength": relationship_components,
        "professional_relevance": professional_components,
        "mutual_connections": mutual_components,
        "engagement_patterns": engagement_components,
        "opportunity_indicators": opportunity_components,
    }
    priority, priority_components = compute_priority_score(factor_scores)
    opportunity, opportunity_weighted = compute_opportunity_score(factor_scores)
    strategic, strategic_components = compute_strategic_value(factor_scores)

    factors = {name: {"score": score, **factor_components[name]} for name, score in factor_scores.items()}
    factors["composites"] = {
        "priority": priority_components,
        "opportunity": opportunity_weighted,
        "strategic_value": strategic_components,
    }
    return ContactScoring(
        contact_id=contact.contact_id,
        priority=priority,
        opportunity=opportunity,
        strategic_value=strategic,
        factors=factors,
        flags=list(opportunity_components["flags"]),
        scored_at=now,
    )


def score_contact(
    db: Session,
    *,
    account_id: str,
    contact_id: str,
    goals: list[str] | None = None,
    now: datetime | None = None,
) -> ContactScoring:
    store = GraphStore(db)
    contact = store.get_contact(account_id, contact_id)
    edges = store.list_edges(account_id, contact_ids=[contact_id])
    neighbour_ids = sorted({edge.other(contact_id) for edge in edges})
    tiers = {item.contact_id: item.tier for item in store.list_contacts(account_id, neighbour_ids, status=None)}

    scoring = score_contact_record(
        contact,
        edges=edges,
        tiers=tiers,
        outreach=store.list_outreach(contact_id),
        campaigns=store.list_campaigns(contact_id),
        analytics=store.get_analytics(contact_id),
        goals=goals,
        now=now,
    )
    store.update_contact_scores(
        contact_id,
        priority=scoring.priority,
        opportunity=scoring.opportunity,
        strategic_value=scoring.strategic_value,
        factors=scoring.factors,
        flags=scoring.flags,
        scored_at=scoring.scored_at,
    )
    logger.info(
        "contact_scored",
        extra={"contact_id": contact_id, "priority": scoring.priority, "strategic_value": scoring.strategic_value},
    )
    return scoring


def batch_score(
    account_id: str,
    contact_ids: list[str] | None = None,
    goals: list[str] | None = None,
    *,
    session_factory: Callable[[], Session] = SessionLocal,
) -> BatchResult:
    settings = get_settings()
    if contact_ids is None:
        db = session_factory()
        try:
            contact_ids = [contact.contact_id for contact in GraphStore(db).list_contacts(account_id)]
        finally:
            db.close()

    def _score_one(contact_id: str) -> dict:
        db = session_factory()
        try:
            scoring = score_contact(db, account_id=account_id, contact_id=contact_id, goals=goals)
            return {"contact_id": contact_id, "priority": scoring.priority}
        finally:
            db.close()

    return run_in_waves(
        contact_ids,
        _score_one,
        chunk_size=settings.scoring_batch_chunk_size,
        pause_seconds=settings.batch_pause_seconds,
        max_workers=settings.batch_max_workers,
        event="batch_score",
    )

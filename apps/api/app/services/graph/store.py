from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError, NotFoundError, UpstreamUnavailableError
from app.db.pg.models import (
    CampaignContact,
    Contact,
    ContactRelationship,
    NetworkAnalytics,
    OpportunityAction,
    OpportunitySuggestion,
    Outreach,
    PotentialRelationship,
)
from app.services.graph.records import (
    AnalyticsRecord,
    CampaignRecord,
    ContactRecord,
    EdgeRecord,
    NetworkSnapshot,
    OutreachRecord,
    PotentialRelationshipRecord,
    as_utc,
)

logger = logging.getLogger(__name__)

OPEN_SUGGESTION_EXCLUDED_STATUSES = ("COMPLETED", "DISMISSED")


def _contact_record(row: Contact) -> ContactRecord:
    return ContactRecord(
        contact_id=row.contact_id,
        account_id=row.account_id,
        first_name=row.first_name or "",
        last_name=row.last_name or "",
        email=row.email,
        company=row.company,
        position=row.position,
        city=row.city,
        state=row.state,
        country=row.country,
        linkedin_url=row.linkedin_url,
        relationship_type=row.relationship_type,
        tier=row.tier or "TIER_3",
        status=row.status or "ACTIVE",
        priority_score=row.priority_score,
        opportunity_score=row.opportunity_score,
        strategic_value=row.strategic_value,
        opportunity_flags=tuple(row.opportunity_flags or ()),
        last_contact_date=as_utc(row.last_contact_date),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def _edge_record(row: ContactRelationship) -> EdgeRecord:
    return EdgeRecord(
        relationship_id=row.relationship_id,
        contact_id=row.contact_id,
        related_contact_id=row.related_contact_id,
        relationship_type=row.relationship_type,
        strength=float(row.strength),
        confidence=float(row.confidence),
        is_mutual=bool(row.is_mutual),
        is_verified=bool(row.is_verified),
        interaction_count=int(row.interaction_count or 0),
        source=row.source,
    )


def _analytics_record(row: NetworkAnalytics) -> AnalyticsRecord:
    return AnalyticsRecord(
        contact_id=row.contact_id,
        influence_score=float(row.influence_score or 0.0),
        betweenness_centrality=float(row.betweenness_centrality or 0.0),
        total_connections=int(row.total_connections or 0),
        investment_stage=row.investment_stage,
    )


def _outreach_record(row: Outreach) -> OutreachRecord:
    return OutreachRecord(
        type=row.type,
        status=row.status,
        responded=bool(row.responded),
        sent_at=as_utc(row.sent_at),
        responded_at=as_utc(row.responded_at),
    )


def potential_record(row: PotentialRelationship) -> PotentialRelationshipRecord:
    return PotentialRelationshipRecord(
        potential_id=row.potential_id,
        contact_id=row.contact_id,
        related_contact_id=row.related_contact_id,
        inferred_type=row.inferred_type,
        confidence=float(row.confidence),
        evidence=tuple(row.evidence_json or ()),
        status=row.status,
        discovered_at=as_utc(row.discovered_at),
    )


def _check_unit_interval(name: str, value: float) -> float:
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise InvalidInputError(f"{name} must be within [0, 1], got {value}")
    return value


class GraphStore:
    """Storage adapter for one SQLAlchemy session.

    Reads hand back frozen records so the engines never touch ORM state; writes are the
    narrow set the engines are allowed to perform (scores, potential relationships,
    suggestions and their status).
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _storage_errors(self, operation: str, **context) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.exception("graph_store_operation_failed", extra={"operation": operation, **context})
            self.db.rollback()
            raise UpstreamUnavailableError(f"storage failure during {operation}") from exc

    # Reads

    def get_contact(self, account_id: str, contact_id: str) -> ContactRecord:
        with self._storage_errors("get_contact", contact_id=contact_id):
            row = self.db.get(Contact, contact_id)
        if row is None or row.account_id != account_id:
            raise NotFoundError("contact", contact_id)
        return _contact_record(row)

    def list_contacts(
        self,
        account_id: str,
        contact_ids: list[str] | None = None,
        status: str | None = "ACTIVE",
    ) -> list[ContactRecord]:
        stmt = select(Contact).where(Contact.account_id == account_id)
        if contact_ids is not None:
            if not contact_ids:
                return []
            stmt = stmt.where(Contact.contact_id.in_(contact_ids))
        if status:
            stmt = stmt.where(Contact.status == status)
        with self._storage_errors("list_contacts", account_id=account_id):
            rows = self.db.scalars(stmt.order_by(Contact.created_at, Contact.contact_id)).all()
        return [_contact_record(row) for row in rows]

    def list_edges(
        self,
        account_id: str,
        contact_ids: list[str] | None = None,
        min_strength: float | None = None,
        verified_only: bool = False,
    ) -> list[EdgeRecord]:
        stmt = select(ContactRelationship).where(ContactRelationship.account_id == account_id)
        if contact_ids is not None:
            if not contact_ids:
                return []
            stmt = stmt.where(
                or_(
                    ContactRelationship.contact_id.in_(contact_ids),
                    ContactRelationship.related_contact_id.in_(contact_ids),
                )
            )
        if min_strength is not None:
            stmt = stmt.where(ContactRelationship.strength >= _check_unit_interval("min_strength", min_strength))
        if verified_only:
            stmt = stmt.where(ContactRelationship.is_verified.is_(True))
        with self._storage_errors("list_edges", account_id=account_id):
            rows = self.db.scalars(stmt.order_by(ContactRelationship.created_at, ContactRelationship.relationship_id)).all()
        return [_edge_record(row) for row in rows]

    def list_outreach(self, contact_id: str) -> list[OutreachRecord]:
        with self._storage_errors("list_outreach", contact_id=contact_id):
            rows = self.db.scalars(
                select(Outreach).where(Outreach.contact_id == contact_id).order_by(Outreach.sent_at.desc())
            ).all()
        return [_outreach_record(row) for row in rows]

    def list_campaigns(self, contact_id: str) -> list[CampaignRecord]:
        with self._storage_errors("list_campaigns", contact_id=contact_id):
            rows = self.db.scalars(select(CampaignContact).where(CampaignContact.contact_id == contact_id)).all()
        return [CampaignRecord(campaign_id=row.campaign_id, status=row.status) for row in rows]

    def get_analytics(self, contact_id: str) -> AnalyticsRecord | None:
        with self._storage_errors("get_analytics", contact_id=contact_id):
            row = self.db.get(NetworkAnalytics, contact_id)
        return _analytics_record(row) if row is not None else None

    def list_analytics(self, account_id: str) -> list[AnalyticsRecord]:
        stmt = (
            select(NetworkAnalytics)
            .join(Contact, Contact.contact_id == NetworkAnalytics.contact_id)
            .where(Contact.account_id == account_id)
        )
        with self._storage_errors("list_analytics", account_id=account_id):
            rows = self.db.scalars(stmt).all()
        return [_analytics_record(row) for row in rows]

    def load_snapshot(self, account_id: str) -> NetworkSnapshot:
        contacts = self.list_contacts(account_id)
        contact_ids = [contact.contact_id for contact in contacts]
        edges = self.list_edges(account_id)
        analytics = self.list_analytics(account_id)

        outreach: dict[str, list[OutreachRecord]] = {}
        if contact_ids:
            with self._storage_errors("load_snapshot_outreach", account_id=account_id):
                rows = self.db.scalars(
                    select(Outreach).where(Outreach.contact_id.in_(contact_ids)).order_by(Outreach.sent_at.desc())
                ).all()
            for row in rows:
                outreach.setdefault(row.contact_id, []).append(_outreach_record(row))

        return NetworkSnapshot.build(account_id, contacts, edges, analytics, outreach)

    # Writes

    def update_contact_scores(
        self,
        contact_id: str,
        *,
        priority: float,
        opportunity: float,
        strategic_value: float,
        factors: dict,
        flags: list[str],
        scored_at: datetime | None = None,
    ) -> None:
        with self._storage_errors("update_contact_scores", contact_id=contact_id):
            row = self.db.get(Contact, contact_id)
            if row is None:
                raise NotFoundError("contact", contact_id)
            row.priority_score = priority
            row.opportunity_score = opportunity
            row.strategic_value = strategic_value
            row.scoring_factors = factors
            row.opportunity_flags = list(flags)
            row.last_scoring_update = scored_at or datetime.now(timezone.utc)
            self.db.commit()

    def upsert_potential_relationship(
        self,
        account_id: str,
        *,
        contact_id: str,
        related_contact_id: str,
        inferred_type: str,
        confidence: float,
        evidence: list[dict],
    ) -> PotentialRelationshipRecord:
        confidence = _check_unit_interval("confidence", confidence)
        with self._storage_errors("upsert_potential_relationship", contact_id=contact_id):
            row = self.db.scalar(
                select(PotentialRelationship).where(
                    PotentialRelationship.contact_id == contact_id,
                    PotentialRelationship.related_contact_id == related_contact_id,
                )
            )
            if row is None:
                row = PotentialRelationship(
                    account_id=account_id,
                    contact_id=contact_id,
                    related_contact_id=related_contact_id,
                    source="auto_discovery",
                    status="pending",
                    inferred_type=inferred_type,
                    confidence=confidence,
                    evidence_json=evidence,
                )
                self.db.add(row)
            else:
                row.inferred_type = inferred_type
                row.confidence = confidence
                row.evidence_json = evidence
            self.db.commit()
            self.db.refresh(row)
        return potential_record(row)

    def list_potential_relationships(
        self,
        account_id: str,
        contact_id: str | None = None,
        status: str | None = "pending",
    ) -> list[PotentialRelationshipRecord]:
        stmt = select(PotentialRelationship).where(PotentialRelationship.account_id == account_id)
        if contact_id:
            stmt = stmt.where(PotentialRelationship.contact_id == contact_id)
        if status:
            stmt = stmt.where(PotentialRelationship.status == status)
        with self._storage_errors("list_potential_relationships", account_id=account_id):
            rows = self.db.scalars(stmt.order_by(PotentialRelationship.confidence.desc())).all()
        return [potential_record(row) for row in rows]

    def get_potential_relationship(self, account_id: str, potential_id: str) -> PotentialRelationship:
        with self._storage_errors("get_potential_relationship", potential_id=potential_id):
            row = self.db.get(PotentialRelationship, potential_id)
        if row is None or row.account_id != account_id:
            raise NotFoundError("potential_relationship", potential_id)
        return row

    def set_potential_relationship_status(self, row: PotentialRelationship, status: str) -> PotentialRelationshipRecord:
        with self._storage_errors("set_potential_relationship_status", potential_id=row.potential_id):
            row.status = status
            self.db.commit()
            self.db.refresh(row)
        return potential_record(row)

    def create_edge(
        self,
        account_id: str,
        *,
        contact_id: str,
        related_contact_id: str,
        relationship_type: str,
        strength: float,
        confidence: float,
        source: str,
        is_verified: bool = False,
    ) -> EdgeRecord:
        strength = _check_unit_interval("strength", strength)
        confidence = _check_unit_interval("confidence", confidence)
        with self._storage_errors("create_edge", contact_id=contact_id):
            # Edges are undirected: any existing row for the pair, from any source, is the edge.
            existing = self.db.scalar(
                select(ContactRelationship)
                .where(
                    ContactRelationship.account_id == account_id,
                    or_(
                        and_(
                            ContactRelationship.contact_id == contact_id,
                            ContactRelationship.related_contact_id == related_contact_id,
                        ),
                        and_(
                            ContactRelationship.contact_id == related_contact_id,
                            ContactRelationship.related_contact_id == contact_id,
                        ),
                    ),
                )
                .order_by(ContactRelationship.created_at, ContactRelationship.relationship_id)
                .limit(1)
            )
            if existing is not None:
                if is_verified and not existing.is_verified:
                    existing.is_verified = True
                    existing.last_verified_at = datetime.now(timezone.utc)
                    self.db.commit()
                    self.db.refresh(existing)
                return _edge_record(existing)
            row = ContactRelationship(
                account_id=account_id,
                contact_id=contact_id,
                related_contact_id=related_contact_id,
                relationship_type=relationship_type,
                strength=strength,
                confidence=confidence,
                source=source,
                is_verified=is_verified,
                last_verified_at=datetime.now(timezone.utc) if is_verified else None,
            )
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return _edge_record(row)

    def create_opportunity_suggestion(self, account_id: str, payload: dict) -> OpportunitySuggestion:
        with self._storage_errors("create_opportunity_suggestion", account_id=account_id):
            row = OpportunitySuggestion(account_id=account_id, **payload)
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return row

    def find_recent_duplicate(
        self,
        account_id: str,
        *,
        title: str,
        category: str,
        type: str,
        window_days: int = 7,
        now: datetime | None = None,
    ) -> OpportunitySuggestion | None:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=window_days)
        stmt = (
            select(OpportunitySuggestion)
            .where(
                OpportunitySuggestion.account_id == account_id,
                OpportunitySuggestion.title == title,
                OpportunitySuggestion.category == category,
                OpportunitySuggestion.type == type,
                OpportunitySuggestion.status.not_in(OPEN_SUGGESTION_EXCLUDED_STATUSES),
                OpportunitySuggestion.created_at >= cutoff,
            )
            .order_by(OpportunitySuggestion.created_at.desc())
            .limit(1)
        )
        with self._storage_errors("find_recent_duplicate", account_id=account_id):
            return self.db.scalar(stmt)

    def get_opportunity(self, account_id: str, opportunity_id: str) -> OpportunitySuggestion:
        with self._storage_errors("get_opportunity", opportunity_id=opportunity_id):
            row = self.db.get(OpportunitySuggestion, opportunity_id)
        if row is None or row.account_id != account_id:
            raise NotFoundError("opportunity", opportunity_id)
        return row

    def list_opportunities(
        self,
        account_id: str,
        *,
        status: str | None = None,
        category: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[OpportunitySuggestion]:
        stmt = select(OpportunitySuggestion).where(OpportunitySuggestion.account_id == account_id)
        if status:
            stmt = stmt.where(OpportunitySuggestion.status == status)
        if category:
            stmt = stmt.where(OpportunitySuggestion.category == category)
        if since is not None:
            stmt = stmt.where(OpportunitySuggestion.created_at >= since)
        stmt = stmt.order_by(OpportunitySuggestion.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        with self._storage_errors("list_opportunities", account_id=account_id):
            return list(self.db.scalars(stmt).all())

    def list_opportunity_actions(self, opportunity_ids: list[str]) -> list[OpportunityAction]:
        if not opportunity_ids:
            return []
        with self._storage_errors("list_opportunity_actions"):
            return list(
                self.db.scalars(
                    select(OpportunityAction)
                    .where(OpportunityAction.opportunity_id.in_(opportunity_ids))
                    .order_by(OpportunityAction.created_at)
                ).all()
            )

    def update_opportunity_status(
        self,
        row: OpportunitySuggestion,
        *,
        status: str,
        actor: str | None,
        notes: str | None,
        acted_at: datetime | None = None,
    ) -> OpportunitySuggestion:
        acted_at = acted_at or datetime.now(timezone.utc)
        with self._storage_errors("update_opportunity_status", opportunity_id=row.opportunity_id):
            row.status = status
            row.acted_at = acted_at
            row.acted_by = actor
            if notes:
                row.notes = notes
            self.db.add(
                OpportunityAction(
                    opportunity_id=row.opportunity_id,
                    action_type=status,
                    actor=actor,
                    notes=notes,
                    created_at=acted_at,
                )
            )
            self.db.commit()
            self.db.refresh(row)
        return row

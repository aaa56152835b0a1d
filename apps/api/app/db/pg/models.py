from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.pg.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


class Contact(Base):
    __tablename__ = "contacts"

    contact_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    state: Mapped[str | None] = mapped_column(String(64), nullable=True)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    linkedin_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    relationship_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default="TIER_3")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")
    priority_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    opportunity_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    strategic_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    scoring_factors: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    opportunity_flags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    last_contact_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_scoring_update: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class ContactRelationship(Base):
    __tablename__ = "contact_relationships"
    __table_args__ = (
        UniqueConstraint("contact_id", "related_contact_id", "source", name="uq_contact_relationships_pair_source"),
        CheckConstraint("strength >= 0 AND strength <= 1", name="ck_contact_relationships_strength"),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_contact_relationships_confidence"),
    )

    relationship_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    contact_id: Mapped[str] = mapped_column(String(36), ForeignKey("contacts.contact_id"), nullable=False)
    related_contact_id: Mapped[str] = mapped_column(String(36), ForeignKey("contacts.contact_id"), nullable=False)
    relationship_type: Mapped[str] = mapped_column(String(32), nullable=False, default="acquaintance")
    strength: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    is_mutual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    interaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="manual")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PotentialRelationship(Base):
    __tablename__ = "potential_relationships"
    __table_args__ = (
        UniqueConstraint("contact_id", "related_contact_id", name="uq_potential_relationships_pair"),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_potential_relationships_confidence"),
    )

    potential_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    contact_id: Mapped[str] = mapped_column(String(36), ForeignKey("contacts.contact_id"), nullable=False)
    related_contact_id: Mapped[str] = mapped_column(String(36), ForeignKey("contacts.contact_id"), nullable=False)
    inferred_type: Mapped[str] = mapped_column(String(32), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    evidence_json: Mapped[list] = mapped_column(JSON, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="auto_discovery")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    discovered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class Outreach(Base):
    __tablename__ = "outreach"

    outreach_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    contact_id: Mapped[str] = mapped_column(String(36), ForeignKey("contacts.contact_id"), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="EMAIL")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="SENT")
    responded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class CampaignContact(Base):
    __tablename__ = "campaign_contacts"
    __table_args__ = (UniqueConstraint("campaign_id", "contact_id", name="uq_campaign_contacts_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    campaign_id: Mapped[str] = mapped_column(String(64), nullable=False)
    contact_id: Mapped[str] = mapped_column(String(36), ForeignKey("contacts.contact_id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class NetworkAnalytics(Base):
    __tablename__ = "network_analytics"

    contact_id: Mapped[str] = mapped_column(String(36), ForeignKey("contacts.contact_id"), primary_key=True)
    influence_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    betweenness_centrality: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_connections: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    investment_stage: Mapped[str | None] = mapped_column(String(32), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class OpportunitySuggestion(Base):
    __tablename__ = "opportunity_suggestions"

    opportunity_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    impact_score: Mapped[float] = mapped_column(Float, nullable=False)
    effort_score: Mapped[float] = mapped_column(Float, nullable=False)
    urgency_score: Mapped[float] = mapped_column(Float, nullable=False)
    reasoning_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    suggested_actions_json: Mapped[list] = mapped_column(JSON, nullable=False)
    metadata_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    primary_contact_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    secondary_contact_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    source_engine: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="PENDING")
    acted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    acted_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class OpportunityAction(Base):
    __tablename__ = "opportunity_actions"

    action_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    opportunity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("opportunity_suggestions.opportunity_id"), nullable=False
    )
    action_type: Mapped[str] = mapped_column(String(16), nullable=False)
    actor: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


Index("ix_contacts_account", Contact.account_id)
Index("ix_contact_relationships_account", ContactRelationship.account_id)
Index("ix_contact_relationships_related", ContactRelationship.related_contact_id)
Index("ix_potential_relationships_account", PotentialRelationship.account_id)
Index("ix_outreach_contact", Outreach.contact_id)
Index(
    "ix_opportunity_suggestions_dedup",
    OpportunitySuggestion.account_id,
    OpportunitySuggestion.title,
    OpportunitySuggestion.category,
    OpportunitySuggestion.type,
)

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(earlier: datetime | None, now: datetime) -> int | None:
    if earlier is None:
        return None
    return max((now - as_utc(earlier)).days, 0)


@dataclass(frozen=True)
class ContactRecord:
    contact_id: str
    account_id: str
    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    company: str | None = None
    position: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    linkedin_url: str | None = None
    relationship_type: str | None = None
    tier: str = "TIER_3"
    status: str = "ACTIVE"
    priority_score: float | None = None
    opportunity_score: float | None = None
    strategic_value: float | None = None
    opportunity_flags: tuple[str, ...] = ()
    last_contact_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part).strip() or self.contact_id

    @property
    def company_lower(self) -> str:
        return (self.company or "").strip().lower()

    @property
    def position_lower(self) -> str:
        return (self.position or "").strip().lower()

    @property
    def kind(self) -> str:
        return (self.relationship_type or "").strip().lower()


@dataclass(frozen=True)
class EdgeRecord:
    relationship_id: str
    contact_id: str
    related_contact_id: str
    relationship_type: str = "acquaintance"
    strength: float = 0.5
    confidence: float = 1.0
    is_mutual: bool = False
    is_verified: bool = False
    interaction_count: int = 0
    source: str = "manual"

    def other(self, contact_id: str) -> str:
        return self.related_contact_id if self.contact_id == contact_id else self.contact_id

    def touches(self, contact_id: str) -> bool:
        return contact_id in (self.contact_id, self.related_contact_id)


@dataclass(frozen=True)
class AnalyticsRecord:
    contact_id: str
    influence_score: float = 0.0
    betweenness_centrality: float = 0.0
    total_connections: int = 0
    investment_stage: str | None = None


@dataclass(frozen=True)
class OutreachRecord:
    type: str
    status: str
    responded: bool
    sent_at: datetime
    responded_at: datetime | None = None


@dataclass(frozen=True)
class CampaignRecord:
    campaign_id: str
    status: str


@dataclass(frozen=True)
class PotentialRelationshipRecord:
    potential_id: str
    contact_id: str
    related_contact_id: str
    inferred_type: str
    confidence: float
    evidence: tuple[dict, ...]
    status: str
    discovered_at: datetime | None = None


@dataclass(frozen=True)
class NetworkSnapshot:
    """Contacts, confirmed edges, analytics and outreach for one account, read together."""

    account_id: str
    contacts: dict[str, ContactRecord]
    edges: tuple[EdgeRecord, ...]
    analytics: dict[str, AnalyticsRecord] = field(default_factory=dict)
    outreach: dict[str, tuple[OutreachRecord, ...]] = field(default_factory=dict)
    adjacency: dict[str, tuple[EdgeRecord, ...]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        account_id: str,
        contacts: list[ContactRecord],
        edges: list[EdgeRecord],
        analytics: list[AnalyticsRecord] | None = None,
        outreach: dict[str, list[OutreachRecord]] | None = None,
    ) -> "NetworkSnapshot":
        adjacency: dict[str, list[EdgeRecord]] = {}
        for edge in edges:
            adjacency.setdefault(edge.contact_id, []).append(edge)
            if edge.related_contact_id != edge.contact_id:
                adjacency.setdefault(edge.related_contact_id, []).append(edge)
        return cls(
            account_id=account_id,
            contacts={contact.contact_id: contact for contact in contacts},
            edges=tuple(edges),
            analytics={item.contact_id: item for item in analytics or []},
            outreach={key: tuple(value) for key, value in (outreach or {}).items()},
            adjacency={key: tuple(value) for key, value in adjacency.items()},
        )

    def edges_for(self, contact_id: str) -> tuple[EdgeRecord, ...]:
        return self.adjacency.get(contact_id, ())

    def connected(self, first_id: str, second_id: str) -> bool:
        return any(edge.other(first_id) == second_id for edge in self.edges_for(first_id))

    def outreach_for(self, contact_id: str) -> tuple[OutreachRecord, ...]:
        return self.outreach.get(contact_id, ())

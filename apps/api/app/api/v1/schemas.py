from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


SortKey = Literal["composite", "confidence", "impact", "urgency", "date"]
BatchMode = Literal["inline", "queue"]


class ScoreContactRequest(BaseModel):
    goals: list[str] | None = None


class ContactScoreResponse(BaseModel):
    contact_id: str
    priority: float
    opportunity: float
    strategic_value: float
    factors: dict[str, Any]
    flags: list[str] = Field(default_factory=list)
    scored_at: datetime | None = None


class BatchScoreRequest(BaseModel):
    contact_ids: list[str] | None = None
    goals: list[str] | None = None
    mode: BatchMode = "queue"


class BatchDiscoverRequest(BaseModel):
    contact_ids: list[str] | None = None
    mode: BatchMode = "queue"


class BatchResultResponse(BaseModel):
    processed: int
    skipped: int
    failures: list[dict[str, str]] = Field(default_factory=list)


class BatchRunResponse(BaseModel):
    mode: BatchMode
    job_id: str | None = None
    result: BatchResultResponse | None = None


class EvidenceOut(BaseModel):
    type: str
    score: float
    details: dict[str, Any] = Field(default_factory=dict)


class DiscoveryCandidateOut(BaseModel):
    contact_id: str
    related_contact_id: str
    inferred_type: str
    confidence: float
    evidence: list[EvidenceOut]


class PotentialRelationshipOut(BaseModel):
    potential_id: str
    contact_id: str
    related_contact_id: str
    inferred_type: str
    confidence: float
    evidence: list[dict[str, Any]]
    status: str
    discovered_at: datetime | None = None


class DiscoverResponse(BaseModel):
    contact_id: str
    candidates: list[DiscoveryCandidateOut]
    saved: list[PotentialRelationshipOut] = Field(default_factory=list)


class PotentialRelationshipListResponse(BaseModel):
    relationships: list[PotentialRelationshipOut]


class ConfirmRelationshipRequest(BaseModel):
    strength: float | None = Field(default=None, ge=0.0, le=1.0)


class EdgeOut(BaseModel):
    relationship_id: str
    contact_id: str
    related_contact_id: str
    relationship_type: str
    strength: float
    confidence: float
    is_mutual: bool
    is_verified: bool
    interaction_count: int
    source: str


class PathContact(BaseModel):
    contact_id: str
    name: str
    company: str | None = None
    position: str | None = None


class PathOut(BaseModel):
    contact_ids: list[str]
    contacts: list[PathContact]
    path_length: int
    total_cost: float
    mean_cost: float
    relationship_types: list[str]


class PathsResponse(BaseModel):
    from_id: str
    to_id: str
    paths: list[PathOut]


class OpportunityFiltersIn(BaseModel):
    categories: list[str] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)
    priorities: list[str] = Field(default_factory=list)
    min_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    min_impact: float | None = Field(default=None, ge=0.0, le=100.0)
    contact_ids: list[str] = Field(default_factory=list)
    sort_by: SortKey = "composite"
    limit: int | None = Field(default=None, ge=1, le=200)


class OpportunityOut(BaseModel):
    opportunity_id: str
    title: str
    description: str
    category: str
    type: str
    priority: str
    status: str
    confidence: float
    impact_score: float
    effort_score: float
    urgency_score: float
    composite_score: float
    reasoning: dict[str, Any]
    suggested_actions: list[dict[str, Any]]
    primary_contact: dict[str, Any] | None = None
    secondary_contact: dict[str, Any] | None = None
    related_contacts: list[dict[str, Any]] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)
    source_engine: str
    acted_at: datetime | None = None
    acted_by: str | None = None
    notes: str | None = None
    created_at: datetime
    expires_at: datetime | None = None


class GenerateOpportunitiesResponse(BaseModel):
    opportunities: list[OpportunityOut]
    created: int
    duplicates: int
    skipped_engines: list[str] = Field(default_factory=list)


class OpportunityListResponse(BaseModel):
    opportunities: list[OpportunityOut]


class OpportunityStatusUpdate(BaseModel):
    status: str = Field(min_length=1, max_length=16)
    actor: str | None = None
    notes: str | None = Field(default=None, max_length=4000)


class OpportunityQueryRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)
    contact_ids: list[str] = Field(default_factory=list)


class OpportunityQueryResponse(BaseModel):
    text: str
    parser: Literal["openai", "keyword"]
    model: str | None = None
    filters: dict[str, Any]
    opportunities: list[OpportunityOut]
    created: int
    duplicates: int
    skipped_engines: list[str] = Field(default_factory=list)


class NetworkGapsResponse(BaseModel):
    overall_score: float
    total_gaps: int
    critical_gaps: int
    network_health: dict[str, float]
    gaps: list[dict[str, Any]]
    recommendations: list[str]
    coverage: dict[str, Any]

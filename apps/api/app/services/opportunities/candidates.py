from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Union

Engine = Literal["introduction", "reconnection", "business_match", "network_gap"]


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return float(max(low, min(high, value)))


@dataclass(frozen=True)
class SuggestedAction:
    action: str
    description: str
    priority: str = "MEDIUM"
    effort: int = 5
    timeline: str = "short_term"
    requirements: tuple[str, ...] = ()
    estimated_outcome: str | None = None

    def as_dict(self) -> dict:
        return {
            "action": self.action,
            "description": self.description,
            "priority": self.priority,
            "effort": self.effort,
            "timeline": self.timeline,
            "requirements": list(self.requirements),
            "estimated_outcome": self.estimated_outcome,
        }


@dataclass(frozen=True)
class ContactRef:
    contact_id: str
    name: str
    company: str | None = None
    position: str | None = None

    def as_dict(self) -> dict:
        return {"contact_id": self.contact_id, "name": self.name, "company": self.company, "position": self.position}


@dataclass(frozen=True)
class IntroductionCandidate:
    introducer: ContactRef
    source: ContactRef
    target: ContactRef
    intro_type: str
    match_score: float
    match_factors: tuple[str, ...]
    confidence: float
    impact: float
    effort: float
    priority: str
    reasoning: str
    edge_strengths: tuple[float, float]
    engine: Engine = "introduction"


@dataclass(frozen=True)
class ReconnectionCandidate:
    contact: ContactRef
    relationship_type: str | None
    days_since_contact: int
    confidence: float
    impact: float
    effort: float
    urgency: float
    priority: str
    approach: dict
    message: str
    timing: dict
    engagement: dict
    reasoning: tuple[str, ...]
    engine: Engine = "reconnection"


@dataclass(frozen=True)
class BusinessMatchCandidate:
    contact: ContactRef
    archetype: str
    category: str
    confidence: float
    impact: float
    effort: float
    timeline: float
    reasoning: str
    evidence: tuple[str, ...]
    actions: tuple[SuggestedAction, ...] = ()
    estimated_value: float | None = None
    seasonality: str | None = None
    deadline: datetime | None = None
    engine: Engine = "business_match"


@dataclass(frozen=True)
class RemediationSuggestion:
    type: str
    title: str
    description: str
    steps: tuple[str, ...]
    effort: int
    impact: int

    def as_dict(self) -> dict:
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "steps": list(self.steps),
            "effort": self.effort,
            "impact": self.impact,
        }


@dataclass(frozen=True)
class NetworkGap:
    dimension: str
    category: str
    title: str
    description: str
    importance: float
    current_coverage: float
    target_coverage: float
    priority: int
    gap_size: int = 0
    suggestions: tuple[RemediationSuggestion, ...] = ()

    @property
    def rank_score(self) -> float:
        return self.importance * (1.0 - self.current_coverage) * self.priority

    def as_dict(self) -> dict:
        return {
            "dimension": self.dimension,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "importance": self.importance,
            "current_coverage": self.current_coverage,
            "target_coverage": self.target_coverage,
            "priority": self.priority,
            "gap_size": self.gap_size,
            "suggestions": [item.as_dict() for item in self.suggestions],
        }


@dataclass(frozen=True)
class GapCandidate:
    gap: NetworkGap
    engine: Engine = "network_gap"


Candidate = Union[IntroductionCandidate, ReconnectionCandidate, BusinessMatchCandidate, GapCandidate]


@dataclass(frozen=True)
class DetectorRun:
    engine: Engine
    candidates: list = field(default_factory=list)
    failed: bool = False

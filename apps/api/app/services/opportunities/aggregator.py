from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import InvalidInputError
from app.db.pg.models import OpportunitySuggestion
from app.services.graph.records import NetworkSnapshot
from app.services.graph.store import GraphStore
from app.services.opportunities.business_match import detect_business_matches
from app.services.opportunities.candidates import (
    BusinessMatchCandidate,
    ContactRef,
    DetectorRun,
    GapCandidate,
    IntroductionCandidate,
    ReconnectionCandidate,
    SuggestedAction,
)
from app.services.opportunities.introduction import detect_introductions
from app.services.opportunities.network_gaps import detect_network_gaps
from app.services.opportunities.reconnection import detect_reconnections

logger = logging.getLogger(__name__)

CATEGORIES: tuple[str, ...] = ("introduction", "reconnection", "business_match", "network_expansion", "strategic_move")
TYPES: tuple[str, ...] = (
    "warm_introduction",
    "business_proposal",
    "partnership",
    "reconnection",
    "follow_up",
    "cold_outreach",
    "collaboration",
    "investment",
    "advisory",
    "board_position",
    "speaking",
    "job_referral",
    "knowledge_exchange",
    "client_prospect",
    "vendor",
)
PRIORITIES: tuple[str, ...] = ("urgent", "high", "medium", "low")
SORT_KEYS: tuple[str, ...] = ("composite", "confidence", "impact", "urgency", "date")
MAX_LIMIT = 200

INTRODUCTION_URGENCY = 70.0
GAP_EFFORT = 70.0


@dataclass(frozen=True)
class OpportunityFilters:
    categories: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    priorities: tuple[str, ...] = ()
    min_confidence: float | None = None
    min_impact: float | None = None
    contact_ids: tuple[str, ...] = ()
    sort_by: str = "composite"
    limit: int = 50

    def __post_init__(self) -> None:
        _check_members("categories", self.categories, CATEGORIES)
        _check_members("types", self.types, TYPES)
        _check_members("priorities", self.priorities, PRIORITIES)
        if self.min_confidence is not None and not 0.0 <= self.min_confidence <= 1.0:
            raise InvalidInputError("min_confidence must be within [0, 1]")
        if self.min_impact is not None and not 0.0 <= self.min_impact <= 100.0:
            raise InvalidInputError("min_impact must be within [0, 100]")
        if self.sort_by not in SORT_KEYS:
            raise InvalidInputError(f"sort_by must be one of {', '.join(SORT_KEYS)}")
        if not 1 <= self.limit <= MAX_LIMIT:
            raise InvalidInputError(f"limit must be between 1 and {MAX_LIMIT}")

    @classmethod
    def from_dict(cls, payload: dict | None) -> "OpportunityFilters":
        payload = dict(payload or {})
        for key in ("categories", "types", "priorities"):
            payload[key] = tuple(str(item).strip().lower() for item in payload.get(key) or ())
        payload["contact_ids"] = tuple(payload.get("contact_ids") or ())
        known = {key: value for key, value in payload.items() if key in cls.__dataclass_fields__ and value is not None}
        return cls(**known)

    def as_dict(self) -> dict:
        return {
            "categories": list(self.categories),
            "types": list(self.types),
            "priorities": list(self.priorities),
            "min_confidence": self.min_confidence,
            "min_impact": self.min_impact,
            "contact_ids": list(self.contact_ids),
            "sort_by": self.sort_by,
            "limit": self.limit,
        }


def _check_members(name: str, values: tuple[str, ...], allowed: tuple[str, ...]) -> None:
    unknown = sorted(set(values) - set(allowed))
    if unknown:
        raise InvalidInputError(f"unknown {name}: {', '.join(unknown)}")


@dataclass(frozen=True)
class UnifiedSuggestion:
    title: str
    description: str
    category: str
    type: str
    priority: str
    confidence: float
    impact: float
    effort: float
    urgency: float
    reasoning: dict
    source_engine: str
    suggested_at: datetime
    primary_contact: ContactRef | None = None
    secondary_contact: ContactRef | None = None
    related_contacts: tuple[dict, ...] = ()
    actions: tuple[SuggestedAction, ...] = ()
    details: dict = field(default_factory=dict)
    expires_at: datetime | None = None

    @property
    def composite(self) -> float:
        return composite_score(self.confidence, self.impact, self.urgency)

    def row_payload(self) -> dict:
        return {
            "category": self.category,
            "type": self.type,
            "priority": self.priority,
            "title": self.title,
            "description": self.description,
            "confidence": self.confidence,
            "impact_score": self.impact,
            "effort_score": self.effort,
            "urgency_score": self.urgency,
            "reasoning_json": self.reasoning,
            "suggested_actions_json": [action.as_dict() for action in self.actions],
            "metadata_json": {
                "primary_contact": self.primary_contact.as_dict() if self.primary_contact else None,
                "secondary_contact": self.secondary_contact.as_dict() if self.secondary_contact else None,
                "related_contacts": list(self.related_contacts),
                "details": self.details,
            },
            "primary_contact_id": self.primary_contact.contact_id if self.primary_contact else None,
            "secondary_contact_id": self.secondary_contact.contact_id if self.secondary_contact else None,
            "source_engine": self.source_engine,
            "created_at": self.suggested_at,
            "expires_at": self.expires_at,
        }


@dataclass
class GenerationResult:
    suggestions: list[OpportunitySuggestion]
    created: int = 0
    duplicates: int = 0
    skipped_engines: list[str] = field(default_factory=list)


def composite_score(confidence: float, impact: float, urgency: float) -> float:
    return confidence * impact * (urgency / 100)


def business_priority(impact: float, confidence: float) -> str:
    score = impact * confidence
    if score > 80:
        return "urgent"
    if score > 60:
        return "high"
    if score > 40:
        return "medium"
    return "low"


def _reasoning(summary: str, evidence: list[str], indicators: list[str], key_factors: list[str] | None = None) -> dict:
    return {
        "summary": summary,
        "key_factors": key_factors if key_factors is not None else evidence,
        "evidence": evidence,
        "success_indicators": indicators,
    }


def convert_introduction(candidate: IntroductionCandidate, now: datetime) -> UnifiedSuggestion:
    source, target, introducer = candidate.source, candidate.target, candidate.introducer
    return UnifiedSuggestion(
        title=f"Introduction: Connect {source.name} with {target.name}",
        description=(
            f"Facilitate introduction between {source.name} ({source.company or 'n/a'}) and "
            f"{target.name} ({target.company or 'n/a'}) through {introducer.name}"
        ),
        category="introduction",
        type=candidate.intro_type,
        priority=candidate.priority,
        confidence=candidate.confidence,
        impact=candidate.impact,
        effort=candidate.effort,
        urgency=INTRODUCTION_URGENCY,
        reasoning=_reasoning(
            candidate.reasoning,
            list(candidate.match_factors),
            ["Mutual interest expressed", "Follow-up meeting scheduled", "Ongoing relationship developed"],
        ),
        source_engine=candidate.engine,
        suggested_at=now,
        primary_contact=source,
        secondary_contact=target,
        related_contacts=({**introducer.as_dict(), "role": "introducer", "importance": 1.0},),
        actions=(
            SuggestedAction(
                action="Request introduction",
                description=f"Ask {introducer.name} to introduce you to both parties",
                priority="HIGH",
                effort=3,
                timeline="immediate",
                requirements=("Context for introduction", "Value proposition prepared"),
                estimated_outcome="Successful introduction leading to mutual connection",
            ),
        ),
        details={"match_score": candidate.match_score, "edge_strengths": list(candidate.edge_strengths)},
    )


def convert_reconnection(candidate: ReconnectionCandidate, now: datetime) -> UnifiedSuggestion:
    contact = candidate.contact
    method = candidate.approach["method"]
    timing = candidate.timing
    return UnifiedSuggestion(
        title=f"Reconnect with {contact.name}",
        description=(
            f"Reestablish connection with {contact.name} at {contact.company or 'their company'}. "
            f"Last contact: {candidate.days_since_contact} days ago."
        ),
        category="reconnection",
        type="reconnection",
        priority=candidate.priority,
        confidence=candidate.confidence,
        impact=candidate.impact,
        effort=candidate.effort,
        urgency=candidate.urgency,
        reasoning=_reasoning(
            "; ".join(candidate.reasoning),
            list(candidate.reasoning),
            ["Response received", "Meeting scheduled", "Ongoing conversation reestablished"],
        ),
        source_engine=candidate.engine,
        suggested_at=now,
        primary_contact=contact,
        actions=(
            SuggestedAction(
                action=f"Send {method.lower()} message",
                description=f"{candidate.approach['context']}: {candidate.message}",
                priority="HIGH" if candidate.urgency > 70 else "MEDIUM",
                effort=round(candidate.effort / 20),
                timeline="immediate" if candidate.urgency > 80 else "short_term",
                requirements=("Personalized message prepared", "Context for outreach"),
                estimated_outcome="Renewed connection and ongoing relationship",
            ),
        ),
        details={
            "days_since_contact": candidate.days_since_contact,
            "approach": dict(candidate.approach),
            "message": candidate.message,
            "suggested_date": timing["suggested_date"].isoformat(),
            "timing_reason": timing["reasoning"],
            "engagement": dict(candidate.engagement),
        },
    )


def convert_business_match(candidate: BusinessMatchCandidate, now: datetime) -> UnifiedSuggestion:
    contact = candidate.contact
    label = candidate.archetype.replace("_", " ").title()
    actions = tuple(
        SuggestedAction(
            action=action.action,
            description=action.description,
            priority=action.priority,
            effort=action.effort,
            timeline=action.timeline,
            requirements=action.requirements,
            estimated_outcome="Business opportunity advancement",
        )
        for action in candidate.actions
    )
    return UnifiedSuggestion(
        title=f"{label}: {contact.name}",
        description=candidate.reasoning,
        category=candidate.category,
        type=candidate.archetype,
        priority=business_priority(candidate.impact, candidate.confidence),
        confidence=candidate.confidence,
        impact=candidate.impact,
        effort=candidate.effort,
        urgency=candidate.timeline,
        reasoning=_reasoning(
            candidate.reasoning,
            list(candidate.evidence),
            ["Initial interest expressed", "Follow-up meeting scheduled", "Deal/collaboration initiated"],
        ),
        source_engine=candidate.engine,
        suggested_at=now,
        primary_contact=contact,
        actions=actions,
        details={"estimated_value": candidate.estimated_value, "seasonality": candidate.seasonality},
        expires_at=candidate.deadline,
    )


def convert_network_gap(candidate: GapCandidate, now: datetime) -> UnifiedSuggestion:
    gap = candidate.gap
    if gap.importance > 0.8:
        priority = "high"
    elif gap.importance > 0.6:
        priority = "medium"
    else:
        priority = "low"
    actions = tuple(
        SuggestedAction(
            action=suggestion.title,
            description=suggestion.description,
            priority="HIGH" if suggestion.impact > 7 else "MEDIUM",
            effort=suggestion.effort,
            timeline="long_term" if suggestion.effort > 7 else "medium_term",
            requirements=suggestion.steps,
            estimated_outcome="Improved network coverage and diversity",
        )
        for suggestion in gap.suggestions
    )
    return UnifiedSuggestion(
        title=f"Address {gap.title}",
        description=gap.description,
        category="network_expansion",
        type="cold_outreach",
        priority=priority,
        confidence=0.8 if gap.current_coverage < 0.3 else 0.6,
        impact=float(round(gap.importance * 100)),
        effort=GAP_EFFORT,
        urgency=80.0 if gap.importance > 0.7 else 50.0,
        reasoning=_reasoning(
            f"Network gap identified: {gap.description}",
            [f"Current coverage: {round(gap.current_coverage * 100)}%", f"Gap size: {gap.gap_size}"],
            ["New connections made", "Gap coverage improved", "Network diversity increased"],
            key_factors=list(gap.suggestions[0].steps) if gap.suggestions else [],
        ),
        source_engine=candidate.engine,
        suggested_at=now,
        actions=actions,
        details={"dimension": gap.dimension, "gap_category": gap.category, "priority_weight": gap.priority},
    )


CONVERTERS: dict[str, Callable[..., UnifiedSuggestion]] = {
    "introduction": convert_introduction,
    "reconnection": convert_reconnection,
    "business_match": convert_business_match,
    "network_gap": convert_network_gap,
}

Detector = Callable[[NetworkSnapshot, datetime, Settings], list]

DETECTORS: dict[str, Detector] = {
    "introduction": lambda snapshot, now, settings: detect_introductions(
        snapshot, now=now, limit=settings.introduction_detector_limit
    ),
    "reconnection": lambda snapshot, now, settings: detect_reconnections(
        snapshot, now=now, limit=settings.reconnection_detector_limit
    ),
    "business_match": lambda snapshot, now, settings: detect_business_matches(
        snapshot, now=now, limit=settings.business_match_detector_limit
    ),
    "network_gap": lambda snapshot, now, settings: detect_network_gaps(
        snapshot, now=now, limit=settings.network_gap_detector_limit
    ),
}


def run_detectors(
    snapshot: NetworkSnapshot,
    *,
    now: datetime,
    settings: Settings,
    detectors: dict[str, Detector] | None = None,
) -> list[DetectorRun]:
    """Run every detector concurrently; a detector that raises or times out contributes nothing."""
    detectors = detectors if detectors is not None else DETECTORS
    runs: list[DetectorRun] = []
    executor = ThreadPoolExecutor(max_workers=max(1, len(detectors)))
    try:
        futures = {engine: executor.submit(detector, snapshot, now, settings) for engine, detector in detectors.items()}
        for engine, future in futures.items():
            try:
                candidates = future.result(timeout=settings.detector_timeout_seconds)
            except FutureTimeoutError:
                logger.warning("opportunity_detector_timeout", extra={"engine": engine})
                runs.append(DetectorRun(engine=engine, failed=True))
                continue
            except Exception:
                logger.exception("opportunity_detector_failed", extra={"engine": engine, "account_id": snapshot.account_id})
                runs.append(DetectorRun(engine=engine, failed=True))
                continue
            runs.append(DetectorRun(engine=engine, candidates=list(candidates)))
    finally:
        # A timed-out detector keeps its thread; the caller does not wait for it.
        executor.shutdown(wait=False)
    return runs


def unify(runs: list[DetectorRun], now: datetime) -> list[UnifiedSuggestion]:
    unified: list[UnifiedSuggestion] = []
    for run in runs:
        for candidate in run.candidates:
            unified.append(CONVERTERS[candidate.engine](candidate, now))
    return unified


def apply_filters(suggestions: list[UnifiedSuggestion], filters: OpportunityFilters) -> list[UnifiedSuggestion]:
    kept: list[UnifiedSuggestion] = []
    for item in suggestions:
        if filters.categories and item.category not in filters.categories:
            continue
        if filters.types and item.type not in filters.types:
            continue
        if filters.priorities and item.priority not in filters.priorities:
            continue
        if filters.min_confidence is not None and item.confidence < filters.min_confidence:
            continue
        if filters.min_impact is not None and item.impact < filters.min_impact:
            continue
        # Contactless suggestions (network gaps) are never excluded by a contact scope.
        if filters.contact_ids and item.primary_contact and item.primary_contact.contact_id not in filters.contact_ids:
            continue
        kept.append(item)
    return kept


# One run stamps every suggestion with the same time, so "date" orders across runs
# (stored suggestions) and keeps detector order within a run.
SORT_FUNCTIONS: dict[str, Callable[[UnifiedSuggestion], float]] = {
    "composite": lambda item: item.composite,
    "confidence": lambda item: item.confidence,
    "impact": lambda item: item.impact,
    "urgency": lambda item: item.urgency,
    "date": lambda item: item.suggested_at.timestamp(),
}


def rank(suggestions: list[UnifiedSuggestion], sort_by: str = "composite") -> list[UnifiedSuggestion]:
    """Sort descending by the chosen key. The sort is stable, so ties keep their incoming order."""
    return sorted(suggestions, key=SORT_FUNCTIONS[sort_by], reverse=True)


def persist_suggestions(
    store: GraphStore,
    account_id: str,
    suggestions: list[UnifiedSuggestion],
    *,
    now: datetime,
    settings: Settings,
) -> tuple[list[OpportunitySuggestion], int, int]:
    rows: list[OpportunitySuggestion] = []
    created = 0
    duplicates = 0
    default_expiry = now + timedelta(days=settings.opportunity_expiry_days)
    for item in suggestions:
        existing = store.find_recent_duplicate(
            account_id,
            title=item.title,
            category=item.category,
            type=item.type,
            window_days=settings.opportunity_dedup_window_days,
            now=now,
        )
        if existing is not None:
            duplicates += 1
            if all(row.opportunity_id != existing.opportunity_id for row in rows):
                rows.append(existing)
            continue
        payload = item.row_payload()
        payload["expires_at"] = payload["expires_at"] or default_expiry
        rows.append(store.create_opportunity_suggestion(account_id, payload))
        created += 1
    return rows, created, duplicates


def generate_opportunities(
    db: Session,
    *,
    account_id: str,
    filters: OpportunityFilters | None = None,
    now: datetime | None = None,
    detectors: dict[str, Detector] | None = None,
) -> GenerationResult:
    settings = get_settings()
    filters = filters or OpportunityFilters(limit=settings.opportunity_default_limit)
    now = now or datetime.now(timezone.utc)
    store = GraphStore(db)

    snapshot = store.load_snapshot(account_id)
    runs = run_detectors(snapshot, now=now, settings=settings, detectors=detectors)
    ranked = rank(apply_filters(unify(runs, now), filters), filters.sort_by)[: filters.limit]
    rows, created, duplicates = persist_suggestions(store, account_id, ranked, now=now, settings=settings)

    skipped = [run.engine for run in runs if run.failed]
    logger.info(
        "opportunities_generated",
        extra={
            "account_id": account_id,
            "candidates": sum(len(run.candidates) for run in runs),
            "created": created,
            "duplicates": duplicates,
            "skipped_engines": ",".join(skipped),
        },
    )
    return GenerationResult(suggestions=rows, created=created, duplicates=duplicates, skipped_engines=skipped)


def list_suggestions(
    db: Session,
    *,
    account_id: str,
    status: str | None = None,
    category: str | None = None,
    limit: int = 50,
) -> list[OpportunitySuggestion]:
    if not 1 <= limit <= MAX_LIMIT:
        raise InvalidInputError(f"limit must be between 1 and {MAX_LIMIT}")
    if category and category not in CATEGORIES:
        raise InvalidInputError(f"unknown category: {category}")
    return GraphStore(db).list_opportunities(
        account_id,
        status=status.upper() if status else None,
        category=category,
        limit=limit,
    )


def serialize_suggestion(row: OpportunitySuggestion) -> dict:
    metadata = row.metadata_json or {}
    return {
        "opportunity_id": row.opportunity_id,
        "title": row.title,
        "description": row.description,
        "category": row.category,
        "type": row.type,
        "priority": row.priority,
        "status": row.status,
        "confidence": row.confidence,
        "impact_score": row.impact_score,
        "effort_score": row.effort_score,
        "urgency_score": row.urgency_score,
        "composite_score": round(composite_score(row.confidence, row.impact_score, row.urgency_score), 4),
        "reasoning": row.reasoning_json,
        "suggested_actions": row.suggested_actions_json,
        "primary_contact": metadata.get("primary_contact"),
        "secondary_contact": metadata.get("secondary_contact"),
        "related_contacts": metadata.get("related_contacts", []),
        "details": metadata.get("details", {}),
        "source_engine": row.source_engine,
        "acted_at": row.acted_at,
        "acted_by": row.acted_by,
        "notes": row.notes,
        "created_at": row.created_at,
        "expires_at": row.expires_at,
    }

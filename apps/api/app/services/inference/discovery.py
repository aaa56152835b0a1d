from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import BatchResult, InvalidInputError
from app.db.pg.session import SessionLocal
from app.services.batching import run_in_waves
from app.services.graph.records import ContactRecord, EdgeRecord, NetworkSnapshot, PotentialRelationshipRecord
from app.services.graph.store import GraphStore
from app.services.inference.evidence import (
    Evidence,
    collect_evidence,
    evidence_confidence,
    infer_relationship_type,
)

logger = logging.getLogger(__name__)

DISCOVERY_SOURCE = "auto_discovery"
CONFIRMED_SOURCE = "confirmed_discovery"


@dataclass(frozen=True)
class DiscoveryCandidate:
    contact_id: str
    related_contact_id: str
    inferred_type: str
    confidence: float
    evidence: tuple[Evidence, ...]

    def evidence_payload(self) -> list[dict]:
        return [item.as_dict() for item in self.evidence]


def _neighbour_map(edges: tuple[EdgeRecord, ...] | list[EdgeRecord]) -> dict[str, set[str]]:
    neighbours: dict[str, set[str]] = {}
    for edge in edges:
        neighbours.setdefault(edge.contact_id, set()).add(edge.related_contact_id)
        neighbours.setdefault(edge.related_contact_id, set()).add(edge.contact_id)
    return neighbours


def discover_for_contact(
    contact: ContactRecord,
    candidate_pool: list[ContactRecord],
    neighbours: dict[str, set[str]],
    *,
    min_confidence: float = 0.3,
) -> list[DiscoveryCandidate]:
    """Rank same-account contacts that look related to ``contact`` but have no edge yet."""
    own = neighbours.get(contact.contact_id, set())
    results: list[DiscoveryCandidate] = []
    for candidate in candidate_pool:
        if candidate.contact_id == contact.contact_id or candidate.contact_id in own:
            continue
        if candidate.account_id != contact.account_id or candidate.status != "ACTIVE":
            continue

        mutual = len(own & neighbours.get(candidate.contact_id, set()))
        evidence = collect_evidence(contact, candidate, mutual)
        if not evidence:
            continue
        confidence = evidence_confidence(evidence)
        if confidence < min_confidence:
            continue
        results.append(
            DiscoveryCandidate(
                contact_id=contact.contact_id,
                related_contact_id=candidate.contact_id,
                inferred_type=infer_relationship_type(evidence, contact, candidate),
                confidence=round(confidence, 4),
                evidence=tuple(evidence),
            )
        )

    results.sort(key=lambda item: item.confidence, reverse=True)
    return results


def discover_from_snapshot(
    snapshot: NetworkSnapshot,
    contact_id: str,
    *,
    min_confidence: float = 0.3,
) -> list[DiscoveryCandidate]:
    contact = snapshot.contacts.get(contact_id)
    if contact is None:
        return []
    return discover_for_contact(
        contact,
        list(snapshot.contacts.values()),
        _neighbour_map(snapshot.edges),
        min_confidence=min_confidence,
    )


def discover_relationships(db: Session, *, account_id: str, contact_id: str) -> list[DiscoveryCandidate]:
    settings = get_settings()
    store = GraphStore(db)
    contact = store.get_contact(account_id, contact_id)
    pool = store.list_contacts(account_id)
    edges = store.list_edges(account_id)
    candidates = discover_for_contact(
        contact,
        pool,
        _neighbour_map(edges),
        min_confidence=settings.discovery_min_confidence,
    )
    logger.info("relationship_discovery_completed", extra={"contact_id": contact_id, "candidates": len(candidates)})
    return candidates


def save_top_candidates(
    db: Session,
    *,
    account_id: str,
    candidates: list[DiscoveryCandidate],
    top_k: int | None = None,
) -> list[PotentialRelationshipRecord]:
    store = GraphStore(db)
    top_k = top_k or get_settings().discovery_top_k
    return [
        store.upsert_potential_relationship(
            account_id,
            contact_id=candidate.contact_id,
            related_contact_id=candidate.related_contact_id,
            inferred_type=candidate.inferred_type,
            confidence=candidate.confidence,
            evidence=candidate.evidence_payload(),
        )
        for candidate in candidates[:top_k]
    ]


def batch_discover(
    account_id: str,
    contact_ids: list[str] | None = None,
    *,
    session_factory: Callable[[], Session] = SessionLocal,
) -> BatchResult:
    settings = get_settings()
    db = session_factory()
    try:
        snapshot = GraphStore(db).load_snapshot(account_id)
    finally:
        db.close()
    if contact_ids is None:
        contact_ids = list(snapshot.contacts)

    def _discover_one(contact_id: str) -> dict:
        if contact_id not in snapshot.contacts:
            raise InvalidInputError(f"contact {contact_id} is not an active contact of this account")
        candidates = discover_from_snapshot(
            snapshot,
            contact_id,
            min_confidence=settings.discovery_min_confidence,
        )
        session = session_factory()
        try:
            saved = save_top_candidates(session, account_id=account_id, candidates=candidates)
        finally:
            session.close()
        return {"contact_id": contact_id, "saved": len(saved)}

    return run_in_waves(
        contact_ids,
        _discover_one,
        chunk_size=settings.discovery_batch_chunk_size,
        pause_seconds=settings.batch_pause_seconds,
        max_workers=settings.batch_max_workers,
        event="batch_discover",
    )


def confirm_potential_relationship(
    db: Session,
    *,
    account_id: str,
    potential_id: str,
    strength: float | None = None,
) -> EdgeRecord:
    store = GraphStore(db)
    row = store.get_potential_relationship(account_id, potential_id)
    if row.status != "pending":
        raise InvalidInputError(f"potential relationship {potential_id} is already {row.status}")

    edge = store.create_edge(
        account_id,
        contact_id=row.contact_id,
        related_contact_id=row.related_contact_id,
        relationship_type=row.inferred_type,
        strength=row.confidence if strength is None else strength,
        confidence=row.confidence,
        source=CONFIRMED_SOURCE,
        is_verified=True,
    )
    store.set_potential_relationship_status(row, "confirmed")
    logger.info("potential_relationship_confirmed", extra={"potential_id": potential_id})
    return edge


def reject_potential_relationship(db: Session, *, account_id: str, potential_id: str) -> PotentialRelationshipRecord:
    store = GraphStore(db)
    row = store.get_potential_relationship(account_id, potential_id)
    if row.status != "pending":
        raise InvalidInputError(f"potential relationship {potential_id} is already {row.status}")
    return store.set_potential_relationship_status(row, "rejected")

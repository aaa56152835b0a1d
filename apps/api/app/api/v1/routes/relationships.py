from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.deps import get_account_id, get_db
from app.api.v1.errors import translate_service_errors
from app.api.v1.schemas import (
    BatchDiscoverRequest,
    BatchResultResponse,
    BatchRunResponse,
    ConfirmRelationshipRequest,
    DiscoverResponse,
    DiscoveryCandidateOut,
    EdgeOut,
    PotentialRelationshipListResponse,
    PotentialRelationshipOut,
)
from app.services.graph.records import PotentialRelationshipRecord
from app.services.graph.store import GraphStore
from app.services.inference.discovery import (
    batch_discover,
    confirm_potential_relationship,
    discover_relationships,
    reject_potential_relationship,
    save_top_candidates,
)
from app.workers.queue import enqueue_job

router = APIRouter(prefix="/relationships", tags=["relationships"])


def _potential_out(record: PotentialRelationshipRecord) -> PotentialRelationshipOut:
    payload = asdict(record)
    payload["evidence"] = list(record.evidence)
    return PotentialRelationshipOut.model_validate(payload)


@router.post("/discover/batch", response_model=BatchRunResponse)
def discover_batch(payload: BatchDiscoverRequest, account_id: str = Depends(get_account_id)) -> BatchRunResponse:
    if payload.mode == "inline":
        with translate_service_errors():
            result = batch_discover(account_id, payload.contact_ids)
        return BatchRunResponse(mode="inline", result=BatchResultResponse.model_validate(result.as_dict()))

    job_id = enqueue_job("discover_relationships_batch", account_id, payload.contact_ids)
    return BatchRunResponse(mode="queue", job_id=job_id)


@router.post("/discover/{contact_id}", response_model=DiscoverResponse)
def discover_for_contact(
    contact_id: str,
    save: bool = True,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> DiscoverResponse:
    with translate_service_errors():
        candidates = discover_relationships(db, account_id=account_id, contact_id=contact_id)
        saved = save_top_candidates(db, account_id=account_id, candidates=candidates) if save else []

    return DiscoverResponse(
        contact_id=contact_id,
        candidates=[
            DiscoveryCandidateOut(
                contact_id=item.contact_id,
                related_contact_id=item.related_contact_id,
                inferred_type=item.inferred_type,
                confidence=item.confidence,
                evidence=item.evidence_payload(),
            )
            for item in candidates
        ],
        saved=[_potential_out(record) for record in saved],
    )


@router.get("/potential", response_model=PotentialRelationshipListResponse)
def list_potential(
    contact_id: str | None = None,
    status: str | None = "pending",
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> PotentialRelationshipListResponse:
    with translate_service_errors():
        records = GraphStore(db).list_potential_relationships(account_id, contact_id=contact_id, status=status)
    return PotentialRelationshipListResponse(relationships=[_potential_out(record) for record in records])


@router.post("/potential/{potential_id}/confirm", response_model=EdgeOut)
def confirm_potential(
    potential_id: str,
    payload: ConfirmRelationshipRequest | None = None,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> EdgeOut:
    with translate_service_errors():
        edge = confirm_potential_relationship(
            db,
            account_id=account_id,
            potential_id=potential_id,
            strength=payload.strength if payload else None,
        )
    return EdgeOut.model_validate(asdict(edge))


@router.post("/potential/{potential_id}/reject", response_model=PotentialRelationshipOut)
def reject_potential(
    potential_id: str,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> PotentialRelationshipOut:
    with translate_service_errors():
        record = reject_potential_relationship(db, account_id=account_id, potential_id=potential_id)
    return _potential_out(record)

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.deps import get_account_id, get_db
from app.api.v1.errors import translate_service_errors
from app.api.v1.schemas import (
    BatchResultResponse,
    BatchRunResponse,
    BatchScoreRequest,
    ContactScoreResponse,
    ScoreContactRequest,
)
from app.services.scoring.contact_scoring import batch_score, score_contact
from app.workers.queue import enqueue_job

router = APIRouter(prefix="/scores", tags=["scores"])
logger = logging.getLogger(__name__)


@router.post("/contacts/{contact_id}", response_model=ContactScoreResponse)
def score_single_contact(
    contact_id: str,
    payload: ScoreContactRequest | None = None,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> ContactScoreResponse:
    goals = payload.goals if payload else None
    with translate_service_errors():
        scoring = score_contact(db, account_id=account_id, contact_id=contact_id, goals=goals)
    return ContactScoreResponse.model_validate(scoring.as_dict())


@router.post("/batch", response_model=BatchRunResponse)
def score_batch(payload: BatchScoreRequest, account_id: str = Depends(get_account_id)) -> BatchRunResponse:
    if payload.mode == "inline":
        with translate_service_errors():
            result = batch_score(account_id, payload.contact_ids, payload.goals)
        return BatchRunResponse(mode="inline", result=BatchResultResponse.model_validate(result.as_dict()))

    job_id = enqueue_job("batch_score_contacts", account_id, payload.contact_ids, payload.goals)
    logger.info("batch_score_enqueued", extra={"account_id": account_id, "job_id": job_id})
    return BatchRunResponse(mode="queue", job_id=job_id)

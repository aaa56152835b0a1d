from __future__ import annotations

import logging
from dataclasses import replace

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.deps import get_account_id, get_db
from app.api.v1.errors import translate_service_errors
from app.api.v1.schemas import (
    GenerateOpportunitiesResponse,
    OpportunityFiltersIn,
    OpportunityListResponse,
    OpportunityOut,
    OpportunityQueryRequest,
    OpportunityQueryResponse,
    OpportunityStatusUpdate,
)
from app.core.config import get_settings
from app.services.graph.store import GraphStore
from app.services.opportunities.aggregator import (
    OpportunityFilters,
    generate_opportunities,
    list_suggestions,
    serialize_suggestion,
)
from app.services.opportunities.dashboard import opportunity_analytics, opportunity_dashboard
from app.services.opportunities.status import update_opportunity_status
from app.services.query.parser import parse_opportunity_query

router = APIRouter(prefix="/opportunities", tags=["opportunities"])
logger = logging.getLogger(__name__)


def _out(row) -> OpportunityOut:
    return OpportunityOut.model_validate(serialize_suggestion(row))


@router.post("/generate", response_model=GenerateOpportunitiesResponse)
def generate(
    payload: OpportunityFiltersIn | None = None,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> GenerateOpportunitiesResponse:
    with translate_service_errors():
        raw = payload.model_dump() if payload else {}
        if raw.get("limit") is None:
            raw["limit"] = get_settings().opportunity_default_limit
        filters = OpportunityFilters.from_dict(raw)
        result = generate_opportunities(db, account_id=account_id, filters=filters)
    return GenerateOpportunitiesResponse(
        opportunities=[_out(row) for row in result.suggestions],
        created=result.created,
        duplicates=result.duplicates,
        skipped_engines=result.skipped_engines,
    )


@router.post("/query", response_model=OpportunityQueryResponse)
def query(
    payload: OpportunityQueryRequest,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> OpportunityQueryResponse:
    with translate_service_errors():
        parsed = parse_opportunity_query(payload.text)
        filters = parsed.filters
        if payload.contact_ids:
            filters = replace(filters, contact_ids=tuple(payload.contact_ids))
        result = generate_opportunities(db, account_id=account_id, filters=filters)
    logger.info("opportunity_query_served", extra={"account_id": account_id, "parser": parsed.parser})
    return OpportunityQueryResponse(
        text=parsed.text,
        parser=parsed.parser,
        model=parsed.model,
        filters=filters.as_dict(),
        opportunities=[_out(row) for row in result.suggestions],
        created=result.created,
        duplicates=result.duplicates,
        skipped_engines=result.skipped_engines,
    )


@router.get("", response_model=OpportunityListResponse)
def list_opportunities(
    status: str | None = None,
    category: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> OpportunityListResponse:
    with translate_service_errors():
        rows = list_suggestions(db, account_id=account_id, status=status, category=category, limit=limit)
    return OpportunityListResponse(opportunities=[_out(row) for row in rows])


@router.get("/dashboard")
def dashboard(account_id: str = Depends(get_account_id), db: Session = Depends(get_db)) -> dict:
    with translate_service_errors():
        return opportunity_dashboard(db, account_id=account_id)


@router.get("/analytics")
def analytics(
    days: int = 30,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> dict:
    with translate_service_errors():
        return opportunity_analytics(db, account_id=account_id, days=days)


@router.get("/{opportunity_id}", response_model=OpportunityOut)
def get_opportunity(
    opportunity_id: str,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> OpportunityOut:
    with translate_service_errors():
        row = GraphStore(db).get_opportunity(account_id, opportunity_id)
    return _out(row)


@router.patch("/{opportunity_id}/status", response_model=OpportunityOut)
def change_status(
    opportunity_id: str,
    payload: OpportunityStatusUpdate,
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> OpportunityOut:
    with translate_service_errors():
        row = update_opportunity_status(
            db,
            account_id=account_id,
            opportunity_id=opportunity_id,
            status=payload.status,
            actor=payload.actor,
            notes=payload.notes,
        )
    return _out(row)

from __future__ import annotations

import logging

from app.db.pg.session import SessionLocal
from app.services.inference.discovery import batch_discover
from app.services.opportunities.aggregator import OpportunityFilters, generate_opportunities
from app.services.scoring.contact_scoring import batch_score

logger = logging.getLogger(__name__)


def batch_score_contacts(account_id: str, contact_ids: list[str] | None = None, goals: list[str] | None = None) -> dict:
    result = batch_score(account_id, contact_ids, goals)
    return result.as_dict()


def discover_relationships_batch(account_id: str, contact_ids: list[str] | None = None) -> dict:
    result = batch_discover(account_id, contact_ids)
    return result.as_dict()


def generate_opportunities_for_account(account_id: str, filters: dict | None = None) -> dict:
    db = SessionLocal()
    try:
        result = generate_opportunities(
            db,
            account_id=account_id,
            filters=OpportunityFilters.from_dict(filters) if filters else None,
        )
    finally:
        db.close()
    logger.info(
        "generate_opportunities_job_completed",
        extra={"account_id": account_id, "created": result.created, "duplicates": result.duplicates},
    )
    return {
        "created": result.created,
        "duplicates": result.duplicates,
        "skipped_engines": result.skipped_engines,
        "opportunity_ids": [row.opportunity_id for row in result.suggestions],
    }

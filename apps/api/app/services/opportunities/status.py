from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError
from app.db.pg.models import OpportunitySuggestion
from app.services.graph.store import GraphStore

logger = logging.getLogger(__name__)

PENDING = "PENDING"
VIEWED = "VIEWED"
ACCEPTED = "ACCEPTED"
IN_PROGRESS = "IN_PROGRESS"
COMPLETED = "COMPLETED"
DISMISSED = "DISMISSED"

STATUSES: tuple[str, ...] = (PENDING, VIEWED, ACCEPTED, IN_PROGRESS, COMPLETED, DISMISSED)
TERMINAL_STATUSES: frozenset[str] = frozenset({COMPLETED, DISMISSED})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({VIEWED, DISMISSED}),
    VIEWED: frozenset({ACCEPTED, IN_PROGRESS, DISMISSED}),
    ACCEPTED: frozenset({IN_PROGRESS, COMPLETED, DISMISSED}),
    IN_PROGRESS: frozenset({COMPLETED, DISMISSED}),
    COMPLETED: frozenset(),
    DISMISSED: frozenset(),
}


def normalize_status(status: str) -> str:
    value = (status or "").strip().upper()
    if value not in ALLOWED_TRANSITIONS:
        raise InvalidInputError(f"unknown opportunity status: {status!r}")
    return value


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def check_transition(current: str, target: str) -> str:
    target = normalize_status(target)
    if current in TERMINAL_STATUSES:
        raise InvalidInputError(f"opportunity is {current} and can no longer change status")
    if not can_transition(current, target):
        raise InvalidInputError(f"cannot move opportunity from {current} to {target}")
    return target


def update_opportunity_status(
    db: Session,
    *,
    account_id: str,
    opportunity_id: str,
    status: str,
    actor: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> OpportunitySuggestion:
    store = GraphStore(db)
    row = store.get_opportunity(account_id, opportunity_id)
    previous = row.status
    target = check_transition(previous, status)
    row = store.update_opportunity_status(row, status=target, actor=actor, notes=notes, acted_at=now)
    logger.info(
        "opportunity_status_changed",
        extra={"opportunity_id": opportunity_id, "from_status": previous, "to_status": target, "actor": actor},
    )
    return row

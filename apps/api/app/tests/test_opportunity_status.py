from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import InvalidInputError, NotFoundError
from app.db.pg.base import Base
from app.db.pg.session import SessionLocal, engine
from app.services.graph.store import GraphStore
from app.services.opportunities.status import (
    ALLOWED_TRANSITIONS,
    COMPLETED,
    DISMISSED,
    TERMINAL_STATUSES,
    can_transition,
    check_transition,
    normalize_status,
    update_opportunity_status,
)

NOW = datetime(2026, 5, 6, 12, 0, tzinfo=timezone.utc)


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def _payload(title: str = "Reconnect with Ann") -> dict:
    return {
        "category": "reconnection",
        "type": "reconnection",
        "priority": "high",
        "title": title,
        "description": "",
        "confidence": 0.8,
        "impact_score": 70.0,
        "effort_score": 20.0,
        "urgency_score": 60.0,
        "reasoning_json": {},
        "suggested_actions_json": [],
        "source_engine": "reconnection",
        "created_at": NOW,
    }


def test_dismiss_is_reachable_from_every_open_status() -> None:
    for status, targets in ALLOWED_TRANSITIONS.items():
        if status in TERMINAL_STATUSES:
            assert targets == frozenset()
        else:
            assert DISMISSED in targets


def test_forward_path_reaches_completion() -> None:
    assert can_transition("PENDING", "VIEWED")
    assert can_transition("VIEWED", "ACCEPTED")
    assert can_transition("ACCEPTED", "IN_PROGRESS")
    assert can_transition("IN_PROGRESS", COMPLETED)
    assert not can_transition("PENDING", COMPLETED)
    assert not can_transition("VIEWED", "PENDING")


def test_status_names_are_normalised() -> None:
    assert normalize_status(" viewed ") == "VIEWED"
    assert check_transition("PENDING", "dismissed") == DISMISSED
    with pytest.raises(InvalidInputError):
        normalize_status("archived")


def test_terminal_statuses_cannot_change() -> None:
    with pytest.raises(InvalidInputError):
        check_transition(COMPLETED, "DISMISSED")
    with pytest.raises(InvalidInputError):
        check_transition(DISMISSED, "VIEWED")
    with pytest.raises(InvalidInputError):
        check_transition("PENDING", "IN_PROGRESS")


def test_status_update_records_action_history() -> None:
    reset_db()
    db = SessionLocal()
    try:
        store = GraphStore(db)
        row = store.create_opportunity_suggestion("acct-1", _payload())

        update_opportunity_status(
            db, account_id="acct-1", opportunity_id=row.opportunity_id, status="viewed", actor="dana", now=NOW
        )
        updated = update_opportunity_status(
            db,
            account_id="acct-1",
            opportunity_id=row.opportunity_id,
            status="dismissed",
            actor="dana",
            notes="not now",
            now=NOW + timedelta(minutes=5),
        )

        assert updated.status == DISMISSED
        assert updated.acted_by == "dana"
        assert updated.notes == "not now"
        actions = store.list_opportunity_actions([row.opportunity_id])
        assert [action.action_type for action in actions] == ["VIEWED", DISMISSED]
        with pytest.raises(InvalidInputError):
            update_opportunity_status(db, account_id="acct-1", opportunity_id=row.opportunity_id, status="viewed")
    finally:
        db.close()


def test_status_update_is_scoped_to_account() -> None:
    reset_db()
    db = SessionLocal()
    try:
        row = GraphStore(db).create_opportunity_suggestion("acct-1", _payload())

        with pytest.raises(NotFoundError):
            update_opportunity_status(db, account_id="acct-2", opportunity_id=row.opportunity_id, status="viewed")
    finally:
        db.close()

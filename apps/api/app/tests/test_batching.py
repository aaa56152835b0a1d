from __future__ import annotations

import pytest

from app.core.errors import BatchResult, PartialBatchFailure, UpstreamUnavailableError
from app.db.pg.base import Base
from app.db.pg.models import Contact
from app.db.pg.session import SessionLocal, engine
from app.services.batching import chunked, run_in_waves
from app.services.scoring.contact_scoring import batch_score


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def _handler(item_id: str) -> dict:
    if item_id == "bad":
        raise ValueError("no such contact")
    return {"contact_id": item_id}


def test_chunked_splits_in_order() -> None:
    assert chunked(["a", "b", "c", "d", "e"], 2) == [["a", "b"], ["c", "d"], ["e"]]
    assert chunked([], 3) == []


def test_failed_items_are_skipped_and_counted() -> None:
    pauses: list[float] = []

    result = run_in_waves(
        ["a", "bad", "c", "d"],
        _handler,
        chunk_size=2,
        pause_seconds=0.5,
        event="test_batch",
        sleep=pauses.append,
    )

    assert result.processed == 3
    assert result.skipped == 1
    assert result.failures == [{"id": "bad", "error": "ValueError: no such contact"}]
    assert [item["contact_id"] for item in result.items] == ["a", "c", "d"]
    assert pauses == [0.5]


def test_batch_where_every_item_fails_raises() -> None:
    with pytest.raises(UpstreamUnavailableError):
        run_in_waves(["bad"], _handler, chunk_size=5, pause_seconds=0.0, event="test_batch")


def test_empty_batch_is_not_a_failure() -> None:
    result = run_in_waves([], _handler, chunk_size=5, pause_seconds=0.0, event="test_batch")

    assert result.total == 0


def test_raise_for_failures_reports_partial_batches() -> None:
    clean = BatchResult(processed=2)
    clean.raise_for_failures()

    partial = BatchResult(processed=1)
    partial.record_failure("c-9", KeyError("c-9"))
    with pytest.raises(PartialBatchFailure) as excinfo:
        partial.raise_for_failures()
    assert excinfo.value.result is partial
    assert str(excinfo.value) == "1 of 2 batch items failed"


def test_batch_score_skips_unknown_contacts() -> None:
    reset_db()
    db = SessionLocal()
    try:
        db.add_all(
            [
                Contact(contact_id="c-1", account_id="acct-1", first_name="Ann", position="CEO"),
                Contact(contact_id="c-2", account_id="acct-1", first_name="Bob", position="Engineer"),
            ]
        )
        db.commit()
    finally:
        db.close()

    result = batch_score("acct-1", ["c-1", "missing", "c-2"])

    assert result.processed == 2
    assert result.skipped == 1
    assert result.failures[0]["id"] == "missing"
    db = SessionLocal()
    try:
        scored = db.get(Contact, "c-1")
        assert scored.priority_score is not None
        assert scored.last_scoring_update is not None
    finally:
        db.close()

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.db.pg.base import Base
from app.db.pg.models import Contact
from app.db.pg.session import SessionLocal, engine
from app.main import app
from app.workers import jobs, queue


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def test_unknown_job_names_are_rejected() -> None:
    with pytest.raises(ValueError):
        queue.enqueue_job("send_newsletter", "acct-1")


def test_inline_queue_runs_job_in_process(monkeypatch) -> None:
    calls: list[tuple] = []
    monkeypatch.setattr(queue, "get_settings", lambda: Settings(queue_mode="inline"))
    monkeypatch.setattr(jobs, "batch_score_contacts", lambda *args: calls.append(args))

    job_id = queue.enqueue_job("batch_score_contacts", "acct-1", ["c-1"], None)

    assert job_id == "inline-batch_score_contacts"
    assert calls == [("acct-1", ["c-1"], None)]


def test_generate_job_reports_created_rows() -> None:
    reset_db()
    db = SessionLocal()
    try:
        db.add(Contact(contact_id="c-1", account_id="acct-1", first_name="Ann", company="Acme Tech"))
        db.commit()
    finally:
        db.close()

    summary = jobs.generate_opportunities_for_account("acct-1", {"categories": ["network_expansion"], "limit": 3})

    assert summary["created"] == 3
    assert len(summary["opportunity_ids"]) == 3
    assert summary["skipped_engines"] == []


def test_health_reports_database_status() -> None:
    response = TestClient(app).get("/v1/health")

    assert response.status_code == 200
    assert response.json()["database"] == "ok"

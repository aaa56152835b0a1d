from __future__ import annotations

from collections.abc import Generator

from fastapi import Header, HTTPException, status

from app.core.config import Settings, get_settings
from app.db.pg.session import SessionLocal


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_settings_dep() -> Settings:
    return get_settings()


def get_account_id(x_account_id: str | None = Header(default=None)) -> str:
    account_id = (x_account_id or "").strip()
    if not account_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-Account-Id header is required")
    return account_id

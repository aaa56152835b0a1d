from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.deps import get_account_id, get_db
from app.api.v1.errors import translate_service_errors
from app.api.v1.schemas import PathOut, PathsResponse
from app.core.config import get_settings
from app.services.paths.finder import find_paths

router = APIRouter(prefix="/paths", tags=["paths"])


@router.get("/{from_id}/{to_id}", response_model=PathsResponse)
def get_paths(
    from_id: str,
    to_id: str,
    max_degrees: int | None = Query(default=None, ge=1, le=6),
    min_strength: float | None = Query(default=None, ge=0.0, le=1.0),
    account_id: str = Depends(get_account_id),
    db: Session = Depends(get_db),
) -> PathsResponse:
    settings = get_settings()
    with translate_service_errors():
        paths = find_paths(
            db,
            account_id=account_id,
            from_id=from_id,
            to_id=to_id,
            max_degrees=max_degrees if max_degrees is not None else settings.path_default_max_degrees,
            min_strength=min_strength if min_strength is not None else settings.path_default_min_strength,
            max_paths=settings.path_max_results,
        )
    return PathsResponse(
        from_id=from_id,
        to_id=to_id,
        paths=[PathOut.model_validate(path.as_dict()) for path in paths],
    )

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.deps import get_account_id, get_db
from app.api.v1.errors import translate_service_errors
from app.api.v1.schemas import NetworkGapsResponse
from app.services.opportunities.network_gaps import network_gap_report

router = APIRouter(prefix="/network", tags=["network"])


@router.get("/gaps", response_model=NetworkGapsResponse)
def get_network_gaps(account_id: str = Depends(get_account_id), db: Session = Depends(get_db)) -> NetworkGapsResponse:
    with translate_service_errors():
        result = network_gap_report(db, account_id=account_id)
    return NetworkGapsResponse.model_validate(result.as_dict())

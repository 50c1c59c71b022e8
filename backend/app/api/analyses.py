"""Analysis history endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.api.auth import CurrentUser, get_current_user
from backend.app.api.deps import get_db_session
from backend.app.db.records import delete_owned_analysis, get_owned_analysis
from backend.app.errors import NotFoundError
from backend.app.streaming import WireModel

router = APIRouter(prefix="/api/analyses", tags=["analyses"])


class AnalysisOut(WireModel):
    """Stored analysis record."""

    id: UUID
    user_id: UUID
    content_type: str
    content: str | None
    url: str | None
    locale: str
    status: str
    score: int | None
    results: dict[str, Any] | None
    duration: int | None
    created_at: datetime
    updated_at: datetime


@router.get("/{analysis_id}", response_model=AnalysisOut)
def get_analysis(
    analysis_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
) -> AnalysisOut:
    """Get one of the caller's analyses.

    Raises:
        NotFoundError: If the analysis does not exist or belongs to another user
    """
    analysis = get_owned_analysis(session, analysis_id, current_user.user_id)
    if analysis is None:
        raise NotFoundError()
    return AnalysisOut.model_validate(analysis, from_attributes=True)


@router.delete("/{analysis_id}")
def delete_analysis(
    analysis_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
) -> dict[str, bool]:
    if not delete_owned_analysis(session, analysis_id, current_user.user_id):
        raise NotFoundError()
    return {"success": True}

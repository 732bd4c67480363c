"""Task analytics endpoint."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from agiletrack.core.auth import RequestUserContext, get_current_user_context
from agiletrack.db.dependencies import get_db_session
from agiletrack.services.portfolio_service import PortfolioService

router = APIRouter(prefix="/organizations/{organization_slug}", tags=["tasks"])


@router.get("/tasks/reports")
def get_task_report(
    organization_slug: str,
    project_id: UUID | None = Query(default=None),
    assignee_id: UUID | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = PortfolioService(db)
    return service.task_report(
        context=context,
        organization_slug=organization_slug,
        project_id=project_id,
        assignee_id=assignee_id,
        start_date=start_date,
        end_date=end_date,
    )

"""Reporting endpoints: portfolio overview, PQG breakdowns and project monitoring."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agiletrack.core.auth import RequestUserContext, get_current_user_context
from agiletrack.db.dependencies import get_db_session
from agiletrack.services.portfolio_service import PortfolioService

router = APIRouter(prefix="/organizations/{organization_slug}", tags=["reports"])


def _service(db: Session) -> PortfolioService:
    return PortfolioService(db)


@router.get("/reports")
def get_reporting_overview(
    organization_slug: str,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.reporting_overview(context=context, organization_slug=organization_slug)


@router.get("/reports/pqg")
def get_pqg_dashboard(
    organization_slug: str,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.pqg_dashboard(context=context, organization_slug=organization_slug)


@router.get("/projects/{project_id}/monitoring")
def get_project_monitoring(
    organization_slug: str,
    project_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.project_monitoring(
        context=context,
        organization_slug=organization_slug,
        project_id=project_id,
    )

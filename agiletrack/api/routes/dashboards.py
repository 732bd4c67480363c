"""Organization dashboard endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from agiletrack.core.auth import RequestUserContext, get_current_user_context
from agiletrack.db.dependencies import get_db_session
from agiletrack.services.portfolio_service import PortfolioService

router = APIRouter(prefix="/organizations/{organization_slug}", tags=["dashboards"])


def _service(db: Session) -> PortfolioService:
    return PortfolioService(db)


@router.get("/dashboard")
def get_organization_dashboard(
    organization_slug: str,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.organization_dashboard(context=context, organization_slug=organization_slug)

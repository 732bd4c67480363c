"""Export endpoint for report templates."""

from __future__ import annotations

from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from agiletrack.core.auth import RequestUserContext, get_current_user_context
from agiletrack.db.dependencies import get_db_session
from agiletrack.services.portfolio_service import PortfolioService

router = APIRouter(prefix="/organizations/{organization_slug}/exports", tags=["exports"])


def _service(db: Session) -> PortfolioService:
    return PortfolioService(db)


def _content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


@router.get("/{template_key}")
def export_report(
    organization_slug: str,
    template_key: str,
    format: str = Query(default="csv"),
    project_id: list[UUID] | None = Query(default=None),
    period: str | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _service(db)
    exported = service.export_report(
        context=context,
        organization_slug=organization_slug,
        template_key=template_key,
        format_name=format,
        project_ids=project_id,
        period=period,
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": _content_disposition(exported.filename)},
    )

"""Finance endpoints: budget reports and the expense workflow."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from agiletrack.core.auth import RequestUserContext, get_current_user_context
from agiletrack.db.dependencies import get_db_session
from agiletrack.models.entities import ExpenseStatus
from agiletrack.services.expense_service import DEFAULT_CATEGORY, ExpenseCreateData, ExpenseService
from agiletrack.services.portfolio_service import PortfolioService

router = APIRouter(prefix="/organizations/{organization_slug}", tags=["finance"])


class ExpenseCreatePayload(BaseModel):
    project_id: UUID
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    description: str = Field(min_length=1, max_length=1000)
    expense_date: date
    category: str = Field(default=DEFAULT_CATEGORY, min_length=1, max_length=128)


def _portfolio_service(db: Session) -> PortfolioService:
    return PortfolioService(db)


def _expense_service(db: Session) -> ExpenseService:
    return ExpenseService(db)


@router.get("/finance/reports")
def get_financial_report(
    organization_slug: str,
    project_id: UUID | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _portfolio_service(db)
    return service.financial_report(
        context=context,
        organization_slug=organization_slug,
        project_id=project_id,
    )


@router.get("/expenses")
def list_expenses(
    organization_slug: str,
    status: ExpenseStatus | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _expense_service(db)
    rows = service.list_expenses(context=context, organization_slug=organization_slug, status_filter=status)
    return {"items": rows}


@router.post("/expenses", status_code=201)
def submit_expense(
    organization_slug: str,
    payload: ExpenseCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _expense_service(db)
    return service.submit_expense(
        context=context,
        organization_slug=organization_slug,
        data=ExpenseCreateData(
            project_id=payload.project_id,
            amount=payload.amount,
            description=payload.description,
            expense_date=payload.expense_date,
            category=payload.category,
        ),
    )


@router.post("/expenses/{expense_id}/approve")
def approve_expense(
    organization_slug: str,
    expense_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _expense_service(db)
    return service.approve_expense(context=context, organization_slug=organization_slug, expense_id=expense_id)


@router.post("/expenses/{expense_id}/reject")
def reject_expense(
    organization_slug: str,
    expense_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _expense_service(db)
    return service.reject_expense(context=context, organization_slug=organization_slug, expense_id=expense_id)

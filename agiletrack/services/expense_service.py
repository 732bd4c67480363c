"""Expense submission and approval workflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agiletrack.core.auth import RequestUserContext, require_capability, require_membership
from agiletrack.models.entities import ExpenseStatus, Organization, ProjectBudget, ProjectExpense, utcnow
from agiletrack.repositories.portfolio_repository import PortfolioRepository
from agiletrack.services.metrics import FlatExpense, flatten_expenses
from agiletrack.services.snapshots import as_utc

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "General"
ZERO = Decimal("0.00")


@dataclass(slots=True)
class ExpenseCreateData:
    project_id: UUID
    amount: Decimal
    description: str
    expense_date: date
    category: str = DEFAULT_CATEGORY


def _serialize_flat_expense(row: FlatExpense) -> dict[str, object]:
    expense = row.expense
    return {
        "id": str(expense.id),
        "budget_id": str(expense.budget_id),
        "project_id": str(row.project_id),
        "project_name": row.project_name,
        "category": row.category,
        "amount": expense.amount,
        "description": expense.description,
        "expense_date": expense.expense_date.isoformat(),
        "status": expense.status.value,
        "reported_by": str(expense.reported_by_id),
        "reported_at": expense.reported_at.isoformat(),
        "reviewed_by": str(expense.reviewed_by_id) if expense.reviewed_by_id else None,
        "reviewed_at": expense.reviewed_at.isoformat() if expense.reviewed_at else None,
    }


class ExpenseService:
    """Submit expenses against budget categories and review them."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = PortfolioRepository(db)

    def _organization(self, organization_slug: str) -> Organization:
        organization = self.repo.get_organization_by_slug(organization_slug)
        if organization is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found.")
        return organization

    @staticmethod
    def serialize_expense(expense: ProjectExpense, budget: ProjectBudget) -> dict[str, object]:
        return {
            "id": str(expense.id),
            "budget_id": str(expense.budget_id),
            "project_id": str(budget.project_id),
            "category": budget.category,
            "amount": str(expense.amount),
            "description": expense.description,
            "expense_date": expense.expense_date.isoformat(),
            "status": expense.status.value,
            "reported_by": str(expense.reported_by_id),
            "reported_at": as_utc(expense.reported_at).isoformat(),
            "reviewed_by": str(expense.reviewed_by_id) if expense.reviewed_by_id else None,
            "reviewed_at": as_utc(expense.reviewed_at).isoformat() if expense.reviewed_at else None,
            "budget_spent_amount": str(budget.spent_amount),
        }

    # ---------- Queries ----------
    def list_expenses(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        status_filter: ExpenseStatus | None = None,
    ) -> list[dict[str, object]]:
        membership = require_membership(context, organization_slug)
        require_capability(membership, "can_view_financials")
        organization = self._organization(organization_slug)

        snapshot = self.repo.load_organization_snapshot(organization)
        rows = flatten_expenses(snapshot.projects)
        if status_filter is not None:
            rows = [row for row in rows if row.expense.status == status_filter]
        return [_serialize_flat_expense(row) for row in rows]

    # ---------- Commands ----------
    def _budget_for_category(self, *, project_id: UUID, category: str) -> ProjectBudget:
        budget = self.repo.get_budget_by_category(project_id=project_id, category=category)
        if budget is not None:
            return budget

        now = utcnow()
        try:
            return self.repo.add_budget(
                ProjectBudget(
                    project_id=project_id,
                    category=category,
                    allocated_amount=ZERO,
                    spent_amount=ZERO,
                    approved_amount=ZERO,
                    created_at=now,
                    updated_at=now,
                )
            )
        except IntegrityError:
            # Another submission created the category first.
            self.db.rollback()
            budget = self.repo.get_budget_by_category(project_id=project_id, category=category)
            if budget is None:
                raise
        return budget

    def submit_expense(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        data: ExpenseCreateData,
    ) -> dict[str, object]:
        require_membership(context, organization_slug)
        organization = self._organization(organization_slug)
        project = self.repo.get_project(organization_id=organization.id, project_id=data.project_id)
        if project is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        if data.amount <= ZERO:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Expense amount must be greater than zero.",
            )

        category = data.category.strip() or DEFAULT_CATEGORY
        budget = self._budget_for_category(project_id=project.id, category=category)
        expense = self.repo.add_expense(
            ProjectExpense(
                budget_id=budget.id,
                amount=data.amount,
                description=data.description.strip(),
                expense_date=data.expense_date,
                status=ExpenseStatus.PENDING,
                reported_by_id=context.user_id,
                reported_at=utcnow(),
            )
        )
        self.db.commit()
        self.db.refresh(expense)
        logger.info(
            "Expense %s of %s submitted for project %s (%s) by %s",
            expense.id,
            expense.amount,
            project.id,
            category,
            context.email,
        )
        return self.serialize_expense(expense, budget)

    def _review(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        expense_id: UUID,
        new_status: ExpenseStatus,
    ) -> dict[str, object]:
        membership = require_membership(context, organization_slug)
        require_capability(membership, "can_approve_expenses")
        organization = self._organization(organization_slug)

        expense = self.repo.get_expense(organization_id=organization.id, expense_id=expense_id)
        if expense is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found.")

        reviewed = self.repo.review_pending_expense(
            expense_id=expense.id,
            new_status=new_status,
            reviewer_id=context.user_id,
            reviewed_at=utcnow(),
        )
        if not reviewed:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Expense has already been processed.",
            )
        if new_status == ExpenseStatus.APPROVED:
            self.repo.increment_budget_spent(expense.budget_id, expense.amount)
        self.db.commit()

        self.db.refresh(expense)
        budget = self.repo.get_budget(expense.budget_id)
        logger.info("Expense %s %s by %s", expense.id, new_status.value.lower(), context.email)
        return self.serialize_expense(expense, budget)

    def approve_expense(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        expense_id: UUID,
    ) -> dict[str, object]:
        return self._review(
            context=context,
            organization_slug=organization_slug,
            expense_id=expense_id,
            new_status=ExpenseStatus.APPROVED,
        )

    def reject_expense(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        expense_id: UUID,
    ) -> dict[str, object]:
        return self._review(
            context=context,
            organization_slug=organization_slug,
            expense_id=expense_id,
            new_status=ExpenseStatus.REJECTED,
        )

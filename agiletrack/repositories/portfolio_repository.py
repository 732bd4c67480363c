"""Repository helpers for organization portfolio reads and expense writes."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from agiletrack.models.entities import (
    ExpenseStatus,
    Organization,
    OrganizationMember,
    ProgressReport,
    Project,
    ProjectBudget,
    ProjectExpense,
    ProjectPhase,
    Task,
    User,
    utcnow,
)
from agiletrack.services.snapshots import (
    BudgetSnapshot,
    ExpenseSnapshot,
    OrganizationSnapshot,
    PhaseSnapshot,
    ProjectSnapshot,
    TaskSnapshot,
    as_utc,
    to_float,
)


class PortfolioRepository:
    """Persistence operations behind dashboards, reports and the expense workflow."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Organizations ----------
    def get_organization_by_slug(self, slug: str) -> Organization | None:
        return self.db.scalar(select(Organization).where(Organization.slug == slug))

    def count_members(self, organization_id: UUID) -> int:
        return int(
            self.db.scalar(
                select(func.count(OrganizationMember.id)).where(
                    OrganizationMember.organization_id == organization_id
                )
            )
            or 0
        )

    def list_users(self, user_ids: Sequence[UUID]) -> list[User]:
        if not user_ids:
            return []
        return list(self.db.scalars(select(User).where(User.id.in_(user_ids))).all())

    # ---------- Projects ----------
    def get_project(self, *, organization_id: UUID, project_id: UUID) -> Project | None:
        return self.db.scalar(
            select(Project).where(Project.id == project_id, Project.organization_id == organization_id)
        )

    def list_projects(self, organization_id: UUID, project_ids: Sequence[UUID] | None = None) -> list[Project]:
        stmt = select(Project).where(Project.organization_id == organization_id)
        if project_ids:
            stmt = stmt.where(Project.id.in_(project_ids))
        return list(self.db.scalars(stmt.order_by(Project.updated_at.desc(), Project.name.asc())).all())

    def list_tasks(self, project_ids: Sequence[UUID]) -> list[Task]:
        if not project_ids:
            return []
        return list(
            self.db.scalars(
                select(Task).where(Task.project_id.in_(project_ids)).order_by(Task.created_at.asc())
            ).all()
        )

    def list_phases(self, project_ids: Sequence[UUID]) -> list[ProjectPhase]:
        if not project_ids:
            return []
        return list(
            self.db.scalars(
                select(ProjectPhase)
                .where(ProjectPhase.project_id.in_(project_ids))
                .order_by(ProjectPhase.start_date.asc())
            ).all()
        )

    def progress_report_stats(self, project_ids: Sequence[UUID]) -> dict[UUID, tuple[int, datetime | None]]:
        if not project_ids:
            return {}
        rows = self.db.execute(
            select(
                ProgressReport.project_id,
                func.count(ProgressReport.id),
                func.max(ProgressReport.created_at),
            )
            .where(ProgressReport.project_id.in_(project_ids))
            .group_by(ProgressReport.project_id)
        ).all()
        return {project_id: (int(count), as_utc(latest)) for project_id, count, latest in rows}

    # ---------- Budgets and expenses ----------
    def list_budgets(self, project_ids: Sequence[UUID]) -> list[ProjectBudget]:
        if not project_ids:
            return []
        return list(
            self.db.scalars(
                select(ProjectBudget)
                .where(ProjectBudget.project_id.in_(project_ids))
                .order_by(ProjectBudget.category.asc())
            ).all()
        )

    def list_expenses(self, budget_ids: Sequence[UUID]) -> list[ProjectExpense]:
        if not budget_ids:
            return []
        return list(
            self.db.scalars(
                select(ProjectExpense)
                .where(ProjectExpense.budget_id.in_(budget_ids))
                .order_by(ProjectExpense.reported_at.desc())
            ).all()
        )

    def get_budget_by_category(self, *, project_id: UUID, category: str) -> ProjectBudget | None:
        return self.db.scalar(
            select(ProjectBudget).where(ProjectBudget.project_id == project_id, ProjectBudget.category == category)
        )

    def add_budget(self, budget: ProjectBudget) -> ProjectBudget:
        self.db.add(budget)
        self.db.flush()
        return budget

    def add_expense(self, expense: ProjectExpense) -> ProjectExpense:
        self.db.add(expense)
        self.db.flush()
        return expense

    def get_expense(self, *, organization_id: UUID, expense_id: UUID) -> ProjectExpense | None:
        return self.db.scalar(
            select(ProjectExpense)
            .join(ProjectBudget, ProjectBudget.id == ProjectExpense.budget_id)
            .join(Project, Project.id == ProjectBudget.project_id)
            .where(ProjectExpense.id == expense_id, Project.organization_id == organization_id)
        )

    def get_budget(self, budget_id: UUID) -> ProjectBudget | None:
        return self.db.scalar(select(ProjectBudget).where(ProjectBudget.id == budget_id))

    def review_pending_expense(
        self,
        *,
        expense_id: UUID,
        new_status: ExpenseStatus,
        reviewer_id: UUID,
        reviewed_at: datetime,
    ) -> bool:
        """Move a PENDING expense to ``new_status``; False when it was already reviewed."""

        result = self.db.execute(
            update(ProjectExpense)
            .where(ProjectExpense.id == expense_id, ProjectExpense.status == ExpenseStatus.PENDING)
            .values(status=new_status, reviewed_by_id=reviewer_id, reviewed_at=reviewed_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def increment_budget_spent(self, budget_id: UUID, amount: Decimal) -> None:
        """Add to ``spent_amount`` in SQL so concurrent approvals do not overwrite each other."""

        self.db.execute(
            update(ProjectBudget)
            .where(ProjectBudget.id == budget_id)
            .values(spent_amount=ProjectBudget.spent_amount + amount, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    # ---------- Snapshots ----------
    def load_organization_snapshot(
        self,
        organization: Organization,
        project_ids: Sequence[UUID] | None = None,
    ) -> OrganizationSnapshot:
        """Fetch the organization graph once and freeze it for the pipeline."""

        projects = self.list_projects(organization.id, project_ids)
        ids = [project.id for project in projects]

        tasks_by_project: dict[UUID, list[TaskSnapshot]] = defaultdict(list)
        for task in self.list_tasks(ids):
            tasks_by_project[task.project_id].append(
                TaskSnapshot(
                    id=task.id,
                    title=task.title,
                    status=task.status,
                    due_date=as_utc(task.due_date),
                    assignee_id=task.assignee_id,
                    estimated_hours=task.estimated_hours,
                    actual_hours=task.actual_hours,
                    priority=task.priority,
                    created_at=as_utc(task.created_at),
                    updated_at=as_utc(task.updated_at),
                )
            )

        phases_by_project: dict[UUID, list[PhaseSnapshot]] = defaultdict(list)
        for phase in self.list_phases(ids):
            phases_by_project[phase.project_id].append(
                PhaseSnapshot(
                    id=phase.id,
                    name=phase.name,
                    status=phase.status,
                    start_date=phase.start_date,
                    end_date=phase.end_date,
                )
            )

        budgets = self.list_budgets(ids)
        expenses_by_budget: dict[UUID, list[ExpenseSnapshot]] = defaultdict(list)
        for expense in self.list_expenses([budget.id for budget in budgets]):
            expenses_by_budget[expense.budget_id].append(
                ExpenseSnapshot(
                    id=expense.id,
                    budget_id=expense.budget_id,
                    amount=to_float(expense.amount),
                    description=expense.description,
                    expense_date=expense.expense_date,
                    status=expense.status,
                    reported_by_id=expense.reported_by_id,
                    reported_at=as_utc(expense.reported_at),
                    reviewed_by_id=expense.reviewed_by_id,
                    reviewed_at=as_utc(expense.reviewed_at),
                )
            )

        budgets_by_project: dict[UUID, list[BudgetSnapshot]] = defaultdict(list)
        for budget in budgets:
            budgets_by_project[budget.project_id].append(
                BudgetSnapshot(
                    id=budget.id,
                    category=budget.category,
                    allocated_amount=to_float(budget.allocated_amount),
                    spent_amount=to_float(budget.spent_amount),
                    approved_amount=to_float(budget.approved_amount),
                    expenses=tuple(expenses_by_budget.get(budget.id, ())),
                )
            )

        report_stats = self.progress_report_stats(ids)
        snapshots = []
        for project in projects:
            report_count, last_report_at = report_stats.get(project.id, (0, None))
            snapshots.append(
                ProjectSnapshot(
                    id=project.id,
                    name=project.name,
                    status=project.status,
                    methodology=project.methodology,
                    currency=project.currency,
                    budget=to_float(project.budget) if project.budget is not None else None,
                    metadata=dict(project.meta or {}),
                    tasks=tuple(tasks_by_project.get(project.id, ())),
                    budgets=tuple(budgets_by_project.get(project.id, ())),
                    phases=tuple(phases_by_project.get(project.id, ())),
                    progress_report_count=report_count,
                    last_report_at=last_report_at,
                    updated_at=as_utc(project.updated_at),
                )
            )

        return OrganizationSnapshot(
            id=organization.id,
            slug=organization.slug,
            name=organization.name,
            projects=tuple(snapshots),
            member_count=self.count_members(organization.id),
        )

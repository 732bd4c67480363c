"""Metric reducer: folds organization snapshots into scalar totals.

Every function here is a pure, single-pass fold over already-fetched
snapshots. "Now" is supplied by the caller so one request evaluates
overdue state against a single instant.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from agiletrack.models.entities import ExpenseStatus, ProjectStatus, TaskPriority, TaskStatus
from agiletrack.services.snapshots import ExpenseSnapshot, ProjectSnapshot, TaskSnapshot

ONE_DAY = timedelta(days=1)
ONE_WEEK = timedelta(weeks=1)
RECENT_TASK_WINDOW = timedelta(days=30)
TASK_TREND_WEEKS = 4


@dataclass(frozen=True, slots=True)
class FinancialSummary:
    total_allocated: float = 0.0
    total_spent: float = 0.0
    total_approved: float = 0.0
    total_expenses: int = 0
    pending_expenses: int = 0
    project_count: int = 0
    active_project_count: int = 0


@dataclass(frozen=True, slots=True)
class TaskMetrics:
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    overdue: int = 0
    user_total: int = 0
    user_completed: int = 0
    user_in_progress: int = 0
    user_overdue: int = 0


@dataclass(frozen=True, slots=True)
class TaskPartition:
    """Disjoint task buckets; ``total`` always equals the input size."""

    completed: int = 0
    overdue: int = 0
    in_progress: int = 0
    other: int = 0

    @property
    def total(self) -> int:
        return self.completed + self.overdue + self.in_progress + self.other


@dataclass(frozen=True, slots=True)
class ProjectTotals:
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    overdue_tasks: int = 0
    allocated_budget: float = 0.0
    spent_budget: float = 0.0
    approved_budget: float = 0.0
    estimated_hours: float = 0.0
    actual_hours: float = 0.0
    budget_categories: int = 0
    expense_count: int = 0
    pending_expense_count: int = 0
    progress_report_count: int = 0
    team_size: int = 0


@dataclass(frozen=True, slots=True)
class FlatExpense:
    project_id: UUID
    project_name: str
    category: str
    expense: ExpenseSnapshot


@dataclass(frozen=True, slots=True)
class UpcomingDeadline:
    task: TaskSnapshot
    project_id: UUID
    project_name: str
    days_until_due: int
    is_user_task: bool


def is_overdue(task: TaskSnapshot, now: datetime) -> bool:
    return task.due_date is not None and task.due_date < now and task.status != TaskStatus.DONE


def _hours(value: float | None) -> float:
    return float(value) if value is not None else 0.0


def reduce_financial_summary(projects: Iterable[ProjectSnapshot]) -> FinancialSummary:
    total_allocated = 0.0
    total_spent = 0.0
    total_approved = 0.0
    total_expenses = 0
    pending_expenses = 0
    project_count = 0
    active_project_count = 0

    for project in projects:
        project_count += 1
        if project.status == ProjectStatus.ACTIVE:
            active_project_count += 1
        for budget in project.budgets:
            total_allocated += budget.allocated_amount
            total_spent += budget.spent_amount
            total_approved += budget.approved_amount
            total_expenses += len(budget.expenses)
            pending_expenses += sum(1 for expense in budget.expenses if expense.status == ExpenseStatus.PENDING)

    return FinancialSummary(
        total_allocated=total_allocated,
        total_spent=total_spent,
        total_approved=total_approved,
        total_expenses=total_expenses,
        pending_expenses=pending_expenses,
        project_count=project_count,
        active_project_count=active_project_count,
    )


def reduce_task_metrics(
    tasks: Iterable[TaskSnapshot],
    *,
    now: datetime,
    user_id: UUID | None = None,
) -> TaskMetrics:
    keys = ("total", "completed", "in_progress", "overdue")
    counts = dict.fromkeys(keys + tuple(f"user_{key}" for key in keys), 0)
    for task in tasks:
        mine = user_id is not None and task.assignee_id == user_id
        flags = {
            "total": True,
            "completed": task.status == TaskStatus.DONE,
            "in_progress": task.status == TaskStatus.IN_PROGRESS,
            "overdue": is_overdue(task, now),
        }
        for key, hit in flags.items():
            if hit:
                counts[key] += 1
                if mine:
                    counts[f"user_{key}"] += 1
    return TaskMetrics(**counts)


def partition_tasks(tasks: Iterable[TaskSnapshot], *, now: datetime) -> TaskPartition:
    completed = overdue = in_progress = other = 0
    for task in tasks:
        if task.status == TaskStatus.DONE:
            completed += 1
        elif is_overdue(task, now):
            overdue += 1
        elif task.status == TaskStatus.IN_PROGRESS:
            in_progress += 1
        else:
            other += 1
    return TaskPartition(completed=completed, overdue=overdue, in_progress=in_progress, other=other)


def reduce_project_totals(project: ProjectSnapshot, *, now: datetime) -> ProjectTotals:
    task_metrics = reduce_task_metrics(project.tasks, now=now)
    estimated = sum(_hours(task.estimated_hours) for task in project.tasks)
    actual = sum(_hours(task.actual_hours) for task in project.tasks)
    assignees = {task.assignee_id for task in project.tasks if task.assignee_id is not None}

    expenses = [expense for budget in project.budgets for expense in budget.expenses]
    return ProjectTotals(
        total_tasks=task_metrics.total,
        completed_tasks=task_metrics.completed,
        in_progress_tasks=task_metrics.in_progress,
        overdue_tasks=task_metrics.overdue,
        allocated_budget=sum(budget.allocated_amount for budget in project.budgets),
        spent_budget=sum(budget.spent_amount for budget in project.budgets),
        approved_budget=sum(budget.approved_amount for budget in project.budgets),
        estimated_hours=estimated,
        actual_hours=actual,
        budget_categories=len(project.budgets),
        expense_count=len(expenses),
        pending_expense_count=sum(1 for expense in expenses if expense.status == ExpenseStatus.PENDING),
        progress_report_count=project.progress_report_count,
        team_size=len(assignees),
    )


def count_projects_by_status(projects: Iterable[ProjectSnapshot]) -> dict[str, int]:
    counts = {status.value: 0 for status in ProjectStatus}
    total = 0
    for project in projects:
        counts[project.status.value] += 1
        total += 1
    counts["total"] = total
    return counts


def flatten_expenses(projects: Iterable[ProjectSnapshot]) -> list[FlatExpense]:
    """Every expense with its project and budget category, newest first."""

    rows = [
        FlatExpense(project_id=project.id, project_name=project.name, category=budget.category, expense=expense)
        for project in projects
        for budget in project.budgets
        for expense in budget.expenses
    ]
    rows.sort(key=lambda row: row.expense.reported_at, reverse=True)
    return rows


def days_until(due: datetime, now: datetime) -> int:
    return math.ceil((due - now) / ONE_DAY)


def upcoming_deadlines(
    projects: Sequence[ProjectSnapshot],
    *,
    now: datetime,
    user_id: UUID | None = None,
    limit: int = 10,
) -> list[UpcomingDeadline]:
    candidates = [
        (task, project)
        for project in projects
        for task in project.tasks
        if task.due_date is not None and task.due_date >= now and task.status != TaskStatus.DONE
    ]
    candidates.sort(key=lambda pair: pair[0].due_date)
    return [
        UpcomingDeadline(
            task=task,
            project_id=project.id,
            project_name=project.name,
            days_until_due=days_until(task.due_date, now),
            is_user_task=user_id is not None and task.assignee_id == user_id,
        )
        for task, project in candidates[:limit]
    ]


# ---------- Task analytics ----------
@dataclass(frozen=True, slots=True)
class TaskBreakdown:
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    in_review: int = 0
    blocked: int = 0
    todo: int = 0
    overdue: int = 0
    estimated_hours: float = 0.0
    actual_hours: float = 0.0


@dataclass(frozen=True, slots=True)
class WeeklyTaskTrend:
    label: str
    week_start: datetime
    week_end: datetime
    created: int
    completed: int


@dataclass(frozen=True, slots=True)
class TaskTrends:
    recent_created: int
    recent_completed: int
    weeks: tuple[WeeklyTaskTrend, ...]


def filter_tasks(
    tasks: Iterable[TaskSnapshot],
    *,
    assignee_id: UUID | None = None,
    created_from: datetime | None = None,
    created_before: datetime | None = None,
) -> list[TaskSnapshot]:
    """Tasks matching the assignee and the half-open creation window.

    Tasks without a creation timestamp never match a date bound.
    """

    selected = []
    for task in tasks:
        if assignee_id is not None and task.assignee_id != assignee_id:
            continue
        if created_from is not None or created_before is not None:
            if task.created_at is None:
                continue
            if created_from is not None and task.created_at < created_from:
                continue
            if created_before is not None and task.created_at >= created_before:
                continue
        selected.append(task)
    return selected


def reduce_task_breakdown(tasks: Sequence[TaskSnapshot], *, now: datetime) -> TaskBreakdown:
    statuses = Counter(task.status for task in tasks)
    return TaskBreakdown(
        total=len(tasks),
        completed=statuses[TaskStatus.DONE],
        in_progress=statuses[TaskStatus.IN_PROGRESS],
        in_review=statuses[TaskStatus.IN_REVIEW],
        blocked=statuses[TaskStatus.BLOCKED],
        todo=statuses[TaskStatus.TODO],
        overdue=sum(1 for task in tasks if is_overdue(task, now)),
        estimated_hours=sum(_hours(task.estimated_hours) for task in tasks),
        actual_hours=sum(_hours(task.actual_hours) for task in tasks),
    )


def count_task_priorities(tasks: Iterable[TaskSnapshot]) -> dict[str, int]:
    counts = {priority.value: 0 for priority in TaskPriority}
    for task in tasks:
        counts[task.priority.value] += 1
    return counts


def group_tasks_by_assignee(tasks: Iterable[TaskSnapshot]) -> dict[UUID, list[TaskSnapshot]]:
    groups: dict[UUID, list[TaskSnapshot]] = {}
    for task in tasks:
        if task.assignee_id is not None:
            groups.setdefault(task.assignee_id, []).append(task)
    return groups


def _completed_at(task: TaskSnapshot) -> datetime | None:
    # Completion time is not stored; the last update of a DONE task stands in.
    return task.updated_at or task.created_at


def _within(value: datetime | None, start: datetime, end: datetime) -> bool:
    return value is not None and start <= value < end


def reduce_task_trends(
    tasks: Sequence[TaskSnapshot],
    *,
    now: datetime,
    weeks: int = TASK_TREND_WEEKS,
) -> TaskTrends:
    """Recent creation/completion counts plus weekly buckets, oldest week first."""

    done = [task for task in tasks if task.status == TaskStatus.DONE]
    recent_start = now - RECENT_TASK_WINDOW

    buckets = []
    for index in range(weeks):
        week_end = now - index * ONE_WEEK
        week_start = week_end - ONE_WEEK
        buckets.append(
            WeeklyTaskTrend(
                label=f"Week {weeks - index}",
                week_start=week_start,
                week_end=week_end,
                created=sum(1 for task in tasks if _within(task.created_at, week_start, week_end)),
                completed=sum(1 for task in done if _within(_completed_at(task), week_start, week_end)),
            )
        )
    buckets.reverse()

    return TaskTrends(
        recent_created=sum(1 for task in tasks if task.created_at is not None and task.created_at >= recent_start),
        recent_completed=sum(
            1 for task in done if task.updated_at is not None and task.updated_at >= recent_start
        ),
        weeks=tuple(buckets),
    )

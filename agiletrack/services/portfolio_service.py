"""Dashboard, financial, reporting and export service layer."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from agiletrack.core.auth import (
    EffectiveMembership,
    RequestUserContext,
    require_capability,
    require_membership,
)
from agiletrack.core.config import get_settings
from agiletrack.models.entities import Organization, utcnow
from agiletrack.repositories.portfolio_repository import PortfolioRepository
from agiletrack.services.classifiers import classify_utilization, recommendations
from agiletrack.services.metrics import (
    ONE_DAY,
    TaskBreakdown,
    count_projects_by_status,
    count_task_priorities,
    filter_tasks,
    group_tasks_by_assignee,
    reduce_financial_summary,
    reduce_task_breakdown,
    reduce_task_metrics,
    reduce_task_trends,
    upcoming_deadlines,
)
from agiletrack.services.pipeline import ProjectAssessment, assess_project, assess_projects, reduce_portfolio
from agiletrack.services.pqg import analyze_pqg
from agiletrack.services.rates import (
    completion_rate,
    compute_organization_rates,
    finite_or_zero,
    hour_efficiency,
    utilization_rate,
)
from agiletrack.services.report_serializer import (
    EXPORT_FORMATS,
    TEMPLATES,
    ExportFilePayload,
    ReportContext,
    ReportTemplate,
    available_templates,
    resolve_template,
    serialize_report,
)
from agiletrack.services.snapshots import OrganizationSnapshot

logger = logging.getLogger(__name__)

DEFAULT_REPORT_PERIOD = "current-quarter"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class PortfolioService:
    """Runs the fetch -> reduce -> rate -> classify pipeline for one organization."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = PortfolioRepository(db)
        self.settings = get_settings()

    # ---------- Access / scope ----------
    def _resolve_organization(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
    ) -> tuple[EffectiveMembership, Organization]:
        membership = require_membership(context, organization_slug)
        organization = self.repo.get_organization_by_slug(organization_slug)
        if organization is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found.")
        return membership, organization

    def _snapshot(self, organization: Organization, project_ids: list[UUID] | None = None) -> OrganizationSnapshot:
        snapshot = self.repo.load_organization_snapshot(organization, project_ids)
        if project_ids and len(snapshot.projects) != len(set(project_ids)):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
        logger.debug(
            "Loaded snapshot for organization %s with %d projects", organization.slug, len(snapshot.projects)
        )
        return snapshot

    @staticmethod
    def _organization_ref(snapshot: OrganizationSnapshot) -> dict[str, str]:
        return {"id": str(snapshot.id), "slug": snapshot.slug, "name": snapshot.name}

    # ---------- Dashboard ----------
    def organization_dashboard(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        now: datetime | None = None,
    ) -> dict[str, object]:
        now = now or utcnow()
        membership, organization = self._resolve_organization(context=context, organization_slug=organization_slug)
        capabilities = membership.capabilities
        snapshot = self._snapshot(organization)

        all_tasks = [task for project in snapshot.projects for task in project.tasks]
        task_metrics = reduce_task_metrics(all_tasks, now=now, user_id=context.user_id)

        budget: dict[str, object] | None = None
        if capabilities.can_view_financials:
            summary = reduce_financial_summary(snapshot.projects)
            rate = utilization_rate(summary.total_spent, summary.total_allocated)
            severity = classify_utilization(rate)
            budget = {
                "total_allocated": summary.total_allocated,
                "total_spent": summary.total_spent,
                "utilization_rate": rate,
                "severity": severity.value,
                "color": severity.color,
            }

        recent_activity = [
            {
                "id": str(project.id),
                "name": project.name,
                "status": project.status.value,
                "task_count": len(project.tasks),
                "updated_at": _iso(project.updated_at),
            }
            for project in snapshot.projects[: self.settings.recent_activity_limit]
        ]
        deadlines = [
            {
                "task_id": str(item.task.id),
                "title": item.task.title,
                "status": item.task.status.value,
                "due_date": _iso(item.task.due_date),
                "project_id": str(item.project_id),
                "project_name": item.project_name,
                "days_until_due": item.days_until_due,
                "is_user_task": item.is_user_task,
            }
            for item in upcoming_deadlines(
                snapshot.projects,
                now=now,
                user_id=context.user_id,
                limit=self.settings.upcoming_deadline_limit,
            )
        ]

        return {
            "organization": self._organization_ref(snapshot),
            "user_role": membership.role.value,
            "capabilities": capabilities.as_dict(),
            "metrics": {
                "projects": count_projects_by_status(snapshot.projects),
                "tasks": {
                    "total": task_metrics.total,
                    "completed": task_metrics.completed,
                    "in_progress": task_metrics.in_progress,
                    "overdue": task_metrics.overdue,
                    "user_total": task_metrics.user_total,
                    "user_completed": task_metrics.user_completed,
                    "user_in_progress": task_metrics.user_in_progress,
                    "user_overdue": task_metrics.user_overdue,
                },
                "budget": budget,
                "members": snapshot.member_count,
            },
            "recent_activity": recent_activity,
            "upcoming_deadlines": deadlines,
            "last_updated": now.isoformat(),
        }

    # ---------- Finance ----------
    def financial_report(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        project_id: UUID | None = None,
        now: datetime | None = None,
    ) -> dict[str, object]:
        now = now or utcnow()
        membership, organization = self._resolve_organization(context=context, organization_slug=organization_slug)
        capabilities = require_capability(membership, "can_view_financials")
        snapshot = self._snapshot(organization, [project_id] if project_id else None)

        summary = reduce_financial_summary(snapshot.projects)
        rates = compute_organization_rates(summary)
        severity = classify_utilization(rates.utilization_rate)

        projects = []
        for item in assess_projects(snapshot.projects, now=now):
            project_severity = classify_utilization(item.rates.budget_utilization)
            projects.append(
                {
                    "id": str(item.project.id),
                    "name": item.project.name,
                    "status": item.project.status.value,
                    "currency": item.project.currency,
                    "allocated": item.totals.allocated_budget,
                    "spent": item.totals.spent_budget,
                    "approved": item.totals.approved_budget,
                    "remaining": item.totals.allocated_budget - item.totals.spent_budget,
                    "utilization": item.rates.budget_utilization,
                    "severity": project_severity.value,
                    "color": project_severity.color,
                    "task_progress": item.rates.task_completion_rate,
                    "budget_categories": item.totals.budget_categories,
                    "hour_efficiency": finite_or_zero(item.rates.hour_efficiency),
                    "expense_count": item.totals.expense_count,
                    "pending_expense_count": item.totals.pending_expense_count,
                }
            )

        return {
            "organization": self._organization_ref(snapshot),
            "summary": {
                "total_allocated": summary.total_allocated,
                "total_spent": summary.total_spent,
                "total_approved": summary.total_approved,
                "total_expenses": summary.total_expenses,
                "pending_expenses": summary.pending_expenses,
                "project_count": summary.project_count,
                "active_project_count": summary.active_project_count,
                "utilization_rate": rates.utilization_rate,
                "approval_rate": rates.approval_rate,
                "average_budget_per_project": rates.average_budget_per_project,
                "severity": severity.value,
                "color": severity.color,
            },
            "projects": projects,
            "capabilities": {
                "can_export": capabilities.can_export_financials,
                "can_approve_expenses": capabilities.can_approve_expenses,
                "can_edit_budgets": capabilities.can_edit_budgets,
            },
        }

    # ---------- Reports ----------
    @staticmethod
    def _serialize_assessment(item: ProjectAssessment, *, include_financials: bool) -> dict[str, object]:
        pqg = item.pqg
        payload: dict[str, object] = {
            "id": str(item.project.id),
            "name": item.project.name,
            "status": item.project.status.value,
            "methodology": item.project.methodology.value,
            "updated_at": _iso(item.project.updated_at),
            "metrics": {
                "total_tasks": item.totals.total_tasks,
                "completed_tasks": item.totals.completed_tasks,
                "in_progress_tasks": item.totals.in_progress_tasks,
                "overdue_tasks": item.totals.overdue_tasks,
                "task_completion_rate": item.rates.task_completion_rate,
                "overdue_rate": item.rates.overdue_rate,
                "total_estimated_hours": item.totals.estimated_hours,
                "total_actual_hours": item.totals.actual_hours,
                "schedule_performance": item.rates.schedule_performance,
                "hour_efficiency": finite_or_zero(item.rates.hour_efficiency),
                "progress_reports": item.totals.progress_report_count,
                "team_size": item.totals.team_size,
                "overall_health": item.health.value,
            },
            "financials": None,
            "pqg": pqg.as_dict() if pqg is not None else None,
            "mbr": item.mbr.as_dict(),
            "monitoring": item.methodology.as_dict(),
        }
        if include_financials:
            severity = classify_utilization(item.rates.budget_utilization)
            payload["financials"] = {
                "total_budget": item.totals.allocated_budget,
                "spent_budget": item.totals.spent_budget,
                "approved_budget": item.totals.approved_budget,
                "budget_utilization": item.rates.budget_utilization,
                "severity": severity.value,
            }
        return payload

    def reporting_overview(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        now: datetime | None = None,
    ) -> dict[str, object]:
        now = now or utcnow()
        membership, organization = self._resolve_organization(context=context, organization_slug=organization_slug)
        capabilities = membership.capabilities
        snapshot = self._snapshot(organization)
        assessments = assess_projects(snapshot.projects, now=now)

        portfolio = reduce_portfolio(assessments).as_dict()
        if not capabilities.can_view_financials:
            for key in ("total_budget", "spent_budget", "budget_utilization"):
                portfolio.pop(key)

        return {
            "organization": self._organization_ref(snapshot),
            "user_role": membership.role.value,
            "capabilities": {
                "can_create_reports": capabilities.can_create_reports,
                "can_export": capabilities.can_export_reports,
                "can_view_financials": capabilities.can_view_financials,
            },
            "portfolio": portfolio,
            "projects": [
                self._serialize_assessment(item, include_financials=capabilities.can_view_financials)
                for item in assessments
            ],
            "templates": [TEMPLATES[key].as_dict(key) for key in available_templates(membership.role)],
            "generated_at": now.isoformat(),
        }

    def pqg_dashboard(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        now: datetime | None = None,
    ) -> dict[str, object]:
        now = now or utcnow()
        membership, organization = self._resolve_organization(context=context, organization_slug=organization_slug)
        snapshot = self._snapshot(organization)
        analysis = analyze_pqg(
            assess_projects(snapshot.projects, now=now),
            include_financials=membership.capabilities.can_view_financials,
        )
        return {"organization": self._organization_ref(snapshot), **analysis}

    def project_monitoring(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        project_id: UUID,
        now: datetime | None = None,
    ) -> dict[str, object]:
        now = now or utcnow()
        membership, organization = self._resolve_organization(context=context, organization_slug=organization_slug)
        capabilities = membership.capabilities
        snapshot = self._snapshot(organization, [project_id])
        item = assess_project(snapshot.projects[0], now=now)

        payload = self._serialize_assessment(item, include_financials=capabilities.can_view_financials)
        payload["recommendations"] = [
            recommendation.as_dict()
            for recommendation in recommendations(
                item.methodology,
                item.inputs,
                include_financial=capabilities.can_view_financials,
            )
        ]
        return payload

    # ---------- Task analytics ----------
    @staticmethod
    def _task_breakdown(breakdown: TaskBreakdown) -> dict[str, object]:
        return {
            "total": breakdown.total,
            "completed": breakdown.completed,
            "in_progress": breakdown.in_progress,
            "in_review": breakdown.in_review,
            "blocked": breakdown.blocked,
            "todo": breakdown.todo,
            "overdue": breakdown.overdue,
            "completion_rate": completion_rate(breakdown.completed, breakdown.total),
        }

    def task_report(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        project_id: UUID | None = None,
        assignee_id: UUID | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        now: datetime | None = None,
    ) -> dict[str, object]:
        """Status, priority, project, assignee and trend breakdowns over filtered tasks."""

        if start_date and end_date and start_date > end_date:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="start_date must not be after end_date.",
            )
        now = now or utcnow()
        _, organization = self._resolve_organization(context=context, organization_slug=organization_slug)
        snapshot = self._snapshot(organization, [project_id] if project_id else None)

        # Both bounds are whole days: start_date 00:00 UTC up to the end of end_date.
        created_from = datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
        created_before = (
            datetime.combine(end_date, time.min, tzinfo=timezone.utc) + ONE_DAY if end_date else None
        )
        scoped = [
            (
                project,
                filter_tasks(
                    project.tasks,
                    assignee_id=assignee_id,
                    created_from=created_from,
                    created_before=created_before,
                ),
            )
            for project in snapshot.projects
        ]
        tasks = [task for _, project_tasks in scoped for task in project_tasks]

        projects = [
            {
                "id": str(project.id),
                "name": project.name,
                **self._task_breakdown(reduce_task_breakdown(project_tasks, now=now)),
            }
            for project, project_tasks in scoped
            if project_tasks
        ]

        by_assignee = group_tasks_by_assignee(tasks)
        users = {user.id: user for user in self.repo.list_users(list(by_assignee))}
        assignees = []
        for user_id, assigned in by_assignee.items():
            breakdown = reduce_task_breakdown(assigned, now=now)
            user = users.get(user_id)
            assignees.append(
                {
                    "id": str(user_id),
                    "name": (user.display_name or user.email) if user else "Unknown",
                    "email": user.email if user else None,
                    **self._task_breakdown(breakdown),
                    "estimated_hours": breakdown.estimated_hours,
                    "actual_hours": breakdown.actual_hours,
                    "efficiency": finite_or_zero(hour_efficiency(breakdown.estimated_hours, breakdown.actual_hours)),
                }
            )
        assignees.sort(key=lambda item: (str(item["name"]).lower(), item["id"]))

        trends = reduce_task_trends(tasks, now=now)
        logger.debug("Task report for organization %s covers %d tasks", snapshot.slug, len(tasks))
        return {
            "organization": self._organization_ref(snapshot),
            "summary": self._task_breakdown(reduce_task_breakdown(tasks, now=now)),
            "priorities": count_task_priorities(tasks),
            "projects": projects,
            "assignees": assignees,
            "trends": {
                "recent_tasks_created": trends.recent_created,
                "recent_tasks_completed": trends.recent_completed,
                "weekly": [
                    {
                        "week": week.label,
                        "week_start": week.week_start.isoformat(),
                        "week_end": week.week_end.isoformat(),
                        "created": week.created,
                        "completed": week.completed,
                        "completion_rate": completion_rate(week.completed, week.created),
                    }
                    for week in trends.weeks
                ],
            },
            "filters": {
                "project_id": str(project_id) if project_id else None,
                "assignee_id": str(assignee_id) if assignee_id else None,
                "start_date": start_date.isoformat() if start_date else None,
                "end_date": end_date.isoformat() if end_date else None,
            },
            "generated_at": now.isoformat(),
        }

    # ---------- Exports ----------
    def _ensure_template_access(self, membership: EffectiveMembership, template: ReportTemplate) -> None:
        capabilities = membership.capabilities
        if template == ReportTemplate.FINANCIAL_SUMMARY:
            allowed = capabilities.can_export_financials
        else:
            allowed = capabilities.can_export_reports and membership.role in TEMPLATES[template].roles
        if not allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions for this report template.",
            )

    def export_report(
        self,
        *,
        context: RequestUserContext,
        organization_slug: str,
        template_key: str,
        format_name: str,
        project_ids: list[UUID] | None = None,
        period: str | None = None,
        now: datetime | None = None,
    ) -> ExportFilePayload:
        normalized_format = format_name.strip().lower()
        if normalized_format not in EXPORT_FORMATS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="format must be one of: csv, xlsx.",
            )
        template = resolve_template(template_key)
        if template is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Unknown report template.",
            )

        now = now or utcnow()
        membership, organization = self._resolve_organization(context=context, organization_slug=organization_slug)
        self._ensure_template_access(membership, template)

        snapshot = self._snapshot(organization)
        assessments = assess_projects(snapshot.projects, now=now)
        selected = assessments
        if project_ids:
            wanted = set(project_ids)
            selected = [item for item in assessments if item.project.id in wanted]
            if len(selected) != len(wanted):
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")

        report_context = ReportContext(
            organization_name=snapshot.name,
            organization_slug=snapshot.slug,
            period=period or DEFAULT_REPORT_PERIOD,
            generated_at=now,
            currency=self.settings.default_currency,
            # Executive figures always cover the whole organization.
            portfolio=reduce_portfolio(assessments),
            projects=tuple(selected),
        )
        exported = serialize_report(
            template,
            report_context,
            format_name=normalized_format,
            escape_fields=self.settings.report_csv_escape_fields,
        )
        logger.info(
            "Exported %s for organization %s as %s (%d projects) by %s",
            template.value,
            snapshot.slug,
            normalized_format,
            len(selected),
            context.email,
        )
        return exported

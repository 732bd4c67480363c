from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from agiletrack.core.auth import ensure_user_principal
from agiletrack.models.entities import (
    MemberRole,
    Organization,
    OrganizationMember,
    ProgressReport,
    Project,
    ProjectBudget,
    ProjectMethodology,
    ProjectStatus,
    Task,
    TaskStatus,
)

PAST = datetime(2000, 1, 1, tzinfo=timezone.utc)
FUTURE = datetime(2099, 1, 1, tzinfo=timezone.utc)


def _headers(email: str, display_name: str) -> dict[str, str]:
    return {"X-USER-EMAIL": email, "X-USER-NAME": display_name}


def _create_organization(db: Session, *, slug: str, name: str) -> Organization:
    row = Organization(slug=slug, name=name)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _add_member(db: Session, organization: Organization, *, email: str, display_name: str, role: MemberRole) -> uuid.UUID:
    user = ensure_user_principal(db, email=email, display_name=display_name)
    db.add(OrganizationMember(organization_id=organization.id, user_id=user.id, role=role))
    db.commit()
    return user.id


def _seed_project(
    db: Session,
    organization: Organization,
    *,
    name: str,
    assignee_id: uuid.UUID | None = None,
    metadata: dict | None = None,
    methodology: ProjectMethodology = ProjectMethodology.AGILE,
) -> Project:
    project = Project(
        organization_id=organization.id,
        name=name,
        status=ProjectStatus.ACTIVE,
        methodology=methodology,
        meta=metadata,
    )
    db.add(project)
    db.flush()
    db.add_all(
        [
            Task(project_id=project.id, title="Survey", status=TaskStatus.DONE, due_date=PAST, estimated_hours=10),
            Task(project_id=project.id, title="Procurement", status=TaskStatus.TODO, due_date=PAST),
            Task(
                project_id=project.id,
                title="Handover",
                status=TaskStatus.IN_PROGRESS,
                due_date=FUTURE,
                assignee_id=assignee_id,
            ),
            ProjectBudget(
                project_id=project.id,
                category="General",
                allocated_amount=Decimal("1000.00"),
                spent_amount=Decimal("250.00"),
                approved_amount=Decimal("250.00"),
            ),
            ProgressReport(project_id=project.id),
        ]
    )
    db.commit()
    db.refresh(project)
    return project


def test_me_lists_memberships_with_capabilities(client: TestClient, db_session: Session) -> None:
    organization = _create_organization(db_session, slug="acme", name="Acme Relief")
    _add_member(db_session, organization, email="pm@test.local", display_name="PM", role=MemberRole.PROJECT_MANAGER)

    response = client.get("/api/v1/me", headers=_headers("PM@test.local", "PM"))

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "pm@test.local"
    assert body["memberships"][0]["organization_slug"] == "acme"
    assert body["memberships"][0]["role"] == "PROJECT_MANAGER"
    assert body["memberships"][0]["capabilities"]["can_view_financials"] is True


def test_dashboard_metrics_for_admin(client: TestClient, db_session: Session) -> None:
    organization = _create_organization(db_session, slug="acme", name="Acme Relief")
    admin_id = _add_member(
        db_session, organization, email="admin@test.local", display_name="Admin", role=MemberRole.ORG_ADMIN
    )
    _add_member(db_session, organization, email="team@test.local", display_name="Team", role=MemberRole.TEAM_MEMBER)
    _seed_project(db_session, organization, name="Clinic", assignee_id=admin_id)

    response = client.get("/api/v1/organizations/acme/dashboard", headers=_headers("admin@test.local", "Admin"))

    assert response.status_code == 200
    body = response.json()
    assert body["organization"]["slug"] == "acme"
    assert body["user_role"] == "ORG_ADMIN"
    metrics = body["metrics"]
    assert metrics["projects"]["ACTIVE"] == 1
    assert metrics["projects"]["total"] == 1
    assert metrics["tasks"]["total"] == 3
    assert metrics["tasks"]["completed"] == 1
    assert metrics["tasks"]["overdue"] == 1
    assert metrics["tasks"]["user_total"] == 1
    assert metrics["members"] == 2
    assert metrics["budget"]["total_allocated"] == 1000.0
    assert metrics["budget"]["utilization_rate"] == 25.0
    assert metrics["budget"]["severity"] == "healthy"
    assert body["recent_activity"][0]["name"] == "Clinic"
    assert len(body["upcoming_deadlines"]) == 1
    assert body["upcoming_deadlines"][0]["title"] == "Handover"
    assert body["upcoming_deadlines"][0]["is_user_task"] is True


def test_dashboard_hides_budget_from_team_members(client: TestClient, db_session: Session) -> None:
    organization = _create_organization(db_session, slug="acme", name="Acme Relief")
    _add_member(db_session, organization, email="team@test.local", display_name="Team", role=MemberRole.TEAM_MEMBER)
    _seed_project(db_session, organization, name="Clinic")

    response = client.get("/api/v1/organizations/acme/dashboard", headers=_headers("team@test.local", "Team"))

    assert response.status_code == 200
    assert response.json()["metrics"]["budget"] is None


def test_dashboard_for_foreign_or_unknown_organization_is_not_found(
    client: TestClient, db_session: Session
) -> None:
    acme = _create_organization(db_session, slug="acme", name="Acme Relief")
    _create_organization(db_session, slug="other", name="Other Org")
    _add_member(db_session, acme, email="admin@test.local", display_name="Admin", role=MemberRole.ORG_ADMIN)
    headers = _headers("admin@test.local", "Admin")

    foreign = client.get("/api/v1/organizations/other/dashboard", headers=headers)
    unknown = client.get("/api/v1/organizations/missing/dashboard", headers=headers)

    assert foreign.status_code == 404
    assert unknown.status_code == 404
    assert foreign.json() == unknown.json()


def test_reporting_overview_respects_financial_visibility(client: TestClient, db_session: Session) -> None:
    organization = _create_organization(db_session, slug="acme", name="Acme Relief")
    _add_member(db_session, organization, email="monitor@test.local", display_name="Monitor", role=MemberRole.MONITOR)
    _seed_project(db_session, organization, name="Clinic")

    response = client.get("/api/v1/organizations/acme/reports", headers=_headers("monitor@test.local", "Monitor"))

    assert response.status_code == 200
    body = response.json()
    assert body["capabilities"] == {"can_create_reports": True, "can_export": True, "can_view_financials": False}
    assert "total_budget" not in body["portfolio"]
    assert body["portfolio"]["total_projects"] == 1
    project = body["projects"][0]
    assert project["financials"] is None
    assert project["metrics"]["total_tasks"] == 3
    assert len(project["mbr"]["criteria"]) == 6
    assert project["monitoring"]["methodology"] == "AGILE"
    template_keys = {item["key"] for item in body["templates"]}
    assert "PQG_MBR_REPORT" in template_keys
    assert "TEAM_PRODUCTIVITY" not in template_keys


def test_pqg_dashboard_groups_government_projects(client: TestClient, db_session: Session) -> None:
    organization = _create_organization(db_session, slug="acme", name="Acme Relief")
    _add_member(db_session, organization, email="admin@test.local", display_name="Admin", role=MemberRole.ORG_ADMIN)
    _seed_project(
        db_session,
        organization,
        name="Rural Roads",
        metadata={"pqgPriority": "II", "ugb": "UGB Sofala", "location": "Beira"},
        methodology=ProjectMethodology.WATERFALL,
    )
    _seed_project(db_session, organization, name="Back Office")

    response = client.get("/api/v1/organizations/acme/reports/pqg", headers=_headers("admin@test.local", "Admin"))

    assert response.status_code == 200
    body = response.json()
    assert body["overall"]["total_projects"] == 1
    by_priority = {item["key"]: item for item in body["priorities"]}
    assert [item["name"] for item in by_priority["II"]["projects"]] == ["Rural Roads"]
    assert by_priority["I"]["projects"] == []
    assert body["ugb_groups"] == [{"ugb": "UGB Sofala", "projects": by_priority["II"]["projects"]}]
    assert body["location_groups"][0]["location"] == "Beira"


def test_pqg_dashboard_ignores_projects_without_government_classification(
    client: TestClient, db_session: Session
) -> None:
    organization = _create_organization(db_session, slug="acme", name="Acme Relief")
    _add_member(db_session, organization, email="admin@test.local", display_name="Admin", role=MemberRole.ORG_ADMIN)
    _seed_project(db_session, organization, name="Demo App", metadata={"priority": "HIGH", "tags": ["demo"]})
    _seed_project(
        db_session,
        organization,
        name="Agile Roads",
        metadata={"pqgPriority": "II", "ugb": "UGB Sofala"},
    )
    _seed_project(
        db_session,
        organization,
        name="Warehouse",
        metadata={"tags": ["logistics"]},
        methodology=ProjectMethodology.WATERFALL,
    )

    response = client.get("/api/v1/organizations/acme/reports/pqg", headers=_headers("admin@test.local", "Admin"))

    assert response.status_code == 200
    body = response.json()
    assert body["overall"]["total_projects"] == 0
    assert all(item["projects"] == [] for item in body["priorities"])
    assert body["ugb_groups"] == []
    assert body["location_groups"] == []


def test_project_monitoring_returns_recommendations(client: TestClient, db_session: Session) -> None:
    organization = _create_organization(db_session, slug="acme", name="Acme Relief")
    _add_member(db_session, organization, email="pm@test.local", display_name="PM", role=MemberRole.PROJECT_MANAGER)
    project = _seed_project(db_session, organization, name="Clinic", methodology=ProjectMethodology.WATERFALL)

    response = client.get(
        f"/api/v1/organizations/acme/projects/{project.id}/monitoring",
        headers=_headers("pm@test.local", "PM"),
    )
    missing = client.get(
        f"/api/v1/organizations/acme/projects/{uuid.uuid4()}/monitoring",
        headers=_headers("pm@test.local", "PM"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["monitoring"]["methodology"] == "WATERFALL"
    assert body["financials"]["budget_utilization"] == 25.0
    titles = [item["title"] for item in body["recommendations"]]
    assert "Overdue Tasks" in titles
    assert "Milestone Delays" in titles
    assert missing.status_code == 404

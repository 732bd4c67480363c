from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from agiletrack.core.auth import ensure_user_principal
from agiletrack.models.entities import (
    MemberRole,
    Organization,
    OrganizationMember,
    Project,
    ProjectMethodology,
    ProjectStatus,
    Task,
    TaskPriority,
    TaskStatus,
)

PAST = datetime(2000, 1, 1, tzinfo=timezone.utc)


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


def _project(db: Session, organization: Organization, *, name: str) -> Project:
    project = Project(
        organization_id=organization.id,
        name=name,
        status=ProjectStatus.ACTIVE,
        methodology=ProjectMethodology.AGILE,
    )
    db.add(project)
    db.flush()
    return project


def _seed_tasks(db: Session) -> dict[str, uuid.UUID]:
    now = datetime.now(timezone.utc)
    organization = _create_organization(db, slug="acme", name="Acme Relief")
    alice = _add_member(db, organization, email="alice@test.local", display_name="Alice", role=MemberRole.ORG_ADMIN)
    bob = _add_member(db, organization, email="bob@test.local", display_name="Bob", role=MemberRole.TEAM_MEMBER)
    clinic = _project(db, organization, name="Clinic")
    roads = _project(db, organization, name="Roads")
    db.add_all(
        [
            Task(
                project_id=clinic.id,
                title="Survey",
                status=TaskStatus.DONE,
                priority=TaskPriority.HIGH,
                assignee_id=alice,
                estimated_hours=8,
                actual_hours=10,
                created_at=now - timedelta(days=3),
                updated_at=now - timedelta(days=1),
            ),
            Task(
                project_id=clinic.id,
                title="Procurement",
                status=TaskStatus.TODO,
                priority=TaskPriority.URGENT,
                assignee_id=bob,
                due_date=PAST,
                created_at=now - timedelta(days=3),
                updated_at=now - timedelta(days=3),
            ),
            Task(
                project_id=clinic.id,
                title="Permits",
                status=TaskStatus.BLOCKED,
                priority=TaskPriority.LOW,
                created_at=now - timedelta(days=60),
                updated_at=now - timedelta(days=60),
            ),
            Task(
                project_id=roads.id,
                title="Grading",
                status=TaskStatus.IN_PROGRESS,
                priority=TaskPriority.MEDIUM,
                assignee_id=alice,
                estimated_hours=4,
                actual_hours=2,
                created_at=now - timedelta(days=10),
                updated_at=now - timedelta(days=2),
            ),
        ]
    )
    db.commit()
    return {"alice": alice, "bob": bob, "clinic": clinic.id, "roads": roads.id}


def test_task_report_breaks_down_status_priority_projects_and_assignees(
    client: TestClient, db_session: Session
) -> None:
    _seed_tasks(db_session)

    response = client.get("/api/v1/organizations/acme/tasks/reports", headers=_headers("bob@test.local", "Bob"))

    assert response.status_code == 200
    body = response.json()
    summary = body["summary"]
    assert summary["total"] == 4
    assert (summary["completed"], summary["in_progress"], summary["blocked"], summary["todo"]) == (1, 1, 1, 1)
    assert summary["overdue"] == 1
    assert summary["completion_rate"] == 25.0
    assert body["priorities"] == {"LOW": 1, "MEDIUM": 1, "HIGH": 1, "URGENT": 1}

    projects = {item["name"]: item for item in body["projects"]}
    assert projects["Clinic"]["total"] == 3
    assert projects["Roads"]["in_progress"] == 1

    assert [item["name"] for item in body["assignees"]] == ["Alice", "Bob"]
    alice, bob = body["assignees"]
    assert alice["total"] == 2
    assert alice["completed"] == 1
    assert alice["estimated_hours"] == 12.0
    assert alice["actual_hours"] == 12.0
    assert alice["efficiency"] == 100.0
    assert bob["overdue"] == 1
    assert bob["efficiency"] == 0.0
    assert body["filters"] == {"project_id": None, "assignee_id": None, "start_date": None, "end_date": None}


def test_task_report_trends_cover_recent_window_and_four_weeks(client: TestClient, db_session: Session) -> None:
    _seed_tasks(db_session)

    body = client.get(
        "/api/v1/organizations/acme/tasks/reports", headers=_headers("alice@test.local", "Alice")
    ).json()

    trends = body["trends"]
    # The 60-day-old task falls outside every window.
    assert trends["recent_tasks_created"] == 3
    assert trends["recent_tasks_completed"] == 1
    assert [week["week"] for week in trends["weekly"]] == ["Week 1", "Week 2", "Week 3", "Week 4"]
    latest = trends["weekly"][-1]
    assert (latest["created"], latest["completed"]) == (2, 1)
    assert latest["completion_rate"] == 50.0
    assert trends["weekly"][-2]["created"] == 1


def test_task_report_filters_by_project_assignee_and_creation_date(client: TestClient, db_session: Session) -> None:
    ids = _seed_tasks(db_session)
    headers = _headers("alice@test.local", "Alice")
    url = "/api/v1/organizations/acme/tasks/reports"
    since = (datetime.now(timezone.utc) - timedelta(days=5)).date().isoformat()

    by_project = client.get(url, params={"project_id": str(ids["roads"])}, headers=headers).json()
    by_assignee = client.get(url, params={"assignee_id": str(ids["bob"])}, headers=headers).json()
    by_date = client.get(url, params={"start_date": since}, headers=headers).json()

    assert by_project["summary"]["total"] == 1
    assert [item["name"] for item in by_project["projects"]] == ["Roads"]
    assert by_assignee["summary"]["total"] == 1
    assert [item["name"] for item in by_assignee["assignees"]] == ["Bob"]
    assert by_assignee["filters"]["assignee_id"] == str(ids["bob"])
    assert by_date["summary"]["total"] == 2
    assert by_date["filters"]["start_date"] == since


def test_task_report_rejects_bad_scope(client: TestClient, db_session: Session) -> None:
    _seed_tasks(db_session)
    _create_organization(db_session, slug="other", name="Other Org")
    headers = _headers("alice@test.local", "Alice")

    inverted = client.get(
        "/api/v1/organizations/acme/tasks/reports",
        params={"start_date": "2026-02-01", "end_date": "2026-01-01"},
        headers=headers,
    )
    unknown_project = client.get(
        "/api/v1/organizations/acme/tasks/reports", params={"project_id": str(uuid.uuid4())}, headers=headers
    )
    foreign = client.get("/api/v1/organizations/other/tasks/reports", headers=headers)

    assert inverted.status_code == 422
    assert unknown_project.status_code == 404
    assert foreign.status_code == 404

"""Authentication context extraction and organization role capabilities."""

from __future__ import annotations

from dataclasses import dataclass, fields
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from agiletrack.core.config import get_settings
from agiletrack.db.dependencies import get_db_session
from agiletrack.models.entities import MemberRole, Organization, OrganizationMember, User, utcnow


@dataclass(frozen=True)
class RoleCapabilities:
    """What a member holding a given organization role may see or do."""

    can_view_financials: bool = False
    can_export_financials: bool = False
    can_export_reports: bool = False
    can_create_reports: bool = False
    can_approve_expenses: bool = False
    can_edit_budgets: bool = False
    can_edit_projects: bool = False
    can_manage_tasks: bool = False
    can_manage_team: bool = False

    def as_dict(self) -> dict[str, bool]:
        return {field.name: getattr(self, field.name) for field in fields(self)}


_CAPABILITY_ROLES: dict[str, frozenset[MemberRole]] = {
    "can_view_financials": frozenset(
        {MemberRole.ORG_ADMIN, MemberRole.SUPER_ADMIN, MemberRole.PROJECT_MANAGER, MemberRole.DONOR_SPONSOR}
    ),
    "can_export_financials": frozenset(
        {MemberRole.ORG_ADMIN, MemberRole.SUPER_ADMIN, MemberRole.DONOR_SPONSOR, MemberRole.PROJECT_MANAGER}
    ),
    "can_export_reports": frozenset(
        {MemberRole.ORG_ADMIN, MemberRole.PROJECT_MANAGER, MemberRole.MONITOR, MemberRole.DONOR_SPONSOR}
    ),
    "can_create_reports": frozenset({MemberRole.ORG_ADMIN, MemberRole.PROJECT_MANAGER, MemberRole.MONITOR}),
    "can_approve_expenses": frozenset({MemberRole.ORG_ADMIN, MemberRole.SUPER_ADMIN, MemberRole.DONOR_SPONSOR}),
    "can_edit_budgets": frozenset({MemberRole.ORG_ADMIN, MemberRole.SUPER_ADMIN, MemberRole.PROJECT_MANAGER}),
    "can_edit_projects": frozenset({MemberRole.ORG_ADMIN, MemberRole.SUPER_ADMIN, MemberRole.PROJECT_MANAGER}),
    "can_manage_tasks": frozenset(
        {MemberRole.ORG_ADMIN, MemberRole.SUPER_ADMIN, MemberRole.PROJECT_MANAGER, MemberRole.TEAM_MEMBER}
    ),
    "can_manage_team": frozenset({MemberRole.ORG_ADMIN, MemberRole.SUPER_ADMIN}),
}

ROLE_CAPABILITIES: dict[MemberRole, RoleCapabilities] = {
    role: RoleCapabilities(**{name: role in roles for name, roles in _CAPABILITY_ROLES.items()})
    for role in MemberRole
}


def capabilities_for(role: MemberRole) -> RoleCapabilities:
    """Capability record for a role; unknown roles get no capabilities."""

    return ROLE_CAPABILITIES.get(role, RoleCapabilities())


@dataclass(frozen=True)
class EffectiveMembership:
    """Organization membership resolved for request context."""

    organization_id: UUID
    organization_slug: str
    role: MemberRole
    membership_id: UUID

    @property
    def capabilities(self) -> RoleCapabilities:
        return capabilities_for(self.role)


@dataclass(frozen=True)
class RequestUserContext:
    """Authenticated request actor resolved from headers and DB state."""

    user_id: UUID
    email: str
    display_name: str
    memberships: tuple[EffectiveMembership, ...]

    def membership_for(self, organization_slug: str) -> EffectiveMembership | None:
        for membership in self.memberships:
            if membership.organization_slug == organization_slug:
                return membership
        return None


def _resolve_identity(x_user_email: str | None, x_user_name: str | None) -> tuple[str, str]:
    if x_user_email and x_user_email.strip():
        email = x_user_email.strip().lower()
        display_name = (x_user_name or "").strip() or email
        return email, display_name

    settings = get_settings()
    if settings.auth_allow_dev_principal:
        return settings.auth_dev_email.strip().lower(), settings.auth_dev_display_name.strip()

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing identity headers. Expected X-USER-EMAIL or enable development principal fallback.",
    )


def _upsert_user(db: Session, *, email: str, display_name: str) -> User:
    user = db.scalar(select(User).where(User.email == email))
    now = utcnow()

    if user is None:
        user = User(email=email, display_name=display_name, created_at=now, updated_at=now)
        db.add(user)
        db.flush()
        return user

    if user.display_name != display_name:
        user.display_name = display_name
        user.updated_at = now
        db.flush()
    return user


def ensure_user_principal(db: Session, *, email: str, display_name: str) -> User:
    """Ensure user exists and return persisted row.

    Utility exported for tests and seed helpers.
    """

    normalized_email = email.strip().lower()
    user = _upsert_user(db, email=normalized_email, display_name=display_name.strip() or normalized_email)
    db.commit()
    db.refresh(user)
    return user


def _load_memberships(db: Session, *, user_id: UUID) -> tuple[EffectiveMembership, ...]:
    rows = db.execute(
        select(OrganizationMember, Organization.slug)
        .join(Organization, Organization.id == OrganizationMember.organization_id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(Organization.slug.asc())
    ).all()

    return tuple(
        EffectiveMembership(
            organization_id=member.organization_id,
            organization_slug=slug,
            role=member.role,
            membership_id=member.id,
        )
        for member, slug in rows
    )


def get_current_user_context(
    x_user_email: str | None = Header(default=None, alias="X-USER-EMAIL"),
    x_user_name: str | None = Header(default=None, alias="X-USER-NAME"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Resolve current request user and organization memberships.

    Identity comes from trusted headers set by the fronting proxy (or test
    clients). Token validation is not performed here.
    """

    email, display_name = _resolve_identity(x_user_email, x_user_name)
    user = _upsert_user(db, email=email, display_name=display_name)
    memberships = _load_memberships(db, user_id=user.id)
    db.commit()

    return RequestUserContext(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
        memberships=memberships,
    )


def require_membership(context: RequestUserContext, organization_slug: str) -> EffectiveMembership:
    """Resolve the caller's membership in an organization or raise 404."""

    membership = context.membership_for(organization_slug)
    if membership is None:
        # Same response for unknown and foreign organizations.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found.")
    return membership


def require_capability(membership: EffectiveMembership, capability: str) -> RoleCapabilities:
    """Raise 403 unless the membership role grants ``capability``."""

    capabilities = membership.capabilities
    if not getattr(capabilities, capability):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient role permissions for this operation.",
        )
    return capabilities

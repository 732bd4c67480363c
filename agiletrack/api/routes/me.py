"""Current user endpoint."""

from fastapi import APIRouter, Depends

from agiletrack.core.auth import EffectiveMembership, RequestUserContext, get_current_user_context

router = APIRouter(prefix="/me", tags=["me"])


def _serialize_membership(membership: EffectiveMembership) -> dict[str, object]:
    return {
        "organization_id": str(membership.organization_id),
        "organization_slug": membership.organization_slug,
        "role": membership.role.value,
        "capabilities": membership.capabilities.as_dict(),
    }


@router.get("")
def get_me(context: RequestUserContext = Depends(get_current_user_context)) -> dict[str, object]:
    """Return the current user and their organization roles."""

    return {
        "id": str(context.user_id),
        "email": context.email,
        "display_name": context.display_name,
        "memberships": [_serialize_membership(membership) for membership in context.memberships],
    }

from collections import defaultdict
from typing import Dict, Iterable, List

from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from activitee.core.database import db_operation
from activitee.core.exceptions import AuthorizationError
from activitee.manager.models.organizations import Organization, AppAdmin
from activitee.manager.models.memberships import Membership, MemberRole
from activitee.manager.services.targeting import OrganizationRoster

TARGETABLE_ROLES = (MemberRole.player, MemberRole.coach, MemberRole.parent)


@db_operation
async def is_superadmin(session: AsyncSession, user_id: int) -> bool:
    result = await session.execute(
        select(AppAdmin.user_id).where(AppAdmin.user_id == user_id)
    )
    return result.scalar_one_or_none() is not None


@db_operation
async def get_managed_organization_ids(
    session: AsyncSession, user_id: int
) -> List[int]:
    """Organizations the caller may schedule for, ordered by id"""
    if await is_superadmin(session, user_id):
        query = select(Organization.id)
    else:
        query = (
            select(Membership.organization_id)
            .where(
                and_(
                    Membership.user_id == user_id,
                    Membership.role == MemberRole.manager,
                    Membership.is_active == True,
                )
            )
            .distinct()
        )

    result = await session.execute(query)
    return sorted(set(result.scalars().all()))


async def assert_superadmin_or_manager(
    session: AsyncSession, user_id: int, organization_id: int
) -> None:
    """
    Raises:
        AuthorizationError: caller is neither a superadmin nor an active
            manager of ``organization_id``
    """
    if await is_superadmin(session, user_id):
        return

    result = await session.execute(
        select(Membership.id).where(
            and_(
                Membership.organization_id == organization_id,
                Membership.user_id == user_id,
                Membership.role == MemberRole.manager,
                Membership.is_active == True,
            )
        )
    )
    if result.first() is None:
        raise AuthorizationError(
            "Forbidden",
            {"organization_id": organization_id, "user_id": user_id},
        )


@db_operation
async def get_organization_rosters(
    session: AsyncSession, organization_ids: Iterable[int]
) -> Dict[int, OrganizationRoster]:
    """Active player/coach/parent ids per organization"""
    organization_ids = list(set(organization_ids))
    if not organization_ids:
        return {}

    result = await session.execute(
        select(Membership.organization_id, Membership.user_id, Membership.role).where(
            and_(
                Membership.organization_id.in_(organization_ids),
                Membership.is_active == True,
                Membership.role.in_(TARGETABLE_ROLES),
            )
        )
    )

    buckets = defaultdict(lambda: {role: set() for role in TARGETABLE_ROLES})
    for organization_id, user_id, role in result.all():
        buckets[organization_id][MemberRole(role)].add(user_id)

    return {
        organization_id: OrganizationRoster(
            players=frozenset(buckets[organization_id][MemberRole.player]),
            coaches=frozenset(buckets[organization_id][MemberRole.coach]),
            parents=frozenset(buckets[organization_id][MemberRole.parent]),
        )
        for organization_id in organization_ids
    }


@db_operation
async def get_active_members(
    session: AsyncSession, organization_ids: Iterable[int]
) -> Dict[str, List[dict]]:
    """Targetable members grouped by role, one entry per (role, user)"""
    organization_ids = list(set(organization_ids))
    members = {role.value: [] for role in TARGETABLE_ROLES}
    if not organization_ids:
        return members

    result = await session.execute(
        select(Membership.organization_id, Membership.user_id, Membership.role)
        .where(
            and_(
                Membership.organization_id.in_(organization_ids),
                Membership.is_active == True,
                Membership.role.in_(TARGETABLE_ROLES),
            )
        )
        .order_by(Membership.user_id, Membership.organization_id)
    )

    seen = set()
    for organization_id, user_id, role in result.all():
        role = MemberRole(role)
        if (role, user_id) in seen:
            continue
        seen.add((role, user_id))
        members[role.value].append(
            {"id": user_id, "organization_id": organization_id}
        )
    return members

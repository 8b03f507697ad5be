from collections import defaultdict
from typing import Dict, FrozenSet, Iterable, List

from sqlalchemy import and_, delete, func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from activitee.core.config import ARCHIVE_GROUP_NAME
from activitee.core.database import db_operation, insert_ignore
from activitee.core.exceptions import NotFoundError, ValidationError
from activitee.manager.crud.memberships import get_active_members
from activitee.manager.models.groups import Group, GroupPlayer, GroupCoach
from activitee.manager.models.organizations import Organization
from activitee.manager.services.targeting import effective_coach_ids


def _not_archive():
    # matches Group.is_archive: surrounding spaces are ignored
    return func.trim(Group.name) != ARCHIVE_GROUP_NAME


@db_operation
async def get_group_by_id(session: AsyncSession, group_id: int) -> Group:
    if group_id <= 0:
        raise ValidationError("Group ID must be positive")

    result = await session.execute(select(Group).where(Group.id == group_id))
    group = result.scalar_one_or_none()

    if not group:
        raise NotFoundError("Group", str(group_id))

    return group


@db_operation
async def get_organization_by_id(session: AsyncSession, organization_id: int):
    result = await session.execute(
        select(Organization).where(Organization.id == organization_id)
    )
    organization = result.scalar_one_or_none()

    if not organization:
        raise NotFoundError("Organization", str(organization_id))

    return organization


@db_operation
async def get_schedulable_groups(
    session: AsyncSession, organization_ids: Iterable[int]
) -> List[Group]:
    """Active, non-archive groups of the given organizations, by name"""
    organization_ids = list(set(organization_ids))
    if not organization_ids:
        return []

    result = await session.execute(
        select(Group)
        .where(
            and_(
                Group.organization_id.in_(organization_ids),
                _not_archive(),
                Group.is_active == True,
            )
        )
        .order_by(Group.name, Group.id)
    )
    return list(result.scalars().all())


@db_operation
async def get_group_player_map(
    session: AsyncSession, group_ids: Iterable[int]
) -> Dict[int, FrozenSet[int]]:
    group_ids = list(set(group_ids))
    players = defaultdict(set)
    if group_ids:
        result = await session.execute(
            select(GroupPlayer.group_id, GroupPlayer.player_user_id).where(
                GroupPlayer.group_id.in_(group_ids)
            )
        )
        for group_id, player_user_id in result.all():
            players[group_id].add(player_user_id)

    return {group_id: frozenset(players[group_id]) for group_id in group_ids}


@db_operation
async def get_group_coach_map(
    session: AsyncSession, groups: Iterable[Group]
) -> Dict[int, FrozenSet[int]]:
    """Coach ids per group with the head coach folded in"""
    groups = list(groups)
    linked = defaultdict(set)
    if groups:
        result = await session.execute(
            select(GroupCoach.group_id, GroupCoach.coach_user_id).where(
                GroupCoach.group_id.in_([g.id for g in groups])
            )
        )
        for group_id, coach_user_id in result.all():
            linked[group_id].add(coach_user_id)

    return {
        group.id: effective_coach_ids(group.head_coach_user_id, linked[group.id])
        for group in groups
    }


async def ensure_player_link(session: AsyncSession, group_id: int, player_user_id: int):
    await insert_ignore(
        session,
        GroupPlayer,
        [{"group_id": group_id, "player_user_id": player_user_id}],
        ["group_id", "player_user_id"],
    )


async def ensure_coach_link(session: AsyncSession, group_id: int, coach_user_id: int):
    # an existing row keeps its is_head flag
    await insert_ignore(
        session,
        GroupCoach,
        [{"group_id": group_id, "coach_user_id": coach_user_id, "is_head": False}],
        ["group_id", "coach_user_id"],
    )


async def delete_player_link(session: AsyncSession, group_id: int, player_user_id: int):
    await session.execute(
        delete(GroupPlayer).where(
            and_(
                GroupPlayer.group_id == group_id,
                GroupPlayer.player_user_id == player_user_id,
            )
        )
    )


async def delete_coach_link(session: AsyncSession, group_id: int, coach_user_id: int):
    await session.execute(
        delete(GroupCoach).where(
            and_(
                GroupCoach.group_id == group_id,
                GroupCoach.coach_user_id == coach_user_id,
            )
        )
    )


@db_operation
async def get_group_assignments(session: AsyncSession, organization_id: int) -> dict:
    """
    Assignment board of an organization: its groups (archive excluded,
    inactive included), active players and coaches, and the link rows.
    The head coach of a group always shows up among its coach links.
    """
    organization = await get_organization_by_id(session, organization_id)

    groups_result = await session.execute(
        select(Group)
        .where(
            and_(
                Group.organization_id == organization_id,
                _not_archive(),
            )
        )
        .order_by(Group.created_at.desc(), Group.id.desc())
    )
    groups = list(groups_result.scalars().all())
    group_ids = [g.id for g in groups]

    members = await get_active_members(session, [organization_id])

    group_players = []
    group_coaches = []
    if group_ids:
        players_result = await session.execute(
            select(GroupPlayer.group_id, GroupPlayer.player_user_id)
            .where(GroupPlayer.group_id.in_(group_ids))
            .order_by(GroupPlayer.group_id, GroupPlayer.player_user_id)
        )
        group_players = [
            {"group_id": group_id, "player_user_id": player_user_id}
            for group_id, player_user_id in players_result.all()
        ]

        coaches_result = await session.execute(
            select(GroupCoach.group_id, GroupCoach.coach_user_id, GroupCoach.is_head)
            .where(GroupCoach.group_id.in_(group_ids))
            .order_by(GroupCoach.group_id, GroupCoach.coach_user_id)
        )
        stored = {}
        for group_id, coach_user_id, is_head in coaches_result.all():
            stored[(group_id, coach_user_id)] = bool(is_head)

        for group in groups:
            head_id = group.head_coach_user_id
            if head_id is not None:
                stored[(group.id, head_id)] = True

        group_coaches = [
            {"group_id": group_id, "coach_user_id": coach_user_id, "is_head": is_head}
            for (group_id, coach_user_id), is_head in sorted(stored.items())
        ]

    return {
        "organization": organization,
        "groups": groups,
        "players": [m["id"] for m in members["player"]],
        "coaches": [m["id"] for m in members["coach"]],
        "group_players": group_players,
        "group_coaches": group_coaches,
    }

"""
Group reassignment: moves a player or coach between groups and keeps their
attendance footprint in line with the new membership, for events that have
not started yet. Past events are never touched.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from activitee.core.clock import Clock, system_clock
from activitee.core.database import TransactionManager
from activitee.core.exceptions import (
    CrossOrganizationTargetError,
    HeadCoachRemovalForbiddenError,
    NotFoundError,
    ValidationError,
)
from activitee.manager.crud.attendance import (
    add_attendees,
    add_coach_assignments,
    delete_attendees,
    delete_coach_assignments,
)
from activitee.manager.crud.events import get_future_event_ids
from activitee.manager.crud.groups import (
    delete_coach_link,
    delete_player_link,
    ensure_coach_link,
    ensure_player_link,
    get_group_by_id,
)
from activitee.manager.models.groups import Group

logger = logging.getLogger(__name__)


class ActorType(str, Enum):
    player = "player"
    coach = "coach"


@dataclass(frozen=True)
class ReassignmentResult:
    linked_group_id: Optional[int] = None
    unlinked_group_id: Optional[int] = None
    rows_removed: int = 0
    rows_added: int = 0


class GroupReassignmentService:
    def __init__(self, session: AsyncSession, clock: Clock = system_clock):
        self.session = session
        self.clock = clock

    async def move_member(
        self,
        organization_id: int,
        actor_type: ActorType,
        user_id: int,
        to_group_id: int,
        from_group_id: Optional[int] = None,
        remove_from_source: bool = False,
    ) -> ReassignmentResult:
        """
        Link ``user_id`` to the target group, optionally unlink it from the
        source group, then reconcile future events of both groups.

        All checks run before the first write; the writes share one
        transaction.

        Raises:
            NotFoundError: a referenced group does not exist
            CrossOrganizationTargetError: a group belongs to another organization
            ValidationError: the target is the archive group
        """
        actor_type = ActorType(actor_type)
        to_group = await get_group_by_id(self.session, to_group_id)
        self._check_same_organization(to_group, organization_id)
        if to_group.is_archive:
            raise ValidationError(
                "The archive group cannot be a reassignment target",
                {"group_id": to_group.id},
            )

        from_group = None
        if remove_from_source and from_group_id and from_group_id != to_group_id:
            from_group = await get_group_by_id(self.session, from_group_id)
            self._check_same_organization(from_group, organization_id)

        now = self.clock.now()
        rows_removed = 0

        async with TransactionManager(self.session, "move_member"):
            await self._link(actor_type, to_group.id, user_id)

            if from_group is not None:
                await self._unlink(actor_type, from_group.id, user_id)
                rows_removed = await self._drop_future_rows(
                    actor_type, from_group.id, user_id, now
                )

            target_event_ids = await get_future_event_ids(self.session, to_group.id, now)
            if actor_type == ActorType.player:
                rows_added = await add_attendees(self.session, target_event_ids, [user_id])
            else:
                rows_added = await add_coach_assignments(
                    self.session, target_event_ids, [user_id]
                )

        logger.info(
            f"{actor_type.value} {user_id} moved to group {to_group.id}",
            extra={
                "organization_id": organization_id,
                "from_group_id": from_group.id if from_group else None,
                "to_group_id": to_group.id,
                "rows_removed": rows_removed,
                "rows_added": rows_added,
            },
        )
        return ReassignmentResult(
            linked_group_id=to_group.id,
            unlinked_group_id=from_group.id if from_group else None,
            rows_removed=rows_removed,
            rows_added=rows_added,
        )

    async def remove_member(
        self,
        organization_id: int,
        actor_type: ActorType,
        user_id: int,
        group_id: int,
    ) -> ReassignmentResult:
        """
        Unlink ``user_id`` from a group and drop its rows on the group's
        future events.

        Raises:
            NotFoundError: group missing or owned by another organization
            HeadCoachRemovalForbiddenError: the coach heads this group
        """
        actor_type = ActorType(actor_type)
        group = await get_group_by_id(self.session, group_id)
        if group.organization_id != organization_id:
            raise NotFoundError("Group", str(group_id))

        if actor_type == ActorType.coach and group.head_coach_user_id == user_id:
            raise HeadCoachRemovalForbiddenError(group.id, user_id)

        now = self.clock.now()
        async with TransactionManager(self.session, "remove_member"):
            await self._unlink(actor_type, group.id, user_id)
            rows_removed = await self._drop_future_rows(actor_type, group.id, user_id, now)

        logger.info(
            f"{actor_type.value} {user_id} removed from group {group.id}",
            extra={"organization_id": organization_id, "rows_removed": rows_removed},
        )
        return ReassignmentResult(unlinked_group_id=group.id, rows_removed=rows_removed)

    @staticmethod
    def _check_same_organization(group: Group, organization_id: int):
        if group.organization_id != organization_id:
            raise CrossOrganizationTargetError(group.id, organization_id)

    async def _link(self, actor_type: ActorType, group_id: int, user_id: int):
        if actor_type == ActorType.player:
            await ensure_player_link(self.session, group_id, user_id)
        else:
            await ensure_coach_link(self.session, group_id, user_id)

    async def _unlink(self, actor_type: ActorType, group_id: int, user_id: int):
        if actor_type == ActorType.player:
            await delete_player_link(self.session, group_id, user_id)
        else:
            await delete_coach_link(self.session, group_id, user_id)

    async def _drop_future_rows(
        self, actor_type: ActorType, group_id: int, user_id: int, now
    ) -> int:
        event_ids = await get_future_event_ids(self.session, group_id, now)
        if actor_type == ActorType.player:
            return await delete_attendees(self.session, event_ids, user_id)
        return await delete_coach_assignments(self.session, event_ids, user_id)

"""Attendee and coach-assignment rows; every insert is conflict-free."""
from typing import Iterable, List

from sqlalchemy import and_, delete
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from activitee.core.database import db_operation, insert_ignore
from activitee.manager.models.attendance import (
    Attendee,
    CoachAssignment,
    DEFAULT_ATTENDANCE_STATUS,
)


async def add_attendees(
    session: AsyncSession, event_ids: Iterable[int], user_ids: Iterable[int]
) -> int:
    """Create missing (event, person) rows; existing rows keep their status"""
    rows = [
        {"event_id": event_id, "player_id": user_id, "status": DEFAULT_ATTENDANCE_STATUS}
        for event_id in event_ids
        for user_id in sorted(set(user_ids))
    ]
    return await insert_ignore(session, Attendee, rows, ["event_id", "player_id"])


async def add_coach_assignments(
    session: AsyncSession, event_ids: Iterable[int], coach_ids: Iterable[int]
) -> int:
    rows = [
        {"event_id": event_id, "coach_id": coach_id}
        for event_id in event_ids
        for coach_id in sorted(set(coach_ids))
    ]
    return await insert_ignore(session, CoachAssignment, rows, ["event_id", "coach_id"])


async def delete_attendees(
    session: AsyncSession, event_ids: List[int], user_id: int
) -> int:
    if not event_ids:
        return 0
    result = await session.execute(
        delete(Attendee).where(
            and_(Attendee.player_id == user_id, Attendee.event_id.in_(event_ids))
        )
    )
    return result.rowcount or 0


async def delete_coach_assignments(
    session: AsyncSession, event_ids: List[int], coach_id: int
) -> int:
    if not event_ids:
        return 0
    result = await session.execute(
        delete(CoachAssignment).where(
            and_(
                CoachAssignment.coach_id == coach_id,
                CoachAssignment.event_id.in_(event_ids),
            )
        )
    )
    return result.rowcount or 0


@db_operation
async def get_attendee_pairs(session: AsyncSession, event_ids: Iterable[int]) -> List[dict]:
    event_ids = list(set(event_ids))
    if not event_ids:
        return []

    result = await session.execute(
        select(Attendee.event_id, Attendee.player_id, Attendee.status)
        .where(Attendee.event_id.in_(event_ids))
        .order_by(Attendee.event_id, Attendee.player_id)
    )
    return [
        {"event_id": event_id, "player_id": player_id, "status": status}
        for event_id, player_id, status in result.all()
    ]

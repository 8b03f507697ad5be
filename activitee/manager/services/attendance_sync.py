"""Attendance synchronizer: persists the resolved targets of one event."""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from activitee.manager.crud.attendance import add_attendees, add_coach_assignments
from activitee.manager.services.targeting import ResolvedTargets

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    attendee_rows: int
    coach_rows: int


async def sync_event_attendance(
    session: AsyncSession, event_id: int, targets: ResolvedTargets
) -> SyncResult:
    """
    Make sure every target of ``event_id`` has its row.

    Players and guardians get Attendee rows, coaches get CoachAssignment
    rows. Rows that already exist are left alone (a manual "absent" stays
    absent), so running this twice is the same as running it once. Store
    errors propagate; the caller owns the transaction.
    """
    attendee_rows = await add_attendees(session, [event_id], targets.attendee_ids)
    coach_rows = await add_coach_assignments(session, [event_id], targets.coaches)

    logger.debug(
        f"Attendance synced for event {event_id}",
        extra={
            "event_id": event_id,
            "attendees": attendee_rows,
            "coaches": coach_rows,
        },
    )
    return SyncResult(attendee_rows=attendee_rows, coach_rows=coach_rows)

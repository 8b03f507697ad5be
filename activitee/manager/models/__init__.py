from activitee.core.database import Base
from .organizations import Organization, AppAdmin
from .memberships import Membership, MemberRole
from .groups import Group, GroupPlayer, GroupCoach
from .guardians import PlayerGuardian
from .events import Event, EventSeries, EventType, EventStatus
from .attendance import (
    Attendee,
    CoachAssignment,
    AttendanceStatus,
    DEFAULT_ATTENDANCE_STATUS,
)

__all__ = [
    "Base",
    "Organization",
    "AppAdmin",
    "Membership",
    "MemberRole",
    "Group",
    "GroupPlayer",
    "GroupCoach",
    "PlayerGuardian",
    "Event",
    "EventSeries",
    "EventType",
    "EventStatus",
    "Attendee",
    "CoachAssignment",
    "AttendanceStatus",
    "DEFAULT_ATTENDANCE_STATUS",
]

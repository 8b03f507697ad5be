from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    ForeignKey,
    DateTime,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from activitee.core.database import Base


class AttendanceStatus(str, Enum):
    expected = "expected"
    present = "present"
    absent = "absent"
    excused = "excused"


# New rows start as "present", which is what the platform has always written.
DEFAULT_ATTENDANCE_STATUS = AttendanceStatus.present


class Attendee(Base):
    """
    Expected participant of an event.

    Players and guardians share this table; (event_id, player_id) is the
    idempotency key for every attendance write.
    """

    __tablename__ = "club_event_attendees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("club_events.id", ondelete="CASCADE"), nullable=False
    )
    player_id = Column(Integer, nullable=False, index=True)
    status = Column(
        SQLEnum(AttendanceStatus, name="attendance_status"),
        default=DEFAULT_ATTENDANCE_STATUS,
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="attendees")

    __table_args__ = (
        UniqueConstraint("event_id", "player_id", name="uq_event_attendee"),
    )

    def __repr__(self):
        return f"<Attendee(event_id={self.event_id}, player_id={self.player_id}, status={self.status})>"


class CoachAssignment(Base):
    __tablename__ = "club_event_coaches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("club_events.id", ondelete="CASCADE"), nullable=False
    )
    coach_id = Column(Integer, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="coach_assignments")

    __table_args__ = (
        UniqueConstraint("event_id", "coach_id", name="uq_event_coach"),
    )

    def __repr__(self):
        return f"<CoachAssignment(event_id={self.event_id}, coach_id={self.coach_id})>"

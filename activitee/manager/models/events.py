from enum import Enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    Time,
    Text,
    Boolean,
    ForeignKey,
    DateTime,
    Index,
    CheckConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from activitee.core.database import Base


class EventType(str, Enum):
    training = "training"
    interclub = "interclub"
    camp = "camp"
    session = "session"
    event = "event"


class EventStatus(str, Enum):
    scheduled = "scheduled"
    cancelled = "cancelled"


class EventSeries(Base):
    """Weekly recurrence rule that produced a batch of events"""

    __tablename__ = "club_event_series"

    id = Column(Integer, primary_key=True)
    group_id = Column(
        Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )

    event_type = Column(SQLEnum(EventType, name="event_type"), nullable=False)
    title = Column(String(200), nullable=True)
    location_text = Column(String(255), nullable=True)
    coach_note = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)

    # 0 = Sunday .. 6 = Saturday
    weekday = Column(Integer, nullable=False)
    time_of_day = Column(Time, nullable=False)
    interval_weeks = Column(Integer, default=1, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    events = relationship("Event", back_populates="series")

    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_series_weekday"),
        CheckConstraint("interval_weeks >= 1", name="ck_series_interval"),
        CheckConstraint("end_date >= start_date", name="ck_series_range"),
    )

    def __repr__(self):
        return (
            f"<EventSeries(id={self.id}, group_id={self.group_id}, weekday={self.weekday}, "
            f"{self.start_date}..{self.end_date})>"
        )


class Event(Base):
    __tablename__ = "club_events"

    id = Column(Integer, primary_key=True)
    group_id = Column(
        Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    organization_id = Column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )

    event_type = Column(SQLEnum(EventType, name="event_type"), nullable=False)
    title = Column(String(200), nullable=True)

    # naive local wall-clock time
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    location_text = Column(String(255), nullable=True)
    coach_note = Column(Text, nullable=True)

    series_id = Column(
        Integer, ForeignKey("club_event_series.id", ondelete="SET NULL"), nullable=True
    )
    status = Column(
        SQLEnum(EventStatus, name="event_status"),
        default=EventStatus.scheduled,
        nullable=False,
    )
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relations
    group = relationship("Group", back_populates="events")
    series = relationship("EventSeries", back_populates="events")
    attendees = relationship("Attendee", back_populates="event", cascade="all, delete")
    coach_assignments = relationship(
        "CoachAssignment", back_populates="event", cascade="all, delete"
    )

    __table_args__ = (
        CheckConstraint("ends_at > starts_at", name="ck_event_time_order"),
        CheckConstraint(
            "duration_minutes BETWEEN 1 AND 240", name="ck_event_duration"
        ),
        # future events of one group
        Index("ix_club_events_group_starts", "group_id", "starts_at"),
        Index("ix_club_events_org_starts", "organization_id", "starts_at"),
    )

    def __repr__(self):
        return (
            f"<Event(id={self.id}, group_id={self.group_id}, type={self.event_type}, "
            f"starts_at={self.starts_at}, status={self.status})>"
        )

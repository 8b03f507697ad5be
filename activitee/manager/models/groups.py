from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Index,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from activitee.core.config import ARCHIVE_GROUP_NAME
from activitee.core.database import Base


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True)
    organization_id = Column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # Head coach is implicitly a coach of the group, with or without a link row
    head_coach_user_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relations
    organization = relationship("Organization", back_populates="groups")
    player_links = relationship(
        "GroupPlayer", back_populates="group", cascade="all, delete-orphan"
    )
    coach_links = relationship(
        "GroupCoach", back_populates="group", cascade="all, delete-orphan"
    )
    events = relationship("Event", back_populates="group", cascade="all, delete")

    @property
    def is_archive(self) -> bool:
        """The archive bucket is never listed nor targeted"""
        # same rule as the TRIM() filter in crud.groups
        return (self.name or "").strip(" ") == ARCHIVE_GROUP_NAME

    def __repr__(self):
        return (
            f"<Group(id={self.id}, name='{self.name}', "
            f"organization_id={self.organization_id})>"
        )


class GroupPlayer(Base):
    """Many-to-many link between groups and player accounts"""

    __tablename__ = "group_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(
        Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    player_user_id = Column(Integer, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    group = relationship("Group", back_populates="player_links")

    __table_args__ = (
        UniqueConstraint("group_id", "player_user_id", name="uq_group_player"),
    )

    def __repr__(self):
        return f"<GroupPlayer(group_id={self.group_id}, player_user_id={self.player_user_id})>"


class GroupCoach(Base):
    """Many-to-many link between groups and coaches"""

    __tablename__ = "group_coaches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(
        Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    coach_user_id = Column(Integer, nullable=False, index=True)
    is_head = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    group = relationship("Group", back_populates="coach_links")

    __table_args__ = (
        UniqueConstraint("group_id", "coach_user_id", name="uq_group_coach"),
        Index("ix_group_coaches_group", "group_id"),
    )

    def __repr__(self):
        return f"<GroupCoach(group_id={self.group_id}, coach_user_id={self.coach_user_id})>"

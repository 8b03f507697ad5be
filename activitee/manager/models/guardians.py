from sqlalchemy import (
    Column,
    Integer,
    Boolean,
    DateTime,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from activitee.core.database import Base


class PlayerGuardian(Base):
    """Parent account shadowing a player account"""

    __tablename__ = "player_guardians"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_user_id = Column(Integer, nullable=False, index=True)
    guardian_user_id = Column(Integer, nullable=False, index=True)

    # only can_view links take part in event targeting
    can_view = Column(Boolean, default=True, nullable=False)
    can_edit = Column(Boolean, default=False, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "player_user_id", "guardian_user_id", name="uq_player_guardian"
        ),
    )

    def __repr__(self):
        return (
            f"<PlayerGuardian(player_user_id={self.player_user_id}, "
            f"guardian_user_id={self.guardian_user_id}, can_view={self.can_view})>"
        )

from collections import defaultdict
from typing import Dict, FrozenSet, Iterable

from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from activitee.core.database import db_operation
from activitee.manager.models.guardians import PlayerGuardian


@db_operation
async def get_guardians_by_player(
    session: AsyncSession, player_ids: Iterable[int]
) -> Dict[int, FrozenSet[int]]:
    """Guardians allowed to view each player (``can_view`` links only)"""
    player_ids = list(set(player_ids))
    if not player_ids:
        return {}

    result = await session.execute(
        select(PlayerGuardian.player_user_id, PlayerGuardian.guardian_user_id).where(
            and_(
                PlayerGuardian.player_user_id.in_(player_ids),
                PlayerGuardian.can_view == True,
            )
        )
    )

    guardians = defaultdict(set)
    for player_id, guardian_id in result.all():
        guardians[player_id].add(guardian_id)
    return {player_id: frozenset(ids) for player_id, ids in guardians.items()}

from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.ext.asyncio import AsyncSession

from activitee.core.clock import Clock, get_clock
from activitee.core.database import get_session
from activitee.core.dependencies import get_current_caller
from activitee.core.limits import limiter
from activitee.core.push_sender import NotificationSink, get_push_sender
from activitee.manager.crud.groups import get_group_assignments
from activitee.manager.crud.memberships import assert_superadmin_or_manager
from activitee.manager.schemas.groups import (
    GroupAssignmentsResponse,
    MoveMemberRequest,
    OkResponse,
    RemoveMemberRequest,
)
from activitee.manager.services.scheduler import SchedulingService

router = APIRouter(
    prefix="/organizations/{organization_id}/group-assignments",
    tags=["Group Assignments"],
)


@router.get("", response_model=GroupAssignmentsResponse)
@limiter.limit("60/minute")
async def read_group_assignments(
    request: Request,
    organization_id: int = Path(..., gt=0, description="Organization ID"),
    caller_id: int = Depends(get_current_caller),
    db: AsyncSession = Depends(get_session),
):
    """Groups of the organization with their player and coach links"""
    await assert_superadmin_or_manager(db, caller_id, organization_id)
    return await get_group_assignments(db, organization_id)


@router.post("", response_model=OkResponse)
@limiter.limit("30/minute")
async def move_member(
    request: Request,
    payload: MoveMemberRequest,
    organization_id: int = Path(..., gt=0, description="Organization ID"),
    caller_id: int = Depends(get_current_caller),
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_push_sender),
):
    """
    Add a player or coach to a group, optionally taking them out of their
    previous group. Only events that have not started yet are updated.
    """
    service = SchedulingService(db, clock=clock, notifier=notifier)
    await service.move_member(caller_id, organization_id, payload)
    return OkResponse()


@router.delete("", response_model=OkResponse)
@limiter.limit("30/minute")
async def remove_member(
    request: Request,
    payload: RemoveMemberRequest,
    organization_id: int = Path(..., gt=0, description="Organization ID"),
    caller_id: int = Depends(get_current_caller),
    db: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_push_sender),
):
    """Take a player or coach out of a group; the head coach cannot be removed"""
    service = SchedulingService(db, clock=clock, notifier=notifier)
    await service.remove_member(caller_id, organization_id, payload)
    return OkResponse()

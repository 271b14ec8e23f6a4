"""Goal router - API endpoints for shared goals, strategies and comments."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.database import get_database
from app.models.common import Envelope, PageEnvelope, PageParams
from app.models.goal import (
    CommentCreate,
    Goal,
    GoalComment,
    GoalCreate,
    GoalStatus,
    GoalUpdate,
    StatusChange,
    Strategy,
    StrategyCreate,
    StrategyResult,
    StrategyUpdate,
)
from app.services.goal_service import GoalService
from app.utils.responses import paginated, success
from app.utils.session_guard import Identity, get_current_identity
from app.utils.validation import get_page_params


router = APIRouter(prefix="/goals", tags=["goals"])


@router.post("", response_model=Envelope[Goal], status_code=status.HTTP_201_CREATED)
async def create_goal(
    goal: GoalCreate,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Create a new goal.

    - Requires authentication
    - Starts not started with progress 0
    """
    service = GoalService(db)
    return success(await service.create_goal(identity, goal))


@router.get("", response_model=PageEnvelope[Goal])
async def list_goals(
    identity: Identity = Depends(get_current_identity),
    params: PageParams = Depends(get_page_params),
    goal_status: Optional[GoalStatus] = Query(None, alias="status", description="Filter by status"),
    student_id: Optional[str] = Query(None, description="Filter by student"),
    db=Depends(get_database),
):
    """
    List goals for the authenticated user.

    - Admins see all goals
    - Excludes archived goals unless status=archived
    """
    service = GoalService(db)
    items, total = await service.list_goals(
        identity, params, status=goal_status, student_id=student_id,
    )
    return paginated(items, total, params)


@router.get("/{goal_id}", response_model=Envelope[Goal])
async def get_goal(
    goal_id: str,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Get a single goal.

    - Returns 404 if goal not found or archived
    - Returns 403 if the caller is not the owner or an admin
    """
    service = GoalService(db)
    return success(await service.get_goal(identity, goal_id))


@router.patch("/{goal_id}", response_model=Envelope[Goal])
async def update_goal(
    goal_id: str,
    goal_update: GoalUpdate,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Update a goal's title, description, area or target date.

    - Status changes go through POST /goals/{goal_id}/status
    """
    service = GoalService(db)
    return success(await service.update_goal(identity, goal_id, goal_update))


@router.post("/{goal_id}/status", response_model=Envelope[Goal])
async def change_goal_status(
    goal_id: str,
    change: StatusChange,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Move a goal to a new status.

    - Returns 400 if the transition is not allowed
    - Appends a status_change entry to the goal's history
    """
    service = GoalService(db)
    return success(await service.change_status(identity, goal_id, change))


@router.delete("/{goal_id}", response_model=Envelope[Goal])
async def delete_goal(
    goal_id: str,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Soft delete a goal.

    - Marks goal as archived, doesn't remove it or its history
    - Returns 404 if goal not found
    """
    service = GoalService(db)
    return success(await service.archive_goal(identity, goal_id))


@router.post(
    "/{goal_id}/strategies",
    response_model=Envelope[StrategyResult],
    status_code=status.HTTP_201_CREATED,
)
async def add_strategy(
    goal_id: str,
    strategy: StrategyCreate,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """Add a strategy; returns it with the goal's recomputed progress."""
    service = GoalService(db)
    return success(await service.add_strategy(identity, goal_id, strategy))


@router.get("/{goal_id}/strategies", response_model=Envelope[list[Strategy]])
async def list_strategies(
    goal_id: str,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """List a goal's strategies."""
    service = GoalService(db)
    return success(await service.list_strategies(identity, goal_id))


@router.patch("/{goal_id}/strategies/{strategy_id}", response_model=Envelope[StrategyResult])
async def update_strategy(
    goal_id: str,
    strategy_id: str,
    strategy_update: StrategyUpdate,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """Update a strategy; returns it with the goal's recomputed progress."""
    service = GoalService(db)
    return success(await service.update_strategy(identity, goal_id, strategy_id, strategy_update))


@router.post(
    "/{goal_id}/comments",
    response_model=Envelope[GoalComment],
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    goal_id: str,
    comment: CommentCreate,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """Append a comment to a goal's history."""
    service = GoalService(db)
    return success(await service.add_comment(identity, goal_id, comment.body))


@router.get("/{goal_id}/comments", response_model=PageEnvelope[GoalComment])
async def list_comments(
    goal_id: str,
    identity: Identity = Depends(get_current_identity),
    params: PageParams = Depends(get_page_params),
    db=Depends(get_database),
):
    """List a goal's comments and status changes, newest first."""
    service = GoalService(db)
    items, total = await service.list_comments(identity, goal_id, params)
    return paginated(items, total, params)

"""Shared goal, strategy and goal comment model definitions."""
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class GoalStatus(str, Enum):
    """Goal lifecycle states."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    ARCHIVED = "archived"


# Archived is reached only through delete
GOAL_TRANSITIONS: dict[GoalStatus, set[GoalStatus]] = {
    GoalStatus.NOT_STARTED: {GoalStatus.IN_PROGRESS, GoalStatus.ON_HOLD},
    GoalStatus.IN_PROGRESS: {GoalStatus.COMPLETED, GoalStatus.ON_HOLD},
    GoalStatus.ON_HOLD: {GoalStatus.IN_PROGRESS},
    GoalStatus.COMPLETED: {GoalStatus.IN_PROGRESS},
    GoalStatus.ARCHIVED: set(),
}


class CommentKind(str, Enum):
    """Kinds of goal history entries."""

    COMMENT = "comment"
    STATUS_CHANGE = "status_change"


class GoalBase(BaseModel):
    """Base goal fields."""

    title: str = Field(min_length=3, max_length=200)
    description: str = Field("", max_length=2000)
    area: str = Field("", max_length=100)
    target_date: Optional[date] = None


class GoalCreate(GoalBase):
    """Goal creation model."""

    student_id: Optional[str] = Field(None, min_length=1, max_length=100)


class GoalUpdate(BaseModel):
    """Goal update model - all fields optional; status and progress are not writable."""

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    area: Optional[str] = Field(None, max_length=100)
    target_date: Optional[date] = None


class StatusChange(BaseModel):
    """Status transition request."""

    status: GoalStatus
    note: str = Field("", max_length=2000)


class Goal(GoalBase):
    """Full goal model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    owner_id: str
    student_id: Optional[str] = None
    status: GoalStatus
    progress: int = Field(ge=0, le=100)
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class StrategyCreate(BaseModel):
    """Strategy creation model."""

    title: str = Field(min_length=3, max_length=200)
    description: str = Field("", max_length=2000)
    progress: int = Field(0, ge=0, le=100)


class StrategyUpdate(BaseModel):
    """Strategy update model - all fields optional."""

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    progress: Optional[int] = Field(None, ge=0, le=100)


class Strategy(BaseModel):
    """Strategy supporting a goal; its progress feeds the goal's progress."""

    id: str = Field(alias="_id", serialization_alias="id")
    goal_id: str
    title: str
    description: str = ""
    progress: int = Field(ge=0, le=100)
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class StrategyResult(BaseModel):
    """Strategy write result with the recomputed goal."""

    strategy: Strategy
    goal: Goal


class CommentCreate(BaseModel):
    """Comment creation model."""

    body: str = Field(min_length=1, max_length=2000)


class GoalComment(BaseModel):
    """Append-only goal history entry."""

    id: str = Field(alias="_id", serialization_alias="id")
    goal_id: str
    author_id: str
    kind: CommentKind
    body: str
    created_at: datetime

    model_config = {"populate_by_name": True}

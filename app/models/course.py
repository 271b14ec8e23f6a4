"""Course, enrollment and module progress model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class CourseModuleInput(BaseModel):
    """Module as supplied when creating a course."""

    id: Optional[str] = Field(None, min_length=1, max_length=100, pattern=r"^[a-z0-9-]+$")
    title: str = Field(min_length=1, max_length=200)


class CourseModule(BaseModel):
    """Module stored on a course."""

    id: str
    title: str
    order: int


class CourseCreate(BaseModel):
    """Course creation model."""

    title: str = Field(min_length=3, max_length=200)
    description: str = Field("", max_length=5000)
    modules: list[CourseModuleInput] = Field(min_length=1, max_length=100)

    @model_validator(mode="after")
    def check_module_ids_unique(self):
        ids = [m.id for m in self.modules if m.id is not None]
        if len(ids) != len(set(ids)):
            raise ValueError("module ids must be unique within a course")
        return self


class Course(BaseModel):
    """Full course model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    title: str
    slug: str
    description: str = ""
    modules: list[CourseModule]
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class EnrollmentStatus(str, Enum):
    """Enrollment lifecycle."""

    ACTIVE = "active"
    COMPLETED = "completed"


class Enrollment(BaseModel):
    """A user's enrollment in a course; progress is derived from module progress."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    course_id: str
    progress: int = Field(ge=0, le=100)
    status: EnrollmentStatus
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class EnrollmentResult(BaseModel):
    """Enrollment plus whether this call created it."""

    enrollment: Enrollment
    created: bool


class ProgressUpdate(BaseModel):
    """Module progress update."""

    progress: int = Field(ge=0, le=100)


class ModuleProgress(BaseModel):
    """Progress of one user through one module of a course."""

    id: str = Field(alias="_id", serialization_alias="id")
    user_id: str
    course_id: str
    module_id: str
    progress: int = Field(ge=0, le=100)
    completed: bool
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class ProgressResult(BaseModel):
    """Module progress write result with the recomputed enrollment."""

    progress: ModuleProgress
    enrollment: Enrollment

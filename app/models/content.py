"""Curriculum content and change history model definitions."""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, Field


class KeyStage(str, Enum):
    """National curriculum key stages."""

    EYFS = "eyfs"
    KS1 = "ks1"
    KS2 = "ks2"
    KS3 = "ks3"
    KS4 = "ks4"
    KS5 = "ks5"


class ContentType(str, Enum):
    """Kinds of curriculum content."""

    LESSON = "lesson"
    ACTIVITY = "activity"
    ASSESSMENT = "assessment"
    RESOURCE = "resource"


class ContentStatus(str, Enum):
    """Content workflow states."""

    DRAFT = "draft"
    IN_REVIEW = "in_review"
    PUBLISHED = "published"
    ARCHIVED = "archived"


# Archived is reached only through delete
CONTENT_TRANSITIONS: dict[ContentStatus, set[ContentStatus]] = {
    ContentStatus.DRAFT: {ContentStatus.IN_REVIEW},
    ContentStatus.IN_REVIEW: {ContentStatus.DRAFT, ContentStatus.PUBLISHED},
    ContentStatus.PUBLISHED: {ContentStatus.DRAFT},
    ContentStatus.ARCHIVED: set(),
}


class ChangeType(str, Enum):
    """Kinds of change history records."""

    CREATE = "create"
    UPDATE = "update"
    STATUS = "status"
    RESTORE = "restore"
    DELETE = "delete"


# Fields captured in every history snapshot, in display order
EDITABLE_FIELDS = ("title", "body", "subject", "key_stage", "content_type", "tags")

Tag = Annotated[str, Field(min_length=1, max_length=50)]


class ContentBase(BaseModel):
    """Base content fields."""

    title: str = Field(min_length=3, max_length=200)
    body: str = Field("", max_length=50_000)
    subject: str = Field(min_length=1, max_length=100)
    key_stage: KeyStage
    content_type: ContentType
    tags: list[Tag] = Field(default_factory=list, max_length=20)


class ContentCreate(ContentBase):
    """Content creation model."""

    pass


class ContentUpdate(BaseModel):
    """Content update model - all fields optional."""

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    body: Optional[str] = Field(None, max_length=50_000)
    subject: Optional[str] = Field(None, min_length=1, max_length=100)
    key_stage: Optional[KeyStage] = None
    content_type: Optional[ContentType] = None
    tags: Optional[list[Tag]] = Field(None, max_length=20)


class ContentStatusChange(BaseModel):
    """Workflow transition request."""

    status: ContentStatus


class DraftRequest(BaseModel):
    """Request to draft content through the text generation service."""

    title: str = Field(min_length=3, max_length=200)
    subject: str = Field(min_length=1, max_length=100)
    key_stage: KeyStage
    content_type: ContentType
    prompt: str = Field(min_length=10, max_length=4000)
    tags: list[Tag] = Field(default_factory=list, max_length=20)


class ContentItem(ContentBase):
    """Full content model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    author_id: str
    status: ContentStatus
    version: int = Field(ge=1)
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}


class ContentChange(BaseModel):
    """Append-only change history record."""

    id: str = Field(alias="_id", serialization_alias="id")
    content_id: str
    change_type: ChangeType
    version: int
    changed_fields: list[str] = Field(default_factory=list)
    snapshot: dict[str, Any] = Field(default_factory=dict)
    changed_by: str
    created_at: datetime

    model_config = {"populate_by_name": True}

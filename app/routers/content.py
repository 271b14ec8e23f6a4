"""Content router - API endpoints for curriculum content and its history."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.database import get_database
from app.models.common import Envelope, PageEnvelope, PageParams
from app.models.content import (
    ContentChange,
    ContentCreate,
    ContentItem,
    ContentStatus,
    ContentStatusChange,
    ContentType,
    ContentUpdate,
    DraftRequest,
    KeyStage,
)
from app.models.user import Role
from app.services.content_service import ContentService
from app.services.text_generation import TextGenerator, get_text_generator
from app.utils.responses import paginated, success
from app.utils.session_guard import Identity, get_current_identity, require_roles
from app.utils.validation import get_page_params


router = APIRouter(prefix="/content", tags=["content"])

content_authors = require_roles(Role.EDUCATOR, Role.PSYCHOLOGIST, Role.ADMIN)


@router.post("", response_model=Envelope[ContentItem], status_code=status.HTTP_201_CREATED)
async def create_content(
    content: ContentCreate,
    identity: Identity = Depends(content_authors),
    db=Depends(get_database),
):
    """
    Create a content item.

    - Educators, psychologists and admins only
    - Starts as a draft at version 1
    - Records a create entry in the change history
    """
    service = ContentService(db)
    return success(await service.create_content(identity, content))


@router.post("/drafts", response_model=Envelope[ContentItem], status_code=status.HTTP_201_CREATED)
async def generate_draft(
    request: DraftRequest,
    identity: Identity = Depends(content_authors),
    generator: TextGenerator = Depends(get_text_generator),
    db=Depends(get_database),
):
    """
    Draft a content item's body with the text generation service.

    - Returns 500 if the service fails; nothing is stored
    """
    service = ContentService(db)
    return success(await service.generate_draft(identity, request, generator))


@router.get("", response_model=PageEnvelope[ContentItem])
async def list_content(
    identity: Identity = Depends(get_current_identity),
    params: PageParams = Depends(get_page_params),
    subject: Optional[str] = Query(None, description="Filter by subject"),
    key_stage: Optional[KeyStage] = Query(None, description="Filter by key stage"),
    content_type: Optional[ContentType] = Query(None, description="Filter by content type"),
    content_status: Optional[ContentStatus] = Query(None, alias="status", description="Filter by status"),
    author_id: Optional[str] = Query(None, description="Filter by author"),
    db=Depends(get_database),
):
    """
    List content items, newest first.

    - Excludes archived items unless status=archived
    """
    service = ContentService(db)
    items, total = await service.list_content(
        params,
        subject=subject,
        key_stage=key_stage,
        content_type=content_type,
        status=content_status,
        author_id=author_id,
    )
    return paginated(items, total, params)


@router.get("/{content_id}", response_model=Envelope[ContentItem])
async def get_content(
    content_id: str,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Get a single content item.

    - Returns 404 if not found or archived
    """
    service = ContentService(db)
    return success(await service.get_content(content_id))


@router.patch("/{content_id}", response_model=Envelope[ContentItem])
async def update_content(
    content_id: str,
    content_update: ContentUpdate,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Update a content item.

    - Increments version when any field changes
    - Author or admin only
    """
    service = ContentService(db)
    return success(await service.update_content(identity, content_id, content_update))


@router.post("/{content_id}/status", response_model=Envelope[ContentItem])
async def change_content_status(
    content_id: str,
    change: ContentStatusChange,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Move content through draft, review and publication.

    - Returns 400 if the transition is not allowed
    - Version is unchanged
    """
    service = ContentService(db)
    return success(await service.change_status(identity, content_id, change.status))


@router.delete("/{content_id}", response_model=Envelope[ContentItem])
async def delete_content(
    content_id: str,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Soft delete a content item.

    - Marks it archived; version and history are kept
    """
    service = ContentService(db)
    return success(await service.archive_content(identity, content_id))


@router.get("/{content_id}/history", response_model=PageEnvelope[ContentChange])
async def list_history(
    content_id: str,
    identity: Identity = Depends(get_current_identity),
    params: PageParams = Depends(get_page_params),
    db=Depends(get_database),
):
    """List a content item's change history, newest first."""
    service = ContentService(db)
    items, total = await service.list_history(identity, content_id, params)
    return paginated(items, total, params)


@router.post("/{content_id}/versions/{version}/restore", response_model=Envelope[ContentItem])
async def restore_version(
    content_id: str,
    version: int,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Restore the fields recorded at an earlier version.

    - Creates a new version; history is never rewritten
    - Returns 404 if the version does not exist
    """
    service = ContentService(db)
    return success(await service.restore_version(identity, content_id, version))

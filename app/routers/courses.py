"""Course router - courses, enrollment and module progress."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from app.database import get_database
from app.models.common import Envelope, PageEnvelope, PageParams
from app.models.course import (
    Course,
    CourseCreate,
    Enrollment,
    EnrollmentStatus,
    ModuleProgress,
    ProgressResult,
    ProgressUpdate,
)
from app.models.user import Role
from app.services.course_service import CourseService
from app.utils.responses import paginated, success
from app.utils.session_guard import Identity, get_current_identity, require_roles
from app.utils.validation import get_page_params


router = APIRouter(prefix="/courses", tags=["courses"])
enrollments_router = APIRouter(prefix="/enrollments", tags=["courses"])

course_authors = require_roles(Role.EDUCATOR, Role.PSYCHOLOGIST, Role.ADMIN)


class EnrollmentEnvelope(Envelope[Enrollment]):
    """Enrollment envelope with the outcome message."""

    message: str


@router.post("", response_model=Envelope[Course], status_code=status.HTTP_201_CREATED)
async def create_course(
    course: CourseCreate,
    identity: Identity = Depends(course_authors),
    db=Depends(get_database),
):
    """
    Create a new course.

    - Educators, psychologists and admins only
    - Slug and module ids are derived from titles
    """
    service = CourseService(db)
    return success(await service.create_course(user_id=identity.user_id, course_create=course))


@router.get("", response_model=PageEnvelope[Course])
async def list_courses(
    identity: Identity = Depends(get_current_identity),
    params: PageParams = Depends(get_page_params),
    db=Depends(get_database),
):
    """List courses, newest first."""
    service = CourseService(db)
    items, total = await service.list_courses(params)
    return paginated(items, total, params)


@router.get("/{course_id}", response_model=Envelope[Course])
async def get_course(
    course_id: str,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """Get a course by ID (404 if not found)."""
    service = CourseService(db)
    return success(await service.get_course(course_id))


@router.post("/{course_id}/enroll", response_model=EnrollmentEnvelope)
async def enroll(
    course_id: str,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Enroll the caller in a course.

    - 201 with message "enrolled" on first call
    - 200 echoing the existing enrollment with message "already enrolled"
    """
    service = CourseService(db)
    result = await service.enroll(user_id=identity.user_id, course_id=course_id)
    body = EnrollmentEnvelope(
        data=result.enrollment,
        message="enrolled" if result.created else "already enrolled",
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        content=jsonable_encoder(body, by_alias=True),
    )


@router.get("/{course_id}/enrollments", response_model=PageEnvelope[Enrollment])
async def list_course_enrollments(
    course_id: str,
    identity: Identity = Depends(get_current_identity),
    params: PageParams = Depends(get_page_params),
    db=Depends(get_database),
):
    """
    List enrollments of a course.

    - Course creator or admin only
    """
    service = CourseService(db)
    items, total = await service.list_course_enrollments(identity, course_id, params)
    return paginated(items, total, params)


@router.put("/{course_id}/modules/{module_id}/progress", response_model=Envelope[ProgressResult])
async def update_module_progress(
    course_id: str,
    module_id: str,
    update: ProgressUpdate,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Record the caller's progress through a module.

    - Recomputes the enrollment's progress in the same transaction
    - Returns 404 if course, module or enrollment not found
    """
    service = CourseService(db)
    return success(await service.update_module_progress(
        user_id=identity.user_id,
        course_id=course_id,
        module_id=module_id,
        progress=update.progress,
    ))


@router.get("/{course_id}/progress", response_model=Envelope[list[ModuleProgress]])
async def get_module_progress(
    course_id: str,
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """Get the caller's module progress for a course (404 if not enrolled)."""
    service = CourseService(db)
    return success(await service.get_module_progress(identity.user_id, course_id))


@enrollments_router.get("", response_model=PageEnvelope[Enrollment])
async def list_my_enrollments(
    identity: Identity = Depends(get_current_identity),
    params: PageParams = Depends(get_page_params),
    enrollment_status: Optional[EnrollmentStatus] = Query(None, alias="status"),
    db=Depends(get_database),
):
    """List the caller's enrollments, newest first."""
    service = CourseService(db)
    items, total = await service.list_enrollments(
        identity.user_id, params, status=enrollment_status,
    )
    return paginated(items, total, params)

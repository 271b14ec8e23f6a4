"""Course service - courses, idempotent enrollment and module progress."""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.errors import Conflict, NotFound
from app.models.common import PageParams
from app.models.course import (
    Course,
    CourseCreate,
    CourseModule,
    Enrollment,
    EnrollmentResult,
    EnrollmentStatus,
    ModuleProgress,
    ProgressResult,
)
from app.utils.orchestration import (
    average_progress,
    paginate,
    parse_object_id,
    store_operation,
    transaction,
)
from app.utils.session_guard import Identity, ensure_owner_or_role
from app.utils.slug import generate_unique_slug, slugify, unique_among

logger = logging.getLogger(__name__)


def enrollment_progress(modules: Iterable[dict], records: Iterable[dict]) -> int:
    """
    Derive an enrollment's progress from its module progress records.

    Every module of the course counts; a module without a record counts as 0
    and records for modules no longer on the course are ignored.

    Args:
        modules: Course module documents (``{"id", ...}``)
        records: Module progress documents for one enrollment

    Returns:
        Rounded mean progress, 0-100
    """
    by_module = {doc["module_id"]: doc["progress"] for doc in records}
    return average_progress(by_module.get(module["id"], 0) for module in modules)


class CourseService:
    """Service for course, enrollment and progress operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.courses = db["courses"]
        self.enrollments = db["enrollments"]
        self.progress = db["course_progress"]

    def _doc_to_course(self, doc: dict) -> Course:
        return Course(
            _id=str(doc["_id"]),
            title=doc["title"],
            slug=doc["slug"],
            description=doc.get("description", ""),
            modules=[CourseModule(**m) for m in doc["modules"]],
            created_by=doc["created_by"],
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _doc_to_enrollment(self, doc: dict) -> Enrollment:
        return Enrollment(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            course_id=doc["course_id"],
            progress=doc.get("progress", 0),
            status=doc.get("status", EnrollmentStatus.ACTIVE.value),
            completed_at=doc.get("completed_at"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _doc_to_progress(self, doc: dict) -> ModuleProgress:
        return ModuleProgress(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            course_id=doc["course_id"],
            module_id=doc["module_id"],
            progress=doc["progress"],
            completed=doc["completed"],
            completed_at=doc.get("completed_at"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    @store_operation
    async def create_course(self, user_id: str, course_create: CourseCreate) -> Course:
        """
        Create a new course.

        Module ids default to slugs of their titles and are made unique
        within the course.

        Args:
            user_id: Creator's user ID
            course_create: Course creation data

        Returns:
            Created course

        Raises:
            Conflict: If a concurrent create took the same slug
        """
        slug = await generate_unique_slug(
            self.courses,
            slugify(course_create.title) or "course",
        )

        modules = []
        taken: set[str] = {m.id for m in course_create.modules if m.id}
        for order, module in enumerate(course_create.modules, start=1):
            module_id = module.id
            if module_id is None:
                module_id = unique_among(slugify(module.title) or "module", taken)
                taken.add(module_id)
            modules.append({"id": module_id, "title": module.title, "order": order})

        now = datetime.now(timezone.utc)
        course_doc = {
            "title": course_create.title,
            "slug": slug,
            "description": course_create.description,
            "modules": modules,
            "created_by": user_id,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.courses.insert_one(course_doc)
        except DuplicateKeyError:
            raise Conflict("A course with this slug already exists")

        course_doc["_id"] = result.inserted_id
        logger.info("Created course %s", slug, extra={"user_id": user_id})
        return self._doc_to_course(course_doc)

    @store_operation
    async def list_courses(self, params: PageParams) -> tuple[list[Course], int]:
        """List courses, newest first."""
        return await paginate(self.courses, {}, params, self._doc_to_course)

    @store_operation
    async def get_course(self, course_id: str) -> Course:
        """
        Get a course by ID.

        Raises:
            NotFound: If course not found
        """
        doc = await self.courses.find_one({"_id": parse_object_id(course_id, "Course")})
        if not doc:
            raise NotFound("Course", course_id)
        return self._doc_to_course(doc)

    @store_operation
    async def enroll(self, user_id: str, course_id: str) -> EnrollmentResult:
        """
        Enroll a user in a course, or return the existing enrollment.

        Keyed on (user_id, course_id). A duplicate insert lost to a
        concurrent request resolves to the record that won.

        Args:
            user_id: User to enroll
            course_id: Course ID

        Returns:
            EnrollmentResult with ``created`` False when already enrolled

        Raises:
            NotFound: If course not found
        """
        course = await self.courses.find_one(
            {"_id": parse_object_id(course_id, "Course")}, {"_id": 1},
        )
        if not course:
            raise NotFound("Course", course_id)

        key = {"user_id": user_id, "course_id": str(course["_id"])}
        existing = await self.enrollments.find_one(key)
        if existing:
            return EnrollmentResult(enrollment=self._doc_to_enrollment(existing), created=False)

        now = datetime.now(timezone.utc)
        enrollment_doc = {
            **key,
            "progress": 0,
            "status": EnrollmentStatus.ACTIVE.value,
            "completed_at": None,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.enrollments.insert_one(enrollment_doc)
        except DuplicateKeyError:
            existing = await self.enrollments.find_one(key)
            return EnrollmentResult(enrollment=self._doc_to_enrollment(existing), created=False)

        enrollment_doc["_id"] = result.inserted_id
        logger.info("Enrolled in course %s", course_id, extra={"user_id": user_id})
        return EnrollmentResult(enrollment=self._doc_to_enrollment(enrollment_doc), created=True)

    @store_operation
    async def list_enrollments(
        self,
        user_id: str,
        params: PageParams,
        status: Optional[EnrollmentStatus] = None,
    ) -> tuple[list[Enrollment], int]:
        """List a user's enrollments, newest first."""
        query: dict = {"user_id": user_id}
        if status:
            query["status"] = status.value
        return await paginate(self.enrollments, query, params, self._doc_to_enrollment)

    @store_operation
    async def list_course_enrollments(
        self,
        identity: Identity,
        course_id: str,
        params: PageParams,
    ) -> tuple[list[Enrollment], int]:
        """
        List all enrollments of a course.

        Raises:
            NotFound: If course not found
            Forbidden: If caller is neither the course creator nor an admin
        """
        course = await self.get_course(course_id)
        ensure_owner_or_role(identity, course.created_by)
        return await paginate(
            self.enrollments, {"course_id": course.id}, params, self._doc_to_enrollment,
        )

    @store_operation
    async def update_module_progress(
        self,
        user_id: str,
        course_id: str,
        module_id: str,
        progress: int,
    ) -> ProgressResult:
        """
        Record module progress and recompute the enrollment's progress.

        The progress upsert, the sibling re-read and the enrollment write run
        in one transaction.

        Args:
            user_id: Enrolled user
            course_id: Course ID
            module_id: Module ID within the course
            progress: New progress value, 0-100

        Returns:
            The module progress record and the updated enrollment

        Raises:
            NotFound: If course, module or enrollment not found
        """
        course_oid = parse_object_id(course_id, "Course")
        now = datetime.now(timezone.utc)

        async with transaction(self.db) as session:
            course = await self.courses.find_one({"_id": course_oid}, session=session)
            if not course:
                raise NotFound("Course", course_id)
            if module_id not in {m["id"] for m in course["modules"]}:
                raise NotFound("Module", module_id)

            key = {"user_id": user_id, "course_id": str(course_oid)}
            enrollment = await self.enrollments.find_one(key, session=session)
            if not enrollment:
                raise NotFound("Enrollment", course_id)

            progress_key = {**key, "module_id": module_id}
            current = await self.progress.find_one(progress_key, session=session)

            completed = progress == 100
            completed_at = None
            if completed:
                completed_at = (current or {}).get("completed_at") or now

            record = await self.progress.find_one_and_update(
                progress_key,
                {
                    "$set": {
                        "progress": progress,
                        "completed": completed,
                        "completed_at": completed_at,
                        "updated_at": now,
                    },
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
                session=session,
            )

            siblings = await self.progress.find(key, session=session).to_list(length=None)
            aggregate = enrollment_progress(course["modules"], siblings)

            enrollment_completed = aggregate == 100
            enrollment_completed_at = None
            if enrollment_completed:
                enrollment_completed_at = enrollment.get("completed_at") or now

            updated_enrollment = await self.enrollments.find_one_and_update(
                {"_id": enrollment["_id"]},
                {
                    "$set": {
                        "progress": aggregate,
                        "status": (
                            EnrollmentStatus.COMPLETED.value
                            if enrollment_completed
                            else EnrollmentStatus.ACTIVE.value
                        ),
                        "completed_at": enrollment_completed_at,
                        "updated_at": now,
                    }
                },
                return_document=ReturnDocument.AFTER,
                session=session,
            )

        logger.info(
            "Module %s progress %d; enrollment progress %d", module_id, progress, aggregate,
            extra={"user_id": user_id, "resource": "enrollment", "resource_id": course_id},
        )
        return ProgressResult(
            progress=self._doc_to_progress(record),
            enrollment=self._doc_to_enrollment(updated_enrollment),
        )

    @store_operation
    async def get_module_progress(self, user_id: str, course_id: str) -> list[ModuleProgress]:
        """
        Get a user's module progress records for a course.

        Raises:
            NotFound: If the user is not enrolled in the course
        """
        key = {"user_id": user_id, "course_id": str(parse_object_id(course_id, "Enrollment"))}
        enrollment = await self.enrollments.find_one(key)
        if not enrollment:
            raise NotFound("Enrollment", course_id)

        cursor = self.progress.find(key, sort=[("module_id", ASCENDING)])
        docs = await cursor.to_list(length=None)
        return [self._doc_to_progress(doc) for doc in docs]

"""Goal service - shared goals, their strategies and comment history."""
import logging
from datetime import date, datetime, time, timezone
from typing import Optional

from pymongo import ASCENDING, ReturnDocument

from app.errors import NotFound
from app.models.common import PageParams
from app.models.goal import (
    GOAL_TRANSITIONS,
    CommentKind,
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
from app.utils.orchestration import (
    average_progress,
    ensure_transition,
    paginate,
    parse_object_id,
    store_operation,
    transaction,
)
from app.utils.session_guard import Identity, ensure_owner_or_role

logger = logging.getLogger(__name__)


def _to_datetime(value: Optional[date]) -> Optional[datetime]:
    """BSON has no date type; store dates as midnight datetimes."""
    if value is None:
        return None
    return datetime.combine(value, time.min)


def _to_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    return value


class GoalService:
    """Service for handling goal operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.goals = db["goals"]
        self.strategies = db["goal_strategies"]
        self.comments = db["goal_comments"]

    def _doc_to_goal(self, doc: dict) -> Goal:
        """
        Convert database document to Goal model.

        Handles datetime to date conversion for target_date.
        """
        return Goal(
            _id=str(doc["_id"]),
            owner_id=doc["owner_id"],
            student_id=doc.get("student_id"),
            title=doc["title"],
            description=doc.get("description", ""),
            area=doc.get("area", ""),
            target_date=_to_date(doc.get("target_date")),
            status=doc["status"],
            progress=doc.get("progress", 0),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _doc_to_strategy(self, doc: dict) -> Strategy:
        return Strategy(
            _id=str(doc["_id"]),
            goal_id=doc["goal_id"],
            title=doc["title"],
            description=doc.get("description", ""),
            progress=doc["progress"],
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _doc_to_comment(self, doc: dict) -> GoalComment:
        return GoalComment(
            _id=str(doc["_id"]),
            goal_id=doc["goal_id"],
            author_id=doc["author_id"],
            kind=doc["kind"],
            body=doc["body"],
            created_at=doc["created_at"],
        )

    async def _load_goal(self, identity: Identity, goal_id: str, session=None) -> dict:
        """
        Fetch a live goal the caller may act on.

        Existence is checked before ownership, so a missing goal is always
        NotFound regardless of caller.

        Raises:
            NotFound: If goal missing, archived, or id malformed
            Forbidden: If caller is not the owner and not an admin
        """
        doc = await self.goals.find_one(
            {"_id": parse_object_id(goal_id, "Goal"), "status": {"$ne": GoalStatus.ARCHIVED.value}},
            session=session,
        )
        if not doc:
            raise NotFound("Goal", goal_id)
        ensure_owner_or_role(identity, doc["owner_id"])
        return doc

    async def _append_history(
        self,
        goal_id: str,
        author_id: str,
        kind: CommentKind,
        body: str,
        session=None,
    ) -> dict:
        comment_doc = {
            "goal_id": goal_id,
            "author_id": author_id,
            "kind": kind.value,
            "body": body,
            "created_at": datetime.now(timezone.utc),
        }
        result = await self.comments.insert_one(comment_doc, session=session)
        comment_doc["_id"] = result.inserted_id
        return comment_doc

    async def _recompute_progress(self, goal_doc: dict, session=None) -> dict:
        """Set goal progress to the rounded mean of its strategies' progress."""
        goal_id = str(goal_doc["_id"])
        strategies = await self.strategies.find(
            {"goal_id": goal_id}, session=session,
        ).to_list(length=None)
        progress = average_progress(doc["progress"] for doc in strategies)

        updated = await self.goals.find_one_and_update(
            {"_id": goal_doc["_id"]},
            {"$set": {"progress": progress, "updated_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        logger.info(
            "Recomputed goal progress: %d from %d strategies", progress, len(strategies),
            extra={"resource": "goal", "resource_id": goal_id},
        )
        return updated

    @store_operation
    async def create_goal(self, identity: Identity, goal_create: GoalCreate) -> Goal:
        """
        Create a new goal.

        Args:
            identity: Caller, recorded as owner
            goal_create: Goal creation data

        Returns:
            Created goal (not started, progress 0)
        """
        now = datetime.now(timezone.utc)
        goal_doc = {
            "owner_id": identity.user_id,
            "student_id": goal_create.student_id,
            "title": goal_create.title,
            "description": goal_create.description,
            "area": goal_create.area,
            "target_date": _to_datetime(goal_create.target_date),
            "status": GoalStatus.NOT_STARTED.value,
            "progress": 0,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.goals.insert_one(goal_doc)
        goal_doc["_id"] = result.inserted_id

        logger.info("Created goal", extra={"user_id": identity.user_id, "resource_id": str(result.inserted_id)})
        return self._doc_to_goal(goal_doc)

    @store_operation
    async def list_goals(
        self,
        identity: Identity,
        params: PageParams,
        status: Optional[GoalStatus] = None,
        student_id: Optional[str] = None,
    ) -> tuple[list[Goal], int]:
        """
        List goals visible to the caller, newest first.

        Admins see every goal; others see their own. Archived goals are
        excluded unless requested by status.
        """
        query: dict = {}
        if not identity.is_admin:
            query["owner_id"] = identity.user_id
        if status:
            query["status"] = status.value
        else:
            query["status"] = {"$ne": GoalStatus.ARCHIVED.value}
        if student_id:
            query["student_id"] = student_id

        return await paginate(self.goals, query, params, self._doc_to_goal)

    @store_operation
    async def get_goal(self, identity: Identity, goal_id: str) -> Goal:
        """
        Get a single goal.

        Raises:
            NotFound: If goal not found or archived
            Forbidden: If caller may not see it
        """
        return self._doc_to_goal(await self._load_goal(identity, goal_id))

    @store_operation
    async def update_goal(self, identity: Identity, goal_id: str, goal_update: GoalUpdate) -> Goal:
        """
        Update a goal's descriptive fields.

        Raises:
            NotFound: If goal not found
            Forbidden: If caller is not the owner or an admin
        """
        existing = await self._load_goal(identity, goal_id)

        update_doc: dict = {"updated_at": datetime.now(timezone.utc)}
        if goal_update.title is not None:
            update_doc["title"] = goal_update.title
        if goal_update.description is not None:
            update_doc["description"] = goal_update.description
        if goal_update.area is not None:
            update_doc["area"] = goal_update.area
        if goal_update.target_date is not None:
            update_doc["target_date"] = _to_datetime(goal_update.target_date)

        updated_doc = await self.goals.find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": update_doc},
            return_document=ReturnDocument.AFTER,
        )
        return self._doc_to_goal(updated_doc)

    @store_operation
    async def change_status(self, identity: Identity, goal_id: str, change: StatusChange) -> Goal:
        """
        Move a goal to a new status and record the change in its history.

        Raises:
            NotFound: If goal not found
            Forbidden: If caller is not the owner or an admin
            ValidationFailed: If the transition is not allowed
        """
        async with transaction(self.db) as session:
            existing = await self._load_goal(identity, goal_id, session=session)
            current = GoalStatus(existing["status"])
            ensure_transition(GOAL_TRANSITIONS, current, change.status)

            updated_doc = await self.goals.find_one_and_update(
                {"_id": existing["_id"]},
                {"$set": {"status": change.status.value, "updated_at": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER,
                session=session,
            )

            body = f"{current.value} -> {change.status.value}"
            if change.note:
                body = f"{body}: {change.note}"
            await self._append_history(
                str(existing["_id"]), identity.user_id, CommentKind.STATUS_CHANGE, body, session=session,
            )

        return self._doc_to_goal(updated_doc)

    @store_operation
    async def archive_goal(self, identity: Identity, goal_id: str) -> Goal:
        """
        Soft delete a goal by archiving it.

        Raises:
            NotFound: If goal not found or already archived
            Forbidden: If caller is not the owner or an admin
        """
        async with transaction(self.db) as session:
            existing = await self._load_goal(identity, goal_id, session=session)

            updated_doc = await self.goals.find_one_and_update(
                {"_id": existing["_id"]},
                {"$set": {"status": GoalStatus.ARCHIVED.value, "updated_at": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            await self._append_history(
                str(existing["_id"]), identity.user_id, CommentKind.STATUS_CHANGE,
                f"{existing['status']} -> {GoalStatus.ARCHIVED.value}",
                session=session,
            )

        logger.info("Archived goal", extra={"user_id": identity.user_id, "resource_id": goal_id})
        return self._doc_to_goal(updated_doc)

    @store_operation
    async def add_strategy(
        self,
        identity: Identity,
        goal_id: str,
        strategy_create: StrategyCreate,
    ) -> StrategyResult:
        """
        Add a strategy to a goal and recompute the goal's progress.

        Raises:
            NotFound: If goal not found
            Forbidden: If caller is not the owner or an admin
        """
        now = datetime.now(timezone.utc)
        async with transaction(self.db) as session:
            goal_doc = await self._load_goal(identity, goal_id, session=session)

            strategy_doc = {
                "goal_id": str(goal_doc["_id"]),
                "title": strategy_create.title,
                "description": strategy_create.description,
                "progress": strategy_create.progress,
                "created_at": now,
                "updated_at": now,
            }
            result = await self.strategies.insert_one(strategy_doc, session=session)
            strategy_doc["_id"] = result.inserted_id

            updated_goal = await self._recompute_progress(goal_doc, session=session)

        return StrategyResult(
            strategy=self._doc_to_strategy(strategy_doc),
            goal=self._doc_to_goal(updated_goal),
        )

    @store_operation
    async def update_strategy(
        self,
        identity: Identity,
        goal_id: str,
        strategy_id: str,
        strategy_update: StrategyUpdate,
    ) -> StrategyResult:
        """
        Update a strategy and recompute the goal's progress.

        Raises:
            NotFound: If goal or strategy not found
            Forbidden: If caller is not the owner or an admin
        """
        strategy_oid = parse_object_id(strategy_id, "Strategy")

        async with transaction(self.db) as session:
            goal_doc = await self._load_goal(identity, goal_id, session=session)

            existing = await self.strategies.find_one(
                {"_id": strategy_oid, "goal_id": str(goal_doc["_id"])}, session=session,
            )
            if not existing:
                raise NotFound("Strategy", strategy_id)

            update_doc: dict = {"updated_at": datetime.now(timezone.utc)}
            if strategy_update.title is not None:
                update_doc["title"] = strategy_update.title
            if strategy_update.description is not None:
                update_doc["description"] = strategy_update.description
            if strategy_update.progress is not None:
                update_doc["progress"] = strategy_update.progress

            strategy_doc = await self.strategies.find_one_and_update(
                {"_id": strategy_oid},
                {"$set": update_doc},
                return_document=ReturnDocument.AFTER,
                session=session,
            )

            updated_goal = await self._recompute_progress(goal_doc, session=session)

        return StrategyResult(
            strategy=self._doc_to_strategy(strategy_doc),
            goal=self._doc_to_goal(updated_goal),
        )

    @store_operation
    async def list_strategies(self, identity: Identity, goal_id: str) -> list[Strategy]:
        """List a goal's strategies, oldest first."""
        goal_doc = await self._load_goal(identity, goal_id)
        cursor = self.strategies.find(
            {"goal_id": str(goal_doc["_id"])}, sort=[("created_at", ASCENDING), ("_id", ASCENDING)],
        )
        docs = await cursor.to_list(length=None)
        return [self._doc_to_strategy(doc) for doc in docs]

    @store_operation
    async def add_comment(self, identity: Identity, goal_id: str, body: str) -> GoalComment:
        """
        Append a comment to a goal's history.

        Raises:
            NotFound: If goal not found
            Forbidden: If caller is not the owner or an admin
        """
        goal_doc = await self._load_goal(identity, goal_id)
        comment_doc = await self._append_history(
            str(goal_doc["_id"]), identity.user_id, CommentKind.COMMENT, body,
        )
        return self._doc_to_comment(comment_doc)

    @store_operation
    async def list_comments(
        self,
        identity: Identity,
        goal_id: str,
        params: PageParams,
    ) -> tuple[list[GoalComment], int]:
        """List a goal's history entries, newest first."""
        goal_doc = await self._load_goal(identity, goal_id)
        return await paginate(
            self.comments, {"goal_id": str(goal_doc["_id"])}, params, self._doc_to_comment,
        )

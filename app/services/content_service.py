"""Content service - versioned curriculum content with change history."""
import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo import ReturnDocument

from app.errors import NotFound
from app.models.common import PageParams
from app.models.content import (
    CONTENT_TRANSITIONS,
    EDITABLE_FIELDS,
    ChangeType,
    ContentChange,
    ContentCreate,
    ContentItem,
    ContentStatus,
    ContentType,
    ContentUpdate,
    DraftRequest,
    KeyStage,
)
from app.services.text_generation import TextGenerator
from app.utils.orchestration import (
    ensure_transition,
    paginate,
    parse_object_id,
    store_operation,
    transaction,
)
from app.utils.session_guard import Identity, ensure_owner_or_role
from app.utils.validation import validate_input

logger = logging.getLogger(__name__)


def snapshot_of(doc: dict) -> dict:
    """Editable fields of a content document, as stored."""
    return {field: doc.get(field) for field in EDITABLE_FIELDS}


def _stored(value):
    """Enum members are stored by value."""
    if isinstance(value, (KeyStage, ContentType)):
        return value.value
    return value


class ContentService:
    """Service for curriculum content operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.items = db["content_items"]
        self.changes = db["content_changes"]

    def _doc_to_item(self, doc: dict) -> ContentItem:
        return ContentItem(
            _id=str(doc["_id"]),
            author_id=doc["author_id"],
            title=doc["title"],
            body=doc.get("body", ""),
            subject=doc["subject"],
            key_stage=doc["key_stage"],
            content_type=doc["content_type"],
            tags=doc.get("tags", []),
            status=doc["status"],
            version=doc["version"],
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    def _doc_to_change(self, doc: dict) -> ContentChange:
        return ContentChange(
            _id=str(doc["_id"]),
            content_id=doc["content_id"],
            change_type=doc["change_type"],
            version=doc["version"],
            changed_fields=doc.get("changed_fields", []),
            snapshot=doc.get("snapshot", {}),
            changed_by=doc["changed_by"],
            created_at=doc["created_at"],
        )

    async def _record_change(
        self,
        content_doc: dict,
        change_type: ChangeType,
        changed_by: str,
        changed_fields: list[str],
        session=None,
    ) -> None:
        """Append a history record describing the document's current state."""
        await self.changes.insert_one(
            {
                "content_id": str(content_doc["_id"]),
                "change_type": change_type.value,
                "version": content_doc["version"],
                "changed_fields": changed_fields,
                "snapshot": snapshot_of(content_doc),
                "changed_by": changed_by,
                "created_at": datetime.now(timezone.utc),
            },
            session=session,
        )

    async def _load_editable(self, identity: Identity, content_id: str, session=None) -> dict:
        """
        Fetch a live content item the caller may modify.

        Raises:
            NotFound: If the item is missing or archived
            Forbidden: If caller is neither the author nor an admin
        """
        doc = await self.items.find_one(
            {
                "_id": parse_object_id(content_id, "Content"),
                "status": {"$ne": ContentStatus.ARCHIVED.value},
            },
            session=session,
        )
        if not doc:
            raise NotFound("Content", content_id)
        ensure_owner_or_role(identity, doc["author_id"])
        return doc

    @store_operation
    async def create_content(self, identity: Identity, content_create: ContentCreate) -> ContentItem:
        """
        Create a draft content item at version 1.

        Args:
            identity: Caller, recorded as author
            content_create: Content creation data

        Returns:
            Created content item
        """
        now = datetime.now(timezone.utc)
        content_doc = {
            "author_id": identity.user_id,
            "title": content_create.title,
            "body": content_create.body,
            "subject": content_create.subject,
            "key_stage": content_create.key_stage.value,
            "content_type": content_create.content_type.value,
            "tags": list(content_create.tags),
            "status": ContentStatus.DRAFT.value,
            "version": 1,
            "created_at": now,
            "updated_at": now,
        }

        async with transaction(self.db) as session:
            result = await self.items.insert_one(content_doc, session=session)
            content_doc["_id"] = result.inserted_id
            await self._record_change(
                content_doc, ChangeType.CREATE, identity.user_id,
                list(EDITABLE_FIELDS), session=session,
            )

        logger.info(
            "Created content", extra={"user_id": identity.user_id, "resource_id": str(result.inserted_id)},
        )
        return self._doc_to_item(content_doc)

    @store_operation
    async def list_content(
        self,
        params: PageParams,
        subject: Optional[str] = None,
        key_stage: Optional[KeyStage] = None,
        content_type: Optional[ContentType] = None,
        status: Optional[ContentStatus] = None,
        author_id: Optional[str] = None,
    ) -> tuple[list[ContentItem], int]:
        """List content, newest first; archived items only when asked for."""
        query: dict = {}
        if subject:
            query["subject"] = subject
        if key_stage:
            query["key_stage"] = key_stage.value
        if content_type:
            query["content_type"] = content_type.value
        if author_id:
            query["author_id"] = author_id
        if status:
            query["status"] = status.value
        else:
            query["status"] = {"$ne": ContentStatus.ARCHIVED.value}

        return await paginate(self.items, query, params, self._doc_to_item)

    @store_operation
    async def get_content(self, content_id: str) -> ContentItem:
        """
        Get a live content item.

        Raises:
            NotFound: If the item is missing or archived
        """
        doc = await self.items.find_one({
            "_id": parse_object_id(content_id, "Content"),
            "status": {"$ne": ContentStatus.ARCHIVED.value},
        })
        if not doc:
            raise NotFound("Content", content_id)
        return self._doc_to_item(doc)

    @store_operation
    async def update_content(
        self,
        identity: Identity,
        content_id: str,
        content_update: ContentUpdate,
    ) -> ContentItem:
        """
        Apply field changes, bumping the version when anything changed.

        An update whose values all match the stored ones writes nothing.

        Raises:
            NotFound: If the item is missing or archived
            Forbidden: If caller is neither the author nor an admin
        """
        async with transaction(self.db) as session:
            existing = await self._load_editable(identity, content_id, session=session)

            changes = {}
            for field in EDITABLE_FIELDS:
                value = getattr(content_update, field)
                if value is None:
                    continue
                value = _stored(value)
                if value != existing.get(field):
                    changes[field] = value

            if not changes:
                return self._doc_to_item(existing)

            updated_doc = await self.items.find_one_and_update(
                {"_id": existing["_id"]},
                {
                    "$set": {**changes, "updated_at": datetime.now(timezone.utc)},
                    "$inc": {"version": 1},
                },
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            await self._record_change(
                updated_doc, ChangeType.UPDATE, identity.user_id,
                list(changes), session=session,
            )

        return self._doc_to_item(updated_doc)

    @store_operation
    async def change_status(
        self,
        identity: Identity,
        content_id: str,
        target: ContentStatus,
    ) -> ContentItem:
        """
        Move content through the review workflow. Version is unchanged.

        Raises:
            NotFound: If the item is missing or archived
            Forbidden: If caller is neither the author nor an admin
            ValidationFailed: If the transition is not allowed
        """
        async with transaction(self.db) as session:
            existing = await self._load_editable(identity, content_id, session=session)
            ensure_transition(CONTENT_TRANSITIONS, ContentStatus(existing["status"]), target)

            updated_doc = await self.items.find_one_and_update(
                {"_id": existing["_id"]},
                {"$set": {"status": target.value, "updated_at": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            await self._record_change(
                updated_doc, ChangeType.STATUS, identity.user_id, ["status"], session=session,
            )

        return self._doc_to_item(updated_doc)

    @store_operation
    async def archive_content(self, identity: Identity, content_id: str) -> ContentItem:
        """
        Soft delete content: status archived, version unchanged, history kept.

        Raises:
            NotFound: If the item is missing or already archived
            Forbidden: If caller is neither the author nor an admin
        """
        async with transaction(self.db) as session:
            existing = await self._load_editable(identity, content_id, session=session)

            updated_doc = await self.items.find_one_and_update(
                {"_id": existing["_id"]},
                {"$set": {"status": ContentStatus.ARCHIVED.value, "updated_at": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            await self._record_change(
                updated_doc, ChangeType.DELETE, identity.user_id, ["status"], session=session,
            )

        logger.info("Archived content", extra={"user_id": identity.user_id, "resource_id": content_id})
        return self._doc_to_item(updated_doc)

    @store_operation
    async def list_history(
        self,
        identity: Identity,
        content_id: str,
        params: PageParams,
    ) -> tuple[list[ContentChange], int]:
        """
        List an item's change history, newest first. Works for archived items.

        Raises:
            NotFound: If the item does not exist
            Forbidden: If caller is neither the author nor an admin
        """
        doc = await self.items.find_one({"_id": parse_object_id(content_id, "Content")})
        if not doc:
            raise NotFound("Content", content_id)
        ensure_owner_or_role(identity, doc["author_id"])

        return await paginate(
            self.changes, {"content_id": str(doc["_id"])}, params, self._doc_to_change,
        )

    @store_operation
    async def restore_version(
        self,
        identity: Identity,
        content_id: str,
        version: int,
    ) -> ContentItem:
        """
        Reapply the snapshot recorded for ``version`` as a new version.

        Raises:
            NotFound: If the item or version does not exist
            Forbidden: If caller is neither the author nor an admin
        """
        async with transaction(self.db) as session:
            existing = await self._load_editable(identity, content_id, session=session)

            change = await self.changes.find_one(
                {"content_id": str(existing["_id"]), "version": version}, session=session,
            )
            if not change:
                raise NotFound("Version", str(version))

            snapshot = change["snapshot"]
            changed_fields = [
                field for field in EDITABLE_FIELDS
                if field in snapshot and snapshot[field] != existing.get(field)
            ]

            updated_doc = await self.items.find_one_and_update(
                {"_id": existing["_id"]},
                {
                    "$set": {
                        **{field: snapshot[field] for field in changed_fields},
                        "updated_at": datetime.now(timezone.utc),
                    },
                    "$inc": {"version": 1},
                },
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            await self._record_change(
                updated_doc, ChangeType.RESTORE, identity.user_id, changed_fields, session=session,
            )

        logger.info(
            "Restored content to version %d", version,
            extra={"user_id": identity.user_id, "resource_id": content_id},
        )
        return self._doc_to_item(updated_doc)

    async def generate_draft(
        self,
        identity: Identity,
        request: DraftRequest,
        generator: TextGenerator,
    ) -> ContentItem:
        """
        Draft content through the text generation service and store it.

        Nothing is persisted if generation fails.

        Raises:
            UpstreamFailure: If the generation service fails
            ValidationFailed: If the generated text breaks content constraints
        """
        generated = await generator.generate_text(
            request.prompt,
            {
                "title": request.title,
                "subject": request.subject,
                "key_stage": request.key_stage.value,
                "content_type": request.content_type.value,
            },
        )

        content_create = validate_input(ContentCreate, {
            "title": request.title,
            "body": generated.text,
            "subject": request.subject,
            "key_stage": request.key_stage,
            "content_type": request.content_type,
            "tags": request.tags,
        })
        return await self.create_content(identity, content_create)

"""Tests for ContentService."""
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock
from bson import ObjectId


NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def content_doc(**overrides):
    doc = {
        "_id": ObjectId(),
        "author_id": "user123",
        "title": "Fractions on a number line",
        "body": "Start with halves.",
        "subject": "Maths",
        "key_stage": "ks2",
        "content_type": "lesson",
        "tags": ["fractions"],
        "status": "draft",
        "version": 1,
        "created_at": NOW,
        "updated_at": NOW,
    }
    doc.update(overrides)
    return doc


def content_create(**overrides):
    from app.models.content import ContentCreate

    data = {
        "title": "Fractions on a number line",
        "body": "Start with halves.",
        "subject": "Maths",
        "key_stage": "ks2",
        "content_type": "lesson",
        "tags": ["fractions"],
    }
    data.update(overrides)
    return ContentCreate(**data)


@pytest.mark.asyncio
class TestContentServiceCreate:
    """Tests for creating content."""

    async def test_create_content_starts_draft_v1(self, mock_db, collections, educator):
        from app.services.content_service import ContentService

        collections["content_items"].insert_one.return_value = MagicMock(inserted_id=ObjectId())

        service = ContentService(mock_db)
        item = await service.create_content(educator, content_create())

        assert item.status.value == "draft"
        assert item.version == 1
        assert item.author_id == "user123"

        change = collections["content_changes"].insert_one.call_args.args[0]
        assert change["change_type"] == "create"
        assert change["version"] == 1
        assert change["snapshot"]["title"] == "Fractions on a number line"
        assert change["snapshot"]["key_stage"] == "ks2"


@pytest.mark.asyncio
class TestContentServiceUpdate:
    """Tests for versioned updates."""

    async def test_update_bumps_version_and_records_fields(self, mock_db, collections, educator):
        from app.services.content_service import ContentService
        from app.models.content import ContentUpdate

        doc = content_doc()
        collections["content_items"].find_one.return_value = doc
        collections["content_items"].find_one_and_update.return_value = {
            **doc, "title": "Fractions revisited", "version": 2,
        }

        service = ContentService(mock_db)
        item = await service.update_content(
            educator, str(doc["_id"]),
            ContentUpdate(title="Fractions revisited", subject="Maths"),
        )

        assert item.version == 2
        update = collections["content_items"].find_one_and_update.call_args.args[1]
        assert update["$inc"] == {"version": 1}
        assert "subject" not in update["$set"]

        change = collections["content_changes"].insert_one.call_args.args[0]
        assert change["change_type"] == "update"
        assert change["changed_fields"] == ["title"]
        assert change["version"] == 2

    async def test_update_without_changes_writes_nothing(self, mock_db, collections, educator):
        from app.services.content_service import ContentService
        from app.models.content import ContentUpdate

        doc = content_doc()
        collections["content_items"].find_one.return_value = doc

        service = ContentService(mock_db)
        item = await service.update_content(
            educator, str(doc["_id"]), ContentUpdate(key_stage="ks2", tags=["fractions"]),
        )

        assert item.version == 1
        collections["content_items"].find_one_and_update.assert_not_called()
        collections["content_changes"].insert_one.assert_not_called()

    async def test_update_by_other_user(self, mock_db, collections, other_user):
        from app.services.content_service import ContentService
        from app.models.content import ContentUpdate
        from app.errors import Forbidden

        collections["content_items"].find_one.return_value = content_doc()

        service = ContentService(mock_db)

        with pytest.raises(Forbidden):
            await service.update_content(other_user, str(ObjectId()), ContentUpdate(title="Hijacked"))

    async def test_update_archived_is_not_found(self, mock_db, collections, educator):
        from app.services.content_service import ContentService
        from app.models.content import ContentUpdate
        from app.errors import NotFound

        service = ContentService(mock_db)

        with pytest.raises(NotFound, match="Content not found"):
            await service.update_content(educator, str(ObjectId()), ContentUpdate(title="Revived"))

        query = collections["content_items"].find_one.call_args.args[0]
        assert query["status"] == {"$ne": "archived"}


@pytest.mark.asyncio
class TestContentServiceWorkflow:
    """Tests for status changes and archiving."""

    async def test_submit_for_review_keeps_version(self, mock_db, collections, educator):
        from app.services.content_service import ContentService
        from app.models.content import ContentStatus

        doc = content_doc(version=3)
        collections["content_items"].find_one.return_value = doc
        collections["content_items"].find_one_and_update.return_value = {**doc, "status": "in_review"}

        service = ContentService(mock_db)
        item = await service.change_status(educator, str(doc["_id"]), ContentStatus.IN_REVIEW)

        assert item.status.value == "in_review"
        assert item.version == 3
        update = collections["content_items"].find_one_and_update.call_args.args[1]
        assert "$inc" not in update

        change = collections["content_changes"].insert_one.call_args.args[0]
        assert change["change_type"] == "status"
        assert change["version"] == 3

    async def test_draft_cannot_publish_directly(self, mock_db, collections, educator):
        from app.services.content_service import ContentService
        from app.models.content import ContentStatus
        from app.errors import ValidationFailed

        collections["content_items"].find_one.return_value = content_doc()

        service = ContentService(mock_db)

        with pytest.raises(ValidationFailed) as exc_info:
            await service.change_status(educator, str(ObjectId()), ContentStatus.PUBLISHED)

        assert exc_info.value.violations[0]["message"] == "cannot transition from draft to published"

    async def test_archive_keeps_version_and_records_delete(self, mock_db, collections, educator):
        from app.services.content_service import ContentService

        doc = content_doc(version=4, status="published")
        collections["content_items"].find_one.return_value = doc
        collections["content_items"].find_one_and_update.return_value = {**doc, "status": "archived"}

        service = ContentService(mock_db)
        item = await service.archive_content(educator, str(doc["_id"]))

        assert item.status.value == "archived"
        assert item.version == 4
        change = collections["content_changes"].insert_one.call_args.args[0]
        assert change["change_type"] == "delete"
        assert change["version"] == 4


@pytest.mark.asyncio
class TestContentServiceHistory:
    """Tests for history and restore."""

    async def test_history_readable_after_archive(self, mock_db, collections, educator):
        from app.services.content_service import ContentService
        from app.models.common import PageParams

        doc = content_doc(status="archived")
        content_id = str(doc["_id"])
        collections["content_items"].find_one.return_value = doc
        collections["content_changes"].count_documents.return_value = 1
        collections["content_changes"].find.return_value.to_list.return_value = [{
            "_id": ObjectId(),
            "content_id": content_id,
            "change_type": "delete",
            "version": 1,
            "changed_fields": ["status"],
            "snapshot": {"title": doc["title"]},
            "changed_by": "user123",
            "created_at": NOW,
        }]

        service = ContentService(mock_db)
        items, total = await service.list_history(educator, content_id, PageParams())

        assert total == 1
        assert items[0].change_type.value == "delete"
        query = collections["content_items"].find_one.call_args.args[0]
        assert "status" not in query

    async def test_restore_version(self, mock_db, collections, educator):
        from app.services.content_service import ContentService

        doc = content_doc(title="Fractions revisited", version=2)
        content_id = str(doc["_id"])
        collections["content_items"].find_one.return_value = doc
        collections["content_changes"].find_one.return_value = {
            "content_id": content_id,
            "version": 1,
            "snapshot": {
                "title": "Fractions on a number line",
                "body": "Start with halves.",
                "subject": "Maths",
                "key_stage": "ks2",
                "content_type": "lesson",
                "tags": ["fractions"],
            },
        }
        collections["content_items"].find_one_and_update.return_value = {
            **doc, "title": "Fractions on a number line", "version": 3,
        }

        service = ContentService(mock_db)
        item = await service.restore_version(educator, content_id, 1)

        assert item.version == 3
        assert item.title == "Fractions on a number line"
        update = collections["content_items"].find_one_and_update.call_args.args[1]
        assert update["$set"]["title"] == "Fractions on a number line"
        assert update["$inc"] == {"version": 1}

        change = collections["content_changes"].insert_one.call_args.args[0]
        assert change["change_type"] == "restore"
        assert change["changed_fields"] == ["title"]

    async def test_history_and_restore_uppercase_content_id(self, mock_db, collections, educator):
        """History lookups use the canonical content id, whatever case the caller used."""
        from app.services.content_service import ContentService
        from app.models.common import PageParams

        doc = content_doc(version=2)
        content_id = str(doc["_id"])
        collections["content_items"].find_one.return_value = doc
        collections["content_changes"].find_one.return_value = {
            "content_id": content_id,
            "version": 1,
            "snapshot": {"title": "Fractions on a number line"},
        }
        collections["content_items"].find_one_and_update.return_value = {**doc, "version": 3}

        service = ContentService(mock_db)
        await service.list_history(educator, content_id.upper(), PageParams())
        await service.restore_version(educator, content_id.upper(), 1)

        history_query = collections["content_changes"].count_documents.call_args.args[0]
        assert history_query == {"content_id": content_id}
        version_query = collections["content_changes"].find_one.call_args.args[0]
        assert version_query == {"content_id": content_id, "version": 1}

    async def test_restore_unknown_version(self, mock_db, collections, educator):
        from app.services.content_service import ContentService
        from app.errors import NotFound

        collections["content_items"].find_one.return_value = content_doc()

        service = ContentService(mock_db)

        with pytest.raises(NotFound, match="Version not found"):
            await service.restore_version(educator, str(ObjectId()), 9)


@pytest.mark.asyncio
class TestContentServiceDrafts:
    """Tests for generated drafts."""

    async def test_generate_draft_stores_generated_body(self, mock_db, collections, educator):
        from app.services.content_service import ContentService
        from app.services.text_generation import GeneratedText
        from app.models.content import DraftRequest

        class Generator:
            async def generate_text(self, prompt, options=None):
                self.prompt = prompt
                self.options = options
                return GeneratedText(text="Halves, quarters and eighths.")

        generator = Generator()
        collections["content_items"].insert_one.return_value = MagicMock(inserted_id=ObjectId())

        service = ContentService(mock_db)
        item = await service.generate_draft(
            educator,
            DraftRequest(
                title="Fractions",
                subject="Maths",
                key_stage="ks2",
                content_type="activity",
                prompt="Write a short fractions activity for year 4.",
            ),
            generator,
        )

        assert item.body == "Halves, quarters and eighths."
        assert item.status.value == "draft"
        assert generator.options["key_stage"] == "ks2"

    async def test_generation_failure_stores_nothing(self, mock_db, collections, educator):
        from app.services.content_service import ContentService
        from app.models.content import DraftRequest
        from app.errors import UpstreamFailure

        class Generator:
            async def generate_text(self, prompt, options=None):
                raise UpstreamFailure("Text generation service unavailable")

        service = ContentService(mock_db)

        with pytest.raises(UpstreamFailure):
            await service.generate_draft(
                educator,
                DraftRequest(
                    title="Fractions",
                    subject="Maths",
                    key_stage="ks2",
                    content_type="activity",
                    prompt="Write a short fractions activity for year 4.",
                ),
                Generator(),
            )

        collections["content_items"].insert_one.assert_not_called()

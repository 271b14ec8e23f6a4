"""Tests for shared store orchestration helpers."""
import pytest
from unittest.mock import AsyncMock, MagicMock
from pymongo.errors import OperationFailure


class TestAverageProgress:
    """Tests for the rounded progress mean."""

    def test_empty_is_zero(self):
        from app.utils.orchestration import average_progress

        assert average_progress([]) == 0

    def test_exact_mean(self):
        from app.utils.orchestration import average_progress

        assert average_progress([50, 100]) == 75

    def test_half_rounds_up(self):
        from app.utils.orchestration import average_progress

        assert average_progress([0, 25]) == 13
        assert average_progress([0, 1]) == 1

    def test_below_half_rounds_down(self):
        from app.utils.orchestration import average_progress

        assert average_progress([0, 0, 1]) == 0
        assert average_progress([100, 100, 99]) == 100


class TestEnsureTransition:
    """Tests for status transition checks."""

    def test_allowed(self):
        from app.utils.orchestration import ensure_transition
        from app.models.goal import GOAL_TRANSITIONS, GoalStatus

        ensure_transition(GOAL_TRANSITIONS, GoalStatus.ON_HOLD, GoalStatus.IN_PROGRESS)

    def test_rejected(self):
        from app.utils.orchestration import ensure_transition
        from app.models.content import CONTENT_TRANSITIONS, ContentStatus
        from app.errors import ValidationFailed

        with pytest.raises(ValidationFailed) as exc_info:
            ensure_transition(CONTENT_TRANSITIONS, ContentStatus.ARCHIVED, ContentStatus.DRAFT)

        assert exc_info.value.violations == [{
            "field": "status",
            "message": "cannot transition from archived to draft",
            "type": "invalid_transition",
        }]


class TestParseObjectId:
    """Tests for id parsing."""

    def test_malformed_id_is_not_found(self):
        from app.utils.orchestration import parse_object_id
        from app.errors import NotFound

        with pytest.raises(NotFound, match="Course not found"):
            parse_object_id("nope", "Course")


@pytest.mark.asyncio
class TestPaginate:
    """Tests for page fetching."""

    def collection(self, total, docs):
        collection = MagicMock()
        collection.count_documents = AsyncMock(return_value=total)
        collection.find.return_value.to_list = AsyncMock(return_value=docs)
        return collection

    async def test_fetches_requested_page(self):
        from app.utils.orchestration import paginate
        from app.models.common import PageParams

        collection = self.collection(5, [{"n": 3}, {"n": 4}])

        items, total = await paginate(collection, {}, PageParams(page=2, limit=2), lambda d: d["n"])

        assert items == [3, 4]
        assert total == 5
        assert collection.find.call_args.kwargs["skip"] == 2

    async def test_page_past_end_is_empty_without_query(self):
        from app.utils.orchestration import paginate
        from app.models.common import PageParams

        collection = self.collection(3, [])
        params = PageParams(page=10**18, limit=50)

        items, total = await paginate(collection, {}, params, lambda d: d)

        assert items == []
        assert total == 3
        collection.find.assert_not_called()


@pytest.mark.asyncio
class TestStoreOperation:
    """Tests for the store failure mapping decorator."""

    async def test_driver_error_becomes_upstream_failure(self):
        from app.utils.orchestration import store_operation
        from app.errors import UpstreamFailure

        @store_operation
        async def failing():
            raise OperationFailure("boom")

        with pytest.raises(UpstreamFailure) as exc_info:
            await failing()

        assert exc_info.value.message == "An unexpected error occurred"
        assert "boom" not in exc_info.value.message

    async def test_app_errors_pass_through(self):
        from app.utils.orchestration import store_operation
        from app.errors import NotFound

        @store_operation
        async def missing():
            raise NotFound("Goal")

        with pytest.raises(NotFound):
            await missing()


@pytest.mark.asyncio
class TestTransaction:
    """Tests for the transaction context manager."""

    async def test_disabled_yields_no_session(self):
        from app.utils.orchestration import transaction

        db = MagicMock()
        async with transaction(db) as session:
            assert session is None

        db.client.start_session.assert_not_called()

    async def test_enabled_runs_in_session_transaction(self, monkeypatch):
        from app.config import settings
        from app.utils.orchestration import transaction

        monkeypatch.setattr(settings, "mongodb_transactions", True)

        session = MagicMock()
        session.__aenter__ = AsyncMock(return_value=session)
        session.__aexit__ = AsyncMock(return_value=False)
        txn = MagicMock()
        txn.__aenter__ = AsyncMock(return_value=txn)
        txn.__aexit__ = AsyncMock(return_value=False)
        session.start_transaction.return_value = txn

        db = MagicMock()
        db.client.start_session = AsyncMock(return_value=session)

        async with transaction(db) as yielded:
            assert yielded is session

        session.start_transaction.assert_called_once()
        txn.__aexit__.assert_awaited_once()

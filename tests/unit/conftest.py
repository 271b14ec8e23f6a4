"""Fixtures for service unit tests against mocked collections."""
from collections import defaultdict
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.user import Role
from app.utils.session_guard import Identity


def make_collection():
    """Mock Motor collection: awaitable single-document calls, cursor-returning find."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.find_one_and_update = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    collection.find.return_value.to_list = AsyncMock(return_value=[])
    return collection


@pytest.fixture
def collections():
    """Mock collections keyed by name, created on first access."""
    return defaultdict(make_collection)


@pytest.fixture
def mock_db(collections):
    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections[name]
    return db


@pytest.fixture
def educator():
    return Identity(user_id="user123", role=Role.EDUCATOR)


@pytest.fixture
def other_user():
    return Identity(user_id="user999", role=Role.PARENT)


@pytest.fixture
def admin():
    return Identity(user_id="admin1", role=Role.ADMIN)

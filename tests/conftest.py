"""Pytest configuration and fixtures."""
import os

# Settings are read at import time
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("MONGODB_TRANSACTIONS", "false")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from app.main import app
from app.config import settings
from app.database import database, ensure_indexes
from app.errors import UpstreamFailure
from app.services.text_generation import GeneratedText, get_text_generator


@pytest.fixture(autouse=True)
def standalone_store(monkeypatch):
    """Run service code without multi-document transactions."""
    monkeypatch.setattr(settings, "mongodb_transactions", False)


class FakeTextGenerator:
    """In-process stand-in for the text generation service."""

    def __init__(self):
        self.text = "Generated lesson body."
        self.fail = False
        self.prompts = []

    async def generate_text(self, prompt, options=None):
        self.prompts.append((prompt, options))
        if self.fail:
            raise UpstreamFailure("Text generation service unavailable")
        return GeneratedText(text=self.text)


@pytest.fixture
def text_generator():
    """Fake text generator wired into the app."""
    fake = FakeTextGenerator()
    app.dependency_overrides[get_text_generator] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_text_generator, None)


@pytest_asyncio.fixture
async def test_db():
    """
    Clean test database with indexes.

    Skips the test when no MongoDB server is reachable.
    """
    test_client = AsyncIOMotorClient(settings.mongodb_url, serverSelectionTimeoutMS=1000)
    try:
        await test_client.admin.command("ping")
    except PyMongoError:
        test_client.close()
        pytest.skip("MongoDB not available")

    test_db_name = f"{settings.mongodb_db_name}_test"
    await test_client.drop_database(test_db_name)
    db = test_client[test_db_name]
    await ensure_indexes(db)

    yield db

    # Cleanup: drop test database
    await test_client.drop_database(test_db_name)
    test_client.close()


@pytest_asyncio.fixture
async def app_client(test_db, text_generator):
    """
    Create a test client bound to the test database.

    Yields an async HTTP client for testing.
    """
    # Override the database dependency
    original_db = database.db
    database.db = test_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    # Restore original database
    database.db = original_db


@pytest_asyncio.fixture
async def register_user(app_client, test_db):
    """
    Factory that registers and logs in a user.

    Returns:
        Async callable returning ``(user_id, headers)``; pass
        ``role="admin"`` to promote the account after registration
    """

    async def _register(email, role="educator", password="password123", name="Test User"):
        register_role = "educator" if role == "admin" else role
        response = await app_client.post(
            "/auth/register",
            json={"email": email, "password": password, "name": name, "role": register_role},
        )
        assert response.status_code == 201
        user_id = response.json()["data"]["id"]

        if role == "admin":
            from bson import ObjectId
            await test_db["users"].update_one({"_id": ObjectId(user_id)}, {"$set": {"role": "admin"}})

        login_response = await app_client.post(
            "/auth/login", json={"email": email, "password": password},
        )
        token = login_response.json()["access_token"]
        return user_id, {"Authorization": f"Bearer {token}"}

    return _register

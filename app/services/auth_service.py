"""Authentication service - business logic for user accounts."""
import logging
from datetime import datetime, timezone

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.errors import Conflict, NotFound, Unauthenticated
from app.models.user import Role, User
from app.utils.auth import create_access_token, hash_password, verify_password
from app.utils.orchestration import parse_object_id, store_operation

logger = logging.getLogger(__name__)


class AuthService:
    """Service for handling user authentication."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.users = db["users"]

    def _doc_to_user(self, doc: dict) -> User:
        """Convert database document to User model."""
        return User(
            _id=str(doc["_id"]),
            email=doc["email"],
            name=doc["name"],
            role=doc.get("role", Role.EDUCATOR.value),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    @store_operation
    async def register_user(
        self,
        email: str,
        password: str,
        name: str,
        role: Role = Role.EDUCATOR,
    ) -> User:
        """
        Register a new user.

        Args:
            email: User email address
            password: Plain text password
            name: User's name
            role: Account role

        Returns:
            User object (without password)

        Raises:
            Conflict: If email is already registered
        """
        # Check if email already exists
        existing = await self.users.find_one({"email": email})
        if existing:
            raise Conflict("Email already registered")

        now = datetime.now(timezone.utc)
        user_doc = {
            "email": email,
            "hashed_password": hash_password(password),
            "name": name,
            "role": role.value,
            "created_at": now,
            "updated_at": now,
        }

        try:
            result = await self.users.insert_one(user_doc)
        except DuplicateKeyError:
            # Lost a race against a concurrent registration
            raise Conflict("Email already registered")

        user_doc["_id"] = result.inserted_id
        logger.info("Registered user", extra={"user_id": str(result.inserted_id)})
        return self._doc_to_user(user_doc)

    @store_operation
    async def login(self, email: str, password: str) -> str:
        """
        Login user and return JWT token.

        Args:
            email: User email
            password: Plain text password

        Returns:
            JWT access token

        Raises:
            Unauthenticated: If credentials are invalid
        """
        user_doc = await self.users.find_one({"email": email})
        if not user_doc:
            raise Unauthenticated("Invalid email or password")

        if not verify_password(password, user_doc["hashed_password"]):
            raise Unauthenticated("Invalid email or password")

        return create_access_token(
            user_id=str(user_doc["_id"]),
            role=user_doc.get("role", Role.EDUCATOR.value),
        )

    @store_operation
    async def get_user_by_id(self, user_id: str) -> User:
        """
        Get user by ID.

        Raises:
            NotFound: If user not found or the id is malformed
        """
        object_id = parse_object_id(user_id, "User")

        user_doc = await self.users.find_one({"_id": object_id})
        if not user_doc:
            raise NotFound("User", user_id)

        return self._doc_to_user(user_doc)

    @store_operation
    async def update_role(self, user_id: str, role: Role) -> User:
        """
        Change a user's role.

        Tokens already issued keep the old role until they expire.

        Raises:
            NotFound: If user not found
        """
        object_id = parse_object_id(user_id, "User")

        updated_doc = await self.users.find_one_and_update(
            {"_id": object_id},
            {"$set": {"role": role.value, "updated_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated_doc:
            raise NotFound("User", user_id)

        logger.info("Changed user role to %s", role.value, extra={"user_id": user_id})
        return self._doc_to_user(updated_doc)

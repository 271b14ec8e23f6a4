"""Create the first admin account, or promote an existing user to admin.

Admin cannot be self-assigned through the API, so the first admin is
provisioned here.

Usage:
    python scripts/create_admin.py \\
        --email admin@example.org \\
        --name "Site Admin" \\
        --password <password>
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient

from app.config import settings
from app.database import ensure_indexes
from app.errors import AppError, Conflict
from app.logging_config import setup_logging
from app.models.user import Role
from app.services.auth_service import AuthService

logger = logging.getLogger("create_admin")


async def create_admin(mongodb_url: str, db_name: str, email: str, name: str, password: str) -> bool:
    """
    Ensure an admin account exists for ``email``.

    Returns:
        True on success, False if the account could not be provisioned
    """
    client = AsyncIOMotorClient(mongodb_url)
    db = client[db_name]
    service = AuthService(db)

    try:
        await ensure_indexes(db)
        try:
            user = await service.register_user(email=email, password=password, name=name, role=Role.ADMIN)
            logger.info("Created admin account %s (ID: %s)", user.email, user.id)
        except Conflict:
            existing = await db["users"].find_one({"email": email}, {"_id": 1})
            user = await service.update_role(str(existing["_id"]), Role.ADMIN)
            logger.info("Promoted existing account %s (ID: %s) to admin", user.email, user.id)
        return True
    except AppError as e:
        logger.error("Failed to provision admin: %s", e.message)
        return False
    finally:
        client.close()


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Create or promote an admin account")
    parser.add_argument("--email", required=True, help="Admin email address")
    parser.add_argument("--name", default="Administrator", help="Display name for a new account")
    parser.add_argument("--password", required=True, help="Password for a new account (8+ characters)")
    parser.add_argument(
        "--mongodb-url",
        default=settings.mongodb_url,
        help="MongoDB connection URL",
    )
    parser.add_argument(
        "--db-name",
        default=settings.mongodb_db_name,
        help="Database name",
    )
    args = parser.parse_args()

    setup_logging(settings.log_level, "text")

    if len(args.password) < 8:
        logger.error("Password must be at least 8 characters")
        sys.exit(1)

    ok = await create_admin(args.mongodb_url, args.db_name, args.email, args.name, args.password)
    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

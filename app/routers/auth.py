"""Auth router - API endpoints for accounts and sessions."""
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr

from app.database import get_database
from app.models.common import Envelope
from app.models.user import Role, RoleUpdate, User, UserCreate
from app.services.auth_service import AuthService
from app.utils.responses import success
from app.utils.session_guard import Identity, get_current_identity, require_roles


router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    """Login request model."""

    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    """Token response model."""

    access_token: str
    token_type: str = "bearer"


@router.post("/register", response_model=Envelope[User], status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db=Depends(get_database)):
    """
    Register a new user.

    - Role defaults to educator; admin cannot be self-assigned
    - Returns 409 if the email is already registered
    """
    service = AuthService(db)
    created_user = await service.register_user(
        email=user.email,
        password=user.password,
        name=user.name,
        role=user.role,
    )
    return success(created_user)


@router.post("/login", response_model=TokenResponse)
async def login(login_req: LoginRequest, db=Depends(get_database)):
    """
    Login user and return access token.

    - Returns 401 if credentials are invalid
    """
    service = AuthService(db)
    token = await service.login(
        email=login_req.email,
        password=login_req.password,
    )
    return TokenResponse(access_token=token)


@router.get("/me", response_model=Envelope[User])
async def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db=Depends(get_database),
):
    """
    Get current authenticated user.

    - Returns 404 if the account no longer exists
    """
    service = AuthService(db)
    return success(await service.get_user_by_id(identity.user_id))


@router.patch("/users/{user_id}/role", response_model=Envelope[User])
async def update_user_role(
    user_id: str,
    role_update: RoleUpdate,
    identity: Identity = Depends(require_roles(Role.ADMIN)),
    db=Depends(get_database),
):
    """
    Change a user's role.

    - Admin only
    - Returns 404 if user not found
    """
    service = AuthService(db)
    return success(await service.update_role(user_id=user_id, role=role_update.role))

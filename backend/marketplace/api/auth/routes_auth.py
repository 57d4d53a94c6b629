"""Authentication routes."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_db
from marketplace.domain.admin.models import SELF_SERVICE_ROLES, UserRole
from marketplace.domain.admin.services import UserService, UserRepository
from marketplace.domain.common.errors import ValidationError
from marketplace.infra.db.repositories.user_repo import UserRepositoryImpl
from marketplace.infra.db.repositories.wallet_repo import WalletRepositoryImpl
from marketplace.infra.security.password import verify_password, get_password_hash
from marketplace.infra.security.jwt import create_access_token, create_refresh_token, decode_token

logger = logging.getLogger(__name__)

router = APIRouter()


class SignupRequest(BaseModel):
    """Signup request model."""
    email: EmailStr
    password: str = Field(min_length=8)
    display_name: Optional[str] = Field(default=None, alias="displayName")
    role: UserRole = UserRole.SEEKER

    model_config = {"populate_by_name": True}


class LoginRequest(BaseModel):
    """Login request model."""
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    """Refresh token request model."""
    refresh_token: str = Field(alias="refreshToken")

    model_config = {"populate_by_name": True}


class TokenResponse(BaseModel):
    """Token response model."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user_id: str


def _tokens_for(user_id: str) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(data={"sub": user_id}),
        refresh_token=create_refresh_token(data={"sub": user_id}),
        user_id=user_id,
    )


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """Sign up as a seeker or provider. Staff accounts are provisioned by scripts."""
    if request.role not in SELF_SERVICE_ROLES:
        raise ValidationError("Role must be SEEKER or PROVIDER", field="role")

    user_repo: UserRepository = UserRepositoryImpl(db)
    user_service = UserService(user_repo, WalletRepositoryImpl(db), db)
    user = await user_service.create_user(
        email=request.email,
        password_hash=get_password_hash(request.password),
        role=request.role,
        display_name=request.display_name,
    )
    logger.info("Signup successful for user %s (%s)", user.id, user.role.value)
    return _tokens_for(user.id)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Login user."""
    user_repo: UserRepository = UserRepositoryImpl(db)
    user = await user_repo.get_by_email(request.email)
    if not user or not verify_password(request.password, user.password_hash):
        logger.warning("Login failed for %s", request.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )
    logger.info("Login successful for user %s", user.id)
    return _tokens_for(user.id)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(request: RefreshRequest):
    """Exchange a refresh token for a new token pair."""
    payload = decode_token(request.refresh_token)
    if payload is None or payload.get("type") != "refresh" or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )
    return _tokens_for(payload["sub"])

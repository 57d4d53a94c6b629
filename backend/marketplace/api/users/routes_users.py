"""User profile and staff user-management routes."""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_admin, get_current_user, get_db
from marketplace.api.schemas import CamelModel
from marketplace.domain.admin.models import User
from marketplace.domain.admin.services import UserService
from marketplace.infra.db.repositories.user_repo import UserRepositoryImpl
from marketplace.infra.db.repositories.wallet_repo import WalletRepositoryImpl

router = APIRouter()


class UserResponse(CamelModel):
    id: str
    email: str
    display_name: Optional[str] = None
    role: str
    is_age_verified: bool
    is_active: bool
    created_at: datetime

    @classmethod
    def from_entity(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=user.role.value,
            is_age_verified=user.is_age_verified,
            is_active=user.is_active,
            created_at=user.created_at,
        )


class AgeVerificationRequest(CamelModel):
    is_age_verified: bool


def _service(db: AsyncSession) -> UserService:
    return UserService(UserRepositoryImpl(db), WalletRepositoryImpl(db), db)


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    """Current user's profile."""
    return {"success": True, "user": UserResponse.from_entity(current_user)}


@router.put("/{user_id}/age-verification")
async def set_age_verification(
    user_id: str,
    request: AgeVerificationRequest,
    current_user: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """Record the outcome of an age check (staff only)."""
    user = await _service(db).set_age_verification(current_user, user_id, request.is_age_verified)
    return {"success": True, "user": UserResponse.from_entity(user)}

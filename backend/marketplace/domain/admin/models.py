"""Admin domain models: users and roles."""
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, EmailStr

from marketplace.domain.common.types import generate_id


class UserRole(str, Enum):
    """User role. Fixed at registration."""
    SEEKER = "SEEKER"
    PROVIDER = "PROVIDER"
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


# Roles that may act on any booking (moderation, dispute handling, system messages)
ADMIN_ROLES = frozenset({UserRole.EMPLOYEE, UserRole.MANAGER, UserRole.ADMIN, UserRole.SUPER_ADMIN})

# Roles that may change runtime configuration
CONFIG_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})

# Roles a user may pick at signup; staff accounts are provisioned by scripts
SELF_SERVICE_ROLES = frozenset({UserRole.SEEKER, UserRole.PROVIDER})


class User(BaseModel):
    """User domain model."""

    id: str
    email: EmailStr
    password_hash: str
    display_name: Optional[str] = None
    role: UserRole = UserRole.SEEKER
    is_age_verified: bool = False
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @classmethod
    def create(
        cls,
        email: EmailStr,
        password_hash: str,
        role: UserRole = UserRole.SEEKER,
        display_name: Optional[str] = None,
        is_age_verified: bool = False,
    ) -> "User":
        """Create a new user."""
        now = datetime.utcnow()
        return cls(
            id=generate_id(),
            email=email,
            password_hash=password_hash,
            display_name=display_name,
            role=role,
            is_age_verified=is_age_verified,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

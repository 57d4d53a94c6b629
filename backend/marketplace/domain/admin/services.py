"""Admin domain services."""
import logging
from datetime import datetime
from typing import Optional, Protocol, List
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.domain.admin.models import User, UserRole
from marketplace.domain.common.errors import AuthorizationError, ConflictError, NotFoundError
from marketplace.domain.common.types import generate_id
from marketplace.domain.wallet.models import Wallet
from marketplace.infra.db.repositories.wallet_repo import WalletRepository

logger = logging.getLogger(__name__)


class UserRepository(Protocol):
    """User repository protocol."""

    async def create(self, user: User) -> User:
        """Create a new user."""
        ...

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        ...

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        ...

    async def list_active_by_role(self, role: UserRole) -> List[User]:
        """Active users with a role."""
        ...

    async def set_age_verified(self, user_id: str, verified: bool) -> Optional[User]:
        """Set the age-verification flag."""
        ...


class UserService:
    """User service."""

    def __init__(self, user_repo: UserRepository, wallet_repo: WalletRepository, db: AsyncSession):
        self.user_repo = user_repo
        self.db = db
        self.wallet_repo = wallet_repo

    async def create_user(
        self,
        email: str,
        password_hash: str,
        role: UserRole = UserRole.SEEKER,
        display_name: Optional[str] = None,
        is_age_verified: bool = False,
    ) -> User:
        """Create a user and their empty wallet in one transaction."""
        if await self.user_repo.get_by_email(email):
            raise ConflictError("Email already registered")
        user = User.create(
            email=email,
            password_hash=password_hash,
            role=role,
            display_name=display_name,
            is_age_verified=is_age_verified,
        )
        try:
            user = await self.user_repo.create(user)
            now = datetime.utcnow()
            await self.wallet_repo.create_wallet(
                Wallet(
                    id=generate_id(),
                    user_id=user.id,
                    balance=0,
                    escrow_balance=0,
                    total_earned=0,
                    total_spent=0,
                    created_at=now,
                    updated_at=now,
                )
            )
            await self.db.commit()
        except BaseException:
            await self.db.rollback()
            raise
        logger.info("User created: id=%s role=%s", user.id, user.role.value)
        return user

    async def get_user(self, user_id: str) -> User:
        """Get user by ID."""
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        return await self.user_repo.get_by_email(email)

    async def set_age_verification(self, actor: User, user_id: str, verified: bool) -> User:
        """Staff-only: record the outcome of an age check."""
        if not actor.is_admin:
            raise AuthorizationError("Only staff can change age verification")
        user = await self.user_repo.set_age_verified(user_id, verified)
        if user is None:
            raise NotFoundError("User", user_id)
        await self.db.commit()
        logger.info("Age verification for user %s set to %s by %s", user_id, verified, actor.id)
        return user

"""User repository implementation."""
from typing import Optional, List
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from marketplace.domain.admin.models import User, UserRole
from marketplace.domain.admin.services import UserRepository
from marketplace.infra.db.models.user import UserModel


class UserRepositoryImpl(UserRepository):
    """User repository implementation. Writes flush; UserService commits."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: User) -> User:
        """Create a new user."""
        model = UserModel.from_entity(user)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        result = await self.session.execute(select(UserModel).where(UserModel.id == user_id))
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        result = await self.session.execute(select(UserModel).where(UserModel.email == email))
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def list_active_by_role(self, role: UserRole) -> List[User]:
        """Active users with a role, oldest first (stable order for round-robin)."""
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.role == role.value, UserModel.is_active.is_(True))
            .order_by(UserModel.created_at.asc(), UserModel.id.asc())
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def set_age_verified(self, user_id: str, verified: bool) -> Optional[User]:
        """Set the age-verification flag."""
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(is_age_verified=verified, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            select(UserModel).where(UserModel.id == user_id).execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

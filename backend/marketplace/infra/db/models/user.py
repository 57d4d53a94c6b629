"""User database model."""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime

from marketplace.infra.db.base import Base
from marketplace.domain.admin.models import User as UserEntity, UserRole


class UserModel(Base):
    """User database model."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default=UserRole.SEEKER.value, index=True)
    is_age_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_entity(self) -> UserEntity:
        """Convert to domain entity."""
        return UserEntity(
            id=self.id,
            email=self.email,
            password_hash=self.password_hash,
            display_name=self.display_name,
            role=UserRole(self.role),
            is_age_verified=self.is_age_verified,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity: UserEntity) -> "UserModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            email=entity.email,
            password_hash=entity.password_hash,
            display_name=entity.display_name,
            role=entity.role.value,
            is_age_verified=entity.is_age_verified,
            is_active=entity.is_active,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

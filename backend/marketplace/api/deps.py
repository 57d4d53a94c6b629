"""API dependencies."""
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.infra.db.session import get_db
from marketplace.infra.security.jwt import decode_token
from marketplace.domain.admin.models import User
from marketplace.domain.admin.services import UserRepository
from marketplace.domain.common.errors import AuthorizationError
from marketplace.infra.db.repositories.user_repo import UserRepositoryImpl
from marketplace.infra.db.repositories.booking_repo import BookingRepositoryImpl, MonitorAssignmentRepository
from marketplace.infra.db.repositories.dispute_repo import DisputeRepositoryImpl
from marketplace.infra.db.repositories.message_repo import MessageRepositoryImpl
from marketplace.infra.db.repositories.template_repo import TemplateRepositoryImpl
from marketplace.infra.db.repositories.wallet_repo import WalletRepositoryImpl
from marketplace.domain.booking.services import BookingService
from marketplace.domain.chat.services import ChatService
from marketplace.domain.dispute.services import DisputeService
from marketplace.domain.template.services import TemplateService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/v1/auth/login")


async def user_from_token(token: str, db: AsyncSession):
    """Resolve an access token to an active user, or None. Shared by HTTP and WebSocket auth."""
    payload = decode_token(token) if token else None
    if payload is None:
        return None
    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != "access":
        return None
    user_repo: UserRepository = UserRepositoryImpl(db)
    user = await user_repo.get_by_id(user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Get current authenticated user."""
    user = await user_from_token(token, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    """Current user, required to hold a staff role."""
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user


def build_booking_service(db: AsyncSession) -> BookingService:
    return BookingService(BookingRepositoryImpl(db), WalletRepositoryImpl(db), UserRepositoryImpl(db), db)


def build_dispute_service(db: AsyncSession) -> DisputeService:
    return DisputeService(DisputeRepositoryImpl(db), build_booking_service(db), UserRepositoryImpl(db), db)


def build_chat_service(db: AsyncSession) -> ChatService:
    return ChatService(MessageRepositoryImpl(db), BookingRepositoryImpl(db), MonitorAssignmentRepository(db), db)


def build_template_service(db: AsyncSession) -> TemplateService:
    return TemplateService(TemplateRepositoryImpl(db), build_chat_service(db), db)

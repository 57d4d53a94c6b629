"""Provision a staff account (EMPLOYEE, MANAGER, ADMIN or SUPER_ADMIN).

Staff cannot self-register through /v1/auth/signup.
Usage: python scripts/create_staff_user.py <email> <password> [ROLE] [display name]
"""
import asyncio
import sys

from marketplace.domain.admin.models import ADMIN_ROLES, UserRole
from marketplace.domain.admin.services import UserService
from marketplace.domain.common.errors import ConflictError
from marketplace.infra.db.base import AsyncSessionLocal, engine
from marketplace.infra.db.repositories.user_repo import UserRepositoryImpl
from marketplace.infra.db.repositories.wallet_repo import WalletRepositoryImpl
from marketplace.infra.security.password import get_password_hash


async def create_staff_user(email: str, password: str, role: UserRole, display_name=None) -> None:
    if AsyncSessionLocal is None:
        raise RuntimeError("Database engine is not configured")
    async with AsyncSessionLocal() as session:
        service = UserService(UserRepositoryImpl(session), WalletRepositoryImpl(session), session)
        try:
            user = await service.create_user(
                email=email,
                password_hash=get_password_hash(password),
                role=role,
                display_name=display_name,
                is_age_verified=True,
            )
        except ConflictError:
            print(f"User '{email}' already exists.")
            return
    await engine.dispose()
    print(f"Created {role.value} user {user.id} ({email}).")


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python scripts/create_staff_user.py <email> <password> [ROLE] [display name]")
        sys.exit(1)
    role = UserRole(sys.argv[3].upper()) if len(sys.argv) > 3 else UserRole.EMPLOYEE
    if role not in ADMIN_ROLES:
        print(f"{role.value} is not a staff role.")
        sys.exit(1)
    asyncio.run(create_staff_user(sys.argv[1], sys.argv[2], role, sys.argv[4] if len(sys.argv) > 4 else None))

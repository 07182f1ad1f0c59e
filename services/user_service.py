from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from core.errors import NotFoundError, ValidationError
from models.user import User
from core.logger import logger

class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).filter(User.username == username))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> User:
        """Resolve a username to an active user or raise NotFoundError."""
        if not username or not username.strip():
            raise ValidationError("Username is required")
        user = await self.find_by_username(username.strip())
        if not user or not user.is_active:
            raise NotFoundError(f"User not found with username: {username}")
        return user

    async def get_or_create_user(self, username: str, **kwargs) -> tuple[User, bool]:
        if not username or not username.strip():
            raise ValidationError("Username is required")
        username = username.strip()

        user = await self.find_by_username(username)
        is_new = False

        if not user:
            user = User(username=username, **kwargs)
            user.is_active = True
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
            is_new = True
            logger.info("New user created", username=username)
        elif not user.is_active:
            user.is_active = True
            await self.db.commit()
            logger.info("Inactive user became active", username=username)

        return user, is_new

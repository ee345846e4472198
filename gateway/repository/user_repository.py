"""User repository for database operations."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, OperationalError, DBAPIError

from gateway.common import clock
from gateway.models.user import User
from .exceptions import (
    DuplicateRecordException,
    DatabaseConnectionException,
    DatabaseOperationException,
)


class UserRepository:
    """Repository for User model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, email: str, password_hash: str, password_salt: str) -> User:
        """Create a new user.

        Args:
            email: Normalized email address
            password_hash: Derived password hash
            password_salt: Salt used for the derivation

        Returns:
            Created User object

        Raises:
            DuplicateRecordException: If email already exists
            DatabaseConnectionException: If database connection fails
            DatabaseOperationException: If database operation fails
        """
        try:
            user = User(
                email=email,
                password_hash=password_hash,
                password_salt=password_salt,
                created_at=clock.utcnow(),
            )
            self.session.add(user)
            await self.session.flush()
            await self.session.refresh(user)
            return user
        except IntegrityError as e:
            error_msg = str(e.orig).lower()
            if "unique" in error_msg or "duplicate" in error_msg:
                raise DuplicateRecordException("A user with this email already exists.")
            raise DatabaseOperationException("Failed to create user", detail=str(e.orig))
        except OperationalError as e:
            raise DatabaseConnectionException(detail=str(e.orig))
        except DBAPIError as e:
            raise DatabaseOperationException(detail=str(e.orig))

    async def get_by_email(self, email: str) -> User | None:
        """Get user by normalized email.

        Args:
            email: Lowercase email address

        Returns:
            User object if found, None otherwise
        """
        result = await self.session.execute(
            select(User).where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def exists_by_email(self, email: str) -> bool:
        """Check if email already exists."""
        user = await self.get_by_email(email)
        return user is not None

"""Token repository for database operations."""
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, OperationalError, DBAPIError

from gateway.models.token import Token
from gateway.models.user import User
from gateway.models.workspace import Workspace
from .exceptions import (
    DuplicateRecordException,
    DatabaseConnectionException,
    DatabaseOperationException,
)


TOKEN_LIST_LIMIT = 100


@dataclass
class ActiveTokenRow:
    """Usable token joined to its owner."""

    token_id: UUID
    user_id: UUID
    email: str
    workspace_id: UUID | None


class TokenRepository:
    """Repository for Token model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: UUID,
        name: str,
        token_hash: str,
        token_prefix: str,
        created_at: datetime,
        expires_at: datetime | None,
        workspace_id: UUID | None = None,
    ) -> Token:
        """Create a new token.

        Args:
            user_id: Owner UUID
            name: Token name
            token_hash: SHA-256 hash of the token
            token_prefix: Token prefix for display
            created_at: Issue time
            expires_at: Expiration datetime, None for never
            workspace_id: Optional workspace scope

        Returns:
            Created Token object

        Raises:
            DuplicateRecordException: If token hash already exists
            DatabaseConnectionException: If database connection fails
            DatabaseOperationException: If database operation fails
        """
        try:
            token = Token(
                user_id=user_id,
                workspace_id=workspace_id,
                name=name,
                token_hash=token_hash,
                token_prefix=token_prefix,
                created_at=created_at,
                expires_at=expires_at,
            )
            self.session.add(token)
            await self.session.flush()
            await self.session.refresh(token)
            return token
        except IntegrityError as e:
            error_msg = str(e.orig).lower()
            if "unique" in error_msg and "token_hash" in error_msg:
                raise DuplicateRecordException("Token hash collision detected")
            raise DatabaseOperationException("Failed to create token", detail=str(e.orig))
        except OperationalError as e:
            raise DatabaseConnectionException(detail=str(e.orig))
        except DBAPIError as e:
            raise DatabaseOperationException(detail=str(e.orig))

    async def get_for_user(self, user_id: UUID, token_id: UUID) -> Token | None:
        """Get a token only if it belongs to the user."""
        result = await self.session.execute(
            select(Token).where(and_(Token.id == token_id, Token.user_id == user_id))
        )
        return result.scalar_one_or_none()

    async def find_active_by_hash(self, token_hash: str, now: datetime) -> ActiveTokenRow | None:
        """Find an unrevoked, unexpired token by hash, joined to its owner.

        Args:
            token_hash: Token hash
            now: Reference time for expiry

        Returns:
            ActiveTokenRow if usable, None otherwise
        """
        try:
            result = await self.session.execute(
                select(Token.id, Token.user_id, Token.workspace_id, User.email)
                .join(User, User.id == Token.user_id)
                .where(
                    and_(
                        Token.token_hash == token_hash,
                        Token.revoked_at.is_(None),
                        or_(Token.expires_at.is_(None), Token.expires_at > now),
                    )
                )
                .limit(1)
            )
        except OperationalError as e:
            raise DatabaseConnectionException(detail=str(e.orig))

        row = result.first()
        if row is None:
            return None

        return ActiveTokenRow(
            token_id=row.id,
            user_id=row.user_id,
            email=row.email,
            workspace_id=row.workspace_id,
        )

    async def list_by_user(self, user_id: UUID) -> list[tuple[Token, str | None]]:
        """List a user's tokens, newest first, with the scoped workspace name.

        Returns:
            List of (Token, workspace name or None)
        """
        result = await self.session.execute(
            select(Token, Workspace.name)
            .outerjoin(Workspace, Workspace.id == Token.workspace_id)
            .where(Token.user_id == user_id)
            .order_by(Token.created_at.desc(), Token.id.desc())
            .limit(TOKEN_LIST_LIMIT)
        )
        return [(token, workspace_name) for token, workspace_name in result.all()]

    async def revoke(self, token: Token, revoked_at: datetime) -> Token:
        """Mark a token revoked. Callers check ``revoked_at`` first."""
        token.revoked_at = revoked_at
        await self.session.flush()
        await self.session.refresh(token)
        return token

    async def revoke_active_for_workspace(
        self, user_id: UUID, workspace_id: UUID, revoked_at: datetime
    ) -> int:
        """Revoke every not-yet-revoked token scoped to a workspace.

        Returns:
            Number of tokens revoked
        """
        result = await self.session.execute(
            update(Token)
            .where(
                and_(
                    Token.user_id == user_id,
                    Token.workspace_id == workspace_id,
                    Token.revoked_at.is_(None),
                )
            )
            .values(revoked_at=revoked_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def update_last_used(self, token_id: UUID, used_at: datetime) -> None:
        """Update token's last used timestamp."""
        await self.session.execute(
            update(Token)
            .where(Token.id == token_id)
            .values(last_used_at=used_at)
            .execution_options(synchronize_session=False)
        )

"""Workspace repository for database operations."""
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, OperationalError, DBAPIError

from gateway.models.workspace import Workspace
from .exceptions import (
    DuplicateRecordException,
    DatabaseConnectionException,
    DatabaseOperationException,
)


WORKSPACE_LIST_LIMIT = 100


class WorkspaceRepository:
    """Repository for Workspace model operations.

    Every lookup is scoped by owner; there is no unscoped getter.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: UUID,
        name: str,
        base_url: str,
        username: str,
        secret_ciphertext: str,
        secret_iv: str,
        created_at: datetime,
    ) -> Workspace:
        """Create a new workspace.

        Raises:
            DuplicateRecordException: If the owner already has this name
            DatabaseConnectionException: If database connection fails
            DatabaseOperationException: If database operation fails
        """
        try:
            workspace = Workspace(
                user_id=user_id,
                name=name,
                base_url=base_url,
                username=username,
                secret_ciphertext=secret_ciphertext,
                secret_iv=secret_iv,
                created_at=created_at,
                updated_at=created_at,
            )
            self.session.add(workspace)
            await self.session.flush()
            await self.session.refresh(workspace)
            return workspace
        except IntegrityError as e:
            error_msg = str(e.orig).lower()
            if "unique" in error_msg or "duplicate" in error_msg:
                raise DuplicateRecordException("A workspace with this name already exists.")
            raise DatabaseOperationException("Failed to create workspace", detail=str(e.orig))
        except OperationalError as e:
            raise DatabaseConnectionException(detail=str(e.orig))
        except DBAPIError as e:
            raise DatabaseOperationException(detail=str(e.orig))

    async def get_for_user(self, user_id: UUID, workspace_id: UUID) -> Workspace | None:
        """Get a workspace only if it belongs to the user."""
        result = await self.session.execute(
            select(Workspace).where(
                and_(Workspace.id == workspace_id, Workspace.user_id == user_id)
            )
        )
        return result.scalar_one_or_none()

    async def exists_by_name(self, user_id: UUID, name: str) -> bool:
        result = await self.session.execute(
            select(Workspace.id).where(
                and_(Workspace.user_id == user_id, Workspace.name == name)
            ).limit(1)
        )
        return result.first() is not None

    async def list_by_user(self, user_id: UUID) -> list[Workspace]:
        """List a user's workspaces, most recently updated first."""
        result = await self.session.execute(
            select(Workspace)
            .where(Workspace.user_id == user_id)
            .order_by(Workspace.updated_at.desc())
            .limit(WORKSPACE_LIST_LIMIT)
        )
        return list(result.scalars().all())

    async def update_last_used(self, user_id: UUID, workspace_id: UUID, used_at: datetime) -> None:
        await self.session.execute(
            update(Workspace)
            .where(and_(Workspace.id == workspace_id, Workspace.user_id == user_id))
            .values(last_used_at=used_at)
            .execution_options(synchronize_session=False)
        )

    async def delete(self, user_id: UUID, workspace_id: UUID) -> bool:
        """Delete a workspace.

        Returns:
            True if deleted, False if not found
        """
        result = await self.session.execute(
            delete(Workspace)
            .where(and_(Workspace.id == workspace_id, Workspace.user_id == user_id))
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0

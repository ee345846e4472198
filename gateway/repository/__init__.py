"""Repository layer for database operations."""
from gateway.repository.user_repository import UserRepository
from gateway.repository.token_repository import TokenRepository
from gateway.repository.workspace_repository import WorkspaceRepository

__all__ = [
    "UserRepository",
    "TokenRepository",
    "WorkspaceRepository",
]

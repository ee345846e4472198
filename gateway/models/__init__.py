"""Database models."""
from gateway.models.user import User
from gateway.models.token import Token
from gateway.models.workspace import Workspace

__all__ = [
    "User",
    "Token",
    "Workspace",
]

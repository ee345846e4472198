"""Usecase layer for application services."""
from gateway.usecase.auth_usecase import AuthUsecase
from gateway.usecase.token_usecase import TokenUsecase
from gateway.usecase.workspace_usecase import WorkspaceUsecase

__all__ = [
    "AuthUsecase",
    "TokenUsecase",
    "WorkspaceUsecase",
]

"""Workspace (stored Jira credentials) API endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.common.database import get_db
from gateway.common.responses import success_response
from gateway.domain.schemas import WorkspaceCreateRequest
from gateway.usecase.workspace_usecase import WorkspaceUsecase
from .dependencies import CurrentIdentity

router = APIRouter()


@router.post("/workspaces", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_workspace(
    workspace_request: WorkspaceCreateRequest,
    identity: CurrentIdentity,
    session: AsyncSession = Depends(get_db),
):
    """Store a new set of Jira credentials.

    Args:
        workspace_request: Name, base URL, username and API token
        identity: Current authenticated caller
        session: Database session

    Returns:
        Success response with workspace info (the API token is never returned)
    """
    usecase = WorkspaceUsecase(session)
    workspace = await usecase.create_workspace(identity.user_id, workspace_request)
    return success_response(workspace.model_dump())


@router.get("/workspaces", response_model=dict)
async def list_workspaces(
    identity: CurrentIdentity,
    session: AsyncSession = Depends(get_db),
):
    usecase = WorkspaceUsecase(session)
    workspaces = await usecase.list_workspaces(identity.user_id)
    return success_response(workspaces.model_dump())


@router.delete("/workspaces/{workspace_id}", response_model=dict)
async def delete_workspace(
    workspace_id: UUID,
    identity: CurrentIdentity,
    session: AsyncSession = Depends(get_db),
):
    """Delete a workspace and revoke every token scoped to it.

    Args:
        workspace_id: Workspace UUID
        identity: Current authenticated caller
        session: Database session

    Returns:
        Success response with the number of revoked tokens
    """
    usecase = WorkspaceUsecase(session)
    result = await usecase.delete_workspace(identity.user_id, workspace_id)
    return success_response(result.model_dump())

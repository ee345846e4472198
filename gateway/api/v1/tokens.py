"""Bearer token management API endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.common.database import get_db
from gateway.common.responses import success_response
from gateway.domain.schemas import TokenCreateRequest
from gateway.usecase.token_usecase import TokenUsecase
from .dependencies import CurrentIdentity

router = APIRouter()


@router.post("/tokens", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_token(
    token_request: TokenCreateRequest,
    identity: CurrentIdentity,
    session: AsyncSession = Depends(get_db),
):
    """Issue an additional token, optionally scoped to a workspace.

    Args:
        token_request: Token name, lifetime and workspace
        identity: Current authenticated caller
        session: Database session

    Returns:
        Success response with token info (includes full token, shown only once)
    """
    usecase = TokenUsecase(session)
    token = await usecase.issue_token(
        user_id=identity.user_id,
        email=identity.email,
        token_name=token_request.token_name,
        expires_in_days=token_request.expires_in_days,
        never_expires=token_request.never_expires,
        workspace_id=token_request.workspace_id,
    )
    return success_response(token.model_dump())


@router.get("/tokens", response_model=dict)
async def list_tokens(
    identity: CurrentIdentity,
    session: AsyncSession = Depends(get_db),
):
    """List the caller's tokens, without secrets.

    The token used for this request is flagged with ``is_current``.
    """
    usecase = TokenUsecase(session)
    tokens = await usecase.list_tokens(identity.user_id, current_token_id=identity.token_id)
    return success_response(tokens.model_dump())


@router.delete("/tokens/{token_id}", response_model=dict)
async def revoke_token(
    token_id: UUID,
    identity: CurrentIdentity,
    session: AsyncSession = Depends(get_db),
):
    """Revoke a token. Revoking twice is not an error.

    Args:
        token_id: Token UUID
        identity: Current authenticated caller
        session: Database session

    Returns:
        Success response with the revocation time
    """
    usecase = TokenUsecase(session)
    result = await usecase.revoke_token(identity.user_id, token_id)
    return success_response(result.model_dump())

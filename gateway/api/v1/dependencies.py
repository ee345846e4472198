"""Dependencies for API endpoints (authentication)."""
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.common.database import get_db
from gateway.common.exceptions import UnauthorizedException
from gateway.domain.identity import IdentityContext
from gateway.usecase.auth_usecase import AuthUsecase
from gateway.usecase.edge_usecase import parse_bearer_token


async def get_current_identity(
    authorization: Annotated[str | None, Header()] = None,
    session: AsyncSession = Depends(get_db),
) -> IdentityContext:
    """Get the caller from a vault bearer token.

    Args:
        authorization: Authorization header (Bearer token)
        session: Database session

    Returns:
        IdentityContext of the token owner

    Raises:
        UnauthorizedException: If the token is missing, malformed, revoked or expired
    """
    # Parse HTTP Authorization header (API layer responsibility)
    token = parse_bearer_token(authorization)
    if not token:
        raise UnauthorizedException()

    # Delegate to usecase (business logic layer)
    auth_usecase = AuthUsecase(session)
    return await auth_usecase.authenticate(token)


# Type alias for convenience
CurrentIdentity = Annotated[IdentityContext, Depends(get_current_identity)]

"""Token usecase for bearer token management."""
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from gateway.common import clock
from gateway.common.exceptions import (
    NotFoundException,
    ValidationException,
    ServiceUnavailableException,
    InternalServerException,
)
from gateway.domain.schemas import (
    TokenCreateResponse,
    TokenListItem,
    TokenListResponse,
    TokenRevokeResponse,
    UserSummary,
)
from gateway.domain.token_service import (
    DEFAULT_TOKEN_NAME,
    calculate_expiry_date,
    create_token_info,
    is_token_usable,
)
from gateway.domain.validators import MAX_NAME_LENGTH
from gateway.repository.exceptions import (
    DuplicateRecordException,
    DatabaseConnectionException,
    DatabaseOperationException,
)
from gateway.repository.token_repository import TokenRepository
from gateway.repository.workspace_repository import WorkspaceRepository

logger = logging.getLogger(__name__)


class TokenUsecase:
    """Usecase for bearer token operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.token_repo = TokenRepository(session)
        self.workspace_repo = WorkspaceRepository(session)

    async def issue_token(
        self,
        user_id: UUID,
        email: str,
        token_name: str | None = None,
        expires_in_days: float | None = None,
        never_expires: bool = False,
        workspace_id: UUID | None = None,
    ) -> TokenCreateResponse:
        """Issue a new bearer token.

        Args:
            user_id: Owner UUID
            email: Owner email (echoed back)
            token_name: Label, defaults to "default"
            expires_in_days: 0 for never, omitted for 30, clamped to 1-365
            never_expires: Overrides expires_in_days
            workspace_id: Optional workspace the token is scoped to

        Returns:
            TokenCreateResponse with full token (shown only once)

        Raises:
            ValidationException: If name or lifetime is invalid
            NotFoundException: If workspace doesn't belong to user
        """
        name = (token_name or "").strip() or DEFAULT_TOKEN_NAME
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationException(f"token_name must be {MAX_NAME_LENGTH} characters or fewer.")

        created_at = clock.utcnow()
        try:
            expires_at = calculate_expiry_date(expires_in_days, never_expires, now=created_at)
        except ValueError as e:
            raise ValidationException(str(e))

        # Retry token generation if hash collision occurs (extremely rare)
        max_retries = 3
        token = None
        token_info = None

        for attempt in range(max_retries):
            token_info = create_token_info()

            try:
                async with self.session.begin():
                    if workspace_id is not None:
                        workspace = await self.workspace_repo.get_for_user(user_id, workspace_id)
                        if not workspace:
                            raise NotFoundException("Workspace not found for this user.")

                    token = await self.token_repo.create(
                        user_id=user_id,
                        workspace_id=workspace_id,
                        name=name,
                        token_hash=token_info.token_hash,
                        token_prefix=token_info.token_prefix,
                        created_at=created_at,
                        expires_at=expires_at,
                    )
                break
            except DuplicateRecordException:
                if attempt == max_retries - 1:
                    raise InternalServerException(
                        "Failed to generate unique token after multiple attempts"
                    )
                continue
            except DatabaseConnectionException:
                raise ServiceUnavailableException()
            except DatabaseOperationException:
                raise InternalServerException("Failed to create token")

        if not token or not token_info:
            raise InternalServerException("Failed to create token")

        logger.info(f"Issued token {token.id} ({token.token_prefix}) for user {user_id}")

        return TokenCreateResponse(
            token=token_info.full_token,  # Only returned here
            token_id=token.id,
            workspace_id=token.workspace_id,
            token_name=token.name,
            token_prefix=token.token_prefix,
            expires_at=token.expires_at,
            created_at=token.created_at,
            user=UserSummary(id=user_id, email=email),
        )

    async def list_tokens(self, user_id: UUID, current_token_id: UUID | None = None) -> TokenListResponse:
        """List the caller's own tokens (without secrets).

        Args:
            user_id: User UUID
            current_token_id: Token used for this request, flagged in the list

        Returns:
            TokenListResponse, newest first
        """
        async with self.session.begin():
            rows = await self.token_repo.list_by_user(user_id)

        now = clock.utcnow()
        token_items = [
            TokenListItem(
                id=token.id,
                workspace_id=token.workspace_id,
                workspace_name=workspace_name,
                token_name=token.name,
                token_prefix=token.token_prefix,
                created_at=token.created_at,
                last_used_at=token.last_used_at,
                expires_at=token.expires_at,
                revoked_at=token.revoked_at,
                is_active=is_token_usable(token.revoked_at, token.expires_at, now),
                is_current=current_token_id is not None and token.id == current_token_id,
            )
            for token, workspace_name in rows
        ]

        return TokenListResponse(
            current_token_id=current_token_id,
            tokens=token_items,
            total=len(token_items),
        )

    async def revoke_token(self, user_id: UUID, token_id: UUID) -> TokenRevokeResponse:
        """Revoke one of the caller's tokens. Idempotent.

        Raises:
            NotFoundException: If the token is not the caller's
        """
        async with self.session.begin():
            token = await self.token_repo.get_for_user(user_id, token_id)

            if not token:
                raise NotFoundException("Token not found for this user.")

            if token.revoked_at is not None:
                return TokenRevokeResponse(
                    token_id=token.id,
                    revoked_at=token.revoked_at,
                    already_revoked=True,
                )

            token = await self.token_repo.revoke(token, clock.utcnow())

        logger.info(f"Revoked token {token.id} for user {user_id}")
        return TokenRevokeResponse(
            token_id=token.id,
            revoked_at=token.revoked_at,
            already_revoked=False,
        )

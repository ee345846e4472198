"""Workspace usecase: encrypted Jira credentials per user."""
import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from gateway.common import clock
from gateway.common.config import settings
from gateway.common.exceptions import (
    ConfigurationException,
    ConflictException,
    NotFoundException,
    ValidationException,
    ServiceUnavailableException,
    InternalServerException,
)
from gateway.domain.credential_crypto import (
    CredentialDecryptionError,
    decrypt_secret,
    derive_key,
    encrypt_secret,
)
from gateway.domain.identity import BackendCredentials
from gateway.domain.schemas import (
    WorkspaceCreateRequest,
    WorkspaceDeleteResponse,
    WorkspaceListResponse,
    WorkspaceResponse,
)
from gateway.domain.validators import (
    MAX_NAME_LENGTH,
    MIN_BACKEND_SECRET_LENGTH,
    is_valid_email,
    normalize_base_url,
    normalize_email,
)
from gateway.repository.exceptions import (
    DuplicateRecordException,
    DatabaseConnectionException,
    DatabaseOperationException,
)
from gateway.repository.token_repository import TokenRepository
from gateway.repository.workspace_repository import WorkspaceRepository

logger = logging.getLogger(__name__)


class WorkspaceUsecase:
    """Usecase for workspace operations."""

    def __init__(self, session: AsyncSession, encryption_secret: str | None = None):
        self.session = session
        self.workspace_repo = WorkspaceRepository(session)
        self.token_repo = TokenRepository(session)
        self.encryption_secret = (
            encryption_secret if encryption_secret is not None else settings.workspace_encryption_key
        )

    def _get_key(self) -> bytes | None:
        return derive_key(self.encryption_secret)

    async def create_workspace(self, user_id: UUID, request: WorkspaceCreateRequest) -> WorkspaceResponse:
        """Validate, encrypt and store a set of Jira credentials.

        Args:
            user_id: Owner UUID
            request: Workspace creation request

        Returns:
            WorkspaceResponse (never includes the secret)

        Raises:
            ConfigurationException: If the encryption key is not configured
            ValidationException: If any field is invalid
            ConflictException: If the owner already has a workspace with this name
        """
        key = self._get_key()
        if key is None:
            raise ConfigurationException(
                "Workspace encryption is not configured. Set WORKSPACE_ENCRYPTION_KEY."
            )

        name = (request.name or "").strip()
        base_url = normalize_base_url(request.base_url)
        username = normalize_email(request.username)
        api_token = (request.api_token or "").strip()

        if not name or len(name) > MAX_NAME_LENGTH:
            raise ValidationException(
                f"name is required and must be {MAX_NAME_LENGTH} characters or fewer."
            )

        if not base_url:
            raise ValidationException("base_url must be a valid http(s) URL.")

        if not is_valid_email(username):
            raise ValidationException("username must be a valid email.")

        if len(api_token) < MIN_BACKEND_SECRET_LENGTH:
            raise ValidationException(
                f"api_token is required and must be at least {MIN_BACKEND_SECRET_LENGTH} characters."
            )

        encrypted = encrypt_secret(key, api_token)

        try:
            async with self.session.begin():
                if await self.workspace_repo.exists_by_name(user_id, name):
                    raise ConflictException("A workspace with this name already exists.")

                workspace = await self.workspace_repo.create(
                    user_id=user_id,
                    name=name,
                    base_url=base_url,
                    username=username,
                    secret_ciphertext=encrypted.ciphertext,
                    secret_iv=encrypted.iv,
                    created_at=clock.utcnow(),
                )
        except DuplicateRecordException as e:
            raise ConflictException(e.message)
        except DatabaseConnectionException:
            raise ServiceUnavailableException()
        except DatabaseOperationException:
            raise InternalServerException("Failed to create workspace")

        logger.info(f"Created workspace {workspace.id} for user {user_id}")
        return WorkspaceResponse.model_validate(workspace)

    async def list_workspaces(self, user_id: UUID) -> WorkspaceListResponse:
        async with self.session.begin():
            workspaces = await self.workspace_repo.list_by_user(user_id)

        items = [WorkspaceResponse.model_validate(workspace) for workspace in workspaces]
        return WorkspaceListResponse(workspaces=items, total=len(items))

    async def get_workspace_credentials(self, user_id: UUID, workspace_id: UUID) -> BackendCredentials | None:
        """Decrypt a workspace's credentials for its owner.

        Missing key, missing record, wrong owner and decryption failure all
        return None.

        Args:
            user_id: Caller UUID
            workspace_id: Workspace UUID

        Returns:
            BackendCredentials, or None
        """
        key = self._get_key()
        if key is None:
            logger.warning("Workspace credentials requested but WORKSPACE_ENCRYPTION_KEY is not configured")
            return None

        try:
            async with self.session.begin():
                workspace = await self.workspace_repo.get_for_user(user_id, workspace_id)
                if not workspace:
                    return None

                try:
                    api_token = decrypt_secret(key, workspace.secret_ciphertext, workspace.secret_iv)
                except CredentialDecryptionError:
                    logger.warning(f"Could not decrypt credentials for workspace {workspace_id}")
                    return None

                await self.workspace_repo.update_last_used(user_id, workspace_id, clock.utcnow())
        except DatabaseConnectionException:
            raise ServiceUnavailableException()

        return BackendCredentials(
            base_url=workspace.base_url,
            username=workspace.username,
            api_token=api_token,
            workspace_id=workspace.id,
        )

    async def delete_workspace(self, user_id: UUID, workspace_id: UUID) -> WorkspaceDeleteResponse:
        """Revoke the workspace's tokens, then delete it.

        Both statements share one transaction; revocation is issued first.

        Raises:
            NotFoundException: If the workspace is not the caller's
        """
        async with self.session.begin():
            workspace = await self.workspace_repo.get_for_user(user_id, workspace_id)
            if not workspace:
                raise NotFoundException("Workspace not found for this user.")

            revoked_count = await self.token_repo.revoke_active_for_workspace(
                user_id, workspace_id, clock.utcnow()
            )
            await self.workspace_repo.delete(user_id, workspace_id)

        logger.info(
            f"Deleted workspace {workspace_id} for user {user_id}, revoked {revoked_count} token(s)"
        )
        return WorkspaceDeleteResponse(workspace_id=workspace_id, revoked_token_count=revoked_count)

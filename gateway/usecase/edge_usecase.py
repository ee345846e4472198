"""Edge usecase: authenticate /mcp callers and forward signed requests."""
import hmac
import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from gateway.common.config import Settings, settings
from gateway.domain.identity import IDENTITY_HEADERS, BackendCredentials, IdentityContext
from gateway.domain.internal_request import InternalRequest, InternalResponse
from gateway.domain.signing import SIGNATURE_HEADERS, resolve_internal_signing_secret, sign_request
from gateway.session.jsonrpc import INTERNAL_ERROR, UNAUTHORIZED, error_response
from gateway.usecase.auth_usecase import AuthUsecase
from gateway.usecase.workspace_usecase import WorkspaceUsecase

logger = logging.getLogger(__name__)


WORKSPACE_PARTITION_PREFIX = "workspace:"
UNAUTHORIZED_HEADERS = {"www-authenticate": "Bearer"}

# Never forwarded as received
STRIPPED_HEADERS = (
    *IDENTITY_HEADERS,
    *SIGNATURE_HEADERS,
    "authorization",
    "cookie",
    "host",
    "content-length",
)


class Dispatcher(Protocol):
    async def dispatch(self, partition: str, request: InternalRequest) -> InternalResponse:
        ...


def parse_bearer_token(authorization: str | None) -> str | None:
    """Token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def matches_static_token(token: str, static_tokens: list[str]) -> bool:
    """Constant-time comparison against every configured static token."""
    matched = False
    for candidate in static_tokens:
        if hmac.compare_digest(token.encode("utf-8"), candidate.encode("utf-8")):
            matched = True
    return matched


def partition_for(identity: IdentityContext, default_partition: str) -> str:
    if identity.workspace_id is not None:
        return f"{WORKSPACE_PARTITION_PREFIX}{identity.workspace_id}"
    return default_partition


class EdgeUsecase:
    """Usecase for the public protocol endpoint."""

    def __init__(self, session: AsyncSession, dispatcher: Dispatcher, config: Settings = settings):
        self.session = session
        self.dispatcher = dispatcher
        self.config = config

    async def authorize(
        self, authorization: str | None
    ) -> tuple[IdentityContext, BackendCredentials | None] | None:
        """Resolve the caller and, for workspace tokens, their Jira credentials.

        Returns:
            (identity, credentials) or None when the caller is not authorized
        """
        token = parse_bearer_token(authorization)
        if not token:
            return None

        if matches_static_token(token, self.config.static_tokens):
            return IdentityContext.static(), None

        identity = await AuthUsecase(self.session).validate_token(token)
        if identity is None:
            return None

        if identity.workspace_id is None:
            return identity, None

        workspace_usecase = WorkspaceUsecase(
            self.session, encryption_secret=self.config.workspace_encryption_key
        )
        credentials = await workspace_usecase.get_workspace_credentials(
            identity.user_id, identity.workspace_id
        )
        if credentials is None:
            logger.warning(f"Token {identity.token_id} is bound to an unusable workspace")
            return None

        return identity, credentials

    async def forward(self, request: InternalRequest, authorization: str | None) -> InternalResponse:
        """Authenticate, rewrite, sign and dispatch one /mcp request."""
        secret = resolve_internal_signing_secret(self.config)
        if not secret:
            logger.error("No internal signing secret configured; refusing /mcp traffic")
            return error_response(500, INTERNAL_ERROR, "Server misconfigured: internal signing secret is not set.")

        authorized = await self.authorize(authorization)
        if authorized is None:
            return error_response(401, UNAUTHORIZED, "Unauthorized", headers=UNAUTHORIZED_HEADERS)

        identity, credentials = authorized

        set_headers = identity.claim_headers()
        if credentials is not None:
            set_headers.update(credentials.headers())

        forwarded = request.with_headers(set_headers, remove=STRIPPED_HEADERS)
        signed = sign_request(forwarded, secret)

        partition = partition_for(identity, self.config.default_partition)
        return await self.dispatcher.dispatch(partition, signed)

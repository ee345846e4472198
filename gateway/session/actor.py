"""Per-partition session actor.

An actor owns every protocol session of one partition. All of its work runs
under one ``asyncio.Lock``, so requests for the same partition are handled
one at a time and in arrival order.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from gateway.domain.identity import (
    AUTH_TOKEN_ID_HEADER,
    AUTH_USER_EMAIL_HEADER,
    AUTH_USER_ID_HEADER,
    AUTH_WORKSPACE_ID_HEADER,
    CREDENTIAL_QUERY_PARAMS,
    JIRA_API_TOKEN_HEADER,
    JIRA_BASE_URL_HEADER,
    JIRA_USERNAME_HEADER,
    BackendCredentials,
)
from gateway.domain.internal_request import SESSION_ID_HEADER, InternalRequest, InternalResponse
from gateway.domain.signing import verify_request_signature
from gateway.services.jira_client import JiraClient
from gateway.session.jsonrpc import (
    BAD_REQUEST,
    FORBIDDEN,
    INTERNAL_ERROR,
    PARSE_ERROR,
    SESSION_NOT_FOUND,
    UNAUTHORIZED,
    error_response,
)
from gateway.session.protocol import create_server
from gateway.session.transport import SessionTransport

logger = logging.getLogger(__name__)


MCP_PATH = "/mcp"
UNKNOWN_SESSION_MESSAGE = "Unknown or expired session ID. Re-run initialize to create a new session."
FORBIDDEN_MESSAGE = "Session does not belong to the current caller."
MISSING_CREDENTIALS_MESSAGE = (
    "Missing Jira credentials. Provide X-Jira-Base-Url, X-Jira-Username and "
    "X-Jira-Api-Token headers (or jiraBaseUrl, jiraUsername and jiraApiToken query parameters)."
)

# Compared on every session-bound request
OWNERSHIP_FIELDS = ("user_id", "token_id", "workspace_id")

ClientFactory = Callable[[BackendCredentials], JiraClient]


@dataclass(frozen=True)
class IdentityClaims:
    """Identity claims read once from a verified request."""

    user_id: str | None = None
    email: str | None = None
    token_id: str | None = None
    workspace_id: str | None = None

    @classmethod
    def from_request(cls, request: InternalRequest) -> "IdentityClaims":
        return cls(
            user_id=request.header(AUTH_USER_ID_HEADER),
            email=request.header(AUTH_USER_EMAIL_HEADER),
            token_id=request.header(AUTH_TOKEN_ID_HEADER),
            workspace_id=request.header(AUTH_WORKSPACE_ID_HEADER),
        )

    def conflicts_with(self, other: "IdentityClaims") -> bool:
        """True if any populated ownership field here differs from ``other``."""
        for name in OWNERSHIP_FIELDS:
            owned = getattr(self, name)
            if owned is not None and owned != getattr(other, name):
                return True
        return False


@dataclass
class SessionRecord:
    transport: SessionTransport
    client: JiraClient
    owner: IdentityClaims

    async def close(self) -> None:
        await self.transport.close()
        await self.client.aclose()


def is_initialize_request(message: Any) -> bool:
    return isinstance(message, dict) and message.get("method") == "initialize" and "id" in message


def credentials_from_request(request: InternalRequest) -> BackendCredentials | None:
    """Jira credentials from headers, falling back to query parameters."""
    values = {
        name: request.header_or_query(name, CREDENTIAL_QUERY_PARAMS[name])
        for name in (JIRA_BASE_URL_HEADER, JIRA_USERNAME_HEADER, JIRA_API_TOKEN_HEADER)
    }
    if not all(values.values()):
        return None

    return BackendCredentials(
        base_url=values[JIRA_BASE_URL_HEADER],
        username=values[JIRA_USERNAME_HEADER],
        api_token=values[JIRA_API_TOKEN_HEADER],
    )


def _completed_handshake(response: InternalResponse, session_id: str) -> bool:
    if response.status_code != 200 or response.headers.get(SESSION_ID_HEADER) != session_id:
        return False
    payload = response.json_body()
    return isinstance(payload, dict) and "result" in payload


class SessionActor:
    """Owns the sessions of one partition."""

    def __init__(
        self,
        partition: str,
        signing_secret: Callable[[], str | None],
        client_factory: ClientFactory = JiraClient.from_credentials,
    ):
        self.partition = partition
        self._signing_secret = signing_secret
        self._client_factory = client_factory
        self._sessions: dict[str, SessionRecord] = {}
        self._lock = asyncio.Lock()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: str) -> SessionRecord | None:
        return self._sessions.get(session_id)

    async def handle(self, request: InternalRequest) -> InternalResponse:
        async with self._lock:
            try:
                return await self._handle(request)
            except Exception:
                logger.exception(f"Unhandled error in session partition {self.partition}")
                return error_response(500, INTERNAL_ERROR, "Internal server error")

    async def _handle(self, request: InternalRequest) -> InternalResponse:
        if request.path != MCP_PATH:
            return error_response(404, BAD_REQUEST, "Not found.")

        secret = self._signing_secret()
        if not secret:
            logger.error("Internal signing secret is not configured; rejecting session request")
            return error_response(500, INTERNAL_ERROR, "Internal signing secret is not configured.")

        if not verify_request_signature(request, secret):
            logger.warning(f"Rejected unsigned or invalid internal request for partition {self.partition}")
            return error_response(401, UNAUTHORIZED, "Unauthorized")

        claims = IdentityClaims.from_request(request)

        body = None
        if request.method == "POST":
            try:
                body = json.loads(request.body)
            except ValueError:
                return error_response(400, PARSE_ERROR, "Parse error: Invalid JSON")

        session_id = request.session_id()
        if session_id:
            record = self._sessions.get(session_id)
            if record is None:
                return error_response(404, SESSION_NOT_FOUND, UNKNOWN_SESSION_MESSAGE)

            if record.owner.conflicts_with(claims):
                logger.warning(f"Rejected cross-owner access to session {session_id}")
                return error_response(403, FORBIDDEN, FORBIDDEN_MESSAGE)

            if request.method == "GET":
                # JSON response mode offers no server-initiated stream
                return error_response(405, BAD_REQUEST, "Method not allowed.", headers={"allow": "POST, DELETE"})

            response = await record.transport.handle(request)
            if record.transport.is_terminated:
                self._sessions.pop(session_id, None)
                await record.close()
                logger.info(f"Session {session_id} closed by client")
            return response

        if request.method != "POST" or not is_initialize_request(body):
            return error_response(400, BAD_REQUEST, "Bad Request: No valid session ID provided")

        credentials = credentials_from_request(request)
        if credentials is None:
            return error_response(400, BAD_REQUEST, MISSING_CREDENTIALS_MESSAGE)

        return await self._start_session(request, credentials, claims)

    async def _start_session(
        self,
        request: InternalRequest,
        credentials: BackendCredentials,
        claims: IdentityClaims,
    ) -> InternalResponse:
        client = self._client_factory(credentials)
        record = SessionRecord(transport=SessionTransport(create_server(client)), client=client, owner=claims)
        session_id = record.transport.session_id
        registered = False

        try:
            await record.transport.start()
            response = await record.transport.handle(request)

            if _completed_handshake(response, session_id):
                self._sessions[session_id] = record
                registered = True
                logger.info(f"Session {session_id} initialized in partition {self.partition}")
            return response
        finally:
            if not registered:
                await record.close()

    async def close_all(self) -> None:
        """Close every session; used when the actor is restarted or shut down."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for record in sessions:
            await record.close()

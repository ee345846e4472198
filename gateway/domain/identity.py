"""Caller identity and resolved backend credentials.

Both values are built once at a trust boundary and passed along explicitly.
They travel across the internal hop as the headers below, which are covered
by the internal signature.
"""
from dataclasses import dataclass
from typing import Literal
from uuid import UUID


# Identity claim headers (set by the edge only)
AUTH_USER_ID_HEADER = "x-auth-user-id"
AUTH_USER_EMAIL_HEADER = "x-auth-user-email"
AUTH_TOKEN_ID_HEADER = "x-auth-token-id"
AUTH_WORKSPACE_ID_HEADER = "x-auth-workspace-id"

IDENTITY_HEADERS = (
    AUTH_USER_ID_HEADER,
    AUTH_USER_EMAIL_HEADER,
    AUTH_TOKEN_ID_HEADER,
    AUTH_WORKSPACE_ID_HEADER,
)

# Backend credential headers (client supplied, or resolved from a workspace)
JIRA_BASE_URL_HEADER = "x-jira-base-url"
JIRA_USERNAME_HEADER = "x-jira-username"
JIRA_API_TOKEN_HEADER = "x-jira-api-token"

CREDENTIAL_HEADERS = (
    JIRA_BASE_URL_HEADER,
    JIRA_USERNAME_HEADER,
    JIRA_API_TOKEN_HEADER,
)

# Query parameter fallbacks for clients that cannot set headers
CREDENTIAL_QUERY_PARAMS = {
    JIRA_BASE_URL_HEADER: "jiraBaseUrl",
    JIRA_USERNAME_HEADER: "jiraUsername",
    JIRA_API_TOKEN_HEADER: "jiraApiToken",
}


@dataclass(frozen=True)
class IdentityContext:
    """Authenticated caller.

    ``static`` identities come from the shared token list and carry no user.
    """

    kind: Literal["static", "user"]
    user_id: UUID | None = None
    email: str | None = None
    token_id: UUID | None = None
    workspace_id: UUID | None = None

    @classmethod
    def static(cls) -> "IdentityContext":
        return cls(kind="static")

    @property
    def is_user(self) -> bool:
        return self.kind == "user"

    def claim_headers(self) -> dict[str, str]:
        """Identity claims for the internal hop (empty for static callers)."""
        if not self.is_user:
            return {}

        headers = {
            AUTH_USER_ID_HEADER: str(self.user_id),
            AUTH_USER_EMAIL_HEADER: self.email or "",
            AUTH_TOKEN_ID_HEADER: str(self.token_id),
        }
        if self.workspace_id is not None:
            headers[AUTH_WORKSPACE_ID_HEADER] = str(self.workspace_id)
        return headers


@dataclass(frozen=True)
class BackendCredentials:
    """Decrypted Jira credentials."""

    base_url: str
    username: str
    api_token: str
    workspace_id: UUID | None = None

    def headers(self) -> dict[str, str]:
        return {
            JIRA_BASE_URL_HEADER: self.base_url,
            JIRA_USERNAME_HEADER: self.username,
            JIRA_API_TOKEN_HEADER: self.api_token,
        }

    def __repr__(self) -> str:
        return f"BackendCredentials(base_url={self.base_url!r}, username={self.username!r}, api_token='***')"

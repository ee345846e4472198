"""Async Jira Cloud REST client used by the protocol tools."""
import logging
from urllib.parse import quote

import httpx

from gateway.domain.identity import BackendCredentials

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RESULTS = 50


class JiraApiError(Exception):
    """Jira answered with an error status, or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"Jira API error {self.status_code}: {self.message}"


def text_document(text: str) -> dict:
    """Wrap plain text in a single-paragraph Atlassian document."""
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": text}],
            }
        ],
    }


class JiraClient:
    """Thin wrapper over the Jira REST v3 API with basic auth."""

    def __init__(
        self,
        base_url: str,
        username: str,
        api_token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=httpx.BasicAuth(username, api_token),
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_credentials(
        cls,
        credentials: BackendCredentials,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "JiraClient":
        return cls(
            credentials.base_url,
            credentials.username,
            credentials.api_token,
            transport=transport,
        )

    async def _request(self, method: str, path: str, json: dict | None = None):
        logger.debug(f"Calling Jira {method} {self.base_url}{path}")
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise JiraApiError(f"Failed to reach Jira: {e}") from e

        if response.is_error:
            raise JiraApiError(_error_message(response), status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get_projects(self) -> list[dict]:
        return await self._request("GET", "/rest/api/3/project")

    async def get_issue(self, issue_key: str) -> dict:
        return await self._request("GET", f"/rest/api/3/issue/{_key(issue_key)}")

    async def search_issues(self, jql: str, max_results: int = DEFAULT_MAX_RESULTS) -> dict:
        return await self._request(
            "POST",
            "/rest/api/3/search/jql",
            json={"jql": jql, "maxResults": max_results},
        )

    async def add_comment(self, issue_key: str, comment: str) -> dict:
        text = comment.strip()
        if not text:
            raise JiraApiError("Comment text cannot be empty")

        return await self._request(
            "POST",
            f"/rest/api/3/issue/{_key(issue_key)}/comment",
            json={"body": text_document(text)},
        )

    async def get_issue_transitions(self, issue_key: str) -> dict:
        return await self._request("GET", f"/rest/api/3/issue/{_key(issue_key)}/transitions")

    async def transition_issue(self, issue_key: str, transition_id: str) -> None:
        await self._request(
            "POST",
            f"/rest/api/3/issue/{_key(issue_key)}/transitions",
            json={"transition": {"id": transition_id}},
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def _key(issue_key: str) -> str:
    return quote(issue_key.strip(), safe="")


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or "Unknown error"

    if isinstance(data, dict):
        messages = data.get("errorMessages") or []
        if messages:
            return str(messages[0])
        errors = data.get("errors") or {}
        if errors:
            return "; ".join(f"{field}: {message}" for field, message in errors.items())
    return response.reason_phrase or "Unknown error"

"""Transport-neutral request/response values for the edge -> session hop."""
import json
from dataclasses import dataclass, field, replace
from typing import Any, Iterable
from urllib.parse import parse_qsl


SESSION_ID_HEADER = "mcp-session-id"
LEGACY_SESSION_ID_HEADER = "x-mcp-session-id"
SESSION_ID_QUERY_PARAM = "sessionId"


@dataclass(frozen=True)
class InternalRequest:
    """An HTTP request as seen on the internal hop.

    Header names are stored lowercase. ``query_string`` is the raw query
    without the leading ``?``.
    """

    method: str
    path: str
    query_string: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        query_string: str = "",
        headers: Iterable[tuple[str, str]] | dict[str, str] | None = None,
        body: bytes = b"",
    ) -> "InternalRequest":
        items = headers.items() if isinstance(headers, dict) else (headers or [])
        return cls(
            method=method.upper(),
            path=path,
            query_string=query_string,
            headers={name.lower(): value for name, value in items},
            body=body,
        )

    def header(self, name: str) -> str | None:
        """Trimmed header value, None when absent or blank."""
        value = self.headers.get(name.lower())
        if value is None:
            return None
        return value.strip() or None

    def query_param(self, name: str) -> str | None:
        """Trimmed first query value, None when absent or blank."""
        for key, value in parse_qsl(self.query_string, keep_blank_values=True):
            if key == name:
                return value.strip() or None
        return None

    def header_or_query(self, header_name: str, query_name: str) -> str | None:
        return self.header(header_name) or self.query_param(query_name)

    def session_id(self) -> str | None:
        """Session id from header first, then the ``sessionId`` query parameter."""
        return (
            self.header(SESSION_ID_HEADER)
            or self.header(LEGACY_SESSION_ID_HEADER)
            or self.query_param(SESSION_ID_QUERY_PARAM)
        )

    def with_headers(
        self,
        set_headers: dict[str, str] | None = None,
        remove: Iterable[str] = (),
    ) -> "InternalRequest":
        """Copy with headers removed, then set."""
        removed = {name.lower() for name in remove}
        headers = {name: value for name, value in self.headers.items() if name not in removed}
        for name, value in (set_headers or {}).items():
            headers[name.lower()] = value
        return replace(self, headers=headers)


@dataclass
class InternalResponse:
    """Response produced by a session actor."""

    status_code: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    media_type: str | None = "application/json"

    @classmethod
    def json(cls, status_code: int, payload: Any, headers: dict[str, str] | None = None) -> "InternalResponse":
        return cls(
            status_code=status_code,
            body=json.dumps(payload, separators=(",", ":")).encode("utf-8"),
            headers=dict(headers or {}),
        )

    @classmethod
    def empty(cls, status_code: int, headers: dict[str, str] | None = None) -> "InternalResponse":
        return cls(status_code=status_code, headers=dict(headers or {}), media_type=None)

    def json_body(self) -> Any:
        return json.loads(self.body) if self.body else None

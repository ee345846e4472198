"""Streamable HTTP transport for one session, answering in JSON mode.

Wraps the SDK's ``StreamableHTTPServerTransport``. Internal requests are
replayed into it as ASGI calls and its reply is collected back into an
``InternalResponse``.
"""
import asyncio
import logging

from mcp.server.lowlevel import Server
from mcp.server.streamable_http import StreamableHTTPServerTransport

from gateway.common.id_utils import generate_session_id
from gateway.domain.internal_request import SESSION_ID_HEADER, InternalRequest, InternalResponse

logger = logging.getLogger(__name__)


def asgi_scope(request: InternalRequest, session_id: str) -> dict:
    """HTTP scope for ``request``; the resolved session id travels as the header."""
    headers = {**request.headers, SESSION_ID_HEADER: session_id}
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": request.method,
        "scheme": "http",
        "path": request.path,
        "raw_path": request.path.encode("utf-8"),
        "query_string": request.query_string.encode("latin-1"),
        "root_path": "",
        "headers": [(name.encode("latin-1"), value.encode("latin-1")) for name, value in headers.items()],
        "client": None,
        "server": None,
    }


class ResponseCollector:
    """ASGI ``send`` target buffering one response."""

    def __init__(self):
        self.status_code = 500
        self.headers: dict[str, str] = {}
        self.body = bytearray()

    async def __call__(self, message: dict) -> None:
        if message["type"] == "http.response.start":
            self.status_code = message["status"]
            self.headers = {
                name.decode("latin-1").lower(): value.decode("latin-1")
                for name, value in message.get("headers", [])
            }
        elif message["type"] == "http.response.body":
            self.body.extend(message.get("body", b""))

    def to_response(self) -> InternalResponse:
        headers = {name: value for name, value in self.headers.items() if name != "content-length"}
        media_type = headers.pop("content-type", None)
        return InternalResponse(
            status_code=self.status_code,
            body=bytes(self.body),
            headers=headers,
            media_type=media_type,
        )


class SessionTransport:
    """One session's SDK transport and the server task reading from it.

    The session id is generated up front and announced by the SDK in the
    ``initialize`` response.
    """

    def __init__(self, server: Server, session_id: str | None = None):
        self.session_id = session_id or generate_session_id()
        self._server = server
        self._http = StreamableHTTPServerTransport(
            mcp_session_id=self.session_id,
            is_json_response_enabled=True,
        )
        self._task: asyncio.Task | None = None

    @property
    def is_terminated(self) -> bool:
        return self._http.is_terminated

    async def start(self) -> None:
        """Connect the server to the transport and wait until it is listening."""
        ready = asyncio.Event()
        self._task = asyncio.create_task(self._run(ready), name=f"mcp-session-{self.session_id}")
        await ready.wait()

    async def _run(self, ready: asyncio.Event) -> None:
        async with self._http.connect() as (read_stream, write_stream):
            ready.set()
            await self._server.run(read_stream, write_stream, self._server.create_initialization_options())

    async def handle(self, request: InternalRequest) -> InternalResponse:
        pending = [{"type": "http.request", "body": request.body, "more_body": False}]

        async def receive() -> dict:
            if pending:
                return pending.pop()
            return {"type": "http.disconnect"}

        collector = ResponseCollector()
        await self._http.handle_request(asgi_scope(request, self.session_id), receive, collector)
        return collector.to_response()

    async def close(self) -> None:
        if not self._http.is_terminated:
            await self._http.terminate()

        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        logger.debug(f"Session {self.session_id} transport closed")

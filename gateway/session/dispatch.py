"""Delivery of signed requests from the edge to a partition's actor."""
import logging
from urllib.parse import quote

import httpx

from gateway.domain.internal_request import InternalRequest, InternalResponse
from gateway.session.registry import PartitionRegistry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Set by the HTTP client itself on each hop
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "content-length",
        "host",
        "keep-alive",
        "transfer-encoding",
        "upgrade",
        "content-encoding",
    }
)


def partition_path(partition: str, path: str = "/mcp") -> str:
    return f"/internal/partitions/{quote(partition, safe='')}{path}"


class LocalDispatcher:
    """Calls actors living in this process."""

    def __init__(self, registry: PartitionRegistry):
        self.registry = registry

    async def dispatch(self, partition: str, request: InternalRequest) -> InternalResponse:
        return await self.registry.get(partition).handle(request)

    async def aclose(self) -> None:
        await self.registry.aclose()


class HttpDispatcher:
    """Forwards to a separate session service over HTTP."""

    def __init__(
        self,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            transport=transport,
            timeout=timeout,
        )

    async def dispatch(self, partition: str, request: InternalRequest) -> InternalResponse:
        headers = {
            name: value for name, value in request.headers.items() if name not in HOP_BY_HOP_HEADERS
        }
        # Escapes only what httpx would otherwise re-encode; the signature covers the decoded pairs
        query = quote(request.query_string, safe="=&;%+/:?@!$'()*,[]~")
        url = httpx.URL(partition_path(partition, request.path), query=query.encode("ascii"))
        response = await self._client.request(
            request.method,
            url,
            headers=headers,
            content=request.body or None,
        )

        response_headers = {
            name: value for name, value in response.headers.items() if name not in HOP_BY_HOP_HEADERS
        }
        media_type = response_headers.pop("content-type", None)
        return InternalResponse(
            status_code=response.status_code,
            body=response.content,
            headers=response_headers,
            media_type=media_type,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

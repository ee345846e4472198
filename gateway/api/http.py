"""Conversion between Starlette requests/responses and internal values."""
from fastapi import Request, Response

from gateway.domain.internal_request import InternalRequest, InternalResponse


async def to_internal_request(request: Request, path: str | None = None) -> InternalRequest:
    """Snapshot an incoming request; ``path`` overrides the URL path."""
    return InternalRequest.build(
        method=request.method,
        path=path if path is not None else request.url.path,
        query_string=request.url.query,
        headers=request.headers.items(),
        body=await request.body(),
    )


def to_response(internal: InternalResponse) -> Response:
    return Response(
        content=internal.body,
        status_code=internal.status_code,
        headers=internal.headers,
        media_type=internal.media_type,
    )

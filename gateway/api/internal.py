"""Internal session service endpoint.

Reached by the edge's HTTP dispatcher when sessions run as a separate
service. Only signed requests are honoured; the actor checks the signature.
"""
from fastapi import APIRouter, Request

from .http import to_internal_request, to_response

router = APIRouter()


@router.api_route("/internal/partitions/{partition}/{path:path}", methods=["GET", "POST", "DELETE"])
async def partition_endpoint(partition: str, path: str, request: Request):
    registry = request.app.state.registry
    internal_request = await to_internal_request(request, path=f"/{path}")
    response = await registry.get(partition).handle(internal_request)
    return to_response(response)

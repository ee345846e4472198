"""Public protocol endpoint."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.common.database import get_db
from gateway.usecase.edge_usecase import EdgeUsecase
from .http import to_internal_request, to_response

router = APIRouter()


@router.api_route("/mcp", methods=["GET", "POST", "DELETE"])
async def mcp_endpoint(
    request: Request,
    session: AsyncSession = Depends(get_db),
):
    """Authenticate the caller and hand the request to its partition's session actor.

    Args:
        request: Incoming protocol request
        session: Database session (token and workspace lookups)

    Returns:
        The session actor's response, or a JSON-RPC error
    """
    usecase = EdgeUsecase(session, request.app.state.dispatcher)
    internal_request = await to_internal_request(request, path="/mcp")
    response = await usecase.forward(internal_request, request.headers.get("authorization"))
    return to_response(response)

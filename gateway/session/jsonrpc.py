"""JSON-RPC error codes and error responses produced outside the protocol server."""
from gateway.domain.internal_request import InternalResponse


JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INTERNAL_ERROR = -32603

# Server-defined range
BAD_REQUEST = -32000
SESSION_NOT_FOUND = -32001
UNAUTHORIZED = -32002
FORBIDDEN = -32003


def error_payload(code: int, message: str) -> dict:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "error": {"code": code, "message": message},
        "id": None,
    }


def error_response(
    status_code: int,
    code: int,
    message: str,
    headers: dict[str, str] | None = None,
) -> InternalResponse:
    """HTTP response carrying a single JSON-RPC error with a null id."""
    return InternalResponse.json(status_code, error_payload(code, message), headers=headers)

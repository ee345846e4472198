"""HMAC signing of requests forwarded from the edge to a session actor.

Every header the session actor uses for an authorization decision is part of
the canonical string, so none of them can be changed after signing.
"""
import hashlib
import hmac
import logging
from urllib.parse import parse_qsl, urlencode

from gateway.common import clock
from gateway.common.config import Settings
from gateway.domain.identity import CREDENTIAL_HEADERS, IDENTITY_HEADERS
from gateway.domain.internal_request import InternalRequest
from gateway.domain.password_service import b64url_encode

logger = logging.getLogger(__name__)


INTERNAL_SIGNATURE_HEADER = "x-mcp-internal-signature"
INTERNAL_TIMESTAMP_HEADER = "x-mcp-internal-timestamp"
INTERNAL_VERSION_HEADER = "x-mcp-internal-version"
INTERNAL_SIGNATURE_VERSION = "v1"
INTERNAL_SIGNATURE_MAX_AGE_MS = 2 * 60 * 1000

SIGNATURE_HEADERS = (
    INTERNAL_SIGNATURE_HEADER,
    INTERNAL_TIMESTAMP_HEADER,
    INTERNAL_VERSION_HEADER,
)


def resolve_internal_signing_secret(config: Settings) -> str | None:
    """Pick the signing secret: explicit secret, auth secret, then first static token."""
    for candidate in (config.internal_signing_secret, config.auth_secret):
        if candidate and candidate.strip():
            return candidate.strip()

    static_tokens = config.static_tokens
    return static_tokens[0] if static_tokens else None


def sign_request(request: InternalRequest, secret: str) -> InternalRequest:
    """Return a copy of the request carrying signature, timestamp and version."""
    timestamp = str(clock.now_ms())
    stamped = request.with_headers(
        {
            INTERNAL_TIMESTAMP_HEADER: timestamp,
            INTERNAL_VERSION_HEADER: INTERNAL_SIGNATURE_VERSION,
        },
        remove=(INTERNAL_SIGNATURE_HEADER,),
    )
    signature = create_internal_signature(stamped, timestamp, secret)
    return stamped.with_headers({INTERNAL_SIGNATURE_HEADER: signature})


def verify_request_signature(request: InternalRequest, secret: str) -> bool:
    """Check presence, version, freshness and signature of a forwarded request."""
    timestamp = request.header(INTERNAL_TIMESTAMP_HEADER)
    provided_signature = request.header(INTERNAL_SIGNATURE_HEADER)
    version = request.header(INTERNAL_VERSION_HEADER)

    if not timestamp or not provided_signature or version != INTERNAL_SIGNATURE_VERSION:
        return False

    try:
        timestamp_ms = int(timestamp)
    except ValueError:
        return False

    if abs(clock.now_ms() - timestamp_ms) > INTERNAL_SIGNATURE_MAX_AGE_MS:
        logger.info("Rejected internal request outside the freshness window")
        return False

    expected_signature = create_internal_signature(request, timestamp, secret)
    return hmac.compare_digest(
        provided_signature.encode("utf-8"),
        expected_signature.encode("utf-8"),
    )


def canonical_query(query_string: str) -> str:
    """Query in decoded-then-reencoded form, so percent-encoding changes on the hop do not matter."""
    return urlencode(parse_qsl(query_string, keep_blank_values=True))


def canonical_string(request: InternalRequest, timestamp: str) -> str:
    """Newline-joined canonical form of everything the signature covers."""
    parts = [
        INTERNAL_SIGNATURE_VERSION,
        request.method.upper(),
        request.path,
        canonical_query(request.query_string),
        request.session_id() or "",
    ]
    parts.extend(request.header(name) or "" for name in IDENTITY_HEADERS)
    parts.extend(request.header(name) or "" for name in CREDENTIAL_HEADERS)
    parts.append(timestamp)
    parts.append(b64url_encode(hashlib.sha256(request.body).digest()))
    return "\n".join(parts)


def create_internal_signature(request: InternalRequest, timestamp: str, secret: str) -> str:
    digest = hmac.new(
        secret.encode("utf-8"),
        canonical_string(request, timestamp).encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return b64url_encode(digest)

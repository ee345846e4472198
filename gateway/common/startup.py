"""Application startup checks."""
import logging

from gateway.common.config import Settings
from gateway.domain.credential_crypto import MIN_ENCRYPTION_SECRET_LENGTH

logger = logging.getLogger(__name__)


def check_security_configuration(config: Settings) -> list[str]:
    """Log a warning for each missing or weak security setting.

    Nothing here stops the server; the affected features fail closed at
    request time instead.

    Args:
        config: Application settings

    Returns:
        The warnings that were logged
    """
    warnings = []

    if not config.static_tokens:
        warnings.append("MCP_AUTH_TOKEN is not set; /mcp accepts vault bearer tokens only.")

    if not config.internal_signing_secret:
        if config.auth_secret:
            warnings.append("INTERNAL_SIGNING_SECRET is not set; signing internal requests with AUTH_SECRET.")
        elif config.static_tokens:
            warnings.append(
                "INTERNAL_SIGNING_SECRET is not set; signing internal requests with the first static token."
            )
        else:
            warnings.append("No internal signing secret is available; /mcp requests will be rejected.")

    key = config.workspace_encryption_key
    if not key:
        warnings.append("WORKSPACE_ENCRYPTION_KEY is not set; workspaces cannot be created or used.")
    elif len(key.strip()) < MIN_ENCRYPTION_SECRET_LENGTH:
        warnings.append(
            f"WORKSPACE_ENCRYPTION_KEY is shorter than {MIN_ENCRYPTION_SECRET_LENGTH} characters and will be ignored."
        )

    if config.session_service_url:
        logger.info(f"Forwarding sessions to {config.session_service_url}")

    for message in warnings:
        logger.warning(message)
    return warnings

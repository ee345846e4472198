from pydantic_settings import BaseSettings
from pydantic import field_validator
import json


class Settings(BaseSettings):
    # Application
    app_name: str = "Jira MCP Gateway"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    app_port: int = 8000

    # Database
    database_url: str

    # Static bearer tokens accepted on /mcp without a vault lookup
    mcp_auth_token: str | None = None
    mcp_auth_tokens: str | None = None  # Comma separated

    # Internal hop signing (falls back to auth_secret, then the first static token)
    internal_signing_secret: str | None = None
    auth_secret: str | None = None

    # Workspace credential encryption (minimum 32 characters)
    workspace_encryption_key: str | None = None

    # Sessions
    session_service_url: str | None = None  # Remote session service; in-process when unset
    default_partition: str = "jira-mcp-session-hub"

    # Rate Limiting (register/login only)
    rate_limit_per_minute: int = 60

    # CORS
    cors_origins: list[str] | str = ["http://localhost:5173", "http://localhost:8000"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def static_tokens(self) -> list[str]:
        """Static tokens in configuration order, primary first."""
        tokens = []
        if self.mcp_auth_token and self.mcp_auth_token.strip():
            tokens.append(self.mcp_auth_token.strip())
        if self.mcp_auth_tokens:
            tokens.extend(
                token.strip() for token in self.mcp_auth_tokens.split(",") if token.strip()
            )
        return tokens

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env


settings = Settings()

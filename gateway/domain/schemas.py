"""Pydantic schemas for API request/response."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


# ===== Auth Schemas =====


class UserRegisterRequest(BaseModel):
    """User registration request."""

    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=1024)


class TokenOptions(BaseModel):
    """Lifetime and label of a token to issue."""

    token_name: str | None = Field(default=None, description="Defaults to 'default'")
    expires_in_days: float | None = Field(
        default=None,
        description="Days until expiry; 0 means never, omitted means 30, clamped to 1-365",
    )
    never_expires: bool = False


class UserLoginRequest(TokenOptions):
    """User login request. Issues a new bearer token on success."""

    email: str
    password: str


class UserSummary(BaseModel):
    id: UUID
    email: str


class UserRegisterResponse(BaseModel):
    """User registration response."""

    user_id: UUID
    email: str
    message: str = "User registered successfully."


class MeResponse(BaseModel):
    """Current identity."""

    user: UserSummary
    current_token_id: UUID | None
    current_workspace_id: UUID | None


# ===== Token Schemas =====


class TokenCreateRequest(TokenOptions):
    """Request to create a new bearer token, optionally scoped to a workspace."""

    workspace_id: UUID | None = None


class TokenCreateResponse(BaseModel):
    """Response after issuing a token (includes full token - shown only once)."""

    token: str  # Full token - only returned at creation
    token_id: UUID
    workspace_id: UUID | None
    token_name: str
    token_prefix: str
    expires_at: datetime | None
    created_at: datetime
    user: UserSummary


class TokenListItem(BaseModel):
    """Token item in list (without full token)."""

    id: UUID
    workspace_id: UUID | None
    workspace_name: str | None
    token_name: str
    token_prefix: str
    created_at: datetime
    last_used_at: datetime | None
    expires_at: datetime | None
    revoked_at: datetime | None
    is_active: bool
    is_current: bool


class TokenListResponse(BaseModel):
    """List of tokens response."""

    current_token_id: UUID | None
    tokens: list[TokenListItem]
    total: int


class TokenRevokeResponse(BaseModel):
    """Revocation result; repeated revokes report already_revoked."""

    token_id: UUID
    revoked_at: datetime
    already_revoked: bool


# ===== Workspace Schemas =====


class WorkspaceCreateRequest(BaseModel):
    """Request to store a set of Jira credentials."""

    name: str | None = None
    base_url: str | None = None
    username: str | None = None
    api_token: str | None = None


class WorkspaceResponse(BaseModel):
    """Workspace without its secret."""

    id: UUID
    name: str
    base_url: str
    username: str
    created_at: datetime
    updated_at: datetime
    last_used_at: datetime | None

    class Config:
        from_attributes = True


class WorkspaceListResponse(BaseModel):
    workspaces: list[WorkspaceResponse]
    total: int


class WorkspaceDeleteResponse(BaseModel):
    workspace_id: UUID
    deleted: bool = True
    revoked_token_count: int

"""Bearer token model."""
from sqlalchemy import Column, String, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from gateway.common.clock import utcnow
from gateway.common.database import Base, UTCDateTime
from gateway.common.id_utils import generate_uuid7


class Token(Base):
    """Vault-issued bearer token.

    Only the SHA-256 hash of the secret is stored. ``workspace_id`` is a plain
    column rather than a foreign key so tokens outlive the workspace they were
    scoped to (they are revoked, not deleted).
    """
    __tablename__ = "api_tokens"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=generate_uuid7)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    workspace_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    name = Column(String(80), nullable=False)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)  # base64url SHA-256
    token_prefix = Column(String(12), nullable=False)  # mcp_ + first 8 chars
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    last_used_at = Column(UTCDateTime, nullable=True)
    expires_at = Column(UTCDateTime, nullable=True)  # NULL = never expires
    revoked_at = Column(UTCDateTime, nullable=True)  # NULL = active

    # Relationships
    user = relationship("User", back_populates="tokens")

    def __repr__(self):
        return f"<Token(id={self.id}, name={self.name}, prefix={self.token_prefix})>"

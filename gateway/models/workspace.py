"""Workspace (Jira credential bundle) model."""
from sqlalchemy import Column, String, Text, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from gateway.common.clock import utcnow
from gateway.common.database import Base, UTCDateTime
from gateway.common.id_utils import generate_uuid7


class Workspace(Base):
    """Named set of Jira credentials owned by one user."""
    __tablename__ = "jira_workspaces"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_jira_workspaces_user_name"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=generate_uuid7)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(80), nullable=False)
    base_url = Column(String(2048), nullable=False)
    username = Column(String(255), nullable=False)
    secret_ciphertext = Column(Text, nullable=False)  # base64url AES-GCM ciphertext + tag
    secret_iv = Column(String(16), nullable=False)  # base64url 96-bit nonce
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)
    last_used_at = Column(UTCDateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="workspaces")

    def __repr__(self):
        return f"<Workspace(id={self.id}, name={self.name})>"

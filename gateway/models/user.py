"""User model."""
from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import relationship
from gateway.common.clock import utcnow
from gateway.common.database import Base, UTCDateTime
from gateway.common.id_utils import generate_uuid7


class User(Base):
    """Vault user. Rows are never updated after registration."""
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=generate_uuid7)
    email = Column(String(255), unique=True, nullable=False, index=True)  # Lowercase
    password_hash = Column(String(64), nullable=False)  # base64url Argon2id digest
    password_salt = Column(String(32), nullable=False)  # base64url, 16 random bytes
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    # Relationships
    tokens = relationship("Token", back_populates="user", cascade="all, delete-orphan")
    workspaces = relationship("Workspace", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"

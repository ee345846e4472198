"""ID generation utilities."""
from uuid import UUID, uuid4
from uuid6 import uuid7


def generate_uuid7() -> UUID:
    """Generate a UUIDv7 (time-sortable UUID)."""
    return uuid7()


def generate_session_id() -> str:
    """Generate an opaque, unguessable protocol session id."""
    return str(uuid4())

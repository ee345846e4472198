"""Authentication usecase: registration, login and bearer token validation."""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from gateway.common import clock
from gateway.common.exceptions import (
    UnauthorizedException,
    ValidationException,
    ConflictException,
    ServiceUnavailableException,
    InternalServerException,
)
from gateway.domain.identity import IdentityContext
from gateway.domain.password_service import generate_salt, hash_password, verify_password
from gateway.domain.schemas import (
    MeResponse,
    TokenCreateResponse,
    TokenOptions,
    UserRegisterResponse,
    UserSummary,
)
from gateway.domain.token_service import hash_token
from gateway.domain.validators import MIN_PASSWORD_LENGTH, is_valid_email, normalize_email
from gateway.repository.exceptions import (
    DuplicateRecordException,
    DatabaseConnectionException,
    DatabaseOperationException,
)
from gateway.repository.token_repository import TokenRepository
from gateway.repository.user_repository import UserRepository
from gateway.usecase.token_usecase import TokenUsecase

logger = logging.getLogger(__name__)

INVALID_LOGIN_MESSAGE = "Invalid email or password."

# Hashed against when the email is unknown so both failure paths cost the same
_DUMMY_SALT = generate_salt()


class AuthUsecase:
    """Usecase for authentication operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_repo = UserRepository(session)
        self.token_repo = TokenRepository(session)

    async def register(self, email: str, password: str) -> UserRegisterResponse:
        """Register a new user.

        Args:
            email: Email address (normalized to lowercase)
            password: Plain text password

        Returns:
            UserRegisterResponse with the new user id

        Raises:
            ValidationException: If email or password is malformed
            ConflictException: If email already exists
            ServiceUnavailableException: If database connection fails
            InternalServerException: If database operation fails
        """
        email = normalize_email(email)
        password = password or ""

        if not is_valid_email(email):
            raise ValidationException("A valid email is required.")

        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationException(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
            )

        salt = generate_salt()
        password_hash = hash_password(password, salt)

        try:
            async with self.session.begin():
                if await self.user_repo.exists_by_email(email):
                    raise ConflictException("A user with this email already exists.")

                user = await self.user_repo.create(
                    email=email,
                    password_hash=password_hash,
                    password_salt=salt,
                )

        except DuplicateRecordException as e:
            raise ConflictException(e.message)
        except DatabaseConnectionException:
            raise ServiceUnavailableException()
        except DatabaseOperationException:
            raise InternalServerException("Failed to create user")

        logger.info(f"Registered user {user.id}")
        return UserRegisterResponse(user_id=user.id, email=user.email)

    async def login(self, email: str, password: str, options: TokenOptions) -> TokenCreateResponse:
        """Check credentials and issue a fresh bearer token.

        Raises:
            ValidationException: If email or password is missing
            UnauthorizedException: If credentials are invalid (never says which)
        """
        email = normalize_email(email)
        password = password or ""

        if not email or not password:
            raise ValidationException("Both email and password are required.")

        async with self.session.begin():
            user = await self.user_repo.get_by_email(email)

        if not user:
            hash_password(password, _DUMMY_SALT)
            raise UnauthorizedException(INVALID_LOGIN_MESSAGE)

        if not verify_password(password, user.password_salt, user.password_hash):
            raise UnauthorizedException(INVALID_LOGIN_MESSAGE)

        token_usecase = TokenUsecase(self.session)
        return await token_usecase.issue_token(
            user_id=user.id,
            email=user.email,
            token_name=options.token_name,
            expires_in_days=options.expires_in_days,
            never_expires=options.never_expires,
        )

    async def validate_token(self, token: str) -> IdentityContext | None:
        """Resolve a bearer token to an identity.

        Wrong, revoked and expired tokens all return None.

        Args:
            token: Plain bearer token

        Returns:
            IdentityContext for the owner, or None
        """
        if not token:
            return None

        token_hash = hash_token(token)
        now = clock.utcnow()

        try:
            async with self.session.begin():
                row = await self.token_repo.find_active_by_hash(token_hash, now)
                if row is None:
                    return None

                await self.token_repo.update_last_used(row.token_id, now)
        except DatabaseConnectionException:
            raise ServiceUnavailableException()

        return IdentityContext(
            kind="user",
            user_id=row.user_id,
            email=row.email,
            token_id=row.token_id,
            workspace_id=row.workspace_id,
        )

    async def authenticate(self, token: str) -> IdentityContext:
        """Like ``validate_token`` but raises on failure."""
        identity = await self.validate_token(token)
        if identity is None:
            raise UnauthorizedException()
        return identity

    @staticmethod
    def me(identity: IdentityContext) -> MeResponse:
        return MeResponse(
            user=UserSummary(id=identity.user_id, email=identity.email),
            current_token_id=identity.token_id,
            current_workspace_id=identity.workspace_id,
        )

"""Authentication API endpoints."""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.common.database import get_db
from gateway.common.responses import success_response
from gateway.common.rate_limit import RATE_LIMIT, limiter
from gateway.domain.schemas import UserRegisterRequest, UserLoginRequest
from gateway.usecase.auth_usecase import AuthUsecase
from .dependencies import CurrentIdentity

router = APIRouter()


@router.post("/auth/register", response_model=dict, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT)
async def register(
    request: Request,
    user_request: UserRegisterRequest,
    session: AsyncSession = Depends(get_db),
):
    """Register a new user.

    Args:
        request: FastAPI Request object (for rate limiting)
        user_request: User registration request
        session: Database session

    Returns:
        Success response with the new user id
    """
    usecase = AuthUsecase(session)
    user = await usecase.register(user_request.email, user_request.password)
    return success_response(user.model_dump())


@router.post("/auth/login", response_model=dict)
@limiter.limit(RATE_LIMIT)
async def login(
    request: Request,
    login_request: UserLoginRequest,
    session: AsyncSession = Depends(get_db),
):
    """Login and get a new bearer token.

    Args:
        request: FastAPI Request object (for rate limiting)
        login_request: Credentials plus optional token name and lifetime
        session: Database session

    Returns:
        Success response with the token (shown only once)
    """
    usecase = AuthUsecase(session)
    token = await usecase.login(login_request.email, login_request.password, login_request)
    return success_response(token.model_dump())


@router.get("/auth/me", response_model=dict)
async def me(identity: CurrentIdentity):
    """Describe the caller and the token used for this request."""
    return success_response(AuthUsecase.me(identity).model_dump())

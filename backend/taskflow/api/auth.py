from fastapi import APIRouter, Depends, Request, status
from taskflow.core.deps import get_auth_service, get_rate_limiter
from taskflow.core.errors import RateLimited
from taskflow.schemas import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    StatusResponse,
    TokenPair,
    UserOut,
)
from taskflow.services.auth import AuthResult, AuthService
from taskflow.services.rate_limit import RateLimiter

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        user=UserOut.model_validate(result.user),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    result = service.register(payload.email, payload.password, payload.name)
    return _auth_response(result)


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    client_key = request.client.host if request.client else payload.email
    if not rate_limiter.hit(client_key):
        raise RateLimited()
    result = service.login(payload.email, payload.password)
    rate_limiter.reset(client_key)
    return _auth_response(result)


@router.post("/refresh", response_model=TokenPair)
def refresh(payload: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    result = service.refresh(payload.refresh_token)
    return TokenPair(access_token=result.access_token, refresh_token=result.refresh_token)


@router.post("/logout", response_model=StatusResponse)
def logout(payload: LogoutRequest, service: AuthService = Depends(get_auth_service)):
    service.logout(payload.refresh_token)
    return StatusResponse()

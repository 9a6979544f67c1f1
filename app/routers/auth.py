import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.limiter import limiter, AUTH_RATE_LIMIT
from app.core.schemas import ApiResponse
from app.database import get_db
from app.models.user import User
from app.routers.auth_deps import get_current_user
from app.schemas.auth import AuthPayload, LoginRequest, RegisterRequest, UserResponse
from app.services import auth as auth_service
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

COOKIE_NAME = settings.auth.refresh_cookie_name


def _set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=refresh_token,
        httponly=True,
        secure=settings.environment == "production",
        samesite="strict",
        max_age=auth_service.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _client_meta(request: Request) -> dict:
    return {
        "user_agent": request.headers.get("user-agent"),
        "ip_address": request.client.host if request.client else None,
    }


@router.post("/register", response_model=ApiResponse[AuthPayload], status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_RATE_LIMIT)
def register(request: Request, response: Response, data: RegisterRequest, db: Session = Depends(get_db)):
    service = UserService(db)
    user = service.register(name=data.name, email=data.email, password=data.password)

    access_token = auth_service.create_access_token(data=auth_service.token_claims_for(user))
    refresh_token = service.open_session(user, **_client_meta(request))
    _set_refresh_cookie(response, refresh_token)

    payload = AuthPayload(user=UserResponse.model_validate(user), access_token=access_token)
    return ApiResponse.ok(payload, message="User registered successfully")


@router.post("/login", response_model=ApiResponse[AuthPayload])
@limiter.limit(AUTH_RATE_LIMIT)
def login(request: Request, response: Response, login_data: LoginRequest, db: Session = Depends(get_db)):
    # Note: Using JSON LoginRequest instead of form-data for frontend compatibility
    service = UserService(db)
    user = service.authenticate(login_data.email, login_data.password)

    access_token = auth_service.create_access_token(data=auth_service.token_claims_for(user))
    refresh_token = service.open_session(user, **_client_meta(request))
    _set_refresh_cookie(response, refresh_token)

    logger.info(f"User {user.id} logged in")
    payload = AuthPayload(user=UserResponse.model_validate(user), access_token=access_token)
    return ApiResponse.ok(payload, message="User logged in successfully")


@router.post("/refresh-token", response_model=ApiResponse[dict])
def refresh_token(
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=COOKIE_NAME),
    db: Session = Depends(get_db),
):
    user, new_refresh_token = UserService(db).rotate_session(refresh_cookie)
    access_token = auth_service.create_access_token(data=auth_service.token_claims_for(user))
    _set_refresh_cookie(response, new_refresh_token)
    return ApiResponse.ok({"access_token": access_token, "token_type": "bearer"}, message="Token refreshed successfully")


@router.post("/logout", response_model=ApiResponse[None])
def logout(
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=COOKIE_NAME),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    UserService(db).revoke_session(refresh_cookie)
    response.delete_cookie(COOKIE_NAME, httponly=True, samesite="strict")
    logger.info(f"User {current_user.id} logged out")
    return ApiResponse.ok(None, message="User logged out successfully")


@router.get("/profile", response_model=ApiResponse[UserResponse])
def get_profile(current_user: User = Depends(get_current_user)):
    return ApiResponse.ok(UserResponse.model_validate(current_user), message="User profile fetched successfully")

"""
Authentication Router

Handles user authentication endpoints:
- Signup (email/password)
- Login (email/password -> bearer token)

Security:
=========
- Passwords are hashed with bcrypt before storage
- Plain text passwords are never logged or stored
- Both routes are rate limited (RATE_LIMIT_AUTH)
"""

from fastapi import APIRouter, Request, status

from bookrater.config import get_settings
from bookrater.dependencies import DbSession
from bookrater.schemas import LoginRequest, LoginResponse, MessageResponse, SignupRequest
from bookrater.services import accounts
from bookrater.services.rate_limiter import limiter

settings = get_settings()

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        400: {"description": "Invalid input"},
        401: {"description": "Authentication failed"},
        409: {"description": "Email already registered"},
        429: {"description": "Too many requests"},
    },
)


@router.post(
    "/signup",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    description="Create a new account. Passwords need at least 8 characters.",
)
@limiter.limit(settings.rate_limit_auth)
def signup(
    request: Request,
    credentials: SignupRequest,
    db: DbSession,
) -> MessageResponse:
    """Register a new user with email and password."""
    accounts.signup(db, credentials.email, credentials.password)
    return MessageResponse(message="User created")


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login with email and password",
    description="""
    Authenticate with email and password to receive a bearer token valid
    for 24 hours.

    **Usage:**
    ```
    Authorization: Bearer <token>
    ```
    """,
)
@limiter.limit(settings.rate_limit_auth)
def login(
    request: Request,
    credentials: LoginRequest,
    db: DbSession,
) -> LoginResponse:
    """Authenticate a user and return their id with a signed token."""
    user, token = accounts.login(db, credentials.email, credentials.password)
    return LoginResponse(user_id=user.id, token=token)

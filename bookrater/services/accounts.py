"""
Accounts Service

Signup and login workflows.

Security:
=========
- Passwords are hashed with bcrypt before storage
- Plain text passwords are never logged or stored
- Login failures are indistinguishable for unknown email and wrong password
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bookrater.exceptions import AuthenticationError, ConflictError
from bookrater.models import User
from bookrater.services.security import (
    create_access_token,
    hash_password,
    pwd_context,
    verify_password,
)

logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Incorrect email or password"


def get_user_by_email(db: Session, email: str) -> User | None:
    stmt = select(User).where(User.email == email)
    return db.execute(stmt).scalar_one_or_none()


def signup(db: Session, email: str, password: str) -> User:
    """
    Register a new user.

    Args:
        db: Database session
        email: Validated email address
        password: Plain password (hashed here, never stored)

    Returns:
        The created User

    Raises:
        ConflictError: If the email is already registered
    """
    if get_user_by_email(db, email) is not None:
        raise ConflictError("Email already registered")

    user = User(email=email, hashed_password=hash_password(password))
    db.add(user)

    # The unique index is the authority when two signups race
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered") from None

    db.refresh(user)
    logger.info(f"New user registered: {user.email}")

    return user


def login(db: Session, email: str, password: str) -> tuple[User, str]:
    """
    Authenticate a user and issue a bearer token.

    Returns:
        Tuple of (user, access_token)

    Raises:
        AuthenticationError: Same message whether the email is unknown or
            the password is wrong
    """
    user = get_user_by_email(db, email)

    if user is None:
        # Spend the same bcrypt time as a real check
        pwd_context.dummy_verify()
        logger.warning(f"Login failed: user not found for {email}")
        raise AuthenticationError(LOGIN_FAILED_MESSAGE)

    if not verify_password(password, user.hashed_password):
        logger.warning(f"Login failed: incorrect password for {email}")
        raise AuthenticationError(LOGIN_FAILED_MESSAGE)

    token = create_access_token({"sub": str(user.id)})
    logger.info(f"User logged in: {user.email}")

    return user, token

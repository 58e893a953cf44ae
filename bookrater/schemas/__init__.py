"""
Pydantic Schemas Package

Pydantic models for request/response validation, kept separate from the
SQLAlchemy models so the API shape (camelCase, no password hash, no version
counter) can differ from the database schema.

Schema Naming Convention:
- XxxCreate: Fields accepted when creating a record
- XxxUpdate: Fields accepted when updating
- XxxResponse: Fields returned in API responses
"""

from bookrater.schemas.book import (
    BookBase,
    BookCreate,
    BookResponse,
    BookUpdate,
    MessageResponse,
    RatingCreate,
    RatingResponse,
)
from bookrater.schemas.user import (
    LoginRequest,
    LoginResponse,
    SignupRequest,
)

__all__ = [
    # Book schemas
    "BookBase",
    "BookCreate",
    "BookUpdate",
    "BookResponse",
    "RatingCreate",
    "RatingResponse",
    "MessageResponse",
    # User / auth schemas
    "SignupRequest",
    "LoginRequest",
    "LoginResponse",
]

"""
User Pydantic Schemas

Schemas:
- SignupRequest: Registration data (email, password)
- LoginRequest: Login data; deliberately unconstrained so that every
  failed login, malformed or not, looks the same (401)
- LoginResponse: Identity and bearer token returned by login
"""

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class SignupRequest(BaseModel):
    """
    Schema for user registration.

    Example request body:
    {
        "email": "john@example.com",
        "password": "correct horse"
    }
    """

    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["john@example.com"],
    )

    password: str = Field(
        ...,
        min_length=8,
        max_length=72,  # bcrypt only uses the first 72 bytes
        description="Password (min 8 characters)",
        examples=["correct horse"],
    )


class LoginRequest(BaseModel):
    """
    Schema for login with email and password.

    The email is normalized the way signup stores it (EmailStr), so the
    address typed at signup always finds its account. Anything that does
    not parse is kept as typed and simply fails to match (401).
    """

    email: str = Field(..., examples=["john@example.com"])
    password: str = Field(..., examples=["correct horse"])

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        try:
            return validate_email(v, check_deliverability=False).normalized
        except EmailNotValidError:
            return v


class LoginResponse(BaseModel):
    """
    Schema returned by a successful login.

    Usage:
        Authorization: Bearer <token>
    """

    user_id: int = Field(..., description="Authenticated user id")
    token: str = Field(..., description="Signed bearer token, valid 24h")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "userId": 1,
                "token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
            }
        },
    )

"""
FastAPI Dependencies Module

Dependencies are reusable components injected into route handlers.
FastAPI's Depends() function manages their lifecycle.

Provided here:
- DbSession: per-request database session
- Images: the process-wide image pipeline
- CurrentUserId: identity from the bearer token
- NewBookSubmission / BookUpdateSubmission: book bodies normalized from
  either multipart or JSON into one typed structure
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, Request, UploadFile
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile as StarletteUploadFile

from bookrater.config import get_settings
from bookrater.database import get_db
from bookrater.exceptions import AuthenticationError, ValidationError
from bookrater.schemas.book import BookCreate, BookUpdate
from bookrater.services.images import ImagePipeline
from bookrater.services.security import get_token_user_id

settings = get_settings()

# =============================================================================
# Type Aliases with Annotated
# =============================================================================
DbSession = Annotated[Session, Depends(get_db)]


# =============================================================================
# Image Pipeline
# =============================================================================
@lru_cache
def get_image_pipeline() -> ImagePipeline:
    """
    Build the image pipeline once from settings.

    Tests override this dependency to point at temporary directories.
    """
    return ImagePipeline(
        images_dir=settings.images_dir,
        uploads_dir=settings.uploads_dir,
        url_path=settings.images_url_path,
        max_width=settings.image_max_width,
        quality=settings.image_quality,
    )


Images = Annotated[ImagePipeline, Depends(get_image_pipeline)]


# =============================================================================
# JWT Authentication
# =============================================================================
# OAuth2PasswordBearer extracts the token from "Authorization: Bearer <token>"
# and answers 401 itself when the header is missing.

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/login",
    auto_error=True,
)


def get_current_user_id(token: str = Depends(oauth2_scheme)) -> int:
    """
    Extract and validate the current user's id from the bearer token.

    Tokens are stateless: the identity is taken from the signed token on
    every request, no session is kept server-side.

    Raises:
        AuthenticationError: 401 if the token is invalid or expired
    """
    user_id = get_token_user_id(token)
    if user_id is None:
        raise AuthenticationError()
    return user_id


CurrentUserId = Annotated[int, Depends(get_current_user_id)]


# =============================================================================
# Book Body Normalization
# =============================================================================
# A book body arrives in one of three shapes:
#   - multipart with an "image" file and a "book" field holding a JSON string
#   - multipart/urlencoded with the book fields as plain form fields
#   - a JSON object (update without a new image)
# Routes only ever see a BookSubmission.

@dataclass
class BookSubmission:
    """A validated book payload and the optional uploaded image."""

    data: BookCreate | BookUpdate
    image: UploadFile | None = None


def _parse_json_object(raw: str | bytes) -> dict[str, Any]:
    try:
        value = json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid book data: malformed JSON") from None

    if not isinstance(value, dict):
        raise ValidationError("Invalid book data: expected a JSON object")
    return value


def _describe(exc: PydanticValidationError) -> str:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
    return f"Invalid book data: {problems}"


def _validate(model: type[BaseModel], fields: dict[str, Any]) -> Any:
    try:
        return model.model_validate(fields)
    except PydanticValidationError as e:
        raise ValidationError(_describe(e)) from None


async def read_book_body(request: Request) -> tuple[dict[str, Any], UploadFile | None]:
    """
    Read a book body in any accepted shape.

    Returns:
        Tuple of (raw book fields, uploaded image or None)
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()

        image = form.get("image")
        if not isinstance(image, StarletteUploadFile) or not image.filename:
            image = None

        book = form.get("book")
        if isinstance(book, str):
            return _parse_json_object(book), image

        fields = {
            key: value
            for key, value in form.items()
            if key != "image" and isinstance(value, str)
        }
        return fields, image

    body = await request.body()
    if not body:
        return {}, None
    return _parse_json_object(body), None


async def get_new_book_submission(request: Request) -> BookSubmission:
    """
    Normalize a create-book body; an image is mandatory.

    Raises:
        ValidationError: 400 on malformed JSON, invalid fields or no image
    """
    fields, image = await read_book_body(request)
    data = _validate(BookCreate, fields)

    if image is None:
        raise ValidationError("An image file is required")

    return BookSubmission(data=data, image=image)


async def get_book_update_submission(request: Request) -> BookSubmission:
    """
    Normalize an update-book body; the image is optional.

    Raises:
        ValidationError: 400 on malformed JSON or invalid fields
    """
    fields, image = await read_book_body(request)
    return BookSubmission(data=_validate(BookUpdate, fields), image=image)


NewBookSubmission = Annotated[BookSubmission, Depends(get_new_book_submission)]
BookUpdateSubmission = Annotated[BookSubmission, Depends(get_book_update_submission)]

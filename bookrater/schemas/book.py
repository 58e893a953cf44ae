"""
Book Pydantic Schemas

Request bodies are validated here before any workflow runs; responses use
camelCase keys (userId, imageUrl, averageRating) through an alias generator.

Client-controlled identity fields (_id, userId, averageRating) are simply
not declared on the request schemas, so they are dropped on parsing.
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MIN_GRADE = 1
MAX_GRADE = 5


def is_valid_grade(value: Any) -> bool:
    """
    Check that a value is an acceptable grade: an integer from 1 to 5.

    Integral floats (4.0) are accepted; booleans are not numbers here.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and not value.is_integer():
        return False
    return MIN_GRADE <= value <= MAX_GRADE


class BookBase(BaseModel):
    """
    Shared book metadata, validated for both create and update.

    Rules:
    - title, author, genre: 1-200 characters after trimming
    - year: 0 through the current calendar year
    """

    # Whitespace is trimmed before max_length is checked
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(
        ...,
        max_length=200,
        description="Book title",
        examples=["1984"],
    )

    author: str = Field(
        ...,
        max_length=200,
        description="Author name",
        examples=["George Orwell"],
    )

    year: int = Field(
        ...,
        ge=0,
        description="Publication year",
        examples=[1949],
    )

    genre: str = Field(
        ...,
        max_length=200,
        description="Literary genre",
        examples=["Dystopia"],
    )

    @field_validator("title", "author", "genre")
    @classmethod
    def text_must_not_be_empty(cls, v: str) -> str:
        """Reject free-text fields that were only whitespace."""
        if not v:
            raise ValueError("must not be empty or whitespace")
        return v

    @field_validator("year")
    @classmethod
    def year_not_in_future(cls, v: int) -> int:
        current_year = date.today().year
        if v > current_year:
            raise ValueError(f"must not be later than {current_year}")
        return v


class BookCreate(BookBase):
    """
    Schema for creating a new book.

    `ratings` is read only for an optional initial grade from the creator:

        {"title": ..., "ratings": [{"userId": "...", "grade": 4}]}

    It is kept loosely typed on purpose: an invalid initial grade is
    ignored rather than rejected.
    """

    ratings: Any = Field(
        default=None,
        description="Optional initial rating; only ratings[0].grade is used",
    )

    @property
    def initial_grade(self) -> int | None:
        """Return the creator's initial grade, or None if absent or invalid."""
        if not isinstance(self.ratings, list) or not self.ratings:
            return None

        first = self.ratings[0]
        if not isinstance(first, dict):
            return None

        grade = first.get("grade")
        if not is_valid_grade(grade):
            return None
        return int(grade)


class BookUpdate(BookBase):
    """
    Schema for updating a book.

    PUT replaces the descriptive fields; ratings and the average are never
    writable through an update.
    """


class RatingCreate(BaseModel):
    """
    Schema for submitting a rating.

    Example request body:
    {
        "userId": "ignored, the token decides",
        "rating": 4
    }
    """

    rating: int = Field(
        ...,
        ge=MIN_GRADE,
        le=MAX_GRADE,
        description="Grade from 1 to 5",
        examples=[4],
    )

    @field_validator("rating", mode="before")
    @classmethod
    def rating_must_be_whole_number(cls, v: Any) -> Any:
        # Lax mode would turn "4" into 4; only JSON numbers are grades
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("must be a number")
        return v


class RatingResponse(BaseModel):
    """A single rating as embedded in a book response."""

    user_id: int = Field(..., description="User who submitted the grade")
    grade: int = Field(..., description="Grade from 1 to 5")

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BookResponse(BaseModel):
    """
    Schema for book responses.

    Serialized with camelCase keys:
    {
        "id": 1,
        "userId": 3,
        "title": "1984",
        "author": "George Orwell",
        "year": 1949,
        "genre": "Dystopia",
        "imageUrl": "http://localhost:4000/images/optimized_1718000000000.jpg",
        "ratings": [{"userId": 3, "grade": 4}],
        "averageRating": 4.0
    }
    """

    id: int = Field(..., description="Unique identifier")
    user_id: int = Field(..., description="Owner of the book")
    title: str
    author: str
    year: int
    genre: str
    image_url: str = Field(..., description="Public URL of the cover image")
    ratings: list[RatingResponse] = Field(
        default=[],
        description="Ratings in submission order",
    )
    average_rating: float = Field(
        default=0,
        description="Average grade rounded to one decimal, 0 if unrated",
    )

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class MessageResponse(BaseModel):
    """Acknowledgement returned by mutating endpoints."""

    message: str = Field(..., examples=["Book saved"])

"""
Ratings Service

Maintains the ratings of a book and its denormalized average.

Rules:
- A user rates a given book at most once; a second submission is rejected
  and leaves the book untouched
- average_rating is the mean of all grades rounded half-up to one decimal,
  or 0 for an unrated book
"""

import logging
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from bookrater.exceptions import ValidationError
from bookrater.models import Book, Rating
from bookrater.schemas.book import is_valid_grade
from bookrater.services.book_store import commit, find_book_by_id

logger = logging.getLogger(__name__)

ALREADY_RATED_MESSAGE = "You have already rated this book"
ONE_DECIMAL = Decimal("0.1")


def compute_average(grades: Iterable[int]) -> float:
    """
    Average grades, rounded half-up at the tenths place.

    Decimal arithmetic avoids binary float artifacts (e.g. 4.25 must round
    to 4.3, not 4.2).

    Example:
        >>> compute_average([4, 5])
        4.5
        >>> compute_average([])
        0.0
    """
    values = [Decimal(grade) for grade in grades]
    if not values:
        return 0.0

    mean = sum(values) / Decimal(len(values))
    return float(mean.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP))


def has_rated(book: Book, user_id: int) -> bool:
    return any(rating.user_id == user_id for rating in book.ratings)


def add_rating(book: Book, user_id: int, grade: int) -> None:
    """
    Append a rating to a loaded book and recompute its average.

    Does not commit.

    Raises:
        ValidationError: If the grade is out of range or the user has
            already rated this book
    """
    if not is_valid_grade(grade):
        raise ValidationError("The rating must be a whole number from 1 to 5")

    if has_rated(book, user_id):
        raise ValidationError(ALREADY_RATED_MESSAGE)

    book.ratings.append(Rating(user_id=user_id, grade=int(grade)))
    book.average_rating = compute_average(r.grade for r in book.ratings)

    # Appending a child row alone does not UPDATE the book; force it so the
    # version check covers every rating
    flag_modified(book, "average_rating")


def rate_book(db: Session, book_id: int, user_id: int, grade: int) -> Book:
    """
    Record a user's grade for a book.

    Args:
        db: Database session
        book_id: Book being rated
        user_id: Authenticated user
        grade: Grade from 1 to 5

    Returns:
        The updated book

    Raises:
        NotFoundError: If the book does not exist
        ValidationError: If the user already rated the book
        ConflictError: If the book changed concurrently
    """
    book = find_book_by_id(db, book_id)

    try:
        add_rating(book, user_id, grade)
    except ValidationError:
        logger.info(f"Rating rejected: user {user_id} on book {book_id}")
        raise

    try:
        commit(db)
    except IntegrityError:
        # A concurrent request from the same user won the unique constraint
        db.rollback()
        raise ValidationError(ALREADY_RATED_MESSAGE) from None

    db.refresh(book)
    logger.info(
        f"User {user_id} rated book {book_id}: {grade} "
        f"(average now {book.average_rating})"
    )

    return book

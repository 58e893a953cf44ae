"""
Book Store

Single-record persistence operations for books.

Every function takes the request's Session; none of them spans more than
one book. Writes go through Book.version (see models/book.py), so a write
based on a stale read raises ConflictError instead of overwriting.
"""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from bookrater.exceptions import ConflictError, NotFoundError
from bookrater.models import Book

logger = logging.getLogger(__name__)

# Fields an update may replace; ownership, ratings and the average are not
# among them
UPDATABLE_FIELDS = frozenset({"title", "author", "year", "genre", "image_url"})


def find_books(db: Session) -> list[Book]:
    """Return every book in natural storage order."""
    stmt = select(Book).order_by(Book.id)
    return list(db.execute(stmt).scalars().all())


def find_book_by_id(db: Session, book_id: int) -> Book:
    """
    Get a book by ID.

    Raises:
        NotFoundError: If no book has this id
    """
    book = db.get(Book, book_id)

    if book is None:
        raise NotFoundError("Book not found")

    return book


def find_top_rated(db: Session, limit: int) -> list[Book]:
    """
    Return the best rated books.

    Ordered by average_rating descending; equal averages keep storage
    order.
    """
    stmt = (
        select(Book)
        .order_by(Book.average_rating.desc(), Book.id.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def insert_book(db: Session, book: Book) -> Book:
    db.add(book)
    commit(db)
    db.refresh(book)
    return book


def update_book(db: Session, book: Book, fields: Mapping[str, Any]) -> Book:
    """
    Replace the given fields of a loaded book and persist it.

    Raises:
        ValueError: If a field is not updatable
        ConflictError: If the book changed since it was loaded
    """
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not updatable: {sorted(unknown)}")

    for field, value in fields.items():
        setattr(book, field, value)

    commit(db)
    db.refresh(book)
    return book


def delete_book(db: Session, book: Book) -> None:
    db.delete(book)
    commit(db)


def commit(db: Session) -> None:
    """
    Commit the session, translating a lost optimistic-lock race.

    Raises:
        ConflictError: If a versioned row was changed by another request
    """
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Concurrent modification detected: {e}")
        raise ConflictError(
            "The book was modified by another request, please retry"
        ) from None

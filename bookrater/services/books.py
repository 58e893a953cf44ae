"""
Books Service

Create, update and delete workflows for books, including the cover image
lifecycle and the ownership guard.

Security:
- The owner is always the authenticated user, never a client field
- Only the owner may update or delete a book
- Ratings and the average cannot be set through create/update, apart from
  the creator's optional initial grade

Image bookkeeping:
- A new durable image is produced before the record is written; if the
  write fails, that image is removed again
- A superseded or orphaned image is removed only after the record no
  longer references it, and removal failures are logged, not raised
"""

import logging

from fastapi import UploadFile
from sqlalchemy.orm import Session

from bookrater.exceptions import AuthorizationError
from bookrater.models import Book, Rating
from bookrater.schemas.book import BookCreate, BookUpdate
from bookrater.services.book_store import (
    delete_book,
    find_book_by_id,
    insert_book,
    update_book,
)
from bookrater.services.images import ImagePipeline

logger = logging.getLogger(__name__)


def ensure_owner(book: Book, user_id: int) -> None:
    """
    Raises:
        AuthorizationError: If user_id does not own the book
    """
    if book.user_id != user_id:
        logger.warning(f"User {user_id} denied access to book {book.id}")
        raise AuthorizationError("Unauthorized request")


def store_upload(pipeline: ImagePipeline, upload: UploadFile) -> str:
    """Stage and ingest an upload; the raw file never outlives this call."""
    with pipeline.stage(upload) as raw_path:
        return pipeline.ingest(raw_path)


def create_book(
    db: Session,
    pipeline: ImagePipeline,
    owner_id: int,
    data: BookCreate,
    image: UploadFile,
    base_url: str,
) -> Book:
    """
    Create a book owned by the authenticated user.

    If the payload carries a valid initial grade (ratings[0].grade), the
    book starts with that single rating from its owner; otherwise it starts
    unrated with an average of 0.

    Returns:
        The created book
    """
    filename = store_upload(pipeline, image)

    book = Book(
        user_id=owner_id,
        title=data.title,
        author=data.author,
        year=data.year,
        genre=data.genre,
        image_url=pipeline.public_url(base_url, filename),
        average_rating=0,
    )

    grade = data.initial_grade
    if grade is not None:
        book.ratings = [Rating(user_id=owner_id, grade=grade)]
        book.average_rating = float(grade)

    try:
        insert_book(db, book)
    except Exception:
        db.rollback()
        pipeline.remove(filename)
        raise

    logger.info(f"Book {book.id} created by user {owner_id}")
    return book


def modify_book(
    db: Session,
    pipeline: ImagePipeline,
    book_id: int,
    user_id: int,
    data: BookUpdate,
    image: UploadFile | None,
    base_url: str,
) -> Book:
    """
    Replace a book's descriptive fields and optionally its cover image.

    Raises:
        NotFoundError: If the book does not exist
        AuthorizationError: If the user is not the owner
        ConflictError: If the book changed concurrently
    """
    book = find_book_by_id(db, book_id)
    ensure_owner(book, user_id)

    fields = data.model_dump(include={"title", "author", "year", "genre"})

    previous_image = book.image_url
    new_filename = None
    if image is not None:
        new_filename = store_upload(pipeline, image)
        fields["image_url"] = pipeline.public_url(base_url, new_filename)

    try:
        update_book(db, book, fields)
    except Exception:
        db.rollback()
        if new_filename is not None:
            pipeline.remove(new_filename)
        raise

    if new_filename is not None:
        pipeline.remove(previous_image)

    logger.info(f"Book {book_id} updated by user {user_id}")
    return book


def remove_book(
    db: Session,
    pipeline: ImagePipeline,
    book_id: int,
    user_id: int,
) -> None:
    """
    Delete a book and its cover image.

    The record is deleted first; the image is removed afterwards on a
    best-effort basis, so a leftover file is the worst outcome.

    Raises:
        NotFoundError: If the book does not exist
        AuthorizationError: If the user is not the owner
    """
    book = find_book_by_id(db, book_id)
    ensure_owner(book, user_id)

    image_url = book.image_url
    delete_book(db, book)
    pipeline.remove(image_url)

    logger.info(f"Book {book_id} deleted by user {user_id}")

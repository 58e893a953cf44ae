"""
Books Router

CRUD and rating endpoints for books.

Reads are public; every mutation requires a bearer token, and update and
delete are further restricted to the book's owner.

Request bodies for create/update are normalized by the NewBookSubmission
and BookUpdateSubmission dependencies, so multipart uploads and plain JSON
reach the service layer in the same shape.
"""

from fastapi import APIRouter, Request, status

from bookrater.config import get_settings
from bookrater.dependencies import (
    BookUpdateSubmission,
    CurrentUserId,
    DbSession,
    Images,
    NewBookSubmission,
)
from bookrater.schemas import BookResponse, MessageResponse, RatingCreate
from bookrater.services import book_store, ratings
from bookrater.services import books as book_service

settings = get_settings()

router = APIRouter(
    prefix="/books",
    tags=["Books"],
    responses={
        404: {"description": "Book not found"},
    },
)


# =============================================================================
# Read Endpoints
# =============================================================================

@router.get(
    "",
    response_model=list[BookResponse],
    summary="List all books",
)
def list_books(db: DbSession) -> list[BookResponse]:
    """Return every book in the catalogue."""
    books = book_store.find_books(db)
    return [BookResponse.model_validate(book) for book in books]


# Must be declared before /{book_id} so "bestrating" is not read as an id
@router.get(
    "/bestrating",
    response_model=list[BookResponse],
    summary="Best rated books",
    description="The three books with the highest average rating.",
)
def best_rated_books(db: DbSession) -> list[BookResponse]:
    books = book_store.find_top_rated(db, settings.best_rating_limit)
    return [BookResponse.model_validate(book) for book in books]


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    summary="Get a book by ID",
)
def get_book(book_id: int, db: DbSession) -> BookResponse:
    """
    Get a single book by its ID.

    Raises:
        NotFoundError: 404 if book not found
    """
    book = book_store.find_book_by_id(db, book_id)
    return BookResponse.model_validate(book)


# =============================================================================
# Write Endpoints
# =============================================================================

@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new book",
    description="""
    Multipart form with an `image` file (JPEG or PNG) and a `book` field
    holding the book as a JSON string. An initial grade may be given as
    `ratings[0].grade`.
    """,
)
def create_book(
    request: Request,
    user_id: CurrentUserId,
    submission: NewBookSubmission,
    db: DbSession,
    images: Images,
) -> MessageResponse:
    book_service.create_book(
        db,
        images,
        owner_id=user_id,
        data=submission.data,
        image=submission.image,
        base_url=str(request.base_url),
    )
    return MessageResponse(message="Book saved")


@router.put(
    "/{book_id}",
    response_model=MessageResponse,
    summary="Update a book",
    description="""
    Either a JSON body with the book fields, or a multipart form with a new
    `image` and the book as a JSON string in `book`. Owner only.
    """,
    responses={403: {"description": "Not the owner"}},
)
def update_book(
    request: Request,
    book_id: int,
    user_id: CurrentUserId,
    submission: BookUpdateSubmission,
    db: DbSession,
    images: Images,
) -> MessageResponse:
    book_service.modify_book(
        db,
        images,
        book_id=book_id,
        user_id=user_id,
        data=submission.data,
        image=submission.image,
        base_url=str(request.base_url),
    )
    return MessageResponse(message="Book updated")


@router.delete(
    "/{book_id}",
    response_model=MessageResponse,
    summary="Delete a book",
    description="Delete a book and its cover image. Owner only.",
    responses={403: {"description": "Not the owner"}},
)
def delete_book(
    book_id: int,
    user_id: CurrentUserId,
    db: DbSession,
    images: Images,
) -> MessageResponse:
    book_service.remove_book(db, images, book_id=book_id, user_id=user_id)
    return MessageResponse(message="Book deleted")


@router.post(
    "/{book_id}/rating",
    response_model=BookResponse,
    summary="Rate a book",
    description="Submit a grade from 1 to 5. Each user may rate a book once.",
)
def rate_book(
    book_id: int,
    body: RatingCreate,
    user_id: CurrentUserId,
    db: DbSession,
) -> BookResponse:
    """Record the caller's grade and return the updated book."""
    book = ratings.rate_book(db, book_id, user_id, body.rating)
    return BookResponse.model_validate(book)

"""
Tests for Books API Endpoints

Tests the book endpoints:
- GET /api/books
- GET /api/books/{id}
- GET /api/books/bestrating
- POST /api/books (multipart with image)
- PUT /api/books/{id} (JSON or multipart)
- DELETE /api/books/{id}

Security:
- Owner is always the authenticated user
- Only the owner may update or delete
"""

import json
from pathlib import Path

from fastapi import status
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import select
from sqlalchemy.orm import Session

from bookrater.config import get_settings
from bookrater.exceptions import ConflictError
from bookrater.models import Book, User
from bookrater.services.images import ImagePipeline
from bookrater.services.security import create_access_token


# =============================================================================
# Helper Functions
# =============================================================================


def get_auth_header(user: User) -> dict:
    """Create authorization header for a user."""
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def book_payload(**overrides) -> dict:
    payload = {
        "title": "Brave New World",
        "author": "Aldous Huxley",
        "year": 1932,
        "genre": "Dystopia",
    }
    payload.update(overrides)
    return payload


def post_book(
    client: TestClient,
    user: User,
    image: bytes,
    payload: dict | None = None,
    content_type: str = "image/png",
):
    return client.post(
        "/api/books",
        headers=get_auth_header(user),
        data={"book": json.dumps(payload or book_payload())},
        files={"image": ("cover.png", image, content_type)},
    )


def durable_files(images: ImagePipeline) -> list[str]:
    return sorted(p.name for p in images.images_dir.iterdir())


# =============================================================================
# Read Endpoints
# =============================================================================


class TestListBooks:
    """Tests for GET /api/books endpoint."""

    def test_list_books_empty(self, client: TestClient):
        """Test listing books when database is empty."""
        response = client.get("/api/books")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []

    def test_list_books_camel_case(self, client: TestClient, sample_book: Book):
        """Test that books are serialized with camelCase keys."""
        response = client.get("/api/books")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data) == 1
        assert data[0]["id"] == sample_book.id
        assert data[0]["userId"] == sample_book.user_id
        assert data[0]["imageUrl"] == sample_book.image_url
        assert data[0]["averageRating"] == 0
        assert data[0]["ratings"] == []

    def test_list_books_storage_order(self, client: TestClient, rated_books: list[Book]):
        """Test that books come back in insertion order."""
        response = client.get("/api/books")

        titles = [book["title"] for book in response.json()]
        assert titles == ["Middling", "Very Good", "Weak", "Masterpiece", "Unrated"]


class TestGetBook:
    """Tests for GET /api/books/{id} endpoint."""

    def test_get_book_success(self, client: TestClient, sample_book: Book):
        """Test getting a book by ID."""
        response = client.get(f"/api/books/{sample_book.id}")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["title"] == "1984"
        assert data["author"] == "George Orwell"
        assert data["year"] == 1949
        assert data["genre"] == "Dystopia"

    def test_get_book_not_found(self, client: TestClient):
        """Test getting a non-existent book returns 404."""
        response = client.get("/api/books/99999")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"detail": "Book not found"}

    def test_get_book_malformed_id(self, client: TestClient):
        """Test that a non-numeric id is a bad request."""
        response = client.get("/api/books/not-a-number")

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestBestRating:
    """Tests for GET /api/books/bestrating endpoint."""

    def test_best_rating_top_three(self, client: TestClient, rated_books: list[Book]):
        """Test that the three highest averages come back in order."""
        response = client.get("/api/books/bestrating")

        assert response.status_code == status.HTTP_200_OK
        averages = [book["averageRating"] for book in response.json()]
        assert averages == [5.0, 4.5, 3.0]

    def test_best_rating_fewer_than_three(self, client: TestClient, sample_book: Book):
        """Test that a small catalogue returns what it has."""
        response = client.get("/api/books/bestrating")

        assert len(response.json()) == 1

    def test_best_rating_empty(self, client: TestClient):
        response = client.get("/api/books/bestrating")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []


# =============================================================================
# Create
# =============================================================================


class TestCreateBook:
    """Tests for POST /api/books endpoint."""

    def test_create_book_store_failure_removes_image(
        self,
        client: TestClient,
        db_session: Session,
        images: ImagePipeline,
        sample_user: User,
        png_bytes: bytes,
        monkeypatch,
    ):
        """Test that a failed insert leaves no orphaned image behind."""

        def failing_insert(db, book):
            raise ConflictError("The book was modified by another request, please retry")

        monkeypatch.setattr("bookrater.services.books.insert_book", failing_insert)

        response = post_book(client, sample_user, png_bytes)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert db_session.execute(select(Book)).scalars().all() == []
        assert durable_files(images) == []
        assert list(images.uploads_dir.iterdir()) == []

    def test_create_book_success(
        self,
        client: TestClient,
        db_session: Session,
        images: ImagePipeline,
        sample_user: User,
        png_bytes: bytes,
    ):
        """Test creating a book with an image."""
        response = post_book(client, sample_user, png_bytes)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json() == {"message": "Book saved"}

        book = db_session.execute(select(Book)).scalar_one()
        assert book.user_id == sample_user.id
        assert book.title == "Brave New World"
        assert book.ratings == []
        assert book.average_rating == 0
        assert book.image_url.startswith("http://testserver/images/optimized_")
        assert book.image_url.endswith(".jpg")

        # The durable image exists and the raw upload is gone
        filename = images.filename_from_url(book.image_url)
        assert durable_files(images) == [filename]
        assert list(images.uploads_dir.iterdir()) == []

    def test_create_book_image_is_optimized(
        self,
        client: TestClient,
        db_session: Session,
        images: ImagePipeline,
        sample_user: User,
        png_bytes: bytes,
    ):
        """Test that a wide PNG is stored as an 800px wide JPEG."""
        post_book(client, sample_user, png_bytes)

        book = db_session.execute(select(Book)).scalar_one()
        with Image.open(images.path_for(images.filename_from_url(book.image_url))) as stored:
            assert stored.format == "JPEG"
            assert stored.size == (800, 600)

    def test_create_book_ignores_client_identity(
        self,
        client: TestClient,
        db_session: Session,
        sample_user: User,
        second_user: User,
        png_bytes: bytes,
    ):
        """Test that userId, _id and averageRating from the body are ignored."""
        payload = book_payload(userId=second_user.id, _id="abc", averageRating=5)

        response = post_book(client, sample_user, png_bytes, payload)

        assert response.status_code == status.HTTP_201_CREATED
        book = db_session.execute(select(Book)).scalar_one()
        assert book.user_id == sample_user.id
        assert book.average_rating == 0

    def test_create_book_with_initial_grade(
        self,
        client: TestClient,
        db_session: Session,
        sample_user: User,
        png_bytes: bytes,
    ):
        """Test that ratings[0].grade seeds the creator's rating."""
        payload = book_payload(ratings=[{"userId": "ignored", "grade": 4}])

        post_book(client, sample_user, png_bytes, payload)

        book = db_session.execute(select(Book)).scalar_one()
        assert [(r.user_id, r.grade) for r in book.ratings] == [(sample_user.id, 4)]
        assert book.average_rating == 4.0

    def test_create_book_invalid_initial_grade_ignored(
        self,
        client: TestClient,
        db_session: Session,
        sample_user: User,
        png_bytes: bytes,
    ):
        """Test that an out-of-range initial grade leaves the book unrated."""
        payload = book_payload(ratings=[{"grade": 0}])

        response = post_book(client, sample_user, png_bytes, payload)

        assert response.status_code == status.HTTP_201_CREATED
        book = db_session.execute(select(Book)).scalar_one()
        assert book.ratings == []
        assert book.average_rating == 0

    def test_create_book_without_image(self, client: TestClient, sample_user: User):
        """Test that an image is required."""
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            data={"book": json.dumps(book_payload())},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_create_book_malformed_json(
        self,
        client: TestClient,
        images: ImagePipeline,
        sample_user: User,
        png_bytes: bytes,
    ):
        """Test that an unparseable book field is rejected and nothing stored."""
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            data={"book": "{not json"},
            files={"image": ("cover.png", png_bytes, "image/png")},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert durable_files(images) == []

    def test_create_book_invalid_fields(
        self,
        client: TestClient,
        images: ImagePipeline,
        sample_user: User,
        png_bytes: bytes,
    ):
        """Test that a blank title is rejected before the image is kept."""
        response = post_book(client, sample_user, png_bytes, book_payload(title="   "))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert durable_files(images) == []

    def test_create_book_future_year(
        self,
        client: TestClient,
        sample_user: User,
        png_bytes: bytes,
    ):
        response = post_book(client, sample_user, png_bytes, book_payload(year=99999))

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_create_book_unsupported_type(
        self,
        client: TestClient,
        images: ImagePipeline,
        sample_user: User,
    ):
        """Test that only JPEG and PNG uploads are accepted."""
        response = post_book(client, sample_user, b"GIF89a", content_type="image/gif")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert durable_files(images) == []
        assert list(images.uploads_dir.iterdir()) == []

    def test_create_book_corrupt_image(
        self,
        client: TestClient,
        images: ImagePipeline,
        sample_user: User,
    ):
        """Test that undecodable bytes are rejected and the upload discarded."""
        response = post_book(client, sample_user, b"definitely not a png")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"detail": "Invalid image file"}
        assert list(images.uploads_dir.iterdir()) == []

    def test_create_book_unauthenticated(self, client: TestClient, png_bytes: bytes):
        response = client.post(
            "/api/books",
            data={"book": json.dumps(book_payload())},
            files={"image": ("cover.png", png_bytes, "image/png")},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# =============================================================================
# Update
# =============================================================================


class TestUpdateBook:
    """Tests for PUT /api/books/{id} endpoint."""

    def test_update_book_json(
        self,
        client: TestClient,
        db_session: Session,
        sample_book: Book,
        sample_user: User,
    ):
        """Test updating fields with a JSON body keeps the image."""
        original_image = sample_book.image_url

        response = client.put(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(sample_user),
            json=book_payload(title="Nineteen Eighty-Four", author="G. Orwell", year=1949),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": "Book updated"}

        db_session.refresh(sample_book)
        assert sample_book.title == "Nineteen Eighty-Four"
        assert sample_book.author == "G. Orwell"
        assert sample_book.image_url == original_image

    def test_update_book_new_image(
        self,
        client: TestClient,
        db_session: Session,
        images: ImagePipeline,
        sample_book: Book,
        sample_user: User,
        png_bytes: bytes,
    ):
        """Test that a new image replaces and removes the old one."""
        old_filename = images.filename_from_url(sample_book.image_url)

        response = client.put(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(sample_user),
            data={"book": json.dumps(book_payload())},
            files={"image": ("new.png", png_bytes, "image/png")},
        )

        assert response.status_code == status.HTTP_200_OK
        db_session.refresh(sample_book)
        new_filename = images.filename_from_url(sample_book.image_url)
        assert new_filename != old_filename
        assert durable_files(images) == [new_filename]

    def test_update_book_cannot_touch_ratings(
        self,
        client: TestClient,
        db_session: Session,
        sample_book: Book,
        sample_user: User,
        second_user: User,
    ):
        """Test that ownership, ratings and average are not writable."""
        response = client.put(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(sample_user),
            json=book_payload(
                userId=second_user.id,
                ratings=[{"userId": second_user.id, "grade": 5}],
                averageRating=5,
            ),
        )

        assert response.status_code == status.HTTP_200_OK
        db_session.refresh(sample_book)
        assert sample_book.user_id == sample_user.id
        assert sample_book.ratings == []
        assert sample_book.average_rating == 0

    def test_update_book_not_owner(
        self,
        client: TestClient,
        db_session: Session,
        images: ImagePipeline,
        sample_book: Book,
        second_user: User,
        png_bytes: bytes,
    ):
        """Test that a non-owner gets 403 and the book is unchanged."""
        before = durable_files(images)

        response = client.put(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(second_user),
            data={"book": json.dumps(book_payload(title="Hijacked"))},
            files={"image": ("new.png", png_bytes, "image/png")},
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"detail": "Unauthorized request"}
        db_session.refresh(sample_book)
        assert sample_book.title == "1984"
        assert durable_files(images) == before

    def test_update_book_not_found(self, client: TestClient, sample_user: User):
        response = client.put(
            "/api/books/99999",
            headers=get_auth_header(sample_user),
            json=book_payload(),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_update_book_invalid_fields(
        self,
        client: TestClient,
        sample_book: Book,
        sample_user: User,
    ):
        response = client.put(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(sample_user),
            json={"title": "Only a title"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_update_book_store_failure_keeps_old_image(
        self,
        client: TestClient,
        db_session: Session,
        images: ImagePipeline,
        sample_book: Book,
        sample_user: User,
        png_bytes: bytes,
        monkeypatch,
    ):
        """Test that a failed write drops the new image and keeps the old one."""
        old_url = sample_book.image_url
        old_filename = images.filename_from_url(old_url)

        def lost_race(db, book, fields):
            raise ConflictError("The book was modified by another request, please retry")

        monkeypatch.setattr("bookrater.services.books.update_book", lost_race)

        response = client.put(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(sample_user),
            data={"book": json.dumps(book_payload(title="Never Saved"))},
            files={"image": ("new.png", png_bytes, "image/png")},
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        db_session.refresh(sample_book)
        assert sample_book.image_url == old_url
        assert sample_book.title == "1984"
        assert durable_files(images) == [old_filename]
        assert list(images.uploads_dir.iterdir()) == []


# =============================================================================
# Delete
# =============================================================================


class TestDeleteBook:
    """Tests for DELETE /api/books/{id} endpoint."""

    def test_delete_book_by_owner(
        self,
        client: TestClient,
        db_session: Session,
        images: ImagePipeline,
        sample_book: Book,
        sample_user: User,
    ):
        """Test that the owner deletes the record and its image."""
        book_id = sample_book.id

        response = client.delete(
            f"/api/books/{book_id}",
            headers=get_auth_header(sample_user),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": "Book deleted"}
        assert client.get(f"/api/books/{book_id}").status_code == status.HTTP_404_NOT_FOUND
        assert durable_files(images) == []

    def test_delete_book_missing_image_file(
        self,
        client: TestClient,
        images: ImagePipeline,
        sample_book: Book,
        sample_user: User,
    ):
        """Test that a missing image file does not block deletion."""
        images.path_for(images.filename_from_url(sample_book.image_url)).unlink()

        response = client.delete(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(sample_user),
        )

        assert response.status_code == status.HTTP_200_OK

    def test_delete_book_not_owner(
        self,
        client: TestClient,
        images: ImagePipeline,
        sample_book: Book,
        second_user: User,
    ):
        """Test that a non-owner cannot delete."""
        response = client.delete(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(second_user),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert client.get(f"/api/books/{sample_book.id}").status_code == status.HTTP_200_OK
        assert len(durable_files(images)) == 1

    def test_delete_book_not_found(self, client: TestClient, sample_user: User):
        response = client.delete(
            "/api/books/99999",
            headers=get_auth_header(sample_user),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# Static Images and Health
# =============================================================================


class TestStaticImages:
    """Tests for the /images mount and /health."""

    def test_serves_stored_image(self, client: TestClient, small_jpeg_bytes: bytes):
        path = Path(get_settings().images_dir) / "optimized_served.jpg"
        path.write_bytes(small_jpeg_bytes)

        response = client.get("/images/optimized_served.jpg")

        assert response.status_code == status.HTTP_200_OK
        assert response.content == small_jpeg_bytes

    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"

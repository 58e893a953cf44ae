"""
pytest Fixtures for Book Catalogue API Tests

This file contains shared fixtures used across all test files.

FIXTURE SCOPES:
- function (default): New instance per test function
- session: Single instance for entire test session

For database tests every test gets its own in-memory database. The
workflows under test commit and roll back on their own (lost update races,
duplicate ratings), so an outer rollback-only transaction would not isolate
them.
"""

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# IMPORTANT: Set environment variables BEFORE importing the app
# This disables rate limiting, sets a test secret key and keeps image
# directories out of the working tree
import os
import tempfile

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-at-least-32-characters-long"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["IMAGES_DIR"] = tempfile.mkdtemp(prefix="bookrater-images-")
os.environ["UPLOADS_DIR"] = tempfile.mkdtemp(prefix="bookrater-uploads-")

import io
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bookrater.database import Base, get_db
from bookrater.dependencies import get_image_pipeline
from bookrater.main import app
from bookrater.models import Book, Rating, User
from bookrater.services.images import ImagePipeline
from bookrater.services.security import hash_password

# =============================================================================
# DATABASE FIXTURES
# =============================================================================
# SQLite in-memory: fast, isolated, no external database needed.
# Some PostgreSQL features won't work in SQLite.


@pytest.fixture
def engine():
    """
    Create a SQLite in-memory database engine.

    StaticPool keeps the single connection alive for the whole test.
    Without it, the in-memory database would disappear between connections.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session, None, None]:
    """Create a database session bound to the test engine."""
    TestSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )

    session = TestSessionLocal()

    yield session

    session.close()


@pytest.fixture
def images(tmp_path: Path) -> ImagePipeline:
    """Image pipeline writing into a per-test temporary directory."""
    return ImagePipeline(
        images_dir=tmp_path / "images",
        uploads_dir=tmp_path / "uploads",
    )


@pytest.fixture
def client(
    db_session: Session,
    images: ImagePipeline,
) -> Generator[TestClient, None, None]:
    """
    Create a test client with the test database and image directories.

    We override the get_db and get_image_pipeline dependencies.
    """

    def override_get_db():
        """Provide test database session instead of real one."""
        try:
            yield db_session
        finally:
            pass  # Session cleanup handled by db_session fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_pipeline] = lambda: images

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# IMAGE FIXTURES
# =============================================================================


def make_image_bytes(
    size: tuple[int, int] = (1200, 900),
    mode: str = "RGB",
    fmt: str = "PNG",
) -> bytes:
    """Encode a solid-colour test picture."""
    color = (200, 40, 40, 128) if mode == "RGBA" else (200, 40, 40)
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A 1200x900 PNG, wider than the maximum durable width."""
    return make_image_bytes()


@pytest.fixture
def small_jpeg_bytes() -> bytes:
    """A 300x200 JPEG, narrower than the maximum durable width."""
    return make_image_bytes(size=(300, 200), fmt="JPEG")


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================


@pytest.fixture
def sample_user(db_session: Session) -> User:
    """Create a sample user for testing."""
    user = User(
        email="testuser@example.com",
        hashed_password=hash_password("SecurePass123"),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def second_user(db_session: Session) -> User:
    """Create a second user for testing ownership scenarios."""
    user = User(
        email="seconduser@example.com",
        hashed_password=hash_password("SecurePass456"),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def third_user(db_session: Session) -> User:
    """Create a third user for multi-rating scenarios."""
    user = User(
        email="thirduser@example.com",
        hashed_password=hash_password("SecurePass789"),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def sample_book(
    db_session: Session,
    sample_user: User,
    images: ImagePipeline,
    small_jpeg_bytes: bytes,
) -> Book:
    """
    Create an unrated book owned by sample_user.

    Its cover exists in the test content directory, so removal can be
    observed.
    """
    filename = "optimized_sample.jpg"
    images.path_for(filename).write_bytes(small_jpeg_bytes)

    book = Book(
        user_id=sample_user.id,
        title="1984",
        author="George Orwell",
        year=1949,
        genre="Dystopia",
        image_url=images.public_url("http://testserver/", filename),
        average_rating=0,
    )
    db_session.add(book)
    db_session.commit()
    db_session.refresh(book)
    return book


@pytest.fixture
def rated_books(
    db_session: Session,
    sample_user: User,
    second_user: User,
) -> list[Book]:
    """
    Create five books whose averages are 3.0, 4.5, 1.0, 5.0 and 0.

    Inserted in that order, so storage order differs from rating order.
    """
    specs = [
        ("Middling", [3]),
        ("Very Good", [4, 5]),
        ("Weak", [1]),
        ("Masterpiece", [5]),
        ("Unrated", []),
    ]
    users = [sample_user, second_user]

    books = []
    for title, grades in specs:
        book = Book(
            user_id=sample_user.id,
            title=title,
            author="Various",
            year=2000,
            genre="Fiction",
            image_url=f"http://testserver/images/optimized_{title.lower().replace(' ', '_')}.jpg",
            average_rating=0,
        )
        book.ratings = [
            Rating(user_id=users[i].id, grade=grade)
            for i, grade in enumerate(grades)
        ]
        if grades:
            book.average_rating = sum(grades) / len(grades)
        db_session.add(book)
        books.append(book)

    db_session.commit()
    for book in books:
        db_session.refresh(book)

    return books

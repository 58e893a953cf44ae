"""
Test Suite for the Book Catalogue API

Test Organization:
- conftest.py: Shared fixtures (test database, client, images, sample data)
- test_auth.py: Signup, login and bearer tokens
- test_books.py: /api/books endpoints and static images
- test_ratings.py: Rating endpoint, averages, lost updates
- test_images.py: Image pipeline
- test_book_store.py: Persistence helpers
- test_schemas.py: Request and response schemas
- test_config.py: Settings validation

Running Tests:
    pytest
    pytest tests/test_ratings.py -v
"""

"""
SQLAlchemy Models Package

Model Relationships:
- User -> Book: One-to-Many (a user owns the books they created)
- Book -> Rating: One-to-Many (a book collects one rating per user)

Import all models here to:
1. Make them available as: from bookrater.models import Book, Rating, User
2. Ensure Alembic discovers them for migrations
"""

from bookrater.models.user import User
from bookrater.models.book import Book
from bookrater.models.rating import Rating

__all__ = [
    "User",
    "Book",
    "Rating",
]

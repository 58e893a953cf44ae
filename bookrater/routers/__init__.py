"""
API Routers Package

Router Structure:
- auth.py: /api/auth/* endpoints (signup, login)
- books.py: /api/books/* endpoints (CRUD, best rated, rating)

Each router is imported and registered in main.py.
"""

from bookrater.routers.auth import router as auth_router
from bookrater.routers.books import router as books_router

__all__ = [
    "auth_router",
    "books_router",
]

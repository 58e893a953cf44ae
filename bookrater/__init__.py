"""
Book Catalogue API

A FastAPI backend for cataloguing books: signup/login, books with cover
images, and one-vote-per-user ratings.

Package Structure:
- main.py: FastAPI application entry point
- config.py: Configuration management with Pydantic Settings
- database.py: SQLAlchemy database setup and session management
- dependencies.py: Shared dependencies (auth, sessions, body parsing)
- exceptions.py: Error taxonomy mapped to HTTP status codes
- models/: SQLAlchemy ORM models
- schemas/: Pydantic request/response schemas
- routers/: API route handlers
- services/: Business logic
"""

__version__ = "1.0.0"

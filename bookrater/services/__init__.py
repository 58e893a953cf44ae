"""
Services Package

Business logic kept separate from HTTP handling (routers), so it can be
reused and tested in isolation.

Current services:
- accounts.py: Signup and login workflows
- book_store.py: Single-record book persistence with optimistic locking
- books.py: Create/update/delete workflows and ownership checks
- images.py: Upload staging, resizing and cleanup of cover images (Pillow)
- rate_limiter.py: Rate limiting with slowapi
- ratings.py: One-vote-per-user ratings and average computation
- security.py: Password hashing and JWT utilities
"""

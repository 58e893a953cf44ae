"""
Book Model

The central model of the catalogue.

A book belongs to the user who created it (its owner) and carries an
ordered list of ratings plus the denormalized average of their grades.

Optimistic Concurrency
======================
`version` is registered as the mapper's version_id_col. Every UPDATE of a
book row is issued as

    UPDATE books SET ..., version = :new WHERE id = :id AND version = :old

so two requests that loaded the same version cannot both write: the loser
gets a StaleDataError instead of silently overwriting the winner.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookrater.database import Base

if TYPE_CHECKING:
    from bookrater.models.rating import Rating
    from bookrater.models.user import User


class Book(Base):
    """
    Book model representing a catalogued book.

    Table: books

    Fields:
    - user_id: Owner, stamped from the authenticated identity on create
    - title, author, genre: 1-200 characters
    - year: Publication year
    - image_url: Public URL of the durable cover image
    - average_rating: Mean of ratings rounded to one decimal, 0 if unrated

    Relationships:
    - owner: Many-to-One with User
    - ratings: One-to-Many with Rating, in submission order
    """

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owner of the book record"
    )

    title: Mapped[str] = mapped_column(
        String(200),
        index=True,
        nullable=False,
        comment="Book title"
    )

    author: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Author name"
    )

    year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Publication year"
    )

    genre: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Literary genre"
    )

    image_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Public URL of the durable cover image"
    )

    average_rating: Mapped[float] = mapped_column(
        Float,
        default=0,
        nullable=False,
        index=True,
        comment="Average grade (one decimal), 0 if unrated"
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Optimistic concurrency counter"
    )

    # -------------------------------------------------------------------------
    # Timestamps
    # -------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------
    owner: Mapped["User"] = relationship(
        "User",
        back_populates="books",
    )

    # selectin: ratings are part of every book response
    ratings: Mapped[list["Rating"]] = relationship(
        "Rating",
        back_populates="book",
        cascade="all, delete-orphan",
        order_by="Rating.id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"Book(id={self.id}, title='{self.title}', user_id={self.user_id})"

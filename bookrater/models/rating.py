"""
Rating Model

One user's grade for one book.

Business Rules:
- One rating per user per book (unique constraint)
- Grade must be 1-5
- Ratings are never edited or withdrawn
"""

from sqlalchemy import CheckConstraint, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookrater.database import Base


class Rating(Base):
    """
    Rating model.

    Attributes:
        id: Primary key, also the submission order
        book_id: Foreign key to books table
        user_id: Foreign key to users table
        grade: 1-5
    """

    __tablename__ = "ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    book_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    grade: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Grade from 1-5",
    )

    book = relationship("Book", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("book_id", "user_id", name="uq_rating_book_user"),
        CheckConstraint("grade >= 1 AND grade <= 5", name="ck_rating_grade_range"),
    )

    def __repr__(self) -> str:
        return f"<Rating(book_id={self.book_id}, user_id={self.user_id}, grade={self.grade})>"

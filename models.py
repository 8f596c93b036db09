from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text

from database import Base
from schemas import BookStatus


def utcnow() -> datetime:
    # Stored as naive UTC, like the timestamp columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    status = Column(
        Enum(BookStatus, name="book_status"),
        nullable=False,
        default=BookStatus.reading,
    )
    stars = Column(Integer, nullable=True)
    review = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

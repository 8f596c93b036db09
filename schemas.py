import enum
import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pydantic.alias_generators import to_camel


class BookStatus(str, enum.Enum):
    reading = "reading"
    done = "done"


# ASCII digits only
BOOK_ID_PATTERN = r"^[0-9]+$"
# Largest value the INTEGER id column holds
MAX_BOOK_ID = 2**31 - 1
_BOOK_ID_RE = re.compile(BOOK_ID_PATTERN)


def parse_book_id(value: str) -> int:
    """Coerce a path id to an int, rejecting anything but plain digits."""
    if not isinstance(value, str) or not _BOOK_ID_RE.fullmatch(value):
        raise ValueError("Invalid book ID")
    return int(value)


# Requests
class BookCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    author: str = Field(min_length=1, max_length=255)
    status: BookStatus = BookStatus.reading
    stars: StrictInt | None = Field(default=None, ge=1, le=5)
    review: str | None = Field(default=None, max_length=1000)


class BookUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    author: str | None = Field(default=None, min_length=1, max_length=255)
    status: BookStatus | None = None
    stars: StrictInt | None = Field(default=None, ge=1, le=5)
    review: str | None = Field(default=None, max_length=1000)

    # Only runs for values that were actually sent
    @field_validator("title", "author", "status")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


# Responses
class BookOut(BaseModel):
    id: int
    title: str
    author: str
    status: BookStatus
    stars: int | None
    review: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BookEnvelope(BaseModel):
    book: BookOut


class BookList(BaseModel):
    books: list[BookOut]


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str

"""Presentation logic behind the book screens.

Filtering and sorting happen on the cached list, never on the server.
Forms validate locally before submitting; the server stays authoritative.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from client import Mutation, QueryClient
from queries import BookQueries
from schemas import BookOut, BookStatus

logger = logging.getLogger(__name__)

BookFilter = Literal["all", "reading", "done"]
SortBy = Literal["title", "author", "stars", "createdAt"]

FILTERS = ("all", "reading", "done")
SORTS = ("createdAt", "title", "author", "stars")

LOAD_FAILED = "Error loading books"
CREATE_FAILED = "Failed to create book. Please try again."
UPDATE_FAILED = "Failed to update book. Please try again."
DELETE_FAILED = "Failed to delete book. Please try again."


def filter_books(books: List[BookOut], book_filter: BookFilter = "all") -> List[BookOut]:
    if book_filter == "all":
        return list(books)
    return [book for book in books if book.status.value == book_filter]


def sort_books(books: List[BookOut], sort_by: SortBy = "createdAt") -> List[BookOut]:
    # sorted() is stable, reverse included, so ties keep list order
    if sort_by == "title":
        return sorted(books, key=lambda book: book.title.casefold())
    if sort_by == "author":
        return sorted(books, key=lambda book: book.author.casefold())
    if sort_by == "stars":
        return sorted(books, key=lambda book: book.stars or 0, reverse=True)
    return sorted(books, key=lambda book: book.created_at, reverse=True)


def filter_and_sort_books(
    books: List[BookOut], book_filter: BookFilter = "all", sort_by: SortBy = "createdAt"
) -> List[BookOut]:
    return sort_books(filter_books(books, book_filter), sort_by)


@dataclass(frozen=True)
class BookStats:
    total: int
    reading: int
    done: int

    @classmethod
    def from_books(cls, books: List[BookOut]) -> "BookStats":
        reading = sum(1 for book in books if book.status is BookStatus.reading)
        done = sum(1 for book in books if book.status is BookStatus.done)
        return cls(total=len(books), reading=reading, done=done)

    @property
    def reading_percent(self) -> int:
        return round(self.reading / max(1, self.total) * 100)

    @property
    def done_percent(self) -> int:
        return round(self.done / max(1, self.total) * 100)


@dataclass
class BookForm:
    title: str = ""
    author: str = ""
    status: BookStatus = BookStatus.reading
    stars: Optional[int] = None
    review: str = ""

    @classmethod
    def from_book(cls, book: BookOut) -> "BookForm":
        return cls(
            title=book.title,
            author=book.author,
            status=book.status,
            stars=book.stars,
            review=book.review or "",
        )

    def errors(self) -> Dict[str, str]:
        errors = {}
        if not self.title.strip():
            errors["title"] = "Title is required"
        elif len(self.title.strip()) > 255:
            errors["title"] = "Title too long"
        if not self.author.strip():
            errors["author"] = "Author is required"
        elif len(self.author.strip()) > 255:
            errors["author"] = "Author too long"
        if self.stars is not None and not 1 <= self.stars <= 5:
            errors["stars"] = "Rating must be between 1 and 5"
        if len(self.review.strip()) > 1000:
            errors["review"] = "Review too long"
        return errors

    def create_payload(self) -> dict:
        payload = {
            "title": self.title.strip(),
            "author": self.author.strip(),
            "status": BookStatus(self.status).value,
        }
        if self.stars is not None:
            payload["stars"] = self.stars
        if self.review.strip():
            payload["review"] = self.review.strip()
        return payload

    def update_payload(self) -> dict:
        payload = {
            "title": self.title.strip(),
            "author": self.author.strip(),
            "status": BookStatus(self.status).value,
            "review": self.review.strip() or None,
        }
        if self.stars is not None:
            payload["stars"] = self.stars
        return payload


@dataclass
class FormResult:
    ok: bool
    errors: Dict[str, str] = field(default_factory=dict)
    book: Optional[BookOut] = None


class _BookScreen:
    def __init__(self, query_client: QueryClient, queries: BookQueries):
        self.query_client = query_client
        self.queries = queries

    def _invalidate_books(self, _result=None) -> None:
        self.query_client.invalidate_queries(self.queries.books().query_key)

    def _run(self, mutation: Mutation, variables, failure_message: str) -> FormResult:
        result = FormResult(ok=False)

        def on_success(data) -> None:
            self._invalidate_books()
            result.ok = True
            result.book = getattr(data, "book", None)

        def on_error(exc: Exception) -> None:
            logger.error("%s: %s", failure_message, exc)
            result.errors = {"general": failure_message}

        mutation.mutate(variables, on_success=on_success, on_error=on_error)
        return result


class BookListView(_BookScreen):
    def __init__(self, query_client: QueryClient, queries: BookQueries):
        super().__init__(query_client, queries)
        self.delete_mutation = Mutation(queries.delete_book())

    def books(self) -> List[BookOut]:
        return self.query_client.fetch_query(self.queries.books()).books

    def visible_books(self, book_filter: BookFilter = "all", sort_by: SortBy = "createdAt") -> List[BookOut]:
        return filter_and_sort_books(self.books(), book_filter, sort_by)

    def stats(self) -> BookStats:
        return BookStats.from_books(self.books())

    def delete(self, book_id: int) -> FormResult:
        return self._run(self.delete_mutation, {"param": {"id": str(book_id)}}, DELETE_FAILED)


class CreateBookForm(_BookScreen):
    def __init__(self, query_client: QueryClient, queries: BookQueries):
        super().__init__(query_client, queries)
        self.mutation = Mutation(queries.create_book())

    def submit(self, form: BookForm) -> FormResult:
        errors = form.errors()
        if errors:
            return FormResult(ok=False, errors=errors)
        return self._run(self.mutation, {"json": form.create_payload()}, CREATE_FAILED)


class EditBookForm(_BookScreen):
    def __init__(self, query_client: QueryClient, queries: BookQueries, book: BookOut):
        super().__init__(query_client, queries)
        self.book = book
        self.mutation = Mutation(queries.update_book())

    def submit(self, form: BookForm) -> FormResult:
        errors = form.errors()
        if errors:
            return FormResult(ok=False, errors=errors)
        variables = {"param": {"id": str(self.book.id)}, "json": form.update_payload()}
        return self._run(self.mutation, variables, UPDATE_FAILED)

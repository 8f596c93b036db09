"""Terminal front end for the Book Log API."""
import logging
from enum import Enum
from typing import Optional

import httpx
import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from client import ApiError, QueryClient
from config import settings
from logging_config import setup_logging
from queries import BookQueries, make_http_client
from schemas import BookOut, BookStatus
from views import (
    LOAD_FAILED,
    BookForm,
    BookListView,
    BookStats,
    CreateBookForm,
    EditBookForm,
)

APP_NAME = "book-log"

app = typer.Typer(name=APP_NAME, help="Track the books you read.", no_args_is_help=True)
console = Console()
logger = logging.getLogger(__name__)


class FilterChoice(str, Enum):
    all = "all"
    reading = "reading"
    done = "done"


class SortChoice(str, Enum):
    createdAt = "createdAt"
    title = "title"
    author = "author"
    stars = "stars"


def _session() -> tuple[QueryClient, BookQueries]:
    return QueryClient(), BookQueries(make_http_client(settings))


def render_stars(stars: Optional[int]) -> str:
    if stars is None:
        return "[dim]No rating[/]"
    value = max(0, min(5, stars))
    return f"[yellow]{'★' * value}[/][dim]{'☆' * (5 - value)}[/]"


def render_status(status: BookStatus) -> str:
    return "[blue]Reading[/]" if status is BookStatus.reading else "[green]Completed[/]"


def _print_stats(stats: BookStats) -> None:
    console.print(
        Panel(
            f"Total books: [bold]{stats.total}[/]   "
            f"Currently reading: [bold]{stats.reading}[/] ({stats.reading_percent}%)   "
            f"Completed: [bold]{stats.done}[/] ({stats.done_percent}%)",
            title="📚 Book Logs",
            expand=False,
        )
    )


def _print_books(books: list[BookOut]) -> None:
    table = Table(show_lines=True, header_style="bold cyan", box=box.ROUNDED)
    table.add_column("ID", style="magenta", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Author", style="white")
    table.add_column("Status")
    table.add_column("Rating", no_wrap=True)
    table.add_column("Review")
    table.add_column("Added", no_wrap=True)
    for book in books:
        table.add_row(
            str(book.id),
            escape(book.title),
            escape(book.author),
            render_status(book.status),
            render_stars(book.stars),
            escape(book.review) if book.review else "",
            book.created_at.strftime("%Y-%m-%d"),
        )
    console.print(table)


def _fail(message: str) -> None:
    console.print(f"[bold red]{message}[/]")
    raise typer.Exit(code=1)


def _report_form_errors(errors: dict[str, str]) -> None:
    for name, message in errors.items():
        label = "" if name == "general" else f"{name}: "
        console.print(f"[bold red]{label}{message}[/]")
    raise typer.Exit(code=1)


def _fetch_book(query_client: QueryClient, queries: BookQueries, book_id: int) -> BookOut:
    try:
        return query_client.fetch_query(queries.book_by_id({"param": {"id": str(book_id)}})).book
    except ApiError as exc:
        if exc.status_code == 404:
            _fail("Book not found")
        logger.error("Error loading book %s: %s", book_id, exc)
        _fail(LOAD_FAILED)
    except httpx.HTTPError as exc:
        logger.error("Error loading book %s: %s", book_id, exc)
        _fail(LOAD_FAILED)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log HTTP errors")) -> None:
    if verbose:
        settings.LOG_LEVEL = "DEBUG"
    setup_logging()


@app.command("list")
def list_books(
    book_filter: FilterChoice = typer.Option(FilterChoice.all, "--filter", "-f", help="Which books to show"),
    sort_by: SortChoice = typer.Option(SortChoice.createdAt, "--sort", "-s", help="Sort order"),
) -> None:
    """List books with stats."""
    view = BookListView(*_session())
    try:
        books = view.visible_books(book_filter.value, sort_by.value)
        stats = view.stats()
    except (ApiError, httpx.HTTPError) as exc:
        logger.error("Error loading books: %s", exc)
        _fail(LOAD_FAILED)

    _print_stats(stats)
    if not books:
        if book_filter is FilterChoice.all:
            console.print("No books in your library yet.")
        else:
            console.print(f"No {book_filter.value} books found.")
        return
    _print_books(books)


@app.command()
def show(book_id: int = typer.Argument(..., help="Book ID")) -> None:
    """Show a single book."""
    book = _fetch_book(*_session(), book_id)
    _print_books([book])


@app.command()
def add(
    title: str = typer.Option(..., "--title", "-t", prompt=True),
    author: str = typer.Option(..., "--author", "-a", prompt=True),
    status: BookStatus = typer.Option(BookStatus.reading, "--status"),
    stars: Optional[int] = typer.Option(None, "--stars", help="Rating from 1 to 5"),
    review: str = typer.Option("", "--review"),
) -> None:
    """Add a new book."""
    form = BookForm(title=title, author=author, status=status, stars=stars, review=review)
    result = CreateBookForm(*_session()).submit(form)
    if not result.ok:
        _report_form_errors(result.errors)
    console.print(f"[green]Added[/] #{result.book.id} {escape(result.book.title)}")


@app.command()
def edit(
    book_id: int = typer.Argument(..., help="Book ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    author: Optional[str] = typer.Option(None, "--author", "-a"),
    status: Optional[BookStatus] = typer.Option(None, "--status"),
    stars: Optional[int] = typer.Option(None, "--stars", help="Rating from 1 to 5"),
    review: Optional[str] = typer.Option(None, "--review", help="Empty string clears it"),
) -> None:
    """Edit an existing book."""
    query_client, queries = _session()
    book = _fetch_book(query_client, queries, book_id)

    form = BookForm.from_book(book)
    if title is not None:
        form.title = title
    if author is not None:
        form.author = author
    if status is not None:
        form.status = status
    if stars is not None:
        form.stars = stars
    if review is not None:
        form.review = review

    result = EditBookForm(query_client, queries, book).submit(form)
    if not result.ok:
        _report_form_errors(result.errors)
    console.print(f"[green]Updated[/] #{result.book.id} {escape(result.book.title)}")


@app.command()
def delete(
    book_id: int = typer.Argument(..., help="Book ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a book."""
    if not yes and not typer.confirm("Are you sure you want to delete this book?"):
        raise typer.Abort()

    result = BookListView(*_session()).delete(book_id)
    if not result.ok:
        _report_form_errors(result.errors)
    console.print(f"[green]Deleted[/] #{book_id}")


if __name__ == "__main__":
    app()

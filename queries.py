"""Query and mutation descriptors for the book endpoints.

    queries = BookQueries(make_http_client(settings))
    data = query_client.fetch_query(queries.books())
"""
import httpx

import contract
from client import create_mutation_options, create_query_options

BOOKS_KEY = ["books"]


def make_http_client(settings) -> httpx.Client:
    headers = {"Accept": "application/json"}
    if settings.API_TOKEN:
        headers["Authorization"] = f"Bearer {settings.API_TOKEN}"
    return httpx.Client(base_url=settings.API_URL, headers=headers, timeout=settings.API_TIMEOUT)


class BookQueries:
    def __init__(self, http: httpx.Client):
        self.http = http
        self.books = create_query_options(BOOKS_KEY, contract.LIST_BOOKS, http)
        self.book_by_id = create_query_options(
            lambda data: [*BOOKS_KEY, data["param"]["id"]], contract.GET_BOOK, http
        )
        self.create_book = create_mutation_options(contract.CREATE_BOOK, http)
        self.update_book = create_mutation_options(contract.UPDATE_BOOK, http)
        self.delete_book = create_mutation_options(contract.DELETE_BOOK, http)

from datetime import datetime
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from database import get_db
from main import app


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


@pytest.fixture
def broken_db():
    db = MagicMock()
    failure = OperationalError("SELECT * FROM books", {}, Exception("connection refused"))
    db.query.side_effect = failure
    db.execute.side_effect = failure
    db.commit.side_effect = failure

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield db
    app.dependency_overrides.clear()


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_health_check_reports_unreachable_database(broken_db):
    response = TestClient(app).get("/health")
    assert response.status_code == 503
    assert response.json()["error"]["components"] == {"database": "unhealthy"}


def test_root_welcome(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Book Log API - Welcome!"}


def test_get_books_empty(client):
    response = client.get("/books")
    assert response.status_code == 200
    assert response.json() == {"books": []}


def test_create_and_update_example(client):
    response = client.post("/books", json={"title": "Dune", "author": "Herbert"})
    assert response.status_code == 201
    book = response.json()["book"]
    assert book["id"] == 1
    assert book["title"] == "Dune"
    assert book["author"] == "Herbert"
    assert book["status"] == "reading"
    assert book["stars"] is None
    assert book["review"] is None
    assert book["createdAt"] == book["updatedAt"]

    response = client.put("/books/1", json={"stars": 5, "status": "done"})
    assert response.status_code == 200
    updated = response.json()["book"]
    assert updated["status"] == "done"
    assert updated["stars"] == 5
    assert updated["title"] == "Dune"
    assert updated["author"] == "Herbert"
    assert updated["createdAt"] == book["createdAt"]
    assert _ts(updated["updatedAt"]) >= _ts(book["updatedAt"])


def test_create_uses_supplied_fields(create_book):
    book = create_book(status="done", stars=4, review="Spice must flow")
    assert book["status"] == "done"
    assert book["stars"] == 4
    assert book["review"] == "Spice must flow"


def test_create_generates_new_ids(create_book):
    ids = [create_book(title=f"Book {n}")["id"] for n in range(3)]
    assert all(isinstance(book_id, int) and book_id > 0 for book_id in ids)
    assert len(set(ids)) == 3


def test_create_ignores_unknown_keys(client):
    response = client.post("/books", json={"title": "Emma", "author": "Austen", "id": 99, "isbn": "x"})
    assert response.status_code == 201
    assert "isbn" not in response.json()["book"]


def test_response_uses_camel_case_timestamps(create_book):
    book = create_book()
    assert set(book) == {"id", "title", "author", "status", "stars", "review", "createdAt", "updatedAt"}


def test_create_then_get_round_trip(client, create_book):
    created = create_book(stars=3, review="Slow start")
    response = client.get(f"/books/{created['id']}")
    assert response.status_code == 200
    assert response.json()["book"] == created


def test_list_orders_by_creation(client, create_book):
    for title in ("A", "B", "C"):
        create_book(title=title)

    response = client.get("/books")
    assert response.status_code == 200
    assert [book["title"] for book in response.json()["books"]] == ["A", "B", "C"]


def test_partial_update_only_touches_supplied_fields(client, create_book):
    book = create_book(status="reading", stars=2, review="Meh")

    response = client.put(f"/books/{book['id']}", json={"stars": 4})
    assert response.status_code == 200
    updated = response.json()["book"]
    assert updated["stars"] == 4
    for unchanged in ("title", "author", "status", "review", "createdAt"):
        assert updated[unchanged] == book[unchanged]
    assert _ts(updated["updatedAt"]) >= _ts(book["updatedAt"])


def test_update_empty_patch_refreshes_timestamp(client, create_book):
    book = create_book()
    response = client.put(f"/books/{book['id']}", json={})
    assert response.status_code == 200
    updated = response.json()["book"]
    assert _ts(updated["updatedAt"]) >= _ts(book["updatedAt"])
    assert {k: v for k, v in updated.items() if k != "updatedAt"} == {
        k: v for k, v in book.items() if k != "updatedAt"
    }


def test_update_can_clear_rating_and_review(client, create_book):
    book = create_book(stars=5, review="Loved it")
    response = client.put(f"/books/{book['id']}", json={"stars": None, "review": None})
    assert response.status_code == 200
    assert response.json()["book"]["stars"] is None
    assert response.json()["book"]["review"] is None


@pytest.mark.parametrize("field", ["title", "author", "status"])
def test_update_rejects_null_required_fields(client, create_book, field):
    book = create_book()
    response = client.put(f"/books/{book['id']}", json={field: None})
    assert response.status_code == 400


@pytest.mark.parametrize(
    "method, body",
    [("get", None), ("put", {"stars": 3}), ("delete", None)],
)
def test_missing_book_is_not_found(client, method, body):
    kwargs = {"json": body} if body is not None else {}
    response = client.request(method.upper(), "/books/4242", **kwargs)
    assert response.status_code == 404
    assert response.json() == {"error": "Book not found"}


def test_delete_book(client, create_book):
    book = create_book()

    response = client.delete(f"/books/{book['id']}")
    assert response.status_code == 200
    assert response.json() == {"message": "Book deleted successfully"}

    assert client.get(f"/books/{book['id']}").status_code == 404
    assert client.delete(f"/books/{book['id']}").status_code == 404


def test_delete_missing_book_twice(client, create_book):
    survivor = create_book()
    for _ in range(2):
        response = client.delete("/books/777")
        assert response.status_code == 404
        assert "error" in response.json()
    assert client.get("/books").json()["books"] == [survivor]


@pytest.mark.parametrize("stars", [0, 6, -1, 2.5, True, "5"])
def test_stars_out_of_range_rejected(client, stars):
    response = client.post("/books", json={"title": "Dune", "author": "Herbert", "stars": stars})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


@pytest.mark.parametrize("stars", [1, 5])
def test_stars_boundaries_accepted(client, stars):
    response = client.post("/books", json={"title": "Dune", "author": "Herbert", "stars": stars})
    assert response.status_code == 201
    assert response.json()["book"]["stars"] == stars


@pytest.mark.parametrize(
    "payload",
    [
        {"author": "Herbert"},
        {"title": "Dune"},
        {"title": "", "author": "Herbert"},
        {"title": "x" * 256, "author": "Herbert"},
        {"title": "Dune", "author": "Herbert", "status": "paused"},
        {"title": "Dune", "author": "Herbert", "review": "r" * 1001},
    ],
)
def test_invalid_create_payloads(client, payload):
    response = client.post("/books", json=payload)
    assert response.status_code == 400
    assert response.json()["issues"]


def test_review_at_limit_accepted(client):
    response = client.post("/books", json={"title": "Dune", "author": "Herbert", "review": "r" * 1000})
    assert response.status_code == 201


def test_malformed_json_rejected(client):
    response = client.post("/books", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400


@pytest.mark.parametrize("book_id", ["abc", "-1", "1.5", "1e3", "\u0661", "\uff11"])
def test_malformed_ids_rejected(client, book_id):
    for method in ("GET", "DELETE"):
        response = client.request(method, f"/books/{book_id}")
        assert response.status_code == 400


@pytest.mark.parametrize("book_id", ["2147483648", "99999999999999999999"])
def test_ids_past_column_range_are_not_found(client, book_id):
    for method, body in (("GET", None), ("PUT", {"stars": 3}), ("DELETE", None)):
        kwargs = {"json": body} if body is not None else {}
        response = client.request(method, f"/books/{book_id}", **kwargs)
        assert response.status_code == 404
        assert response.json() == {"error": "Book not found"}


def test_update_rejects_loose_stars(client, create_book):
    book = create_book(stars=3)
    for stars in (True, "5"):
        assert client.put(f"/books/{book['id']}", json={"stars": stars}).status_code == 400
    assert client.get(f"/books/{book['id']}").json()["book"]["stars"] == 3


def test_validation_never_reaches_store():
    db = MagicMock()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as c:
            assert c.post("/books", json={"title": "", "author": ""}).status_code == 400
            assert c.put("/books/abc", json={"stars": 3}).status_code == 400
            assert c.put("/books/1", json={"stars": 9}).status_code == 400
    finally:
        app.dependency_overrides.clear()
    assert db.method_calls == []


@pytest.mark.parametrize(
    "method, path, body, message, logged",
    [
        ("GET", "/books", None, "Failed to fetch books", "Error fetching books"),
        ("GET", "/books/1", None, "Failed to fetch book", "Error fetching book 1"),
        ("POST", "/books", {"title": "Dune", "author": "Herbert"}, "Failed to create book", "Error creating book"),
        ("PUT", "/books/1", {"stars": 2}, "Failed to update book", "Error updating book 1"),
        ("DELETE", "/books/1", None, "Failed to delete book", "Error deleting book 1"),
    ],
)
def test_store_errors_are_generic_500(broken_db, method, path, body, message, logged, caplog):
    kwargs = {"json": body} if body is not None else {}
    with TestClient(app) as c:
        response = c.request(method, path, **kwargs)

    assert response.status_code == 500
    assert response.json() == {"error": message}
    assert "connection refused" not in response.text
    assert logged in caplog.text
    broken_db.rollback.assert_called()


def test_unknown_route_uses_error_shape(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}

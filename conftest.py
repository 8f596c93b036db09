import os

# Pin the configuration before the app modules read it
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CREATE_TABLES"] = "false"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["WEB_URL"] = "http://localhost:5173"
os.environ["FRONTEND_ORIGINS"] = "http://localhost:5173,http://localhost:8080"
os.environ.pop("AUTH_SERVICE_URL", None)
os.environ.pop("API_TOKEN", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401
from database import Base, engine, get_db
from main import app

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False)


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def client(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def create_book(client):
    def _create(**fields):
        payload = {"title": "Dune", "author": "Frank Herbert", **fields}
        response = client.post("/books", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["book"]

    return _create

"""Endpoint declarations shared by the API router and the typed client.

The server registers its routes with the same paths and response models,
and ``test_contract.py`` fails when the two drift apart.
"""
from dataclasses import dataclass
from typing import Generic, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel

import schemas

ResponseT = TypeVar("ResponseT", bound=BaseModel)


@dataclass(frozen=True)
class Endpoint(Generic[ResponseT]):
    method: str
    path: str
    response_model: Type[ResponseT]
    body_model: Optional[Type[BaseModel]] = None
    success_status: int = 200

    def url(self, param: Optional[Mapping[str, object]] = None) -> str:
        return self.path.format(**{key: str(value) for key, value in (param or {}).items()})


LIST_BOOKS = Endpoint("GET", "/books", schemas.BookList)
GET_BOOK = Endpoint("GET", "/books/{id}", schemas.BookEnvelope)
CREATE_BOOK = Endpoint(
    "POST", "/books", schemas.BookEnvelope, body_model=schemas.BookCreate, success_status=201
)
UPDATE_BOOK = Endpoint("PUT", "/books/{id}", schemas.BookEnvelope, body_model=schemas.BookUpdate)
DELETE_BOOK = Endpoint("DELETE", "/books/{id}", schemas.MessageResponse)

ENDPOINTS = (LIST_BOOKS, GET_BOOK, CREATE_BOOK, UPDATE_BOOK, DELETE_BOOK)

"""Typed client adapter and a small query cache.

Endpoints declared in ``contract`` are turned into query descriptors
(a cache key plus a fetch function) and mutation descriptors (a callable
taking the request body or explicit request targets).  Bodies are checked
against the endpoint's request model before they leave the process and
responses are parsed into the endpoint's response model.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from contract import Endpoint

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Request slots other than the JSON body
REQUEST_TARGETS = ("form", "query", "header", "cookie", "param")

QueryKey = Tuple[str, ...]


class ApiError(Exception):
    """Non-2xx response. ``error`` is the server's ``error`` field, or the raw body."""

    def __init__(self, status_code: int, error: Any, payload: Any = None):
        super().__init__(f"{status_code}: {error}")
        self.status_code = status_code
        self.error = error
        self.payload = payload


def _cookie_header(cookies: Mapping[str, Any]) -> str:
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def fetcher(http: httpx.Client, endpoint: Endpoint[T], request: Optional[Mapping[str, Any]] = None) -> T:
    request = dict(request or {})

    body = request.get("json")
    if body is not None and endpoint.body_model is not None:
        if isinstance(body, BaseModel):
            body = body.model_dump(mode="json", exclude_unset=True)
        body = endpoint.body_model.model_validate(body).model_dump(mode="json", exclude_unset=True)

    headers = dict(request.get("header") or {})
    if request.get("cookie"):
        headers["cookie"] = _cookie_header(request["cookie"])

    res = http.request(
        endpoint.method,
        endpoint.url(request.get("param")),
        params=request.get("query"),
        headers=headers or None,
        json=body,
        data=request.get("form"),
    )

    try:
        payload = res.json()
    except ValueError:
        payload = res.text

    if not res.is_success:
        logger.debug("%s %s failed with %s", endpoint.method, res.request.url, res.status_code)
        if isinstance(payload, dict) and payload.get("error"):
            raise ApiError(res.status_code, payload["error"], payload)
        raise ApiError(res.status_code, payload, payload)

    return endpoint.response_model.model_validate(payload)


@dataclass(frozen=True)
class QueryOptions(Generic[T]):
    query_key: QueryKey
    query_fn: Callable[[], T]


@dataclass(frozen=True)
class MutationOptions(Generic[T]):
    mutation_fn: Callable[[Any], T]


KeySpec = Union[List[str], Callable[[Any], Iterable[str]]]


def create_query_options(
    query_key: KeySpec, endpoint: Endpoint[T], http: httpx.Client
) -> Callable[..., QueryOptions[T]]:
    def options(data: Optional[Mapping[str, Any]] = None) -> QueryOptions[T]:
        key = query_key(data) if callable(query_key) else query_key
        return QueryOptions(
            query_key=tuple(str(part) for part in key),
            query_fn=lambda: fetcher(http, endpoint, data),
        )

    return options


def create_mutation_options(
    endpoint: Endpoint[T],
    http: httpx.Client,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Callable[[], MutationOptions[T]]:
    """Build mutation descriptors for ``endpoint``.

    The mutation argument is sent as the JSON body, so ``mutate({"title": ...})``
    works directly.  When any of its keys names a request target (``param``,
    ``query``...) it is used as the request as is.  ``defaults`` are merged
    into every request.
    """

    def mutation_fn(args: Any = None) -> T:
        if isinstance(args, BaseModel):
            args = args.model_dump(mode="json", exclude_unset=True)
        args = dict(args or {})

        if any(key in REQUEST_TARGETS for key in args):
            request = args
        else:
            options = args.pop("options", None) or {}
            request = {"json": args, **options}
        request.update(defaults or {})
        return fetcher(http, endpoint, request)

    def options() -> MutationOptions[T]:
        return MutationOptions(mutation_fn=mutation_fn)

    return options


class QueryClient:
    """In-memory cache of query results keyed by their query key."""

    def __init__(self):
        self._cache: Dict[QueryKey, Any] = {}

    def fetch_query(self, options: QueryOptions[T]) -> T:
        if options.query_key in self._cache:
            return self._cache[options.query_key]
        data = options.query_fn()
        self._cache[options.query_key] = data
        return data

    def get_query_data(self, query_key: Iterable[str]) -> Any:
        return self._cache.get(tuple(query_key))

    def set_query_data(self, query_key: Iterable[str], data: Any) -> None:
        self._cache[tuple(query_key)] = data

    def invalidate_queries(self, query_key: Iterable[str]) -> int:
        """Drop every cached entry whose key starts with ``query_key``."""
        prefix = tuple(query_key)
        stale = [key for key in self._cache if key[: len(prefix)] == prefix]
        for key in stale:
            del self._cache[key]
        return len(stale)

    def clear(self) -> None:
        self._cache.clear()


class Mutation(Generic[T]):
    def __init__(self, options: MutationOptions[T]):
        self.options = options
        self.is_pending = False

    def mutate(
        self,
        variables: Any = None,
        on_success: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_settled: Optional[Callable[[], None]] = None,
    ) -> Optional[T]:
        """Run the mutation. Errors go to ``on_error`` when given, else propagate."""
        self.is_pending = True
        try:
            result = self.options.mutation_fn(variables)
        except (ApiError, ValidationError, httpx.HTTPError) as exc:
            if on_error is None:
                raise
            on_error(exc)
            result = None
        else:
            if on_success is not None:
                on_success(result)
        finally:
            self.is_pending = False
            if on_settled is not None:
                on_settled()
        return result

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import httpx
from fastapi import Request, status
from fastapi.responses import JSONResponse, Response
from jose import JWTError, jwt

logger = logging.getLogger(__name__)

# Not relayed between the client and the auth service
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
    "content-encoding",
}


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved for one request. Both fields are None when anonymous."""

    user: Optional[dict] = None
    session: Optional[dict] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


ANONYMOUS = AuthContext()


class AuthResolutionError(Exception):
    """The auth collaborator could not answer a session lookup."""


class AuthCollaborator(Protocol):
    async def get_session(self, headers: Mapping[str, str]) -> Optional[AuthContext]: ...

    async def handle(self, request: Request) -> Response: ...


class AuthServiceClient:
    """Auth collaborator reached over HTTP.

    Session lookups hit ``/api/auth/get-session`` with the caller's cookie and
    authorization headers; everything under ``/api/auth`` is proxied as is.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    async def get_session(self, headers: Mapping[str, str]) -> Optional[AuthContext]:
        forwarded = {
            name: headers[name] for name in ("cookie", "authorization") if name in headers
        }
        if not forwarded:
            return None

        async with self._client() as client:
            try:
                res = await client.get("/api/auth/get-session", headers=forwarded)
            except httpx.RequestError as exc:
                raise AuthResolutionError(f"Auth service unavailable: {exc}") from exc

        if res.status_code == status.HTTP_401_UNAUTHORIZED:
            return None
        if res.status_code != status.HTTP_200_OK:
            raise AuthResolutionError(f"Auth service answered {res.status_code}")

        try:
            payload = res.json()
        except ValueError as exc:
            raise AuthResolutionError("Auth service returned invalid JSON") from exc

        if not payload or not payload.get("user"):
            return None
        return AuthContext(user=payload["user"], session=payload.get("session"))

    async def handle(self, request: Request) -> Response:
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        }
        body = await request.body()

        url = request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"

        async with self._client() as client:
            upstream = await client.request(request.method, url, headers=headers, content=body)

        response = Response(content=upstream.content, status_code=upstream.status_code)
        for name, value in upstream.headers.multi_items():
            if name.lower() in HOP_BY_HOP_HEADERS:
                continue
            if name.lower() == "set-cookie":
                response.headers.append(name, value)
            else:
                response.headers[name] = value
        return response


class TokenAuth:
    """Local resolver for signed session tokens, used without an auth service."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", cookie_name: str = "session_token"):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.cookie_name = cookie_name

    def _extract_token(self, headers: Mapping[str, str]) -> Optional[str]:
        auth_header = headers.get("authorization", "")
        parts = auth_header.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]

        for chunk in headers.get("cookie", "").split(";"):
            name, _, value = chunk.strip().partition("=")
            if name == self.cookie_name and value:
                return value
        return None

    async def get_session(self, headers: Mapping[str, str]) -> Optional[AuthContext]:
        token = self._extract_token(headers)
        if not token:
            return None

        try:
            payload: dict[str, Any] = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

        if payload.get("type", "access") != "access" or payload.get("id") is None:
            return None

        user = {"id": payload["id"], "role": payload.get("role") or "user"}
        session = {key: value for key, value in payload.items() if key not in ("id", "role")}
        return AuthContext(user=user, session=session)

    async def handle(self, request: Request) -> Response:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Authentication service is not configured"},
        )


def build_auth(settings) -> AuthCollaborator:
    if settings.AUTH_SERVICE_URL:
        return AuthServiceClient(settings.AUTH_SERVICE_URL)
    return TokenAuth(settings.SECRET_KEY, settings.ALGORITHM, settings.SESSION_COOKIE_NAME)


async def resolve_session(auth: AuthCollaborator, headers: Mapping[str, str]) -> AuthContext:
    """Look up the caller's session, treating any collaborator failure as anonymous."""
    try:
        context = await auth.get_session(headers)
    except Exception:
        logger.exception("Session resolution failed, continuing unauthenticated")
        return ANONYMOUS
    return context or ANONYMOUS


def get_auth_context(request: Request) -> AuthContext:
    return getattr(request.state, "auth", ANONYMOUS)

import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import AuthContext, build_auth, get_auth_context, resolve_session
from database import get_db, init_db
from routers import auth as auth_routes, books
from config import settings
from logging_config import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    logger.info("Starting up book-log API...")
    if settings.CREATE_TABLES:
        init_db()
    yield
    # Shutdown logic
    logger.info("Shutting down book-log API...")

app = FastAPI(
    title="Book Log API",
    description="Track the books you are reading and the ones you finished",
    version="1.0.0",
    lifespan=lifespan
)
app.state.auth = build_auth(settings)

# Session resolution; failures degrade to an anonymous request
@app.middleware("http")
async def attach_session(request: Request, call_next):
    request.state.auth = await resolve_session(request.app.state.auth, request.headers)
    return await call_next(request)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000
    logger.info(
        "%s %s -> %s (%.2f ms) ip=%s",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        request.client.host if request.client else "unknown",
    )
    return response

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allow_origins,
    allow_credentials=True,
    allow_methods=["POST", "GET", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["Content-Length", "Set-Cookie"],
    max_age=600,
)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "issues": jsonable_encoder(exc.errors())},
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )

@app.get("/", tags=["System"])
async def root(request: Request, auth: AuthContext = Depends(get_auth_context)):
    # Browsers coming back from an OAuth callback belong on the web app
    accept = request.headers.get("accept", "")
    if auth.is_authenticated and "text/html" in accept:
        return RedirectResponse(settings.WEB_URL, status_code=status.HTTP_302_FOUND)
    return {"message": "Book Log API - Welcome!"}

@app.get("/health", tags=["System"])
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Database unreachable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "degraded", "service": "book-log", "components": {"database": "unhealthy"}},
        )
    return {"status": "healthy", "service": "book-log", "components": {"database": "connected"}}

app.include_router(auth_routes.router)
app.include_router(books.router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

router = APIRouter(prefix="/api/auth", tags=["Auth"])
logger = logging.getLogger(__name__)


@router.api_route("/{path:path}", methods=["GET", "POST"], include_in_schema=False)
async def auth_handler(request: Request, path: str):
    try:
        return await request.app.state.auth.handle(request)
    except Exception:
        logger.exception("Auth handler error on /api/auth/%s", path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Authentication error"},
        )

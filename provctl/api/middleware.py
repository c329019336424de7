from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from provctl.config import Config


class AuthMiddleware(BaseHTTPMiddleware):
    """Require the ``X-API-Key`` header on every route except the docs."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith("/docs") or request.url.path.startswith("/openapi.json"):
            return await call_next(request)

        if not Config.API_KEY:
            return JSONResponse(status_code=503, content={"detail": "API key is not configured"})
        if request.headers.get("X-API-Key") != Config.API_KEY:
            return JSONResponse(status_code=403, content={"detail": "Unauthorized"})
        return await call_next(request)

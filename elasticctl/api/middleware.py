import os

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

OPEN_PATHS = ("/docs", "/openapi.json", "/healthz")


class AuthMiddleware(BaseHTTPMiddleware):
    """Requires the X-API-Key header to match ELASTICCTL_API_KEY.

    With no key configured every protected request is rejected.
    """

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(OPEN_PATHS):
            return await call_next(request)

        token = os.getenv("ELASTICCTL_API_KEY")
        auth_header = request.headers.get("X-API-Key")
        if not token or auth_header != token:
            return JSONResponse(status_code=403, content={"detail": "Unauthorized"})
        return await call_next(request)

"""Bearer-token gate for /api/ requests.

Only checks that a token is present; routes decode it and load the user.
"""

import re

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# (method or None for any, path pattern) reachable without a token
PUBLIC_API_ROUTES = (
    (None, re.compile(r"^/api/auth/(register|login)$")),
    # Catalog and course detail; the service applies visibility rules
    ("GET", re.compile(r"^/api/courses$")),
    ("GET", re.compile(r"^/api/courses/\d+$")),
)

DOC_PREFIXES = ("/docs", "/openapi", "/redoc")


def is_public(method: str, path: str) -> bool:
    if method == "OPTIONS" or not path.startswith("/api/") or path.startswith(DOC_PREFIXES):
        return True
    path = path.rstrip("/")
    return any(
        (allowed is None or allowed == method) and pattern.match(path)
        for allowed, pattern in PUBLIC_API_ROUTES
    )


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if is_public(request.method, request.url.path):
            return await call_next(request)

        if request.headers.get("Authorization", "").lower().startswith("bearer "):
            return await call_next(request)

        return JSONResponse(status_code=401, content={"detail": "Not authenticated"})

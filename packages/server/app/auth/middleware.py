"""Auth middleware - global route protection with path allowlist.

Applied as Starlette middleware so it runs before FastAPI dependency
injection and covers every route without per-router Depends().
"""

import hmac
import re
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.auth.config import auth_settings
from app.logging_config import get_logger

logger = get_logger(__name__)

# Paths that never require authentication.
# Uses regex patterns matched against the request path.
PUBLIC_PATH_PATTERNS: list[re.Pattern] = [
    # Health check
    re.compile(r"^/v1/status$"),
    # Slack slash commands (protected by their own signature verification)
    re.compile(r"^/v1/slack/commands$"),
    # OpenAPI docs (useful during development)
    re.compile(r"^/docs$"),
    re.compile(r"^/redoc$"),
    re.compile(r"^/openapi\.json$"),
]


def _is_public_path(path: str) -> bool:
    """Return True if the path matches a public pattern."""
    for pattern in PUBLIC_PATH_PATTERNS:
        if pattern.match(path):
            return True
    return False


def _extract_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith("bearer "):
        return None
    token = header[7:].strip()
    return token or None


class AuthMiddleware(BaseHTTPMiddleware):
    """Reject requests to non-public paths that lack the admin bearer token.

    When AUTH_ENABLED=false, this middleware is a no-op.
    """

    async def dispatch(self, request: Request, call_next):
        # Skip auth entirely when disabled
        if not auth_settings.enabled:
            return await call_next(request)

        path = request.url.path

        # Allow public paths
        if _is_public_path(path):
            return await call_next(request)

        # Allow CORS preflight
        if request.method == "OPTIONS":
            return await call_next(request)

        token = _extract_bearer_token(request)
        if not token:
            return JSONResponse(
                status_code=401,
                content={"detail": "Not authenticated"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not hmac.compare_digest(
            token.encode("utf-8"), auth_settings.admin_api_token.encode("utf-8")
        ):
            logger.warning(f"Rejected invalid bearer token for {request.method} {path}")
            return JSONResponse(status_code=401, content={"detail": "Invalid token"})

        return await call_next(request)

"""
CORS Middleware - Cross-Origin Resource Sharing configuration.

The search frontend runs on its own origin in development, so the API
answers preflight requests and tags responses for the configured origins.

Usage:
    from swstarter.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allowed_origins=["http://localhost:8080"],
    )
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from swstarter.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CORSMiddleware(BaseHTTPMiddleware):
    """
    CORS (Cross-Origin Resource Sharing) middleware.

    Handles preflight OPTIONS requests and adds CORS headers to responses.
    """

    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        allow_credentials: bool = False,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        max_age: int = 600,
    ):
        """
        Args:
            app: ASGI application
            allowed_origins: Origins allowed to call the API ("*" allows any)
            allow_credentials: Whether to allow credentials
            allow_methods: Allowed HTTP methods (the API is read-only)
            allow_headers: Allowed request headers
            max_age: How long (seconds) to cache preflight responses
        """
        super().__init__(app)
        self.allowed_origins = allowed_origins or []
        self.allow_credentials = allow_credentials
        self.allow_methods = allow_methods or ["GET", "OPTIONS", "HEAD"]
        self.allow_headers = allow_headers or [
            "Accept",
            "Content-Type",
            "X-Request-ID",
            "X-Requested-With",
        ]
        self.max_age = max_age

        logger.info("CORS middleware initialized", allowed_origins=self.allowed_origins)

    def _is_allowed(self, origin: str | None) -> bool:
        if not origin:
            return False
        return "*" in self.allowed_origins or origin in self.allowed_origins

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        is_allowed_origin = self._is_allowed(origin)

        # Preflight
        if request.method == "OPTIONS" and request.headers.get("access-control-request-method"):
            if is_allowed_origin:
                return self._preflight_response(origin)
            logger.warning("CORS preflight rejected - origin not allowed", origin=origin)
            return Response(status_code=403, content="Origin not allowed")

        response = await call_next(request)

        if is_allowed_origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            if self.allow_credentials:
                response.headers["Access-Control-Allow-Credentials"] = "true"
        elif origin:
            logger.warning(
                "CORS request from disallowed origin", origin=origin, path=request.url.path
            )

        return response

    def _preflight_response(self, origin: str) -> Response:
        headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
            "Access-Control-Max-Age": str(self.max_age),
            "Vary": "Origin",
        }
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"

        logger.debug("CORS preflight request handled", origin=origin)
        return Response(status_code=204, headers=headers)

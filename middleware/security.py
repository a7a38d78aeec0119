"""Security middleware for HTTP security headers and request validation"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all HTTP responses.

    Headers added:
    - X-Frame-Options: Prevents clickjacking attacks
    - X-Content-Type-Options: Prevents MIME type sniffing
    - Strict-Transport-Security: Forces HTTPS (production only)
    - Content-Security-Policy: The API serves no active content
    - Referrer-Policy: Controls referrer information
    - Permissions-Policy: Controls browser features
    """

    def __init__(self, app, enable_hsts: bool = False):
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"

        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )

        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        return response


def _error_response(status_code: int, message: str, code: str, details: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "code": code, "details": details},
    )


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Reject request bodies larger than ``max_request_size`` based on
    Content-Length, before anything is read.
    """

    def __init__(self, app, max_request_size: int = 12 * 1024 * 1024):
        super().__init__(app)
        self.max_request_size = max_request_size

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")

        if content_length:
            try:
                content_length_int = int(content_length)
            except ValueError:
                return _error_response(400, "Invalid Content-Length header", "BAD_REQUEST", {})

            if content_length_int > self.max_request_size:
                return _error_response(
                    413,
                    f"Request body too large. Maximum size: {self.max_request_size} bytes",
                    "PAYLOAD_TOO_LARGE",
                    {
                        "max_size_bytes": self.max_request_size,
                        "received_size_bytes": content_length_int,
                    },
                )

        return await call_next(request)

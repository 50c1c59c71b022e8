"""Security headers middleware."""

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from backend.app.config import get_settings


class SecurityHeadersMiddleware:
    """Add security headers to all responses.

    Written as plain ASGI middleware so streamed responses pass through
    untouched and client disconnects still reach the endpoint.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app
        self.settings = get_settings()
        self.headers = self._build_headers()

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "same-origin",
            "X-Frame-Options": "DENY",
            # JSON and event-stream API: no documents, scripts or frames
            "Content-Security-Policy": "; ".join(
                [
                    "default-src 'none'",
                    f"connect-src 'self' {self.settings.ui_origin}",
                    "frame-ancestors 'none'",
                ]
            ),
        }
        # HSTS (only in production)
        if not self.settings.ui_origin.startswith("http://localhost"):
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return headers

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = MutableHeaders(scope=message)
                for name, value in self.headers.items():
                    response_headers.setdefault(name, value)
            await send(message)

        await self.app(scope, receive, send_with_headers)

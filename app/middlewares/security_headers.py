from starlette.types import ASGIApp, Receive, Scope, Send, Message

from app.core.settings import settings

MEDIA_PATH_PREFIX = "/api/v1/media/"


def _default_headers(enable_hsts: bool, *, cacheable: bool) -> list[tuple[bytes, bytes]]:
    defaults: list[tuple[bytes, bytes]] = [
        (b"x-content-type-options", b"nosniff"),
        (b"x-frame-options", b"DENY"),
        (b"referrer-policy", b"no-referrer"),
        (b"cross-origin-opener-policy", b"same-origin"),
        (b"cross-origin-resource-policy", b"same-origin"),
    ]
    if not cacheable:
        # Admin API payloads must never be served from a shared cache
        defaults.append((b"cache-control", b"no-store"))
    if enable_hsts:
        defaults.append((b"strict-transport-security", b"max-age=63072000; includeSubDomains"))
    if settings.content_security_policy:
        header_name = (
            b"content-security-policy-report-only"
            if settings.content_security_policy_report_only
            else b"content-security-policy"
        )
        defaults.append((header_name, settings.content_security_policy.encode()))
    return defaults


class SecurityHeadersMiddleware:
    """Apply safe default security headers; media responses stay cacheable."""

    def __init__(self, app: ASGIApp, enable_hsts: bool = True) -> None:
        self.app = app
        self.enable_hsts = enable_hsts

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        cacheable = scope.get("path", "").startswith(MEDIA_PATH_PREFIX)

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                new_headers = list(message.get("headers", []))
                existing_keys = {k.lower() for k, _ in new_headers}
                for key, value in _default_headers(self.enable_hsts, cacheable=cacheable):
                    if key not in existing_keys:
                        new_headers.append((key, value))
                message["headers"] = new_headers
            await send(message)

        await self.app(scope, receive, send_with_headers)

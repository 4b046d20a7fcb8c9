from uuid import uuid4

from starlette.types import ASGIApp, Receive, Scope, Send, Message

from app.core import context


class RequestContextMiddleware:
    """Attach request_id to context vars and resolve the client IP behind proxies.

    X-Forwarded-For is "client, proxy1, proxy2, ...". With N trusted proxies at
    the end, the client is at index -(N+1). The resolved address is written back
    into the scope so slowapi and access logs see it.
    """

    def __init__(self, app: ASGIApp, proxies_count: int = 1) -> None:
        self.app = app
        self.proxies_count = proxies_count

    def _resolve_client(self, scope: Scope, headers: dict[bytes, bytes]) -> None:
        if self.proxies_count <= 0:
            return
        forwarded = headers.get(b"x-forwarded-for", b"").decode()
        if not forwarded:
            return
        ips = [ip.strip() for ip in forwarded.split(",")]
        if len(ips) > self.proxies_count:
            port = scope["client"][1] if scope.get("client") else 0
            scope["client"] = (ips[-(self.proxies_count + 1)], port)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        self._resolve_client(scope, headers)
        request_id = (
            headers.get(b"x-request-id", b"").decode() or str(uuid4())
        )

        context.clear_context()
        context.set_request_id(request_id)

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers_list = list(message.get("headers", []))
                headers_list.append((b"x-request-id", request_id.encode()))
                message["headers"] = headers_list
            await send(message)

        await self.app(scope, receive, send_with_request_id)

from __future__ import annotations

from starlette.types import ASGIApp, Receive, Scope, Send

CORS_HEADERS: dict[str, str] = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "POST, OPTIONS",
    "access-control-allow-headers": "Content-Type",
}


class PermissiveCorsMiddleware:
    """
    Stamps permissive CORS headers on every response and answers any OPTIONS
    request itself with an empty 200 (preflight), whatever the path.

    Add via: app.add_middleware(PermissiveCorsMiddleware)
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app
        self._raw_headers = [(k.encode(), v.encode()) for k, v in CORS_HEADERS.items()]

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        if scope.get("method") == "OPTIONS":
            await send(
                {
                    "type": "http.response.start",
                    "status": 200,
                    "headers": [*self._raw_headers, (b"content-length", b"0")],
                },
            )
            await send({"type": "http.response.body", "body": b""})
            return

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                existing = [
                    (k, v)
                    for k, v in message.get("headers", [])
                    if k.decode().lower() not in CORS_HEADERS
                ]
                message = {**message, "headers": existing + self._raw_headers}
            await send(message)

        await self.app(scope, receive, send_wrapper)

from __future__ import annotations

import time

from starlette.types import ASGIApp, Receive, Scope, Send


class TimingHeadersMiddleware:
    """
    Stamps X-Cost-MS on every inbound route and echoes X-Request-Id when the
    caller sent one.

    Add via: app.add_middleware(TimingHeadersMiddleware)
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        start = time.perf_counter()
        req_headers = {k.decode().lower(): v.decode() for k, v in scope.get("headers", [])}

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                dur_ms = (time.perf_counter() - start) * 1000.0
                headers = [(b"x-cost-ms", f"{dur_ms:.1f}".encode())]
                if "x-request-id" in req_headers:
                    headers.append((b"x-request-id", req_headers["x-request-id"].encode()))
                message = {**message, "headers": list(message.get("headers", [])) + headers}
            await send(message)

        await self.app(scope, receive, send_wrapper)

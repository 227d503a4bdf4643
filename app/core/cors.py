from __future__ import annotations

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

#: Methods and request headers browsers may use, per path prefix.
CORS_POLICIES: dict[str, dict[str, list[str]]] = {
    "/metadata": {
        "allow_methods": ["GET", "OPTIONS"],
        "allow_headers": ["Content-Type"],
    },
    "/notifications": {
        "allow_methods": ["POST", "OPTIONS"],
        "allow_headers": ["Content-Type", "Authorization"],
    },
    "/members": {
        "allow_methods": ["PUT", "OPTIONS"],
        "allow_headers": ["Content-Type", "Authorization"],
    },
}


class PathCORSMiddleware:
    """Starlette's ``CORSMiddleware`` with a separate policy per path prefix.

    Paths without a policy get no CORS headers.
    """

    def __init__(
        self,
        app: ASGIApp,
        allow_origins: list[str],
        policies: dict[str, dict[str, list[str]]] = CORS_POLICIES,
    ) -> None:
        self.app = app
        self._routes = [
            (prefix, CORSMiddleware(app, allow_origins=allow_origins, **policy))
            for prefix, policy in policies.items()
        ]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            path = scope["path"]
            for prefix, handler in self._routes:
                if path == prefix or path.startswith(prefix + "/"):
                    await handler(scope, receive, send)
                    return
        await self.app(scope, receive, send)

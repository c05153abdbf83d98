"""Shared-secret authentication middleware.

Every request must carry an ``Authorization`` header whose raw value equals
the configured secret byte for byte. There are no public paths.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from remote_runner.errors import AuthorizationError

logger = logging.getLogger("remote-runner.auth")


class SharedSecretMiddleware(BaseHTTPMiddleware):
    """Rejects requests without the exact secret with an empty 401."""

    def __init__(self, app, secret: str) -> None:  # noqa: ANN001
        super().__init__(app)
        self.secret = secret.encode("utf-8")

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        provided = request.headers.get("Authorization", "").encode("latin-1")
        if hmac.compare_digest(provided, self.secret):
            return await call_next(request)
        error = AuthorizationError("invalid or missing secret")
        logger.debug("Rejected %s %s: %s", request.method, request.url.path, error.message)
        return Response(content=error.body, status_code=error.status_code)

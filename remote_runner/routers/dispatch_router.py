"""Test dispatch route - the server's single endpoint"""

from __future__ import annotations

import re
from urllib.parse import parse_qs

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask

from remote_runner.errors import QueryValidationError
from remote_runner.models.schemas import AndroidTestParams, IOSTestParams, TestType

router = APIRouter(tags=["tests"])

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def parse_query(raw: str) -> dict[str, list[str]]:
    """Strictly parse a raw query string.

    Raises:
        QueryValidationError: semicolon separators or invalid percent escapes
    """
    if ";" in raw:
        raise QueryValidationError("invalid semicolon separator in query")
    match = _BAD_ESCAPE.search(raw)
    if match:
        raise QueryValidationError(f'invalid URL escape "{raw[match.start():match.start() + 3]}"')
    return parse_qs(raw, keep_blank_values=True)


@router.api_route("/{path:path}", methods=ALL_METHODS)
async def dispatch_test(request: Request, path: str):
    """Route by ``test_type``; the uploaded artifact is the raw request body."""
    query = parse_query(request.url.query)
    test_type = TestType.from_query(query)

    if test_type is TestType.ANDROID:
        android_params = AndroidTestParams.from_query(query)
        output = await request.app.state.android_runner.run(android_params, request.stream())
        return PlainTextResponse(output)

    ios_params = IOSTestParams.from_query(query)
    session = await request.app.state.ios_runner.prepare(ios_params, request.stream())
    return StreamingResponse(
        session.stream(),
        media_type=TEXT_MEDIA_TYPE,
        background=BackgroundTask(session.close),
    )

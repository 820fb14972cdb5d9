"""
Request body ceiling for submissions.

Written as a plain ASGI middleware rather than an http middleware so it can
count body bytes as they arrive. A declared Content-Length over the limit
is rejected before anything is read. Bodies without one (chunked, or a
missing header) are counted while the multipart parser consumes them, and
the request is abandoned with 413 as soon as the count passes the limit.
"""

import logging

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.submission.errors import PayloadTooLargeError

logger = logging.getLogger(__name__)


class UploadCeilingMiddleware:

    def __init__(self, app: ASGIApp, *, path: str, max_bytes: int, max_mb: int) -> None:
        self.app = app
        self._path = path
        self._max_bytes = max_bytes
        self._max_mb = max_mb

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "POST" or scope["path"] != self._path:
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length", "")
        if content_length.isdigit() and int(content_length) > self._max_bytes:
            logger.warning(
                "Rejected oversized upload",
                extra={"content_length": int(content_length), "max_upload_bytes": self._max_bytes}
            )
            await self._reject(scope, receive, send)
            return

        received = 0
        exceeded = False

        async def counting_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self._max_bytes:
                    exceeded = True
                    raise PayloadTooLargeError(f"Upload exceeds {self._max_mb} MB limit.")
            return message

        async def guarded_send(message: Message) -> None:
            # Whatever the app answers after the limit tripped is replaced by the 413.
            if not exceeded:
                await send(message)

        try:
            await self.app(scope, counting_receive, guarded_send)
        except Exception:
            if not exceeded:
                raise

        if exceeded:
            logger.warning(
                "Rejected oversized streamed upload",
                extra={"received_bytes": received, "max_upload_bytes": self._max_bytes}
            )
            await self._reject(scope, receive, send)

    async def _reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = JSONResponse(
            status_code=PayloadTooLargeError.status_code,
            content={"message": f"Upload exceeds {self._max_mb} MB limit."},
        )
        await response(scope, receive, send)

"""Response recorder that buffers a downstream response instead of sending it."""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from fastapi import Request, Response
from starlette.datastructures import Headers

RawHeaders = list[tuple[bytes, bytes]]

# Decides from the status and headers whether the body should be buffered
BufferPredicate = Callable[[int, Headers], bool]
CallNext = Callable[[Request], Awaitable[Response]]


def buffer_all(status_code: int, headers: Headers) -> bool:
    """Buffer every response regardless of status."""
    return True


@dataclass(frozen=True)
class CapturedResponse:
    """Status, headers and body of a buffered downstream response."""

    status_code: int
    raw_headers: RawHeaders
    body: bytes

    @property
    def headers(self) -> Headers:
        return Headers(raw=self.raw_headers)


class ResponseRecorder:
    """Wraps a downstream call so its response is held in memory.

    Nothing reaches the client until ``write_response`` is returned to the
    ASGI server; the status is observable before that.
    """

    def __init__(self, should_buffer: BufferPredicate = buffer_all) -> None:
        self._should_buffer = should_buffer
        self._captured: Optional[CapturedResponse] = None
        self._unbuffered: Optional[Response] = None

    async def record(self, call_next: CallNext, request: Request) -> None:
        """Invoke the downstream handler and drain its body.

        Exceptions from the downstream handler, including ones raised while
        its body streams, propagate unchanged.
        """
        response = await call_next(request)
        raw_headers = list(response.raw_headers)

        if not self._should_buffer(response.status_code, Headers(raw=raw_headers)):
            self._unbuffered = response
            return

        buffer = bytearray()
        body_iterator = getattr(response, "body_iterator", None)
        if body_iterator is None:
            buffer.extend(response.body)
        else:
            async for chunk in body_iterator:
                if isinstance(chunk, str):
                    chunk = chunk.encode("utf-8")
                buffer.extend(chunk)

        self._captured = CapturedResponse(
            status_code=response.status_code,
            raw_headers=raw_headers,
            body=bytes(buffer),
        )

    @property
    def buffered(self) -> bool:
        return self._captured is not None

    @property
    def captured(self) -> CapturedResponse:
        if self._captured is None:
            raise RuntimeError("no buffered response has been recorded")
        return self._captured

    @property
    def status(self) -> int:
        if self._captured is not None:
            return self._captured.status_code
        if self._unbuffered is not None:
            return self._unbuffered.status_code
        raise RuntimeError("no response has been recorded")

    def write_response(self) -> Response:
        """Re-emit the recorded response exactly as the downstream produced it."""
        if self._unbuffered is not None:
            return self._unbuffered
        captured = self.captured
        response = Response(content=captured.body, status_code=captured.status_code)
        response.raw_headers = list(captured.raw_headers)
        return response

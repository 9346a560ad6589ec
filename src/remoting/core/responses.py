"""Mutable response state for a call; rendered into a starlette response once finalized."""
from __future__ import annotations

from typing import Any, AsyncIterator, Iterable

from starlette.datastructures import MutableHeaders
from starlette.responses import Response, StreamingResponse


class HttpResponse:
    """
    Status, headers and body of one call. Handlers and return descriptors mutate it;
    render() turns it into a starlette Response (or StreamingResponse for piped/streamed bodies).
    """

    def __init__(self) -> None:
        self.status_code = 200
        self.headers = MutableHeaders()
        self.headers_sent = False
        self.finished = False
        self.body: bytes = b""
        self.body_iterator: AsyncIterator[Any] | Iterable[Any] | None = None
        self.chunked = False

    def status(self, code: int) -> HttpResponse:
        self.status_code = int(code)
        return self

    def set(self, name: str, value: Any) -> HttpResponse:
        self.headers[name] = str(value)
        return self

    def get(self, name: str) -> str | None:
        return self.headers.get(name)

    def remove(self, name: str) -> None:
        if name in self.headers:
            del self.headers[name]

    def send(self, content: bytes | str) -> HttpResponse:
        self.body = content if isinstance(content, bytes) else content.encode()
        return self

    def pipe(self, source: AsyncIterator[Any] | Iterable[Any]) -> HttpResponse:
        """Stream source into the body; chunked, so no Content-Length is sent."""
        self.body_iterator = source
        self.chunked = True
        self.remove("content-length")
        return self

    def end(self, content: bytes | str | None = None) -> None:
        if content is not None:
            self.send(content)
        self.finished = True

    def render(self) -> Response:
        self.headers_sent = True
        self.finished = True
        headers = dict(self.headers.items())
        if self.body_iterator is not None:
            return StreamingResponse(self.body_iterator, status_code=self.status_code, headers=headers)
        return Response(content=self.body, status_code=self.status_code, headers=headers)

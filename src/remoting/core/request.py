"""Request object for remote method calls: path params, query, headers, parsed body, negotiation."""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Iterable, Mapping

from remoting.core.errors import BindingError
from remoting.core.missing import MISSING
from remoting.core.negotiation import accepts_explicitly, best_match

logger = logging.getLogger(__name__)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def _media_type(content_type: str | None) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def _multi_to_dict(items: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Repeated keys become lists, single keys stay scalar (like a qs-parsed query)."""
    out: dict[str, Any] = {}
    for key, value in items:
        if key in out:
            existing = out[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                out[key] = [existing, value]
        else:
            out[key] = value
    return out


class HttpRequest:
    """
    Request-like object: method, path params, query, headers (lowercased names), body.
    body is MISSING when the request carries no parsed payload (then stream() is still unread).
    """

    def __init__(
        self,
        method: str = "GET",
        *,
        path: str = "",
        path_params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | list[tuple[str, Any]] | None = None,
        headers: Mapping[str, str] | list[tuple[str, str]] | None = None,
        body: Any = MISSING,
        stream: Any = None,
        raw: Any = None,
    ) -> None:
        self.method = method.upper()
        self.path = path
        self.path_params: dict[str, Any] = dict(path_params or {})
        if isinstance(query, list):
            self._query = _multi_to_dict(query)
        else:
            self._query = dict(query or {})
        if isinstance(headers, list):
            self._headers = {str(k).lower(): str(v) for k, v in headers}
        else:
            self._headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.body = body
        self._stream = stream
        self.raw = raw
        self.state: dict[str, Any] = {}

    @classmethod
    async def from_starlette(cls, request: Any) -> HttpRequest:
        """
        Wrap a starlette Request. JSON and form payloads are parsed into body;
        the raw bytes stay readable through stream(): starlette replays a body it has already read.
        """
        media = _media_type(request.headers.get("content-type"))
        body: Any = MISSING
        if media == "application/json" or media.endswith("+json"):
            raw_body = await request.body()
            if raw_body:
                try:
                    body = json.loads(raw_body)
                except ValueError as e:
                    logger.debug("rejecting malformed JSON body for %s %s", request.method, request.url.path)
                    raise BindingError(f"Invalid JSON body: {e}", code="INVALID_BODY") from e
        elif media in _FORM_TYPES:
            # read first so the form parser works off the cached bytes
            await request.body()
            form = await request.form()
            body = _multi_to_dict(form.multi_items())
        return cls(
            request.method,
            path=request.url.path,
            path_params=request.path_params,
            query=list(request.query_params.multi_items()),
            headers=list(request.headers.items()),
            body=body,
            stream=request.stream(),
            raw=request,
        )

    @property
    def query_params(self) -> dict[str, Any]:
        return self._query

    @property
    def headers(self) -> dict[str, str]:
        """Request headers (lowercased names)."""
        return self._headers

    @property
    def content_type(self) -> str:
        return self._headers.get("content-type", "")

    @property
    def is_json(self) -> bool:
        return _media_type(self.content_type).startswith("application/json")

    def get(self, name: str) -> str | None:
        """Header value by case-insensitive name."""
        return self._headers.get(name.lower())

    def param(self, name: str) -> Any:
        return self.path_params.get(name, MISSING)

    def query(self, name: str) -> Any:
        return self._query.get(name, MISSING)

    def header(self, name: str) -> Any:
        value = self.get(name)
        return MISSING if value is None else value

    def body_field(self, name: str) -> Any:
        if isinstance(self.body, Mapping):
            return self.body.get(name, MISSING)
        return MISSING

    def accepts(self, types: list[str] | tuple[str, ...]) -> str | None:
        """Best of `types` for the Accept header, None if none is acceptable."""
        return best_match(self.get("accept"), types)

    def accepts_explicitly(self, media_type: str) -> bool:
        return accepts_explicitly(self.get("accept"), media_type)

    async def stream(self) -> AsyncIterator[bytes]:
        """Raw body chunks (empty chunks skipped)."""
        source = self._stream
        if source is None:
            return
        if hasattr(source, "__aiter__"):
            async for chunk in source:
                if chunk:
                    yield chunk
        else:
            for chunk in source:
                if chunk:
                    yield chunk

"""ResponseNegotiator: map the accepted media type to a body sender and a content type."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Callable

from remoting.core.errors import NegotiationFailure, SerializationError
from remoting.core.missing import MISSING
from remoting.http.xml import to_xml

if TYPE_CHECKING:
    from remoting.http.context import HttpContext

logger = logging.getLogger(__name__)

NOT_ACCEPTABLE = "Not Acceptable"
NULL_XML = "<null/>"

_JSONP_CALLBACK_CHARS = re.compile(r"[^\[\]\w$.]")


def _json_default(value: Any) -> Any:
    to_json_hook = getattr(value, "to_json", None)
    if callable(to_json_hook):
        return to_json_hook()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if value is MISSING:
        return None
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _lenient_default(value: Any) -> Any:
    try:
        return _json_default(value)
    except TypeError:
        return str(value)


def dumps(data: Any, *, lenient: bool = False) -> str:
    """
    JSON text for a result; objects with to_json() and dates are reduced first.
    lenient=True falls back to str() for anything else (stream frames, error payloads).
    """
    try:
        return json.dumps(data, default=_lenient_default if lenient else _json_default)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot serialize result as JSON: {e}") from e


def send_body_json(ctx: HttpContext, data: Any) -> None:
    # the client may have gone away while the method ran
    if not ctx.res.headers_sent:
        ctx.res.send(dumps(data))


def send_body_jsonp(ctx: HttpContext, data: Any) -> None:
    body = dumps(data)
    callback = ctx.req.query(ctx.config.jsonp_callback_param)
    if isinstance(callback, list):
        callback = callback[0] if callback else MISSING
    if isinstance(callback, str) and callback:
        callback = _JSONP_CALLBACK_CHARS.sub("", callback)
        body = body.replace("\u2028", "\\u2028").replace("\u2029", "\\u2029")
        body = f"/**/ typeof {callback} === 'function' && {callback}({body});"
        ctx.res.set("X-Content-Type-Options", "nosniff")
        ctx.res.set("Content-Type", "text/javascript; charset=utf-8")
    else:
        ctx.res.set("Content-Type", "application/json")
    ctx.res.send(body)


def send_body_xml(ctx: HttpContext, data: Any) -> None:
    res = ctx.res
    if data is None:
        res.set("Content-Length", "7")
        res.send(NULL_XML)
        return
    root = ctx.method.root_return or (ctx.method.returns[0] if ctx.method.returns else None)
    options = dict(root.xml) if root is not None else {}
    try:
        xml = to_xml(data, options)
    except Exception as e:
        logger.warning("cannot render %s result as XML: %s", ctx.method.name, e)
        res.status(500).send(f"{e}\n{data!r}")
        return
    res.send(xml)


def send_body_default(ctx: HttpContext, data: Any) -> None:
    err = NegotiationFailure(f"no acceptable format for {ctx.method.name} (Accept: {ctx.req.get('accept')})")
    logger.debug("%s", err)
    ctx.error = err
    ctx.res.status(err.status).send(NOT_ACCEPTABLE)


@dataclass(frozen=True)
class ResponseOperation:
    send_body: Callable[[HttpContext, Any], None]
    content_type: str


def resolve_response_operation(accepts: str | None) -> ResponseOperation:
    """Sender + content type for the negotiated media type; unknown types answer 406."""
    if accepts in ("*/*", "application/json", "json"):
        return ResponseOperation(send_body_json, "application/json")
    if accepts == "application/vnd.api+json":
        return ResponseOperation(send_body_json, "application/vnd.api+json")
    if accepts in ("application/javascript", "text/javascript"):
        return ResponseOperation(send_body_jsonp, accepts)
    if accepts == "application/xml":
        return ResponseOperation(send_body_xml, "application/xml")
    if accepts in ("text/xml", "xml"):
        return ResponseOperation(send_body_xml, "text/xml")
    return ResponseOperation(send_body_default, "text/plain")


def negotiate(ctx: HttpContext) -> str | None:
    """
    Accepted media type for the call. A string format override (?_format=xml) wins over
    the Accept header; a non-string override (repeated parameter) forces 406.
    """
    accepts = ctx.req.accepts(ctx.supported_types)
    override = ctx.req.query(ctx.config.format_param)
    if override is not MISSING and override != "":
        if not isinstance(override, str):
            return "invalid"
        return override.lower()
    return accepts

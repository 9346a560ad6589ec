"""InvocationDispatcher: call the procedure in simple, response-piped or request-piped mode."""
from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable

from remoting.core.errors import UnsupportedConfigurationError, error_status
from remoting.core.missing import MISSING, is_missing
from remoting.http.serializers import dumps
from remoting.methods.descriptors import MethodDescriptor, PipeDest, PipeSource

if TYPE_CHECKING:
    from remoting.http.context import HttpContext

logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def call_procedure(procedure: Callable[..., Any], scope: Any, args: dict[str, Any]) -> Any:
    """procedure(**args), bound to scope when it is a method name; awaited if it returns an awaitable."""
    if isinstance(procedure, str):
        if scope is None:
            raise UnsupportedConfigurationError(f"cannot resolve method {procedure!r} without a scope")
        procedure = getattr(scope, procedure)
    kwargs = {k: v for k, v in args.items() if not is_missing(v)}
    return await _resolve(procedure(**kwargs))


async def encode_chunks(stream: Any) -> AsyncIterator[bytes]:
    """Chunks of a piped stream: bytes and text pass through, other items become JSON lines."""
    if hasattr(stream, "__aiter__"):
        async for chunk in stream:
            yield _chunk_bytes(chunk)
    else:
        for chunk in stream:
            yield _chunk_bytes(chunk)


def _chunk_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, str):
        return chunk.encode()
    return (dumps(chunk) + "\n").encode()


class InvocationDispatcher:
    """Picks the invocation mode from method.http.pipe and runs the procedure once."""

    async def dispatch(
        self,
        ctx: HttpContext,
        scope: Any,
        method: MethodDescriptor,
        procedure: Callable[..., Any],
        args: dict[str, Any],
    ) -> Any:
        pipe = method.http.pipe
        if pipe is not None and pipe.dest is not None:
            return await self.pipe_to_response(ctx, scope, pipe.dest, procedure, args)
        if pipe is not None and pipe.source is not None:
            return await self.pipe_from_request(ctx, scope, pipe.source, procedure, args)
        return await self.invoke_simple(ctx, scope, method, procedure, args)

    async def invoke_simple(
        self,
        ctx: HttpContext,
        scope: Any,
        method: MethodDescriptor,
        procedure: Callable[..., Any],
        args: dict[str, Any],
    ) -> Any:
        default_error_status = method.http.error_status
        try:
            return await call_procedure(procedure, scope, args)
        except Exception as err:
            res = ctx.res
            if default_error_status and res.status_code == 200:
                res.status(error_status(err) or default_error_status)
            logger.debug("%s failed: %s", method.name, err)
            raise

    async def pipe_to_response(
        self,
        ctx: HttpContext,
        scope: Any,
        dest: Any,
        procedure: Callable[..., Any],
        args: dict[str, Any],
    ) -> Any:
        # only the response can be a pipe destination
        if dest is not PipeDest.RESPONSE:
            raise UnsupportedConfigurationError("unsupported pipe destination")
        ctx.res.set("Content-Type", "application/json")
        ctx.res.chunked = True
        stream = await call_procedure(procedure, scope, args)
        ctx.res.pipe(encode_chunks(stream))
        ctx.piped = True
        return MISSING

    async def pipe_from_request(
        self,
        ctx: HttpContext,
        scope: Any,
        source: Any,
        procedure: Callable[..., Any],
        args: dict[str, Any],
    ) -> Any:
        # only the request can be a pipe source
        if source is not PipeSource.REQUEST:
            raise UnsupportedConfigurationError("unsupported pipe source")
        sink = await call_procedure(procedure, scope, args)
        async for chunk in ctx.req.stream():
            await _resolve(sink.write(chunk))
        for name in ("end", "close", "aclose"):
            finish = getattr(sink, name, None)
            if callable(finish):
                return await _resolve(finish())
        return MISSING

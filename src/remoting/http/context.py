"""
HttpContext: one object per remote call over HTTP.
bind (at construction) -> invoke -> done (negotiate + serialize, or stream).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Mapping

from starlette.responses import Response

from remoting.core.config import RemotingConfig
from remoting.core.missing import MISSING
from remoting.core.request import HttpRequest
from remoting.core.responses import HttpResponse
from remoting.http.binder import ArgumentBinder
from remoting.http.dispatcher import InvocationDispatcher
from remoting.http.serializers import negotiate, resolve_response_operation
from remoting.methods.descriptors import HttpTarget, MethodDescriptor
from remoting.streams.multiplexer import StreamMultiplexer, is_supported
from remoting.types.conversion import TypeRegistry, default_type_registry

logger = logging.getLogger(__name__)

FILE_CHUNK_SIZE = 64 * 1024


async def deferred_raise(err: BaseException) -> None:
    """Raise err on the next loop turn, so failures found synchronously still surface asynchronously."""
    await asyncio.sleep(0)
    raise err


async def _file_chunks(data: Any) -> AsyncIterator[Any]:
    if hasattr(data, "__aiter__"):
        async for chunk in data:
            yield chunk
    elif hasattr(data, "read"):
        while True:
            chunk = data.read(FILE_CHUNK_SIZE)
            if asyncio.iscoroutine(chunk):
                chunk = await chunk
            if not chunk:
                break
            yield chunk
    else:
        for chunk in data:
            yield chunk


def _is_pipeable(data: Any) -> bool:
    if isinstance(data, (str, bytes, bytearray, Mapping)):
        return False
    return hasattr(data, "__aiter__") or hasattr(data, "read") or hasattr(data, "__iter__")


class HttpContext:
    """
    Per-request aggregate: request/response, bound args, result, stream channel.
    Arguments are bound in the constructor; a binding failure is kept and reported by invoke().
    """

    def __init__(
        self,
        req: HttpRequest,
        res: HttpResponse | None,
        method: MethodDescriptor,
        config: RemotingConfig | None = None,
        registry: TypeRegistry | None = None,
    ) -> None:
        self.req = req
        self.res = res if res is not None else HttpResponse()
        self.method = method
        self.config = config or RemotingConfig()
        self.registry = registry or default_type_registry()
        self.binder = ArgumentBinder(self.registry)
        self.dispatcher = InvocationDispatcher()
        self.supported_types = self.config.resolved_supported_types()
        self.result: Any = MISSING
        self.error: BaseException | None = None
        self.result_type: str | None = None
        self.ctor_args: dict[str, Any] | None = None
        self.piped = False

        binding = self.binder.bind(self, method.accepts)
        self.args = binding.args
        self.binding_error = binding.error
        req.state["remoting_context"] = self

        self.stream_channel: StreamMultiplexer | None = None
        if method.streams is not None and is_supported(method.streams):
            self.stream_channel = StreamMultiplexer(self, method.streams)
            self.stream_channel.establish()

    @classmethod
    async def create(
        cls,
        request: Any,
        method: MethodDescriptor,
        *,
        config: RemotingConfig | None = None,
        registry: TypeRegistry | None = None,
    ) -> HttpContext:
        """Context for a starlette request (reads JSON/form bodies first)."""
        req = await HttpRequest.from_starlette(request)
        return cls(req, HttpResponse(), method, config, registry)

    async def invoke(
        self,
        procedure: Callable[..., Any] | str,
        *,
        scope: Any = None,
        method: MethodDescriptor | None = None,
        is_ctor: bool = False,
    ) -> Any:
        """
        Run the procedure with the bound arguments. With is_ctor=True, `method` describes the
        constructor and its arguments are bound in a separate pass; its return value (the instance)
        is not treated as the call's result.
        """
        method = method or self.method
        if self.binding_error is not None:
            await deferred_raise(self.binding_error)
        args = self.args
        if is_ctor:
            binding = self.binder.bind(self, method.accepts)
            self.ctor_args = binding.args
            if binding.error is not None:
                await deferred_raise(binding.error)
            args = self.ctor_args
        try:
            result = await self.dispatcher.dispatch(self, scope, method, procedure, args)
        except Exception as err:
            self.error = err
            raise
        if not is_ctor and not self.piped:
            self.set_return_value(result)
        return result

    def set_return_value(self, value: Any) -> None:
        """Map the procedure's return value onto the declared returns."""
        returns = self.method.returns
        if not returns:
            if self.method.streams is not None:
                self.result = {self.method.streams.arg: value}
            return
        root = self.method.root_return
        if root is not None:
            self.set_return_arg_by_name(root.name, value)
            self.result = value
            return
        if len(returns) == 1:
            values = {returns[0].name: value}
        elif isinstance(value, Mapping):
            values = dict(value)
        elif isinstance(value, (list, tuple)) and len(value) == len(returns):
            values = {desc.name: item for desc, item in zip(returns, value)}
        else:
            values = {returns[0].name: value}
        result: dict[str, Any] = {}
        for desc in returns:
            item = values.get(desc.name, MISSING)
            if item is MISSING:
                continue
            if not self.set_return_arg_by_name(desc.name, item):
                result[desc.name] = item
        self.result = result

    def set_return_arg_by_name(self, name: str, value: Any) -> bool:
        """Apply status/header targets. Returns True when the value was consumed by the response."""
        desc = self.method.get_return_desc(name)
        if desc is None:
            logger.debug("warning: cannot set return value for arg (%s) without description!", name)
            return False
        if desc.root:
            self.result_type = desc.type.lower() if isinstance(desc.type, str) else desc.type
            return False
        if desc.http_target is HttpTarget.STATUS:
            self.res.status(value)
            return True
        if desc.http_target is HttpTarget.HEADER:
            self.res.set(desc.header or name, value)
            return True
        return False

    def should_return_event_stream(self) -> bool:
        fmt = self.req.query(self.config.format_param)
        event_stream = fmt == "event-stream" or self.req.accepts_explicitly("text/event-stream")
        if event_stream:
            self.res.set("Content-Encoding", "x-no-compression")
        return event_stream

    def _stream_result(self) -> Any:
        desc = self.method.streams
        if desc is not None and isinstance(self.result, Mapping) and desc.arg in self.result:
            return self.result[desc.arg]
        return self.result

    async def done(self) -> Response:
        """Finish the call: the streaming response, or the result in the negotiated format."""
        method = self.method
        res = self.res

        if method.streams is not None:
            channel = self.stream_channel or StreamMultiplexer(self, method.streams)
            return channel.respond(self._stream_result())

        if self.piped:
            return res.render()

        data = self.result
        accepts = negotiate(self)
        if method.http.status:
            res.status(method.http.status)
        operation = resolve_response_operation(accepts)
        if not 300 <= res.status_code <= 399 and not res.get("content-type"):
            # the client may have gone away mid-call; headers are out already
            if not res.headers_sent:
                res.set("Content-Type", operation.content_type)

        if data is not MISSING:
            if self.result_type != "file":
                operation.send_body(self, data)
            elif isinstance(data, (bytes, str)):
                res.end(data)
            elif isinstance(data, bytearray):
                res.end(bytes(data))
            elif _is_pipeable(data):
                res.pipe(_file_chunks(data))
            else:
                raise TypeError(f"Cannot create a file response from {type(data).__name__}")
        elif res.status_code == 200:
            res.status(204)
        return res.render()

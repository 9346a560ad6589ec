"""
StreamMultiplexer: serve a method's returned stream as multiplexed frames or as server-push events.
The body is a generator pulled by the server, so one item is read per chunk the client accepts.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator

from starlette.responses import Response

from remoting.core.errors import UnsupportedConfigurationError, error_details
from remoting.http.serializers import dumps
from remoting.methods.descriptors import StreamDescriptor
from remoting.streams.cancellation import CancellationToken, destroy_stream
from remoting.streams.mux import MUX_CONTENT_TYPE, MuxChannel, MuxDemux
from remoting.streams.sse import EventStreamClient

if TYPE_CHECKING:
    from remoting.http.context import HttpContext

logger = logging.getLogger(__name__)

READABLE_STREAM = "ReadableStream"


class StreamState(str, Enum):
    IDLE = "idle"
    ESTABLISHED = "established"
    EMITTING = "emitting"
    ENDED = "ended"
    ERRORED = "errored"
    CLOSED = "closed"


_TRANSITIONS: dict[StreamState, set[StreamState]] = {
    StreamState.IDLE: {StreamState.ESTABLISHED, StreamState.CLOSED},
    StreamState.ESTABLISHED: {StreamState.EMITTING, StreamState.ENDED, StreamState.ERRORED, StreamState.CLOSED},
    StreamState.EMITTING: {StreamState.EMITTING, StreamState.ENDED, StreamState.ERRORED, StreamState.CLOSED},
    StreamState.ENDED: {StreamState.CLOSED},
    StreamState.ERRORED: {StreamState.CLOSED},
    StreamState.CLOSED: set(),
}


def validate_stream_descriptor(desc: StreamDescriptor) -> None:
    if not desc.json:
        raise UnsupportedConfigurationError(
            "Unsupported stream descriptor, only descriptors with property json:true are supported"
        )
    if desc.kind != READABLE_STREAM:
        raise UnsupportedConfigurationError(f"unsupported stream type: {desc.kind}")


def is_supported(desc: StreamDescriptor) -> bool:
    return desc.json and desc.kind == READABLE_STREAM


async def _iterate(stream: Any) -> AsyncIterator[Any]:
    if hasattr(stream, "__aiter__"):
        async for item in stream:
            yield item
    elif hasattr(stream, "__iter__") and not isinstance(stream, (str, bytes, dict)):
        for item in stream:
            yield item
    else:
        raise TypeError(f"Cannot stream a value of type {type(stream).__name__}")


class StreamMultiplexer:
    """
    One per streaming call. establish() sets up headers (event-stream or multiplexed),
    respond(stream) returns the streaming response. Closing the transport before the
    stream finishes fires the cancellation token, which destroys the result stream.
    """

    def __init__(self, ctx: HttpContext, desc: StreamDescriptor) -> None:
        self.ctx = ctx
        self.desc = desc
        self.state = StreamState.IDLE
        self.token = CancellationToken()
        self.event_stream = False
        self.mux: MuxDemux | None = None
        self.out: MuxChannel | None = None
        self.client: EventStreamClient | None = None
        self._preamble = b""

    def transition(self, new_state: StreamState) -> bool:
        """Move to new_state. Returns False once CLOSED (the event is dropped)."""
        if self.state is StreamState.CLOSED:
            logger.debug("stream for %s already closed, dropping %s", self.ctx.method.name, new_state.value)
            return False
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"illegal stream transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        return True

    def establish(self) -> None:
        res = self.ctx.res
        if self.ctx.should_return_event_stream():
            logger.debug("create event stream")
            self.event_stream = True
            self.client = EventStreamClient(res)
            self._preamble = self.client.initialize()
        else:
            logger.debug("create mux stream")
            self.mux = MuxDemux(encoder=lambda frame: dumps(frame, lenient=True))
            self.out = self.mux.create_write_stream()
            res.set("Content-Type", self.desc.content_type or MUX_CONTENT_TYPE)
            res.chunked = True
        self.transition(StreamState.ESTABLISHED)

    def respond(self, stream: Any) -> Response:
        validate_stream_descriptor(self.desc)
        if self.state is StreamState.IDLE:
            self.establish()
        self.token.on_cancel(lambda: logger.debug("transport closed for %s, cancelling stream", self.ctx.method.name))
        return self.ctx.res.pipe(self.frames(stream)).render()

    def _channel(self) -> MuxChannel:
        if self.out is None:
            raise RuntimeError(f"stream for {self.ctx.method.name} is not established")
        return self.out

    def _data(self, item: Any) -> bytes:
        if self.client is not None:
            return self.client.send("data", dumps(item, lenient=True))
        return self._channel().data(item)

    async def frames(self, stream: Any) -> AsyncIterator[bytes]:
        try:
            if self.client is not None:
                yield self._preamble
            else:
                yield self._channel().open()
            try:
                async for item in _iterate(stream):
                    if not self.transition(StreamState.EMITTING):
                        break
                    yield self._data(item)
            except Exception as err:
                logger.debug("result stream of %s failed: %s", self.ctx.method.name, err)
                if self.transition(StreamState.ERRORED):
                    payload = error_details(err)
                    if self.client is not None:
                        yield self.client.send("error", dumps(payload, lenient=True))
                    else:
                        yield self._channel().error(payload)
                        yield self._channel().end()
            else:
                if self.transition(StreamState.ENDED):
                    if self.client is not None:
                        yield self.client.send("end", "null")
                    else:
                        yield self._channel().end()
        finally:
            # ENDED and ERRORED are reached by the stream itself; any other state means the transport closed
            closed_early = self.state not in (StreamState.ENDED, StreamState.ERRORED)
            if self.state is not StreamState.CLOSED:
                self.transition(StreamState.CLOSED)
            if closed_early and self.token.cancel():
                await destroy_stream(stream)

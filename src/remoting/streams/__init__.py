from remoting.streams.cancellation import CancellationToken, destroy_stream
from remoting.streams.multiplexer import StreamMultiplexer, StreamState
from remoting.streams.mux import MuxDemux, parse_frames
from remoting.streams.sse import EventStreamClient, parse_events

__all__ = [
    "CancellationToken",
    "EventStreamClient",
    "MuxDemux",
    "StreamMultiplexer",
    "StreamState",
    "destroy_stream",
    "parse_events",
    "parse_frames",
]

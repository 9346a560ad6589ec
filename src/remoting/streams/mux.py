"""
Line-framed stream multiplexing: each frame is a JSON array on its own line,
[id, "new", meta] / [id, "data", chunk] / [id, "error", err] / [id, "end"].
"""
from __future__ import annotations

import itertools
import json
from typing import Any, Callable

MUX_CONTENT_TYPE = "application/json; boundary=NL"


class MuxChannel:
    """One sub-stream of a MuxDemux. Methods return the encoded frame; nothing is buffered."""

    def __init__(self, mux: MuxDemux, channel_id: str, meta: Any = None) -> None:
        self.mux = mux
        self.id = channel_id
        self.meta = meta
        self.ended = False

    def open(self) -> bytes:
        return self.mux.encode([self.id, "new", self.meta])

    def data(self, chunk: Any) -> bytes:
        return self.mux.encode([self.id, "data", chunk])

    def error(self, err: dict[str, Any]) -> bytes:
        return self.mux.encode([self.id, "error", err])

    def end(self) -> bytes:
        self.ended = True
        return self.mux.encode([self.id, "end"])


class MuxDemux:
    def __init__(self, encoder: Callable[[Any], str] | None = None) -> None:
        self._ids = itertools.count(1)
        self._encoder = encoder or json.dumps
        self.channels: dict[str, MuxChannel] = {}

    def create_write_stream(self, meta: Any = None) -> MuxChannel:
        channel = MuxChannel(self, str(next(self._ids)), meta)
        self.channels[channel.id] = channel
        return channel

    def encode(self, frame: list[Any]) -> bytes:
        return (self._encoder(frame) + "\n").encode()


def parse_frames(payload: bytes | str) -> list[list[Any]]:
    """Decode a multiplexed body back into frames (client side / tests)."""
    if isinstance(payload, bytes):
        payload = payload.decode()
    return [json.loads(line) for line in payload.splitlines() if line.strip()]

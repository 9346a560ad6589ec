"""Server-push (text/event-stream) framing."""
from __future__ import annotations

from typing import Any

EVENT_STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class EventStreamClient:
    """Formats events for one event-stream response."""

    def __init__(self, res: Any) -> None:
        self.res = res

    def initialize(self) -> bytes:
        """Set the event-stream headers; returns the opening comment."""
        for name, value in EVENT_STREAM_HEADERS.items():
            self.res.set(name, value)
        self.res.remove("content-length")
        return b":ok\n\n"

    def send(self, event: str | None, data: str) -> bytes:
        # SSE format reminder:
        #   event: <name>\n
        #   data: <line>\n (one per line of payload)
        #   \n
        lines = []
        if event:
            lines.append(f"event: {event}")
        for line in str(data).split("\n"):
            lines.append(f"data: {line}")
        return ("\n".join(lines) + "\n\n").encode()


def parse_events(payload: bytes | str) -> list[tuple[str | None, str]]:
    """Decode an event-stream body into (event, data) pairs, skipping comments."""
    if isinstance(payload, bytes):
        payload = payload.decode()
    events = []
    for block in payload.split("\n\n"):
        event = None
        data: list[str] = []
        for line in block.split("\n"):
            if not line or line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            value = value[1:] if value.startswith(" ") else value
            if field == "event":
                event = value
            elif field == "data":
                data.append(value)
        if event is not None or data:
            events.append((event, "\n".join(data)))
    return events

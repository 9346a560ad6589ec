"""Accept header negotiation: pick the best candidate media type for a request."""
from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field

_EXTENSIONS = {
    "json": "application/json",
    "xml": "application/xml",
    "js": "application/javascript",
    "html": "text/html",
    "text": "text/plain",
}


@dataclass(frozen=True)
class MediaRange:
    """One entry of an Accept header."""

    type: str
    subtype: str
    q: float = 1.0
    index: int = 0
    params: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def full_type(self) -> str:
        return f"{self.type}/{self.subtype}"


def _parse_media_range(text: str, index: int) -> MediaRange | None:
    parts = [p.strip() for p in text.split(";")]
    full = parts[0]
    if not full:
        return None
    if "/" in full:
        type_, _, subtype = full.partition("/")
    else:
        type_, subtype = full, "*"
    q = 1.0
    params: dict[str, str] = {}
    for part in parts[1:]:
        key, _, value = part.partition("=")
        key = key.strip().lower()
        value = value.strip().strip('"')
        if key == "q":
            try:
                q = float(value)
            except ValueError:
                q = 0.0
        elif key:
            params[key] = value
    return MediaRange(type_.strip().lower(), subtype.strip().lower(), q, index, params)


def parse_accept(header: str | None) -> list[MediaRange]:
    """Parse an Accept header. A missing header means */*."""
    if header is None:
        header = "*/*"
    ranges = []
    for i, chunk in enumerate(header.split(",")):
        parsed = _parse_media_range(chunk, i)
        if parsed is not None:
            ranges.append(parsed)
    return ranges


def _candidate_media_type(candidate: str) -> str:
    """'json' -> 'application/json'; full media types are returned unchanged."""
    if "/" in candidate:
        return candidate
    ext = candidate.lower()
    if ext in _EXTENSIONS:
        return _EXTENSIONS[ext]
    guessed, _ = mimetypes.guess_type(f"file.{ext}")
    return guessed or candidate


def _specificity(candidate: MediaRange, accepted: MediaRange) -> int | None:
    s = 0
    if accepted.type == candidate.type:
        s |= 4
    elif accepted.type != "*":
        return None
    if accepted.subtype == candidate.subtype:
        s |= 2
    elif accepted.subtype != "*":
        return None
    if accepted.params:
        if all(candidate.params.get(k, "").lower() == v.lower() for k, v in accepted.params.items()):
            s |= 1
        else:
            return None
    return s


def best_match(accept_header: str | None, candidates: list[str] | tuple[str, ...]) -> str | None:
    """
    Best candidate for the Accept header, or None when nothing is acceptable.
    Ranking: quality, then specificity, then position in the Accept header, then candidate order.
    Without an Accept header the first candidate wins.
    """
    if not candidates:
        return None
    if accept_header is None or not accept_header.strip():
        return candidates[0]
    accepted = parse_accept(accept_header)
    ranked: list[tuple[float, int, int, int, str]] = []
    for i, candidate in enumerate(candidates):
        media = _parse_media_range(_candidate_media_type(candidate), 0)
        if media is None:
            continue
        best: tuple[int, float, int] | None = None
        for entry in accepted:
            s = _specificity(media, entry)
            if s is None:
                continue
            key = (s, entry.q, entry.index)
            if best is None or key > best:
                best = key
        if best is None or best[1] <= 0:
            continue
        s, q, o = best
        ranked.append((-q, -s, o, i, candidate))
    if not ranked:
        return None
    ranked.sort()
    return ranked[0][4]


def accepts_explicitly(accept_header: str | None, media_type: str) -> bool:
    """True when the Accept header names media_type itself (wildcards do not count)."""
    if not accept_header:
        return False
    target = media_type.lower()
    return any(entry.full_type == target and entry.q > 0 for entry in parse_accept(accept_header))

"""
Method metadata: what a remote method accepts, what it returns, how it streams and pipes.
Immutable; built by the caller (registration is not part of this package).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping


class ArgSource(str, Enum):
    """Where an argument comes from in the request."""

    BODY = "body"
    FORM = "form"
    FORM_DATA = "formData"
    QUERY = "query"
    PATH = "path"
    HEADER = "header"
    REQ = "req"
    RES = "res"
    CONTEXT = "context"


class HttpTarget(str, Enum):
    """Where a return value goes in the response."""

    BODY = "body"
    STATUS = "status"
    HEADER = "header"


class PipeDest(str, Enum):
    RESPONSE = "response"


class PipeSource(str, Enum):
    REQUEST = "request"


_PIPE_ALIASES = {"res": "response", "req": "request"}


def _pipe_value(value: Any) -> Any:
    if isinstance(value, str):
        return _PIPE_ALIASES.get(value, value)
    return value


@dataclass(frozen=True)
class ParameterDescriptor:
    """
    One declared argument.
    source: ArgSource (or its string value), a callable (ctx) -> raw value, or None for
    the fallback lookup (path, body, query, header).
    """

    name: str
    type: str = "any"
    source: ArgSource | str | Callable[[Any], Any] | None = None
    arg: str | None = None
    required: bool = False
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.source, str) and not isinstance(self.source, ArgSource):
            object.__setattr__(self, "source", ArgSource(self.source))

    @property
    def arg_key(self) -> str:
        return self.arg or self.name


@dataclass(frozen=True)
class ReturnDescriptor:
    name: str
    type: str = "any"
    root: bool = False
    http_target: HttpTarget | str = HttpTarget.BODY
    header: str | None = None
    xml: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.http_target, HttpTarget):
            object.__setattr__(self, "http_target", HttpTarget(self.http_target))


@dataclass(frozen=True)
class StreamDescriptor:
    """Describes a returned stream. Only json ReadableStream returns are served."""

    arg: str
    json: bool = True
    kind: str = "ReadableStream"
    content_type: str | None = None


@dataclass(frozen=True)
class PipeSpec:
    dest: PipeDest | str | None = None
    source: PipeSource | str | None = None

    def __post_init__(self) -> None:
        # unknown values are kept as strings and rejected at dispatch time
        dest = _pipe_value(self.dest)
        source = _pipe_value(self.source)
        if dest in {d.value for d in PipeDest}:
            dest = PipeDest(dest)
        if source in {s.value for s in PipeSource}:
            source = PipeSource(source)
        object.__setattr__(self, "dest", dest)
        object.__setattr__(self, "source", source)


@dataclass(frozen=True)
class HttpMeta:
    status: int | None = None
    error_status: int | None = None
    pipe: PipeSpec | None = None


@dataclass(frozen=True)
class MethodDescriptor:
    """Declarative description of one remote method."""

    name: str
    accepts: tuple[ParameterDescriptor, ...] = ()
    returns: tuple[ReturnDescriptor, ...] = ()
    streams: StreamDescriptor | None = None
    http: HttpMeta = field(default_factory=HttpMeta)

    def __post_init__(self) -> None:
        object.__setattr__(self, "accepts", tuple(self.accepts))
        object.__setattr__(self, "returns", tuple(self.returns))

    def get_return_desc(self, name: str) -> ReturnDescriptor | None:
        for desc in self.returns:
            if desc.name == name:
                return desc
        return None

    @property
    def root_return(self) -> ReturnDescriptor | None:
        for desc in self.returns:
            if desc.root:
                return desc
        return None

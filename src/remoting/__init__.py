"""
Remoting: bind HTTP requests to remote method calls and negotiate the response.
One HttpContext per call: arguments are bound from the request, the procedure is
invoked, and the result is rendered (JSON, JSONP, XML) or streamed (mux frames, SSE).
"""
from remoting.core import (
    HttpRequest,
    HttpResponse,
    RemotingConfig,
    load_config_from_env,
)
from remoting.core.errors import (
    BindingError,
    ContractViolation,
    InvocationError,
    NegotiationFailure,
    RemotingError,
    SerializationError,
    UnsupportedConfigurationError,
)
from remoting.http import HttpContext, remote_endpoint
from remoting.methods import (
    ArgSource,
    HttpMeta,
    HttpTarget,
    MethodDescriptor,
    ParameterDescriptor,
    PipeSpec,
    ReturnDescriptor,
    StreamDescriptor,
)
from remoting.types import ConversionResult, TypeConverter, TypeRegistry, default_type_registry

__all__ = [
    "ArgSource",
    "BindingError",
    "ContractViolation",
    "ConversionResult",
    "HttpContext",
    "HttpMeta",
    "HttpRequest",
    "HttpResponse",
    "HttpTarget",
    "InvocationError",
    "MethodDescriptor",
    "NegotiationFailure",
    "ParameterDescriptor",
    "PipeSpec",
    "RemotingConfig",
    "RemotingError",
    "ReturnDescriptor",
    "SerializationError",
    "StreamDescriptor",
    "TypeConverter",
    "TypeRegistry",
    "UnsupportedConfigurationError",
    "default_type_registry",
    "load_config_from_env",
    "remote_endpoint",
]

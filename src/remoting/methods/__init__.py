from remoting.methods.descriptors import (
    ArgSource,
    HttpMeta,
    HttpTarget,
    MethodDescriptor,
    ParameterDescriptor,
    PipeDest,
    PipeSource,
    PipeSpec,
    ReturnDescriptor,
    StreamDescriptor,
)

__all__ = [
    "ArgSource",
    "HttpMeta",
    "HttpTarget",
    "MethodDescriptor",
    "ParameterDescriptor",
    "PipeDest",
    "PipeSource",
    "PipeSpec",
    "ReturnDescriptor",
    "StreamDescriptor",
]

"""
ArgumentBinder: resolve each declared argument from the request and convert it.
Binding is all-or-nothing: the first conversion error stops the pass.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable

from remoting.core.errors import BindingError, ContractViolation
from remoting.core.missing import MISSING
from remoting.methods.descriptors import ArgSource, ParameterDescriptor
from remoting.types.conversion import ConversionResult, TypeRegistry

if TYPE_CHECKING:
    from remoting.http.context import HttpContext

logger = logging.getLogger(__name__)


class Coercion(Enum):
    TYPED = "typed"
    SLOPPY = "sloppy"
    RAW = "raw"


@dataclass
class BindingResult:
    """Bound arguments (arg key -> value) or the error that stopped binding."""

    args: dict[str, Any] = field(default_factory=dict)
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


Extraction = tuple[Any, Coercion]
Strategy = Callable[["HttpContext", ParameterDescriptor], Extraction]


def _payload_mode(ctx: HttpContext) -> Coercion:
    return Coercion.TYPED if ctx.req.is_json else Coercion.SLOPPY


def _from_body(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    return ctx.req.body, _payload_mode(ctx)


def _from_form(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    return ctx.req.body_field(desc.name), _payload_mode(ctx)


def _from_query(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    return ctx.req.query(desc.name), Coercion.SLOPPY


def _from_path(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    return ctx.req.param(desc.name), Coercion.SLOPPY


def _from_header(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    return ctx.req.header(desc.name), Coercion.SLOPPY


def _raw_request(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    return ctx.req, Coercion.RAW


def _raw_response(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    return ctx.res, Coercion.RAW


def _raw_context(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    return ctx, Coercion.RAW


def _custom(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    # the custom provider does its own coercion
    source = desc.source
    if not callable(source):
        raise TypeError(f"argument source for {desc.name!r} is not callable: {source!r}")
    return source(ctx), Coercion.TYPED


# fallback lookup order when no source is declared
DEFAULT_SOURCE_ORDER: tuple[ArgSource, ...] = (
    ArgSource.PATH,
    ArgSource.BODY,
    ArgSource.QUERY,
    ArgSource.HEADER,
)


def _by_name(ctx: HttpContext, desc: ParameterDescriptor) -> Extraction:
    """First value found in path params, body fields, query, headers (in that order)."""
    lookups = {
        ArgSource.PATH: ctx.req.param,
        ArgSource.BODY: ctx.req.body_field,
        ArgSource.QUERY: ctx.req.query,
        ArgSource.HEADER: ctx.req.header,
    }
    for source in DEFAULT_SOURCE_ORDER:
        value = lookups[source](desc.name)
        if value is not MISSING:
            if source is ArgSource.BODY and ctx.req.is_json:
                return value, Coercion.TYPED
            return value, Coercion.SLOPPY
    return MISSING, Coercion.SLOPPY


STRATEGIES: dict[ArgSource, Strategy] = {
    ArgSource.BODY: _from_body,
    ArgSource.FORM: _from_form,
    ArgSource.FORM_DATA: _from_form,
    ArgSource.QUERY: _from_query,
    ArgSource.PATH: _from_path,
    ArgSource.HEADER: _from_header,
    ArgSource.REQ: _raw_request,
    ArgSource.RES: _raw_response,
    ArgSource.CONTEXT: _raw_context,
}


def strategy_for(desc: ParameterDescriptor) -> Strategy:
    if desc.source is None:
        return _by_name
    if isinstance(desc.source, ArgSource):
        return STRATEGIES[desc.source]
    return _custom


class ArgumentBinder:
    """Binds declared parameters against one context, using converters from a TypeRegistry."""

    def __init__(self, registry: TypeRegistry) -> None:
        self.registry = registry

    def convert(self, ctx: HttpContext, desc: ParameterDescriptor, value: Any, mode: Coercion) -> ConversionResult:
        if mode is Coercion.RAW:
            return ConversionResult.ok(value)
        converter = self.registry.get_converter(desc.type)
        options = {**desc.options, "arg": desc.name}
        if mode is Coercion.SLOPPY:
            result = converter.from_sloppy_value(ctx, value, options)
        else:
            result = converter.from_typed_value(ctx, value, options)
        if not isinstance(result, ConversionResult) or not result.is_valid:
            raise ContractViolation(
                f"Type conversion result should have an error or a value. Got {result!r} instead."
            )
        return result

    def bind(self, ctx: HttpContext, accepts: Iterable[ParameterDescriptor]) -> BindingResult:
        args: dict[str, Any] = {}
        for desc in accepts:
            raw, mode = strategy_for(desc)(ctx, desc)
            result = self.convert(ctx, desc, raw, mode)
            logger.debug("arg %r: %s converted %r to %r", desc.name, mode.value, raw, result)
            if result.error is not None:
                return BindingResult(args, result.error)
            value = result.value
            if desc.required and (value is MISSING or value is None):
                return BindingResult(args, BindingError(f"{desc.name} is a required argument", arg=desc.name))
            args[desc.arg_key] = value
        return BindingResult(args)

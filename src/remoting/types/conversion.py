"""
Type conversion: converters turn raw request values into typed argument values.
Sloppy conversion parses strings (query, path, headers); typed conversion trusts JSON types.
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, runtime_checkable

from remoting.core.errors import BindingError
from remoting.core.missing import MISSING

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "<unset>"


# "no value given" for ConversionResult; MISSING is a legitimate converted value
_UNSET: Any = _Unset()


@dataclass(frozen=True)
class ConversionResult:
    """Either a value or an error: ConversionResult(value=...) or ConversionResult(error=...)."""

    value: Any = _UNSET
    error: BaseException | None = None

    @classmethod
    def ok(cls, value: Any) -> ConversionResult:
        return cls(value=value)

    @classmethod
    def fail(cls, error: BaseException) -> ConversionResult:
        return cls(error=error)

    @property
    def has_value(self) -> bool:
        return self.value is not _UNSET

    @property
    def is_valid(self) -> bool:
        return self.has_value != (self.error is not None)


@runtime_checkable
class TypeConverter(Protocol):
    """Converter for one declared type."""

    def from_typed_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        ...

    def from_sloppy_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        ...


def _invalid(options: Mapping[str, Any], message: str) -> ConversionResult:
    arg = options.get("arg")
    prefix = f"Invalid value for argument {arg!r}: " if arg else ""
    return ConversionResult.fail(BindingError(prefix + message, arg=arg))


def _absent(value: Any) -> bool:
    return value is MISSING or value is None


class AnyConverter:
    def from_typed_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        return ConversionResult.ok(value)

    def from_sloppy_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        return ConversionResult.ok(value)


class StringConverter:
    def from_typed_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if _absent(value) or isinstance(value, str):
            return ConversionResult.ok(value)
        return _invalid(options, "Value is not a string.")

    def from_sloppy_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if isinstance(value, (list, dict)):
            return _invalid(options, "Value is not a string.")
        if _absent(value) or isinstance(value, str):
            return ConversionResult.ok(value)
        if isinstance(value, bool):
            return ConversionResult.ok(str(value).lower())
        return ConversionResult.ok(str(value))


class NumberConverter:
    integer = False

    def _check(self, value: int | float, options: Mapping[str, Any]) -> ConversionResult:
        if isinstance(value, float) and not math.isfinite(value):
            return _invalid(options, "Value is not a finite number.")
        if self.integer:
            if isinstance(value, float):
                if not value.is_integer():
                    return _invalid(options, "Value is not a safe integer.")
                value = int(value)
        return ConversionResult.ok(value)

    def from_typed_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if _absent(value):
            return ConversionResult.ok(value)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return _invalid(options, "Value is not a number.")
        return self._check(value, options)

    def from_sloppy_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if _absent(value):
            return ConversionResult.ok(value)
        if isinstance(value, str):
            text = value.strip()
            if text == "":
                return ConversionResult.ok(MISSING)
            try:
                number: int | float = int(text)
            except ValueError:
                try:
                    number = float(text)
                except ValueError:
                    return _invalid(options, "Value is not a number.")
            return self._check(number, options)
        return self.from_typed_value(ctx, value, options)


class IntegerConverter(NumberConverter):
    integer = True


_TRUE_STRINGS = {"true", "1"}
_FALSE_STRINGS = {"false", "0"}


class BooleanConverter:
    def from_typed_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if _absent(value) or isinstance(value, bool):
            return ConversionResult.ok(value)
        return _invalid(options, "Value is not a boolean.")

    def from_sloppy_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if isinstance(value, str):
            text = value.strip().lower()
            if text == "":
                return ConversionResult.ok(MISSING)
            if text in _TRUE_STRINGS:
                return ConversionResult.ok(True)
            if text in _FALSE_STRINGS:
                return ConversionResult.ok(False)
            return _invalid(options, "Value is not a boolean.")
        return self.from_typed_value(ctx, value, options)


class DateConverter:
    def from_typed_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if _absent(value) or isinstance(value, datetime):
            return ConversionResult.ok(value)
        if isinstance(value, bool):
            return _invalid(options, "Value is not a valid date.")
        if isinstance(value, (int, float)):
            try:
                return ConversionResult.ok(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
            except (OverflowError, OSError, ValueError):
                return _invalid(options, "Value is not a valid date.")
        if isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                return ConversionResult.ok(datetime.fromisoformat(text))
            except ValueError:
                return _invalid(options, "Value is not a valid date.")
        return _invalid(options, "Value is not a valid date.")

    def from_sloppy_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if isinstance(value, str):
            text = value.strip()
            if text == "":
                return ConversionResult.ok(MISSING)
            if text.lstrip("-").isdigit():
                return self.from_typed_value(ctx, int(text), options)
        return self.from_typed_value(ctx, value, options)


class ObjectConverter:
    def from_typed_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if _absent(value) or isinstance(value, dict):
            return ConversionResult.ok(value)
        return _invalid(options, "Value is not an object.")

    def from_sloppy_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if isinstance(value, str):
            if value.strip() == "":
                return ConversionResult.ok(MISSING)
            try:
                value = json.loads(value)
            except ValueError:
                return _invalid(options, "Value is not an object.")
        return self.from_typed_value(ctx, value, options)


class ArrayConverter:
    """List of items; each item goes through the item converter in the same mode."""

    def __init__(self, items: TypeConverter | None = None) -> None:
        self.items = items or AnyConverter()

    def _each(self, ctx: Any, values: list[Any], options: Mapping[str, Any], sloppy: bool) -> ConversionResult:
        out = []
        for item in values:
            if sloppy:
                result = self.items.from_sloppy_value(ctx, item, options)
            else:
                result = self.items.from_typed_value(ctx, item, options)
            if result.error is not None:
                return result
            out.append(result.value)
        return ConversionResult.ok(out)

    def from_typed_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if _absent(value):
            return ConversionResult.ok(value)
        if not isinstance(value, list):
            return _invalid(options, "Value is not an array.")
        return self._each(ctx, value, options, sloppy=False)

    def from_sloppy_value(self, ctx: Any, value: Any, options: Mapping[str, Any]) -> ConversionResult:
        if _absent(value):
            return ConversionResult.ok(value)
        if isinstance(value, str):
            text = value.strip()
            if text == "":
                return ConversionResult.ok(MISSING)
            if text.startswith("["):
                try:
                    parsed = json.loads(text)
                except ValueError:
                    return _invalid(options, "Value is not an array.")
                if not isinstance(parsed, list):
                    return _invalid(options, "Value is not an array.")
                return self._each(ctx, parsed, options, sloppy=False)
            value = [part.strip() for part in text.split(",")]
        elif not isinstance(value, list):
            value = [value]
        return self._each(ctx, value, options, sloppy=True)


class TypeRegistry:
    """Declared type name -> converter. "[number]" resolves to an array of numbers."""

    def __init__(self) -> None:
        self._converters: dict[str, TypeConverter] = {}

    def register(self, type_name: str, converter: TypeConverter) -> TypeRegistry:
        self._converters[type_name.lower()] = converter
        return self

    def get_converter(self, type_name: str | None) -> TypeConverter:
        name = (type_name or "any").strip().lower()
        if name.startswith("[") and name.endswith("]"):
            return ArrayConverter(self.get_converter(name[1:-1] or "any"))
        converter = self._converters.get(name)
        if converter is None:
            logger.debug("no converter registered for type %r, treating it as 'any'", type_name)
            return self._converters.get("any") or AnyConverter()
        return converter


def default_type_registry() -> TypeRegistry:
    registry = TypeRegistry()
    registry.register("any", AnyConverter())
    registry.register("string", StringConverter())
    registry.register("number", NumberConverter())
    registry.register("integer", IntegerConverter())
    registry.register("boolean", BooleanConverter())
    registry.register("date", DateConverter())
    registry.register("object", ObjectConverter())
    registry.register("array", ArrayConverter())
    registry.register("file", AnyConverter())
    return registry

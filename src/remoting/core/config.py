"""Single config object: built once per process and passed explicitly into every context."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, replace
from typing import Any

DEFAULT_SUPPORTED_TYPES: tuple[str, ...] = (
    "application/json",
    "application/javascript",
    "application/xml",
    "text/javascript",
    "text/xml",
    "json",
    "xml",
    "*/*",
)

_TRUE = {"1", "true", "yes", "y", "on"}


def _is_xml_type(media_type: str) -> bool:
    return re.search(r"\bxml\b", media_type, re.IGNORECASE) is not None


@dataclass(frozen=True)
class RemotingConfig:
    """
    Negotiation and logging settings. Immutable: create with RemotingConfig(...) or
    load_config_from_env(), derive variants with .with_options(...).
    """

    supported_types: tuple[str, ...] | None = None
    xml: bool = False
    format_param: str = "_format"
    jsonp_callback_param: str = "callback"
    log_level: str = "WARNING"
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def resolved_supported_types(self) -> tuple[str, ...]:
        """Explicit list as is; the default list loses its XML types unless xml is enabled."""
        if self.supported_types is not None:
            return tuple(self.supported_types)
        if self.xml:
            return DEFAULT_SUPPORTED_TYPES
        return tuple(t for t in DEFAULT_SUPPORTED_TYPES if not _is_xml_type(t))

    def with_options(self, **changes: Any) -> RemotingConfig:
        return replace(self, **changes)

    @classmethod
    def load_from_env(cls, prefix: str = "REMOTING_", **defaults: Any) -> dict[str, Any]:
        """Load from os.environ with prefix and defaults. Returns dict for RemotingConfig(**...)."""
        result = dict(defaults)
        for key, value in os.environ.items():
            if key.startswith(prefix):
                name = key[len(prefix):].lower()
                result[name] = value
        return result


def load_config_from_env(prefix: str = "REMOTING_", **defaults: Any) -> RemotingConfig:
    """
    Build RemotingConfig from env vars, e.g. REMOTING_XML=true, REMOTING_FORMAT_PARAM=format,
    REMOTING_SUPPORTED_TYPES="application/json,*/*". Unknown keys land in .extra.
    """
    raw = RemotingConfig.load_from_env(prefix, **defaults)
    kwargs: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for name, value in raw.items():
        if name == "xml":
            kwargs["xml"] = value if isinstance(value, bool) else str(value).strip().lower() in _TRUE
        elif name == "supported_types":
            if isinstance(value, str):
                value = tuple(t.strip() for t in value.split(",") if t.strip())
            kwargs["supported_types"] = tuple(value)
        elif name in ("format_param", "jsonp_callback_param", "log_level"):
            kwargs[name] = str(value)
        else:
            extra[name] = value
    return RemotingConfig(extra=extra, **kwargs)


def configure_logging(config: RemotingConfig) -> logging.Logger:
    """Apply config.log_level to the package logger."""
    logger = logging.getLogger("remoting")
    logger.setLevel(config.log_level.upper())
    return logger

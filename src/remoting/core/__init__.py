from remoting.core.config import RemotingConfig, configure_logging, load_config_from_env
from remoting.core.missing import MISSING
from remoting.core.request import HttpRequest
from remoting.core.responses import HttpResponse

__all__ = [
    "MISSING",
    "HttpRequest",
    "HttpResponse",
    "RemotingConfig",
    "configure_logging",
    "load_config_from_env",
]

from remoting.http.context import HttpContext
from remoting.http.endpoint import error_response, remote_endpoint

__all__ = ["HttpContext", "error_response", "remote_endpoint"]

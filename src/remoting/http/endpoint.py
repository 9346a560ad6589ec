"""
remote_endpoint: expose one MethodDescriptor + procedure as a starlette endpoint.
Route registration stays with the caller: Route("/orders/{id}", remote_endpoint(...)).
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from starlette.requests import Request
from starlette.responses import Response

from remoting.core.config import RemotingConfig, configure_logging
from remoting.core.errors import error_details, error_status
from remoting.http.context import HttpContext
from remoting.http.serializers import dumps
from remoting.methods.descriptors import MethodDescriptor
from remoting.types.conversion import TypeRegistry

logger = logging.getLogger(__name__)


def error_response(err: BaseException, ctx: HttpContext | None = None) -> Response:
    """JSON error envelope: {"error": {"statusCode", "name", "message", ...}}."""
    status = error_status(err)
    if status is None or status < 400:
        status = ctx.res.status_code if ctx is not None and ctx.res.status_code >= 400 else 500
    if status >= 500:
        logger.exception("remote method failed with %s", status, exc_info=err)
    else:
        logger.debug("remote method failed with %s: %s", status, err)
    payload = {"statusCode": status, "name": type(err).__name__, **error_details(err)}
    return Response(
        content=dumps({"error": payload}, lenient=True),
        status_code=status,
        media_type="application/json",
    )


def remote_endpoint(
    method: MethodDescriptor,
    procedure: Callable[..., Any] | str,
    *,
    scope: Any = None,
    ctor: tuple[MethodDescriptor, Callable[..., Any]] | None = None,
    config: RemotingConfig | None = None,
    registry: TypeRegistry | None = None,
) -> Callable[[Request], Any]:
    """
    Endpoint running bind -> invoke -> done for each request.
    ctor: (constructor descriptor, factory); the factory's instance becomes the scope
    and `procedure` may then be a method name on it.
    """
    if config is None:
        config = RemotingConfig()
    else:
        configure_logging(config)

    async def endpoint(request: Request) -> Response:
        ctx: HttpContext | None = None
        try:
            ctx = await HttpContext.create(request, method, config=config, registry=registry)
            target = scope
            if ctor is not None:
                ctor_method, factory = ctor
                target = await ctx.invoke(factory, method=ctor_method, is_ctor=True)
            await ctx.invoke(procedure, scope=target)
            return await ctx.done()
        except Exception as err:
            return error_response(err, ctx)

    return endpoint

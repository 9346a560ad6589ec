"""Tests for HttpContext: invoke, return mapping, finalization in each negotiated format."""

from __future__ import annotations

import asyncio
from datetime import datetime

import pytest
from starlette.responses import StreamingResponse

from remoting.core.config import RemotingConfig
from remoting.core.errors import BindingError, InvocationError, NegotiationFailure, UnsupportedConfigurationError
from remoting.core.missing import MISSING
from remoting.methods.descriptors import (
    HttpMeta,
    MethodDescriptor,
    ParameterDescriptor,
    ReturnDescriptor,
)
from tests.helpers.contexts import make_context

XML = RemotingConfig(xml=True)
DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


def root_method(type_name: str = "object", **http) -> MethodDescriptor:
    return MethodDescriptor(
        "find",
        returns=(ReturnDescriptor("data", type_name, root=True),),
        http=HttpMeta(**http),
    )


async def finish(ctx, value):
    await ctx.invoke(lambda: value)
    return await ctx.done()


class Account:
    def __init__(self, name: str) -> None:
        self.name = name

    def to_json(self) -> dict:
        return {"name": self.name}


@pytest.mark.asyncio
async def test_no_result_is_204_with_empty_body():
    ctx = make_context(MethodDescriptor("ping"))
    response = await finish(ctx, None)
    assert response.status_code == 204
    assert response.body == b""


@pytest.mark.asyncio
async def test_no_result_keeps_explicit_status():
    ctx = make_context(MethodDescriptor("ping", http=HttpMeta(status=202)))
    response = await finish(ctx, None)
    assert response.status_code == 202


@pytest.mark.asyncio
async def test_json_response(json_headers):
    ctx = make_context(root_method(), headers=json_headers)
    response = await finish(ctx, {"id": 1, "when": datetime(2024, 1, 1)})
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    assert response.body == b'{"id": 1, "when": "2024-01-01T00:00:00"}'


@pytest.mark.asyncio
async def test_json_response_uses_to_json():
    ctx = make_context(root_method(), headers={"accept": "*/*"})
    response = await finish(ctx, [Account("a"), Account("b")])
    assert response.body == b'[{"name": "a"}, {"name": "b"}]'


@pytest.mark.asyncio
async def test_null_result_is_json_null():
    ctx = make_context(root_method())
    response = await finish(ctx, None)
    assert response.status_code == 200
    assert response.body == b"null"


@pytest.mark.asyncio
async def test_default_status_is_applied():
    ctx = make_context(root_method(status=201))
    response = await finish(ctx, {"id": 1})
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_xml_response_has_declaration_and_two_space_indent():
    ctx = make_context(root_method(), config=XML, headers={"accept": "text/xml"})
    response = await finish(ctx, {"name": "x", "tags": ["a", "b"]})
    assert response.headers["content-type"] == "text/xml"
    assert response.body.decode() == (
        f"{DECLARATION}\n"
        "<response>\n"
        "  <name>x</name>\n"
        "  <tags>a</tags>\n"
        "  <tags>b</tags>\n"
        "</response>"
    )


@pytest.mark.asyncio
async def test_xml_wraps_bare_lists_and_uses_to_json():
    ctx = make_context(root_method("array"), config=XML, headers={"accept": "application/xml"})
    response = await finish(ctx, [Account("a")])
    assert response.headers["content-type"] == "application/xml"
    assert response.body.decode() == (
        f"{DECLARATION}\n"
        "<response>\n"
        "  <result>\n"
        "    <name>a</name>\n"
        "  </result>\n"
        "</response>"
    )


@pytest.mark.asyncio
async def test_xml_attributes_are_double_quoted():
    ctx = make_context(root_method(), config=XML, headers={"accept": "text/xml"})
    response = await finish(ctx, {"@id": "7", "name": "x"})
    assert '<response id="7">' in response.body.decode()


@pytest.mark.asyncio
async def test_xml_null_result():
    ctx = make_context(root_method(), config=XML, headers={"accept": "text/xml"})
    response = await finish(ctx, None)
    assert response.body == b"<null/>"
    assert response.headers["content-length"] == "7"


@pytest.mark.asyncio
async def test_xml_custom_rendering_is_used_as_is():
    class Doc:
        def to_xml(self) -> str:
            return "<doc/>"

    ctx = make_context(root_method(), config=XML, query={"_format": "xml"})
    response = await finish(ctx, Doc())
    assert response.body == b"<doc/>"


@pytest.mark.asyncio
async def test_xml_rendering_failure_is_500_with_diagnostic_body():
    class Broken:
        def to_xml(self) -> str:
            raise ValueError("cannot render")

    ctx = make_context(root_method(), config=XML, headers={"accept": "text/xml"})
    response = await finish(ctx, Broken())
    assert response.status_code == 500
    assert response.body.decode().startswith("cannot render\n")


@pytest.mark.asyncio
async def test_unacceptable_format_is_406():
    ctx = make_context(root_method(), headers={"accept": "application/pdf"})
    response = await finish(ctx, {"id": 1})
    assert response.status_code == 406
    assert response.headers["content-type"] == "text/plain"
    assert response.body == b"Not Acceptable"
    assert isinstance(ctx.error, NegotiationFailure)


@pytest.mark.asyncio
async def test_xml_without_xml_enabled_is_406():
    ctx = make_context(root_method(), headers={"accept": "text/xml"})
    response = await finish(ctx, {"id": 1})
    assert response.status_code == 406


@pytest.mark.asyncio
async def test_json_api_content_type():
    config = RemotingConfig(supported_types=("application/vnd.api+json", "application/json"))
    ctx = make_context(root_method(), config=config, headers={"accept": "application/vnd.api+json"})
    response = await finish(ctx, {"data": []})
    assert response.headers["content-type"] == "application/vnd.api+json"
    assert response.body == b'{"data": []}'


@pytest.mark.asyncio
async def test_jsonp_with_callback():
    ctx = make_context(root_method(), headers={"accept": "text/javascript"}, query={"callback": "handle"})
    response = await finish(ctx, {"id": 1})
    assert response.headers["content-type"] == "text/javascript; charset=utf-8"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.body == b"/**/ typeof handle === 'function' && handle({\"id\": 1});"


@pytest.mark.asyncio
async def test_jsonp_without_callback_is_plain_json():
    ctx = make_context(root_method(), headers={"accept": "application/javascript"})
    response = await finish(ctx, {"id": 1})
    assert response.headers["content-type"] == "application/json"
    assert response.body == b'{"id": 1}'


@pytest.mark.asyncio
async def test_headers_already_sent_skips_content_type_and_body():
    ctx = make_context(root_method())
    await ctx.invoke(lambda: {"id": 1})
    ctx.res.headers_sent = True
    response = await ctx.done()
    assert "content-type" not in response.headers
    assert response.body == b""


class TestReturnTargets:
    @pytest.mark.asyncio
    async def test_status_and_header_targets_are_applied(self):
        method = MethodDescriptor(
            "create",
            returns=(
                ReturnDescriptor("count", "number"),
                ReturnDescriptor("code", "number", http_target="status"),
                ReturnDescriptor("etag", "string", http_target="header", header="ETag"),
            ),
        )
        ctx = make_context(method)
        response = await finish(ctx, {"count": 3, "code": 202, "etag": "abc"})
        assert ctx.result == {"count": 3}
        assert response.status_code == 202
        assert response.headers["etag"] == "abc"
        assert response.body == b'{"count": 3}'

    @pytest.mark.asyncio
    async def test_single_named_return_wraps_value(self):
        method = MethodDescriptor("count", returns=(ReturnDescriptor("count", "number"),))
        ctx = make_context(method)
        response = await finish(ctx, 5)
        assert response.body == b'{"count": 5}'


class TestFileResults:
    @pytest.mark.asyncio
    async def test_bytes_are_sent_verbatim(self):
        ctx = make_context(root_method("file"))
        response = await finish(ctx, b"\x00raw")
        assert ctx.result_type == "file"
        assert response.body == b"\x00raw"

    @pytest.mark.asyncio
    async def test_iterables_are_piped(self):
        ctx = make_context(root_method("file"))
        response = await finish(ctx, iter([b"a", b"b"]))
        assert isinstance(response, StreamingResponse)
        assert "content-length" not in response.headers

    @pytest.mark.asyncio
    async def test_other_values_are_a_type_error(self):
        ctx = make_context(root_method("file"))
        await ctx.invoke(lambda: 42)
        with pytest.raises(TypeError, match="Cannot create a file response from int"):
            await ctx.done()


class TestInvocationErrors:
    @pytest.mark.asyncio
    async def test_error_status_takes_precedence_over_default(self):
        ctx = make_context(root_method(error_status=500))

        def fail():
            raise InvocationError("not found", status=404)

        with pytest.raises(InvocationError):
            await ctx.invoke(fail)
        assert ctx.res.status_code == 404
        assert isinstance(ctx.error, InvocationError)

    @pytest.mark.asyncio
    async def test_error_without_status_uses_declared_default(self):
        ctx = make_context(root_method(error_status=400))

        def fail():
            raise InvocationError("bad input")

        with pytest.raises(InvocationError):
            await ctx.invoke(fail)
        assert ctx.res.status_code == 400

    @pytest.mark.asyncio
    async def test_library_errors_do_not_carry_a_status(self):
        ctx = make_context(root_method(error_status=422))

        def fail():
            raise UnsupportedConfigurationError("no such mode")

        with pytest.raises(UnsupportedConfigurationError):
            await ctx.invoke(fail)
        assert ctx.res.status_code == 422

    @pytest.mark.asyncio
    async def test_default_error_status_is_used(self):
        ctx = make_context(root_method(error_status=503))

        async def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await ctx.invoke(fail)
        assert ctx.res.status_code == 503

    @pytest.mark.asyncio
    async def test_status_already_set_is_kept(self):
        ctx = make_context(root_method(error_status=500))
        ctx.res.status(409)

        def fail():
            raise InvocationError("conflict", status=404)

        with pytest.raises(InvocationError):
            await ctx.invoke(fail)
        assert ctx.res.status_code == 409

    @pytest.mark.asyncio
    async def test_without_default_error_status_nothing_is_set(self):
        ctx = make_context(root_method())

        def fail():
            raise InvocationError("gone", status=410)

        with pytest.raises(InvocationError):
            await ctx.invoke(fail)
        assert ctx.res.status_code == 200


class TestBindingFailures:
    @pytest.mark.asyncio
    async def test_binding_error_is_reported_on_a_later_loop_turn(self):
        method = MethodDescriptor("find", accepts=(ParameterDescriptor("n", "number", source="query"),))
        ctx = make_context(method, query={"n": "abc"})
        calls = []
        events = []

        async def other_work():
            events.append("other")

        task = asyncio.create_task(other_work())
        with pytest.raises(BindingError):
            await ctx.invoke(lambda n: calls.append(n))
        events.append("raised")
        await task
        assert events == ["other", "raised"]
        assert calls == []

    @pytest.mark.asyncio
    async def test_bound_arguments_reach_the_procedure(self):
        method = MethodDescriptor(
            "add",
            accepts=(
                ParameterDescriptor("a", "number", source="query"),
                ParameterDescriptor("b", "number", source="query"),
            ),
            returns=(ReturnDescriptor("sum", "number", root=True),),
        )
        ctx = make_context(method, query={"a": "2", "b": "3"})
        response = await finish_with(ctx, lambda a, b: a + b)
        assert response.body == b"5"

    @pytest.mark.asyncio
    async def test_missing_optional_arguments_use_procedure_defaults(self):
        method = MethodDescriptor(
            "greet",
            accepts=(ParameterDescriptor("name", "string", source="query"),),
            returns=(ReturnDescriptor("greeting", "string", root=True),),
        )
        ctx = make_context(method)
        response = await finish_with(ctx, lambda name="world": f"hello {name}")
        assert response.body == b'"hello world"'


async def finish_with(ctx, procedure):
    await ctx.invoke(procedure)
    return await ctx.done()


class TestConstructorInvocation:
    class Orders:
        def __init__(self, tenant: str) -> None:
            self.tenant = tenant

        async def find(self, id: int) -> dict:
            return {"tenant": self.tenant, "id": id}

    ctor = MethodDescriptor("Orders", accepts=(ParameterDescriptor("x-tenant", "string", source="header", arg="tenant"),))
    find = MethodDescriptor(
        "find",
        accepts=(ParameterDescriptor("id", "integer", source="path"),),
        returns=(ReturnDescriptor("order", "object", root=True),),
    )

    @pytest.mark.asyncio
    async def test_constructor_arguments_are_bound_separately(self):
        ctx = make_context(self.find, path_params={"id": "9"}, headers={"X-Tenant": "acme"})
        instance = await ctx.invoke(self.Orders, method=self.ctor, is_ctor=True)
        assert ctx.ctor_args == {"tenant": "acme"}
        assert ctx.result is MISSING
        await ctx.invoke("find", scope=instance)
        assert ctx.result == {"tenant": "acme", "id": 9}

    @pytest.mark.asyncio
    async def test_constructor_binding_failure_aborts(self):
        ctor = MethodDescriptor("Orders", accepts=(ParameterDescriptor("shard", "integer", source="query"),))
        ctx = make_context(self.find, path_params={"id": "9"}, query={"shard": "x"})
        created = []
        with pytest.raises(BindingError):
            await ctx.invoke(lambda shard: created.append(shard), method=ctor, is_ctor=True)
        assert created == []

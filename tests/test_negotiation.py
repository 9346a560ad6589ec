"""Tests for Accept negotiation and the response operation table."""

from __future__ import annotations

import pytest

from remoting.core.config import RemotingConfig
from remoting.core.negotiation import accepts_explicitly, best_match
from remoting.http.serializers import (
    negotiate,
    resolve_response_operation,
    send_body_default,
    send_body_json,
    send_body_jsonp,
    send_body_xml,
)
from remoting.methods.descriptors import MethodDescriptor
from tests.helpers.contexts import make_context

DEFAULT = RemotingConfig().resolved_supported_types()
WITH_XML = RemotingConfig(xml=True).resolved_supported_types()


def test_xml_types_are_disabled_by_default():
    assert DEFAULT == ("application/json", "application/javascript", "text/javascript", "json", "*/*")
    assert "text/xml" in WITH_XML


def test_explicit_supported_types_are_kept():
    config = RemotingConfig(supported_types=("text/xml", "application/json"))
    assert config.resolved_supported_types() == ("text/xml", "application/json")


@pytest.mark.parametrize(
    ("accept", "candidates", "expected"),
    [
        (None, DEFAULT, "application/json"),
        ("application/json", DEFAULT, "application/json"),
        ("*/*", DEFAULT, "*/*"),
        ("text/javascript", DEFAULT, "text/javascript"),
        ("application/pdf", DEFAULT, None),
        ("text/xml", DEFAULT, None),
        ("text/xml", WITH_XML, "text/xml"),
        ("application/xml;q=0.5, application/json", WITH_XML, "application/json"),
        ("text/html, application/xml;q=0.9", WITH_XML, "application/xml"),
        ("application/json;q=0", DEFAULT, None),
        ("text/*", DEFAULT, "text/javascript"),
    ],
)
def test_best_match(accept, candidates, expected):
    assert best_match(accept, candidates) == expected


def test_extension_candidates_return_the_candidate():
    assert best_match("application/json", ["json"]) == "json"


def test_accepts_explicitly_ignores_wildcards():
    assert accepts_explicitly("text/event-stream", "text/event-stream")
    assert not accepts_explicitly("*/*", "text/event-stream")
    assert not accepts_explicitly("text/event-stream;q=0", "text/event-stream")


@pytest.mark.parametrize(
    ("accepts", "sender", "content_type"),
    [
        ("*/*", send_body_json, "application/json"),
        ("json", send_body_json, "application/json"),
        ("application/vnd.api+json", send_body_json, "application/vnd.api+json"),
        ("application/javascript", send_body_jsonp, "application/javascript"),
        ("text/javascript", send_body_jsonp, "text/javascript"),
        ("application/xml", send_body_xml, "application/xml"),
        ("text/xml", send_body_xml, "text/xml"),
        ("xml", send_body_xml, "text/xml"),
        ("application/pdf", send_body_default, "text/plain"),
        (None, send_body_default, "text/plain"),
    ],
)
def test_resolve_response_operation(accepts, sender, content_type):
    operation = resolve_response_operation(accepts)
    assert operation.send_body is sender
    assert operation.content_type == content_type


def test_format_override_wins_over_accept():
    ctx = make_context(MethodDescriptor("m"), headers={"accept": "application/json"}, query={"_format": "XML"})
    assert negotiate(ctx) == "xml"


def test_non_string_format_override_is_not_acceptable():
    ctx = make_context(MethodDescriptor("m"), query=[("_format", "json"), ("_format", "xml")])
    assert negotiate(ctx) == "invalid"
    assert resolve_response_operation(negotiate(ctx)).send_body is send_body_default


def test_format_param_name_is_configurable():
    config = RemotingConfig(format_param="format")
    ctx = make_context(MethodDescriptor("m"), config=config, query={"format": "json", "_format": "xml"})
    assert negotiate(ctx) == "json"

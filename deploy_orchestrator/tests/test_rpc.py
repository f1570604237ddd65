import json

import pytest

from deploy_orchestrator.errors import ErrorKind, UnknownPromptError
from deploy_orchestrator.prompts import DEPLOYMENT_DASHBOARD, get_prompt
from deploy_orchestrator.rpc import LATEST_PROTOCOL_VERSION, RpcDispatcher
from deploy_orchestrator.sessions import SessionStore
from deploy_orchestrator.tools import ToolRegistry


@pytest.fixture
def dispatcher(fake_providers):
    return RpcDispatcher(registry=ToolRegistry(fake_providers), sessions=SessionStore())


@pytest.fixture
def session(dispatcher):
    return dispatcher.sessions.resolve().session


def _call(dispatcher, session, method, params=None, request_id=1):
    message = {"jsonrpc": "2.0", "method": method, "id": request_id}
    if params is not None:
        message["params"] = params
    return dispatcher.dispatch(message, session)


def _has_exactly_one_outcome(envelope):
    return ("result" in envelope) != ("error" in envelope)


def test_initialize(dispatcher, session):
    envelope = _call(
        dispatcher,
        session,
        "initialize",
        {"protocolVersion": "2025-03-26", "clientInfo": {"name": "cli", "version": "0.1"}},
    )

    result = envelope["result"]
    assert result["protocolVersion"] == "2025-03-26"
    assert result["serverInfo"]["name"] == "deployment-orchestrator"
    assert "tools" in result["capabilities"]
    assert session.client_info == {"name": "cli", "version": "0.1"}


def test_initialize_unsupported_version_falls_back(dispatcher, session):
    envelope = _call(dispatcher, session, "initialize", {"protocolVersion": "1999-01-01"})

    assert envelope["result"]["protocolVersion"] == LATEST_PROTOCOL_VERSION


def test_tools_list_matches_registry(dispatcher, session):
    envelope = _call(dispatcher, session, "tools/list")

    names = {tool["name"] for tool in envelope["result"]["tools"]}
    assert names == set(dispatcher.registry.names())
    assert all(tool["inputSchema"]["type"] == "object" for tool in envelope["result"]["tools"])


def test_tools_call_preserves_id(dispatcher, session):
    envelope = _call(
        dispatcher,
        session,
        "tools/call",
        {"name": "deploy-vercel", "arguments": {"projectName": "demo"}},
        request_id="req-42",
    )

    assert envelope["id"] == "req-42"
    assert envelope["result"]["isError"] is False
    text = envelope["result"]["content"][0]["text"]
    assert "dep_1" in text
    assert "BUILDING" in text
    assert _has_exactly_one_outcome(envelope)


def test_tools_call_failure_becomes_error_envelope(dispatcher, session):
    envelope = _call(dispatcher, session, "tools/call", {"name": "deploy-render", "arguments": {"serviceName": "x"}}, 7)

    assert envelope["id"] == 7
    assert envelope["error"]["code"] == "NotFound"
    assert envelope["error"]["message"].startswith("❌")
    assert envelope["error"]["data"]["rpcCode"] == -32003
    assert _has_exactly_one_outcome(envelope)


def test_tools_call_unknown_tool(dispatcher, session):
    envelope = _call(dispatcher, session, "tools/call", {"name": "nope", "arguments": {}}, 3)

    assert envelope["id"] == 3
    assert envelope["error"]["code"] == "UnknownTool"


def test_tools_call_requires_name(dispatcher, session):
    envelope = _call(dispatcher, session, "tools/call", {"arguments": {}}, 4)

    assert envelope["error"]["code"] == "ValidationError"


def test_tools_call_rejects_non_object_arguments(dispatcher, session):
    envelope = _call(dispatcher, session, "tools/call", {"name": "list-services", "arguments": ["render"]}, 5)

    assert envelope["error"]["code"] == "ValidationError"


def test_unknown_method(dispatcher, session):
    envelope = _call(dispatcher, session, "unknown", request_id=11)

    assert envelope == {
        "jsonrpc": "2.0",
        "id": 11,
        "error": {"code": "UnknownMethod", "message": "Method not found: unknown", "data": {"rpcCode": -32601}},
    }


def test_ping(dispatcher, session):
    assert _call(dispatcher, session, "ping")["result"] == {}


def test_prompts(dispatcher, session):
    listing = _call(dispatcher, session, "prompts/list")
    prompt = _call(dispatcher, session, "prompts/get", {"name": "deploy-application", "arguments": {"request": "ship it"}})
    missing_arg = _call(dispatcher, session, "prompts/get", {"name": "deploy-application", "arguments": {}})
    unknown = _call(dispatcher, session, "prompts/get", {"name": "nope"})

    assert {p["name"] for p in listing["result"]["prompts"]} == {"deploy-application", "deployment-dashboard"}
    assert 'Process this deployment request: "ship it"' in prompt["result"]["messages"][0]["content"]["text"]
    assert missing_arg["error"]["code"] == "ValidationError"
    assert unknown["error"]["code"] == "UnknownPrompt"


def test_prompts_come_from_injected_mapping(fake_providers):
    dispatcher = RpcDispatcher(
        registry=ToolRegistry(fake_providers),
        sessions=SessionStore(),
        prompts={DEPLOYMENT_DASHBOARD.name: DEPLOYMENT_DASHBOARD},
    )
    session = dispatcher.sessions.resolve().session

    listing = _call(dispatcher, session, "prompts/list")
    dashboard = _call(dispatcher, session, "prompts/get", {"name": "deployment-dashboard"})
    excluded = _call(dispatcher, session, "prompts/get", {"name": "deploy-application", "arguments": {"request": "x"}})

    assert [p["name"] for p in listing["result"]["prompts"]] == ["deployment-dashboard"]
    assert dispatcher.discovery()["prompts"] == ["deployment-dashboard"]
    assert dashboard["result"]["messages"]
    assert excluded["error"]["code"] == "UnknownPrompt"


def test_get_prompt_unknown_name_raises():
    with pytest.raises(UnknownPromptError) as excinfo:
        get_prompt("nope")

    assert excinfo.value.kind is ErrorKind.UNKNOWN_PROMPT
    assert "deploy-application" in str(excinfo.value)


def test_invalid_envelope_keeps_extractable_id(dispatcher, session):
    envelope = dispatcher.dispatch({"jsonrpc": "1.0", "method": "ping", "id": 9}, session)

    assert envelope["id"] == 9
    assert envelope["error"]["code"] == "MalformedRequest"


def test_non_object_message(dispatcher, session):
    envelope = dispatcher.dispatch([{"jsonrpc": "2.0", "method": "ping", "id": 1}], session)

    assert envelope["id"] is None
    assert envelope["error"]["code"] == "MalformedRequest"


def test_notification_has_no_envelope(dispatcher, session):
    assert dispatcher.dispatch({"jsonrpc": "2.0", "method": "notifications/initialized"}, session) is None


def test_unexpected_exception_is_contained(dispatcher, session, monkeypatch):
    def explode(name, arguments=None):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(dispatcher.registry, "invoke", explode)

    envelope = _call(dispatcher, session, "tools/call", {"name": "deploy-vercel", "arguments": {}}, 12)

    assert envelope["id"] == 12
    assert envelope["error"]["code"] == "InternalError"


def test_handle_mints_session_and_parses_body(dispatcher):
    body = json.dumps({"jsonrpc": "2.0", "method": "ping", "id": 1}).encode()

    first = dispatcher.handle(body)
    second = dispatcher.handle(body, first.session_id)

    assert first.is_new_session
    assert not second.is_new_session
    assert second.session_id == first.session_id
    assert first.status_code == 200


def test_handle_unparsable_body(dispatcher):
    result = dispatcher.handle(b"{not json")

    assert result.status_code == 400
    assert result.envelope["id"] is None
    assert result.envelope["error"]["code"] == "MalformedRequest"
    assert result.envelope["error"]["data"]["rpcCode"] == -32700


def test_handle_notification_is_accepted(dispatcher):
    result = dispatcher.handle(b'{"jsonrpc": "2.0", "method": "notifications/initialized"}')

    assert result.envelope is None
    assert result.status_code == 202


def test_teardown_is_always_acknowledged(dispatcher):
    identifier = dispatcher.sessions.resolve().identifier

    assert dispatcher.teardown(identifier) == {}
    assert dispatcher.teardown(identifier) == {}
    assert dispatcher.teardown(None) == {}
    assert identifier not in dispatcher.sessions

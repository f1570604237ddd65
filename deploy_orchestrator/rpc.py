"""JSON-RPC dispatcher implementing the MCP methods served by the orchestrator.

Every inbound message yields exactly one response envelope carrying either a
``result`` or an ``error`` (notifications excepted, which get none). Errors of
every kind are converted into ``{code, message, data}`` objects here; nothing
raised by a tool, provider or the envelope parser reaches the transport.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Literal, Mapping

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from deploy_orchestrator.errors import (
    PARSE_ERROR_CODE,
    DeploymentError,
    ErrorKind,
    RpcError,
    ToolValidationError,
)
from deploy_orchestrator.prompts import PROMPTS, PromptDescriptor, get_prompt
from deploy_orchestrator.sessions import Session, SessionStore
from deploy_orchestrator.tools import ToolRegistry

_LOGGER = logging.getLogger("deploy_orchestrator.rpc")

SERVER_NAME = "deployment-orchestrator"
SERVER_VERSION = "1.0.0"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[0]

_INSTRUCTIONS = (
    "Deploy applications to Vercel and Render. Use list-services to discover "
    "targets, deploy-vercel or deploy-render to start a deployment, and "
    "check-deployment-status to follow it."
)

RequestId = StrictStr | StrictInt | None


class RpcRequest(BaseModel):
    """A decoded JSON-RPC 2.0 request envelope."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: Literal["2.0"]
    method: StrictStr
    params: Dict[str, Any] | None = None
    id: RequestId = None


@dataclass(frozen=True)
class DispatchResult:
    """What the transport needs to write back for one POSTed message."""

    session_id: str
    is_new_session: bool
    envelope: Dict[str, Any] | None
    status_code: int = 200


class _RpcFailure(Exception):
    def __init__(self, error: RpcError) -> None:
        super().__init__(error.message)
        self.error = error


MethodHandler = Callable[["RpcDispatcher", RpcRequest, Session], Dict[str, Any]]


class RpcDispatcher:
    """Routes decoded envelopes to the tool registry, prompts and session store."""

    _METHODS: ClassVar[Mapping[str, MethodHandler]]

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        sessions: SessionStore | None = None,
        prompts: Mapping[str, PromptDescriptor] | None = None,
    ) -> None:
        self.registry = registry if registry is not None else ToolRegistry()
        self.sessions = sessions if sessions is not None else SessionStore()
        self.prompts = dict(prompts if prompts is not None else PROMPTS)

    def handle(self, body: bytes | str, supplied_session: str | None = None) -> DispatchResult:
        """Resolve the session, decode ``body`` and dispatch it."""

        resolution = self.sessions.resolve(supplied_session)
        if resolution.is_new:
            _LOGGER.info("Created session %s", resolution.identifier)

        try:
            message = json.loads(body)
        except ValueError as exc:
            _LOGGER.warning("Rejected unparsable request body: %s", exc)
            error = RpcError.of(
                ErrorKind.MALFORMED_REQUEST, f"Parse error: {exc}", rpc_code=PARSE_ERROR_CODE
            )
            return DispatchResult(
                session_id=resolution.identifier,
                is_new_session=resolution.is_new,
                envelope=_envelope_error(None, error),
                status_code=400,
            )

        envelope = self.dispatch(message, resolution.session)
        if envelope is None:
            status_code = 202
        elif "error" in envelope and envelope["id"] is None:
            status_code = 400 if envelope["error"]["code"] == ErrorKind.MALFORMED_REQUEST.value else 200
        else:
            status_code = 200
        return DispatchResult(
            session_id=resolution.identifier,
            is_new_session=resolution.is_new,
            envelope=envelope,
            status_code=status_code,
        )

    def dispatch(self, message: Any, session: Session) -> Dict[str, Any] | None:
        """Produce the response envelope for one decoded message.

        Returns ``None`` for notifications, which carry no ``id`` and expect no
        reply.
        """

        if not isinstance(message, Mapping):
            return _envelope_error(
                None, RpcError.of(ErrorKind.MALFORMED_REQUEST, "Request must be a JSON-RPC object")
            )

        if _is_notification(message):
            _LOGGER.info("Notification %s session=%s", message.get("method"), session.identifier)
            return None

        try:
            request = RpcRequest.model_validate(message)
        except ValidationError as exc:
            request_id = _extract_id(message)
            _LOGGER.warning("Invalid request id=%s: %s", request_id, exc)
            return _envelope_error(
                request_id,
                RpcError.of(ErrorKind.MALFORMED_REQUEST, f"Invalid request: {_summarize(exc)}"),
            )

        _LOGGER.info("RPC method=%s id=%s session=%s", request.method, request.id, session.identifier)

        method_handler = self._METHODS.get(request.method)
        if method_handler is None:
            return _envelope_error(
                request.id,
                RpcError.of(ErrorKind.UNKNOWN_METHOD, f"Method not found: {request.method}"),
            )

        try:
            return _envelope_ok(request.id, method_handler(self, request, session))
        except _RpcFailure as exc:
            return _envelope_error(request.id, exc.error)
        except DeploymentError as exc:
            _LOGGER.warning("RPC method %s failed (%s): %s", request.method, exc.kind.value, exc)
            return _envelope_error(request.id, RpcError.of(exc.kind, str(exc)))
        except Exception as exc:  # noqa: BLE001 - every outcome must be an envelope
            _LOGGER.error("RPC method %s raised unexpected error", request.method, exc_info=True)
            return _envelope_error(
                request.id, RpcError.of(ErrorKind.INTERNAL_ERROR, f"Internal error: {exc}")
            )

    def teardown(self, session_id: str | None) -> Dict[str, Any]:
        """Close ``session_id``; closing an unknown session is not an error."""

        self.sessions.close(session_id)
        _LOGGER.info("Closed session %s", session_id)
        return {}

    def discovery(self) -> Dict[str, Any]:
        """Static capability document served on ``GET /mcp``."""

        return {
            "message": "MCP Deployment Server is running!",
            "server": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "transport": "Streamable HTTP",
            "protocolVersion": LATEST_PROTOCOL_VERSION,
            "endpoints": {"Streamable HTTP": "POST /mcp", "Health Check": "GET /health"},
            "tools": self.registry.names(),
            "prompts": list(self.prompts),
        }

    # Method handlers -----------------------------------------------------

    def _initialize(self, request: RpcRequest, session: Session) -> Dict[str, Any]:
        params = request.params or {}
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION

        client_info = params.get("clientInfo")
        if isinstance(client_info, Mapping):
            session.client_info = dict(client_info)
        session.protocol_version = version

        return {
            "protocolVersion": version,
            "capabilities": {
                "tools": {"listChanged": False},
                "prompts": {"listChanged": False},
            },
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "instructions": _INSTRUCTIONS,
        }

    def _ping(self, request: RpcRequest, session: Session) -> Dict[str, Any]:
        return {}

    def _list_tools(self, request: RpcRequest, session: Session) -> Dict[str, Any]:
        return {"tools": [descriptor.to_payload() for descriptor in self.registry.descriptors()]}

    def _call_tool(self, request: RpcRequest, session: Session) -> Dict[str, Any]:
        params = request.params or {}
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ToolValidationError("'name' is required for tools/call")
        arguments = params.get("arguments")
        if arguments is not None and not isinstance(arguments, Mapping):
            raise ToolValidationError("'arguments' must be an object")

        outcome = self.registry.invoke(name, arguments)
        if outcome.error is not None:
            raise _RpcFailure(outcome.error)
        return {"content": outcome.content, "isError": False}

    def _list_prompts(self, request: RpcRequest, session: Session) -> Dict[str, Any]:
        return {"prompts": [prompt.to_payload() for prompt in self.prompts.values()]}

    def _get_prompt(self, request: RpcRequest, session: Session) -> Dict[str, Any]:
        params = request.params or {}
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ToolValidationError("'name' is required for prompts/get")
        arguments = params.get("arguments")
        if arguments is not None and not isinstance(arguments, Mapping):
            raise ToolValidationError("'arguments' must be an object")
        return get_prompt(name, arguments, self.prompts)


def _envelope_ok(request_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _envelope_error(request_id: Any, error: RpcError) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": error.to_payload()}


def _is_notification(message: Mapping[str, Any]) -> bool:
    method = message.get("method")
    return "id" not in message and isinstance(method, str) and method.startswith("notifications/")


def _extract_id(message: Mapping[str, Any]) -> str | int | None:
    request_id = message.get("id")
    if isinstance(request_id, bool):
        return None
    if isinstance(request_id, (str, int)):
        return request_id
    return None


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "request"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


RpcDispatcher._METHODS = {
    "initialize": RpcDispatcher._initialize,
    "ping": RpcDispatcher._ping,
    "tools/list": RpcDispatcher._list_tools,
    "tools/call": RpcDispatcher._call_tool,
    "prompts/list": RpcDispatcher._list_prompts,
    "prompts/get": RpcDispatcher._get_prompt,
}

"""MCP tool definitions for the deployment orchestrator.

This module exposes :class:`ToolRegistry`, the single entry point behind
``tools/list`` and ``tools/call``. Each tool is described by an immutable
:class:`ToolDescriptor` whose parameter specs drive both the advertised JSON
Schema and the validation applied before a handler runs. Handlers talk to a
:class:`~deploy_orchestrator.providers.DeploymentProvider` and render the
normalized record as human-readable text; every outcome, including failures,
comes back as a :class:`~deploy_orchestrator.errors.ToolOutcome`.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, ClassVar, Dict, List, Mapping, MutableMapping, Tuple

from deploy_orchestrator.errors import DeploymentError, ErrorKind, ToolOutcome, ToolValidationError
from deploy_orchestrator.providers import (
    PROVIDER_TYPES,
    DeploymentProvider,
    DeploymentRecord,
    DeploymentStatus,
    default_providers,
)

_PACKAGE_LOGGER = logging.getLogger("deploy_orchestrator")
if not _PACKAGE_LOGGER.handlers:
    # Use environment LOG_LEVEL if present, default to INFO.
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    _PACKAGE_LOGGER.setLevel(log_level)
    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    handler.setFormatter(formatter)
    _PACKAGE_LOGGER.addHandler(handler)

_LOGGER = logging.getLogger("deploy_orchestrator.tools")


@dataclass(frozen=True)
class ParamSpec:
    """Declared type, requirement and default of one tool argument."""

    type: str = "string"
    required: bool = False
    default: Any = None
    description: str = ""
    enum: Tuple[str, ...] | None = None

    def json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.default is not None:
            schema["default"] = self.default
        return schema


_JSON_TYPES: Dict[str, Tuple[type, ...]] = {
    "string": (str,),
}


@dataclass(frozen=True)
class ToolDescriptor:
    """Name, description and input schema of a tool advertised via ``tools/list``."""

    name: str
    description: str
    failure_title: str
    params: Mapping[str, ParamSpec] = field(default_factory=dict)
    any_of_required: Tuple[str, ...] = ()

    def input_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {name: spec.json_schema() for name, spec in self.params.items()},
        }
        required = [name for name, spec in self.params.items() if spec.required]
        if required:
            schema["required"] = required
        if self.any_of_required:
            schema["anyOf"] = [{"required": [name]} for name in self.any_of_required]
        return schema

    def to_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema()}

    def validate(self, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        """Check required parameters, types and enums, then apply defaults.

        Undeclared arguments are dropped.
        """

        validated: Dict[str, Any] = {}
        for name, spec in self.params.items():
            value = arguments.get(name)
            if isinstance(value, str) and not value.strip():
                value = None

            if value is None:
                if spec.required:
                    raise ToolValidationError(f"'{name}' is required")
                if spec.default is not None:
                    validated[name] = spec.default
                continue

            expected = _JSON_TYPES.get(spec.type)
            if expected and not isinstance(value, expected):
                raise ToolValidationError(f"'{name}' must be a {spec.type}")
            if spec.enum and value not in spec.enum:
                raise ToolValidationError(f"'{name}' must be one of: {', '.join(spec.enum)}")
            validated[name] = value.strip() if isinstance(value, str) else value

        if self.any_of_required and not any(name in validated for name in self.any_of_required):
            names = " or ".join(f"'{name}'" for name in self.any_of_required)
            raise ToolValidationError(f"Either {names} is required")
        return validated


ToolHandler = Callable[["ToolRegistry", Dict[str, Any]], str]


class ToolRegistry:
    """Static mapping from tool name to descriptor and handler.

    The same ``_TOOLS`` table backs ``tools/list`` and ``tools/call`` so the
    advertised tools and the dispatchable tools can never drift apart.
    """

    _TOOLS: ClassVar[Mapping[str, Tuple[ToolDescriptor, ToolHandler]]]

    def __init__(self, providers: Mapping[str, DeploymentProvider] | None = None) -> None:
        self._providers: Dict[str, DeploymentProvider] = dict(
            providers if providers is not None else default_providers()
        )

    def names(self) -> List[str]:
        return list(self._TOOLS)

    def descriptors(self) -> List[ToolDescriptor]:
        return [descriptor for descriptor, _ in self._TOOLS.values()]

    def get(self, name: str) -> ToolDescriptor | None:
        entry = self._TOOLS.get(name)
        return entry[0] if entry else None

    def invoke(self, name: str, arguments: Any = None) -> ToolOutcome:
        """Validate ``arguments`` and run the named tool.

        Never raises: unknown tools, validation errors, provider failures and
        unexpected exceptions are all returned as failed outcomes.
        """

        entry = self._TOOLS.get(name)
        if entry is None:
            return ToolOutcome.failure(
                ErrorKind.UNKNOWN_TOOL,
                f"Unknown tool '{name}'. Available tools: {', '.join(self.names())}",
            )

        descriptor, tool_handler = entry
        try:
            validated = descriptor.validate(_coerce_arguments(arguments))
            _LOGGER.info("Executing tool=%s arguments=%s", name, _sanitize(validated))
            text = tool_handler(self, validated)
            return ToolOutcome.success(text)
        except DeploymentError as exc:
            _LOGGER.warning("Tool %s failed (%s): %s", name, exc.kind.value, exc)
            return ToolOutcome.failure(exc.kind, f"❌ {descriptor.failure_title}: {exc}")
        except Exception as exc:  # noqa: BLE001 - surface unexpected errors cleanly
            _LOGGER.error("Tool %s raised unexpected error", name, exc_info=True)
            return ToolOutcome.failure(
                ErrorKind.INTERNAL_ERROR, f"❌ {descriptor.failure_title}: Unexpected error: {exc}"
            )

    def _provider(self, platform: str) -> DeploymentProvider:
        provider = self._providers.get(platform)
        if provider is None:
            raise ToolValidationError(f"Platform '{platform}' is not configured")
        return provider

    # Tool handlers -------------------------------------------------------

    def _deploy_vercel(self, args: MutableMapping[str, Any]) -> str:
        provider = self._provider("vercel")
        record = provider.trigger(
            args["projectName"],
            {"git_repo": args.get("gitRepo"), "branch": args.get("branch")},
        )

        lines = [
            "✅ Vercel deployment started!",
            "",
            f"🆔 Deployment ID: {record.id}",
            f"🔗 URL: {_format_url(record.url)}",
            f"📊 Status: {record.raw_status or 'BUILDING'}",
            f"🌟 Target: {record.target or 'production'}",
            "",
            _status_hint("vercel", record.id),
        ]
        return "\n".join(lines)

    def _deploy_render(self, args: MutableMapping[str, Any]) -> str:
        provider = self._provider("render")
        service_id = args.get("serviceId")
        if not service_id:
            service_id = provider.resolve_target(args["serviceName"]).id

        record = provider.trigger(service_id)

        lines = [
            "✅ Render deployment started!",
            "",
            f"🆔 Deployment ID: {record.id}",
            f"🔗 Service ID: {service_id}",
            f"📊 Status: {record.raw_status or 'unknown'}",
        ]
        if record.created_at:
            lines.append(f"🕐 Created: {_format_time(record.created_at)}")
        lines.extend(["", _status_hint("render", service_id)])
        return "\n".join(lines)

    def _check_deployment_status(self, args: MutableMapping[str, Any]) -> str:
        platform = args["platform"]
        record = self._provider(platform).get_status(args["id"])
        return _render_status(record)

    def _list_services(self, args: MutableMapping[str, Any]) -> str:
        platform = args["platform"]
        targets = self._provider(platform).list_targets()

        lines = [f"📋 Available Services - {platform.upper()}", ""]
        if not targets:
            lines.append("No services found for this account.")
            return "\n".join(lines)

        for index, target in enumerate(targets, start=1):
            lines.append(f"{index}. 📦 {target.name}")
            lines.append(f"   🆔 ID: {target.id}")
            lines.append(f"   🔗 Type: {target.kind}")
            if target.detail:
                lines.append(f"   📊 Details: {target.detail}")
            lines.append("")
        return "\n".join(lines).rstrip()


def _render_status(record: DeploymentRecord) -> str:
    lines = [f"📊 Deployment Status - {record.platform.upper()}", "", f"🆔 Deployment ID: {record.id}"]
    if record.url:
        lines.append(f"🔗 URL: {_format_url(record.url)}")
    if record.service_id:
        lines.append(f"🔗 Service ID: {record.service_id}")
    lines.append(f"📊 Status: {record.raw_status or 'unknown'}")
    if record.target:
        lines.append(f"🌟 Target: {record.target}")
    if record.created_at:
        lines.append(f"🕐 Created: {_format_time(record.created_at)}")
    if record.finished_at:
        lines.append(f"🏁 Finished: {_format_time(record.finished_at)}")

    lines.append("")
    if record.status is DeploymentStatus.LIVE:
        lines.append("✅ Deployment is LIVE and ready!")
    elif record.status is DeploymentStatus.FAILED:
        lines.append("❌ Deployment failed")
    elif record.status is DeploymentStatus.PENDING:
        lines.append("⏳ Deployment is still in progress...")
    else:
        lines.append("❔ Deployment state could not be determined")
    return "\n".join(lines)


def _status_hint(platform: str, identifier: str) -> str:
    return f'⏱️ Check status with: check-deployment-status platform="{platform}" id="{identifier}"'


def _format_url(url: str | None) -> str:
    if not url:
        return "n/a"
    if url.startswith(("http://", "https://")):
        return url
    return f"https://{url}"


def _format_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _coerce_arguments(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str):
        stripped = raw.strip()
        if not stripped:
            return {}
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise ToolValidationError("Tool arguments must be a JSON object") from exc
        if not isinstance(parsed, Mapping):
            raise ToolValidationError("Tool arguments JSON must decode to an object")
        return dict(parsed)
    raise ToolValidationError("Tool arguments must be an object")


_SENSITIVE_KEYS = {"key", "secret", "token", "password", "credential"}


def _sanitize(params: Mapping[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in params.items():
        lower_key = key.lower()
        masked = any(token in lower_key for token in _SENSITIVE_KEYS)
        sanitized[key] = "***" if masked else value
    return sanitized


_PLATFORMS: Tuple[str, ...] = tuple(PROVIDER_TYPES)

DEPLOY_VERCEL = ToolDescriptor(
    name="deploy-vercel",
    description="Deploy a project to Vercel",
    failure_title="Vercel deployment failed",
    params={
        "projectName": ParamSpec(required=True, description="Vercel project name"),
        "gitRepo": ParamSpec(description="GitHub repository (owner/repo)"),
        "branch": ParamSpec(default="main", description="Git branch to deploy"),
    },
)

DEPLOY_RENDER = ToolDescriptor(
    name="deploy-render",
    description="Trigger a deploy of a Render service by ID or by name",
    failure_title="Render deployment failed",
    params={
        "serviceId": ParamSpec(description="Render service ID"),
        "serviceName": ParamSpec(description="Service name (if you don't know the ID)"),
    },
    any_of_required=("serviceId", "serviceName"),
)

CHECK_DEPLOYMENT_STATUS = ToolDescriptor(
    name="check-deployment-status",
    description="Check the status of a deployment (Vercel deployment ID or Render service ID)",
    failure_title="Failed to check deployment status",
    params={
        "platform": ParamSpec(required=True, enum=_PLATFORMS, description="Deployment platform"),
        "id": ParamSpec(required=True, description="Deployment ID or Service ID"),
    },
)

LIST_SERVICES = ToolDescriptor(
    name="list-services",
    description="List deployable projects or services on a platform",
    failure_title="Failed to list services",
    params={
        "platform": ParamSpec(required=True, enum=_PLATFORMS, description="Platform to list services from"),
    },
)


ToolRegistry._TOOLS = {
    DEPLOY_VERCEL.name: (DEPLOY_VERCEL, ToolRegistry._deploy_vercel),
    DEPLOY_RENDER.name: (DEPLOY_RENDER, ToolRegistry._deploy_render),
    CHECK_DEPLOYMENT_STATUS.name: (CHECK_DEPLOYMENT_STATUS, ToolRegistry._check_deployment_status),
    LIST_SERVICES.name: (LIST_SERVICES, ToolRegistry._list_services),
}

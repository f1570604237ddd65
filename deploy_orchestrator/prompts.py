"""Prompt templates that steer a client model towards the deployment tools."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Tuple

from deploy_orchestrator.errors import ToolValidationError, UnknownPromptError


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str
    required: bool = True


@dataclass(frozen=True)
class PromptDescriptor:
    name: str
    title: str
    description: str
    arguments: Tuple[PromptArgument, ...]
    render: Callable[[Mapping[str, str]], str]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "arguments": [
                {"name": arg.name, "description": arg.description, "required": arg.required}
                for arg in self.arguments
            ],
        }

    def messages(self, arguments: Mapping[str, Any] | None) -> List[Dict[str, Any]]:
        arguments = arguments or {}
        values: Dict[str, str] = {}
        for arg in self.arguments:
            value = arguments.get(arg.name)
            if value is None or (isinstance(value, str) and not value.strip()):
                if arg.required:
                    raise ToolValidationError(f"'{arg.name}' is required")
                continue
            if not isinstance(value, str):
                raise ToolValidationError(f"'{arg.name}' must be a string")
            values[arg.name] = value
        return [{"role": "user", "content": {"type": "text", "text": self.render(values)}}]


def _deploy_application(values: Mapping[str, str]) -> str:
    return f"""Process this deployment request: "{values['request']}".

Analyze the request and use the appropriate deployment tools:
- For Vercel: Use deploy-vercel tool with project name
- For Render: Use deploy-render tool with service ID or name
- After deployment, automatically check status
- Provide the deployment URL and status

Available tools:
- deploy-vercel (projectName, gitRepo?, branch?)
- deploy-render (serviceId or serviceName)
- check-deployment-status (platform, id)
- list-services (platform)

Be smart about parsing the request and extracting the right parameters."""


def _deployment_dashboard(values: Mapping[str, str]) -> str:
    return """Create a deployment status dashboard. List all available services from both Vercel and Render platforms, show their current status, and provide quick deployment options.

Use these tools:
- list-services for both "vercel" and "render"
- Organize the information in a clear, readable format
- Provide quick deployment commands for each service"""


DEPLOY_APPLICATION = PromptDescriptor(
    name="deploy-application",
    title="Deploy Application",
    description="Deploy application to specified platform with intelligent routing",
    arguments=(
        PromptArgument(
            name="request",
            description="Deployment request (e.g., 'deploy my-app to vercel', 'deploy to render service my-api')",
        ),
    ),
    render=_deploy_application,
)

DEPLOYMENT_DASHBOARD = PromptDescriptor(
    name="deployment-dashboard",
    title="Deployment Status Dashboard",
    description="Get comprehensive deployment status across platforms",
    arguments=(),
    render=_deployment_dashboard,
)

PROMPTS: Dict[str, PromptDescriptor] = {
    DEPLOY_APPLICATION.name: DEPLOY_APPLICATION,
    DEPLOYMENT_DASHBOARD.name: DEPLOYMENT_DASHBOARD,
}


def get_prompt(
    name: str,
    arguments: Mapping[str, Any] | None = None,
    prompts: Mapping[str, PromptDescriptor] | None = None,
) -> Dict[str, Any]:
    """Render the ``prompts/get`` result for ``name`` from ``prompts`` (all prompts by default)."""

    prompts = PROMPTS if prompts is None else prompts
    prompt = prompts.get(name)
    if prompt is None:
        raise UnknownPromptError(f"Unknown prompt '{name}'. Available prompts: {', '.join(prompts)}")
    return {"description": prompt.description, "messages": prompt.messages(arguments)}

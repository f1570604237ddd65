"""FastMCP server exposing the deployment tools over stdio.

The server registers the same tools and prompts as the HTTP endpoint and
forwards every call to :class:`~deploy_orchestrator.tools.ToolRegistry`, so
validation, provider access and rendering behave identically on both
transports.
"""

from __future__ import annotations

from typing import Any, Dict

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from deploy_orchestrator.prompts import DEPLOY_APPLICATION, DEPLOYMENT_DASHBOARD
from deploy_orchestrator.rpc import SERVER_NAME
from deploy_orchestrator.tools import (
    CHECK_DEPLOYMENT_STATUS,
    DEPLOY_RENDER,
    DEPLOY_VERCEL,
    LIST_SERVICES,
    ToolRegistry,
)

server = FastMCP(
    name=SERVER_NAME,
    instructions=(
        "Deploy applications to Vercel and Render. Use list-services to find "
        "targets and check-deployment-status to follow a deployment."
    ),
)

_registry = ToolRegistry()


def _invoke(name: str, arguments: Dict[str, Any]) -> str:
    outcome = _registry.invoke(name, {key: value for key, value in arguments.items() if value is not None})
    if outcome.error is not None:
        raise ToolError(outcome.error.message)
    return outcome.text


@server.tool(name=DEPLOY_VERCEL.name, description=DEPLOY_VERCEL.description)
def deploy_vercel(projectName: str, gitRepo: str | None = None, branch: str = "main") -> str:
    return _invoke(DEPLOY_VERCEL.name, {"projectName": projectName, "gitRepo": gitRepo, "branch": branch})


@server.tool(name=DEPLOY_RENDER.name, description=DEPLOY_RENDER.description)
def deploy_render(serviceId: str | None = None, serviceName: str | None = None) -> str:
    return _invoke(DEPLOY_RENDER.name, {"serviceId": serviceId, "serviceName": serviceName})


@server.tool(name=CHECK_DEPLOYMENT_STATUS.name, description=CHECK_DEPLOYMENT_STATUS.description)
def check_deployment_status(platform: str, id: str) -> str:  # noqa: A002 - tool argument name
    return _invoke(CHECK_DEPLOYMENT_STATUS.name, {"platform": platform, "id": id})


@server.tool(name=LIST_SERVICES.name, description=LIST_SERVICES.description)
def list_services(platform: str) -> str:
    return _invoke(LIST_SERVICES.name, {"platform": platform})


@server.prompt(name=DEPLOY_APPLICATION.name, description=DEPLOY_APPLICATION.description)
def deploy_application(request: str) -> str:
    return DEPLOY_APPLICATION.render({"request": request})


@server.prompt(name=DEPLOYMENT_DASHBOARD.name, description=DEPLOYMENT_DASHBOARD.description)
def deployment_dashboard() -> str:
    return DEPLOYMENT_DASHBOARD.render({})


def main() -> None:
    """Entry-point for launching the FastMCP server."""

    server.run()


if __name__ == "__main__":
    main()

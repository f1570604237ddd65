"""Vercel REST API client."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from deploy_orchestrator.errors import ProviderError

from .base import DeploymentProvider, DeploymentRecord, DeploymentStatus, TargetSummary, parse_timestamp

_STATUS_MAP: Dict[str, DeploymentStatus] = {
    "QUEUED": DeploymentStatus.PENDING,
    "INITIALIZING": DeploymentStatus.PENDING,
    "BUILDING": DeploymentStatus.PENDING,
    "READY": DeploymentStatus.LIVE,
    "ERROR": DeploymentStatus.FAILED,
    "CANCELED": DeploymentStatus.FAILED,
}


class VercelProvider(DeploymentProvider):
    """Deploys Vercel projects and reads deployment state."""

    platform = "vercel"
    display_name = "Vercel"
    base_url = "https://api.vercel.com"

    def trigger(self, target: str, options: Mapping[str, Any] | None = None) -> DeploymentRecord:
        options = options or {}
        git_source: Dict[str, Any] = {"type": "github", "ref": options.get("branch") or "main"}
        if options.get("git_repo"):
            git_source["repo"] = options["git_repo"]

        payload = self._request(
            "POST",
            "/v13/deployments",
            json={"name": target, "target": "production", "gitSource": git_source},
        )
        return self._to_record(payload)

    def get_status(self, identifier: str) -> DeploymentRecord:
        payload = self._request("GET", f"/v6/deployments/{identifier}")
        return self._to_record(payload)

    def list_targets(self) -> List[TargetSummary]:
        payload = self._request("GET", "/v9/projects")
        projects = payload.get("projects") if isinstance(payload, Mapping) else payload
        if not isinstance(projects, list):
            raise ProviderError("Vercel returned a malformed project list")

        summaries: List[TargetSummary] = []
        for project in projects:
            if not isinstance(project, Mapping) or not project.get("id"):
                continue
            summaries.append(
                TargetSummary(
                    id=str(project["id"]),
                    name=str(project.get("name") or project["id"]),
                    kind=str(project.get("framework") or "project"),
                    detail=_production_url(project),
                )
            )
        return summaries

    def _extract_error_message(self, payload: Any) -> str | None:
        if isinstance(payload, Mapping):
            error = payload.get("error")
            if isinstance(error, Mapping) and error.get("message"):
                return str(error["message"])
        return super()._extract_error_message(payload)

    def _to_record(self, payload: Any) -> DeploymentRecord:
        data = self._require_mapping(payload)
        ready_state = data.get("readyState") or data.get("status")
        raw_status = str(ready_state).upper() if ready_state else None
        return DeploymentRecord(
            id=str(data["id"]),
            platform=self.platform,
            url=data.get("url"),
            status=_STATUS_MAP.get(raw_status or "", DeploymentStatus.UNKNOWN),
            raw_status=raw_status,
            target=data.get("target"),
            created_at=parse_timestamp(data.get("createdAt") or data.get("created")),
            finished_at=parse_timestamp(data.get("ready")),
        )


def _production_url(project: Mapping[str, Any]) -> str | None:
    targets = project.get("targets")
    if isinstance(targets, Mapping):
        production = targets.get("production")
        if isinstance(production, Mapping) and production.get("url"):
            return str(production["url"])
    return None

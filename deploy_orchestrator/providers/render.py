"""Render REST API client."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from deploy_orchestrator.errors import NotFoundError, ProviderError

from .base import DeploymentProvider, DeploymentRecord, DeploymentStatus, TargetSummary, parse_timestamp

_STATUS_MAP: Dict[str, DeploymentStatus] = {
    "created": DeploymentStatus.PENDING,
    "queued": DeploymentStatus.PENDING,
    "build_in_progress": DeploymentStatus.PENDING,
    "update_in_progress": DeploymentStatus.PENDING,
    "pre_deploy_in_progress": DeploymentStatus.PENDING,
    "live": DeploymentStatus.LIVE,
    "build_failed": DeploymentStatus.FAILED,
    "update_failed": DeploymentStatus.FAILED,
    "pre_deploy_failed": DeploymentStatus.FAILED,
    "canceled": DeploymentStatus.FAILED,
}


class RenderProvider(DeploymentProvider):
    """Triggers deploys of Render services and reads their latest deploy."""

    platform = "render"
    display_name = "Render"
    base_url = "https://api.render.com/v1"

    def trigger(self, target: str, options: Mapping[str, Any] | None = None) -> DeploymentRecord:
        payload = self._request("POST", f"/services/{target}/deploys", json={})
        return self._to_record(_unwrap(payload, "deploy"), service_id=target)

    def get_status(self, identifier: str) -> DeploymentRecord:
        payload = self._request("GET", f"/services/{identifier}/deploys", params={"limit": 1})
        if not isinstance(payload, list):
            raise ProviderError("Render returned a malformed deploy list")
        if not payload:
            raise NotFoundError(f'No deploys found for service "{identifier}"')
        return self._to_record(_unwrap(payload[0], "deploy"), service_id=identifier)

    def list_targets(self) -> List[TargetSummary]:
        payload = self._request("GET", "/services")
        if not isinstance(payload, list):
            raise ProviderError("Render returned a malformed service list")

        summaries: List[TargetSummary] = []
        for entry in payload:
            service = _unwrap(entry, "service")
            if not isinstance(service, Mapping) or not service.get("id"):
                continue
            details = service.get("serviceDetails")
            has_build = isinstance(details, Mapping) and bool(details.get("buildCommand"))
            summaries.append(
                TargetSummary(
                    id=str(service["id"]),
                    name=str(service.get("name") or service["id"]),
                    kind=str(service.get("type") or "service"),
                    detail="Has build" if has_build else "Static",
                )
            )
        return summaries

    def _to_record(self, payload: Any, *, service_id: str) -> DeploymentRecord:
        data = self._require_mapping(payload)
        raw_status = data.get("status")
        return DeploymentRecord(
            id=str(data["id"]),
            platform=self.platform,
            service_id=service_id,
            status=_STATUS_MAP.get(str(raw_status or ""), DeploymentStatus.UNKNOWN),
            raw_status=str(raw_status) if raw_status else None,
            target=data.get("trigger") or data.get("type"),
            created_at=parse_timestamp(data.get("createdAt")),
            finished_at=parse_timestamp(data.get("finishedAt")),
        )


def _unwrap(entry: Any, key: str) -> Any:
    """Render list endpoints wrap items as ``{key: {...}, "cursor": ...}``."""

    if isinstance(entry, Mapping) and isinstance(entry.get(key), Mapping):
        return entry[key]
    return entry

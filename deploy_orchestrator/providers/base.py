"""Capability interface shared by every deployment platform client."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping

import httpx
from pydantic import BaseModel, ConfigDict

from deploy_orchestrator.credentials import fetch_token
from deploy_orchestrator.errors import NotFoundError, ProviderError

_LOGGER = logging.getLogger("deploy_orchestrator.providers")


class DeploymentStatus(str, Enum):
    """Platform states normalized into a common vocabulary."""

    PENDING = "pending"
    LIVE = "live"
    FAILED = "failed"
    UNKNOWN = "unknown"


class DeploymentRecord(BaseModel):
    """Normalized view of one deployment as reported by a platform."""

    model_config = ConfigDict(frozen=True)

    id: str
    platform: str
    url: str | None = None
    service_id: str | None = None
    status: DeploymentStatus = DeploymentStatus.UNKNOWN
    raw_status: str | None = None
    target: str | None = None
    created_at: datetime | None = None
    finished_at: datetime | None = None


class TargetSummary(BaseModel):
    """A deployable project or service listed by a platform."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: str
    detail: str | None = None


class DeploymentProvider(ABC):
    """One external platform reachable through its REST API.

    Subclasses declare ``platform``, ``display_name`` and ``base_url`` and
    implement the three operations. Every operation issues exactly one HTTP
    request through :meth:`_request`, which reads the platform token first so a
    missing credential never reaches the network.
    """

    platform: ClassVar[str]
    display_name: ClassVar[str]
    base_url: ClassVar[str]

    def __init__(self, *, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    @abstractmethod
    def trigger(self, target: str, options: Mapping[str, Any] | None = None) -> DeploymentRecord:
        """Start a deployment of ``target`` and return its initial record."""

    @abstractmethod
    def get_status(self, identifier: str) -> DeploymentRecord:
        """Return the current record for ``identifier``."""

    @abstractmethod
    def list_targets(self) -> List[TargetSummary]:
        """List the deployable targets visible to the configured token."""

    def resolve_target(self, name: str) -> TargetSummary:
        """Find the target whose name matches ``name`` exactly."""

        for summary in self.list_targets():
            if summary.name == name:
                return summary
        raise NotFoundError(f'Service "{name}" not found')

    def _extract_error_message(self, payload: Any) -> str | None:
        """Pull the platform's own error message out of an error body."""

        if isinstance(payload, Mapping):
            message = payload.get("message")
            if isinstance(message, str) and message:
                return message
        return None

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        token = fetch_token(self.platform)
        headers = {"Authorization": f"Bearer {token}"}
        if json is not None:
            headers["Content-Type"] = "application/json"

        _LOGGER.info("%s %s %s", self.display_name, method, path)
        try:
            with httpx.Client(base_url=self.base_url, transport=self._transport) as client:
                response = client.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as exc:
            _LOGGER.warning("%s request %s %s failed: %s", self.display_name, method, path, exc)
            raise ProviderError(f"{self.display_name} request failed: {exc}") from exc

        if response.is_error:
            message = self._error_message(response)
            _LOGGER.warning(
                "%s request %s %s returned HTTP %s: %s",
                self.display_name,
                method,
                path,
                response.status_code,
                message,
            )
            raise ProviderError(message)

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.display_name} returned a malformed response") from exc

    def _error_message(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        message = self._extract_error_message(payload)
        if message:
            return message
        body = _truncate_string(response.text.strip(), limit=300)
        if body:
            return f"HTTP {response.status_code}: {body}"
        return f"HTTP {response.status_code}"

    def _require_mapping(self, payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, Mapping) or not payload.get("id"):
            raise ProviderError(f"{self.display_name} returned a malformed response")
        return dict(payload)


def _truncate_string(value: str, *, limit: int = 6000) -> str:
    if len(value) <= limit:
        return value
    if limit <= 3:
        return value[:limit]
    return value[: limit - 3] + "..."


def parse_timestamp(value: Any) -> datetime | None:
    """Parse epoch seconds/milliseconds or ISO-8601 strings into aware datetimes."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None

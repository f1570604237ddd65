from datetime import UTC, datetime

import pytest

from deploy_orchestrator.providers import DeploymentProvider, DeploymentRecord, DeploymentStatus, TargetSummary


class FakeProvider(DeploymentProvider):
    """In-memory provider recording every operation it is asked to perform."""

    display_name = "Fake"
    base_url = "https://fake.invalid"

    def __init__(self, platform, *, record=None, targets=(), error=None):
        super().__init__()
        self.platform = platform
        self.record = record or DeploymentRecord(
            id="dep_1",
            platform=platform,
            url="demo.example",
            service_id="srv-1" if platform == "render" else None,
            status=DeploymentStatus.PENDING,
            raw_status="BUILDING",
            target="production",
            created_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC),
        )
        self.targets = list(targets)
        self.error = error
        self.calls = []

    def trigger(self, target, options=None):
        self.calls.append(("trigger", target, dict(options or {})))
        if self.error:
            raise self.error
        return self.record

    def get_status(self, identifier):
        self.calls.append(("get_status", identifier))
        if self.error:
            raise self.error
        return self.record

    def list_targets(self):
        self.calls.append(("list_targets",))
        if self.error:
            raise self.error
        return list(self.targets)

    def operations(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def fake_providers():
    return {
        "vercel": FakeProvider("vercel"),
        "render": FakeProvider(
            "render",
            targets=[
                TargetSummary(id="srv-1", name="api", kind="web_service", detail="Has build"),
                TargetSummary(id="srv-2", name="site", kind="static_site", detail="Static"),
            ],
        ),
    }


@pytest.fixture
def tokens(monkeypatch):
    monkeypatch.setenv("VERCEL_TOKEN", "vercel-test-token")
    monkeypatch.setenv("RENDER_TOKEN", "render-test-token")
    yield


@pytest.fixture
def no_tokens(monkeypatch):
    monkeypatch.delenv("VERCEL_TOKEN", raising=False)
    monkeypatch.delenv("RENDER_TOKEN", raising=False)
    yield

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from agent_relay.api.main import create_app
from agent_relay.config.settings import Settings
from agent_relay.wiring import Services, build_services


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        simulated_latency_min_ms=0,
        simulated_latency_max_ms=0,
        llm_provider="mock",
        openai_api_key="",
    )


@pytest.fixture
def services(settings: Settings) -> Services:
    return build_services(settings)


@pytest.fixture
def client(services: Services, settings: Settings) -> TestClient:
    app = create_app(services=services, settings_override=settings)
    with TestClient(app) as test_client:
        yield test_client

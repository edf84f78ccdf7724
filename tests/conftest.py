from __future__ import annotations

from typing import Any

import pytest

from renderfleet.config import FleetConfig, MachineImage
from tests.fakes import FakeClients, FakeHealthMonitor, FakeRenderQueue


@pytest.fixture
def clients() -> FakeClients:
    return FakeClients()


@pytest.fixture
def render_queue(clients: FakeClients) -> FakeRenderQueue:
    return FakeRenderQueue(clients.ec2)


@pytest.fixture
def health_monitor() -> FakeHealthMonitor:
    return FakeHealthMonitor()


@pytest.fixture
def make_config(render_queue: FakeRenderQueue):
    """Factory for FleetConfig with a Linux image and the fake render queue."""

    def factory(**overrides: Any) -> FleetConfig:
        defaults: dict[str, Any] = {
            "vpc_id": "vpc-0123",
            "render_queue": render_queue,
            "machine_image": MachineImage.generic_linux("ami-0123"),
        }
        return FleetConfig(**(defaults | overrides))

    return factory

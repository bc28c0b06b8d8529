"""Shared fixtures for the laser_ops test-suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List

import httpx
import pytest

from laser_ops.adapters import DispatchResult, ProtocolAdapter
from laser_ops.domain import ConnectionType, LaserJob, Machine
from laser_ops.registry import MachineRegistry
from laser_ops.router import DispatchRouter, build_default_router
from laser_ops.schemas import JobRequest, MachineSpec
from laser_ops.services import LaserJobService
from laser_ops.settings import LaserOpsSettings


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class ScriptedAdapter(ProtocolAdapter):
    """Adapter double that replays queued outcomes and records every call."""

    label = "Scripted"

    def __init__(self, *outcomes: DispatchResult) -> None:
        self.outcomes: List[DispatchResult] = list(outcomes)
        self.calls: List[str] = []

    def send(self, machine: Machine, job: LaserJob) -> DispatchResult:
        self.calls.append(job.id)
        if self.outcomes:
            return self.outcomes.pop(0)
        return DispatchResult.success()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> LaserOpsSettings:
    return LaserOpsSettings(database_path=":memory:")


@pytest.fixture
def http_client() -> httpx.Client:
    # Any request that escapes to the network in a test is a bug.
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request to {request.url}")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        yield client


@pytest.fixture
def service(http_client: httpx.Client, settings: LaserOpsSettings, clock: FakeClock) -> LaserJobService:
    return LaserJobService(
        build_default_router(http_client, settings),
        registry=MachineRegistry(clock=clock),
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def scripted_service(
    http_client: httpx.Client, settings: LaserOpsSettings, clock: FakeClock
) -> Callable[..., tuple]:
    """Build a service whose MANUAL family is served by a ScriptedAdapter."""

    def factory(*outcomes: DispatchResult):
        adapter = ScriptedAdapter(*outcomes)
        adapters = dict(build_default_router(http_client, settings).adapters)
        adapters[ConnectionType.MANUAL] = adapter
        svc = LaserJobService(
            DispatchRouter(adapters),
            registry=MachineRegistry(clock=clock),
            settings=settings,
            clock=clock,
        )
        return svc, adapter

    return factory


def make_machine(service: LaserJobService, **overrides) -> Machine:
    fields = dict(
        name="Test laser",
        user_id="user-1",
        bed_width_mm=300,
        bed_height_mm=200,
        max_power_w=40,
        max_speed_mm_s=400,
    )
    fields.update(overrides)
    return service.registry.register(MachineSpec(**fields))


def make_job(service: LaserJobService, machine: Machine, **overrides) -> LaserJob:
    fields = dict(
        machine_id=machine.id,
        user_id="user-1",
        job_name="Coasters",
        cut_svg_url="https://files.example.com/cut.svg",
        job_width_mm=100,
        job_height_mm=100,
        speed_mm_s=20,
        power_pct=60,
    )
    fields.update(overrides)
    return service.create_job(JobRequest(**fields))

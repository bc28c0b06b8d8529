from __future__ import annotations

import pytest

from laser_ops.domain import ConnectionStatus, ConnectionType, JobStatus, Machine
from laser_ops.errors import DispatchFailedError
from laser_ops.registry import MachineRegistry
from laser_ops.repository import DuplicateRecordError, RecordNotFoundError
from laser_ops.router import build_default_router
from laser_ops.schemas import JobRequest, MachineSpec, ProgressUpdate
from laser_ops.services import LaserJobService
from laser_ops.storage import LaserOpsDatabase


@pytest.fixture
def database(tmp_path):
    with LaserOpsDatabase(str(tmp_path / "laser.sqlite3")) as db:
        yield db


def test_sqlite_repository_crud(database):
    machine = Machine(id="m-1", name="Laser")

    database.machines.add(machine.id, machine)
    with pytest.raises(DuplicateRecordError):
        database.machines.add(machine.id, machine)

    loaded = database.machines.get("m-1")
    assert loaded == machine
    assert loaded is not machine
    assert "m-1" in database.machines
    assert len(database.machines) == 1

    loaded.name = "Renamed"
    assert database.machines.get("m-1").name == "Laser"
    database.machines.upsert(loaded.id, loaded)
    assert database.machines.get("m-1").name == "Renamed"

    database.machines.remove("m-1")
    with pytest.raises(RecordNotFoundError):
        database.machines.get("m-1")
    with pytest.raises(RecordNotFoundError):
        database.machines.remove("m-1")


def test_lifecycle_persists_through_sqlite(database, http_client, settings, clock):
    service = LaserJobService(
        build_default_router(http_client, settings),
        registry=MachineRegistry(database.machines, clock=clock),
        job_repo=database.jobs,
        settings=settings,
        clock=clock,
    )
    manual = service.registry.register(MachineSpec(name="Manual"))
    glowforge = service.registry.register(
        MachineSpec(name="Glowforge", connection_type=ConnectionType.GLOWFORGE_CLOUD)
    )
    request = dict(user_id="u", job_name="Tags", cut_svg_url="https://files.example.com/t.svg")

    ok_job = service.create_job(JobRequest(machine_id=manual.id, **request))
    service.send_job(ok_job.id)
    clock.advance(seconds=90)
    service.update_progress(ok_job.id, ProgressUpdate(status=JobStatus.COMPLETED))

    bad_job = service.create_job(JobRequest(machine_id=glowforge.id, **request))
    with pytest.raises(DispatchFailedError):
        service.send_job(bad_job.id)

    stored_ok = database.jobs.get(ok_job.id)
    assert stored_ok.status is JobStatus.COMPLETED
    assert stored_ok.actual_time_sec == 90
    assert database.machines.get(manual.id).connection_status is ConnectionStatus.ONLINE

    stored_bad = database.jobs.get(bad_job.id)
    assert stored_bad.status is JobStatus.DRAFT
    assert stored_bad.retry_count == 1
    assert stored_bad.error_code == "SEND_FAILED"

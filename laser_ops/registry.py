"""Machine profiles and the live status fields the orchestrator maintains."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Union
from uuid import uuid4

from .adapters import ProbeResult
from .domain import ConnectionStatus, Machine, utcnow
from .repository import InMemoryRepository
from .schemas import MachineSpec, MachineUpdate
from .storage import SQLiteRepository

logger = logging.getLogger(__name__)

MachineStore = Union[InMemoryRepository[Machine], SQLiteRepository[Machine]]


class MachineRegistry:
    """Operator CRUD plus status sync driven by probes and job progress.

    Status writes are last-write-wins; the status is telemetry, not a lock.
    """

    def __init__(
        self,
        repository: Optional[MachineStore] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.machines: MachineStore = repository if repository is not None else InMemoryRepository()
        self._clock = clock

    # ------------------------------------------------------------------
    # Operator-owned profile data
    # ------------------------------------------------------------------
    def register(self, spec: MachineSpec) -> Machine:
        machine = Machine(id=str(uuid4()), created_at=self._clock(), **spec.model_dump())
        self.machines.add(machine.id, machine)
        logger.info(
            "Registered machine %s (%s via %s)",
            machine.id,
            machine.machine_type.value,
            machine.connection_type.value,
        )
        return machine

    def get(self, machine_id: str) -> Machine:
        return self.machines.get(machine_id)

    def list(self, user_id: Optional[str] = None) -> List[Machine]:
        if user_id is None:
            machines = self.machines.list()
        else:
            machines = self.machines.filter(
                lambda machine: machine.user_id == user_id or machine.is_shared
            )
        return sorted(machines, key=lambda machine: machine.created_at, reverse=True)

    def update(self, machine_id: str, changes: MachineUpdate) -> Machine:
        machine = self.machines.get(machine_id)
        for name, value in changes.model_dump(exclude_unset=True).items():
            setattr(machine, name, value)
        self.machines.upsert(machine.id, machine)
        return machine

    def remove(self, machine_id: str) -> None:
        self.machines.remove(machine_id)
        logger.info("Removed machine %s", machine_id)

    # ------------------------------------------------------------------
    # Status sync
    # ------------------------------------------------------------------
    def set_connection_status(self, machine_id: str, status: ConnectionStatus) -> Machine:
        machine = self.machines.get(machine_id)
        machine.connection_status = status
        self.machines.upsert(machine.id, machine)
        logger.debug("Machine %s status -> %s", machine_id, status.value)
        return machine

    def record_probe(self, machine_id: str, result: ProbeResult) -> Machine:
        machine = self.machines.get(machine_id)
        machine.connection_status = result.status
        machine.last_ping_at = self._clock()
        if result.firmware_version:
            machine.firmware_version = result.firmware_version
        self.machines.upsert(machine.id, machine)
        logger.info("Machine %s probed: %s", machine_id, result.status.value)
        return machine

    def record_job_completed(self, machine_id: str) -> Machine:
        machine = self.machines.get(machine_id)
        machine.connection_status = ConnectionStatus.ONLINE
        machine.last_job_at = self._clock()
        self.machines.upsert(machine.id, machine)
        return machine


__all__ = ["MachineRegistry", "MachineStore"]

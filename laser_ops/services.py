"""Service layer that owns the laser job lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Union
from uuid import uuid4

from .adapters import DispatchResult
from .domain import (
    ACTIVE_STATUSES,
    SENDABLE_STATUSES,
    ConnectionStatus,
    JobStatus,
    LaserJob,
    Machine,
    utcnow,
)
from .errors import (
    DispatchFailedError,
    InvalidJobStateError,
    JobAlreadyFinishedError,
    MachineBusyError,
    SafetyValidationRequiredError,
)
from .locks import KeyedLocks, LockBusyError
from .registry import MachineRegistry
from .repository import InMemoryRepository
from .retry import SEND_FAILED, next_after_failure
from .router import DispatchRouter
from .safety import validate_job_envelope
from .schemas import JobRequest, ProgressUpdate
from .settings import LaserOpsSettings
from .storage import SQLiteRepository

logger = logging.getLogger(__name__)

JobStore = Union[InMemoryRepository[LaserJob], SQLiteRepository[LaserJob]]

WAITING_FOR_MACHINE = "waiting-for-machine"
RUNNING_STATUSES = frozenset({JobStatus.CUTTING, JobStatus.ENGRAVING})
REPORTABLE_STATUSES = RUNNING_STATUSES | {JobStatus.COMPLETED}
DEFAULT_LIST_LIMIT = 50


@dataclass(slots=True)
class JobCosts:
    machine_cost: float
    material_cost: float
    total_cost: float


@dataclass(slots=True)
class JobStats:
    """Per-user job counters shown on the dashboard."""

    total: int
    completed: int
    failed: int
    queued: int
    in_progress: int


def estimate_costs(
    machine: Machine, request: JobRequest, settings: LaserOpsSettings
) -> JobCosts:
    """Machine time at the hourly rate plus sheet area at the material rate."""

    hourly_rate = (
        machine.hourly_cost if machine.hourly_cost is not None else settings.default_hourly_rate
    )
    machine_cost = (request.estimated_time_sec or 0) / 3600 * hourly_rate
    material_cost = 0.0
    if request.thickness_mm:
        area_m2 = (request.job_width_mm or 0) * (request.job_height_mm or 0) / 1e6
        material_cost = area_m2 * settings.material_rate_per_m2
    return JobCosts(
        machine_cost=round(machine_cost, 2),
        material_cost=round(material_cost, 2),
        total_cost=round(machine_cost + material_cost, 2),
    )


class LaserJobService:
    """Facade that exposes the job lifecycle use-cases to clients.

    State changes on one job are serialised through a per-job lock. Sending
    additionally holds a per-machine lock for the whole device attempt, so a
    second job cannot be pushed to the same laser while one is in flight.
    """

    def __init__(
        self,
        router: DispatchRouter,
        *,
        registry: Optional[MachineRegistry] = None,
        job_repo: Optional[JobStore] = None,
        settings: Optional[LaserOpsSettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.router = router
        self.registry = registry or MachineRegistry(clock=clock)
        self.jobs: JobStore = job_repo if job_repo is not None else InMemoryRepository()
        self.settings = settings or LaserOpsSettings()
        self._clock = clock
        self._job_locks = KeyedLocks()
        self._machine_locks = KeyedLocks()

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------
    def create_job(self, request: JobRequest) -> LaserJob:
        machine = self.registry.get(request.machine_id)
        warnings = validate_job_envelope(
            machine,
            width_mm=request.job_width_mm,
            height_mm=request.job_height_mm,
            power_pct=request.power_pct,
            speed_mm_s=request.speed_mm_s,
        )
        costs = estimate_costs(machine, request, self.settings)
        job = LaserJob(
            id=str(uuid4()),
            safety_validated=not warnings,
            safety_warnings=warnings,
            max_retries=self.settings.max_retries,
            machine_cost=costs.machine_cost,
            material_cost=costs.material_cost,
            total_cost=costs.total_cost,
            created_at=self._clock(),
            **request.model_dump(),
        )
        self.jobs.add(job.id, job)
        if warnings:
            logger.warning(
                "Job %s created with %d safety warning(s): %s",
                job.id,
                len(warnings),
                "; ".join(warnings),
            )
        else:
            logger.info("Job %s created for machine %s", job.id, machine.id)
        return job

    def get_job(self, job_id: str) -> LaserJob:
        return self.jobs.get(job_id)

    def list_jobs(
        self,
        *,
        user_id: Optional[str] = None,
        machine_id: Optional[str] = None,
        status: Optional[JobStatus] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[LaserJob]:
        jobs = self.jobs.filter(
            lambda job: (user_id is None or job.user_id == user_id)
            and (machine_id is None or job.machine_id == machine_id)
            and (status is None or job.status is status)
        )
        jobs.sort(key=lambda job: (job.priority.rank, job.created_at), reverse=True)
        return jobs[:limit]

    def job_stats(self, user_id: str) -> JobStats:
        jobs = self.jobs.filter(lambda job: job.user_id == user_id)
        return JobStats(
            total=len(jobs),
            completed=sum(1 for job in jobs if job.status is JobStatus.COMPLETED),
            failed=sum(1 for job in jobs if job.status is JobStatus.FAILED),
            queued=sum(1 for job in jobs if job.status is JobStatus.QUEUED),
            in_progress=sum(1 for job in jobs if job.status in ACTIVE_STATUSES),
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def send_job(self, job_id: str) -> LaserJob:
        """Push the job to its machine through the routed protocol adapter.

        Rejections (wrong status, open safety warnings, machine busy) raise
        before anything is written. A failed device attempt is recorded on
        the job first and then raised as :class:`DispatchFailedError`, which
        carries the updated job.
        """

        with self._job_locks.held(job_id, owner="send"):
            job = self.jobs.get(job_id)
            if job.status not in SENDABLE_STATUSES:
                raise InvalidJobStateError(job.id, job.status)
            if not job.safety_validated:
                raise SafetyValidationRequiredError(job.id, job.safety_warnings)
            machine = self.registry.get(job.machine_id)
            try:
                with self._machine_locks.held(machine.id, owner=job.id, blocking=False):
                    return self._dispatch(job, machine)
            except LockBusyError as exc:
                raise MachineBusyError(machine.id, exc.owner) from exc

    def _dispatch(self, job: LaserJob, machine: Machine) -> LaserJob:
        job.status = JobStatus.SENDING
        job.started_at = self._clock()
        self.jobs.upsert(job.id, job)

        adapter = self.router.route(machine)
        logger.info("Sending job %s to machine %s via %s", job.id, machine.id, adapter.label)
        try:
            result = adapter.send(machine, job)
        except Exception as exc:
            logger.exception("%s adapter raised while sending job %s", adapter.label, job.id)
            result = DispatchResult.failure(f"{adapter.label}: {exc}")

        if result.ok:
            job.status = JobStatus.QUEUED
            job.current_operation = WAITING_FOR_MACHINE
            self.jobs.upsert(job.id, job)
            logger.info("Job %s queued on machine %s", job.id, machine.id)
            return job

        decision = next_after_failure(job.retry_count, job.max_retries)
        job.retry_count = decision.retry_count
        job.status = decision.status
        job.error_code = SEND_FAILED
        job.error_message = result.reason or "Send failed"
        self.jobs.upsert(job.id, job)
        logger.warning(
            "Job %s send attempt %d/%d failed (%s): %s",
            job.id,
            job.retry_count,
            job.max_retries,
            job.status.value,
            job.error_message,
        )
        raise DispatchFailedError(job.error_message, job)

    # ------------------------------------------------------------------
    # Progress and cancellation
    # ------------------------------------------------------------------
    def update_progress(self, job_id: str, update: ProgressUpdate) -> LaserJob:
        with self._job_locks.held(job_id, owner="progress"):
            job = self.jobs.get(job_id)
            status = update.status
            if status is not None:
                if job.is_terminal:
                    raise InvalidJobStateError(
                        job.id,
                        job.status,
                        f"Job cannot report progress in status: {job.status.value}",
                    )
                if status not in REPORTABLE_STATUSES:
                    raise InvalidJobStateError(
                        job.id,
                        job.status,
                        f"Status {status.value} cannot be reported as progress",
                    )

            # machine first: a missing machine must leave the job untouched
            if status is JobStatus.COMPLETED:
                self.registry.record_job_completed(job.machine_id)
            elif status in RUNNING_STATUSES:
                self.registry.set_connection_status(job.machine_id, ConnectionStatus.BUSY)

            if update.progress_pct is not None:
                job.progress_pct = update.progress_pct
            if update.current_operation:
                job.current_operation = update.current_operation

            if status is JobStatus.COMPLETED:
                now = self._clock()
                job.status = JobStatus.COMPLETED
                job.completed_at = now
                if job.started_at is not None:
                    job.actual_time_sec = round((now - job.started_at).total_seconds())
                logger.info("Job %s completed in %ss", job.id, job.actual_time_sec)
            elif status in RUNNING_STATUSES:
                job.status = status

            self.jobs.upsert(job.id, job)
            return job

    def cancel_job(self, job_id: str) -> LaserJob:
        with self._job_locks.held(job_id, owner="cancel"):
            job = self.jobs.get(job_id)
            if job.is_terminal:
                raise JobAlreadyFinishedError(job.id, job.status)
            previous = job.status
            job.status = JobStatus.CANCELLED
            self.jobs.upsert(job.id, job)
            logger.info("Job %s cancelled (was %s)", job.id, previous.value)
            return job

    # ------------------------------------------------------------------
    # Machines
    # ------------------------------------------------------------------
    def ping_machine(self, machine_id: str) -> Machine:
        machine = self.registry.get(machine_id)
        result = self.router.route(machine).probe(machine)
        return self.registry.record_probe(machine.id, result)


__all__ = [
    "LaserJobService",
    "JobCosts",
    "JobStats",
    "estimate_costs",
    "WAITING_FOR_MACHINE",
]

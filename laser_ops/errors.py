"""
Error classes raised by the job lifecycle controller.

Two families, split by whether the job record was touched:

- JobRejectedError: the request was refused before any write. Nothing to
  retry; the caller has to change the request or the job first.
- DispatchFailedError: the device attempt failed. The attempt has already
  been recorded on the job (retry count, status, error fields) by the time
  this is raised, and the updated job travels with the exception.

Missing machines and jobs surface as repository.RecordNotFoundError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from .domain import JobStatus, LaserJob


class LaserOpsError(Exception):
    """Base exception for laser_ops."""


class JobRejectedError(LaserOpsError):
    """An operation was refused without mutating the job."""


class InvalidJobStateError(JobRejectedError):
    """The job's current status does not allow the requested operation."""

    def __init__(self, job_id: str, status: "JobStatus", message: Optional[str] = None) -> None:
        super().__init__(message or f"Job cannot be sent in status: {status.value}")
        self.job_id = job_id
        self.status = status


class JobAlreadyFinishedError(InvalidJobStateError):
    """Cancellation requested for a job that already reached an end state."""

    def __init__(self, job_id: str, status: "JobStatus") -> None:
        super().__init__(job_id, status, "Job already finished")


class SafetyValidationRequiredError(JobRejectedError):
    """The job carries unresolved safety warnings from creation time."""

    def __init__(self, job_id: str, warnings: Sequence[str]) -> None:
        super().__init__("Job has unresolved safety warnings. Override required.")
        self.job_id = job_id
        self.warnings = list(warnings)


class MachineBusyError(JobRejectedError):
    """Another job is currently being dispatched to the same machine."""

    def __init__(self, machine_id: str, holder: Optional[str] = None) -> None:
        detail = f" (sending job {holder})" if holder else ""
        super().__init__(f"Machine {machine_id} is busy dispatching another job{detail}")
        self.machine_id = machine_id
        self.holder = holder


class MachineUnavailableError(JobRejectedError):
    """The machine is flagged as being in an error state."""

    def __init__(self, machine_id: str) -> None:
        super().__init__(
            "Machine is in error state. Fix connection before sending jobs."
        )
        self.machine_id = machine_id


class DispatchFailedError(LaserOpsError):
    """The selected protocol adapter could not deliver the job."""

    def __init__(self, reason: str, job: "LaserJob") -> None:
        super().__init__(reason)
        self.reason = reason
        self.job = job


__all__ = [
    "LaserOpsError",
    "JobRejectedError",
    "InvalidJobStateError",
    "JobAlreadyFinishedError",
    "SafetyValidationRequiredError",
    "MachineBusyError",
    "MachineUnavailableError",
    "DispatchFailedError",
]

"""Job dispatch and lifecycle tracking for small laser-cutting shops.

This package provides machine profiles, safety pre-flight checks, protocol
adapters for the supported controller families, and the service that moves
a laser job from draft through dispatch to completion.
"""

from .domain import (
    ConnectionStatus,
    ConnectionType,
    JobPriority,
    JobStatus,
    LaserJob,
    Machine,
    MachineType,
)
from .errors import (
    DispatchFailedError,
    InvalidJobStateError,
    JobAlreadyFinishedError,
    JobRejectedError,
    LaserOpsError,
    MachineBusyError,
    MachineUnavailableError,
    SafetyValidationRequiredError,
)
from .pipeline import ProductionPipeline
from .registry import MachineRegistry
from .router import DispatchRouter, build_default_router
from .schemas import JobRequest, MachineSpec, MachineUpdate, ProgressUpdate
from .services import JobStats, LaserJobService
from .settings import LaserOpsSettings

__all__ = [
    "ConnectionStatus",
    "ConnectionType",
    "JobPriority",
    "JobStatus",
    "LaserJob",
    "Machine",
    "MachineType",
    "DispatchFailedError",
    "InvalidJobStateError",
    "JobAlreadyFinishedError",
    "JobRejectedError",
    "LaserOpsError",
    "MachineBusyError",
    "MachineUnavailableError",
    "SafetyValidationRequiredError",
    "ProductionPipeline",
    "MachineRegistry",
    "DispatchRouter",
    "build_default_router",
    "JobRequest",
    "MachineSpec",
    "MachineUpdate",
    "ProgressUpdate",
    "JobStats",
    "LaserJobService",
    "LaserOpsSettings",
]

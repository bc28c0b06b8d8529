"""Core data structures for laser machines and the jobs dispatched to them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MachineType(str, Enum):
    """Laser source families found in small workshops."""

    DIODE = "DIODE"
    CO2 = "CO2"
    FIBER = "FIBER"
    GALVO = "GALVO"


class ConnectionType(str, Enum):
    """How a job reaches the machine."""

    LIGHTBURN_BRIDGE = "LIGHTBURN_BRIDGE"
    GRBL = "GRBL"
    RUIDA = "RUIDA"
    GLOWFORGE_CLOUD = "GLOWFORGE_CLOUD"
    MANUAL = "MANUAL"


class ConnectionStatus(str, Enum):
    """Live connection state reported for a machine."""

    OFFLINE = "OFFLINE"
    ONLINE = "ONLINE"
    BUSY = "BUSY"
    ERROR = "ERROR"


class JobStatus(str, Enum):
    """Lifecycle stages for a laser job."""

    DRAFT = "DRAFT"
    QUEUED = "QUEUED"
    SENDING = "SENDING"
    CUTTING = "CUTTING"
    ENGRAVING = "ENGRAVING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED}
)
SENDABLE_STATUSES = frozenset({JobStatus.DRAFT, JobStatus.QUEUED})
ACTIVE_STATUSES = frozenset({JobStatus.SENDING, JobStatus.CUTTING, JobStatus.ENGRAVING})


class JobPriority(str, Enum):
    """Priority levels used when ordering the job list."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return {
            JobPriority.LOW: 1,
            JobPriority.NORMAL: 2,
            JobPriority.HIGH: 3,
            JobPriority.URGENT: 4,
        }[self]


@dataclass(slots=True)
class Machine:
    """A physical cutting device with its capability envelope."""

    id: str
    name: str
    machine_type: MachineType = MachineType.DIODE
    connection_type: ConnectionType = ConnectionType.MANUAL
    user_id: Optional[str] = None
    is_shared: bool = False
    ip_address: Optional[str] = None
    port: Optional[int] = None
    bed_width_mm: Optional[float] = None
    bed_height_mm: Optional[float] = None
    max_power_w: Optional[float] = None
    max_speed_mm_s: Optional[float] = None
    acceleration_mm_s2: Optional[float] = None
    home_position: Optional[str] = None
    hourly_cost: Optional[float] = None
    connection_status: ConnectionStatus = ConnectionStatus.OFFLINE
    firmware_version: Optional[str] = None
    last_ping_at: Optional[datetime] = None
    last_job_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class LaserJob:
    """One dispatchable unit of work bound to a single machine."""

    id: str
    user_id: str
    machine_id: str
    job_name: str
    product_type: Optional[str] = None
    material_label: Optional[str] = None
    thickness_mm: Optional[float] = None
    cut_svg_url: Optional[str] = None
    engrave_svg_url: Optional[str] = None
    score_svg_url: Optional[str] = None
    combined_svg_url: Optional[str] = None
    job_width_mm: Optional[float] = None
    job_height_mm: Optional[float] = None
    speed_mm_s: Optional[float] = None
    power_pct: Optional[float] = None
    passes: Optional[int] = None
    kerf_mm: Optional[float] = None
    source_artifact_id: Optional[str] = None
    production_batch_id: Optional[str] = None
    priority: JobPriority = JobPriority.NORMAL
    status: JobStatus = JobStatus.DRAFT
    current_operation: Optional[str] = None
    progress_pct: float = 0.0
    safety_validated: bool = True
    safety_warnings: List[str] = field(default_factory=list)
    retry_count: int = 0
    max_retries: int = 3
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    estimated_time_sec: Optional[int] = None
    actual_time_sec: Optional[int] = None
    machine_cost: float = 0.0
    material_cost: float = 0.0
    total_cost: float = 0.0
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def program_url(self) -> Optional[str]:
        """Artifact handed to devices that take a single program file."""

        return self.combined_svg_url or self.cut_svg_url


__all__ = [
    "MachineType",
    "ConnectionType",
    "ConnectionStatus",
    "JobStatus",
    "JobPriority",
    "TERMINAL_STATUSES",
    "SENDABLE_STATUSES",
    "ACTIVE_STATUSES",
    "Machine",
    "LaserJob",
    "utcnow",
]

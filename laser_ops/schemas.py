"""Request payloads accepted at the service boundary.

Payloads are validated once, when the model is built (FastAPI does this for
HTTP bodies); the service layer trusts them afterwards.
"""

from __future__ import annotations

import ipaddress
import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .domain import ConnectionType, JobPriority, JobStatus, MachineType


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")


_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


def _machine_address(value: Optional[str]) -> Optional[str]:
    """Accept a bare IPv4/IPv6 address or a DNS hostname; ports go in ``port``."""

    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    literal = value[1:-1] if value.startswith("[") and value.endswith("]") else value
    try:
        return str(ipaddress.ip_address(literal))
    except ValueError:
        pass
    labels = value.rstrip(".").split(".")
    if len(value) > 253 or not all(_HOSTNAME_LABEL.match(label) for label in labels):
        raise ValueError(f"{value!r} is not an IP address or hostname")
    return value


class MachineSpec(_Payload):
    """Operator-supplied profile for a new machine."""

    name: str = Field(min_length=1)
    user_id: Optional[str] = None
    machine_type: MachineType = MachineType.DIODE
    connection_type: ConnectionType = ConnectionType.MANUAL
    ip_address: Optional[str] = None
    port: Optional[int] = Field(default=None, gt=0, lt=65536)
    bed_width_mm: Optional[float] = Field(default=None, gt=0)
    bed_height_mm: Optional[float] = Field(default=None, gt=0)
    max_power_w: Optional[float] = Field(default=None, gt=0)
    max_speed_mm_s: Optional[float] = Field(default=None, gt=0)
    acceleration_mm_s2: Optional[float] = Field(default=None, gt=0)
    home_position: Optional[str] = None
    hourly_cost: Optional[float] = Field(default=None, ge=0)
    is_shared: bool = False

    @field_validator("ip_address")
    @classmethod
    def _check_address(cls, value: Optional[str]) -> Optional[str]:
        return _machine_address(value)


class MachineUpdate(_Payload):
    """Partial edit of operator-owned machine fields.

    Connection status and firmware are learned from the device and cannot be
    set here.
    """

    name: Optional[str] = Field(default=None, min_length=1)
    machine_type: Optional[MachineType] = None
    connection_type: Optional[ConnectionType] = None
    ip_address: Optional[str] = None
    port: Optional[int] = Field(default=None, gt=0, lt=65536)
    bed_width_mm: Optional[float] = Field(default=None, gt=0)
    bed_height_mm: Optional[float] = Field(default=None, gt=0)
    max_power_w: Optional[float] = Field(default=None, gt=0)
    max_speed_mm_s: Optional[float] = Field(default=None, gt=0)
    acceleration_mm_s2: Optional[float] = Field(default=None, gt=0)
    home_position: Optional[str] = None
    hourly_cost: Optional[float] = Field(default=None, ge=0)
    is_shared: Optional[bool] = None

    @field_validator("ip_address")
    @classmethod
    def _check_address(cls, value: Optional[str]) -> Optional[str]:
        return _machine_address(value)


class _ArtifactRefs(_Payload):
    cut_svg_url: Optional[str] = None
    engrave_svg_url: Optional[str] = None
    score_svg_url: Optional[str] = None
    combined_svg_url: Optional[str] = None

    @model_validator(mode="after")
    def _require_program(self) -> "_ArtifactRefs":
        refs = (
            self.cut_svg_url,
            self.engrave_svg_url,
            self.score_svg_url,
            self.combined_svg_url,
        )
        if not any(refs):
            raise ValueError("At least one cut, engrave, score or combined artifact is required")
        return self


class _CutParameters(_ArtifactRefs):
    job_width_mm: Optional[float] = Field(default=None, gt=0)
    job_height_mm: Optional[float] = Field(default=None, gt=0)
    estimated_time_sec: Optional[int] = Field(default=None, ge=0)
    speed_mm_s: Optional[float] = Field(default=None, gt=0)
    power_pct: Optional[float] = Field(default=None, ge=0)


class JobRequest(_CutParameters):
    """A fully formed job handed over by an upstream collaborator."""

    machine_id: str
    user_id: str
    job_name: str = Field(min_length=1)
    product_type: Optional[str] = None
    material_label: Optional[str] = None
    thickness_mm: Optional[float] = Field(default=None, gt=0)
    passes: Optional[int] = Field(default=None, ge=1)
    kerf_mm: Optional[float] = Field(default=None, ge=0)
    source_artifact_id: Optional[str] = None
    production_batch_id: Optional[str] = None
    priority: JobPriority = JobPriority.NORMAL


class ProgressUpdate(_Payload):
    """Telemetry reported while a job runs on the machine."""

    progress_pct: Optional[float] = Field(default=None, ge=0, le=100)
    current_operation: Optional[str] = None
    status: Optional[JobStatus] = None


class ProductJobRequest(_CutParameters):
    """A generated product that should become a laser job."""

    user_id: str
    machine_id: str
    product_type: str = Field(min_length=1)
    material_label: str = Field(min_length=1)
    thickness_mm: Optional[float] = Field(default=None, gt=0)
    passes: Optional[int] = Field(default=None, ge=1)
    kerf_mm: Optional[float] = Field(default=None, ge=0)
    source_artifact_id: Optional[str] = None
    priority: JobPriority = JobPriority.NORMAL


class BatchProduct(_CutParameters):
    product_type: str = Field(min_length=1)
    material_label: str = Field(min_length=1)


class BatchJobRequest(_Payload):
    """Several products cut on one machine as part of a production batch."""

    user_id: str
    machine_id: str
    production_batch_id: Optional[str] = None
    products: List[BatchProduct] = Field(min_length=1)


__all__ = [
    "MachineSpec",
    "MachineUpdate",
    "JobRequest",
    "ProgressUpdate",
    "ProductJobRequest",
    "BatchProduct",
    "BatchJobRequest",
]

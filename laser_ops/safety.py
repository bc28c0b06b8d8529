"""Pre-flight checks of a proposed job against a machine's physical envelope."""

from __future__ import annotations

from typing import List, Optional

from .domain import Machine


def _fmt(value: float) -> str:
    return f"{value:g}"


def validate_job_envelope(
    machine: Machine,
    *,
    width_mm: Optional[float] = None,
    height_mm: Optional[float] = None,
    power_pct: Optional[float] = None,
    speed_mm_s: Optional[float] = None,
) -> List[str]:
    """Return human-readable warnings, in rule order, for limits the job exceeds.

    Each rule only fires when both the job value and the machine limit are
    known. The checks are advisory: an empty list means the job may be sent,
    anything else is stored on the job and blocks dispatch, never creation.

    The power rule compares the requested percentage with 100 and only uses
    ``max_power_w`` to decide whether the machine declares a power rating at
    all. Percent and watts are different units; the comparison is kept as-is
    until the intended semantics are settled.
    """

    warnings: List[str] = []
    if width_mm and machine.bed_width_mm and width_mm > machine.bed_width_mm:
        warnings.append(
            f"Job width {_fmt(width_mm)}mm exceeds bed width {_fmt(machine.bed_width_mm)}mm"
        )
    if height_mm and machine.bed_height_mm and height_mm > machine.bed_height_mm:
        warnings.append(
            f"Job height {_fmt(height_mm)}mm exceeds bed height {_fmt(machine.bed_height_mm)}mm"
        )
    if power_pct and machine.max_power_w and power_pct > 100:
        warnings.append(f"Power {_fmt(power_pct)}% exceeds maximum")
    if speed_mm_s and machine.max_speed_mm_s and speed_mm_s > machine.max_speed_mm_s:
        warnings.append(
            f"Speed {_fmt(speed_mm_s)}mm/s exceeds machine max {_fmt(machine.max_speed_mm_s)}mm/s"
        )
    return warnings


__all__ = ["validate_job_envelope"]

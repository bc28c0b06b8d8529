from __future__ import annotations

from laser_ops.domain import Machine
from laser_ops.safety import validate_job_envelope


def _machine(**overrides) -> Machine:
    fields = dict(
        id="m-1",
        name="Bench laser",
        bed_width_mm=300.0,
        bed_height_mm=200.0,
        max_power_w=40.0,
        max_speed_mm_s=400.0,
    )
    fields.update(overrides)
    return Machine(**fields)


def test_job_inside_envelope_has_no_warnings():
    assert (
        validate_job_envelope(
            _machine(), width_mm=300, height_mm=200, power_pct=100, speed_mm_s=400
        )
        == []
    )


def test_every_rule_fires_in_order():
    warnings = validate_job_envelope(
        _machine(), width_mm=320, height_mm=250, power_pct=120, speed_mm_s=450.5
    )

    assert warnings == [
        "Job width 320mm exceeds bed width 300mm",
        "Job height 250mm exceeds bed height 200mm",
        "Power 120% exceeds maximum",
        "Speed 450.5mm/s exceeds machine max 400mm/s",
    ]


def test_height_only_overrun():
    assert validate_job_envelope(_machine(), width_mm=100, height_mm=201) == [
        "Job height 201mm exceeds bed height 200mm"
    ]


def test_power_rule_compares_percentage_not_watts():
    # 60% of any tube is fine even though 60 > max_power_w.
    assert validate_job_envelope(_machine(max_power_w=40.0), power_pct=60) == []
    assert validate_job_envelope(_machine(max_power_w=40.0), power_pct=101) == [
        "Power 101% exceeds maximum"
    ]


def test_rules_skip_unknown_limits():
    machine = _machine(
        bed_width_mm=None, bed_height_mm=None, max_power_w=None, max_speed_mm_s=None
    )

    assert (
        validate_job_envelope(
            machine, width_mm=5000, height_mm=5000, power_pct=500, speed_mm_s=5000
        )
        == []
    )


def test_missing_job_values_are_not_checked():
    assert validate_job_envelope(_machine()) == []

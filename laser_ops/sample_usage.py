"""Demonstration script for the laser job dispatcher."""

from __future__ import annotations

from pprint import pprint

import httpx

from . import (
    ConnectionType,
    DispatchFailedError,
    JobRequest,
    JobStatus,
    LaserJobService,
    MachineSpec,
    MachineType,
    ProgressUpdate,
    build_default_router,
)
from .settings import configure_logging


def main() -> None:
    configure_logging("INFO")
    with httpx.Client() as client:
        service = LaserJobService(build_default_router(client))

        # Machines
        xtool = service.registry.register(
            MachineSpec(
                name="xTool P2",
                user_id="demo",
                machine_type=MachineType.CO2,
                connection_type=ConnectionType.MANUAL,
                bed_width_mm=600,
                bed_height_mm=308,
                max_power_w=55,
                max_speed_mm_s=600,
                hourly_cost=25,
            )
        )
        ruida = service.registry.register(
            MachineSpec(
                name="Thunder Nova 35",
                user_id="demo",
                machine_type=MachineType.CO2,
                connection_type=ConnectionType.RUIDA,
                ip_address="192.168.1.50",
                bed_width_mm=900,
                bed_height_mm=600,
                max_power_w=80,
                max_speed_mm_s=1000,
            )
        )

        # Job on a manually operated machine runs through to completion
        coaster = service.create_job(
            JobRequest(
                machine_id=xtool.id,
                user_id="demo",
                job_name="Walnut coasters x6",
                material_label="Walnut plywood",
                thickness_mm=3,
                cut_svg_url="https://files.example.com/coasters-cut.svg",
                job_width_mm=300,
                job_height_mm=200,
                speed_mm_s=15,
                power_pct=70,
                passes=1,
                estimated_time_sec=900,
            )
        )
        service.send_job(coaster.id)
        service.update_progress(coaster.id, ProgressUpdate(status=JobStatus.CUTTING, progress_pct=40))
        service.update_progress(coaster.id, ProgressUpdate(status=JobStatus.COMPLETED, progress_pct=100))

        # Oversized job keeps its warnings and cannot be sent
        sign = service.create_job(
            JobRequest(
                machine_id=xtool.id,
                user_id="demo",
                job_name="Shop sign",
                combined_svg_url="https://files.example.com/sign.svg",
                job_width_mm=800,
                job_height_mm=300,
            )
        )
        print("Safety warnings:", sign.safety_warnings)

        # Ruida cannot be driven directly, so retries run out
        ornament = service.create_job(
            JobRequest(
                machine_id=ruida.id,
                user_id="demo",
                job_name="Ornaments",
                cut_svg_url="https://files.example.com/ornaments.svg",
            )
        )
        while not service.get_job(ornament.id).is_terminal:
            try:
                service.send_job(ornament.id)
            except DispatchFailedError as exc:
                print(f"Attempt {exc.job.retry_count}: {exc.reason}")

        pprint(service.job_stats("demo"))
        for job in service.list_jobs(user_id="demo"):
            print(f"{job.job_name:<24} {job.status.value:<10} {job.total_cost:>7.2f}")


if __name__ == "__main__":
    main()

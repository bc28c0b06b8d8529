"""FastAPI-based HTTP interface for the laser job dispatcher."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates

from ..domain import JobStatus
from ..errors import (
    DispatchFailedError,
    InvalidJobStateError,
    JobRejectedError,
    SafetyValidationRequiredError,
)
from ..pipeline import ProductionPipeline
from ..registry import MachineRegistry
from ..repository import RecordNotFoundError
from ..router import build_default_router
from ..schemas import (
    BatchJobRequest,
    JobRequest,
    MachineSpec,
    MachineUpdate,
    ProductJobRequest,
    ProgressUpdate,
)
from ..services import LaserJobService
from ..settings import LaserOpsSettings, configure_logging
from ..storage import LaserOpsDatabase

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _dump(record: Any) -> Any:
    return jsonable_encoder(asdict(record))


def create_app(
    settings: Optional[LaserOpsSettings] = None,
    *,
    http_client: Optional[httpx.Client] = None,
) -> FastAPI:
    settings = settings or LaserOpsSettings()
    configure_logging(settings.log_level)
    database = LaserOpsDatabase(settings.database_path)
    client = http_client or httpx.Client()
    service = LaserJobService(
        build_default_router(client, settings),
        registry=MachineRegistry(database.machines),
        job_repo=database.jobs,
        settings=settings,
    )

    app = FastAPI(title="Laser Ops")
    app.state.service = service
    app.state.pipeline = ProductionPipeline(service)
    app.state.database = database

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - framework hook
        if http_client is None:
            client.close()
        database.close()

    @app.exception_handler(RecordNotFoundError)
    async def not_found(request: Request, exc: RecordNotFoundError):
        return JSONResponse({"detail": str(exc)}, status_code=404)

    @app.exception_handler(JobRejectedError)
    async def rejected(request: Request, exc: JobRejectedError):
        body: dict = {"detail": str(exc)}
        status_code = 409
        if isinstance(exc, SafetyValidationRequiredError):
            body["warnings"] = exc.warnings
            status_code = 422
        elif isinstance(exc, InvalidJobStateError):
            body["status"] = exc.status.value
        return JSONResponse(body, status_code=status_code)

    @app.exception_handler(DispatchFailedError)
    async def dispatch_failed(request: Request, exc: DispatchFailedError):
        return JSONResponse(
            {"detail": exc.reason, "job": _dump(exc.job)}, status_code=502
        )

    @app.get("/")
    async def dashboard(request: Request, user_id: Optional[str] = None):
        service: LaserJobService = request.app.state.service
        machines = service.registry.list(user_id)
        jobs = service.list_jobs(user_id=user_id)
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "machines": machines,
                "jobs": jobs,
                "stats": service.job_stats(user_id) if user_id else None,
            },
        )

    # ------------------------------------------------------------------
    # Machines
    # ------------------------------------------------------------------
    @app.get("/machines")
    async def list_machines(request: Request, user_id: Optional[str] = None):
        service: LaserJobService = request.app.state.service
        return [_dump(machine) for machine in service.registry.list(user_id)]

    @app.post("/machines", status_code=201)
    async def register_machine(request: Request, spec: MachineSpec):
        service: LaserJobService = request.app.state.service
        return _dump(service.registry.register(spec))

    @app.get("/machines/{machine_id}")
    async def get_machine(request: Request, machine_id: str):
        service: LaserJobService = request.app.state.service
        return _dump(service.registry.get(machine_id))

    @app.patch("/machines/{machine_id}")
    async def update_machine(request: Request, machine_id: str, changes: MachineUpdate):
        service: LaserJobService = request.app.state.service
        return _dump(service.registry.update(machine_id, changes))

    @app.delete("/machines/{machine_id}", status_code=204)
    async def delete_machine(request: Request, machine_id: str):
        service: LaserJobService = request.app.state.service
        service.registry.remove(machine_id)
        return Response(status_code=204)

    @app.post("/machines/{machine_id}/ping")
    def ping_machine(request: Request, machine_id: str):
        service: LaserJobService = request.app.state.service
        return _dump(service.ping_machine(machine_id))

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------
    @app.get("/jobs")
    async def list_jobs(
        request: Request,
        user_id: Optional[str] = None,
        machine_id: Optional[str] = None,
        status: Optional[JobStatus] = None,
        limit: int = 50,
    ):
        service: LaserJobService = request.app.state.service
        jobs = service.list_jobs(
            user_id=user_id, machine_id=machine_id, status=status, limit=limit
        )
        return [_dump(job) for job in jobs]

    @app.post("/jobs", status_code=201)
    def create_job(request: Request, payload: JobRequest):
        service: LaserJobService = request.app.state.service
        job = service.create_job(payload)
        return {"job": _dump(job), "safety_warnings": job.safety_warnings}

    @app.get("/jobs/stats")
    async def job_stats(request: Request, user_id: str):
        service: LaserJobService = request.app.state.service
        return asdict(service.job_stats(user_id))

    @app.get("/jobs/{job_id}")
    async def get_job(request: Request, job_id: str):
        service: LaserJobService = request.app.state.service
        return _dump(service.get_job(job_id))

    @app.post("/jobs/{job_id}/send")
    def send_job(request: Request, job_id: str):
        service: LaserJobService = request.app.state.service
        return _dump(service.send_job(job_id))

    @app.post("/jobs/{job_id}/progress")
    def update_progress(request: Request, job_id: str, update: ProgressUpdate):
        service: LaserJobService = request.app.state.service
        return _dump(service.update_progress(job_id, update))

    @app.post("/jobs/{job_id}/cancel")
    def cancel_job(request: Request, job_id: str):
        service: LaserJobService = request.app.state.service
        return _dump(service.cancel_job(job_id))

    # ------------------------------------------------------------------
    # Product pipeline
    # ------------------------------------------------------------------
    @app.post("/pipeline/product-job", status_code=201)
    def product_job(request: Request, payload: ProductJobRequest):
        pipeline: ProductionPipeline = request.app.state.pipeline
        return _dump(pipeline.create_job_from_product(payload))

    @app.post("/pipeline/batch-jobs", status_code=201)
    def batch_jobs(request: Request, payload: BatchJobRequest):
        pipeline: ProductionPipeline = request.app.state.pipeline
        return _dump(pipeline.create_batch_jobs(payload))

    return app


__all__ = ["create_app"]

"""Turns generated products into laser jobs, one at a time or as a batch."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .domain import ConnectionStatus, LaserJob
from .errors import LaserOpsError, MachineUnavailableError
from .repository import RepositoryError
from .schemas import BatchJobRequest, JobRequest, ProductJobRequest
from .services import LaserJobService

logger = logging.getLogger(__name__)

NEXT_ACTION_SEND = "Call POST /jobs/{id}/send to start cutting"
NEXT_ACTION_REVIEW = "Review safety warnings before sending"


def format_product_type(product_type: str) -> str:
    """``"layered-wall-art"`` -> ``"Layered Wall Art"``."""

    return " ".join(word[:1].upper() + word[1:] for word in product_type.split("-"))


@dataclass(slots=True)
class ProductJobResult:
    job: LaserJob
    safety_warnings: List[str]
    ready_to_send: bool
    next_action: str


@dataclass(slots=True)
class BatchJobEntry:
    product_type: str
    status: str
    job: Optional[LaserJob] = None
    error: Optional[str] = None


@dataclass(slots=True)
class BatchJobReport:
    total_requested: int
    created: int
    failed: int
    entries: List[BatchJobEntry] = field(default_factory=list)


class ProductionPipeline:
    """Creates jobs on behalf of the product studio."""

    def __init__(self, service: LaserJobService) -> None:
        self.service = service

    def create_job_from_product(self, request: ProductJobRequest) -> ProductJobResult:
        machine = self.service.registry.get(request.machine_id)
        if machine.connection_status is ConnectionStatus.ERROR:
            raise MachineUnavailableError(machine.id)

        job_name = f"{format_product_type(request.product_type)} — {request.material_label}"
        job = self.service.create_job(JobRequest(job_name=job_name, **request.model_dump()))
        return ProductJobResult(
            job=job,
            safety_warnings=list(job.safety_warnings),
            ready_to_send=job.safety_validated,
            next_action=NEXT_ACTION_SEND if job.safety_validated else NEXT_ACTION_REVIEW,
        )

    def create_batch_jobs(self, request: BatchJobRequest) -> BatchJobReport:
        entries: List[BatchJobEntry] = []
        for product in request.products:
            job_name = (
                f"Batch: {format_product_type(product.product_type)} — {product.material_label}"
            )
            try:
                job = self.service.create_job(
                    JobRequest(
                        machine_id=request.machine_id,
                        user_id=request.user_id,
                        job_name=job_name,
                        production_batch_id=request.production_batch_id,
                        **product.model_dump(),
                    )
                )
            except (LaserOpsError, RepositoryError) as exc:
                logger.warning("Batch job for %s not created: %s", product.product_type, exc)
                entries.append(
                    BatchJobEntry(product_type=product.product_type, status="failed", error=str(exc))
                )
                continue
            entries.append(BatchJobEntry(product_type=product.product_type, status="created", job=job))

        created = sum(1 for entry in entries if entry.status == "created")
        return BatchJobReport(
            total_requested=len(request.products),
            created=created,
            failed=len(entries) - created,
            entries=entries,
        )


__all__ = [
    "ProductionPipeline",
    "ProductJobResult",
    "BatchJobEntry",
    "BatchJobReport",
    "format_product_type",
]

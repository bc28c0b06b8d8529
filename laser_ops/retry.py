"""Bookkeeping rule applied after a failed dispatch attempt."""

from __future__ import annotations

from dataclasses import dataclass

from .domain import JobStatus

SEND_FAILED = "SEND_FAILED"


@dataclass(frozen=True, slots=True)
class RetryDecision:
    """Next retry counter and status for a job whose send just failed."""

    retry_count: int
    status: JobStatus

    @property
    def terminal(self) -> bool:
        return self.status is JobStatus.FAILED


def next_after_failure(retry_count: int, max_retries: int) -> RetryDecision:
    """Consume one retry; the job fails for good once the ceiling is reached.

    Every adapter failure counts the same, including adapters that can never
    succeed for their connection family.
    """

    next_count = retry_count + 1
    if next_count >= max_retries:
        return RetryDecision(retry_count=next_count, status=JobStatus.FAILED)
    return RetryDecision(retry_count=next_count, status=JobStatus.DRAFT)


__all__ = ["SEND_FAILED", "RetryDecision", "next_after_failure"]

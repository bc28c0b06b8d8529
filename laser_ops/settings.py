"""Runtime configuration for the dispatch service."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LaserOpsSettings(BaseSettings):
    """Tunables for persistence, device timeouts, retries and costing."""

    model_config = SettingsConfigDict(
        env_prefix="LASEROPS_",
        case_sensitive=False,
        extra="ignore",
    )

    database_path: str = Field(default="laser_ops.sqlite3")
    send_timeout_seconds: float = Field(default=10.0, gt=0)
    probe_timeout_seconds: float = Field(default=5.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    default_hourly_rate: float = Field(default=30.0, ge=0)
    material_rate_per_m2: float = Field(default=15.0, ge=0)
    bridge_default_port: int = Field(default=8080, gt=0, lt=65536)
    grbl_default_port: int = Field(default=80, gt=0, lt=65536)
    log_level: str = Field(default="INFO")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["LaserOpsSettings", "configure_logging"]

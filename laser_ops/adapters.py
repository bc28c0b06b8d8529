"""Protocol adapters that hand a job to one family of laser controllers.

Adapters report outcomes as values: a device that is unreachable, slow or
refuses the job yields a failed :class:`DispatchResult`, never an exception.
Two families (Ruida, Glowforge) cannot be driven from here at all and fail
every attempt with an explanation of what the operator should use instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .domain import ConnectionStatus, ConnectionType, LaserJob, Machine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome of a single send attempt."""

    ok: bool
    reason: str = ""

    @classmethod
    def success(cls) -> "DispatchResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "DispatchResult":
        return cls(ok=False, reason=reason)


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of a lightweight status query."""

    status: ConnectionStatus
    firmware_version: Optional[str] = None


class ProtocolAdapter:
    """Contract shared by every connection family."""

    connection_type: ConnectionType
    label: str = "Machine"

    def send(self, machine: Machine, job: LaserJob) -> DispatchResult:
        raise NotImplementedError

    def probe(self, machine: Machine) -> ProbeResult:
        return ProbeResult(status=ConnectionStatus.OFFLINE)


class HttpProtocolAdapter(ProtocolAdapter):
    """Base for controllers reachable over plain HTTP on the local network."""

    default_port = 80

    def __init__(
        self,
        client: httpx.Client,
        *,
        send_timeout: float = 10.0,
        probe_timeout: float = 5.0,
        default_port: Optional[int] = None,
    ) -> None:
        self._client = client
        self._send_timeout = send_timeout
        self._probe_timeout = probe_timeout
        if default_port is not None:
            self.default_port = default_port

    def _url(self, machine: Machine, path: str) -> str:
        host = machine.ip_address or ""
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"http://{host}:{machine.port or self.default_port}{path}"

    def _request(
        self, method: str, machine: Machine, path: str, *, timeout: float, **kwargs: Any
    ) -> httpx.Response:
        return self._client.request(
            method, self._url(machine, path), timeout=timeout, **kwargs
        )

    def send(self, machine: Machine, job: LaserJob) -> DispatchResult:
        if not machine.ip_address:
            return DispatchResult.failure(f"{self.label}: No IP address configured")
        try:
            response = self._deliver(machine, job)
        except httpx.TimeoutException:
            logger.warning(
                "%s send to machine %s timed out after %ss",
                self.label,
                machine.id,
                self._send_timeout,
            )
            return DispatchResult.failure(
                f"{self.label} did not respond within {self._send_timeout:g}s"
            )
        except httpx.HTTPError as exc:
            logger.warning("%s send to machine %s failed: %s", self.label, machine.id, exc)
            return DispatchResult.failure(f"{self.label} unreachable: {exc}")
        except httpx.InvalidURL as exc:
            logger.warning("%s machine %s has an unusable address: %s", self.label, machine.id, exc)
            return DispatchResult.failure(
                f"{self.label}: Invalid address {machine.ip_address!r} ({exc})"
            )
        if not response.is_success:
            return DispatchResult.failure(f"{self.label} returned {response.status_code}")
        return DispatchResult.success()

    def probe(self, machine: Machine) -> ProbeResult:
        if not machine.ip_address:
            return ProbeResult(status=ConnectionStatus.OFFLINE)
        try:
            response = self._status_query(machine)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("%s probe of machine %s failed: %s", self.label, machine.id, exc)
            return ProbeResult(status=ConnectionStatus.OFFLINE)
        if response.is_server_error:
            # reachable but faulted
            return ProbeResult(status=ConnectionStatus.ERROR)
        if not response.is_success:
            return ProbeResult(status=ConnectionStatus.OFFLINE)
        return ProbeResult(
            status=ConnectionStatus.ONLINE,
            firmware_version=self._firmware_from(response),
        )

    def _deliver(self, machine: Machine, job: LaserJob) -> httpx.Response:
        raise NotImplementedError

    def _status_query(self, machine: Machine) -> httpx.Response:
        raise NotImplementedError

    def _firmware_from(self, response: httpx.Response) -> Optional[str]:
        return None


class LightBurnBridgeAdapter(HttpProtocolAdapter):
    """Posts the job to a LightBurn bridge process running next to the laser."""

    connection_type = ConnectionType.LIGHTBURN_BRIDGE
    label = "LightBurn Bridge"
    default_port = 8080

    def _deliver(self, machine: Machine, job: LaserJob) -> httpx.Response:
        payload: Dict[str, Any] = {
            "name": job.job_name,
            "svgData": job.program_url,
            "speed": job.speed_mm_s,
            "power": job.power_pct,
            "passes": job.passes,
        }
        return self._request(
            "POST", machine, "/api/job", timeout=self._send_timeout, json=payload
        )

    def _status_query(self, machine: Machine) -> httpx.Response:
        return self._request("GET", machine, "/api/status", timeout=self._probe_timeout)

    def _firmware_from(self, response: httpx.Response) -> Optional[str]:
        try:
            data = response.json()
        except ValueError:
            return None
        if isinstance(data, dict) and data.get("version"):
            return str(data["version"])
        return None


def build_grbl_program(job: LaserJob) -> str:
    """Control program header uploaded to GRBL controllers.

    Toolpath generation from the SVG artifacts happens elsewhere; the upload
    carries the job parameters and a well-formed program frame.
    """

    lines = [
        f"; Job: {job.job_name}",
        "; Generated by laser_ops",
    ]
    if job.program_url:
        lines.append(f"; Source: {job.program_url}")
    if job.speed_mm_s:
        lines.append(f"; Speed: {job.speed_mm_s:g} mm/s")
    if job.power_pct:
        lines.append(f"; Power: {job.power_pct:g}%")
    if job.passes:
        lines.append(f"; Passes: {job.passes}")
    lines.extend(["G90", "G21", "; SVG-to-GCode conversion pending", "M2"])
    return "\n".join(lines) + "\n"


class GrblAdapter(HttpProtocolAdapter):
    """Uploads a G-code program to a network-attached GRBL controller."""

    connection_type = ConnectionType.GRBL
    label = "GRBL"
    default_port = 80

    def _deliver(self, machine: Machine, job: LaserJob) -> httpx.Response:
        return self._request(
            "POST",
            machine,
            "/upload",
            timeout=self._send_timeout,
            content=build_grbl_program(job).encode("utf-8"),
            headers={"Content-Type": "text/plain"},
        )

    def _status_query(self, machine: Machine) -> httpx.Response:
        return self._request(
            "GET", machine, "/command", timeout=self._probe_timeout, params={"cmd": "$I"}
        )

    def _firmware_from(self, response: httpx.Response) -> Optional[str]:
        text = response.text.strip()
        return text or None


class RuidaAdapter(ProtocolAdapter):
    """Ruida controllers speak a binary UDP protocol that needs a companion app."""

    connection_type = ConnectionType.RUIDA
    label = "Ruida"

    def send(self, machine: Machine, job: LaserJob) -> DispatchResult:
        if not machine.ip_address:
            return DispatchResult.failure("Ruida: No IP address configured")
        return DispatchResult.failure(
            "Ruida direct send requires the desktop bridge app (coming soon). "
            "Use LightBurn Bridge or export files."
        )


class GlowforgeCloudAdapter(ProtocolAdapter):
    """Glowforge machines only accept jobs through the vendor cloud."""

    connection_type = ConnectionType.GLOWFORGE_CLOUD
    label = "Glowforge"

    def send(self, machine: Machine, job: LaserJob) -> DispatchResult:
        return DispatchResult.failure(
            "Glowforge cloud print requires Glowforge API access. "
            "Use manual file upload to app.glowforge.com."
        )


class ManualAdapter(ProtocolAdapter):
    """An operator loads the job by hand; nothing to transmit."""

    connection_type = ConnectionType.MANUAL
    label = "Manual"

    def send(self, machine: Machine, job: LaserJob) -> DispatchResult:
        return DispatchResult.success()

    def probe(self, machine: Machine) -> ProbeResult:
        return ProbeResult(
            status=ConnectionStatus.ONLINE, firmware_version=machine.firmware_version
        )


__all__ = [
    "DispatchResult",
    "ProbeResult",
    "ProtocolAdapter",
    "HttpProtocolAdapter",
    "LightBurnBridgeAdapter",
    "GrblAdapter",
    "RuidaAdapter",
    "GlowforgeCloudAdapter",
    "ManualAdapter",
    "build_grbl_program",
]

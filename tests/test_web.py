from __future__ import annotations

import threading
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from laser_ops.settings import LaserOpsSettings
from laser_ops.web.app import create_app

ARTIFACT = "https://files.example.com/cut.svg"


@pytest.fixture
def bridge_calls():
    return []


@pytest.fixture
def client(tmp_path, bridge_calls):
    def handler(request: httpx.Request) -> httpx.Response:
        bridge_calls.append(request)
        if request.url.path == "/api/status":
            return httpx.Response(200, json={"version": "3.1"})
        return httpx.Response(500)

    settings = LaserOpsSettings(database_path=str(tmp_path / "web.sqlite3"), log_level="WARNING")
    with httpx.Client(transport=httpx.MockTransport(handler)) as device_client:
        app = create_app(settings, http_client=device_client)
        yield TestClient(app)
        app.state.database.close()


def _machine(client, **fields):
    body = {"name": "Shop laser", "user_id": "u-1", "bed_width_mm": 300, "bed_height_mm": 200}
    body.update(fields)
    response = client.post("/machines", json=body)
    assert response.status_code == 201
    return response.json()


def _job(client, machine_id, **fields):
    body = {"machine_id": machine_id, "user_id": "u-1", "job_name": "Coasters", "cut_svg_url": ARTIFACT}
    body.update(fields)
    response = client.post("/jobs", json=body)
    assert response.status_code == 201
    return response.json()


def test_machine_crud(client):
    machine = _machine(client)
    assert machine["connection_status"] == "OFFLINE"

    response = client.patch(f"/machines/{machine['id']}", json={"bed_width_mm": 600})
    assert response.json()["bed_width_mm"] == 600

    assert [m["id"] for m in client.get("/machines", params={"user_id": "u-1"}).json()] == [machine["id"]]
    assert client.delete(f"/machines/{machine['id']}").status_code == 204
    assert client.get(f"/machines/{machine['id']}").status_code == 404


def test_machine_update_rejects_status_fields(client):
    machine = _machine(client)

    response = client.patch(f"/machines/{machine['id']}", json={"connection_status": "ONLINE"})

    assert response.status_code == 422


def test_ping_bridge_machine(client):
    machine = _machine(client, connection_type="LIGHTBURN_BRIDGE", ip_address="10.0.0.4")

    response = client.post(f"/machines/{machine['id']}/ping")

    assert response.status_code == 200
    assert response.json()["connection_status"] == "ONLINE"
    assert response.json()["firmware_version"] == "3.1"


def test_create_job_returns_warnings(client):
    machine = _machine(client)

    created = _job(client, machine["id"], job_width_mm=320, job_height_mm=150)

    assert created["job"]["safety_validated"] is False
    assert created["safety_warnings"] == ["Job width 320mm exceeds bed width 300mm"]

    response = client.post(f"/jobs/{created['job']['id']}/send")
    assert response.status_code == 422
    assert response.json()["warnings"] == created["safety_warnings"]


def test_manual_job_full_lifecycle(client):
    machine = _machine(client)
    job = _job(client, machine["id"])["job"]

    sent = client.post(f"/jobs/{job['id']}/send")
    assert sent.status_code == 200
    assert sent.json()["status"] == "QUEUED"
    assert sent.json()["current_operation"] == "waiting-for-machine"

    cutting = client.post(f"/jobs/{job['id']}/progress", json={"status": "CUTTING", "progress_pct": 20})
    assert cutting.json()["status"] == "CUTTING"
    assert client.get(f"/machines/{machine['id']}").json()["connection_status"] == "BUSY"

    done = client.post(f"/jobs/{job['id']}/progress", json={"status": "COMPLETED", "progress_pct": 100})
    assert done.json()["status"] == "COMPLETED"
    assert done.json()["actual_time_sec"] is not None
    assert client.get(f"/machines/{machine['id']}").json()["connection_status"] == "ONLINE"

    resend = client.post(f"/jobs/{job['id']}/send")
    assert resend.status_code == 409
    assert resend.json()["status"] == "COMPLETED"

    cancel = client.post(f"/jobs/{job['id']}/cancel")
    assert cancel.status_code == 409
    assert cancel.json()["detail"] == "Job already finished"

    stats = client.get("/jobs/stats", params={"user_id": "u-1"}).json()
    assert stats == {"total": 1, "completed": 1, "failed": 0, "queued": 0, "in_progress": 0}


def test_dispatch_failure_returns_updated_job(client, bridge_calls):
    machine = _machine(client, connection_type="LIGHTBURN_BRIDGE", ip_address="10.0.0.4")
    job = _job(client, machine["id"])["job"]

    response = client.post(f"/jobs/{job['id']}/send")

    assert response.status_code == 502
    body = response.json()
    assert body["detail"] == "LightBurn Bridge returned 500"
    assert body["job"]["status"] == "DRAFT"
    assert body["job"]["retry_count"] == 1
    assert body["job"]["error_code"] == "SEND_FAILED"
    assert bridge_calls[-1].url.path == "/api/job"


def test_unknown_job_is_404(client):
    assert client.post("/jobs/nope/send").status_code == 404
    assert client.post("/jobs/nope/cancel").status_code == 404


def test_list_jobs_filters_by_status(client):
    machine = _machine(client)
    first = _job(client, machine["id"])["job"]
    _job(client, machine["id"], job_name="Second")
    client.post(f"/jobs/{first['id']}/cancel")

    cancelled = client.get("/jobs", params={"status": "CANCELLED"}).json()

    assert [job["id"] for job in cancelled] == [first["id"]]


def test_pipeline_endpoints(client):
    machine = _machine(client)

    single = client.post(
        "/pipeline/product-job",
        json={
            "user_id": "u-1",
            "machine_id": machine["id"],
            "product_type": "wall-clock",
            "material_label": "Acrylic",
            "cut_svg_url": ARTIFACT,
        },
    )
    assert single.status_code == 201
    assert single.json()["job"]["job_name"] == "Wall Clock — Acrylic"
    assert single.json()["ready_to_send"] is True

    batch = client.post(
        "/pipeline/batch-jobs",
        json={
            "user_id": "u-1",
            "machine_id": machine["id"],
            "products": [
                {"product_type": "coaster", "material_label": "Cork", "cut_svg_url": ARTIFACT},
                {"product_type": "tag", "material_label": "Leather", "cut_svg_url": ARTIFACT},
            ],
        },
    )
    assert batch.status_code == 201
    assert batch.json()["created"] == 2


def test_dashboard_renders(client):
    machine = _machine(client, name="Dashboard laser")
    _job(client, machine["id"], job_name="Dashboard job")

    response = client.get("/", params={"user_id": "u-1"})

    assert response.status_code == 200
    assert "Dashboard laser" in response.text
    assert "Dashboard job" in response.text


def test_cancel_during_slow_send_keeps_server_responsive(tmp_path):
    entered = threading.Event()
    release = threading.Event()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/job":
            entered.set()
            release.wait(timeout=5)
        return httpx.Response(200)

    settings = LaserOpsSettings(database_path=str(tmp_path / "slow.sqlite3"), log_level="WARNING")
    responses = {}

    def call(name, method, url):
        responses[name] = client.request(method, url)

    with httpx.Client(transport=httpx.MockTransport(handler)) as device_client:
        app = create_app(settings, http_client=device_client)
        with TestClient(app) as client:
            machine = _machine(client, connection_type="LIGHTBURN_BRIDGE", ip_address="10.0.0.4")
            job = _job(client, machine["id"])["job"]

            sender = threading.Thread(target=call, args=("send", "POST", f"/jobs/{job['id']}/send"))
            canceller = threading.Thread(target=call, args=("cancel", "POST", f"/jobs/{job['id']}/cancel"))
            lister = threading.Thread(target=call, args=("machines", "GET", "/machines"))
            sender.start()
            try:
                assert entered.wait(timeout=5)
                canceller.start()
                time.sleep(0.2)
                lister.start()
                lister.join(timeout=2)
                assert "machines" in responses
                assert "cancel" not in responses
            finally:
                release.set()
                sender.join(timeout=5)
                canceller.join(timeout=5)

    assert responses["machines"].status_code == 200
    assert responses["send"].json()["status"] == "QUEUED"
    assert responses["cancel"].json()["status"] == "CANCELLED"

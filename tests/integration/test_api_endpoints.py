"""Pruebas de integración ligeras para la API de registros."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from gestimmo.errors import RemoteSyncError
from gestimmo.main import app, get_cloud_session_service, get_data_service, get_remote_mirror
from gestimmo.models import User, UserStatus
from gestimmo.services.data_service import DataService
from gestimmo.services.local_store import LocalDocumentStore
from gestimmo.services.storage_backends import InMemoryStorage

PROJECT = "proj-api"
HEADERS = {"X-User-Id": "user-api"}


@pytest.fixture()
def data_service() -> DataService:
    return DataService(LocalDocumentStore(InMemoryStorage(), seed_defaults=False))


@pytest.fixture()
def cloud() -> MagicMock:
    service = MagicMock()
    service.session.drive_file_id = "file-1"
    return service


@pytest.fixture()
def mirror() -> MagicMock:
    remote = MagicMock()
    remote.flush.return_value = True
    return remote


@pytest.fixture()
def client(data_service, cloud, mirror) -> TestClient:
    overrides = {
        get_data_service: lambda: data_service,
        get_cloud_session_service: lambda: cloud,
        get_remote_mirror: lambda: mirror,
    }
    originals = dict(app.dependency_overrides)
    app.dependency_overrides.update(overrides)

    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        test_client.close()
        app.dependency_overrides.clear()
        app.dependency_overrides.update(originals)


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_record_crud_flow(client: TestClient) -> None:
    created = client.post(
        f"/projects/{PROJECT}/properties",
        json={"name": "Via Roma 1", "address": "Roma", "surface": 70},
        headers=HEADERS,
    )
    assert created.status_code == 201
    record = created.json()
    assert record["projectId"] == PROJECT
    assert record["history"][0]["userId"] == "user-api"

    record["name"] = "Via Roma 2"
    updated = client.put(f"/projects/{PROJECT}/properties/{record['id']}", json=record, headers=HEADERS)
    assert updated.status_code == 200
    assert updated.json()["history"][-1]["description"] == "Modifiche: nome modificato."

    listed = client.get(f"/projects/{PROJECT}/properties")
    assert [item["name"] for item in listed.json()] == ["Via Roma 2"]

    deleted = client.delete(f"/projects/{PROJECT}/properties/{record['id']}", headers=HEADERS)
    assert deleted.status_code == 200
    assert client.get(f"/projects/{PROJECT}/properties").json() == []


def test_record_in_other_project_is_not_found(client: TestClient) -> None:
    record = client.post(f"/projects/{PROJECT}/tenants", json={"name": "Anna"}, headers=HEADERS).json()

    response = client.delete(f"/projects/altro/tenants/{record['id']}", headers=HEADERS)

    assert response.status_code == 404


def test_missing_record_returns_404(client: TestClient) -> None:
    response = client.put(f"/projects/{PROJECT}/tenants/tenant-missing", json={"name": "X"}, headers=HEADERS)

    assert response.status_code == 404


def test_unknown_collection_returns_404(client: TestClient) -> None:
    assert client.get(f"/projects/{PROJECT}/unicorni").status_code == 404


def test_acting_user_header_is_required(client: TestClient) -> None:
    response = client.post(f"/projects/{PROJECT}/tenants", json={"name": "Anna"})

    assert response.status_code == 422


def test_toggle_deadline(client: TestClient) -> None:
    deadline = client.post(
        f"/projects/{PROJECT}/deadlines",
        json={"title": "IMU", "dueDate": "2025-06-16", "propertyId": "prop-1"},
        headers=HEADERS,
    ).json()

    response = client.post(f"/projects/{PROJECT}/deadlines/{deadline['id']}/toggle", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["isCompleted"] is True


def test_document_with_expiry_creates_deadline(client: TestClient) -> None:
    client.post(
        f"/projects/{PROJECT}/documents",
        json={"name": "APE", "propertyId": "prop-1", "expiryDate": "2025-01-31"},
        headers=HEADERS,
    )

    deadlines = client.get(f"/projects/{PROJECT}/deadlines").json()

    assert [item["dueDate"] for item in deadlines] == ["2025-01-31"]


def test_user_endpoints_and_last_active_guard(client: TestClient, data_service: DataService) -> None:
    created = client.post("/users", json={"name": "Lucia", "email": "lucia@example.com"})
    assert created.status_code == 201
    assert created.json()["status"] == UserStatus.PENDING.value

    approved = client.post(f"/users/{created.json()['id']}/approve")
    assert approved.json()["status"] == UserStatus.ACTIVE.value

    refused = client.delete(f"/users/{created.json()['id']}")
    assert refused.status_code == 409
    assert len(client.get("/users").json()) == 1


def test_project_endpoints(client: TestClient) -> None:
    project = client.post(
        "/projects",
        json={"name": "Portafoglio", "ownerId": "u1", "members": [{"userId": "u1", "role": "Proprietario"}]},
    ).json()
    client.post(f"/projects/{project['id']}/tenants", json={"name": "Anna"}, headers=HEADERS)

    assert [p["id"] for p in client.get("/projects", params={"user_id": "u1"}).json()] == [project["id"]]
    assert client.get("/projects", params={"user_id": "u2"}).json() == []

    assert client.delete(f"/projects/{project['id']}").status_code == 200
    assert client.get(f"/projects/{project['id']}/tenants").json() == []


def test_sync_session_endpoints(client: TestClient, cloud: MagicMock, mirror: MagicMock) -> None:
    cloud.start_session.return_value = User(id="user-1", name="Lucia", email="lucia@example.com", status=UserStatus.ACTIVE)

    started = client.post("/sync/session")
    assert started.status_code == 200
    assert started.json()["drive_file_id"] == "file-1"
    assert started.json()["user"]["id"] == "user-1"

    assert client.post("/sync/flush").json() == {"success": True, "flushed": True}

    assert client.delete("/sync/session").status_code == 200
    cloud.end_session.assert_called_once()


def test_sync_session_remote_failure_returns_502(client: TestClient, cloud: MagicMock) -> None:
    cloud.start_session.side_effect = RemoteSyncError("sin red")

    response = client.post("/sync/session")

    assert response.status_code == 502


def test_lifespan_releases_every_service_on_shutdown(monkeypatch, tmp_path) -> None:
    import gestimmo.main as main_module
    from gestimmo.config import Settings

    settings = Settings(
        _env_file=None,
        storage_backend="memory",
        drive_sync_enabled=False,
        log_file_path=str(tmp_path / "app.log"),
    )
    monkeypatch.setattr(main_module, "get_settings", lambda: settings)
    monkeypatch.setattr(main_module, "configure_logging", lambda _settings: None)

    with TestClient(app) as lifespan_client:
        assert isinstance(main_module.data_service, DataService)
        assert main_module.drive_service is not None
        assert main_module.remote_mirror is not None
        assert main_module.cloud_session_service is not None
        assert lifespan_client.get("/health").json()["remote_bound"] is False

    assert main_module.data_service is None
    assert main_module.drive_service is None
    assert main_module.remote_mirror is None
    assert main_module.cloud_session_service is None

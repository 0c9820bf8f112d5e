"""Pruebas de la réplica remota con debounce."""

from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from gestimmo.errors import RemoteSyncError
from gestimmo.services.registry import DATA_VERSION_KEY
from gestimmo.services.remote_mirror import RemoteMirror, SyncSession


@pytest.fixture
def drive():
    return MagicMock()


@pytest.fixture
def mirror(store, drive, timer_factory):
    remote = RemoteMirror(store, drive, debounce_seconds=2.0, timer_factory=timer_factory)
    remote.attach()
    return remote


def test_unbound_mirror_arms_no_timer(mirror, store, drive, timer_factory):
    store.write("tenants", [{"id": "tenant-1"}])
    mirror.schedule_save()

    assert timer_factory.timers == []
    drive.overwrite_json_file.assert_not_called()


def test_burst_of_writes_results_in_single_overwrite_with_last_state(mirror, store, drive, timer_factory):
    mirror.bind_session("file-123")

    for index in range(5):
        store.write("tenants", [{"id": f"tenant-{index}"}])

    assert len(timer_factory.timers) == 5
    assert len(timer_factory.active) == 1
    assert all(timer.interval == 2.0 for timer in timer_factory.timers)
    drive.overwrite_json_file.assert_not_called()

    for timer in timer_factory.timers:
        timer.fire()

    drive.overwrite_json_file.assert_called_once()
    file_id, payload = drive.overwrite_json_file.call_args[0]
    assert file_id == "file-123"
    assert payload["tenants"] == [{"id": "tenant-4"}]
    assert DATA_VERSION_KEY in payload
    assert mirror.has_pending_save is False


def test_unbinding_cancels_pending_timer(mirror, store, drive, timer_factory):
    mirror.bind_session("file-123")
    store.write("tenants", [])

    mirror.bind_session(None)

    assert timer_factory.active == []
    assert mirror.is_bound is False
    timer_factory.timers[0].fire()
    drive.overwrite_json_file.assert_not_called()


def test_save_failure_is_logged_and_dropped(mirror, store, drive, timer_factory):
    drive.overwrite_json_file.side_effect = RemoteSyncError("token caducado", status_code=401)
    mirror.bind_session("file-123")
    store.write("tenants", [{"id": "tenant-1"}])

    with capture_logs() as logs:
        timer_factory.active[0].fire()

    assert any(event.get("error_code") == "remote_save_failed" for event in logs)
    # Sin reintentos: no se arma un nuevo temporizador
    assert timer_factory.active == []
    assert store.read("tenants") == [{"id": "tenant-1"}]


def test_flush_saves_pending_state_immediately(mirror, store, drive, timer_factory):
    mirror.bind_session("file-123")
    store.write("payments", [{"id": "pay-1"}])

    assert mirror.flush() is True

    drive.overwrite_json_file.assert_called_once()
    assert timer_factory.timers[0].cancelled is True
    assert mirror.flush() is False
    drive.overwrite_json_file.assert_called_once()


def test_replaced_timer_firing_late_keeps_newer_save_pending(mirror, store, drive, timer_factory):
    mirror.bind_session("file-123")
    store.write("tenants", [{"id": "tenant-1"}])
    store.write("tenants", [{"id": "tenant-2"}])
    first, second = timer_factory.timers

    # threading.Timer.cancel() no detiene un callback que ya se está ejecutando
    first.function()

    assert mirror.has_pending_save is True
    assert timer_factory.active == [second]

    assert mirror.flush() is True
    assert drive.overwrite_json_file.call_count == 2
    assert drive.overwrite_json_file.call_args[0][1]["tenants"] == [{"id": "tenant-2"}]
    assert second.cancelled is True


def test_cancel_drops_pending_save(mirror, store, drive, timer_factory):
    mirror.bind_session("file-123")
    store.write("payments", [])

    mirror.cancel()

    assert mirror.has_pending_save is False
    assert timer_factory.timers[0].cancelled is True


def test_detach_stops_scheduling(mirror, store, timer_factory):
    mirror.bind_session("file-123")
    mirror.detach()

    store.write("payments", [])

    assert timer_factory.timers == []


def test_find_or_create_reads_existing_file(mirror, drive):
    drive.find_file_by_name.return_value = "file-existing"
    drive.read_json_file.return_value = {"users": [{"id": "u"}], DATA_VERSION_KEY: 2}

    file_id, data = mirror.find_or_create_data_file()

    assert file_id == "file-existing"
    assert data["users"] == [{"id": "u"}]
    drive.find_file_by_name.assert_called_once_with("gest-immo-pro-data.json")
    drive.create_json_file.assert_not_called()


def test_find_or_create_provisions_with_local_snapshot(mirror, store, drive):
    store.write("properties", [{"id": "prop-local"}])
    drive.find_file_by_name.return_value = None
    drive.create_json_file.return_value = "file-new"

    file_id, data = mirror.find_or_create_data_file()

    assert file_id == "file-new"
    name, content = drive.create_json_file.call_args[0]
    assert name == "gest-immo-pro-data.json"
    assert content["properties"] == [{"id": "prop-local"}]
    assert data == content


def test_sessions_do_not_share_state(store, drive, timer_factory):
    first = RemoteMirror(store, drive, timer_factory=timer_factory)
    second = RemoteMirror(store, drive, session=SyncSession(drive_file_id="file-b"), timer_factory=timer_factory)

    first.bind_session("file-a")

    assert first.session.drive_file_id == "file-a"
    assert second.session.drive_file_id == "file-b"

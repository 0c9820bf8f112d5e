"""Pruebas del ejecutor de migraciones."""

from structlog.testing import capture_logs

from gestimmo.services.migrations import MigrationRunner
from gestimmo.services.registry import CURRENT_DATA_VERSION


def test_backfills_missing_creation_date(store):
    store.write(
        "properties",
        [
            {"id": "prop-1", "name": "Senza data"},
            {"id": "prop-2", "name": "Con data", "creationDate": "2023-01-01T00:00:00+00:00"},
        ],
    )

    report = MigrationRunner(store).migrate()

    properties = store.read("properties")
    assert properties[0]["creationDate"]
    assert properties[1]["creationDate"] == "2023-01-01T00:00:00+00:00"
    assert report.success
    assert report.applied == [2]
    assert store.get_version() == CURRENT_DATA_VERSION


def test_second_run_is_a_no_op(store):
    store.write("properties", [{"id": "prop-1"}])
    MigrationRunner(store).migrate()
    first_state = store.bulk_snapshot()

    report = MigrationRunner(store).migrate()

    assert store.bulk_snapshot() == first_state
    assert report.applied == []
    assert report.from_version == report.to_version == CURRENT_DATA_VERSION


def test_already_current_store_is_left_untouched(store):
    store.set_version(CURRENT_DATA_VERSION)
    store.write("properties", [{"id": "prop-1"}])

    MigrationRunner(store).migrate()

    assert "creationDate" not in store.read("properties")[0]


def test_migrations_run_in_increasing_order(store):
    calls = []
    migrations = {
        4: lambda s: calls.append(4),
        2: lambda s: calls.append(2),
        3: lambda s: calls.append(3),
    }

    report = MigrationRunner(store, migrations=migrations, current_version=4).migrate()

    assert calls == [2, 3, 4]
    assert report.applied == [2, 3, 4]
    assert store.get_version() == 4


def test_failed_step_does_not_advance_version_past_last_success(store):
    calls = []

    def explode(_store):
        raise RuntimeError("dato inesperado")

    migrations = {
        2: lambda s: calls.append(2),
        3: explode,
        4: lambda s: calls.append(4),
    }

    with capture_logs() as logs:
        report = MigrationRunner(store, migrations=migrations, current_version=4).migrate()

    assert calls == [2]
    assert not report.success
    assert report.failed_version == 3
    assert "dato inesperado" in report.error
    assert store.get_version() == 2
    assert any(event.get("error_code") == "migration_failed" for event in logs)

    # El siguiente arranque reintenta desde el paso fallido
    migrations[3] = lambda s: calls.append(3)
    retry = MigrationRunner(store, migrations=migrations, current_version=4).migrate()

    assert retry.success
    assert calls == [2, 3, 4]
    assert store.get_version() == 4

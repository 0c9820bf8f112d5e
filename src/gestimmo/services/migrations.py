"""Migraciones incrementales del documento local.

Cada migración lleva los datos de ``version - 1`` a ``version``; son aditivas y sólo
avanzan. Si un paso falla, el marcador queda en la última versión aplicada con éxito y la
migración se reintenta en el siguiente arranque.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import structlog

from gestimmo.errors import MigrationError
from gestimmo.logging_utils import bind_log_context, ensure_log_context
from gestimmo.services.local_store import LocalDocumentStore
from gestimmo.services.registry import CURRENT_DATA_VERSION

MigrationStep = Callable[[LocalDocumentStore], None]


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def backfill_property_creation_date(store: LocalDocumentStore) -> None:
    """v1 → v2: los inmuebles sin ``creationDate`` reciben la fecha actual."""

    properties = store.read("properties")
    changed = False
    for item in properties:
        if isinstance(item, dict) and not item.get("creationDate"):
            item["creationDate"] = _utc_now_iso()
            changed = True
    if changed:
        store.write("properties", properties)


DEFAULT_MIGRATIONS: Dict[int, MigrationStep] = {
    2: backfill_property_creation_date,
}


@dataclass
class MigrationReport:
    from_version: int
    to_version: int
    applied: List[int] = field(default_factory=list)
    failed_version: Optional[int] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.failed_version is None


class MigrationRunner:
    """Aplica en orden creciente las migraciones pendientes."""

    def __init__(
        self,
        store: LocalDocumentStore,
        *,
        migrations: Optional[Dict[int, MigrationStep]] = None,
        current_version: int = CURRENT_DATA_VERSION,
    ):
        self.store = store
        self.migrations = dict(DEFAULT_MIGRATIONS if migrations is None else migrations)
        self.current_version = current_version
        self.logger = structlog.get_logger("data_store").bind(servicio="migrations")

    def migrate(self) -> MigrationReport:
        stored_version = self.store.get_version()
        report = MigrationReport(from_version=stored_version, to_version=stored_version)

        if stored_version >= self.current_version:
            return report

        context = ensure_log_context(etapa="migracion")
        log = bind_log_context(self.logger, context)
        log.info(
            "🔄 Migrando datos",
            from_version=stored_version,
            to_version=self.current_version,
        )

        for version in range(stored_version + 1, self.current_version + 1):
            step = self.migrations.get(version)
            if step is not None:
                try:
                    step(self.store)
                except Exception as exc:  # noqa: BLE001
                    failure = MigrationError(version, str(exc))
                    report.failed_version = version
                    report.error = str(failure)
                    log.error(
                        "❌ Error durante la migración, se detiene en la última versión válida",
                        failed_version=version,
                        error=str(failure),
                        error_code="migration_failed",
                    )
                    break
                report.applied.append(version)

            # Cada versión superada se persiste para que un fallo posterior no la repita
            self.store.set_version(version)
            report.to_version = version

        if report.success:
            log.info("✅ Migración de datos completada", to_version=report.to_version, applied=report.applied)
        return report

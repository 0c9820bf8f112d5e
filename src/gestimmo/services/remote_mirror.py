"""Réplica remota con debounce del documento completo hacia un blob de Google Drive."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import structlog

from gestimmo.logging_utils import bind_log_context, ensure_log_context
from gestimmo.models import AppData, AuthenticatedIdentity
from gestimmo.services.drive_service import DriveService
from gestimmo.services.local_store import LocalDocumentStore

TimerFactory = Callable[[float, Callable[[], None]], Any]


@dataclass
class SyncSession:
    """Estado de la sesión remota activa."""

    drive_file_id: Optional[str] = None
    identity: Optional[AuthenticatedIdentity] = None

    @property
    def is_bound(self) -> bool:
        return bool(self.drive_file_id)


class RemoteMirror:
    """Replica el almacén local en Drive, agrupando ráfagas de escrituras.

    Estados: inactivo -> pendiente (temporizador armado) -> guardando -> inactivo. Cada
    ``schedule_save`` con sesión vinculada re-arma el temporizador; sólo el último disparo
    llega a la red. Los fallos del guardado se registran y se descartan, sin reintentos.
    """

    def __init__(
        self,
        store: LocalDocumentStore,
        drive_service: DriveService,
        *,
        data_file_name: str = "gest-immo-pro-data.json",
        debounce_seconds: float = 2.0,
        session: Optional[SyncSession] = None,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self.store = store
        self.drive_service = drive_service
        self.data_file_name = data_file_name
        self.debounce_seconds = debounce_seconds
        self.session = session or SyncSession()
        self._timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()
        self.logger = structlog.get_logger("drive_sync").bind(servicio="remote_mirror")

    @property
    def is_bound(self) -> bool:
        return self.session.is_bound

    @property
    def has_pending_save(self) -> bool:
        return self._timer is not None

    def attach(self) -> None:
        """Suscribirse a las escrituras del almacén local."""
        self.store.add_write_listener(self.schedule_save)

    def detach(self) -> None:
        self.store.remove_write_listener(self.schedule_save)

    def bind_session(self, drive_file_id: Optional[str]) -> None:
        """Vincular (o desvincular con ``None``) el archivo remoto activo."""

        self.session.drive_file_id = drive_file_id or None
        if not self.session.drive_file_id:
            self.cancel()
            self.logger.info("🔌 Réplica remota desactivada", etapa="sesion")
            return
        self.logger.info("🔗 Réplica remota vinculada", etapa="sesion", drive_file_id=drive_file_id)

    def schedule_save(self, key: Optional[str] = None) -> None:
        """(Re)armar el temporizador de guardado; sin sesión no hace nada."""

        if not self.is_bound:
            return

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self.debounce_seconds, lambda: self._fire(timer))
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
            timer.start()

        self.logger.debug("guardado_programado", etapa="debounce", collection=key)

    def cancel(self) -> None:
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def flush(self) -> bool:
        """Ejecutar de inmediato un guardado pendiente. Devuelve si había uno."""

        with self._lock:
            timer, self._timer = self._timer, None
        if timer is None:
            return False
        timer.cancel()
        self._save_now()
        return True

    def _fire(self, timer: Any) -> None:
        with self._lock:
            # Un temporizador reemplazado mientras disparaba no borra al vigente
            if self._timer is timer:
                self._timer = None
        self._save_now()

    def _save_now(self) -> None:
        file_id = self.session.drive_file_id
        if not file_id:
            return

        context = ensure_log_context(etapa="guardado_remoto", drive_file_id=file_id)
        log = bind_log_context(self.logger, context)

        try:
            snapshot = self.store.bulk_snapshot()
            self.drive_service.overwrite_json_file(file_id, snapshot)
        except Exception as exc:  # noqa: BLE001
            log.error(
                "❌ Error guardando documento en Drive, se descarta",
                error=str(exc),
                error_code="remote_save_failed",
            )
            return

        log.info(
            "✅ Documento replicado en Drive",
            records_processed=_count_records(snapshot),
        )

    def pull_on_session_start(self, drive_file_id: str) -> AppData:
        """Leer el documento remoto completo para cargarlo en el almacén local."""

        data = self.drive_service.read_json_file(drive_file_id)
        self.logger.info(
            "📥 Documento remoto descargado",
            etapa="descarga",
            drive_file_id=drive_file_id,
            records_processed=_count_records(data),
        )
        return data

    def find_or_create_data_file(self) -> Tuple[str, AppData]:
        """Localizar el blob de datos o crearlo con el documento local actual."""

        file_id = self.drive_service.find_file_by_name(self.data_file_name)
        if file_id:
            return file_id, self.pull_on_session_start(file_id)

        snapshot = self.store.bulk_snapshot()
        file_id = self.drive_service.create_json_file(self.data_file_name, snapshot)
        self.logger.info(
            "🆕 Documento remoto inicializado con datos locales",
            etapa="aprovisionamiento",
            drive_file_id=file_id,
            records_processed=_count_records(snapshot),
        )
        return file_id, snapshot


def _count_records(data: AppData) -> int:
    return sum(len(value) for value in data.values() if isinstance(value, list))

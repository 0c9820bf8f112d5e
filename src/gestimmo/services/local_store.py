"""Almacén local de documentos: colecciones JSON sobre un backend clave-valor."""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Dict, List, Optional

import structlog

from gestimmo.logging_utils import bind_log_context, ensure_log_context
from gestimmo.models import AppData
from gestimmo.services.registry import (
    COLLECTIONS,
    DATA_VERSION_KEY,
    get_collection_spec,
)
from gestimmo.services.storage_backends import KeyValueStorage

WriteListener = Callable[[str], None]


class LocalDocumentStore:
    """Persistencia síncrona de las colecciones y del marcador de versión.

    Cada ``write`` notifica a los listeners registrados (p. ej. el espejo remoto). Los
    listeners se invocan después de persistir y sus errores se registran sin propagarse:
    la escritura local nunca falla por causa del sincronizador.
    """

    def __init__(self, storage: KeyValueStorage, *, seed_defaults: bool = True):
        self.storage = storage
        self.seed_defaults = seed_defaults
        self.logger = structlog.get_logger("data_store").bind(servicio="data_store")
        self._listeners: List[WriteListener] = []
        self._lock = threading.RLock()

    def add_write_listener(self, listener: WriteListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_write_listener(self, listener: WriteListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _seed_for(self, key: str) -> List[Dict[str, Any]]:
        spec = get_collection_spec(key)
        if spec is None or not self.seed_defaults:
            return []
        return spec.default_seed()

    def read(self, key: str) -> List[Dict[str, Any]]:
        """Devuelve la colección ``key``; semilla si no existe, semilla si está corrupta."""

        with self._lock:
            raw = self.storage.get_item(key)

            if raw is None:
                seed = self._seed_for(key)
                self.storage.set_item(key, json.dumps(seed, ensure_ascii=False))
                self.logger.debug("coleccion_inicializada", etapa="lectura", collection=key, total=len(seed))
                return seed

            try:
                data = json.loads(raw)
            except json.JSONDecodeError as exc:
                data = exc

            if not isinstance(data, list):
                bind_log_context(
                    self.logger,
                    ensure_log_context(etapa="lectura", collection=key, error_code="storage_corrupt"),
                ).error(
                    "❌ Contenido almacenado ilegible, se usa valor inicial",
                    error=str(data) if isinstance(data, Exception) else f"tipo inesperado {type(data).__name__}",
                )
                return self._seed_for(key)

            return data

    def write(self, key: str, data: List[Dict[str, Any]]) -> None:
        payload = json.dumps(data, ensure_ascii=False)
        with self._lock:
            self.storage.set_item(key, payload)
        self._notify(key)

    def _notify(self, key: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception as exc:  # noqa: BLE001
                self.logger.error(
                    "❌ Error en listener de escritura",
                    etapa="escritura",
                    collection=key,
                    error=str(exc),
                    error_code="write_listener_failed",
                )

    def get_version(self) -> int:
        """Versión del esquema almacenada (ausente equivale a 1)."""

        raw = self.storage.get_item(DATA_VERSION_KEY)
        if raw is None:
            return 1
        try:
            return int(json.loads(raw))
        except (TypeError, ValueError):
            self.logger.warning(
                "⚠️ Marcador de versión ilegible, se asume versión 1",
                etapa="version",
                raw_value=raw,
                error_code="version_corrupt",
            )
            return 1

    def set_version(self, version: int) -> None:
        with self._lock:
            self.storage.set_item(DATA_VERSION_KEY, str(version))

    def bulk_load(self, data: AppData) -> None:
        """Sobrescribe todas las colecciones presentes en ``data`` (documento remoto)."""

        payloads: Dict[str, str] = {}
        for spec in COLLECTIONS:
            value = data.get(spec.key)
            if value is None:
                continue
            if not isinstance(value, list):
                raise ValueError(f"La colección '{spec.key}' debe ser una lista")
            payloads[spec.key] = json.dumps(value, ensure_ascii=False)

        version: Optional[int] = None
        raw_version = data.get(DATA_VERSION_KEY)
        if raw_version is not None:
            try:
                version = int(raw_version)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"dataVersion inválido: {raw_version!r}") from exc

        with self._lock:
            for key, payload in payloads.items():
                self.storage.set_item(key, payload)
            if version is not None:
                self.storage.set_item(DATA_VERSION_KEY, str(version))

        self.logger.info(
            "📥 Documento cargado en almacén local",
            etapa="carga_masiva",
            records_processed=sum(len(data[key]) for key in payloads),
            collections=sorted(payloads),
        )

    def bulk_snapshot(self) -> AppData:
        """Instantánea coherente de todas las colecciones más la versión."""

        with self._lock:
            snapshot: AppData = {spec.key: self.read(spec.key) for spec in COLLECTIONS}
            snapshot[DATA_VERSION_KEY] = self.get_version()
        return snapshot

"""Backends clave-valor síncronos para el almacén local."""

from __future__ import annotations

import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger("data_store")

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_\-]+$")


class KeyValueStorage(ABC):
    """Interfaz de almacenamiento clave-valor (valores ya serializados)."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError


class InMemoryStorage(KeyValueStorage):
    """Almacenamiento en memoria, útil para pruebas y sesiones efímeras."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value


class JsonFileStorage(KeyValueStorage):
    """Un archivo ``<clave>.json`` por clave dentro de un directorio."""

    SUFFIX = ".json"

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Clave de almacenamiento inválida: {key!r}")
        return self.directory / f"{key}{self.SUFFIX}"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        with self._lock:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)
        with self._lock:
            # Escritura atómica: archivo temporal en el mismo directorio + rename
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise


def create_storage(settings: Any) -> KeyValueStorage:
    """Crear backend de almacenamiento basado en configuración."""

    backend = getattr(settings, "storage_backend", "memory") or "memory"
    backend = backend.lower()

    if backend == "file":
        storage_path = getattr(settings, "storage_path", None)
        if not storage_path:
            raise ValueError("storage_path es requerido cuando storage_backend=file")
        return JsonFileStorage(Path(storage_path))

    if backend != "memory":
        logger.warning(
            "storage_backend_desconocido",
            etapa="inicializacion_almacen",
            backend=backend,
            accion="se usa memoria",
        )
    return InMemoryStorage()

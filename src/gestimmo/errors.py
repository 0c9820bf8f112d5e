"""Excepciones de la capa de datos."""

from __future__ import annotations

from typing import Optional


class DataServiceError(Exception):
    """Error base de la capa de datos."""


class RecordNotFoundError(DataServiceError):
    """El registro solicitado no existe en la colección."""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Registro '{record_id}' no encontrado en '{collection}'")


class MigrationError(DataServiceError):
    """Fallo de un paso de migración."""

    def __init__(self, version: int, message: str):
        self.version = version
        super().__init__(f"Migración a versión {version} fallida: {message}")


class RemoteSyncError(DataServiceError):
    """Fallo al comunicarse con el almacenamiento remoto."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

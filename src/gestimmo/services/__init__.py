"""Servicios disponibles en la capa de datos de Gestimmo."""

from .storage_backends import (  # noqa: F401
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorage,
    create_storage,
)
from .local_store import LocalDocumentStore  # noqa: F401
from .migrations import MigrationReport, MigrationRunner  # noqa: F401
from .deadline_sync import DocumentDeadlineSynchronizer  # noqa: F401
from .data_service import DataService  # noqa: F401
from .drive_service import DriveService  # noqa: F401
from .remote_mirror import RemoteMirror, SyncSession  # noqa: F401
from .cloud_session_service import CloudSessionService  # noqa: F401

__all__ = [
    "KeyValueStorage",
    "InMemoryStorage",
    "JsonFileStorage",
    "create_storage",
    "LocalDocumentStore",
    "MigrationRunner",
    "MigrationReport",
    "DocumentDeadlineSynchronizer",
    "DataService",
    "DriveService",
    "RemoteMirror",
    "SyncSession",
    "CloudSessionService",
]

"""Base genérica de los servicios CRUD por colección."""

from __future__ import annotations

import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Generic, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar, Union

import structlog
from pydantic import ValidationError

from gestimmo.errors import RecordNotFoundError
from gestimmo.logging_utils import bind_log_context, record_log_context
from gestimmo.models import HistoryLog, ProjectScopedRecord, StoredModel
from gestimmo.services.local_store import LocalDocumentStore

_ID_ALPHABET = string.ascii_lowercase + string.digits

ModelT = TypeVar("ModelT", bound=StoredModel)
ScopedT = TypeVar("ScopedT", bound=ProjectScopedRecord)


def generate_id(prefix: str) -> str:
    """Identificador ``<prefijo>-<epoch_ms>-<9 caracteres aleatorios>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_log_entry(user_id: str, description: str) -> HistoryLog:
    return HistoryLog(
        id=generate_id("log"),
        timestamp=utc_now_iso(),
        user_id=user_id,
        description=description,
    )


class CollectionService(Generic[ModelT]):
    """Acceso tipado a una colección del almacén local."""

    collection: str = ""
    model: Type[ModelT]
    id_prefix: str = "rec"

    def __init__(self, store: LocalDocumentStore):
        self.store = store
        self.logger = structlog.get_logger("data_store").bind(
            servicio="record_service",
            collection=self.collection,
        )

    def _coerce(self, data: Union[ModelT, Mapping[str, Any]]) -> ModelT:
        if isinstance(data, self.model):
            return data
        if isinstance(data, StoredModel):
            return self.model.model_validate(data.to_storage())
        return self.model.model_validate(dict(data))

    def _split_valid(self, *, log_invalid: bool) -> Tuple[List[ModelT], List[Any]]:
        valid: List[ModelT] = []
        invalid: List[Any] = []
        for index, item in enumerate(self.store.read(self.collection)):
            try:
                if not isinstance(item, dict):
                    raise TypeError(f"se esperaba un objeto, llegó {type(item).__name__}")
                valid.append(self.model.model_validate(item))
            except (ValidationError, TypeError) as exc:
                invalid.append(item)
                if log_invalid:
                    self.logger.error(
                        "❌ Registro almacenado inválido, se omite",
                        etapa="lectura",
                        record_index=index,
                        error=str(exc),
                        error_code="storage_corrupt",
                    )
        return valid, invalid

    def _load_all(self) -> List[ModelT]:
        return self._split_valid(log_invalid=True)[0]

    def _save_all(self, records: Sequence[ModelT]) -> None:
        # Los registros que no validan se conservan tal cual, al final de la colección
        _, invalid = self._split_valid(log_invalid=False)
        self.store.write(self.collection, [record.to_storage() for record in records] + invalid)

    def find_by_id(self, record_id: str) -> Optional[ModelT]:
        for record in self._load_all():
            if record.id == record_id:
                return record
        return None

    def require(self, record_id: str) -> ModelT:
        record = self.find_by_id(record_id)
        if record is None:
            raise self._not_found(record_id)
        return record

    def _not_found(self, record_id: str) -> RecordNotFoundError:
        self.logger.warning(
            "⚠️ Registro inexistente",
            etapa="busqueda",
            record_id=record_id,
            error_code="record_not_found",
        )
        return RecordNotFoundError(self.collection, record_id)

    def _index_of(self, records: Sequence[ModelT], record_id: str) -> int:
        for index, record in enumerate(records):
            if record.id == record_id:
                return index
        raise self._not_found(record_id)

    def _build_new(self, data: Union[ModelT, Mapping[str, Any]], record_id: str) -> ModelT:
        payload = data.to_storage() if isinstance(data, StoredModel) else dict(data)
        payload["id"] = record_id
        return self.model.model_validate(payload)


class RecordService(CollectionService[ScopedT]):
    """CRUD con historial de auditoría para entidades de un proyecto.

    Las subclases declaran la descripción de creación, la descripción por defecto de una
    actualización y la tabla ``watched_fields`` de campos vigilados con su etiqueta
    (admite ``{record...}`` para interpolar el registro actualizado).
    """

    created_description: str = "Record creato."
    update_description: str = "Record aggiornato."
    watched_fields: Tuple[Tuple[str, str], ...] = ()

    def get_all(self, project_id: str) -> List[ScopedT]:
        return [record for record in self._load_all() if record.project_id == project_id]

    def get(self, project_id: str, record_id: str) -> Optional[ScopedT]:
        for record in self.get_all(project_id):
            if record.id == record_id:
                return record
        return None

    def add(self, data: Union[ScopedT, Mapping[str, Any]], user_id: str) -> ScopedT:
        record = self._build_new(data, generate_id(self.id_prefix))
        record = self._prepare_new(record)
        record = record.model_copy(
            update={"history": [create_log_entry(user_id, self.created_description)]}
        )

        records = self._load_all()
        records.append(record)
        self._save_all(records)

        self._log(user_id, record).info("🆕 Registro creado", etapa="alta")
        self._after_add(record, user_id)
        return record

    def update(self, data: Union[ScopedT, Mapping[str, Any]], user_id: str) -> ScopedT:
        updated = self._coerce(data)
        records = self._load_all()
        index = self._index_of(records, updated.id)
        original = records[index]

        updated = self._prepare_update(original, updated)
        description = self.describe_changes(original, updated)
        # El historial se construye sobre el almacenado: nunca se acorta
        to_save = updated.model_copy(
            update={"history": [*original.history, create_log_entry(user_id, description)]}
        )

        records[index] = to_save
        self._save_all(records)

        self._log(user_id, to_save).info("✏️ Registro actualizado", etapa="modificacion", cambio=description)
        self._after_update(original, to_save, user_id)
        return to_save

    def delete(self, record_id: str, user_id: Optional[str] = None) -> None:
        records = self._load_all()
        index = self._index_of(records, record_id)
        record = records[index]

        self._before_delete(record, user_id)
        # Relectura: ``_before_delete`` puede haber modificado otras colecciones, no ésta
        remaining = [item for item in self._load_all() if item.id != record_id]
        self._save_all(remaining)

        self._log(user_id, record).info("🗑️ Registro eliminado", etapa="baja")
        self._after_delete(record, user_id)

    def describe_changes(self, original: ScopedT, updated: ScopedT) -> str:
        changes = [
            label.format(record=updated)
            for field_name, label in self.watched_fields
            if getattr(original, field_name, None) != getattr(updated, field_name, None)
        ]
        if changes:
            return f"Modifiche: {', '.join(changes)}."
        return self.update_description.format(record=updated)

    def _log(self, user_id: Optional[str], record: ScopedT) -> structlog.stdlib.BoundLogger:
        return bind_log_context(self.logger, record_log_context(record, user_id=user_id))

    # Puntos de extensión
    def _prepare_new(self, record: ScopedT) -> ScopedT:
        return record

    def _prepare_update(self, original: ScopedT, updated: ScopedT) -> ScopedT:
        return updated

    def _after_add(self, record: ScopedT, user_id: str) -> None:
        return None

    def _after_update(self, original: ScopedT, updated: ScopedT, user_id: str) -> None:
        return None

    def _before_delete(self, record: ScopedT, user_id: Optional[str]) -> None:
        return None

    def _after_delete(self, record: ScopedT, user_id: Optional[str]) -> None:
        return None

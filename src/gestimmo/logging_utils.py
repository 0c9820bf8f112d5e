"""Contexto común de los eventos de log de la capa de datos."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import structlog

# Claves presentes en todo evento de almacén, registros y réplica
MANDATORY_FIELDS: Iterable[str] = (
    "etapa",
    "collection",
    "record_id",
    "project_id",
    "user_id",
    "drive_file_id",
    "records_processed",
    "error_code",
)


def ensure_log_context(
    base: Optional[Dict[str, Any]] = None,
    *,
    etapa: Optional[str] = None,
    **overrides: Any,
) -> Dict[str, Any]:
    """Contexto con todas las claves de ``MANDATORY_FIELDS`` (``None`` si faltan)."""

    context: Dict[str, Any] = {field: None for field in MANDATORY_FIELDS}
    if base:
        context.update(base)
    if etapa is not None:
        context["etapa"] = etapa
    context.update(overrides)
    return context


def record_log_context(
    record: Any,
    *,
    collection: Optional[str] = None,
    etapa: Optional[str] = None,
    user_id: Optional[str] = None,
    **overrides: Any,
) -> Dict[str, Any]:
    """Contexto de un registro de proyecto: toma ``id`` y ``project_id`` del propio registro.

    Los registros globales (usuarios, proyectos) no tienen ``project_id`` y lo dejan en
    ``None``; un proyecto se identifica a sí mismo por ``record_id``.
    """

    return ensure_log_context(
        etapa=etapa,
        collection=collection,
        record_id=getattr(record, "id", None),
        project_id=getattr(record, "project_id", None),
        user_id=user_id,
        **overrides,
    )


def bind_log_context(
    logger: structlog.stdlib.BoundLogger,
    context: Optional[Dict[str, Any]],
    **extra: Any,
) -> structlog.stdlib.BoundLogger:
    """Une al logger las claves con valor; las que son ``None`` no se emiten."""

    merged: Dict[str, Any] = dict(context or {})
    merged.update(extra)

    filtered = {key: value for key, value in merged.items() if value is not None}
    if not filtered:
        return logger
    return logger.bind(**filtered)

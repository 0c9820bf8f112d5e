"""Sincronización del vencimiento derivado de la fecha de caducidad de un documento."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Union

import structlog

from gestimmo.logging_utils import bind_log_context, record_log_context
from gestimmo.models import Deadline, DeadlineType, Document

if TYPE_CHECKING:
    from gestimmo.services.record_services import DeadlineService


class _Unset:
    pass


UNSET = _Unset()


class DocumentDeadlineSynchronizer:
    """Mantiene exactamente un vencimiento por documento con ``expiryDate``."""

    TITLE_PREFIX = "Scadenza documento: "

    def __init__(self, deadlines: "DeadlineService"):
        self.deadlines = deadlines
        self.logger = structlog.get_logger("data_store").bind(servicio="deadline_sync")

    def sync_deadline_for_document(
        self,
        document: Document,
        user_id: str,
        existing: Union[Deadline, None, _Unset] = UNSET,
    ) -> Optional[Deadline]:
        """Crea, actualiza o elimina el vencimiento ligado al documento.

        ``existing`` permite evitar la búsqueda: ``None`` indica que no existe ninguno
        (documentos nuevos). Devuelve el vencimiento resultante o ``None`` si no queda.
        """

        linked = self.deadlines.find_by_document(document.id) if isinstance(existing, _Unset) else existing
        log = bind_log_context(
            self.logger,
            record_log_context(document, collection="documents", etapa="sync_vencimiento", user_id=user_id),
        )

        if document.expiry_date:
            payload = {
                "project_id": document.project_id,
                "property_id": document.property_id,
                "title": f"{self.TITLE_PREFIX}{document.name}",
                "due_date": document.expiry_date,
                "type": DeadlineType.DOCUMENT,
                "document_id": document.id,
            }
            if linked is not None:
                result = self.deadlines.update(linked.model_copy(update=payload), user_id)
                accion = "actualizado"
            else:
                result = self.deadlines.add(payload, user_id)
                accion = "creado"
            log.info(
                "📅 Vencimiento de documento sincronizado",
                deadline_id=result.id,
                accion=accion,
            )
            return result

        if linked is not None:
            self.deadlines.delete(linked.id, user_id)
            log.info(
                "📅 Vencimiento de documento eliminado",
                deadline_id=linked.id,
            )
        return None

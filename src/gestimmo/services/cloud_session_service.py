"""Inicio y cierre de la sesión de Google Drive sobre el almacén local."""

from __future__ import annotations

import structlog

from gestimmo.logging_utils import bind_log_context, ensure_log_context
from gestimmo.models import User
from gestimmo.services.data_service import DataService
from gestimmo.services.drive_service import DriveService
from gestimmo.services.remote_mirror import RemoteMirror


class CloudSessionService:
    """Orquesta inicio de sesión, descarga del documento remoto y cierre de sesión."""

    def __init__(self, data_service: DataService, drive_service: DriveService, mirror: RemoteMirror):
        self.data_service = data_service
        self.drive_service = drive_service
        self.mirror = mirror
        self.logger = structlog.get_logger("drive_sync").bind(servicio="cloud_session")

    @property
    def session(self):
        return self.mirror.session

    def start_session(self) -> User:
        """Autenticar, cargar (o aprovisionar) el documento remoto y resolver el usuario local.

        El documento remoto reemplaza por completo al local. Si el correo de la identidad no
        corresponde a ningún usuario local, se crea y se aprueba uno nuevo.
        """

        identity = self.drive_service.get_user_info()
        file_id, data = self.mirror.find_or_create_data_file()

        self.data_service.load_data_from_object(data)
        self.mirror.bind_session(file_id)
        self.session.identity = identity

        report = self.data_service.migrate_data()

        user = self.data_service.find_user_by_email(identity.email)
        created = user is None
        if created:
            user = self.data_service.add_user({"name": identity.name, "email": identity.email})
            user = self.data_service.approve_user(user.id)

        context = ensure_log_context(
            etapa="inicio_sesion",
            user_id=user.id,
            drive_file_id=file_id,
        )
        bind_log_context(self.logger, context).info(
            "✅ Sesión remota iniciada",
            usuario_creado=created,
            data_version=report.to_version,
        )
        return user

    def end_session(self) -> None:
        """Guardar lo pendiente, desvincular la réplica y cerrar la sesión de Google."""

        file_id = self.session.drive_file_id
        self.mirror.flush()
        self.mirror.bind_session(None)
        self.session.identity = None
        self.drive_service.sign_out()
        self.logger.info("👋 Sesión remota finalizada", etapa="cierre_sesion", drive_file_id=file_id)

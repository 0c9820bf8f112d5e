"""Servicio para interacción con Google Drive utilizando OAuth de usuario.

Drive se usa como almacén de un único blob JSON: buscar por nombre, crear, leer y
sobrescribir. La identidad del usuario autenticado se obtiene del endpoint userinfo.
"""

import io
import json
import os
import pickle
from typing import Any, Dict, Optional

import requests
import structlog
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from gestimmo.config import Settings
from gestimmo.errors import RemoteSyncError
from gestimmo.models import AuthenticatedIdentity


JSON_MIME_TYPE = "application/json"


def _http_status(exc: HttpError) -> Optional[int]:
    resp = getattr(exc, "resp", None)
    return getattr(resp, "status", None)


class DriveService:
    """Encapsula operaciones de blob JSON contra Google Drive usando credenciales OAuth de usuario."""

    SCOPES = [
        "https://www.googleapis.com/auth/drive.file",
        "https://www.googleapis.com/auth/userinfo.profile",
        "https://www.googleapis.com/auth/userinfo.email",
        "openid",
    ]

    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    def __init__(self, settings: Settings):
        self.settings = settings
        self.logger = structlog.get_logger("drive_sync").bind(servicio="drive_service")
        self._service = None
        self._oauth_credentials: Optional[Credentials] = None

    def _ensure_service(self):
        """Inicializar el cliente de Drive una sola vez."""
        if self._service is not None:
            return

        credentials = self._obtain_credentials()

        if not credentials:
            raise RemoteSyncError(
                "No se pudieron obtener credenciales OAuth para Google Drive. "
                "Ejecuta el flujo OAuth o configura GOOGLE_DRIVE_CREDENTIALS_PATH."
            )

        self._service = build("drive", "v3", credentials=credentials)
        self._oauth_credentials = credentials
        self.logger.info("✅ Cliente de Google Drive inicializado correctamente")

    def set_oauth_credentials(self, creds: Credentials) -> None:
        """Recibir credenciales OAuth obtenidas por otro flujo."""

        if not creds:
            return

        self._oauth_credentials = creds
        self._service = None  # Forzar re-creación con las nuevas credenciales
        self.logger.info("🔐 Credenciales OAuth de Drive actualizadas")

    def _obtain_credentials(self) -> Optional[Credentials]:
        """Obtener credenciales OAuth (token en caché o flujo installed app)."""

        creds = self._oauth_credentials

        if creds and creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("⚠️ Error refrescando token de Drive", error=str(exc))
                creds = None

        if creds and creds.valid:
            return creds

        credentials_path = self.settings.google_drive_credentials_path
        token_path = self.settings.google_drive_token_path

        if token_path and os.path.exists(token_path):
            try:
                with open(token_path, "rb") as token_file:
                    creds = pickle.load(token_file)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("⚠️ No se pudo cargar token OAuth existente", error=str(exc))
                creds = None

        if creds and creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("⚠️ Error refrescando token OAuth", error=str(exc))
                creds = None

        if creds and creds.valid:
            return creds

        if not credentials_path or not os.path.exists(credentials_path):
            self.logger.error(
                "❌ No se encontró archivo de credenciales para iniciar flujo OAuth de Drive",
                credentials_path=credentials_path,
                error_code="drive_credentials_missing",
            )
            return None

        flow = InstalledAppFlow.from_client_secrets_file(
            credentials_path,
            self.SCOPES,
        )

        creds = flow.run_local_server(port=0, prompt="consent", authorization_prompt_message="")

        if token_path:
            try:
                with open(token_path, "wb") as token_file:
                    pickle.dump(creds, token_file)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("⚠️ No se pudo guardar token OAuth", error=str(exc))

        return creds

    def get_user_info(self) -> AuthenticatedIdentity:
        """Identidad del usuario autenticado (inicia el flujo OAuth si hace falta)."""

        self._ensure_service()
        oauth_service = build("oauth2", "v2", credentials=self._oauth_credentials)

        try:
            profile = oauth_service.userinfo().get().execute()
        except HttpError as exc:
            self.logger.error("❌ Error obteniendo perfil de usuario", error=str(exc), error_code="userinfo_failed")
            raise RemoteSyncError(f"Failed to fetch user info: {exc}", status_code=_http_status(exc)) from exc

        identity = AuthenticatedIdentity(
            id=str(profile.get("id") or profile.get("sub") or ""),
            name=profile.get("name", ""),
            email=profile.get("email", ""),
        )
        self.logger.info("👤 Usuario autenticado en Google", user_id=identity.id)
        return identity

    def find_file_by_name(self, name: str) -> Optional[str]:
        """Buscar un archivo no eliminado por nombre exacto y devolver su ID."""

        if not name:
            raise ValueError("El nombre del archivo es obligatorio")

        self._ensure_service()

        safe_name = name.replace("\\", "\\\\").replace("'", "\\'")
        query = f"name = '{safe_name}' and trashed = false"

        try:
            response = self._service.files().list(
                q=query,
                spaces="drive",
                fields="files(id, name)",
                pageSize=1,
            ).execute()
        except HttpError as exc:
            self.logger.error("❌ Error buscando archivo en Drive", error=str(exc), filename=name)
            raise RemoteSyncError(f"Error buscando '{name}': {exc}", status_code=_http_status(exc)) from exc

        files = response.get("files", []) if response else []
        if not files:
            self.logger.info("🔍 Archivo de datos no encontrado en Drive", filename=name)
            return None

        file_id = files[0]["id"]
        self.logger.info("🔍 Archivo de datos localizado en Drive", filename=name, drive_file_id=file_id)
        return file_id

    @staticmethod
    def _json_media(content: Dict[str, Any]) -> MediaIoBaseUpload:
        payload = json.dumps(content, ensure_ascii=False).encode("utf-8")
        return MediaIoBaseUpload(io.BytesIO(payload), mimetype=JSON_MIME_TYPE, resumable=False)

    def create_json_file(self, name: str, content: Dict[str, Any]) -> str:
        """Crear un archivo JSON nuevo y devolver su ID."""

        if not name:
            raise ValueError("El nombre del archivo es obligatorio")

        self._ensure_service()

        metadata = {"name": name, "mimeType": JSON_MIME_TYPE}

        try:
            drive_file = self._service.files().create(
                body=metadata,
                media_body=self._json_media(content),
                fields="id",
            ).execute()
        except HttpError as exc:
            self.logger.error("❌ Error creando archivo de datos en Drive", error=str(exc), filename=name)
            raise RemoteSyncError(f"Error creando '{name}': {exc}", status_code=_http_status(exc)) from exc

        file_id = drive_file["id"]
        self.logger.info("✅ Archivo de datos creado en Drive", filename=name, drive_file_id=file_id)
        return file_id

    def read_json_file(self, file_id: str) -> Dict[str, Any]:
        """Descargar un archivo y decodificarlo como JSON."""

        if not file_id:
            raise ValueError("Se requiere el ID del archivo para descargarlo")

        self._ensure_service()
        request = self._service.files().get_media(fileId=file_id)

        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, request)

        try:
            done = False
            while not done:
                _, done = downloader.next_chunk()
        except HttpError as exc:
            self.logger.error("❌ Error descargando archivo de Drive", drive_file_id=file_id, error=str(exc))
            raise RemoteSyncError(f"Error descargando '{file_id}': {exc}", status_code=_http_status(exc)) from exc

        try:
            data = json.loads(buffer.getvalue().decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            self.logger.error(
                "❌ Contenido remoto no es JSON válido",
                drive_file_id=file_id,
                error=str(exc),
                error_code="remote_payload_invalid",
            )
            raise RemoteSyncError(f"Contenido inválido en '{file_id}': {exc}") from exc

        if not isinstance(data, dict):
            raise RemoteSyncError(f"El documento remoto '{file_id}' no es un objeto JSON")

        self.logger.info(
            "✅ Archivo descargado correctamente",
            drive_file_id=file_id,
            bytes=buffer.getbuffer().nbytes,
        )
        return data

    def overwrite_json_file(self, file_id: str, content: Dict[str, Any]) -> None:
        """Reemplazar por completo el contenido de un archivo existente."""

        if not file_id:
            raise ValueError("Se requiere el ID del archivo para sobrescribirlo")

        self._ensure_service()

        try:
            self._service.files().update(
                fileId=file_id,
                body={"mimeType": JSON_MIME_TYPE},
                media_body=self._json_media(content),
                fields="id",
            ).execute()
        except HttpError as exc:
            self.logger.error("❌ Error sobrescribiendo archivo en Drive", drive_file_id=file_id, error=str(exc))
            raise RemoteSyncError(f"Error guardando '{file_id}': {exc}", status_code=_http_status(exc)) from exc

        self.logger.info("💾 Documento guardado en Drive", drive_file_id=file_id)

    def sign_out(self) -> None:
        """Revocar el token, olvidar credenciales y borrar el token en caché."""

        creds = self._oauth_credentials
        if creds is not None and getattr(creds, "token", None):
            try:
                requests.post(
                    self.REVOKE_URL,
                    params={"token": creds.token},
                    headers={"content-type": "application/x-www-form-urlencoded"},
                    timeout=10,
                )
            except requests.RequestException as exc:
                self.logger.warning("⚠️ No se pudo revocar el token OAuth", error=str(exc))

        token_path = self.settings.google_drive_token_path
        if token_path and os.path.exists(token_path):
            os.remove(token_path)

        self._oauth_credentials = None
        self._service = None
        self.logger.info("🔒 Sesión de Google cerrada")

    def close(self):
        """Liberar el cliente de Drive."""
        self._service = None
        self.logger.info("🔌 Cliente de Google Drive liberado")

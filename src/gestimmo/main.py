"""
Gestimmo Data Service
API HTTP delgada sobre los servicios de registro del almacén local
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import structlog
from fastapi import Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from gestimmo.config import configure_logging, get_settings
from gestimmo.errors import RecordNotFoundError, RemoteSyncError
from gestimmo.logging_utils import bind_log_context, ensure_log_context
from gestimmo.services.cloud_session_service import CloudSessionService
from gestimmo.services.data_service import DataService
from gestimmo.services.drive_service import DriveService
from gestimmo.services.record_service import RecordService
from gestimmo.services.remote_mirror import RemoteMirror


data_service: Optional[DataService] = None
drive_service: Optional[DriveService] = None
remote_mirror: Optional[RemoteMirror] = None
cloud_session_service: Optional[CloudSessionService] = None
logger = structlog.get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configuración del ciclo de vida de la aplicación"""
    global data_service, drive_service, remote_mirror, cloud_session_service

    settings = get_settings()
    configure_logging(settings)

    startup_logger = bind_log_context(logger, ensure_log_context(etapa="startup"))
    startup_logger.info("Iniciando Gestimmo Data Service", storage_backend=settings.storage_backend)

    data_service = DataService.from_settings(settings)
    report = data_service.migrate_data()
    if not report.success:
        # No fallar el startup: la migración se reintenta en el próximo arranque
        startup_logger.warning("Migración incompleta", failed_version=report.failed_version)

    drive_service = DriveService(settings)
    remote_mirror = RemoteMirror(
        data_service.store,
        drive_service,
        data_file_name=settings.drive_data_file_name,
        debounce_seconds=settings.drive_sync_debounce_seconds,
    )
    if settings.drive_sync_enabled:
        remote_mirror.attach()
    cloud_session_service = CloudSessionService(data_service, drive_service, remote_mirror)

    yield

    shutdown_logger = bind_log_context(logger, ensure_log_context(etapa="shutdown"))
    shutdown_logger.info("Cerrando Gestimmo Data Service")
    if remote_mirror:
        remote_mirror.flush()
        remote_mirror.detach()
    if drive_service:
        drive_service.close()

    cloud_session_service = None
    remote_mirror = None
    drive_service = None
    data_service = None


_app_settings = get_settings()

app = FastAPI(
    title="Gestimmo Data Service",
    description="Capa de datos local-first con réplica en Google Drive",
    version="1.0.0",
    debug=_app_settings.debug,
    docs_url="/docs" if _app_settings.enable_swagger else None,
    redoc_url="/redoc" if _app_settings.enable_swagger else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SessionResponse(BaseModel):
    success: bool
    drive_file_id: Optional[str]
    user: Dict[str, Any]


@app.exception_handler(RecordNotFoundError)
async def record_not_found_handler(request: Request, exc: RecordNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def get_data_service() -> DataService:
    if data_service is None:
        raise HTTPException(status_code=500, detail="Data service no inicializado")
    return data_service


def get_remote_mirror() -> RemoteMirror:
    if remote_mirror is None:
        raise HTTPException(status_code=503, detail="Réplica remota no disponible")
    return remote_mirror


def get_cloud_session_service() -> CloudSessionService:
    if cloud_session_service is None:
        raise HTTPException(status_code=503, detail="Sesión remota no disponible")
    return cloud_session_service


def _scoped_service(service: DataService, collection: str) -> RecordService:
    record_service = service.scoped_services.get(collection)
    if record_service is None:
        raise HTTPException(status_code=404, detail=f"Colección desconocida: {collection}")
    return record_service


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "gestimmo-data-service",
        "version": "1.0.0",
        "remote_bound": bool(remote_mirror and remote_mirror.is_bound),
    }


# Usuarios
@app.get("/users")
def list_users(service: DataService = Depends(get_data_service)) -> List[Dict[str, Any]]:
    return [user.to_storage() for user in service.get_users()]


@app.post("/users", status_code=201)
def create_user(
    payload: Dict[str, Any] = Body(...),
    service: DataService = Depends(get_data_service),
) -> Dict[str, Any]:
    return service.add_user(payload).to_storage()


@app.post("/users/{user_id}/approve")
def approve_user(user_id: str, service: DataService = Depends(get_data_service)) -> Dict[str, Any]:
    return service.approve_user(user_id).to_storage()


@app.delete("/users/{user_id}")
def delete_user(user_id: str, service: DataService = Depends(get_data_service)):
    deleted = service.delete_user(user_id)
    if not deleted:
        raise HTTPException(status_code=409, detail="No se puede eliminar el último usuario activo")
    return {"success": True}


# Proyectos
@app.get("/projects")
def list_projects(
    user_id: Optional[str] = None,
    service: DataService = Depends(get_data_service),
) -> List[Dict[str, Any]]:
    projects = service.get_projects_for_user(user_id) if user_id else service.get_projects()
    return [project.to_storage() for project in projects]


@app.post("/projects", status_code=201)
def create_project(
    payload: Dict[str, Any] = Body(...),
    service: DataService = Depends(get_data_service),
) -> Dict[str, Any]:
    return service.add_project(payload).to_storage()


@app.delete("/projects/{project_id}")
def delete_project(project_id: str, service: DataService = Depends(get_data_service)):
    service.delete_project(project_id)
    return {"success": True}


# Registros de proyecto
@app.post("/projects/{project_id}/deadlines/{deadline_id}/toggle")
def toggle_deadline(
    project_id: str,
    deadline_id: str,
    x_user_id: str = Header(...),
    service: DataService = Depends(get_data_service),
) -> Dict[str, Any]:
    if service.deadlines.get(project_id, deadline_id) is None:
        raise RecordNotFoundError("deadlines", deadline_id)
    return service.toggle_deadline_status(deadline_id, x_user_id).to_storage()


@app.get("/projects/{project_id}/{collection}")
def list_records(
    project_id: str,
    collection: str,
    service: DataService = Depends(get_data_service),
) -> List[Dict[str, Any]]:
    record_service = _scoped_service(service, collection)
    return [record.to_storage() for record in record_service.get_all(project_id)]


@app.post("/projects/{project_id}/{collection}", status_code=201)
def create_record(
    project_id: str,
    collection: str,
    payload: Dict[str, Any] = Body(...),
    x_user_id: str = Header(...),
    service: DataService = Depends(get_data_service),
) -> Dict[str, Any]:
    record_service = _scoped_service(service, collection)
    payload.pop("project_id", None)
    payload["projectId"] = project_id
    return record_service.add(payload, x_user_id).to_storage()


@app.put("/projects/{project_id}/{collection}/{record_id}")
def update_record(
    project_id: str,
    collection: str,
    record_id: str,
    payload: Dict[str, Any] = Body(...),
    x_user_id: str = Header(...),
    service: DataService = Depends(get_data_service),
) -> Dict[str, Any]:
    record_service = _scoped_service(service, collection)
    if record_service.get(project_id, record_id) is None:
        raise RecordNotFoundError(collection, record_id)
    payload.pop("project_id", None)
    payload.update({"id": record_id, "projectId": project_id})
    return record_service.update(payload, x_user_id).to_storage()


@app.delete("/projects/{project_id}/{collection}/{record_id}")
def delete_record(
    project_id: str,
    collection: str,
    record_id: str,
    x_user_id: str = Header(...),
    service: DataService = Depends(get_data_service),
):
    record_service = _scoped_service(service, collection)
    if record_service.get(project_id, record_id) is None:
        raise RecordNotFoundError(collection, record_id)
    record_service.delete(record_id, x_user_id)
    return {"success": True}


# Sesión remota
@app.post("/sync/session", response_model=SessionResponse)
def start_sync_session(
    cloud: CloudSessionService = Depends(get_cloud_session_service),
) -> SessionResponse:
    context = ensure_log_context(etapa="sync_session")
    endpoint_logger = bind_log_context(logger, context)

    try:
        user = cloud.start_session()
    except RemoteSyncError as exc:
        endpoint_logger.error("Error iniciando sesión remota", error=str(exc), error_code="session_start_failed")
        raise HTTPException(status_code=502, detail=f"Error iniciando sesión remota: {exc}")

    return SessionResponse(
        success=True,
        drive_file_id=cloud.session.drive_file_id,
        user=user.to_storage(),
    )


@app.delete("/sync/session")
def end_sync_session(cloud: CloudSessionService = Depends(get_cloud_session_service)):
    cloud.end_session()
    return {"success": True}


@app.post("/sync/flush")
def flush_sync(mirror: RemoteMirror = Depends(get_remote_mirror)):
    return {"success": True, "flushed": mirror.flush()}


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

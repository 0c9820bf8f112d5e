"""
Configuración de la capa de datos de Gestimmo
"""

from pathlib import Path
from typing import Optional, Any
from pydantic import field_validator
from pydantic_settings import BaseSettings
import structlog

APP_DIR = Path(__file__).resolve().parent
SRC_DIR = APP_DIR.parent
PROJECT_ROOT = SRC_DIR.parent
ENV_PATH = PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # Application Configuration
    app_env: str = "development"
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Almacenamiento local
    storage_backend: str = "file"
    storage_path: str = str(PROJECT_ROOT / "data" / "store")
    seed_default_data: bool = True

    # Google Drive (espejo remoto)
    drive_sync_enabled: bool = True
    drive_sync_debounce_seconds: float = 2.0
    drive_data_file_name: str = "gest-immo-pro-data.json"
    google_drive_credentials_path: Optional[str] = None
    google_drive_token_path: Optional[str] = None

    # Logging
    log_file_path: str = str(PROJECT_ROOT / "logs" / "application.log")
    log_backup_count: int = 30  # Equivalente a 30 días de retención cuando se rota diariamente

    # Development
    debug: bool = True
    enable_swagger: bool = True

    class Config:
        env_file = str(ENV_PATH)
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignorar campos extra del .env

    @field_validator('log_level')
    def validate_log_level(cls, v: str) -> str:
        """Validar nivel de logging"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('app_env')
    def validate_app_env(cls, v: str) -> str:
        """Validar entorno de aplicación"""
        valid_envs = ['development', 'staging', 'production']
        if v.lower() not in valid_envs:
            raise ValueError(f'App env must be one of: {valid_envs}')
        return v.lower()

    @field_validator('drive_sync_debounce_seconds')
    def validate_debounce(cls, v: float) -> float:
        if v < 0:
            raise ValueError('drive_sync_debounce_seconds must be non-negative')
        return v

    def model_post_init(self, __context: Any) -> None:  # noqa: D401
        """Normaliza rutas relativas después de cargar el .env."""
        path_fields = [
            'google_drive_credentials_path',
            'google_drive_token_path',
            'storage_path',
            'log_file_path',
        ]

        for field_name in path_fields:
            value = getattr(self, field_name, None)
            if not value:
                continue

            path = Path(value)
            if not path.is_absolute():
                path = PROJECT_ROOT / path

            object.__setattr__(self, field_name, str(path))


def get_settings() -> Settings:
    """Obtener configuración de la aplicación"""
    return Settings()


def configure_logging(settings: Settings):
    """Configurar logging estructurado con separación por servicio."""
    import logging.config

    log_path = Path(settings.log_file_path)
    log_dir = log_path.parent
    log_dir.mkdir(parents=True, exist_ok=True)

    service_log_paths = {
        "app": log_path,
        "data_store": log_dir / "data_store.log",
        "drive_sync": log_dir / "drive_sync.log",
    }

    structlog.contextvars.clear_contextvars()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", key="timestamp_utc"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter_name = "structlog_json"
    foreign_pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", key="timestamp_utc"),
    ]

    def _service_handler(service: str) -> dict:
        return {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "formatter": formatter_name,
            "filename": str(service_log_paths[service]),
            "when": "midnight",
            "backupCount": settings.log_backup_count,
            "encoding": "utf-8",
            "utc": True,
            "filters": [f"{service}_filter"],
        }

    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            formatter_name: {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": structlog.processors.JSONRenderer(),
                "foreign_pre_chain": foreign_pre_chain,
            },
        },
        "filters": {
            f"{service}_filter": {"()": "logging.Filter", "name": service}
            for service in service_log_paths
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter_name,
                "stream": "ext://sys.stdout",
            },
            **{f"{service}_file": _service_handler(service) for service in service_log_paths},
        },
        "loggers": {
            service: {
                "handlers": [f"{service}_file"],
                "level": settings.log_level,
                "propagate": True,
            }
            for service in service_log_paths
        },
        "root": {
            "handlers": ["console"],
            "level": settings.log_level,
        },
    }

    logging.config.dictConfig(log_config)

"""Registro declarativo de las colecciones del documento local.

Instantánea, carga masiva, migraciones y API recorren únicamente esta tabla.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from gestimmo.models import (
    Contract,
    Deadline,
    Document,
    Expense,
    Maintenance,
    Payment,
    Project,
    ProjectMember,
    ProjectMemberRole,
    Property,
    StoredModel,
    Tenant,
    User,
    UserStatus,
)

DATA_VERSION_KEY = "dataVersion"
CURRENT_DATA_VERSION = 2

DEFAULT_ADMIN_ID = "user-admin"
DEFAULT_PROJECT_ID = "proj-default"


def _seed_users() -> List[Dict[str, Any]]:
    admin = User(
        id=DEFAULT_ADMIN_ID,
        name="Amministratore",
        email="admin@gestimmo.local",
        status=UserStatus.ACTIVE,
    )
    return [admin.to_storage()]


def _seed_projects() -> List[Dict[str, Any]]:
    project = Project(
        id=DEFAULT_PROJECT_ID,
        name="Il mio portafoglio",
        owner_id=DEFAULT_ADMIN_ID,
        members=[ProjectMember(user_id=DEFAULT_ADMIN_ID, role=ProjectMemberRole.OWNER)],
    )
    return [project.to_storage()]


def _empty() -> List[Dict[str, Any]]:
    return []


@dataclass(frozen=True)
class CollectionSpec:
    key: str
    record_type: Type[StoredModel]
    id_prefix: str
    default_seed: Callable[[], List[Dict[str, Any]]] = _empty
    project_scoped: bool = True


COLLECTIONS: Tuple[CollectionSpec, ...] = (
    CollectionSpec("users", User, "user", _seed_users, project_scoped=False),
    CollectionSpec("projects", Project, "proj", _seed_projects, project_scoped=False),
    CollectionSpec("properties", Property, "prop"),
    CollectionSpec("tenants", Tenant, "tenant"),
    CollectionSpec("contracts", Contract, "contract"),
    CollectionSpec("deadlines", Deadline, "deadline"),
    CollectionSpec("maintenances", Maintenance, "maint"),
    CollectionSpec("expenses", Expense, "exp"),
    CollectionSpec("documents", Document, "doc"),
    CollectionSpec("payments", Payment, "pay"),
)

_BY_KEY: Dict[str, CollectionSpec] = {spec.key: spec for spec in COLLECTIONS}

COLLECTION_KEYS: Tuple[str, ...] = tuple(spec.key for spec in COLLECTIONS)
PROJECT_SCOPED_KEYS: Tuple[str, ...] = tuple(spec.key for spec in COLLECTIONS if spec.project_scoped)


def get_collection_spec(key: str) -> Optional[CollectionSpec]:
    return _BY_KEY.get(key)


def build_seed_document() -> Dict[str, Any]:
    """Documento inicial completo (primer aprovisionamiento)."""
    document: Dict[str, Any] = {spec.key: spec.default_seed() for spec in COLLECTIONS}
    document[DATA_VERSION_KEY] = CURRENT_DATA_VERSION
    return document

"""Pruebas del registro declarativo de colecciones."""

from gestimmo.services.registry import (
    COLLECTION_KEYS,
    COLLECTIONS,
    CURRENT_DATA_VERSION,
    DATA_VERSION_KEY,
    DEFAULT_ADMIN_ID,
    DEFAULT_PROJECT_ID,
    PROJECT_SCOPED_KEYS,
    build_seed_document,
    get_collection_spec,
)


def test_registry_lists_every_collection_once():
    assert COLLECTION_KEYS == (
        "users",
        "projects",
        "properties",
        "tenants",
        "contracts",
        "deadlines",
        "maintenances",
        "expenses",
        "documents",
        "payments",
    )
    assert "users" not in PROJECT_SCOPED_KEYS
    assert "projects" not in PROJECT_SCOPED_KEYS
    assert get_collection_spec("desconocida") is None


def test_services_match_registry(data_service):
    services = {"users": data_service.users, "projects": data_service.projects, **data_service.scoped_services}

    assert set(services) == set(COLLECTION_KEYS)
    for spec in COLLECTIONS:
        service = services[spec.key]
        assert service.model is spec.record_type
        assert service.id_prefix == spec.id_prefix


def test_seed_document_has_admin_and_demo_project():
    document = build_seed_document()

    assert document[DATA_VERSION_KEY] == CURRENT_DATA_VERSION
    assert [user["id"] for user in document["users"]] == [DEFAULT_ADMIN_ID]
    assert document["users"][0]["status"] == "Attivo"
    project = document["projects"][0]
    assert project["id"] == DEFAULT_PROJECT_ID
    assert project["members"] == [{"userId": DEFAULT_ADMIN_ID, "role": "Proprietario"}]
    assert all(document[key] == [] for key in PROJECT_SCOPED_KEYS)


def test_seed_factories_return_fresh_lists():
    first = build_seed_document()
    first["users"].append({"id": "intruso"})

    assert len(build_seed_document()["users"]) == 1

"""Pruebas de los backends clave-valor del almacén local."""

from __future__ import annotations

import json
import types

import pytest

from gestimmo.services import storage_backends
from gestimmo.services.local_store import LocalDocumentStore


def test_in_memory_storage_basic_operations() -> None:
    storage = storage_backends.InMemoryStorage({"users": "[]"})

    storage.set_item("tenants", "[1]")
    storage.set_item("users", "[2]")

    assert storage.get_item("tenants") == "[1]"
    assert storage.get_item("users") == "[2]"
    assert storage.get_item("missing") is None


def test_json_file_storage_persists_one_file_per_key(tmp_path) -> None:
    storage = storage_backends.JsonFileStorage(tmp_path / "store")

    storage.set_item("properties", json.dumps([{"id": "prop-1"}]))
    storage.set_item("dataVersion", "2")

    reopened = storage_backends.JsonFileStorage(tmp_path / "store")
    assert json.loads(reopened.get_item("properties")) == [{"id": "prop-1"}]
    assert sorted(path.name for path in (tmp_path / "store").iterdir()) == ["dataVersion.json", "properties.json"]
    assert reopened.get_item("tenants") is None


def test_json_file_storage_rejects_path_traversal(tmp_path) -> None:
    storage = storage_backends.JsonFileStorage(tmp_path)

    with pytest.raises(ValueError):
        storage.set_item("../fuera", "[]")


def test_file_backed_store_survives_restart(tmp_path) -> None:
    first = LocalDocumentStore(storage_backends.JsonFileStorage(tmp_path), seed_defaults=False)
    first.write("tenants", [{"id": "tenant-1", "name": "Giulia"}])

    second = LocalDocumentStore(storage_backends.JsonFileStorage(tmp_path), seed_defaults=False)

    assert second.read("tenants") == [{"id": "tenant-1", "name": "Giulia"}]


def test_create_storage_selects_file_backend(tmp_path) -> None:
    settings = types.SimpleNamespace(storage_backend="FILE", storage_path=str(tmp_path / "data"))

    storage = storage_backends.create_storage(settings)

    assert isinstance(storage, storage_backends.JsonFileStorage)
    assert (tmp_path / "data").is_dir()


def test_create_storage_fallbacks_to_memory_for_unknown_backend() -> None:
    settings = types.SimpleNamespace(storage_backend="indexeddb")

    storage = storage_backends.create_storage(settings)

    assert isinstance(storage, storage_backends.InMemoryStorage)

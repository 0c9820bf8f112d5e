"""Configuraciones comunes de pytest para la capa de datos de Gestimmo."""

import sys
from pathlib import Path
from typing import Callable, List

import pytest

# Asegurar que `src/` esté en PYTHONPATH para importar paquetes `gestimmo.*`
ROOT_PATH = Path(__file__).resolve().parents[1]
SRC_PATH = ROOT_PATH

if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from gestimmo.services.data_service import DataService  # noqa: E402
from gestimmo.services.local_store import LocalDocumentStore  # noqa: E402
from gestimmo.services.storage_backends import InMemoryStorage  # noqa: E402


class FakeTimer:
    """Temporizador manual: sólo dispara cuando la prueba llama a ``fire``."""

    def __init__(self, interval: float, function: Callable[[], None]):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.fired = False
        self.daemon = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled and not self.fired:
            self.fired = True
            self.function()


class FakeTimerFactory:
    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List[FakeTimer]:
        return [timer for timer in self.timers if timer.started and not timer.cancelled and not timer.fired]


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def store(storage) -> LocalDocumentStore:
    return LocalDocumentStore(storage, seed_defaults=False)


@pytest.fixture
def data_service(store) -> DataService:
    return DataService(store)


@pytest.fixture
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture
def project_id() -> str:
    return "proj-test"


@pytest.fixture
def user_id() -> str:
    return "user-test"

"""Fachada de la capa de datos: única vía sancionada para tocar el almacén local."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from gestimmo.config import Settings
from gestimmo.models import (
    AppData,
    Contract,
    Deadline,
    Document,
    Expense,
    Maintenance,
    Payment,
    Project,
    Property,
    Tenant,
    User,
)
from gestimmo.services.deadline_sync import DocumentDeadlineSynchronizer
from gestimmo.services.local_store import LocalDocumentStore
from gestimmo.services.migrations import MigrationReport, MigrationRunner
from gestimmo.services.record_service import RecordService
from gestimmo.services.record_services import (
    ContractService,
    DeadlineService,
    DocumentService,
    ExpenseService,
    MaintenanceService,
    PaymentService,
    ProjectService,
    PropertyService,
    TenantService,
    UserService,
)
from gestimmo.services.storage_backends import KeyValueStorage, create_storage

Payload = Mapping[str, Any]


class DataService:
    """Agrupa los servicios de registro alrededor de un único ``LocalDocumentStore``."""

    def __init__(self, store: LocalDocumentStore):
        self.store = store
        self.users = UserService(store)
        self.projects = ProjectService(store)
        self.properties = PropertyService(store)
        self.tenants = TenantService(store)
        self.contracts = ContractService(store, self.properties)
        self.deadlines = DeadlineService(store)
        self.deadline_sync = DocumentDeadlineSynchronizer(self.deadlines)
        self.maintenances = MaintenanceService(store)
        self.expenses = ExpenseService(store)
        self.documents = DocumentService(store, self.deadline_sync)
        self.payments = PaymentService(store)

    @classmethod
    def from_settings(cls, settings: Settings, storage: Optional[KeyValueStorage] = None) -> "DataService":
        store = LocalDocumentStore(
            storage or create_storage(settings),
            seed_defaults=settings.seed_default_data,
        )
        return cls(store)

    @property
    def scoped_services(self) -> Dict[str, RecordService]:
        return {
            service.collection: service
            for service in (
                self.properties,
                self.tenants,
                self.contracts,
                self.deadlines,
                self.maintenances,
                self.expenses,
                self.documents,
                self.payments,
            )
        }

    # Documento completo
    def migrate_data(self) -> MigrationReport:
        return MigrationRunner(self.store).migrate()

    def load_data_from_object(self, data: AppData) -> None:
        self.store.bulk_load(data)

    def get_all_data(self) -> AppData:
        return self.store.bulk_snapshot()

    # Usuarios
    def get_users(self) -> List[User]:
        return self.users.get_users()

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.find_by_id(user_id)

    def find_user_by_email(self, email: str) -> Optional[User]:
        return self.users.find_by_email(email)

    def add_user(self, data: Union[User, Payload]) -> User:
        return self.users.add_user(data)

    def update_user(self, user: Union[User, Payload]) -> User:
        return self.users.update_user(user)

    def approve_user(self, user_id: str) -> User:
        return self.users.approve_user(user_id)

    def delete_user(self, user_id: str) -> bool:
        return self.users.delete_user(user_id)

    # Proyectos
    def get_projects(self) -> List[Project]:
        return self.projects.get_projects()

    def get_projects_for_user(self, user_id: str) -> List[Project]:
        return self.projects.get_projects_for_user(user_id)

    def add_project(self, data: Union[Project, Payload]) -> Project:
        return self.projects.add_project(data)

    def update_project(self, project: Union[Project, Payload]) -> Project:
        return self.projects.update_project(project)

    def delete_project(self, project_id: str) -> None:
        self.projects.delete_project(project_id)

    # Inmuebles
    def get_properties(self, project_id: str) -> List[Property]:
        return self.properties.get_all(project_id)

    def get_property(self, project_id: str, property_id: str) -> Optional[Property]:
        return self.properties.get(project_id, property_id)

    def add_property(self, data: Union[Property, Payload], user_id: str) -> Property:
        return self.properties.add(data, user_id)

    def update_property(self, record: Union[Property, Payload], user_id: str) -> Property:
        return self.properties.update(record, user_id)

    def delete_property(self, property_id: str, user_id: Optional[str] = None) -> None:
        self.properties.delete(property_id, user_id)

    # Inquilinos
    def get_tenants(self, project_id: str) -> List[Tenant]:
        return self.tenants.get_all(project_id)

    def add_tenant(self, data: Union[Tenant, Payload], user_id: str) -> Tenant:
        return self.tenants.add(data, user_id)

    def update_tenant(self, record: Union[Tenant, Payload], user_id: str) -> Tenant:
        return self.tenants.update(record, user_id)

    def delete_tenant(self, tenant_id: str, user_id: Optional[str] = None) -> None:
        self.tenants.delete(tenant_id, user_id)

    # Contratos
    def get_contracts(self, project_id: str) -> List[Contract]:
        return self.contracts.get_all(project_id)

    def add_contract(self, data: Union[Contract, Payload], user_id: str) -> Contract:
        return self.contracts.add(data, user_id)

    def update_contract(self, record: Union[Contract, Payload], user_id: str) -> Contract:
        return self.contracts.update(record, user_id)

    def delete_contract(self, contract_id: str, user_id: str) -> None:
        self.contracts.delete(contract_id, user_id)

    # Vencimientos
    def get_deadlines(self, project_id: str) -> List[Deadline]:
        return self.deadlines.get_all(project_id)

    def add_deadline(self, data: Union[Deadline, Payload], user_id: str) -> Deadline:
        return self.deadlines.add(data, user_id)

    def update_deadline(self, record: Union[Deadline, Payload], user_id: str) -> Deadline:
        return self.deadlines.update(record, user_id)

    def delete_deadline(self, deadline_id: str, user_id: Optional[str] = None) -> None:
        self.deadlines.delete(deadline_id, user_id)

    def toggle_deadline_status(self, deadline_id: str, user_id: str) -> Deadline:
        return self.deadlines.toggle_status(deadline_id, user_id)

    # Mantenimientos
    def get_maintenances(self, project_id: str) -> List[Maintenance]:
        return self.maintenances.get_all(project_id)

    def add_maintenance(self, data: Union[Maintenance, Payload], user_id: str) -> Maintenance:
        return self.maintenances.add(data, user_id)

    def update_maintenance(self, record: Union[Maintenance, Payload], user_id: str) -> Maintenance:
        return self.maintenances.update(record, user_id)

    def delete_maintenance(self, maintenance_id: str, user_id: Optional[str] = None) -> None:
        self.maintenances.delete(maintenance_id, user_id)

    # Gastos
    def get_expenses(self, project_id: str) -> List[Expense]:
        return self.expenses.get_all(project_id)

    def add_expense(self, data: Union[Expense, Payload], user_id: str) -> Expense:
        return self.expenses.add(data, user_id)

    def update_expense(self, record: Union[Expense, Payload], user_id: str) -> Expense:
        return self.expenses.update(record, user_id)

    def delete_expense(self, expense_id: str, user_id: Optional[str] = None) -> None:
        self.expenses.delete(expense_id, user_id)

    # Documentos
    def get_documents(self, project_id: str) -> List[Document]:
        return self.documents.get_all(project_id)

    def add_document(self, data: Union[Document, Payload], user_id: str) -> Document:
        return self.documents.add(data, user_id)

    def update_document(self, record: Union[Document, Payload], user_id: str) -> Document:
        return self.documents.update(record, user_id)

    def delete_document(self, document_id: str, user_id: str) -> None:
        self.documents.delete(document_id, user_id)

    # Pagos
    def get_payments(self, project_id: str) -> List[Payment]:
        return self.payments.get_all(project_id)

    def add_payment(self, data: Union[Payment, Payload], user_id: str) -> Payment:
        return self.payments.add(data, user_id)

    def update_payment(self, record: Union[Payment, Payload], user_id: str) -> Payment:
        return self.payments.update(record, user_id)

    def delete_payment(self, payment_id: str, user_id: Optional[str] = None) -> None:
        self.payments.delete(payment_id, user_id)

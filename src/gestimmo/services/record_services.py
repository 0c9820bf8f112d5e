"""Servicios CRUD concretos de cada entidad."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Union

from gestimmo.models import (
    Contract,
    Deadline,
    Document,
    Expense,
    ExpenseCategory,
    Maintenance,
    Payment,
    Project,
    Property,
    TaxType,
    Tenant,
    User,
    UserStatus,
    UtilityType,
)
from gestimmo.services.deadline_sync import DocumentDeadlineSynchronizer
from gestimmo.services.local_store import LocalDocumentStore
from gestimmo.services.record_service import (
    CollectionService,
    RecordService,
    create_log_entry,
    generate_id,
    utc_now_iso,
)
from gestimmo.services.registry import PROJECT_SCOPED_KEYS

_CUSTOM_FIELDS_LABEL = ("custom_fields", "campi personalizzati aggiornati")


class UserService(CollectionService[User]):
    collection = "users"
    model = User
    id_prefix = "user"

    def get_users(self) -> List[User]:
        return self._load_all()

    def find_by_email(self, email: str) -> Optional[User]:
        wanted = (email or "").strip().lower()
        for user in self._load_all():
            if user.email.strip().lower() == wanted:
                return user
        return None

    def add_user(self, data: Union[User, Mapping[str, Any]]) -> User:
        """Alta de usuario; queda pendiente de aprobación."""
        user = self._build_new(data, generate_id(self.id_prefix))
        user = user.model_copy(update={"status": UserStatus.PENDING})
        users = self._load_all()
        users.append(user)
        self._save_all(users)
        self.logger.info("🆕 Usuario registrado", etapa="alta", record_id=user.id)
        return user

    def update_user(self, data: Union[User, Mapping[str, Any]]) -> User:
        user = self._coerce(data)
        users = self._load_all()
        users[self._index_of(users, user.id)] = user
        self._save_all(users)
        return user

    def approve_user(self, user_id: str) -> User:
        users = self._load_all()
        index = self._index_of(users, user_id)
        users[index] = users[index].model_copy(update={"status": UserStatus.ACTIVE})
        self._save_all(users)
        self.logger.info("✅ Usuario aprobado", etapa="aprobacion", record_id=user_id)
        return users[index]

    def delete_user(self, user_id: str) -> bool:
        """Elimina un usuario salvo que sea el último activo (rechazo silencioso)."""
        users = self._load_all()
        target = users[self._index_of(users, user_id)]

        active = [user for user in users if user.status == UserStatus.ACTIVE]
        if target.status == UserStatus.ACTIVE and len(active) <= 1:
            self.logger.warning(
                "⚠️ No se puede eliminar el último usuario activo",
                etapa="baja",
                record_id=user_id,
                error_code="last_active_user",
            )
            return False

        self._save_all([user for user in users if user.id != user_id])
        self.logger.info("🗑️ Usuario eliminado", etapa="baja", record_id=user_id)
        return True


class ProjectService(CollectionService[Project]):
    collection = "projects"
    model = Project
    id_prefix = "proj"

    def get_projects(self) -> List[Project]:
        return self._load_all()

    def get_projects_for_user(self, user_id: str) -> List[Project]:
        return [
            project
            for project in self._load_all()
            if any(member.user_id == user_id for member in project.members)
        ]

    def add_project(self, data: Union[Project, Mapping[str, Any]]) -> Project:
        project = self._build_new(data, generate_id(self.id_prefix))
        projects = self._load_all()
        projects.append(project)
        self._save_all(projects)
        self.logger.info("🆕 Proyecto creado", etapa="alta", record_id=project.id)
        return project

    def update_project(self, data: Union[Project, Mapping[str, Any]]) -> Project:
        project = self._coerce(data)
        projects = self._load_all()
        projects[self._index_of(projects, project.id)] = project
        self._save_all(projects)
        return project

    def delete_project(self, project_id: str) -> None:
        """Elimina el proyecto y, en cascada, todos sus registros."""
        projects = self._load_all()
        self._index_of(projects, project_id)

        removed = 0
        for key in PROJECT_SCOPED_KEYS:
            items = self.store.read(key)
            kept = [item for item in items if not (isinstance(item, dict) and item.get("projectId") == project_id)]
            if len(kept) != len(items):
                removed += len(items) - len(kept)
                self.store.write(key, kept)

        self._save_all([project for project in projects if project.id != project_id])
        self.logger.info(
            "🗑️ Proyecto eliminado en cascada",
            etapa="baja",
            record_id=project_id,
            records_processed=removed,
        )


class PropertyService(RecordService[Property]):
    collection = "properties"
    model = Property
    id_prefix = "prop"
    created_description = "Immobile creato."
    update_description = "Dettagli immobile aggiornati."
    watched_fields = (
        ("name", "nome modificato"),
        ("address", "indirizzo modificato"),
        ("surface", "superficie modificata"),
        ("is_rented", "stato di affitto modificato"),
        ("rent_amount", "canone modificato"),
        _CUSTOM_FIELDS_LABEL,
    )

    def _prepare_new(self, record: Property) -> Property:
        return record.model_copy(update={"creation_date": utc_now_iso()})


class TenantService(RecordService[Tenant]):
    collection = "tenants"
    model = Tenant
    id_prefix = "tenant"
    created_description = "Inquilino aggiunto."
    update_description = "Dati inquilino aggiornati."
    watched_fields = (
        ("name", "nome modificato"),
        ("email", "email modificata"),
        ("phone", "telefono modificato"),
        ("contract_id", "contratto modificato"),
        _CUSTOM_FIELDS_LABEL,
    )


class ContractService(RecordService[Contract]):
    """Contratos; mantiene ``isRented``/``rentAmount`` del inmueble vinculado."""

    collection = "contracts"
    model = Contract
    id_prefix = "contract"
    created_description = "Contratto creato."
    update_description = "Dettagli contratto aggiornati."
    watched_fields = (
        ("property_id", "immobile modificato"),
        ("tenant_id", "inquilino modificato"),
        ("start_date", "data di inizio modificata"),
        ("end_date", "data di fine modificata"),
        ("rent_amount", "canone modificato"),
        _CUSTOM_FIELDS_LABEL,
    )

    def __init__(self, store: LocalDocumentStore, properties: PropertyService):
        super().__init__(store)
        self.properties = properties

    def _prepare_new(self, record: Contract) -> Contract:
        return record.model_copy(update={"document_url": record.document_url or "#"})

    def _after_add(self, record: Contract, user_id: str) -> None:
        self.refresh_occupancy(record.property_id, user_id)

    def _after_update(self, original: Contract, updated: Contract, user_id: str) -> None:
        if original.property_id != updated.property_id:
            self.refresh_occupancy(original.property_id, user_id)
        self.refresh_occupancy(updated.property_id, user_id)

    def _after_delete(self, record: Contract, user_id: Optional[str]) -> None:
        self.refresh_occupancy(record.property_id, user_id or "system")

    def refresh_occupancy(self, property_id: str, user_id: str) -> None:
        """Recalcula ``isRented`` (hay algún contrato) y el canon denormalizado."""

        prop = self.properties.find_by_id(property_id)
        if prop is None:
            return

        linked = [contract for contract in self._load_all() if contract.property_id == property_id]
        changes = {"is_rented": bool(linked)}
        if linked:
            changes["rent_amount"] = linked[-1].rent_amount

        if all(getattr(prop, key) == value for key, value in changes.items()):
            return
        self.properties.update(prop.model_copy(update=changes), user_id)


class DeadlineService(RecordService[Deadline]):
    collection = "deadlines"
    model = Deadline
    id_prefix = "deadline"
    created_description = "Scadenza creata."
    update_description = 'Scadenza "{record.title}" aggiornata.'
    watched_fields = (
        ("title", "titolo modificato"),
        ("due_date", "data di scadenza modificata"),
        ("type", "tipo modificato"),
    )

    def _prepare_new(self, record: Deadline) -> Deadline:
        return record.model_copy(update={"is_completed": False})

    def find_by_document(self, document_id: str) -> Optional[Deadline]:
        for deadline in self._load_all():
            if deadline.document_id == document_id:
                return deadline
        return None

    def toggle_status(self, deadline_id: str, user_id: str) -> Deadline:
        deadlines = self._load_all()
        index = self._index_of(deadlines, deadline_id)
        deadline = deadlines[index]

        completed = not deadline.is_completed
        state = "Completata" if completed else "Da completare"
        entry = create_log_entry(user_id, f'Stato modificato in "{state}".')
        deadlines[index] = deadline.model_copy(
            update={"is_completed": completed, "history": [*deadline.history, entry]}
        )
        self._save_all(deadlines)
        self._log(user_id, deadlines[index]).info("🔁 Estado de vencimiento alternado", etapa="modificacion", completada=completed)
        return deadlines[index]


class MaintenanceService(RecordService[Maintenance]):
    collection = "maintenances"
    model = Maintenance
    id_prefix = "maint"
    created_description = "Richiesta di manutenzione creata."
    update_description = 'Stato manutenzione aggiornato a "{record.status.value}".'
    watched_fields = (
        ("status", 'stato aggiornato a "{record.status.value}"'),
        ("description", "descrizione modificata"),
        ("cost", "costo modificato"),
        ("completion_date", "data di completamento modificata"),
    )


_UTILITY_FIELDS = ("utility_type", "utility_type_other", "utility_provider", "utility_details")
_TAX_FIELDS = ("tax_type", "tax_type_other", "tax_reference_year", "tax_details")


def prune_expense_fields(expense: Expense) -> Expense:
    """Elimina los subcampos que no corresponden a la categoría de la spesa."""

    cleared = {}
    if expense.category != ExpenseCategory.OTHER:
        cleared["category_other"] = None
    if expense.category != ExpenseCategory.UTILITIES:
        cleared.update({name: None for name in _UTILITY_FIELDS})
    elif expense.utility_type != UtilityType.OTHER:
        cleared["utility_type_other"] = None
    if expense.category != ExpenseCategory.TAXES:
        cleared.update({name: None for name in _TAX_FIELDS})
    elif expense.tax_type != TaxType.OTHER:
        cleared["tax_type_other"] = None

    if not cleared:
        return expense
    return expense.model_copy(update=cleared)


class ExpenseService(RecordService[Expense]):
    collection = "expenses"
    model = Expense
    id_prefix = "exp"
    created_description = "Spesa aggiunta."
    update_description = 'Spesa "{record.description}" aggiornata.'
    watched_fields = (
        ("description", "descrizione modificata"),
        ("amount", "importo modificato"),
        ("category", "categoria modificata"),
        ("date", "data modificata"),
    )

    def _prepare_new(self, record: Expense) -> Expense:
        return prune_expense_fields(record)

    def _prepare_update(self, original: Expense, updated: Expense) -> Expense:
        return prune_expense_fields(updated)


class PaymentService(RecordService[Payment]):
    collection = "payments"
    model = Payment
    id_prefix = "pay"
    created_description = "Pagamento registrato."
    update_description = "Pagamento aggiornato. Stato: {record.status.value}, Importo: €{record.amount}"
    watched_fields = (
        ("status", 'stato aggiornato a "{record.status.value}"'),
        ("amount", "importo modificato"),
        ("payment_date", "data di pagamento modificata"),
        ("due_date", "data di scadenza modificata"),
    )


class DocumentService(RecordService[Document]):
    """Documentos; cada cambio de ``expiryDate`` se refleja en su vencimiento."""

    collection = "documents"
    model = Document
    id_prefix = "doc"
    created_description = "Documento caricato."
    update_description = 'Documento "{record.name}" aggiornato.'
    watched_fields = (
        ("name", "nome modificato"),
        ("type", "tipo modificato"),
        ("expiry_date", "data di scadenza modificata"),
        _CUSTOM_FIELDS_LABEL,
    )

    def __init__(self, store: LocalDocumentStore, synchronizer: DocumentDeadlineSynchronizer):
        super().__init__(store)
        self.synchronizer = synchronizer

    def _after_add(self, record: Document, user_id: str) -> None:
        self.synchronizer.sync_deadline_for_document(record, user_id, existing=None)

    def _after_update(self, original: Document, updated: Document, user_id: str) -> None:
        self.synchronizer.sync_deadline_for_document(updated, user_id)

    def _before_delete(self, record: Document, user_id: Optional[str]) -> None:
        cleared = record.model_copy(update={"expiry_date": None})
        self.synchronizer.sync_deadline_for_document(cleared, user_id or "system")

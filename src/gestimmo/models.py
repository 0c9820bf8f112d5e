"""
Modelos de datos del documento local de Gestimmo
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class UserStatus(str, Enum):
    """Estados de un usuario"""
    ACTIVE = "Attivo"
    PENDING = "In attesa di approvazione"


class ProjectMemberRole(str, Enum):
    OWNER = "Proprietario"
    EDITOR = "Editor"
    VIEWER = "Visualizzatore"


class PropertyType(str, Enum):
    APARTMENT = "Appartamento"
    VILLA = "Villa"
    OFFICE = "Ufficio"
    SHOP = "Negozio"
    GARAGE = "Garage"
    OTHER = "Altro"


class CustomFieldType(str, Enum):
    TEXT = "Testo"
    BOOLEAN = "Si/No"


class DeadlineType(str, Enum):
    RENT = "Affitto"
    TAX = "Tasse"
    MAINTENANCE = "Manutenzione"
    CONTRACT = "Contratto"
    DOCUMENT = "Documento"
    OTHER = "Altro"


class MaintenanceStatus(str, Enum):
    REQUESTED = "Richiesta"
    IN_PROGRESS = "In Corso"
    COMPLETED = "Completata"


class UtilityType(str, Enum):
    ELECTRICITY = "Energia Elettrica"
    GAS = "Gas"
    WATER = "Servizio Idrico"
    INTERNET = "Internet"
    OTHER = "Altro"


class TaxType(str, Enum):
    IMU = "IMU"
    TARI = "TARI"
    IRPEF = "IRPEF"
    OTHER = "Altro"


class ExpenseCategory(str, Enum):
    CONDOMINIUM = "Condominio"
    UTILITIES = "Utenze"
    TAXES = "Tasse"
    MAINTENANCE = "Manutenzione"
    OTHER = "Altro"


class DocumentType(str, Enum):
    CONTRACT = "Contratto"
    FLOOR_PLAN = "Planimetria"
    CERTIFICATION = "Certificazione"
    INSURANCE = "Assicurazione"
    OTHER = "Altro"


class PaymentStatus(str, Enum):
    PAID = "Pagato"
    PENDING = "In Attesa"
    LATE = "In Ritardo"


class StoredModel(BaseModel):
    """Base de los registros persistidos.

    Se serializa con claves camelCase (formato del documento JSON compartido con Drive),
    acepta tanto alias como nombres de campo y conserva las claves desconocidas para que
    los documentos escritos por otros clientes no pierdan información.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class HistoryLog(StoredModel):
    """Entrada del registro de auditoría"""
    id: str
    timestamp: str
    user_id: str
    description: str


class CustomField(StoredModel):
    id: str
    label: str
    type: CustomFieldType = CustomFieldType.TEXT
    value: Union[bool, str] = ""


class User(StoredModel):
    id: str
    name: str = ""
    email: str = ""
    status: UserStatus = UserStatus.PENDING
    password: Optional[str] = None


class ProjectMember(StoredModel):
    user_id: str
    role: ProjectMemberRole = ProjectMemberRole.VIEWER


class Project(StoredModel):
    id: str
    name: str = ""
    owner_id: str = ""
    members: List[ProjectMember] = Field(default_factory=list)


class ProjectScopedRecord(StoredModel):
    """Registro que pertenece a un proyecto y conserva historial."""
    id: str
    project_id: Optional[str] = None
    history: List[HistoryLog] = Field(default_factory=list)


class Property(ProjectScopedRecord):
    code: str = ""
    name: str = ""
    address: str = ""
    type: PropertyType = PropertyType.APARTMENT
    type_other: Optional[str] = None
    surface: float = 0
    rooms: int = 0
    is_rented: bool = False
    rent_amount: Optional[float] = None
    image_url: Optional[str] = None
    custom_fields: List[CustomField] = Field(default_factory=list)
    creation_date: Optional[str] = None


class Tenant(ProjectScopedRecord):
    name: str = ""
    email: str = ""
    phone: str = ""
    contract_id: str = ""
    custom_fields: List[CustomField] = Field(default_factory=list)


class Contract(ProjectScopedRecord):
    property_id: str = ""
    tenant_id: str = ""
    start_date: str = ""
    end_date: str = ""
    rent_amount: float = 0
    document_url: str = "#"
    custom_fields: List[CustomField] = Field(default_factory=list)


class Deadline(ProjectScopedRecord):
    property_id: str = ""
    title: str = ""
    due_date: str = ""
    is_completed: bool = False
    type: DeadlineType = DeadlineType.OTHER
    type_other: Optional[str] = None
    document_id: Optional[str] = None


class Maintenance(ProjectScopedRecord):
    property_id: str = ""
    description: str = ""
    status: MaintenanceStatus = MaintenanceStatus.REQUESTED
    request_date: str = ""
    completion_date: Optional[str] = None
    cost: Optional[float] = None


class Expense(ProjectScopedRecord):
    property_id: str = ""
    description: str = ""
    amount: float = 0
    category: ExpenseCategory = ExpenseCategory.OTHER
    category_other: Optional[str] = None
    date: str = ""
    provider_url: Optional[str] = None
    invoice_url: Optional[str] = None
    invoice_data: Optional[str] = None
    invoice_name: Optional[str] = None
    # Utenze
    utility_type: Optional[UtilityType] = None
    utility_type_other: Optional[str] = None
    utility_provider: Optional[str] = None
    utility_details: Optional[str] = None
    # Tasse
    tax_type: Optional[TaxType] = None
    tax_type_other: Optional[str] = None
    tax_reference_year: Optional[int] = None
    tax_details: Optional[str] = None


class Document(ProjectScopedRecord):
    property_id: str = ""
    name: str = ""
    type: DocumentType = DocumentType.OTHER
    type_other: Optional[str] = None
    upload_date: str = ""
    file_url: Optional[str] = None
    file_data: Optional[str] = None
    file_name: Optional[str] = None
    expiry_date: Optional[str] = None
    custom_fields: List[CustomField] = Field(default_factory=list)


class Payment(ProjectScopedRecord):
    contract_id: str = ""
    property_id: str = ""
    amount: float = 0
    due_date: str = ""
    payment_date: Optional[str] = None
    reference_month: int = 1
    reference_year: int = 1970
    status: PaymentStatus = PaymentStatus.PENDING


class AuthenticatedIdentity(BaseModel):
    """Identidad devuelta por el proveedor OAuth"""
    id: str
    name: str = ""
    email: str = ""


# Documento completo: {clave_de_coleccion: [registros...], "dataVersion": int}
AppData = Dict[str, Any]

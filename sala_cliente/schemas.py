# sala_cliente/schemas.py  # Esquemas Pydantic de entrada/salida de la API.                      # Ubicación del archivo.

# =================================================================================
# 📦 Schemas (MODELOS DE DATOS Pydantic)
# ---------------------------------------------------------------------------------
# - Validan la entrada (longitudes, emails, colores, rangos).
# - Serializan objetos ORM a JSON (from_attributes=True).
# - Pydantic v2: field_validator/model_validator y ConfigDict.
# =================================================================================

import re                                                                                     # Regex para teléfonos y colores.
from datetime import datetime                                                                 # Timestamps.
from typing import Optional, List, Literal, Any, Dict                                         # Tipado.

from pydantic import (
    BaseModel,
    EmailStr,
    field_validator,
    model_validator,
    ConfigDict,
    Field,
)

from sala_cliente.models import (                                                             # Enums del ORM.
    UserRole,
    UserStatus,
    SubscriptionPlan,
    ThemeMode,
    ClientStatus,
)

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")                                               # '#RRGGBB'.

# =================================================================================
# 🧰 Utilidades de normalización
# =================================================================================
def _normalize_phone(raw: Optional[str]) -> Optional[str]:
    """Devuelve el teléfono solo con dígitos y '+', o None si queda vacío."""
    if not raw:
        return None
    digits = re.sub(r"[^\d+]", "", raw.strip())
    return digits or None

def _clean_optional(value: Optional[str]) -> Optional[str]:                                   # '' → None.
    if value is None:
        return None
    value = value.strip()
    return value or None

def _strip_required(value: str) -> str:                                                       # Texto obligatorio sin espacios sobrantes.
    return value.strip() if isinstance(value, str) else value

def _validate_phone(raw: Optional[str]) -> Optional[str]:                                     # Teléfono con al menos 10 dígitos.
    v = _normalize_phone(raw)
    if v is not None and len(v.lstrip("+")) < 10:
        raise ValueError("El teléfono debe tener al menos 10 dígitos")
    return v

def _reject_nulls(model: BaseModel, fields) -> None:                                        # PATCH: null explícito en columna NOT NULL → 422.
    for name in fields:
        if name in model.model_fields_set and getattr(model, name) is None:
            raise ValueError(f"'{name}' no puede ser null")

# =================================================================================
# 🔐 Autenticación y registro
# =================================================================================
class _PhoneMixin(BaseModel):
    phone: Optional[str] = None                                                               # Teléfono opcional.

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, v: Optional[str]) -> Optional[str]:
        return _validate_phone(v)

class RegisterRequest(_PhoneMixin):                                                           # Alta pública de un despacho.
    email: EmailStr
    password: str = Field(min_length=8)
    firm_name: str = Field(min_length=2, max_length=160)
    full_name: str = Field(min_length=2, max_length=160)
    license_number: Optional[str] = None

    @field_validator("firm_name", "full_name", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return _strip_required(v)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()

class RegisterWithInvitationRequest(_PhoneMixin):                                             # Alta mediante invitación.
    token: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=2, max_length=160)
    license_number: Optional[str] = None

    @field_validator("full_name", "token", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return _strip_required(v)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class RegisterResponse(Token):
    user_id: str
    organization_id: str
    message: str

class InvitationValidation(BaseModel):                                                        # Respuesta de validate-invitation.
    valid: bool = True
    email: str
    role: UserRole
    organization_name: str
    organization_logo: Optional[str] = None
    model_config = ConfigDict(use_enum_values=True)

# =================================================================================
# 🏢 Organización y perfiles
# =================================================================================
class OrganizationOut(BaseModel):
    id: str
    name: str
    slug: str
    tax_id: Optional[str] = None
    billing_address: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    subscription_plan: SubscriptionPlan
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

class OrganizationStats(BaseModel):
    users_count: int
    lawyers_count: int
    clients_count: int
    documents_count: int
    storage_used_mb: float

class OrganizationWithStats(OrganizationOut):
    stats: OrganizationStats

class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=160)
    tax_id: Optional[str] = Field(default=None, max_length=32)
    billing_address: Optional[str] = Field(default=None, max_length=300)
    logo_url: Optional[str] = Field(default=None, max_length=500)
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None

    @field_validator("primary_color", "secondary_color")
    @classmethod
    def _check_color(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if not HEX_COLOR_RE.match(v):
            raise ValueError("El color debe tener formato #RRGGBB")
        return v.upper()

    @model_validator(mode="after")
    def _no_null_name(self):
        _reject_nulls(self, ("name",))
        return self

class ProfileOut(BaseModel):
    id: str
    email: str
    full_name: str
    phone: Optional[str] = None
    license_number: Optional[str] = None
    firm_name: Optional[str] = None
    firm_logo_url: Optional[str] = None
    calendar_link: Optional[str] = None
    theme_mode: ThemeMode
    organization_id: Optional[str] = None
    role: UserRole
    status: UserStatus
    onboarding_completed: bool = False
    approved_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

class MeResponse(ProfileOut):
    organization: Optional[OrganizationOut] = None

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=160)
    phone: Optional[str] = None
    license_number: Optional[str] = None
    firm_name: Optional[str] = Field(default=None, min_length=2, max_length=160)
    calendar_link: Optional[str] = Field(default=None, max_length=500)
    onboarding_completed: Optional[bool] = None

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, v: Optional[str]) -> Optional[str]:
        return _validate_phone(v)

    @field_validator("license_number", "calendar_link")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return _clean_optional(v)

    @model_validator(mode="after")
    def _no_null_required(self):
        _reject_nulls(self, ("full_name", "onboarding_completed"))
        return self

class ThemeUpdate(BaseModel):
    theme: str                                                                                # Validado en el router (400 si no es light/dark).

class ThemeResponse(BaseModel):
    success: bool = True
    theme: ThemeMode
    model_config = ConfigDict(use_enum_values=True)

# =================================================================================
# 👑 Administración de usuarios
# =================================================================================
class UserAdminOut(ProfileOut):
    clients_count: int = 0
    approved_by: Optional[str] = None

class UserAdminUpdate(BaseModel):
    status: Optional[Literal["active", "suspended", "pending"]] = None
    role: Optional[Literal["lawyer", "collaborator", "admin", "super_admin"]] = None

    @model_validator(mode="after")
    def _at_least_one(self):
        if self.status is None and self.role is None:
            raise ValueError("Indica al menos 'status' o 'role'")
        return self

class AuditLogOut(BaseModel):
    id: str
    action: str
    user_id: Optional[str] = None
    user_email: Optional[str] = None
    client_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)

class AuditLogPage(BaseModel):
    logs: List[AuditLogOut]
    total: int
    limit: int
    offset: int

# =================================================================================
# ✉️ Invitaciones
# =================================================================================
class InvitationCreate(BaseModel):
    email: EmailStr
    role: Literal["lawyer", "collaborator"] = "lawyer"
    expires_in_days: int = Field(default=7, ge=1, le=30)
    email_match_required: bool = True

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()

class InvitationOut(BaseModel):
    id: str
    email: str
    role: UserRole
    organization_id: str
    invited_by: Optional[str] = None
    invited_email_match_required: bool
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    created_at: datetime
    state: Literal["pending", "accepted", "revoked", "expired"]
    invitation_url: Optional[str] = None
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

# =================================================================================
# 📄 Plantillas
# =================================================================================
class ContractTemplateOut(BaseModel):
    id: str
    name: str
    file_size_bytes: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)

class ContractTemplateRename(BaseModel):
    name: str = Field(min_length=2, max_length=200)

class QuestionOut(BaseModel):
    id: str
    question_text: str
    order_index: int
    model_config = ConfigDict(from_attributes=True)

class QuestionnaireOut(BaseModel):
    id: str
    name: str
    created_at: datetime
    questions: List[QuestionOut] = []
    model_config = ConfigDict(from_attributes=True)

class QuestionnaireSummary(BaseModel):
    id: str
    name: str
    created_at: datetime
    questions_count: int

def _clean_questions(items: Optional[List[str]]) -> Optional[List[str]]:
    if items is None:
        return None
    cleaned = [q.strip() for q in items]
    if not cleaned:
        raise ValueError("El cuestionario necesita al menos una pregunta")
    if any(not q for q in cleaned):
        raise ValueError("Las preguntas no pueden estar vacías")
    return cleaned

class QuestionnaireCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    questions: List[str]

    @field_validator("questions")
    @classmethod
    def _check_questions(cls, v):
        return _clean_questions(v)

class QuestionnaireUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    questions: Optional[List[str]] = None

    @field_validator("questions")
    @classmethod
    def _check_questions(cls, v):
        return _clean_questions(v)

# =================================================================================
# 🚪 Salas de cliente
# =================================================================================
def _clean_documents(items: Optional[List[str]]) -> Optional[List[str]]:
    """Recorta, descarta vacíos y elimina duplicados conservando el orden."""
    if items is None:
        return None
    seen: List[str] = []
    for raw in items:
        doc = (raw or "").strip()
        if doc and doc not in seen:
            seen.append(doc)
    return seen

class ClientCreate(BaseModel):
    client_name: str = Field(min_length=2, max_length=160)
    client_email: EmailStr
    case_name: str = Field(min_length=2, max_length=200)
    contract_template_id: Optional[str] = None
    questionnaire_template_id: Optional[str] = None
    required_documents: List[str] = []
    custom_message: Optional[str] = Field(default=None, max_length=2000)
    expiration_days: int = Field(default=7, ge=1, le=90)
    send_email: bool = True

    @field_validator("client_name", "case_name", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return _strip_required(v)

    @field_validator("required_documents")
    @classmethod
    def _check_documents(cls, v):
        return _clean_documents(v)

    @field_validator("client_email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("contract_template_id", "questionnaire_template_id", "custom_message")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return _clean_optional(v)

class ClientUpdate(BaseModel):
    client_name: Optional[str] = Field(default=None, min_length=2, max_length=160)
    client_email: Optional[EmailStr] = None
    case_name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    contract_template_id: Optional[str] = None
    questionnaire_template_id: Optional[str] = None
    required_documents: Optional[List[str]] = None
    custom_message: Optional[str] = Field(default=None, max_length=2000)
    expiration_days: Optional[int] = Field(default=None, ge=1, le=90)

    @field_validator("client_name", "case_name", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return _strip_required(v)

    @field_validator("required_documents")
    @classmethod
    def _check_documents(cls, v):
        return _clean_documents(v)

    @field_validator("client_email")
    @classmethod
    def _lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v

    @model_validator(mode="after")
    def _no_null_required(self):
        _reject_nulls(self, ("client_name", "client_email", "case_name", "expiration_days", "required_documents"))
        return self

class LinkOut(BaseModel):
    id: str
    token: str
    url: str
    expires_at: datetime
    revoked_at: Optional[datetime] = None
    access_count: int = 0
    last_accessed_at: Optional[datetime] = None
    created_at: datetime
    active: bool

class GenerateLinkRequest(BaseModel):
    expires_in_hours: int = Field(default=72, ge=1, le=720)
    send_email: bool = False

class ClientOut(BaseModel):
    id: str
    user_id: str
    organization_id: str
    client_name: str
    client_email: str
    case_name: str
    custom_message: Optional[str] = None
    expiration_days: int
    contract_template_id: Optional[str] = None
    questionnaire_template_id: Optional[str] = None
    required_documents: List[str] = []
    status: ClientStatus
    consent_accepted_at: Optional[datetime] = None
    signed_name: Optional[str] = None
    signature_timestamp: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    link_used: bool = False
    created_at: datetime
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

class ClientCreated(ClientOut):
    link: LinkOut

class DocumentOut(BaseModel):
    id: str
    client_id: str
    document_type: str
    file_name: Optional[str] = None
    file_size_bytes: int
    content_type: Optional[str] = None
    uploaded_at: datetime
    model_config = ConfigDict(from_attributes=True)

class AnswerOut(BaseModel):
    id: str
    question_id: str
    question_text: Optional[str] = None
    answer_text: str
    created_at: datetime

class ClientDetail(ClientOut):
    signature_hash: Optional[str] = None
    signature_ip: Optional[str] = None
    contract_template_name: Optional[str] = None
    questionnaire_template_name: Optional[str] = None
    active_link: Optional[LinkOut] = None
    documents: List[DocumentOut] = []
    questions: List[QuestionOut] = []
    answers: List[AnswerOut] = []

class ClientPage(BaseModel):
    data: List[ClientOut]
    count: int
    page: int
    page_size: int
    total_pages: int

class DashboardStats(BaseModel):
    total: int
    pending: int
    completed: int
    recent: List[ClientOut]

# =================================================================================
# 🧭 Portal del cliente (enlace mágico)
# =================================================================================
class PortalBranding(BaseModel):
    firm_name: Optional[str] = None
    firm_logo_url: Optional[str] = None
    calendar_link: Optional[str] = None
    lawyer_name: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None

class PortalContract(BaseModel):
    name: str
    download_url: str

class PortalView(BaseModel):
    client_id: str
    client_name: str
    case_name: str
    custom_message: Optional[str] = None
    status: ClientStatus
    required_documents: List[str]
    uploaded_document_types: List[str]
    contract: Optional[PortalContract] = None
    questions: List[QuestionOut]
    answers: Dict[str, str]
    consent_accepted: bool
    signed: bool
    steps: List[Literal["consent", "documents", "questionnaire", "complete"]]
    expires_at: datetime
    branding: PortalBranding
    model_config = ConfigDict(use_enum_values=True)

class ConsentRequest(BaseModel):
    accepted: bool

class SignRequest(BaseModel):
    signature_data: str = Field(min_length=1)
    signed_name: str = Field(min_length=1, max_length=160)

    @field_validator("signature_data", "signed_name", mode="before")
    @classmethod
    def _strip_text(cls, v):
        return _strip_required(v)

class AnswerIn(BaseModel):
    question_id: str
    answer_text: str = Field(default="", max_length=5000)

class AnswersSubmit(BaseModel):
    answers: List[AnswerIn]

class PortalActionResult(BaseModel):
    success: bool = True
    message: str

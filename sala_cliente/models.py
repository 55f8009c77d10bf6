# sala_cliente/models.py  # Modelos ORM del despacho, sus usuarios y las salas de cliente.

# =================================================================================
# 🏛️ DEFINICIÓN DE LOS MODELOS DE LA BASE DE DATOS (ORM)
# ---------------------------------------------------------------------------------
# Estructura de las tablas con SQLAlchemy ORM.
# Implementa:
# - Enums para roles, estados de cuenta, planes, tema y estado de la sala.
# - Organización (despacho) → perfiles, invitaciones, salas, plantillas.
# - Sala (clients) → enlaces mágicos, documentos, respuestas.
# - Auditoría y registro de notificaciones por email.
# - IDs UUID en texto (portables entre SQLite y PostgreSQL).
# =================================================================================

# 🐍 Importaciones de Python y SQLAlchemy
# ---------------------------------------------------------------------------------
from datetime import datetime  # Sellos de tiempo (UTC naive).
import enum  # Enumeraciones tipadas.
import uuid  # Generación de IDs.

from sqlalchemy import (  # Utilidades de SQLAlchemy para definir tablas y columnas.
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    func,
    Enum as SQLAlchemyEnum,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship as orm_relationship  # Relaciones ORM.

from sala_cliente.db import Base  # Base declarativa del proyecto.


def _uuid() -> str:  # Default de las claves primarias.
    return str(uuid.uuid4())


# 🗂️ ENUMS PARA CONSISTENCIA DE DATOS
# ---------------------------------------------------------------------------------
class UserRole(str, enum.Enum):  # Rol del usuario dentro del despacho.
    super_admin = "super_admin"  # Administración global de la plataforma.
    admin = "admin"  # Administrador del despacho.
    lawyer = "lawyer"  # Abogado.
    collaborator = "collaborator"  # Colaborador (pasante, asistente).

class UserStatus(str, enum.Enum):  # Estado de la cuenta.
    active = "active"
    suspended = "suspended"
    pending = "pending"  # Pendiente de aprobación por un admin.
    deleted = "deleted"

class SubscriptionPlan(str, enum.Enum):  # Plan contratado por el despacho.
    free = "free"
    professional = "professional"
    enterprise = "enterprise"

class ThemeMode(str, enum.Enum):  # Preferencia visual del usuario.
    light = "light"
    dark = "dark"

class ClientStatus(str, enum.Enum):  # Estado de la sala.
    pending = "pending"
    completed = "completed"

class NotificationStatus(str, enum.Enum):  # Estado del envío de un email.
    pending = "pending"
    sent = "sent"
    failed = "failed"

ADMIN_ROLES = (UserRole.admin, UserRole.super_admin)  # Roles con acceso al panel de administración.


# 🏢 DESPACHOS (TABLA 'organizations')
# ---------------------------------------------------------------------------------
class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(160), nullable=False)
    slug = Column(String(180), unique=True, index=True, nullable=False)
    owner_id = Column(String(36), nullable=True)  # Perfil que registró el despacho.

    # --- Facturación y marca ---
    tax_id = Column(String(32), nullable=True)
    billing_address = Column(String(300), nullable=True)
    logo_url = Column(String(500), nullable=True)
    primary_color = Column(String(7), nullable=True)  # '#RRGGBB'
    secondary_color = Column(String(7), nullable=True)
    subscription_plan = Column(SQLAlchemyEnum(SubscriptionPlan), default=SubscriptionPlan.free, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    profiles = orm_relationship("Profile", back_populates="organization", lazy="selectin")


# 👩‍⚖️ USUARIOS (TABLA 'profiles')
# ---------------------------------------------------------------------------------
class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(254), unique=True, index=True, nullable=False)  # Siempre en minúsculas.
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(160), nullable=False)
    phone = Column(String(32), nullable=True)
    license_number = Column(String(64), nullable=True)  # Cédula profesional.

    # --- Marca del despacho mostrada en el portal ---
    firm_name = Column(String(160), nullable=True)
    firm_logo_url = Column(String(500), nullable=True)
    calendar_link = Column(String(500), nullable=True)
    theme_mode = Column(SQLAlchemyEnum(ThemeMode), default=ThemeMode.light, nullable=False)

    # --- Pertenencia y permisos ---
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=True)
    role = Column(SQLAlchemyEnum(UserRole), default=UserRole.lawyer, nullable=False)
    status = Column(SQLAlchemyEnum(UserStatus), default=UserStatus.active, nullable=False)
    approved_by = Column(String(36), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    onboarding_completed = Column(Boolean, default=False, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = orm_relationship("Organization", back_populates="profiles")


# ✉️ INVITACIONES AL DESPACHO (TABLA 'invitations')
# ---------------------------------------------------------------------------------
class Invitation(Base):
    __tablename__ = "invitations"

    id = Column(String(36), primary_key=True, default=_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=False)
    email = Column(String(254), index=True, nullable=False)
    role = Column(SQLAlchemyEnum(UserRole), default=UserRole.lawyer, nullable=False)
    invited_by = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    invitation_token = Column(String(128), unique=True, index=True, nullable=False)
    invited_email_match_required = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime, nullable=True)  # Uso único: una vez aceptada no vuelve a servir.
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    organization = orm_relationship("Organization")
    inviter = orm_relationship("Profile")


# 📄 PLANTILLAS DE CONTRATO (TABLA 'contract_templates')
# ---------------------------------------------------------------------------------
class ContractTemplate(Base):
    __tablename__ = "contract_templates"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=True)
    name = Column(String(200), nullable=False)
    file_url = Column(String(500), nullable=False)  # Clave dentro del almacenamiento.
    file_size_bytes = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


# 📝 CUESTIONARIOS (TABLAS 'questionnaire_templates' y 'questions')
# ---------------------------------------------------------------------------------
class QuestionnaireTemplate(Base):
    __tablename__ = "questionnaire_templates"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    questions = orm_relationship(
        "Question",
        cascade="all, delete-orphan",
        back_populates="template",
        order_by="Question.order_index",
        lazy="selectin",
    )

class Question(Base):
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=_uuid)
    questionnaire_template_id = Column(
        String(36), ForeignKey("questionnaire_templates.id", ondelete="CASCADE"), index=True, nullable=False
    )
    question_text = Column(Text, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)

    template = orm_relationship("QuestionnaireTemplate", back_populates="questions")


# 🚪 SALAS DE CLIENTE (TABLA 'clients')
# ---------------------------------------------------------------------------------
class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        CheckConstraint("expiration_days > 0", name="ck_clients_expiration_days_positive"),
        Index("ix_clients_org_status", "organization_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=False)

    # --- Datos del cliente y del caso ---
    client_name = Column(String(160), nullable=False)
    client_email = Column(String(254), index=True, nullable=False)
    case_name = Column(String(200), nullable=False)
    custom_message = Column(Text, nullable=True)
    expiration_days = Column(Integer, default=7, nullable=False)

    # --- Configuración del flujo ---
    contract_template_id = Column(String(36), ForeignKey("contract_templates.id", ondelete="SET NULL"), nullable=True)
    questionnaire_template_id = Column(
        String(36), ForeignKey("questionnaire_templates.id", ondelete="SET NULL"), nullable=True
    )
    required_documents = Column(JSON, default=list, nullable=False)

    # --- Progreso del portal ---
    status = Column(SQLAlchemyEnum(ClientStatus), default=ClientStatus.pending, nullable=False)
    consent_accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    link_used = Column(Boolean, default=False, nullable=False)

    # --- Firma ---
    signature_data = Column(Text, nullable=True)  # Trazo (data URL) o nombre tecleado.
    signature_hash = Column(String(64), nullable=True)
    signature_ip = Column(String(64), nullable=True)
    signature_timestamp = Column(DateTime, nullable=True)
    signed_name = Column(String(160), nullable=True)

    deleted_at = Column(DateTime, nullable=True)  # Borrado lógico.
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = orm_relationship("Profile")
    contract_template = orm_relationship("ContractTemplate")
    questionnaire_template = orm_relationship("QuestionnaireTemplate")
    links = orm_relationship(
        "ClientLink", cascade="all, delete-orphan", back_populates="client", order_by="ClientLink.created_at.desc()"
    )
    documents = orm_relationship(
        "ClientDocument", cascade="all, delete-orphan", back_populates="client", order_by="ClientDocument.uploaded_at.desc()"
    )
    answers = orm_relationship("ClientAnswer", cascade="all, delete-orphan", back_populates="client")


# 🔗 ENLACES MÁGICOS (TABLA 'client_links')
# ---------------------------------------------------------------------------------
class ClientLink(Base):
    __tablename__ = "client_links"

    id = Column(String(36), primary_key=True, default=_uuid)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), index=True, nullable=False)
    magic_link_token = Column(String(128), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    access_count = Column(Integer, default=0, nullable=False)
    last_accessed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    client = orm_relationship("Client", back_populates="links")


# 📎 DOCUMENTOS DEL CLIENTE (TABLA 'client_documents')
# ---------------------------------------------------------------------------------
class ClientDocument(Base):
    __tablename__ = "client_documents"

    id = Column(String(36), primary_key=True, default=_uuid)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), index=True, nullable=False)
    document_type = Column(String(160), nullable=False)
    file_url = Column(String(500), nullable=False)
    file_name = Column(String(255), nullable=True)
    file_size_bytes = Column(Integer, default=0, nullable=False)
    content_type = Column(String(120), nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    client = orm_relationship("Client", back_populates="documents")


# 💬 RESPUESTAS AL CUESTIONARIO (TABLA 'client_answers')
# ---------------------------------------------------------------------------------
class ClientAnswer(Base):
    __tablename__ = "client_answers"

    id = Column(String(36), primary_key=True, default=_uuid)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), index=True, nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
    answer_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    client = orm_relationship("Client", back_populates="answers")
    question = orm_relationship("Question", lazy="joined")


# 🧾 AUDITORÍA (TABLA 'audit_logs')
# ---------------------------------------------------------------------------------
class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=True)
    user_id = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), index=True, nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="SET NULL"), index=True, nullable=True)
    action = Column(String(64), index=True, nullable=False)
    resource_type = Column(String(64), nullable=True)
    resource_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True, nullable=False)

    user = orm_relationship("Profile", lazy="joined")


# 📬 NOTIFICACIONES POR EMAIL (TABLA 'email_notifications')
# ---------------------------------------------------------------------------------
class EmailNotification(Base):
    __tablename__ = "email_notifications"

    id = Column(String(36), primary_key=True, default=_uuid)
    organization_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), index=True, nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="SET NULL"), index=True, nullable=True)
    type = Column(String(32), nullable=False)  # sala_link | invitation | sala_completed
    recipient_email = Column(String(254), nullable=False)
    status = Column(SQLAlchemyEnum(NotificationStatus), default=NotificationStatus.pending, nullable=False)
    error_message = Column(String(500), nullable=True)
    sent_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

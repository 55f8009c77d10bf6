"""initial schema: organizations, profiles, invitations, templates, salas, audit

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_ROLE = sa.Enum("super_admin", "admin", "lawyer", "collaborator", name="userrole")
USER_STATUS = sa.Enum("active", "suspended", "pending", "deleted", name="userstatus")
SUBSCRIPTION_PLAN = sa.Enum("free", "professional", "enterprise", name="subscriptionplan")
THEME_MODE = sa.Enum("light", "dark", name="thememode")
CLIENT_STATUS = sa.Enum("pending", "completed", name="clientstatus")
NOTIFICATION_STATUS = sa.Enum("pending", "sent", "failed", name="notificationstatus")


def upgrade() -> None:
    """Create every table of the initial schema."""
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("slug", sa.String(length=180), nullable=False),
        sa.Column("owner_id", sa.String(length=36), nullable=True),
        sa.Column("tax_id", sa.String(length=32), nullable=True),
        sa.Column("billing_address", sa.String(length=300), nullable=True),
        sa.Column("logo_url", sa.String(length=500), nullable=True),
        sa.Column("primary_color", sa.String(length=7), nullable=True),
        sa.Column("secondary_color", sa.String(length=7), nullable=True),
        sa.Column("subscription_plan", SUBSCRIPTION_PLAN, nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=254), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=160), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("license_number", sa.String(length=64), nullable=True),
        sa.Column("firm_name", sa.String(length=160), nullable=True),
        sa.Column("firm_logo_url", sa.String(length=500), nullable=True),
        sa.Column("calendar_link", sa.String(length=500), nullable=True),
        sa.Column("theme_mode", THEME_MODE, nullable=False),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("role", USER_ROLE, nullable=False),
        sa.Column("status", USER_STATUS, nullable=False),
        sa.Column("approved_by", sa.String(length=36), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("onboarding_completed", sa.Boolean(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)
    op.create_index("ix_profiles_organization_id", "profiles", ["organization_id"])

    op.create_table(
        "invitations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(length=254), nullable=False),
        sa.Column("role", USER_ROLE, nullable=False),
        sa.Column("invited_by", sa.String(length=36), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("invitation_token", sa.String(length=128), nullable=False),
        sa.Column("invited_email_match_required", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_invitations_organization_id", "invitations", ["organization_id"])
    op.create_index("ix_invitations_email", "invitations", ["email"])
    op.create_index("ix_invitations_invitation_token", "invitations", ["invitation_token"], unique=True)

    op.create_table(
        "contract_templates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("file_url", sa.String(length=500), nullable=False),
        sa.Column("file_size_bytes", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_contract_templates_user_id", "contract_templates", ["user_id"])
    op.create_index("ix_contract_templates_organization_id", "contract_templates", ["organization_id"])

    op.create_table(
        "questionnaire_templates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_questionnaire_templates_user_id", "questionnaire_templates", ["user_id"])
    op.create_index("ix_questionnaire_templates_organization_id", "questionnaire_templates", ["organization_id"])

    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "questionnaire_template_id",
            sa.String(length=36),
            sa.ForeignKey("questionnaire_templates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
    )
    op.create_index("ix_questions_questionnaire_template_id", "questions", ["questionnaire_template_id"])

    op.create_table(
        "clients",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("client_name", sa.String(length=160), nullable=False),
        sa.Column("client_email", sa.String(length=254), nullable=False),
        sa.Column("case_name", sa.String(length=200), nullable=False),
        sa.Column("custom_message", sa.Text(), nullable=True),
        sa.Column("expiration_days", sa.Integer(), nullable=False),
        sa.Column(
            "contract_template_id",
            sa.String(length=36),
            sa.ForeignKey("contract_templates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "questionnaire_template_id",
            sa.String(length=36),
            sa.ForeignKey("questionnaire_templates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("required_documents", sa.JSON(), nullable=False),
        sa.Column("status", CLIENT_STATUS, nullable=False),
        sa.Column("consent_accepted_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("link_used", sa.Boolean(), nullable=False),
        sa.Column("signature_data", sa.Text(), nullable=True),
        sa.Column("signature_hash", sa.String(length=64), nullable=True),
        sa.Column("signature_ip", sa.String(length=64), nullable=True),
        sa.Column("signature_timestamp", sa.DateTime(), nullable=True),
        sa.Column("signed_name", sa.String(length=160), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("expiration_days > 0", name="ck_clients_expiration_days_positive"),
    )
    op.create_index("ix_clients_user_id", "clients", ["user_id"])
    op.create_index("ix_clients_organization_id", "clients", ["organization_id"])
    op.create_index("ix_clients_client_email", "clients", ["client_email"])
    op.create_index("ix_clients_org_status", "clients", ["organization_id", "status"])

    op.create_table(
        "client_links",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("magic_link_token", sa.String(length=128), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("access_count", sa.Integer(), nullable=False),
        sa.Column("last_accessed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_client_links_client_id", "client_links", ["client_id"])
    op.create_index("ix_client_links_magic_link_token", "client_links", ["magic_link_token"], unique=True)

    op.create_table(
        "client_documents",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("document_type", sa.String(length=160), nullable=False),
        sa.Column("file_url", sa.String(length=500), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("file_size_bytes", sa.Integer(), nullable=False),
        sa.Column("content_type", sa.String(length=120), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_client_documents_client_id", "client_documents", ["client_id"])

    op.create_table(
        "client_answers",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("question_id", sa.String(length=36), sa.ForeignKey("questions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("answer_text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_client_answers_client_id", "client_answers", ["client_id"])
    op.create_index("ix_client_answers_question_id", "client_answers", ["question_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("resource_type", sa.String(length=64), nullable=True),
        sa.Column("resource_id", sa.String(length=36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_logs_organization_id", "audit_logs", ["organization_id"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_client_id", "audit_logs", ["client_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    op.create_table(
        "email_notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("organization_id", sa.String(length=36), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("recipient_email", sa.String(length=254), nullable=False),
        sa.Column("status", NOTIFICATION_STATUS, nullable=False),
        sa.Column("error_message", sa.String(length=500), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("failed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_email_notifications_organization_id", "email_notifications", ["organization_id"])
    op.create_index("ix_email_notifications_client_id", "email_notifications", ["client_id"])


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    for table in (
        "email_notifications",
        "audit_logs",
        "client_answers",
        "client_documents",
        "client_links",
        "clients",
        "questions",
        "questionnaire_templates",
        "contract_templates",
        "invitations",
        "profiles",
        "organizations",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum in (NOTIFICATION_STATUS, CLIENT_STATUS, THEME_MODE, SUBSCRIPTION_PLAN, USER_STATUS, USER_ROLE):
        enum.drop(bind, checkfirst=True)

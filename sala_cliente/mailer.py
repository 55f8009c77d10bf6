# sala_cliente/mailer.py  # Envío de correos transaccionales.                       # Nombre y ubicación del módulo.

# =================================================================================
# 📧 MÓDULO DE ENVÍO DE CORREOS (texto + HTML)
# ---------------------------------------------------------------------------------
# Centraliza el envío por SendGrid o Gmail (conmutables con EMAIL_PROVIDER),
# las plantillas de los tres correos del producto y el registro de cada envío
# en la tabla email_notifications. Con DRY_RUN=1 solo se loguea.
# =================================================================================

# 🐍 Importaciones
import os                                                                              # Variables de entorno (.env).
import html                                                                            # Escape de valores libres en HTML.
import smtplib                                                                         # Envío SMTP (Gmail).
from datetime import datetime                                                          # Fechas de expiración y sellos.
from email.mime.text import MIMEText                                                   # Partes de texto/HTML.
from email.mime.multipart import MIMEMultipart                                         # Contenedor del mensaje.
from typing import Callable, Optional                                                  # Tipado.

import requests                                                                        # HTTP para el webhook de alertas.
from loguru import logger                                                              # Logger estructurado.
from sendgrid import SendGridAPIClient                                                 # Cliente oficial de SendGrid.
from sendgrid.helpers.mail import Mail, From                                           # Construcción del mensaje.
from sqlalchemy.orm import Session                                                     # Sesión para registrar el envío.

from sala_cliente import models                                                        # EmailNotification.
from sala_cliente.utils.request_meta import mask_email                                 # Emails enmascarados en logs.

# =================================================================================
# ✅ Configuración
# ---------------------------------------------------------------------------------
# Las credenciales solo se validan si DRY_RUN=0 (evita fallos en dev/CI).
# =================================================================================
DRY_RUN = os.getenv("DRY_RUN", "1") == "1"
FROM_EMAIL = os.getenv("EMAIL_FROM", "")
EMAIL_SENDER_NAME = os.getenv("EMAIL_SENDER_NAME", "Sala Cliente")
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_TIMEOUT = float(os.getenv("SMTP_TIMEOUT", "20"))

if not DRY_RUN:
    provider_now = os.getenv("EMAIL_PROVIDER", "sendgrid").lower()
    if provider_now == "sendgrid":
        if not os.getenv("SENDGRID_API_KEY") or not FROM_EMAIL:
            raise RuntimeError("Faltan SENDGRID_API_KEY o EMAIL_FROM para envíos reales con SendGrid.")
    elif provider_now == "gmail":
        if not os.getenv("EMAIL_USER", "") or not os.getenv("EMAIL_PASS", ""):
            raise RuntimeError("Faltan EMAIL_USER o EMAIL_PASS para envíos reales con Gmail.")
        if not FROM_EMAIL:
            FROM_EMAIL = os.getenv("EMAIL_USER", "")
    else:
        raise RuntimeError(f"EMAIL_PROVIDER desconocido: {provider_now}")

# =================================================================================
# 📢 Webhook de alertas (opcional)
# =================================================================================
def send_alert_webhook(title: str, message: str) -> None:                             # Notifica errores por webhook.
    """Envía alerta a ALERT_WEBHOOK_URL si está definido; silencioso si no."""
    url = os.getenv("ALERT_WEBHOOK_URL")                                              # URL del webhook.
    if not url:                                                                       # Sin URL no hay alerta.
        return
    try:
        requests.post(url, json={"text": f"{title}\n{message}"}, timeout=5)           # Payload compatible Slack/Teams.
    except requests.RequestException as e:                                            # Fallo de red del webhook.
        logger.error("No se pudo notificar alerta por webhook: {}", e)

# =================================================================================
# 🗓️ Fechas legibles en español (sin depender del locale del sistema)
# =================================================================================
_MONTHS_ES = ["enero", "febrero", "marzo", "abril", "mayo", "junio", "julio", "agosto",
              "septiembre", "octubre", "noviembre", "diciembre"]

def format_date_es(dt: datetime) -> str:                                              # '12 de mayo de 2026'.
    return f"{dt.day} de {_MONTHS_ES[dt.month - 1]} de {dt.year}"

_ROLE_LABELS = {"lawyer": "abogado", "collaborator": "colaborador", "admin": "administrador"}

# =================================================================================
# 🧾 Plantillas
# =================================================================================
SUBJECTS = {
    "sala_link": "{firm}: tu sala para el caso {case}",
    "invitation": "Te invitaron a unirte a {org} en Sala Cliente",
    "sala_completed": "✅ {client} completó su sala ({case})",
}

TEXT_TEMPLATES = {
    "sala_link": (
        "Hola {client},\n\n"
        "{firm} preparó una sala para tu caso \"{case}\".\n"
        "{message}"
        "Entra aquí para revisar y completar la información:\n{url}\n\n"
        "El enlace vence el {expires}.\n"
    ),
    "invitation": (
        "Hola,\n\n"
        "{inviter} te invitó a unirte a {org} como {role}.\n"
        "Crea tu cuenta desde este enlace:\n{url}\n\n"
        "La invitación vence el {expires}.\n"
    ),
    "sala_completed": (
        "Hola {lawyer},\n\n"
        "{client} completó su sala del caso \"{case}\".\n"
        "Ya puedes revisar firma, documentos y respuestas en tu panel.\n"
    ),
}

_HTML_SHELL = """<!doctype html>
<html lang="es"><body style="font-family:Arial,sans-serif;color:#1f2937;">
<div style="max-width:560px;margin:0 auto;padding:24px;">
{body}
<p style="color:#6b7280;font-size:12px;margin-top:32px;">Enviado con Sala Cliente.</p>
</div></body></html>"""

def _cta_html(url: str, label: str) -> str:
    safe = html.escape(url, quote=True)
    return (f'<p><a href="{safe}" style="background:#111827;color:#fff;padding:12px 20px;'
            f'border-radius:6px;text-decoration:none;">{html.escape(label)}</a></p>')

# =================================================================================
# ✉️ Motor Gmail SMTP
# =================================================================================
def _send_via_gmail(to_email: str, subject: str, html_body: str, text_body: str) -> bool:
    if os.getenv("DRY_RUN", "1") == "1":                                              # DRY_RUN evaluado en runtime.
        logger.info("[DRY_RUN] (Gmail) Simular envío a {} | Asunto: {}", mask_email(to_email), subject)
        return True
    user = os.getenv("EMAIL_USER", "")
    password = os.getenv("EMAIL_PASS", "")
    msg = MIMEMultipart("alternative")                                                # Texto + HTML.
    msg["Subject"] = subject
    msg["From"] = f"{EMAIL_SENDER_NAME} <{FROM_EMAIL or user}>"
    msg["To"] = to_email
    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=SMTP_TIMEOUT) as server:
            server.starttls()
            server.login(user, password)
            server.sendmail(FROM_EMAIL or user, [to_email], msg.as_string())
        logger.info("Gmail SMTP → enviado a {}", mask_email(to_email))
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.exception("Gmail SMTP → excepción enviando a {}: {}", mask_email(to_email), e)
        send_alert_webhook("🚨 Mailer error (Gmail)", f"No se pudo enviar a {to_email}. Error: {e}")
        return False

# =================================================================================
# ✉️ Envío de emails - ROUTER de proveedor
# =================================================================================
def send_email_html(to_email: str, subject: str, html_body: str, text_fallback: str = "") -> bool:
    """Envía correo HTML (con texto alternativo) por el proveedor configurado."""
    provider = os.getenv("EMAIL_PROVIDER", "sendgrid").lower()

    if provider == "gmail":
        return _send_via_gmail(to_email, subject, html_body, text_fallback)

    dry_run_now = os.getenv("DRY_RUN", "1") == "1"
    from_email_now = os.getenv("EMAIL_FROM", "")
    api_key_now = os.getenv("SENDGRID_API_KEY", "")

    logger.debug("Mailer check (SendGrid) -> DRY_RUN={} | FROM={} | SG_KEY_SET={}",
                 dry_run_now, from_email_now, bool(api_key_now))
    if dry_run_now:
        logger.info("[DRY_RUN] Simular envío a {} | Asunto: {}", mask_email(to_email), subject)
        return True
    if not from_email_now or not api_key_now:
        logger.error("Config de mailer incompleta (SendGrid): EMAIL_FROM o SENDGRID_API_KEY ausentes.")
        send_alert_webhook("🚨 Mailer config (SendGrid)", "Falta EMAIL_FROM o SENDGRID_API_KEY (modo real).")
        return False

    message = Mail(
        from_email=From(from_email_now, EMAIL_SENDER_NAME),
        to_emails=to_email,
        subject=subject,
        plain_text_content=(text_fallback or "Este correo se ve mejor en un cliente compatible con HTML."),
        html_content=html_body,
    )
    try:
        response = SendGridAPIClient(api_key_now).send(message)
        logger.info("SendGrid response: {} | X-Message-Id: {}",
                    response.status_code, response.headers.get("X-Message-Id"))
        if 200 <= response.status_code < 300:
            return True
        logger.error("SendGrid error -> status={} | body={}", response.status_code, getattr(response, "body", None))
        send_alert_webhook("🚨 Mailer error (SendGrid)", f"No se pudo enviar a {to_email}. Código: {response.status_code}.")
        return False
    except Exception as e:  # python-http-client lanza HTTPError propios según el código de respuesta.
        logger.exception("Excepción enviando con SendGrid a {}: {}", mask_email(to_email), e)
        send_alert_webhook("🚨 Mailer exception (SendGrid)", f"Excepción enviando a {to_email}. Error: {e}")
        return False

# =================================================================================
# 🧩 Helpers de alto nivel
# =================================================================================
def send_sala_link_email(to_email: str, client_name: str, firm_name: str, case_name: str,
                         url: str, expires_at: datetime, custom_message: Optional[str] = None) -> bool:
    """Envía al cliente el enlace mágico de su sala."""
    expires = format_date_es(expires_at)
    message_line = f"\n{custom_message.strip()}\n\n" if custom_message and custom_message.strip() else "\n"
    text = TEXT_TEMPLATES["sala_link"].format(client=client_name, firm=firm_name, case=case_name,
                                              message=message_line, url=url, expires=expires)
    body = (
        f"<p>Hola {html.escape(client_name)},</p>"
        f"<p><strong>{html.escape(firm_name)}</strong> preparó una sala para tu caso "
        f"<em>{html.escape(case_name)}</em>.</p>"
        + (f"<blockquote>{html.escape(custom_message.strip())}</blockquote>" if custom_message and custom_message.strip() else "")
        + _cta_html(url, "Entrar a mi sala")
        + f"<p>El enlace vence el {html.escape(expires)}.</p>"
    )
    subject = SUBJECTS["sala_link"].format(firm=firm_name, case=case_name)
    return send_email_html(to_email, subject, _HTML_SHELL.format(body=body), text)

def send_invitation_email(to_email: str, organization_name: str, inviter_name: str, role: str,
                          url: str, expires_at: datetime) -> bool:
    """Envía la invitación para unirse al despacho."""
    role_label = _ROLE_LABELS.get(role, role)
    expires = format_date_es(expires_at)
    text = TEXT_TEMPLATES["invitation"].format(inviter=inviter_name, org=organization_name,
                                               role=role_label, url=url, expires=expires)
    body = (
        f"<p>{html.escape(inviter_name)} te invitó a unirte a <strong>{html.escape(organization_name)}</strong> "
        f"como {html.escape(role_label)}.</p>"
        + _cta_html(url, "Crear mi cuenta")
        + f"<p>La invitación vence el {html.escape(expires)}.</p>"
    )
    subject = SUBJECTS["invitation"].format(org=organization_name)
    return send_email_html(to_email, subject, _HTML_SHELL.format(body=body), text)

def send_sala_completed_email(to_email: str, lawyer_name: str, client_name: str, case_name: str) -> bool:
    """Avisa al abogado de que el cliente terminó el flujo del portal."""
    text = TEXT_TEMPLATES["sala_completed"].format(lawyer=lawyer_name, client=client_name, case=case_name)
    body = (
        f"<p>Hola {html.escape(lawyer_name)},</p>"
        f"<p><strong>{html.escape(client_name)}</strong> completó su sala del caso "
        f"<em>{html.escape(case_name)}</em>.</p>"
    )
    subject = SUBJECTS["sala_completed"].format(client=client_name, case=case_name)
    return send_email_html(to_email, subject, _HTML_SHELL.format(body=body), text)

# =================================================================================
# 🗂️ Registro de envíos (email_notifications)
# =================================================================================
def notify(
    db: Session,
    *,
    type: str,
    recipient_email: str,
    send: Callable[[], bool],
    organization_id: Optional[str] = None,
    client_id: Optional[str] = None,
) -> models.EmailNotification:
    """
    Ejecuta `send` y deja constancia del resultado. Nunca propaga errores del
    proveedor: un fallo queda como status=failed con su mensaje.
    La fila se añade a la sesión; el commit lo hace quien llama.
    """
    notification = models.EmailNotification(
        organization_id=organization_id,
        client_id=client_id,
        type=type,
        recipient_email=recipient_email,
        status=models.NotificationStatus.pending,
    )
    try:
        ok = send()
        error = None if ok else "El proveedor rechazó el envío"
    except Exception as e:  # Plantillas o proveedor: el request no debe caer por un email.
        logger.exception("Error inesperado enviando '{}' a {}", type, mask_email(recipient_email))
        ok, error = False, str(e)[:500]

    now = datetime.utcnow()
    if ok:
        notification.status = models.NotificationStatus.sent
        notification.sent_at = now
    else:
        notification.status = models.NotificationStatus.failed
        notification.failed_at = now
        notification.error_message = error
        logger.warning("Email '{}' a {} marcado como fallido", type, mask_email(recipient_email))
    db.add(notification)
    return notification

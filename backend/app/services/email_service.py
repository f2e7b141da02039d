"""Outgoing email over SMTP.

When SMTP is not configured messages are logged instead of sent. Delivery
failures raise EmailDeliveryError in production and are only logged elsewhere.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from backend.app.core.settings import get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    pass


class EmailService:
    def __init__(self, settings=None):
        self.settings = settings or get_settings()

    def send(self, to: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        settings = self.settings
        if not settings.smtp_configured:
            logger.warning("Email simulation: To=%s, Subject=%s", to, subject)
            return False

        msg = MIMEMultipart("alternative")
        msg["From"] = settings.email_from
        msg["To"] = to
        msg["Subject"] = subject
        if text_body:
            msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as server:
                if settings.smtp_use_tls:
                    server.starttls()
                if settings.smtp_username:
                    server.login(settings.smtp_username, settings.smtp_password or "")
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s: %s", to, exc)
            if settings.is_production:
                raise EmailDeliveryError(str(exc)) from exc
            return False

        logger.info("Email sent to %s: %s", to, subject)
        return True

    def send_password_reset(self, to: str, first_name: str, token: str) -> bool:
        link = f"{self.settings.frontend_url}/reset-password?token={token}"
        html = (
            f"<p>Hola {first_name},</p>"
            f"<p>Recibimos una solicitud para restablecer tu contraseña.</p>"
            f'<p><a href="{link}">Restablecer contraseña</a></p>'
            "<p>El enlace vence en 1 hora.</p>"
        )
        text = f"Hola {first_name},\n\nRestablece tu contraseña aquí: {link}\n\nEl enlace vence en 1 hora."
        return self.send(to, "Restablecer contraseña - Centro Lúdico", html, text)

    def send_parent_invitation(self, to: str, first_name: str, student_name: str, token: str) -> bool:
        link = f"{self.settings.frontend_url}/reset-password?token={token}&invite=1"
        html = (
            f"<p>Hola {first_name},</p>"
            f"<p>{student_name} fue inscrito en Centro Lúdico.</p>"
            f'<p><a href="{link}">Crea tu contraseña</a> para acceder al portal de familias.</p>'
            "<p>La invitación vence en 24 horas.</p>"
        )
        text = (
            f"Hola {first_name},\n\n{student_name} fue inscrito en Centro Lúdico.\n"
            f"Crea tu contraseña aquí: {link}\n\nLa invitación vence en 24 horas."
        )
        return self.send(to, "Bienvenido a Centro Lúdico", html, text)


def get_email_service() -> EmailService:
    return EmailService()

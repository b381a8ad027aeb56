import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from marketplace.notifications.exceptions import EmailConfigurationException, EmailSendingException
from marketplace.notifications.sender import AbstractEmailSender

logger = logging.getLogger(__name__)


class SmtpEmailSender(AbstractEmailSender):
    """Envoi d'email via SMTP standard, exécuté hors de la boucle d'événements."""

    def __init__(self,
                 smtp_host: str,
                 smtp_port: int,
                 smtp_user: Optional[str],
                 smtp_password: Optional[str],
                 default_sender: Optional[str],
                 use_tls: bool = True,
                 timeout: float = 10.0):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.default_sender = default_sender
        self.use_tls = use_tls
        self.timeout = timeout

    def _build_message(self, sender: str, recipient_email: str, subject: str, html_content: str) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg["From"] = sender
        msg["To"] = recipient_email
        msg["Subject"] = subject
        msg.attach(MIMEText(html_content, "html"))
        return msg

    def _send_sync(self, sender: str, recipient_email: str, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.sendmail(sender, [recipient_email], msg.as_string())

    async def send_email(
        self,
        recipient_email: str,
        subject: str,
        html_content: str,
        sender_email: Optional[str] = None,
    ) -> bool:
        final_sender = sender_email or self.default_sender
        if not all([self.smtp_host, self.smtp_port, self.smtp_user, self.smtp_password, final_sender]):
            logger.error("[SmtpEmailSender] Configuration SMTP incomplète.")
            raise EmailConfigurationException("Configuration SMTP (host, port, user, password, sender) incomplète.")

        msg = self._build_message(final_sender, recipient_email, subject, html_content)
        try:
            logger.info(f"[SmtpEmailSender] Envoi de l'email à {recipient_email} (Sujet: {subject})")
            await asyncio.wait_for(
                asyncio.to_thread(self._send_sync, final_sender, recipient_email, msg),
                timeout=self.timeout,
            )
            logger.info(f"[SmtpEmailSender] Email envoyé avec succès à {recipient_email}")
            return True
        except smtplib.SMTPRecipientsRefused as e:
            logger.error(f"[SmtpEmailSender] Destinataire refusé: {recipient_email}. Détails: {e.recipients}")
            return False
        except smtplib.SMTPAuthenticationError as e:
            raise EmailSendingException("Échec authentification SMTP.", original_exception=e)
        except asyncio.TimeoutError as e:
            raise EmailSendingException(f"Délai de {self.timeout}s dépassé.", original_exception=e)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailSendingException(f"Erreur SMTP: {e}", original_exception=e)

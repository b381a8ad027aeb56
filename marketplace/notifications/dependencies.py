from typing import Annotated

from fastapi import Depends

from marketplace.config import settings
from marketplace.notifications.sender import AbstractEmailSender
from marketplace.notifications.service import NotificationService
from marketplace.notifications.smtp_sender import SmtpEmailSender
from marketplace.users.dependencies import UserRepositoryDep


def get_email_sender() -> AbstractEmailSender:
    """Fournit l'implémentation SMTP configurée par les variables d'environnement."""
    return SmtpEmailSender(
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SENDER_EMAIL,
        smtp_password=settings.SENDER_PASSWORD,
        default_sender=settings.SENDER_EMAIL,
        use_tls=settings.SMTP_USE_TLS,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )


EmailSenderDep = Annotated[AbstractEmailSender, Depends(get_email_sender)]


def get_notification_service(
    email_sender: EmailSenderDep,
    user_repository: UserRepositoryDep,
) -> NotificationService:
    return NotificationService(email_sender=email_sender, user_repository=user_repository)


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]

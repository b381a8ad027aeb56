import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import jinja2

from marketplace.notifications.exceptions import (
    NotificationDomainException,
    UnknownNotificationTemplateException,
)
from marketplace.notifications.sender import AbstractEmailSender
from marketplace.users.interfaces.repositories import AbstractUserRepository
from marketplace.users.models import NotificationType

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=jinja2.select_autoescape(['html', 'xml']),
)


@dataclass(frozen=True)
class NotificationTemplate:
    file_name: str
    subject: str
    message: str
    type: NotificationType


# `subject` et `message` sont formatés avec les données de l'événement
NOTIFICATION_TEMPLATES: Dict[str, NotificationTemplate] = {
    "order_confirmation": NotificationTemplate(
        "order_confirmation.html",
        "Confirmation de votre commande #{order_id}",
        "Votre commande #{order_id} a bien été enregistrée.",
        NotificationType.ORDER,
    ),
    "order_status_update": NotificationTemplate(
        "order_status_update.html",
        "Mise à jour de votre commande #{order_id}",
        "Votre commande #{order_id} est maintenant: {status}.",
        NotificationType.ORDER,
    ),
    "order_cancelled": NotificationTemplate(
        "order_cancelled.html",
        "Annulation de votre commande #{order_id}",
        "Votre commande #{order_id} a été annulée ({actor_role}).",
        NotificationType.ORDER,
    ),
    "payment_confirmed": NotificationTemplate(
        "order_status_update.html",
        "Paiement reçu pour votre commande #{order_id}",
        "Le paiement de votre commande #{order_id} a été confirmé.",
        NotificationType.PAYMENT,
    ),
}


class NotificationService:
    """Émission des notifications client: enregistrement in-app et email.

    Tout est best-effort: aucune erreur n'est propagée à l'appelant. La
    notification in-app est ajoutée à la session courante, le commit revient
    au service appelant.
    """

    def __init__(self, email_sender: AbstractEmailSender, user_repository: AbstractUserRepository):
        self.email_sender = email_sender
        self.user_repository = user_repository

    def _render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        template = env.get_template(template_name)
        return template.render(context)

    async def send_notification(self, user_id: int, template: str, data: Dict[str, Any]) -> bool:
        """Notifie un utilisateur. Retourne True si un email a été envoyé."""
        definition = NOTIFICATION_TEMPLATES.get(template)
        if definition is None:
            logger.error(f"[NotificationService] {UnknownNotificationTemplateException(template)}")
            return False

        user = await self.user_repository.get_by_id(user_id)
        if user is None:
            logger.warning(f"[NotificationService] Utilisateur {user_id} introuvable, notification '{template}' ignorée.")
            return False

        await self.user_repository.add_notification(
            user_id=user.id, message=definition.message.format(**data), type=definition.type
        )

        if not user.email_notifications:
            logger.debug(f"[NotificationService] Emails désactivés pour l'utilisateur {user.id}.")
            return False

        subject = definition.subject.format(**data)
        try:
            html_content = self._render_template(definition.file_name, {**data, "user_name": user.name})
            success = await self.email_sender.send_email(
                recipient_email=user.email,
                subject=subject,
                html_content=html_content,
            )
        except jinja2.TemplateError as e:
            logger.error(f"[NotificationService] Erreur rendu template {definition.file_name}: {e}", exc_info=True)
            return False
        except NotificationDomainException as e:
            logger.error(f"[NotificationService] Échec envoi '{template}' à {user.email}: {e}")
            return False
        except Exception as e:
            # La notification in-app reste dans la session même si l'expéditeur plante
            logger.error(f"[NotificationService] Erreur inattendue envoi '{template}' à {user.email}: {e}", exc_info=True)
            return False

        if success:
            logger.info(f"[NotificationService] Email '{template}' envoyé à {user.email}")
        else:
            logger.warning(f"[NotificationService] L'envoi de l'email '{template}' a échoué pour {user.email}")
        return success

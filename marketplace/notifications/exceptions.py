"""Exceptions spécifiques au domaine Notification."""
from typing import Optional


class NotificationDomainException(Exception):
    """Classe de base pour les exceptions du domaine Notification."""
    pass


class EmailSendingException(NotificationDomainException):
    """Levée lorsqu'une erreur survient pendant l'envoi d'un email."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        full_message = f"Erreur lors de l'envoi de l'email: {message}"
        if original_exception:
            full_message += f" (Erreur originale: {original_exception})"
        super().__init__(full_message)
        self.original_exception = original_exception


class EmailConfigurationException(NotificationDomainException):
    """Levée si la configuration SMTP est incomplète."""
    pass


class UnknownNotificationTemplateException(NotificationDomainException):
    def __init__(self, template: str):
        super().__init__(f"Modèle de notification inconnu: {template}")
        self.template = template

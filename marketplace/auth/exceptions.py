from marketplace.core.exceptions import ForbiddenError, UnauthorizedError


class TokenMissingException(UnauthorizedError):
    def __init__(self):
        super().__init__("Authentification requise.")


class TokenInvalidException(UnauthorizedError):
    def __init__(self):
        super().__init__("Token invalide ou expiré.")


class PermissionDeniedException(ForbiddenError):
    def __init__(self, message: str = "Vous n'avez pas les permissions nécessaires."):
        super().__init__(message)

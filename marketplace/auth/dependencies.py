"""
Dépendances FastAPI pour l'authentification.

Fournit:
- L'extraction du token (en-tête Bearer ou cookie)
- L'obtention de l'utilisateur courant à partir du token JWT
- Les vérifications de rôle vendeur et admin
"""
import logging
from typing import Annotated, Optional

from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace.auth.exceptions import (
    PermissionDeniedException,
    TokenInvalidException,
    TokenMissingException,
)
from marketplace.auth.security import decode_access_token
from marketplace.config import settings
from marketplace.users.dependencies import UserRepositoryDep
from marketplace.users.models import UserRead, UserRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_token(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    access_token: Annotated[Optional[str], Cookie(alias=settings.ACCESS_TOKEN_COOKIE_NAME)] = None,
) -> str:
    """Retourne le token de l'en-tête Authorization, sinon celui du cookie."""
    if credentials is not None:
        return credentials.credentials
    if access_token:
        return access_token
    logger.warning("Token manquant dans la requête.")
    raise TokenMissingException()


async def get_current_user(
    token: Annotated[str, Depends(get_token)],
    user_repository: UserRepositoryDep,
) -> UserRead:
    user_id = decode_access_token(token)
    if user_id is None:
        raise TokenInvalidException()

    user = await user_repository.get_by_id(user_id)
    if user is None:
        logger.warning(f"Token valide mais utilisateur {user_id} introuvable.")
        raise TokenInvalidException()

    logger.debug(f"Utilisateur authentifié: ID {user.id} ({user.role.value})")
    return user


async def get_current_vendor(
    current_user: Annotated[UserRead, Depends(get_current_user)]
) -> UserRead:
    if current_user.role != UserRole.VENDOR:
        logger.warning(f"Accès vendeur refusé pour l'utilisateur {current_user.id}.")
        raise PermissionDeniedException("Accès réservé aux vendeurs.")
    return current_user


async def get_current_admin_user(
    current_user: Annotated[UserRead, Depends(get_current_user)]
) -> UserRead:
    if current_user.role != UserRole.ADMIN:
        logger.warning(f"Accès admin refusé pour l'utilisateur {current_user.id}.")
        raise PermissionDeniedException("Accès réservé aux administrateurs.")
    return current_user


CurrentUser = Annotated[UserRead, Depends(get_current_user)]
CurrentVendor = Annotated[UserRead, Depends(get_current_vendor)]
CurrentAdmin = Annotated[UserRead, Depends(get_current_admin_user)]

"""
Création et décodage des tokens JWT.

L'émission des tokens (login) est assurée par le service d'identité; ce module
ne sert qu'à vérifier les tokens reçus et à en produire pour les outils internes.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from marketplace.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Crée un token JWT avec les données fournies et une expiration."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[int]:
    """Décode un token JWT et retourne l'ID utilisateur ('sub') ou None si invalide/expiré."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Erreur de décodage JWT: {e}")
        return None

    user_id_str: Optional[str] = payload.get("sub")
    if user_id_str is None:
        logger.warning("Token JWT décodé mais sans champ 'sub' (user_id).")
        return None
    try:
        return int(user_id_str)
    except ValueError:
        logger.warning(f"Le champ 'sub' dans le token n'est pas un entier valide: '{user_id_str}'")
        return None

import logging
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db_session
from marketplace.users.interfaces.repositories import AbstractUserRepository
from marketplace.users.repositories import SQLAlchemyUserRepository

logger = logging.getLogger(__name__)

DbSessionDep = Annotated[AsyncSession, Depends(get_db_session)]


def get_user_repository(session: DbSessionDep) -> AbstractUserRepository:
    """Fournit une instance du repository utilisateur."""
    logger.debug("Fourniture de SQLAlchemyUserRepository")
    return SQLAlchemyUserRepository(db_session=session)


UserRepositoryDep = Annotated[AbstractUserRepository, Depends(get_user_repository)]

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from marketplace.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO_LOG,
    future=True,
)

# Empêche les objets d'expirer après commit
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

logger.info("Moteur et Session Factory SQLAlchemy Async configurés.")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dépendance FastAPI fournissant une session de base de données asynchrone.

    Les commits sont gérés par les services pour contrôler les transactions.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Erreur durant la session DB, rollback: {e}", exc_info=True)
            await session.rollback()
            raise
        finally:
            await session.close()
            logger.debug("Session DB fermée.")


async def create_tables():
    """Crée toutes les tables déclarées dans SQLModel.metadata."""
    # Importer les modèles pour qu'ils soient enregistrés dans les métadonnées
    import marketplace.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

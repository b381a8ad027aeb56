from typing import Annotated

from fastapi import Depends

from marketplace.catalog.interfaces.repositories import AbstractCatalogRepository
from marketplace.catalog.repositories import SQLAlchemyCatalogRepository
from marketplace.users.dependencies import DbSessionDep


def get_catalog_repository(session: DbSessionDep) -> AbstractCatalogRepository:
    return SQLAlchemyCatalogRepository(db_session=session)


CatalogRepositoryDep = Annotated[AbstractCatalogRepository, Depends(get_catalog_repository)]

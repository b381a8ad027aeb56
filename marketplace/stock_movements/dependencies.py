from typing import Annotated

from fastapi import Depends

from marketplace.catalog.dependencies import CatalogRepositoryDep
from marketplace.stock_movements.repositories import StockMovementRepository
from marketplace.stock_movements.service import StockMovementService
from marketplace.users.dependencies import DbSessionDep


def get_stock_movement_service(session: DbSessionDep, catalog_repository: CatalogRepositoryDep) -> StockMovementService:
    return StockMovementService(
        db=session,
        catalog_repository=catalog_repository,
        movement_repository=StockMovementRepository(session),
    )


StockMovementServiceDep = Annotated[StockMovementService, Depends(get_stock_movement_service)]

import logging
from typing import Optional

from fastcrud import FastCRUD
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.addresses.interfaces.repositories import AbstractAddressRepository
from marketplace.addresses.models import Address, AddressRead

logger = logging.getLogger(__name__)


class AddressSQLRepository(AbstractAddressRepository):

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.crud = FastCRUD(Address)

    async def get_by_id(self, address_id: int) -> Optional[AddressRead]:
        return await self.crud.get(
            db=self.db, schema_to_select=AddressRead, return_as_model=True, id=address_id
        )

    async def set_coordinates(self, address_id: int, latitude: float, longitude: float) -> None:
        logger.debug(f"[AddressRepository] Coordonnées de l'adresse {address_id}: ({latitude}, {longitude})")
        stmt = (
            update(Address)
            .where(Address.id == address_id)
            .values(latitude=latitude, longitude=longitude)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

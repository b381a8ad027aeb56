from typing import Annotated

from fastapi import Depends

from marketplace.addresses.interfaces.repositories import AbstractAddressRepository
from marketplace.addresses.repositories import AddressSQLRepository
from marketplace.users.dependencies import DbSessionDep


def get_address_repository(session: DbSessionDep) -> AbstractAddressRepository:
    return AddressSQLRepository(db_session=session)


AddressRepositoryDep = Annotated[AbstractAddressRepository, Depends(get_address_repository)]

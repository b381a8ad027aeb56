from abc import ABC, abstractmethod
from typing import Optional

from marketplace.addresses.models import AddressRead


class AbstractAddressRepository(ABC):

    @abstractmethod
    async def get_by_id(self, address_id: int) -> Optional[AddressRead]:
        raise NotImplementedError

    @abstractmethod
    async def set_coordinates(self, address_id: int, latitude: float, longitude: float) -> None:
        raise NotImplementedError

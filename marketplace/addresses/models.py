from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from marketplace.core.utils import utcnow


class AddressBase(SQLModel):
    street: str = Field(max_length=255)
    village: Optional[str] = Field(default=None, max_length=255)
    district: str = Field(max_length=255)
    state: str = Field(max_length=255)
    pincode: str = Field(max_length=20)
    phone: Optional[str] = Field(default=None, max_length=30)


class Address(AddressBase, table=True):
    """Adresse de livraison enregistrée par un utilisateur.

    Les coordonnées restent nulles tant que l'adresse n'a pas été géocodée.
    """
    __tablename__ = "addresses"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    latitude: Optional[float] = Field(default=None)
    longitude: Optional[float] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)


class AddressRead(AddressBase):
    id: int
    user_id: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        # (0, 0) est la valeur renvoyée par le géocodeur en cas d'échec
        if self.latitude is None or self.longitude is None:
            return False
        return not (self.latitude == 0 and self.longitude == 0)

    def one_line(self) -> str:
        parts = [self.street, self.village, self.district, self.state, self.pincode]
        return ", ".join(part for part in parts if part)

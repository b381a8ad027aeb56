from typing import Annotated

from fastapi import Depends

from marketplace.config import settings
from marketplace.geo.geocoder import AbstractGeocoder, GoogleGeocoder


def get_geocoder() -> AbstractGeocoder:
    return GoogleGeocoder(
        api_key=settings.GOOGLE_MAPS_API_KEY,
        api_url=settings.GEOCODING_API_URL,
        timeout=settings.GEOCODING_TIMEOUT_SECONDS,
    )


GeocoderDep = Annotated[AbstractGeocoder, Depends(get_geocoder)]

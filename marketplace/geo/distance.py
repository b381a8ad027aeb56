import math

EARTH_RADIUS_METERS = 6371000


def haversine_distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> int:
    """Distance à vol d'oiseau entre deux points, arrondie au mètre."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_METERS * c)

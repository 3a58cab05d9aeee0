"""Great-circle distance between coordinates (WGS84, spherical Earth)."""
import math

from docreach.core.errors import InvalidLocationError

EARTH_RADIUS_KM = 6371.0


def validate_coordinates(lat: float, lon: float) -> None:
    """Raise InvalidLocationError unless lat in [-90, 90] and lon in [-180, 180]."""
    if lat is None or lon is None:
        raise InvalidLocationError(lat, lon)
    if math.isnan(lat) or math.isnan(lon):
        raise InvalidLocationError(lat, lon)
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
        raise InvalidLocationError(lat, lon)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in km between two points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    # clamp: rounding can push a a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c

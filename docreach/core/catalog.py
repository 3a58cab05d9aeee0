"""
Static specialty tables used by matching. Kept as read-only data so categories and
specialties can be extended here without touching ranking code.
"""
import enum
from types import MappingProxyType
from typing import FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union


class EmergencyCategory(str, enum.Enum):
    CARDIAC = "Cardiac"
    TRAUMA = "Trauma"
    RESPIRATORY = "Respiratory"
    NEUROLOGICAL = "Neurological"
    PEDIATRIC = "Pediatric"
    GENERAL = "General"


# Category -> specialties that can take the case
EMERGENCY_CATEGORY_SPECIALTIES: Mapping[EmergencyCategory, Tuple[str, ...]] = MappingProxyType({
    EmergencyCategory.CARDIAC: ("Cardiology", "Emergency Medicine", "Internal Medicine"),
    EmergencyCategory.TRAUMA: ("Emergency Medicine", "General Surgery", "Orthopedics"),
    EmergencyCategory.RESPIRATORY: ("Pulmonology", "Emergency Medicine", "Internal Medicine"),
    EmergencyCategory.NEUROLOGICAL: ("Neurology", "Emergency Medicine", "Neurosurgery"),
    EmergencyCategory.PEDIATRIC: ("Pediatrics", "Emergency Medicine"),
    EmergencyCategory.GENERAL: ("Emergency Medicine", "Family Medicine", "Internal Medicine"),
})

# Shown by GET /emergency/types. recommended_specialties is advice, not the match filter
EMERGENCY_CATEGORY_INFO: Mapping[EmergencyCategory, dict] = MappingProxyType({
    EmergencyCategory.CARDIAC: {
        "description": "Heart attack, chest pain, cardiac arrest",
        "recommended_specialties": ("Cardiology", "Emergency Medicine"),
        "requires_immediate_attention": True,
    },
    EmergencyCategory.TRAUMA: {
        "description": "Accidents, injuries, fractures",
        "recommended_specialties": ("Emergency Medicine", "General Surgery", "Orthopedics"),
        "requires_immediate_attention": True,
    },
    EmergencyCategory.RESPIRATORY: {
        "description": "Breathing difficulties, asthma attack",
        "recommended_specialties": ("Pulmonology", "Emergency Medicine"),
        "requires_immediate_attention": True,
    },
    EmergencyCategory.NEUROLOGICAL: {
        "description": "Stroke, severe headache, seizures",
        "recommended_specialties": ("Neurology", "Emergency Medicine"),
        "requires_immediate_attention": True,
    },
    EmergencyCategory.PEDIATRIC: {
        "description": "Child emergency, fever, injury",
        "recommended_specialties": ("Pediatrics", "Emergency Medicine"),
        "requires_immediate_attention": True,
    },
    EmergencyCategory.GENERAL: {
        "description": "General emergency, unknown condition",
        "recommended_specialties": ("Emergency Medicine", "Family Medicine"),
        "requires_immediate_attention": False,
    },
})

EMERGENCY_SPECIALISTS: FrozenSet[str] = frozenset({
    "Emergency Medicine",
    "Cardiology",
    "Trauma Surgery",
    "Critical Care",
})

# Specialty fragment -> emergency service label; any specialty containing the fragment qualifies
SPECIALTY_SERVICES: Tuple[Tuple[str, str], ...] = (
    ("Emergency Medicine", "Emergency Care"),
    ("Cardiology", "Cardiac Care"),
    ("Trauma", "Trauma Care"),
    ("Pediatrics", "Pediatric Care"),
)


def _key(name: str) -> str:
    return " ".join(name.split()).lower()


def parse_specialties(raw: Optional[Union[str, Iterable[str]]]) -> List[str]:
    """Comma string or list -> trimmed, de-duplicated (case-insensitive) list in input order."""
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    out: List[str] = []
    seen = set()
    for item in items:
        name = " ".join(str(item).split())
        if name and _key(name) not in seen:
            seen.add(_key(name))
            out.append(name)
    return out


def specialty_keys(specialties: Iterable[str]) -> FrozenSet[str]:
    return frozenset(_key(s) for s in specialties)


def intersects(specialties: Iterable[str], wanted: Iterable[str]) -> bool:
    return not specialty_keys(specialties).isdisjoint(specialty_keys(wanted))


def is_emergency_specialist(specialties: Iterable[str]) -> bool:
    return intersects(specialties, EMERGENCY_SPECIALISTS)


def emergency_services(specialties: Iterable[str]) -> List[str]:
    keys = specialty_keys(specialties)
    return [
        service for fragment, service in SPECIALTY_SERVICES
        if any(_key(fragment) in key for key in keys)
    ]

"""
Static visa requirement catalog.

The catalog is an immutable (country, visa type) -> rules mapping built once
at startup and handed to the services that need it.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from ...core.models import RequirementRule


logger = logging.getLogger(__name__)

CatalogKey = Tuple[str, str]


def _normalize(value: str) -> str:
    return (value or "").strip().lower()


class RequirementCatalog:
    """
    Read-only lookup of requirement rules per destination and visa type.
    """

    def __init__(self, entries: Mapping[CatalogKey, Sequence[RequirementRule]]):
        """
        Build the catalog.

        Args:
            entries: Mapping of (country, visa_type) to the ordered rule list

        Raises:
            ValueError: If a rule id is repeated within one list
        """
        table: Dict[CatalogKey, Tuple[RequirementRule, ...]] = {}

        for (country, visa_type), rules in entries.items():
            key = (_normalize(country), _normalize(visa_type))
            rules = tuple(rules)

            ids = [rule.id for rule in rules]
            duplicates = sorted({rule_id for rule_id in ids if ids.count(rule_id) > 1})
            if duplicates:
                raise ValueError(
                    f"Duplicate requirement ids for {key[0]}/{key[1]}: {', '.join(duplicates)}"
                )

            table[key] = rules

        self._table = MappingProxyType(table)
        logger.info(f"Loaded requirement catalog with {len(table)} country/visa combinations")

    def lookup(self, country: str, visa_type: str) -> List[RequirementRule]:
        """
        Get the requirement list for a destination and visa type.

        Unknown combinations yield an empty list rather than an error.
        """
        key = (_normalize(country), _normalize(visa_type))
        rules = self._table.get(key)

        if rules is None:
            logger.debug(f"No catalog entry for {key[0]}/{key[1]}")
            return []

        return list(rules)

    def countries(self) -> List[str]:
        return sorted({country for country, _ in self._table})

    def visa_types(self, country: str) -> List[str]:
        country = _normalize(country)
        return sorted(visa_type for c, visa_type in self._table if c == country)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        return (_normalize(key[0]), _normalize(key[1])) in self._table

    def __len__(self) -> int:
        return len(self._table)

    def __iter__(self) -> Iterable[CatalogKey]:
        return iter(self._table)


_PASSPORT_FORMATS = ["pdf", "jpg", "png"]
_SUPPORTING_FORMATS = ["pdf", "jpg", "png", "docx"]

DEFAULT_REQUIREMENTS: Dict[CatalogKey, List[dict]] = {
    ("usa", "tourist"): [
        {
            "id": "passport",
            "name": "Valid Passport",
            "description": "Passport must be valid for at least 6 months beyond intended stay",
            "required": True,
            "formats": _PASSPORT_FORMATS,
        },
        {
            "id": "ds160",
            "name": "DS-160 Confirmation",
            "description": "Completed DS-160 online application confirmation page",
            "required": True,
            "formats": ["pdf"],
        },
        {
            "id": "photo",
            "name": "Passport Photo",
            "description": "Recent passport-style photograph meeting US requirements",
            "required": True,
            "formats": ["jpg", "png"],
        },
        {
            "id": "financial",
            "name": "Financial Documents",
            "description": "Bank statements, income proof, or sponsorship documents",
            "required": True,
            "formats": _SUPPORTING_FORMATS,
        },
        {
            "id": "itinerary",
            "name": "Travel Itinerary",
            "description": "Flight bookings, hotel reservations, or detailed travel plans",
            "required": False,
            "formats": _SUPPORTING_FORMATS,
        },
    ],
    ("usa", "business"): [
        {
            "id": "passport",
            "name": "Valid Passport",
            "description": "Passport must be valid for at least 6 months beyond intended stay",
            "required": True,
            "formats": _PASSPORT_FORMATS,
        },
        {
            "id": "ds160",
            "name": "DS-160 Confirmation",
            "description": "Completed DS-160 online application confirmation page",
            "required": True,
            "formats": ["pdf"],
        },
        {
            "id": "invitation",
            "name": "Business Invitation",
            "description": "Letter of invitation from US company or organization",
            "required": True,
            "formats": ["pdf", "docx"],
        },
    ],
    ("uk", "tourist"): [
        {
            "id": "passport",
            "name": "Valid Passport",
            "description": "Passport must be valid for the duration of stay",
            "required": True,
            "formats": _PASSPORT_FORMATS,
        },
        {
            "id": "application",
            "name": "Visa Application",
            "description": "Completed UK visa application form",
            "required": True,
            "formats": ["pdf"],
        },
        {
            "id": "financial",
            "name": "Financial Evidence",
            "description": "Bank statements and income proof",
            "required": True,
            "formats": _SUPPORTING_FORMATS,
        },
    ],
}


def build_default_catalog() -> RequirementCatalog:
    """Build the catalog from the built-in requirement table."""
    return RequirementCatalog({
        key: [RequirementRule.model_validate(rule) for rule in rules]
        for key, rules in DEFAULT_REQUIREMENTS.items()
    })

"""
Requirement Catalog module.
Provides the static per-country/per-visa-type document checklist.
"""

from .catalog import DEFAULT_REQUIREMENTS, RequirementCatalog, build_default_catalog

__all__ = ['RequirementCatalog', 'build_default_catalog', 'DEFAULT_REQUIREMENTS']

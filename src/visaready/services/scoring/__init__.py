"""
Scoring Service module.
Provides document format matching and completeness scoring.
"""

from .matcher import DocumentMatcher, extension_of, mime_subtype_of
from .scoring_engine import ScoringEngine, percentage

__all__ = ['DocumentMatcher', 'ScoringEngine', 'extension_of', 'mime_subtype_of', 'percentage']

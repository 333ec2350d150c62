"""Scoring modules"""

from .integrity_scorer import IntegrityScorer
from .flag_generator import FlagGenerator

__all__ = ["IntegrityScorer", "FlagGenerator"]

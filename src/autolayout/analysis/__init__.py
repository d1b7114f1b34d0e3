"""Selection analysis: structural signals, pattern classification, catalogue."""

from .element_analyzer import ElementAnalyzer
from .pattern_classifier import ClassificationRule, DEFAULT_RULES, PatternClassifier
from .catalog import CatalogueEntry, LAYOUT_CATALOGUE, get_entry

__all__ = [
    "ElementAnalyzer",
    "ClassificationRule",
    "DEFAULT_RULES",
    "PatternClassifier",
    "CatalogueEntry",
    "LAYOUT_CATALOGUE",
    "get_entry",
]

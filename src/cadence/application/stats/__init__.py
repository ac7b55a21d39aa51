# Application Stats Package
from .metrics_calculator import CardFilter, DeckSummary, MetricsCalculator

__all__ = ["CardFilter", "DeckSummary", "MetricsCalculator"]

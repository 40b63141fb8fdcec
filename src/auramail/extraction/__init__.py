"""Date parsing and regex heuristics used alongside the AI extraction."""

from .dates import extract_deadline_date, format_date_for_storage, parse_date
from .heuristics import HeuristicFields, extract_heuristic_fields

__all__ = [
    "HeuristicFields",
    "extract_deadline_date",
    "extract_heuristic_fields",
    "format_date_for_storage",
    "parse_date",
]

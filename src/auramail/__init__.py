"""AuraMail - placement mail ingestion.

This package fetches placement and internship emails from Gmail, extracts
structured fields with an LLM (falling back to regex heuristics), flags
inconsistent results for human review and stores them in a relational
database.
"""

__version__ = "0.1.0"
__author__ = "AuraMail"

from auramail.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]

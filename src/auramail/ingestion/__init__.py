"""Placement mail ingestion pipeline."""

from .lease import SyncLeaseManager
from .merge import merge_fields, resolve_deadline
from .orchestrator import PlacementIngestor

__all__ = ["PlacementIngestor", "SyncLeaseManager", "merge_fields", "resolve_deadline"]

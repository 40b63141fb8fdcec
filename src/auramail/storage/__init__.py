"""Persistence for placement records and Gmail tokens."""

from .repository import PlacementPage, PlacementRepository

__all__ = ["PlacementPage", "PlacementRepository"]

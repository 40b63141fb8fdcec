"""Wiring of the pipeline components shared by the CLI and the HTTP API."""

from __future__ import annotations

from dataclasses import dataclass

from auramail.ai.cache import ResponseCache
from auramail.ai.client import build_completion_client
from auramail.ai.extractor import AIExtractor
from auramail.config import Settings
from auramail.gmail.auth import GmailTokenProvider
from auramail.ingestion.lease import SyncLeaseManager
from auramail.ingestion.orchestrator import PlacementIngestor
from auramail.storage.repository import PlacementRepository


@dataclass
class Services:
    settings: Settings
    repository: PlacementRepository
    token_provider: GmailTokenProvider
    ingestor: PlacementIngestor


def build_services(settings: Settings, repository: PlacementRepository | None = None) -> Services:
    """Create the repository, token provider and ingestor for ``settings``."""
    repository = repository or PlacementRepository.from_settings(settings)
    repository.initialize()

    extractor = AIExtractor(
        build_completion_client(settings),
        ResponseCache(
            ttl=settings.cache_ttl,
            max_size=settings.cache_max_size,
            trim_interval=settings.cache_trim_interval,
        ),
        settings,
    )
    ingestor = PlacementIngestor(
        repository,
        extractor,
        settings,
        lease_manager=SyncLeaseManager(settings.sync_lease_seconds),
    )
    return Services(
        settings=settings,
        repository=repository,
        token_provider=GmailTokenProvider(repository, settings),
        ingestor=ingestor,
    )
